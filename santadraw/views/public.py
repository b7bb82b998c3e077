from __future__ import annotations

from flask import Blueprint, jsonify
from flask_wtf.csrf import generate_csrf

from ..policies import SerializedMixin, current_session
from ..services.reveal import Phase


public_bp = Blueprint("public", __name__)


class StateView(SerializedMixin):
    def get(self):
        return jsonify(ok=True, state=current_session().snapshot(), csrf_token=generate_csrf())


class ResultsView(SerializedMixin):
    def get(self):
        session = current_session()
        return jsonify(
            ok=True,
            finished=session.phase == Phase.FINISHED,
            results=[a.to_dict() for a in session.results],
        )


public_bp.add_url_rule("/", view_func=StateView.as_view("state"))
public_bp.add_url_rule("/results", view_func=ResultsView.as_view("results"))
