from __future__ import annotations

from flask import Blueprint

from ..policies import DrawingMixin, SerializedMixin, accepted, current_session, rejected


draw_bp = Blueprint("draw", __name__, url_prefix="/draw")


class DrawView(DrawingMixin):
    def post(self):
        session = current_session()
        drawer = session.current_drawer
        drawn = session.draw()
        if drawn is None:
            return rejected("The draw is not running.", 409)
        return accepted(drawer=drawer, drawn=drawn)


class ConfirmView(DrawingMixin):
    def post(self):
        session = current_session()
        if session.pending is None:
            return rejected("Nothing to confirm, draw first.", 409)
        session.confirm()
        return accepted()


class CancelView(SerializedMixin):
    def post(self):
        current_session().cancel()
        return accepted()


class ResetView(SerializedMixin):
    def post(self):
        current_session().reset()
        return accepted()


draw_bp.add_url_rule("/", view_func=DrawView.as_view("draw"), methods=["POST"])
draw_bp.add_url_rule("/confirm", view_func=ConfirmView.as_view("confirm"), methods=["POST"])
draw_bp.add_url_rule("/cancel", view_func=CancelView.as_view("cancel"), methods=["POST"])
draw_bp.add_url_rule("/reset", view_func=ResetView.as_view("reset"), methods=["POST"])
