from __future__ import annotations

from flask import Blueprint, current_app

from ..policies import PhaseRequiredMixin, RegistrationOpenMixin, accepted, current_session, form_value, rejected
from ..services.assignments import MIN_PARTICIPANTS
from ..services.reveal import Phase


registration_bp = Blueprint("registration", __name__, url_prefix="/registration")


class StartView(PhaseRequiredMixin):
    required_phases = (Phase.IDLE, Phase.REGISTERING)

    def post(self):
        current_session().start_registration()
        return accepted()


class ParticipantsView(RegistrationOpenMixin):
    def get(self):
        return accepted(participants=list(current_session().roster))

    def post(self):
        name = form_value("name")
        if not current_session().add_participant(name):
            if not name.strip():
                return rejected("Name is required.", 400)
            return rejected(f"{name.strip()} is already registered.", 400)
        return accepted(201)


class ParticipantView(RegistrationOpenMixin):
    def patch(self, index: int):
        session = current_session()
        if index >= len(session.roster):
            return rejected("No such participant.", 404)

        name = form_value("name")
        if not session.edit_participant(index, name):
            if not name.strip():
                return rejected("Name is required.", 400)
            return rejected(f"{name.strip()} is already registered.", 400)
        return accepted()

    def delete(self, index: int):
        session = current_session()
        if index >= len(session.roster):
            return rejected("No such participant.", 404)
        session.remove_participant(index)
        return accepted()


class FinalizeView(RegistrationOpenMixin):
    def post(self):
        session = current_session()
        if not session.finalize_registration():
            return rejected(f"Add at least {MIN_PARTICIPANTS} participants to start the draw.", 400)
        current_app.logger.info("Registration closed, drawing started")
        return accepted()


registration_bp.add_url_rule("/start", view_func=StartView.as_view("start"), methods=["POST"])
registration_bp.add_url_rule("/participants", view_func=ParticipantsView.as_view("participants"), methods=["GET", "POST"])
registration_bp.add_url_rule(
    "/participants/<int:index>",
    view_func=ParticipantView.as_view("participant"),
    methods=["PATCH", "DELETE"],
)
registration_bp.add_url_rule("/finalize", view_func=FinalizeView.as_view("finalize"), methods=["POST"])
