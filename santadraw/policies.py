from __future__ import annotations

from flask import current_app, jsonify, request
from flask.views import MethodView

from .extensions import SESSION_EXTENSION_KEY
from .services.reveal import Phase, RevealSession


def current_session() -> RevealSession:
    return current_app.extensions[SESSION_EXTENSION_KEY]


def form_value(key: str) -> str:
    """Field from a JSON or form-encoded body."""
    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        value = payload.get(key)
    else:
        value = request.form.get(key)
    return "" if value is None else str(value)


def rejected(message: str, status: int):
    return jsonify(ok=False, error=message, state=current_session().snapshot()), status


def accepted(status: int = 200, **extra):
    return jsonify(ok=True, state=current_session().snapshot(), **extra), status


# --------- Class-based view Mixins ----------

class SerializedMixin(MethodView):
    """Holds the session lock for the whole request, so requests never interleave."""

    def dispatch_request(self, *args, **kwargs):
        with current_session().lock:
            return super().dispatch_request(*args, **kwargs)


class PhaseRequiredMixin(SerializedMixin):
    """
    Rejects the request with 409 unless the session is in one of
    required_phases. GET is always allowed.
    """
    required_phases: tuple[Phase, ...] = ()

    def dispatch_request(self, *args, **kwargs):
        with current_session().lock:
            if request.method != "GET" and current_session().phase not in self.required_phases:
                phase = current_session().phase.value
                current_app.logger.info("%s %s rejected while %s", request.method, request.path, phase)
                return rejected(f"Not allowed while {phase}.", 409)
            return super().dispatch_request(*args, **kwargs)


class RegistrationOpenMixin(PhaseRequiredMixin):
    required_phases = (Phase.REGISTERING,)


class DrawingMixin(PhaseRequiredMixin):
    required_phases = (Phase.DRAWING,)
