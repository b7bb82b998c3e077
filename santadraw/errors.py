from __future__ import annotations


class SantaError(RuntimeError):
    pass


class ValidationError(SantaError):
    """Blank or duplicate participant name."""


class AssignmentError(SantaError):
    pass


class InsufficientParticipants(AssignmentError):
    pass


class DuplicateParticipant(AssignmentError):
    pass


class StateViolation(SantaError):
    """Operation called in a phase that does not allow it."""


class PersistenceError(SantaError):
    pass
