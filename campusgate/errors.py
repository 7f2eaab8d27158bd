# campusgate/errors.py
"""
Typed failures raised by the service layer.
Every kind carries the HTTP status it maps to; main.py turns them into
{"error": kind, "detail": message} responses.
"""


class GateAccessError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def kind(self) -> str:
        return type(self).__name__


class ValidationError(GateAccessError):
    """Malformed input. Raised before any write."""
    status_code = 422


class DuplicateRequest(GateAccessError):
    """Student already has a PENDING movement of the same type."""
    status_code = 409


class InvalidTransition(GateAccessError):
    """Record is not in a state that allows the requested transition."""
    status_code = 409


class EntityNotFound(GateAccessError):
    status_code = 404


class InvalidApprover(GateAccessError):
    """Approver / officer reference does not resolve to a staff user."""
    status_code = 400


class CodeCollision(GateAccessError):
    """Internal to code generation; retried, never surfaced on its own."""
    status_code = 409


class CodeIssuanceFailed(GateAccessError):
    status_code = 500

    def __init__(self, guest_id: str, attempts: int):
        super().__init__(f"Could not issue a unique entry code for guest {guest_id} after {attempts} attempts")
        self.guest_id = guest_id
        self.attempts = attempts


class PersistenceError(GateAccessError):
    """Store-level failure. Retryable by the caller."""
    status_code = 503
