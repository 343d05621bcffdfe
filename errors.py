"""
Engine error taxonomy.

Every error carries an HTTP status and a stable machine-readable code; the
Flask error handler registered in app.py renders them as
``{"error": message, "code": code}``.
"""

from __future__ import annotations


class EngineError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    code = "engine_error"
    default_message = "Internal Server Error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class ValidationError(EngineError):
    """Missing or malformed request fields."""

    status_code = 400
    code = "validation_error"
    default_message = "Invalid request"


class Unauthorized(EngineError):
    status_code = 401
    code = "unauthorized"
    default_message = "Unauthorized"


class Forbidden(EngineError):
    """Identity is known but the enrollment path is absent or locked."""

    status_code = 403
    code = "forbidden"
    default_message = "Forbidden"


class NotFound(EngineError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class PolicyViolation(EngineError):
    """A domain rule refused the action (distinct from validation)."""

    status_code = 409
    code = "policy_violation"
    default_message = "Action not allowed"


class AlreadyPassed(PolicyViolation):
    code = "already_passed"
    default_message = "You have already passed this quiz."


class AttemptsExceeded(PolicyViolation):
    code = "attempts_exceeded"
    default_message = "Max attempts exceeded."


class Conflict(EngineError):
    """Concurrent write lost a race; the caller may retry once."""

    status_code = 409
    code = "conflict"
    default_message = "Concurrent update, please retry"


class StoreUnavailable(EngineError):
    """Backing store I/O failure. Safe to retry."""

    status_code = 500
    code = "store_unavailable"
    default_message = "Internal Server Error"
