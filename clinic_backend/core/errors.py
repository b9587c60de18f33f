"""
Error taxonomy for the scheduling core.

Services raise these exceptions; the API layer renders them as
``{"error": message, "kind": kind}`` with the class' status code.
"""

from typing import Any


class SchedulingError(Exception):
    """Base exception for every failure the scheduling core reports."""

    kind = "error"
    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "kind": self.kind}


class BookingValidationError(SchedulingError):
    """Malformed or missing input, detected before any store access."""

    kind = "validation"


class PolicyRejection(SchedulingError):
    """A business rule rejected the request."""

    kind = "policy"


class SlotConflictError(PolicyRejection):
    """The requested interval overlaps another booking of the same doctor."""

    status_code = 409

    def __init__(self, message: str, conflict_start: str | None = None, conflict_end: str | None = None):
        self.conflict_start = conflict_start
        self.conflict_end = conflict_end
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        if self.conflict_start and self.conflict_end:
            payload["conflict"] = {"start": self.conflict_start, "end": self.conflict_end}
        return payload


class AuthenticationError(SchedulingError):
    kind = "authentication"
    status_code = 401


class AuthorizationError(SchedulingError):
    kind = "authorization"
    status_code = 403


class NotFoundError(SchedulingError):
    kind = "not_found"
    status_code = 404


class InfrastructureError(SchedulingError):
    """Store unreachable, write failure or timeout. The caller should retry."""

    kind = "infrastructure"
    status_code = 503
