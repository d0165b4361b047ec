"""Error taxonomy shared by the transactors, the state machine, and the API.

Every error carries a stable ``code`` and a ``details`` mapping so callers can
render a specific message (which class is invalid, which dog is duplicated).
"""

from __future__ import annotations

from typing import Any


class RemiError(Exception):
    """Base class for domain errors surfaced to callers."""

    family = "error"
    status_code = 500

    def __init__(
        self,
        code: str,
        message: str,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = dict(details or {})

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.family,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(RemiError):
    """Bad input shape; rejected before any write."""

    family = "validation"
    status_code = 400


class UnauthenticatedError(RemiError):
    family = "unauthenticated"
    status_code = 401


class ForbiddenError(RemiError):
    """The resource exists but is not owned by the requester."""

    family = "forbidden"
    status_code = 403


class NotFoundError(RemiError):
    family = "not_found"
    status_code = 404


class ConflictError(RemiError):
    """The request clashes with current state (duplicates, caps, stale stages)."""

    family = "conflict"
    status_code = 409


class TokenExpiredError(RemiError):
    family = "expired"
    status_code = 410


class ServiceUnavailableError(RemiError):
    family = "unavailable"
    status_code = 503


class PaymentGatewayError(RemiError):
    """The payment gateway failed after local state was made durable.

    ``details`` names the order or payment that is left pending so the caller
    can resume instead of re-running the whole operation.
    """

    family = "downstream"
    status_code = 502


__all__ = [
    "ConflictError",
    "ForbiddenError",
    "NotFoundError",
    "PaymentGatewayError",
    "RemiError",
    "ServiceUnavailableError",
    "TokenExpiredError",
    "UnauthenticatedError",
    "ValidationError",
]
