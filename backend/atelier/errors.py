# Overview: Domain error taxonomy shared by services and routes.

"""
Atelier error taxonomy.

Every service-level failure is one of these. Routes translate them into a
JSON body {"error": ..., "code": ...} with the class's HTTP status.

PROPAGATION:
- ValidationError / AuthorizationError are raised before any write.
- ConflictError / UpstreamError come back from the record store and are
  retryable by the caller.
"""

from __future__ import annotations


class AtelierError(Exception):
    """Base class for all domain errors."""

    status_code = 400
    code = "ERROR"

    def __init__(self, message: str, *, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.message, "code": self.code}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(AtelierError, ValueError):
    """400-level input problem (missing required field, malformed request)."""

    status_code = 400
    code = "VALIDATION_ERROR"


class InvalidTransitionError(ValidationError):
    """Requested order status is not reachable from the current one."""

    code = "INVALID_TRANSITION"


class AuthorizationError(AtelierError):
    """Access policy denied the action."""

    status_code = 403
    code = "PERMISSION_DENIED"


class NotFoundError(AtelierError):
    """Referenced order/user/invoice/record is absent (or out of scope)."""

    status_code = 404
    code = "NOT_FOUND"


class ConflictError(AtelierError):
    """Optimistic-concurrency mismatch; caller must re-fetch and retry."""

    status_code = 409
    code = "CONFLICT"


class UpstreamError(AtelierError):
    """Record store or identity provider failure with an opaque cause."""

    status_code = 502
    code = "UPSTREAM_ERROR"
