"""Billing error taxonomy.

Every error carries a stable machine ``code`` and a human ``message`` that
describes the failed operation. The API layer renders them through the
standard ``ErrorResponse`` envelope.
"""

from typing import Any, Optional


class BillingError(Exception):
    """Base class for all billing core failures"""

    code = "BILLING_ERROR"
    status_code = 400

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def __str__(self) -> str:
        return self.message


class ValidationError(BillingError):
    """Local, synchronous validation failure. Raised before any network call."""

    code = "VALIDATION_ERROR"
    status_code = 422


class TransitionError(BillingError):
    """Disallowed settlement document state transition"""

    code = "INVALID_TRANSITION"
    status_code = 409


class CollaboratorError(BillingError):
    """
    Failure reported by (or while reaching) the backend API.

    The upstream status code and payload are kept as received.
    """

    code = "COLLABORATOR_ERROR"
    status_code = 502

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        payload: Any = None,
        code: Optional[str] = None,
    ) -> None:
        super().__init__(message, code=code)
        self.upstream_status = upstream_status
        self.payload = payload
