"""Application error taxonomy.

Every error carries an HTTP status, a user-facing message and a stable
machine-readable ``code``. Handlers in :mod:`src.core.errors` render them
as ``{"message": ..., "code": ..., **extra}``.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import status


class AppError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"
    message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message or self.message
        self.extra = extra or {}
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        return {"message": self.message, "code": self.code, **self.extra}


class InvalidRequest(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_request"
    message = "Invalid request"


class AuthenticationFailure(AppError):
    """Credential missing, malformed or unresolvable.

    The message never says which of those it was.
    """

    status_code = status.HTTP_401_UNAUTHORIZED
    code = "authentication_failed"
    message = "Invalid credentials"


class PermissionDenied(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    message = "Forbidden"


class AccountNotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "account_not_found"
    message = "Account not found"


class EntitlementDenied(AppError):
    """Authenticated caller is over quota or the plan lacks the channel."""

    status_code = status.HTTP_402_PAYMENT_REQUIRED
    code = "entitlement_denied"
    message = "Generation limit reached. Upgrade your plan."

    def __init__(
        self,
        entitlement: Any,
        message: Optional[str] = None,
        *,
        status_code: Optional[int] = None,
    ) -> None:
        self.entitlement = entitlement
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message, extra=entitlement.as_dict() | {"upgrade": True})


class WebhookVerificationFailure(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "webhook_verification_failed"
    message = "Webhook signature verification failed"


class UnmappedPlanIdentifier(AppError):
    """A payment event referenced a price that is not configured."""

    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT
    code = "unmapped_plan"
    message = "Unknown plan identifier"


class TransientStorageFailure(AppError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "storage_unavailable"
    message = "Service temporarily unavailable"


class GenerationFailed(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "generation_failed"
    message = "Failed to generate documentation"
