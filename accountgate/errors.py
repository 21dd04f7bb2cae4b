"""Error taxonomy shared by the gateways and rendered by the HTTP layer."""

from __future__ import annotations

from typing import Any


class AccountGateError(Exception):
    """Base class for failures that are safe to report to API clients."""

    status_code: int = 400
    code: str = "error"
    default_message: str = "request failed"
    headers: dict[str, str] = {}

    def __init__(self, message: str | None = None, **extra: Any) -> None:
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code, **self.extra}


class ValidationError(AccountGateError):
    code = "validation_error"
    default_message = "invalid request"

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message, field=field)
        self.field = field


class DuplicateIdentity(AccountGateError):
    code = "duplicate_identity"
    default_message = "identity already registered"


class InvalidCredentials(AccountGateError):
    status_code = 401
    code = "invalid_credentials"
    default_message = "Invalid credentials"


class PendingApproval(AccountGateError):
    status_code = 403
    code = "pending_approval"
    default_message = "Your account is pending approval. Please wait for admin approval."

    def __init__(self) -> None:
        super().__init__(status="pending")


class Rejected(AccountGateError):
    status_code = 403
    code = "rejected"
    default_message = "Your account has been rejected. Please contact support."

    def __init__(self) -> None:
        super().__init__(status="rejected")


class Deactivated(AccountGateError):
    status_code = 403
    code = "deactivated"
    default_message = "Your account has been deactivated. Please contact support."


class Unauthorized(AccountGateError):
    status_code = 401
    code = "unauthorized"
    default_message = "authentication required"
    headers = {"WWW-Authenticate": "Bearer"}


class Forbidden(AccountGateError):
    status_code = 403
    code = "forbidden"
    default_message = "insufficient privileges"


class NotFound(AccountGateError):
    status_code = 404
    code = "not_found"
    default_message = "not found"


class InvalidAmount(AccountGateError):
    code = "invalid_amount"
    default_message = "Balance amount is required"
