"""Domain-level request and result contracts shared by multiple layers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from .account import Account, AdminPrincipal


@dataclass(slots=True)
class RegisterAccountInput:
    """Validated inputs required to create a pending account."""

    phone: str
    password_hash: str
    email: str | None = None
    username: str | None = None


@dataclass(slots=True)
class UserSummary:
    """Non-sensitive account view returned at login."""

    id: str
    phone: str
    username: str
    email: str | None
    balance: Decimal
    status: str

    @classmethod
    def from_account(cls, account: Account) -> "UserSummary":
        return cls(
            id=account.account_id,
            phone=account.phone,
            username=account.username,
            email=account.email,
            balance=account.balance,
            status=account.status.value,
        )


@dataclass(slots=True)
class LoginResult:
    """Token bundle and account view handed back after a user login."""

    access_token: str
    expires_in: int
    user: UserSummary
    web_view_url: str | None
    is_demo: bool = False


@dataclass(slots=True)
class AdminLoginResult:
    access_token: str
    expires_in: int
    admin: AdminPrincipal


@dataclass(slots=True)
class AccountPage:
    items: list[Account]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.total else 0


@dataclass(slots=True)
class AccountStats:
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    active: int = 0
    registered_last_7_days: int = 0


@dataclass(slots=True)
class AuditEvent:
    """Row projection for items in the audit log."""

    audit_id: int
    account_id: str | None
    event_type: str
    actor: str | None
    metadata: dict[str, Any]
    created_at: datetime
