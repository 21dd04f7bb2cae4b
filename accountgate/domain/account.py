from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum


class AccountStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class AdminRole(str, Enum):
    admin = "admin"
    super_admin = "super_admin"


@dataclass(slots=True)
class Account:
    """Aggregate root for an end-user identity and its approval state."""

    account_id: str
    phone: str
    email: str | None
    username: str
    password_hash: str
    status: AccountStatus
    is_active: bool
    balance: Decimal
    created_at: datetime
    updated_at: datetime
    last_login: datetime | None = None
    rejection_reason: str | None = None


@dataclass(slots=True)
class AdminPrincipal:
    """Operator identity that acts on accounts but owns none."""

    admin_id: str
    username: str
    email: str
    password_hash: str
    role: AdminRole
    is_active: bool
    created_at: datetime
    last_login: datetime | None = None


@dataclass(slots=True)
class Setting:
    key: str
    value: str
    description: str | None
    updated_at: datetime
    updated_by: str | None = None
