"""HTTP route definitions for privileged account administration."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import AliasChoices, BaseModel, Field

from ..domain.account import Account, AdminPrincipal, Setting
from ..domain.admin_service import AdminGateway, AdminSession
from ..domain.contracts import AccountPage
from .deps import get_admin_gateway, require_admin_session

router = APIRouter(prefix="/api/admin", tags=["admin"])


class AdminLoginRequest(BaseModel):
    identifier: str | None = Field(
        default=None, validation_alias=AliasChoices("identifier", "username", "email")
    )
    password: str | None = None


class AdminResponse(BaseModel):
    admin_id: str
    username: str
    email: str
    role: str
    is_active: bool
    last_login: datetime | None = None

    @classmethod
    def from_domain(cls, admin: AdminPrincipal) -> "AdminResponse":
        return cls(
            admin_id=admin.admin_id,
            username=admin.username,
            email=admin.email,
            role=admin.role.value,
            is_active=admin.is_active,
            last_login=admin.last_login,
        )


class AdminLoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    admin: AdminResponse


class AccountResponse(BaseModel):
    """Admin view of an account; password material is never included."""

    account_id: str
    phone: str
    email: str | None
    username: str
    status: str
    is_active: bool
    balance: float
    rejection_reason: str | None
    last_login: datetime | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, account: Account) -> "AccountResponse":
        return cls(
            account_id=account.account_id,
            phone=account.phone,
            email=account.email,
            username=account.username,
            status=account.status.value,
            is_active=account.is_active,
            balance=float(account.balance),
            rejection_reason=account.rejection_reason,
            last_login=account.last_login,
            created_at=account.created_at,
            updated_at=account.updated_at,
        )


class AccountPageResponse(BaseModel):
    items: list[AccountResponse]
    total: int
    page: int
    limit: int
    pages: int

    @classmethod
    def from_domain(cls, page: AccountPage) -> "AccountPageResponse":
        return cls(
            items=[AccountResponse.from_domain(account) for account in page.items],
            total=page.total,
            page=page.page,
            limit=page.limit,
            pages=page.pages,
        )


class StatsResponse(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int
    active: int
    registered_last_7_days: int


class ApproveRequest(BaseModel):
    balance: Any = None


class RejectRequest(BaseModel):
    reason: str | None = None


class ToggleActiveRequest(BaseModel):
    """Optional body; when ``is_active`` is omitted the flag is flipped."""

    is_active: bool | None = None


class BalanceRequest(BaseModel):
    balance: Any = None


class BalanceResponse(BaseModel):
    user_id: str
    phone: str
    balance: float


class DeleteResponse(BaseModel):
    message: str
    user_id: str


class SettingResponse(BaseModel):
    key: str
    value: str
    description: str | None
    updated_at: datetime
    updated_by: str | None

    @classmethod
    def from_domain(cls, setting: Setting) -> "SettingResponse":
        return cls(
            key=setting.key,
            value=setting.value,
            description=setting.description,
            updated_at=setting.updated_at,
            updated_by=setting.updated_by,
        )


class SettingUpdateRequest(BaseModel):
    value: str | None = None
    description: str | None = None


class AuditLogEntry(BaseModel):
    """Audit log response entry."""

    audit_id: int
    account_id: str | None
    event_type: str
    actor: str | None
    metadata: dict[str, Any]
    created_at: datetime


class AuditLogResponse(BaseModel):
    """Envelope for paginated audit log data."""

    items: list[AuditLogEntry]
    next_cursor: str | None = None


@router.post("/login", response_model=AdminLoginResponse)
def admin_login(
    payload: AdminLoginRequest,
    gateway: AdminGateway = Depends(get_admin_gateway),
) -> AdminLoginResponse:
    """Authenticate an admin by username or email and issue a privileged token."""
    result = gateway.login(payload.identifier, payload.password)
    return AdminLoginResponse(
        access_token=result.access_token,
        expires_in=result.expires_in,
        admin=AdminResponse.from_domain(result.admin),
    )


@router.get("/verify", response_model=AdminResponse)
def verify(session: AdminSession = Depends(require_admin_session)) -> AdminResponse:
    return AdminResponse.from_domain(session.principal)


@router.get("/users", response_model=AccountPageResponse)
def list_users(
    status: str | None = Query(default=None),
    page: int = Query(default=1),
    limit: int = Query(default=20),
    session: AdminSession = Depends(require_admin_session),
    gateway: AdminGateway = Depends(get_admin_gateway),
) -> AccountPageResponse:
    """Return accounts newest first, optionally filtered by status."""
    result = gateway.list_users(session, status=status, page=page, limit=limit)
    return AccountPageResponse.from_domain(result)


@router.get("/users/pending", response_model=AccountPageResponse)
def list_pending_users(
    page: int = Query(default=1),
    limit: int = Query(default=20),
    session: AdminSession = Depends(require_admin_session),
    gateway: AdminGateway = Depends(get_admin_gateway),
) -> AccountPageResponse:
    return AccountPageResponse.from_domain(gateway.list_pending(session, page=page, limit=limit))


@router.get("/stats", response_model=StatsResponse)
def stats(
    session: AdminSession = Depends(require_admin_session),
    gateway: AdminGateway = Depends(get_admin_gateway),
) -> StatsResponse:
    counts = gateway.get_stats(session)
    return StatsResponse(
        total=counts.total,
        pending=counts.pending,
        approved=counts.approved,
        rejected=counts.rejected,
        active=counts.active,
        registered_last_7_days=counts.registered_last_7_days,
    )


@router.put("/users/{account_id}/approve", response_model=AccountResponse)
def approve_user(
    account_id: str,
    payload: ApproveRequest | None = None,
    session: AdminSession = Depends(require_admin_session),
    gateway: AdminGateway = Depends(get_admin_gateway),
) -> AccountResponse:
    """Approve and activate an account, optionally seeding its balance."""
    balance = payload.balance if payload is not None else None
    return AccountResponse.from_domain(gateway.approve(session, account_id, balance))


@router.put("/users/{account_id}/reject", response_model=AccountResponse)
def reject_user(
    account_id: str,
    payload: RejectRequest | None = None,
    session: AdminSession = Depends(require_admin_session),
    gateway: AdminGateway = Depends(get_admin_gateway),
) -> AccountResponse:
    reason = payload.reason if payload is not None else None
    return AccountResponse.from_domain(gateway.reject(session, account_id, reason))


@router.put("/users/{account_id}/toggle-active", response_model=AccountResponse)
def toggle_active(
    account_id: str,
    payload: ToggleActiveRequest | None = None,
    session: AdminSession = Depends(require_admin_session),
    gateway: AdminGateway = Depends(get_admin_gateway),
) -> AccountResponse:
    """Suspend or unsuspend an account without touching its approval status."""
    if payload is not None and payload.is_active is not None:
        account = gateway.set_active(session, account_id, payload.is_active)
    else:
        account = gateway.toggle_active(session, account_id)
    return AccountResponse.from_domain(account)


@router.put("/users/{account_id}/balance", response_model=BalanceResponse)
def set_balance(
    account_id: str,
    payload: BalanceRequest | None = None,
    session: AdminSession = Depends(require_admin_session),
    gateway: AdminGateway = Depends(get_admin_gateway),
) -> BalanceResponse:
    amount = payload.balance if payload is not None else None
    account = gateway.set_balance(session, account_id, amount)
    return BalanceResponse(
        user_id=account.account_id,
        phone=account.phone,
        balance=float(account.balance),
    )


@router.delete("/users/{account_id}", response_model=DeleteResponse)
def delete_user(
    account_id: str,
    session: AdminSession = Depends(require_admin_session),
    gateway: AdminGateway = Depends(get_admin_gateway),
) -> DeleteResponse:
    """Permanently remove an account; super admins only."""
    gateway.delete(session, account_id)
    return DeleteResponse(message="User deleted successfully", user_id=account_id)


@router.get("/settings", response_model=list[SettingResponse])
def list_settings(
    session: AdminSession = Depends(require_admin_session),
    gateway: AdminGateway = Depends(get_admin_gateway),
) -> list[SettingResponse]:
    return [SettingResponse.from_domain(setting) for setting in gateway.list_settings(session)]


@router.put("/settings/{key}", response_model=SettingResponse)
def update_setting(
    key: str,
    payload: SettingUpdateRequest,
    session: AdminSession = Depends(require_admin_session),
    gateway: AdminGateway = Depends(get_admin_gateway),
) -> SettingResponse:
    setting = gateway.update_setting(session, key, payload.value, payload.description)
    return SettingResponse.from_domain(setting)


@router.get("/audit/logs", response_model=AuditLogResponse)
def list_audit_logs(
    account_id: str | None = Query(default=None),
    event_type: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=100),
    cursor: str | None = Query(default=None),
    session: AdminSession = Depends(require_admin_session),
    gateway: AdminGateway = Depends(get_admin_gateway),
) -> AuditLogResponse:
    """Return paginated audit events with optional filtering."""
    records, next_cursor = gateway.list_audit_events(
        session,
        account_id=account_id,
        event_type=event_type,
        limit=limit,
        cursor=cursor,
    )
    items = [
        AuditLogEntry(
            audit_id=record.audit_id,
            account_id=record.account_id,
            event_type=record.event_type,
            actor=record.actor,
            metadata=record.metadata,
            created_at=record.created_at,
        )
        for record in records
    ]
    return AuditLogResponse(items=items, next_cursor=next_cursor)
