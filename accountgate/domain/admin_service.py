"""Privileged account administration backed by verified admin sessions."""

from __future__ import annotations

from base64 import urlsafe_b64decode, urlsafe_b64encode
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import json
import logging
from typing import Any, Optional, Protocol, Tuple

from .account import Account, AccountStatus, AdminPrincipal, AdminRole, Setting
from .contracts import AccountPage, AccountStats, AdminLoginResult, AuditEvent
from .credentials import CredentialStore
from .state_machine import AccountStateMachine
from ..errors import Deactivated, Forbidden, InvalidCredentials, Unauthorized, ValidationError
from ..security.tokens import (
    Capability,
    InsufficientPrivilege,
    InvalidToken,
    TokenService,
)

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
STATS_WINDOW = timedelta(days=7)

_ROLE_CAPABILITIES: dict[AdminRole, frozenset[Capability]] = {
    AdminRole.admin: frozenset({Capability.admin}),
    AdminRole.super_admin: frozenset({Capability.admin, Capability.super_admin}),
}


def capabilities_for_role(role: AdminRole) -> frozenset[Capability]:
    return _ROLE_CAPABILITIES[role]


class AdminStore(Protocol):
    def get_admin(self, admin_id: str) -> AdminPrincipal | None: ...

    def touch_admin_login(self, admin_id: str) -> None: ...

    def write_audit_event(
        self,
        *,
        account_id: str | None,
        event_type: str,
        actor: str | None,
        metadata: dict[str, Any] | None = None,
    ) -> None: ...

    def list_accounts(
        self, *, status: AccountStatus | None = None, offset: int = 0, limit: int = 20
    ) -> tuple[list[Account], int]: ...

    def account_stats(self, *, registered_since: datetime) -> AccountStats: ...

    def list_settings(self) -> list[Setting]: ...

    def upsert_setting(
        self, *, key: str, value: str, description: str | None, updated_by: str | None
    ) -> Setting: ...

    def list_audit_events(
        self,
        *,
        account_id: str | None = None,
        event_type: str | None = None,
        limit: int = 50,
        cursor: Tuple[datetime, int] | None = None,
    ) -> tuple[list[AuditEvent], Optional[Tuple[datetime, int]]]: ...


@dataclass(frozen=True, slots=True)
class AdminSession:
    """An authenticated admin and the capabilities its current role grants."""

    principal: AdminPrincipal
    capabilities: frozenset[Capability]

    @property
    def admin_id(self) -> str:
        return self.principal.admin_id

    def has(self, capability: Capability) -> bool:
        return capability in self.capabilities


class AdminGateway:
    """Admin login, session checks, and the account-mutation endpoints."""

    def __init__(
        self,
        *,
        store: AdminStore,
        state_machine: AccountStateMachine,
        credentials: CredentialStore,
        tokens: TokenService,
    ) -> None:
        self._store = store
        self._state_machine = state_machine
        self._credentials = credentials
        self._tokens = tokens

    # -- authentication -----------------------------------------------------------

    def login(self, identifier: str | None, password: str | None) -> AdminLoginResult:
        """Authenticate an admin by username or email; only ``is_active`` gates it."""
        identifier = (identifier or "").strip()
        if not identifier:
            raise ValidationError("identifier", "Username or email is required")
        if not password:
            raise ValidationError("password", "Password is required")

        admin = self._credentials.find_admin(identifier)
        if admin is None:
            self._credentials.burn_verification()
        if admin is None or not self._credentials.verify_password(admin, password):
            raise InvalidCredentials()
        if not admin.is_active:
            logger.warning("admin login refused for %s: inactive", admin.admin_id)
            raise Deactivated("Admin account is deactivated")

        self._store.touch_admin_login(admin.admin_id)
        self._store.write_audit_event(
            account_id=None,
            event_type="admin.login",
            actor=admin.admin_id,
            metadata={"role": admin.role.value},
        )
        issued = self._tokens.issue(admin.admin_id, capabilities_for_role(admin.role))
        logger.info("admin %s logged in", admin.admin_id)
        return AdminLoginResult(access_token=issued.token, expires_in=issued.expires_in, admin=admin)

    def authenticate(self, token: str | None) -> AdminSession:
        """Turn a bearer token into an ``AdminSession`` or raise 401/403 errors."""
        try:
            verified = self._tokens.verify(token, privileged=True)
        except InvalidToken as exc:
            raise Unauthorized("Invalid or expired token") from exc
        except InsufficientPrivilege as exc:
            raise Forbidden("Admin access required") from exc

        admin = self._store.get_admin(verified.subject_id)
        if admin is None:
            raise Unauthorized("Admin not found")
        if not admin.is_active:
            raise Forbidden("Admin account is deactivated")
        return AdminSession(principal=admin, capabilities=capabilities_for_role(admin.role))

    # -- read models --------------------------------------------------------------

    def list_users(
        self,
        session: AdminSession,
        *,
        status: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> AccountPage:
        status_filter: AccountStatus | None = None
        if status:
            try:
                status_filter = AccountStatus(status)
            except ValueError as exc:
                raise ValidationError("status", f"Unknown status filter: {status}") from exc
        page = max(1, int(page))
        limit = max(1, min(int(limit), MAX_PAGE_SIZE))
        items, total = self._store.list_accounts(
            status=status_filter, offset=(page - 1) * limit, limit=limit
        )
        return AccountPage(items=items, total=total, page=page, limit=limit)

    def list_pending(self, session: AdminSession, *, page: int = 1, limit: int = 20) -> AccountPage:
        return self.list_users(session, status=AccountStatus.pending.value, page=page, limit=limit)

    def get_stats(self, session: AdminSession) -> AccountStats:
        since = datetime.now(timezone.utc) - STATS_WINDOW
        return self._store.account_stats(registered_since=since)

    # -- mutations ----------------------------------------------------------------

    def approve(self, session: AdminSession, account_id: str, balance: Any = None) -> Account:
        return self._state_machine.approve(account_id, balance, actor=session.admin_id)

    def reject(self, session: AdminSession, account_id: str, reason: str | None = None) -> Account:
        return self._state_machine.reject(account_id, reason, actor=session.admin_id)

    def toggle_active(self, session: AdminSession, account_id: str) -> Account:
        return self._state_machine.toggle_active(account_id, actor=session.admin_id)

    def set_active(self, session: AdminSession, account_id: str, active: bool) -> Account:
        return self._state_machine.set_active(account_id, active, actor=session.admin_id)

    def set_balance(self, session: AdminSession, account_id: str, amount: Any) -> Account:
        return self._state_machine.set_balance(account_id, amount, actor=session.admin_id)

    def delete(self, session: AdminSession, account_id: str) -> None:
        self._state_machine.delete(
            account_id, actor=session.admin_id, capabilities=session.capabilities
        )

    # -- settings -----------------------------------------------------------------

    def list_settings(self, session: AdminSession) -> list[Setting]:
        return self._store.list_settings()

    def update_setting(
        self,
        session: AdminSession,
        key: str,
        value: str | None,
        description: str | None = None,
    ) -> Setting:
        key = (key or "").strip()
        value = (value or "").strip()
        if not key:
            raise ValidationError("key", "Setting key is required")
        if not value:
            raise ValidationError("value", "Setting value is required")
        setting = self._store.upsert_setting(
            key=key, value=value, description=description, updated_by=session.admin_id
        )
        logger.info("setting %s updated by %s", key, session.admin_id)
        return setting

    # -- audit --------------------------------------------------------------------

    def list_audit_events(
        self,
        session: AdminSession,
        *,
        account_id: str | None = None,
        event_type: str | None = None,
        limit: int = 50,
        cursor: str | None = None,
    ) -> tuple[list[AuditEvent], str | None]:
        """Return audit records with optional filters and an opaque continuation cursor."""
        decoded_cursor: Optional[Tuple[datetime, int]] = None
        if cursor:
            decoded_cursor = self._decode_cursor(cursor)
        records, next_cursor_tuple = self._store.list_audit_events(
            account_id=account_id,
            event_type=event_type,
            limit=limit,
            cursor=decoded_cursor,
        )
        next_cursor = self._encode_cursor(next_cursor_tuple) if next_cursor_tuple else None
        return records, next_cursor

    def _encode_cursor(self, cursor: Tuple[datetime, int] | None) -> str | None:
        if cursor is None:
            return None
        created_at, audit_id = cursor
        payload = json.dumps({"created_at": created_at.isoformat(), "audit_id": audit_id})
        return urlsafe_b64encode(payload.encode("utf-8")).decode("utf-8")

    def _decode_cursor(self, cursor: str) -> Tuple[datetime, int]:
        try:
            data = json.loads(urlsafe_b64decode(cursor.encode("utf-8")).decode("utf-8"))
            created_at = datetime.fromisoformat(data["created_at"])
            audit_id = int(data["audit_id"])
            return created_at, audit_id
        except (ValueError, KeyError, TypeError) as exc:
            raise ValidationError("cursor", "invalid cursor") from exc
