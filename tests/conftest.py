from __future__ import annotations

import dataclasses
import threading
import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from accountgate.api import admin_routes, routes
from accountgate.api.errors import register_exception_handlers
from accountgate.config import Settings
from accountgate.domain.account import Account, AccountStatus, AdminPrincipal, AdminRole, Setting
from accountgate.domain.contracts import AccountStats, AuditEvent, RegisterAccountInput
from accountgate.errors import DuplicateIdentity
from accountgate.main import build_gateways
from accountgate.security.passwords import hash_password

ADMIN_PASSWORD = "admin-pass-123"


class FakeRepository:
    """In-memory repository mimicking the Postgres-backed behaviors.

    A single lock around each call stands in for row-level atomicity, and
    records are copied on the way in and out like rows would be.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._accounts: dict[str, Account] = {}
        self._admins: dict[str, AdminPrincipal] = {}
        self._settings: dict[str, Setting] = {}
        self.audit_log: list[AuditEvent] = []
        self._audit_seq = 0
        self.fail_settings = False

    # accounts

    def insert_account(self, payload: RegisterAccountInput) -> Account:
        with self._lock:
            for existing in self._accounts.values():
                if existing.phone == payload.phone:
                    raise DuplicateIdentity("Phone number already registered")
                if payload.email and existing.email == payload.email:
                    raise DuplicateIdentity("Email already registered")
            now = datetime.now(timezone.utc)
            account = Account(
                account_id=str(uuid.uuid4()),
                phone=payload.phone,
                email=payload.email,
                username=payload.username or payload.phone,
                password_hash=payload.password_hash,
                status=AccountStatus.pending,
                is_active=True,
                balance=Decimal("0.00"),
                created_at=now,
                updated_at=now,
            )
            self._accounts[account.account_id] = account
            return dataclasses.replace(account)

    def get_account(self, account_id: str) -> Account | None:
        with self._lock:
            account = self._accounts.get(account_id)
            return dataclasses.replace(account) if account else None

    def find_account_by_phone(self, phone: str) -> Account | None:
        return self._find(lambda a: a.phone == phone)

    def find_account_by_email(self, email: str) -> Account | None:
        return self._find(lambda a: a.email is not None and a.email == email.lower())

    def _find(self, predicate) -> Account | None:
        with self._lock:
            for account in self._accounts.values():
                if predicate(account):
                    return dataclasses.replace(account)
        return None

    def update_account(self, account_id: str, **fields) -> Account | None:
        with self._lock:
            account = self._accounts.get(account_id)
            if account is None:
                return None
            updated = dataclasses.replace(account, **fields, updated_at=datetime.now(timezone.utc))
            self._accounts[account_id] = updated
            return dataclasses.replace(updated)

    def toggle_account_active(self, account_id: str) -> Account | None:
        with self._lock:
            account = self._accounts.get(account_id)
            if account is None:
                return None
            updated = dataclasses.replace(account, is_active=not account.is_active)
            self._accounts[account_id] = updated
            return dataclasses.replace(updated)

    def delete_account(self, account_id: str) -> bool:
        with self._lock:
            return self._accounts.pop(account_id, None) is not None

    def list_accounts(self, *, status=None, offset=0, limit=20):
        with self._lock:
            rows = [a for a in self._accounts.values() if status is None or a.status is status]
        rows.sort(key=lambda a: (a.created_at, a.account_id), reverse=True)
        return [dataclasses.replace(a) for a in rows[offset : offset + limit]], len(rows)

    def account_stats(self, *, registered_since: datetime) -> AccountStats:
        with self._lock:
            accounts = list(self._accounts.values())
        return AccountStats(
            total=len(accounts),
            pending=sum(1 for a in accounts if a.status is AccountStatus.pending),
            approved=sum(1 for a in accounts if a.status is AccountStatus.approved),
            rejected=sum(1 for a in accounts if a.status is AccountStatus.rejected),
            active=sum(1 for a in accounts if a.is_active),
            registered_last_7_days=sum(1 for a in accounts if a.created_at >= registered_since),
        )

    # admins

    def insert_admin(self, *, username: str, email: str, password_hash: str, role: AdminRole) -> AdminPrincipal:
        admin = AdminPrincipal(
            admin_id=str(uuid.uuid4()),
            username=username.lower(),
            email=email.lower(),
            password_hash=password_hash,
            role=role,
            is_active=True,
            created_at=datetime.now(timezone.utc),
        )
        self._admins[admin.admin_id] = admin
        return admin

    def get_admin(self, admin_id: str) -> AdminPrincipal | None:
        return self._admins.get(admin_id)

    def find_admin_by_username(self, username: str) -> AdminPrincipal | None:
        return next((a for a in self._admins.values() if a.username == username.lower()), None)

    def find_admin_by_email(self, email: str) -> AdminPrincipal | None:
        return next((a for a in self._admins.values() if a.email == email.lower()), None)

    def touch_admin_login(self, admin_id: str) -> None:
        self._admins[admin_id].last_login = datetime.now(timezone.utc)

    # settings

    def get_setting(self, key: str) -> Setting | None:
        if self.fail_settings:
            raise ConnectionError("settings store unreachable")
        return self._settings.get(key)

    def list_settings(self) -> list[Setting]:
        return sorted(self._settings.values(), key=lambda s: s.key)

    def upsert_setting(self, *, key: str, value: str, description, updated_by) -> Setting:
        previous = self._settings.get(key)
        setting = Setting(
            key=key,
            value=value,
            description=description if description is not None else (previous.description if previous else None),
            updated_at=datetime.now(timezone.utc),
            updated_by=updated_by,
        )
        self._settings[key] = setting
        return setting

    # audit

    def write_audit_event(self, *, account_id, event_type, actor, metadata=None) -> None:
        with self._lock:
            self._audit_seq += 1
            self.audit_log.append(
                AuditEvent(
                    audit_id=self._audit_seq,
                    account_id=account_id,
                    event_type=event_type,
                    actor=actor,
                    metadata=metadata or {},
                    created_at=datetime.now(timezone.utc),
                )
            )

    def list_audit_events(self, *, account_id=None, event_type=None, limit=50, cursor=None):
        results = list(self.audit_log)
        if account_id:
            results = [r for r in results if r.account_id == account_id]
        if event_type:
            results = [r for r in results if r.event_type == event_type]
        results.sort(key=lambda r: (r.created_at, r.audit_id), reverse=True)
        if cursor:
            results = [r for r in results if (r.created_at, r.audit_id) < cursor]
        slice_ = results[:limit]
        next_cursor = None
        if len(results) > limit:
            last = slice_[-1]
            next_cursor = (last.created_at, last.audit_id)
        return slice_, next_cursor


@pytest.fixture
def settings() -> Settings:
    return Settings(
        jwt_secret="test-secret",
        jwt_issuer="accountgate-test",
        http_port=4000,
        web_view_url="",
        demo_enabled=True,
        demo_phone="1231237777",
        demo_email="demo@philucky.com",
        demo_password="Qqqwww888",
    )


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def gateways(repository, settings):
    return build_gateways(repository, settings)


@pytest.fixture
def auth_gateway(gateways):
    return gateways[0]


@pytest.fixture
def admin_gateway(gateways):
    return gateways[1]


@pytest.fixture
def api_client(gateways):
    """Provide a FastAPI test client with isolated state."""
    app = FastAPI()
    app.include_router(routes.router)
    app.include_router(admin_routes.router)
    register_exception_handlers(app)
    app.state.auth_gateway, app.state.admin_gateway = gateways

    with TestClient(app) as client:
        yield client


@pytest.fixture
def make_admin(repository):
    def _make(username: str = "root", role: AdminRole = AdminRole.super_admin) -> AdminPrincipal:
        return repository.insert_admin(
            username=username,
            email=f"{username}@example.com",
            password_hash=hash_password(ADMIN_PASSWORD),
            role=role,
        )

    return _make


@pytest.fixture
def admin_headers(api_client, make_admin):
    """Return bearer headers for a freshly logged-in admin of the given role."""

    def _headers(role: AdminRole = AdminRole.super_admin, username: str | None = None) -> dict[str, str]:
        admin = make_admin(username or f"{role.value}-{uuid.uuid4().hex[:6]}", role)
        response = api_client.post(
            "/api/admin/login", json={"username": admin.username, "password": ADMIN_PASSWORD}
        )
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _headers
