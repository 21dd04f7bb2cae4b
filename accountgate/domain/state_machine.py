"""Account lifecycle: pending -> approved | rejected, with an orthogonal active switch."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Collection, Protocol

from .account import Account, AccountStatus
from .contracts import RegisterAccountInput
from ..errors import DuplicateIdentity, Forbidden, InvalidAmount, NotFound
from ..security.tokens import Capability

logger = logging.getLogger(__name__)

_CENTS = Decimal("0.01")
_BALANCE_LIMIT = Decimal("1000000000000")  # NUMERIC(14, 2)


class AccountStore(Protocol):
    def insert_account(self, payload: RegisterAccountInput) -> Account: ...

    def get_account(self, account_id: str) -> Account | None: ...

    def find_account_by_phone(self, phone: str) -> Account | None: ...

    def find_account_by_email(self, email: str) -> Account | None: ...

    def update_account(self, account_id: str, **fields: Any) -> Account | None: ...

    def toggle_account_active(self, account_id: str) -> Account | None: ...

    def delete_account(self, account_id: str) -> bool: ...

    def write_audit_event(
        self,
        *,
        account_id: str | None,
        event_type: str,
        actor: str | None,
        metadata: dict[str, Any] | None = None,
    ) -> None: ...


def parse_amount(value: Any) -> Decimal:
    """Coerce a client-supplied balance into a two-decimal ``Decimal``."""
    if value is None or isinstance(value, bool):
        raise InvalidAmount()
    try:
        amount = Decimal(str(value).strip())
        if not amount.is_finite():
            raise InvalidAmount("Balance must be a finite number")
        amount = amount.quantize(_CENTS)
    except (InvalidOperation, ValueError) as exc:
        raise InvalidAmount("Balance must be a number") from exc
    if abs(amount) >= _BALANCE_LIMIT:
        raise InvalidAmount("Balance is out of range")
    return amount


def _jsonable(value: Any) -> Any:
    if isinstance(value, AccountStatus):
        return value.value
    if isinstance(value, (Decimal, datetime)):
        return str(value)
    return value


class AccountStateMachine:
    """Owns every transition of an account record.

    Admins have full authority: no transition is refused because of the
    current status, so approve/reject may be replayed in any order. Each
    transition is a single store update and leaves an audit event behind.
    """

    def __init__(self, store: AccountStore) -> None:
        self._store = store

    def register(self, payload: RegisterAccountInput) -> Account:
        if self._store.find_account_by_phone(payload.phone) is not None:
            raise DuplicateIdentity("Phone number already registered")
        if payload.email and self._store.find_account_by_email(payload.email) is not None:
            raise DuplicateIdentity("Email already registered")

        account = self._store.insert_account(payload)
        self._store.write_audit_event(
            account_id=account.account_id,
            event_type="account.registered",
            actor=account.account_id,
            metadata={"phone": account.phone},
        )
        logger.info("account %s registered pending approval", account.account_id)
        return account

    def approve(
        self, account_id: str, initial_balance: Any = None, *, actor: str | None = None
    ) -> Account:
        fields: dict[str, Any] = {
            "status": AccountStatus.approved,
            "is_active": True,
            "rejection_reason": None,
        }
        if initial_balance is not None:
            fields["balance"] = parse_amount(initial_balance)
        return self._apply(account_id, "account.approved", actor, **fields)

    def reject(
        self, account_id: str, reason: str | None = None, *, actor: str | None = None
    ) -> Account:
        return self._apply(
            account_id,
            "account.rejected",
            actor,
            status=AccountStatus.rejected,
            is_active=False,
            rejection_reason=(reason or "").strip() or None,
        )

    def set_active(self, account_id: str, active: bool, *, actor: str | None = None) -> Account:
        return self._apply(account_id, "account.active_set", actor, is_active=bool(active))

    def toggle_active(self, account_id: str, *, actor: str | None = None) -> Account:
        account = self._store.toggle_account_active(account_id)
        if account is None:
            raise NotFound("User not found")
        self._audit(account, "account.active_toggled", actor, {"is_active": account.is_active})
        return account

    def set_balance(self, account_id: str, amount: Any, *, actor: str | None = None) -> Account:
        return self._apply(account_id, "account.balance_set", actor, balance=parse_amount(amount))

    def delete(
        self,
        account_id: str,
        *,
        actor: str | None,
        capabilities: Collection[Capability],
    ) -> None:
        if Capability.super_admin not in capabilities:
            raise Forbidden("Super admin role required")
        if not self._store.delete_account(account_id):
            raise NotFound("User not found")
        self._store.write_audit_event(
            account_id=account_id,
            event_type="account.deleted",
            actor=actor,
            metadata={},
        )
        logger.info("account %s deleted by %s", account_id, actor)

    def record_login(self, account_id: str) -> Account:
        return self._apply(
            account_id, "account.login", account_id, last_login=datetime.now(timezone.utc)
        )

    def _apply(self, account_id: str, event_type: str, actor: str | None, **fields: Any) -> Account:
        # The update and the audit insert commit separately; a failed audit write
        # leaves the mutation in place.
        account = self._store.update_account(account_id, **fields)
        if account is None:
            raise NotFound("User not found")
        metadata = {name: _jsonable(value) for name, value in fields.items()}
        self._audit(account, event_type, actor, metadata)
        return account

    def _audit(self, account: Account, event_type: str, actor: str | None, metadata: dict[str, Any]) -> None:
        self._store.write_audit_event(
            account_id=account.account_id,
            event_type=event_type,
            actor=actor,
            metadata=metadata,
        )
        logger.info("%s account=%s actor=%s", event_type, account.account_id, actor)
