from __future__ import annotations

import threading
from decimal import Decimal

import pytest

from accountgate.domain.account import AccountStatus
from accountgate.domain.contracts import RegisterAccountInput
from accountgate.domain.state_machine import AccountStateMachine, parse_amount
from accountgate.errors import DuplicateIdentity, Forbidden, InvalidAmount, NotFound
from accountgate.security.tokens import Capability


@pytest.fixture
def machine(repository) -> AccountStateMachine:
    return AccountStateMachine(repository)


def _register(machine: AccountStateMachine, phone: str, email: str | None = None):
    return machine.register(RegisterAccountInput(phone=phone, password_hash="x", email=email))


def test_register_creates_pending_active_account(machine, repository):
    account = _register(machine, "5550001")

    assert account.status is AccountStatus.pending
    assert account.is_active is True
    assert account.balance == Decimal("0")
    assert account.username == "5550001"
    assert repository.audit_log[-1].event_type == "account.registered"


def test_register_distinct_phones_all_succeed(machine):
    accounts = [_register(machine, f"555{idx:04d}") for idx in range(5)]
    assert {a.status for a in accounts} == {AccountStatus.pending}
    assert len({a.account_id for a in accounts}) == 5


def test_register_rejects_duplicate_phone(machine):
    _register(machine, "5550002")
    with pytest.raises(DuplicateIdentity, match="Phone"):
        _register(machine, "5550002")


def test_register_rejects_duplicate_email(machine):
    _register(machine, "5550003", email="someone@example.com")
    with pytest.raises(DuplicateIdentity, match="Email"):
        _register(machine, "5550004", email="someone@example.com")


def test_approve_reject_approve_converges(machine):
    account = _register(machine, "5550005")

    machine.approve(account.account_id)
    rejected = machine.reject(account.account_id, "incomplete documents")
    assert rejected.status is AccountStatus.rejected
    assert rejected.is_active is False
    assert rejected.rejection_reason == "incomplete documents"

    approved = machine.approve(account.account_id)
    assert approved.status is AccountStatus.approved
    assert approved.is_active is True
    assert approved.rejection_reason is None


def test_approve_sets_initial_balance(machine):
    account = _register(machine, "5550006")
    approved = machine.approve(account.account_id, "250.5", actor="admin-1")
    assert approved.balance == Decimal("250.50")


def test_toggle_and_set_active_leave_status_alone(machine):
    account = _register(machine, "5550007")
    machine.approve(account.account_id)

    toggled = machine.toggle_active(account.account_id)
    assert toggled.is_active is False
    assert toggled.status is AccountStatus.approved

    restored = machine.set_active(account.account_id, True)
    assert restored.is_active is True
    assert restored.status is AccountStatus.approved


@pytest.mark.parametrize(
    "operation",
    [
        lambda m: m.approve("missing"),
        lambda m: m.reject("missing"),
        lambda m: m.toggle_active("missing"),
        lambda m: m.set_active("missing", False),
        lambda m: m.set_balance("missing", 10),
        lambda m: m.record_login("missing"),
        lambda m: m.delete("missing", actor="root", capabilities={Capability.admin, Capability.super_admin}),
    ],
)
def test_unknown_account_raises_not_found(machine, operation):
    with pytest.raises(NotFound):
        operation(machine)


@pytest.mark.parametrize("amount", [None, "", "abc", True, "nan", "Infinity", [], "1e20"])
def test_set_balance_rejects_invalid_amounts(machine, amount):
    account = _register(machine, "5550008")
    with pytest.raises(InvalidAmount):
        machine.set_balance(account.account_id, amount)


def test_set_balance_overwrites_unconditionally(machine):
    account = _register(machine, "5550009")
    machine.set_balance(account.account_id, 100)
    updated = machine.set_balance(account.account_id, -5.25)
    assert updated.balance == Decimal("-5.25")


def test_parse_amount_quantizes_to_cents():
    assert parse_amount(10) == Decimal("10.00")
    assert parse_amount("3.14159") == Decimal("3.14")


def test_delete_requires_super_admin(machine, repository):
    account = _register(machine, "5550010")

    with pytest.raises(Forbidden):
        machine.delete(account.account_id, actor="ops", capabilities={Capability.admin})
    assert repository.get_account(account.account_id) is not None

    machine.delete(
        account.account_id, actor="root", capabilities={Capability.admin, Capability.super_admin}
    )
    assert repository.get_account(account.account_id) is None
    assert repository.audit_log[-1].event_type == "account.deleted"


def test_record_login_sets_timestamp(machine, repository):
    account = _register(machine, "5550011")
    assert account.last_login is None
    assert machine.record_login(account.account_id).last_login is not None
    assert repository.audit_log[-1].event_type == "account.login"


def test_concurrent_balance_writes_never_corrupt(machine, repository):
    account = _register(machine, "5550012")
    barrier = threading.Barrier(2)

    def write(amount: int) -> None:
        barrier.wait()
        for _ in range(50):
            machine.set_balance(account.account_id, amount)

    threads = [threading.Thread(target=write, args=(value,)) for value in (10, 20)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert repository.get_account(account.account_id).balance in (Decimal("10.00"), Decimal("20.00"))
