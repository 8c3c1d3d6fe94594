"""
Tests for the leave balance ledger
"""
from decimal import Decimal

import pytest

from settlement.core.exceptions import InsufficientBalance, SettlementError
from settlement.models.audit_log import AuditLog
from settlement.services.balance_ledger import (
    deduct_balance,
    get_or_create_balance,
    list_transactions,
    restore_balance,
    set_balance,
)


def test_new_balance_uses_opening_buckets(db, employee):
    balance = get_or_create_balance(db, employee.id)
    assert balance.annual_balance == Decimal("21")
    assert balance.sick_balance == Decimal("15")
    assert balance.emergency_balance == Decimal("7")
    assert balance.unpaid_taken == Decimal("0")


def test_deduction_larger_than_bucket_is_refused(db, admin, employee):
    set_balance(db, employee.id, admin.id, annual=5)
    db.commit()

    balance = deduct_balance(db, employee.id, "annual", 3)
    db.commit()
    assert balance.annual_balance == Decimal("2")

    with pytest.raises(InsufficientBalance) as exc_info:
        deduct_balance(db, employee.id, "annual", 6)
    assert exc_info.value.current_state == "2"
    db.rollback()

    assert get_or_create_balance(db, employee.id).annual_balance == Decimal("2")


def test_unpaid_leave_never_runs_out(db, employee):
    deduct_balance(db, employee.id, "unpaid", 30)
    balance = deduct_balance(db, employee.id, "unpaid", Decimal("2.5"))
    assert balance.unpaid_taken == Decimal("32.5")
    assert balance.annual_balance == Decimal("21")


def test_restore_is_the_inverse_of_deduct(db, employee):
    deduct_balance(db, employee.id, "sick", 4, request_id=None)
    deduct_balance(db, employee.id, "unpaid", 2)
    restore_balance(db, employee.id, "sick", 4)
    balance = restore_balance(db, employee.id, "unpaid", 2)

    assert balance.sick_balance == Decimal("15")
    assert balance.unpaid_taken == Decimal("0")
    deltas = [(t.leave_type, t.action, t.delta_days) for t in list_transactions(db, employee.id)]
    assert deltas == [
        ("sick", "DEDUCT", Decimal("-4")),
        ("unpaid", "DEDUCT", Decimal("2")),
        ("sick", "RESTORE", Decimal("4")),
        ("unpaid", "RESTORE", Decimal("-2")),
    ]


def test_non_positive_days_are_rejected(db, employee):
    with pytest.raises(SettlementError):
        deduct_balance(db, employee.id, "annual", 0)
    with pytest.raises(SettlementError):
        restore_balance(db, employee.id, "annual", -1)


def test_set_balance_is_audited(db, admin, employee):
    set_balance(db, employee.id, admin.id, sick=10, remarks="Carry-over correction")
    db.commit()

    entry = db.query(AuditLog).filter(AuditLog.action == "ADJUST").one()
    assert entry.entity_type == "leave_balance"
    assert entry.actor_id == admin.id
    assert entry.reason == "Carry-over correction"
    assert Decimal(entry.before_state["sick"]) == Decimal("15")
    assert Decimal(entry.after_state["sick"]) == Decimal("10")


def test_set_balance_rejects_negative_values(db, admin, employee):
    with pytest.raises(SettlementError):
        set_balance(db, employee.id, admin.id, annual=-1)
