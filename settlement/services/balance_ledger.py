"""
Leave balance ledger

- annual / sick / emergency are buckets that can run out; a deduction larger
  than the bucket fails and leaves the balance untouched.
- unpaid leave never fails; it increments the unpaid-taken counter.
- restore_balance is the exact inverse of deduct_balance.

Nothing here commits: deductions run inside the approval transaction that
triggered them. Double application is prevented by the effect flags on the
approval request.
"""
import logging
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy.orm import Session

from settlement.core.config import settings
from settlement.core.exceptions import InsufficientBalance, SettlementError
from settlement.models.leave import (
    LeaveBalance,
    LeaveTransaction,
    LeaveTransactionAction,
    LeaveType,
)
from settlement.services.audit_service import log_audit
from settlement.services.hierarchy_service import get_employee
from settlement.utils.datetime_utils import now_utc
from settlement.utils.money import to_decimal

logger = logging.getLogger(__name__)

BUCKET_FIELDS = {
    LeaveType.ANNUAL: "annual_balance",
    LeaveType.SICK: "sick_balance",
    LeaveType.EMERGENCY: "emergency_balance",
}


def get_or_create_balance(db: Session, employee_id: int) -> LeaveBalance:
    """Balance row for the employee, seeded from configured opening buckets."""
    balance = db.query(LeaveBalance).filter(LeaveBalance.employee_id == employee_id).first()
    if balance:
        return balance
    get_employee(db, employee_id)
    balance = LeaveBalance(
        employee_id=employee_id,
        annual_balance=to_decimal(settings.DEFAULT_ANNUAL_LEAVE_DAYS),
        sick_balance=to_decimal(settings.DEFAULT_SICK_LEAVE_DAYS),
        emergency_balance=to_decimal(settings.DEFAULT_EMERGENCY_LEAVE_DAYS),
        unpaid_taken=Decimal("0"),
        updated_at=now_utc(),
    )
    db.add(balance)
    db.flush()
    return balance


def _log_transaction(
    db: Session,
    employee_id: int,
    leave_type: LeaveType,
    action: LeaveTransactionAction,
    delta_days: Decimal,
    request_id: Optional[int],
    actor_id: Optional[int],
    remarks: Optional[str] = None,
) -> None:
    db.add(
        LeaveTransaction(
            employee_id=employee_id,
            request_id=request_id,
            leave_type=leave_type.value,
            action=action.value,
            delta_days=delta_days,
            remarks=remarks,
            action_by_employee_id=actor_id,
            action_at=now_utc(),
        )
    )


def deduct_balance(
    db: Session,
    employee_id: int,
    leave_type,
    days,
    request_id: Optional[int] = None,
    actor_id: Optional[int] = None,
) -> LeaveBalance:
    """
    Deduct days from the bucket for leave_type.

    Raises:
        InsufficientBalance: bucket below days (balance unchanged)
    """
    leave_type = LeaveType(leave_type)
    days = to_decimal(days)
    if days <= 0:
        raise SettlementError("Leave days must be positive", entity_type="leave_balance", entity_id=employee_id)

    balance = get_or_create_balance(db, employee_id)
    if leave_type == LeaveType.UNPAID:
        balance.unpaid_taken = to_decimal(balance.unpaid_taken) + days
        delta = days
    else:
        field = BUCKET_FIELDS[leave_type]
        current = to_decimal(getattr(balance, field))
        if current < days:
            raise InsufficientBalance(
                f"Insufficient {leave_type.value} balance: available {current}, requested {days}",
                entity_type="leave_balance",
                entity_id=employee_id,
                current_state=str(current),
            )
        setattr(balance, field, current - days)
        delta = -days

    balance.updated_at = now_utc()
    _log_transaction(db, employee_id, leave_type, LeaveTransactionAction.DEDUCT, delta, request_id, actor_id)
    db.flush()
    logger.info(
        "Leave deducted: employee_id=%s type=%s days=%s request_id=%s",
        employee_id, leave_type.value, days, request_id,
    )
    return balance


def restore_balance(
    db: Session,
    employee_id: int,
    leave_type,
    days,
    request_id: Optional[int] = None,
    actor_id: Optional[int] = None,
) -> LeaveBalance:
    """Exact inverse of deduct_balance."""
    leave_type = LeaveType(leave_type)
    days = to_decimal(days)
    if days <= 0:
        raise SettlementError("Leave days must be positive", entity_type="leave_balance", entity_id=employee_id)

    balance = get_or_create_balance(db, employee_id)
    if leave_type == LeaveType.UNPAID:
        taken = to_decimal(balance.unpaid_taken)
        if taken < days:
            raise SettlementError(
                f"Cannot restore {days} unpaid days; only {taken} recorded",
                entity_type="leave_balance",
                entity_id=employee_id,
                current_state=str(taken),
            )
        balance.unpaid_taken = taken - days
        delta = -days
    else:
        field = BUCKET_FIELDS[leave_type]
        setattr(balance, field, to_decimal(getattr(balance, field)) + days)
        delta = days

    balance.updated_at = now_utc()
    _log_transaction(db, employee_id, leave_type, LeaveTransactionAction.RESTORE, delta, request_id, actor_id)
    db.flush()
    logger.info(
        "Leave restored: employee_id=%s type=%s days=%s request_id=%s",
        employee_id, leave_type.value, days, request_id,
    )
    return balance


def set_balance(
    db: Session,
    employee_id: int,
    actor_id: int,
    annual=None,
    sick=None,
    emergency=None,
    remarks: Optional[str] = None,
) -> LeaveBalance:
    """Administrative adjustment of bucket values (audited)."""
    balance = get_or_create_balance(db, employee_id)
    before = balance_snapshot(balance)
    for field, value in (("annual_balance", annual), ("sick_balance", sick), ("emergency_balance", emergency)):
        if value is None:
            continue
        value = to_decimal(value)
        if value < 0:
            raise SettlementError(f"{field} cannot be negative", entity_type="leave_balance", entity_id=employee_id)
        setattr(balance, field, value)
    balance.updated_at = now_utc()
    db.flush()
    log_audit(
        db,
        actor_id=actor_id,
        action="ADJUST",
        entity_type="leave_balance",
        entity_id=employee_id,
        before=before,
        after=balance_snapshot(balance),
        reason=remarks,
    )
    return balance


def balance_snapshot(balance: LeaveBalance) -> Dict[str, Decimal]:
    return {
        "annual": to_decimal(balance.annual_balance),
        "sick": to_decimal(balance.sick_balance),
        "emergency": to_decimal(balance.emergency_balance),
        "unpaid_taken": to_decimal(balance.unpaid_taken),
    }


def list_transactions(db: Session, employee_id: int):
    return (
        db.query(LeaveTransaction)
        .filter(LeaveTransaction.employee_id == employee_id)
        .order_by(LeaveTransaction.id)
        .all()
    )
