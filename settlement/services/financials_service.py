"""
Employee allowances and deductions.

Month applicability:
- a one-time entry applies only in its start_month;
- a recurring entry applies to every month from start_month through
  end_month (open-ended when end_month is null);
- stopped entries never apply.

At most one active one-time entry of the same name may exist per employee
per month.
"""
import logging
from decimal import Decimal
from typing import Iterable, List, Optional, Type, Union

from sqlalchemy.orm import Session

from settlement.core.exceptions import DuplicateEntry, NotFound, SettlementError
from settlement.models.financials import (
    DeductionCategory,
    EmployeeAllowance,
    EmployeeDeduction,
    EntryStatus,
)
from settlement.services.audit_service import log_audit
from settlement.services.hierarchy_service import get_employee
from settlement.utils.datetime_utils import month_key_of, now_utc, validate_month_key
from settlement.utils.enums import enum_to_str
from settlement.utils.money import quantize_money, to_decimal

logger = logging.getLogger(__name__)

FinancialEntry = Union[EmployeeAllowance, EmployeeDeduction]

_ENTITY_TYPES = {
    EmployeeAllowance: "employee_allowance",
    EmployeeDeduction: "employee_deduction",
}


def applies_to_month(entry: FinancialEntry, month_key: str) -> bool:
    if enum_to_str(entry.status) != EntryStatus.ACTIVE.value:
        return False
    if entry.is_recurring:
        if entry.start_month > month_key:
            return False
        if entry.end_month and entry.end_month < month_key:
            return False
        return True
    return entry.start_month == month_key


def summarize(entries: Iterable[FinancialEntry]) -> Decimal:
    return quantize_money(sum((to_decimal(e.amount) for e in entries), Decimal("0")))


def _entries_for_month(db: Session, model: Type, employee_id: int, month_key: str) -> List[FinancialEntry]:
    rows = (
        db.query(model)
        .filter(
            model.employee_id == employee_id,
            model.status == EntryStatus.ACTIVE.value,
            model.start_month <= month_key,
        )
        .order_by(model.id)
        .all()
    )
    return [row for row in rows if applies_to_month(row, month_key)]


def allowances_for_month(db: Session, employee_id: int, month_key: str) -> List[EmployeeAllowance]:
    return _entries_for_month(db, EmployeeAllowance, employee_id, month_key)


def deductions_for_month(db: Session, employee_id: int, month_key: str) -> List[EmployeeDeduction]:
    return _entries_for_month(db, EmployeeDeduction, employee_id, month_key)


def _check_duplicate(
    db: Session, model: Type, employee_id: int, name: str, month_key: str, category: Optional[str] = None
) -> None:
    query = db.query(model).filter(
        model.employee_id == employee_id,
        model.name == name,
        model.is_recurring.is_(False),
        model.status == EntryStatus.ACTIVE.value,
        model.start_month == month_key,
    )
    if category is not None:
        query = query.filter(model.category == category)
    duplicate = query.first()
    if duplicate:
        raise DuplicateEntry(
            f"An active one-time '{name}' entry already exists for employee {employee_id} in {month_key}",
            entity_type=_ENTITY_TYPES[model],
            entity_id=duplicate.id,
            current_state=enum_to_str(duplicate.status),
        )


def _validate_common(amount, start_month: str, end_month: Optional[str]) -> None:
    try:
        validate_month_key(start_month)
        if end_month is not None:
            validate_month_key(end_month)
    except ValueError as exc:
        raise SettlementError(str(exc)) from exc
    if end_month is not None:
        if end_month < start_month:
            raise SettlementError("end_month must not be before start_month")
    if to_decimal(amount) <= 0:
        raise SettlementError("Amount must be positive")


def _entry_snapshot(entry: FinancialEntry) -> dict:
    return {
        "employee_id": entry.employee_id,
        "name": entry.name,
        "amount": to_decimal(entry.amount),
        "is_recurring": entry.is_recurring,
        "start_month": entry.start_month,
        "end_month": entry.end_month,
        "status": enum_to_str(entry.status),
    }


def create_allowance(
    db: Session,
    employee_id: int,
    name: str,
    amount,
    is_recurring: bool,
    start_month: str,
    end_month: Optional[str] = None,
    actor_id: Optional[int] = None,
    source_request_id: Optional[int] = None,
) -> EmployeeAllowance:
    """
    Raises:
        DuplicateEntry: same one-time allowance already active for the month
    """
    _validate_common(amount, start_month, end_month)
    get_employee(db, employee_id)
    if not is_recurring:
        _check_duplicate(db, EmployeeAllowance, employee_id, name, start_month)

    allowance = EmployeeAllowance(
        employee_id=employee_id,
        name=name,
        amount=quantize_money(amount),
        is_recurring=is_recurring,
        start_month=start_month,
        end_month=end_month if is_recurring else None,
        status=EntryStatus.ACTIVE.value,
        source_request_id=source_request_id,
        created_by_id=actor_id,
        created_at=now_utc(),
    )
    db.add(allowance)
    db.flush()
    log_audit(db, actor_id=actor_id, action="CREATE", entity_type="employee_allowance",
              entity_id=allowance.id, after=_entry_snapshot(allowance),
              meta={"source_request_id": source_request_id})
    return allowance


def create_deduction(
    db: Session,
    employee_id: int,
    name: str,
    amount,
    is_recurring: bool,
    start_month: str,
    end_month: Optional[str] = None,
    category=DeductionCategory.CUSTOM,
    reason: Optional[str] = None,
    actor_id: Optional[int] = None,
    source_request_id: Optional[int] = None,
) -> EmployeeDeduction:
    """
    Raises:
        DuplicateEntry: same one-time deduction already active for the month
    """
    _validate_common(amount, start_month, end_month)
    get_employee(db, employee_id)
    if not is_recurring:
        _check_duplicate(db, EmployeeDeduction, employee_id, name, start_month, enum_to_str(category))

    deduction = EmployeeDeduction(
        employee_id=employee_id,
        name=name,
        category=enum_to_str(category),
        amount=quantize_money(amount),
        is_recurring=is_recurring,
        start_month=start_month,
        end_month=end_month if is_recurring else None,
        status=EntryStatus.ACTIVE.value,
        reason=reason,
        source_request_id=source_request_id,
        created_by_id=actor_id,
        created_at=now_utc(),
    )
    db.add(deduction)
    db.flush()
    log_audit(db, actor_id=actor_id, action="CREATE", entity_type="employee_deduction",
              entity_id=deduction.id, after=_entry_snapshot(deduction), reason=reason,
              meta={"category": enum_to_str(category), "source_request_id": source_request_id})
    return deduction


def _stop(db: Session, model: Type, entry_id: int, actor_id: Optional[int], month_key: Optional[str]) -> FinancialEntry:
    entry = db.query(model).filter(model.id == entry_id).first()
    if not entry:
        raise NotFound(f"{_ENTITY_TYPES[model]} {entry_id} not found", entity_type=_ENTITY_TYPES[model], entity_id=entry_id)
    if enum_to_str(entry.status) == EntryStatus.STOPPED.value:
        return entry

    before = _entry_snapshot(entry)
    entry.status = EntryStatus.STOPPED.value
    entry.end_month = month_key or month_key_of(now_utc().date())
    db.flush()
    log_audit(db, actor_id=actor_id, action="STOP", entity_type=_ENTITY_TYPES[model],
              entity_id=entry.id, before=before, after=_entry_snapshot(entry))
    logger.info("%s stopped: id=%s employee_id=%s", _ENTITY_TYPES[model], entry.id, entry.employee_id)
    return entry


def stop_allowance(db: Session, allowance_id: int, actor_id: Optional[int] = None,
                   month_key: Optional[str] = None) -> EmployeeAllowance:
    return _stop(db, EmployeeAllowance, allowance_id, actor_id, month_key)


def stop_deduction(db: Session, deduction_id: int, actor_id: Optional[int] = None,
                   month_key: Optional[str] = None) -> EmployeeDeduction:
    return _stop(db, EmployeeDeduction, deduction_id, actor_id, month_key)


def stop_entries_for_request(db: Session, model: Type, request_id: int, actor_id: Optional[int]) -> int:
    """Stop every active entry created by an approval request."""
    rows = db.query(model).filter(
        model.source_request_id == request_id,
        model.status == EntryStatus.ACTIVE.value,
    ).all()
    for row in rows:
        _stop(db, model, row.id, actor_id, None)
    return len(rows)


def list_allowances(db: Session, employee_id: Optional[int] = None, status: Optional[str] = None) -> List[EmployeeAllowance]:
    query = db.query(EmployeeAllowance)
    if employee_id is not None:
        query = query.filter(EmployeeAllowance.employee_id == employee_id)
    if status:
        query = query.filter(EmployeeAllowance.status == enum_to_str(status))
    return query.order_by(EmployeeAllowance.id.desc()).all()


def list_deductions(db: Session, employee_id: Optional[int] = None, status: Optional[str] = None) -> List[EmployeeDeduction]:
    query = db.query(EmployeeDeduction)
    if employee_id is not None:
        query = query.filter(EmployeeDeduction.employee_id == employee_id)
    if status:
        query = query.filter(EmployeeDeduction.status == enum_to_str(status))
    return query.order_by(EmployeeDeduction.id.desc()).all()
