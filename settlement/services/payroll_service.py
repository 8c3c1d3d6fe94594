"""
Payroll aggregation and month lifecycle.

    estimated_net = base pay
                  + allowances effective in the month
                  - custom deductions effective in the month
                  - loan installments due in the month

Records are only (re)generated while the month is draft; regeneration
replaces the month's records wholesale. Loan installments are consumed when
the month is finalized, never at generation time, so a draft can be
regenerated any number of times without spending an installment.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from settlement.core.exceptions import InvalidTransition, MissingReason, NotAuthorized, NotFound, SettlementError
from settlement.db.concurrency import run_with_retry
from settlement.models.approval import ApprovalRequest, RequestStatus, RequestType
from settlement.models.employee import Employee, EmploymentType
from settlement.models.leave import LeaveType
from settlement.models.payroll import PayrollMonth, PayrollMonthStatus, PayrollRecord
from settlement.schemas.payloads import parse_payload
from settlement.services import financials_service, loan_ledger
from settlement.services.audit_service import log_audit
from settlement.services.hierarchy_service import get_employee
from settlement.services.payroll_state_machine import PayrollMonthStateMachine
from settlement.utils.datetime_utils import month_bounds, now_utc, validate_month_key
from settlement.utils.enums import enum_to_str
from settlement.utils.money import quantize_money, to_decimal

logger = logging.getLogger(__name__)

ENTITY = "payroll_month"
ZERO = Decimal("0")


def _validated_key(month_key: str) -> str:
    try:
        return validate_month_key(month_key)
    except ValueError as exc:
        raise SettlementError(str(exc), entity_type=ENTITY, entity_id=month_key) from exc


def get_month(db: Session, month_key: str) -> PayrollMonth:
    month = db.query(PayrollMonth).filter(PayrollMonth.month_key == _validated_key(month_key)).first()
    if not month:
        raise NotFound(f"Payroll month {month_key} not found", entity_type=ENTITY, entity_id=month_key)
    return month


def get_or_create_month(db: Session, month_key: str) -> PayrollMonth:
    month = db.query(PayrollMonth).filter(PayrollMonth.month_key == _validated_key(month_key)).first()
    if month:
        return month
    month = PayrollMonth(
        month_key=month_key,
        status=PayrollMonthStatus.DRAFT.value,
        reopen_count=0,
        created_at=now_utc(),
    )
    db.add(month)
    db.flush()
    return month


def month_snapshot(month: PayrollMonth) -> Dict[str, Any]:
    return {
        "status": enum_to_str(month.status),
        "records": len(month.records),
        "reopen_count": month.reopen_count,
    }


def unpaid_leave_days(db: Session, employee_id: int, month_key: str) -> Decimal:
    """
    Approved unpaid leave days falling inside the month. A leave's declared
    days are spread evenly over its calendar span, so a leave crossing months
    is split in proportion to the dates on each side.
    """
    first_day, last_day = month_bounds(month_key)
    requests = db.query(ApprovalRequest).filter(
        ApprovalRequest.requester_id == employee_id,
        ApprovalRequest.request_type == RequestType.LEAVE.value,
        ApprovalRequest.final_status == RequestStatus.APPROVED.value,
    ).all()
    total = ZERO
    for request in requests:
        payload = parse_payload(request.payload_json)
        if LeaveType(payload.leave_type) != LeaveType.UNPAID:
            continue
        start = max(payload.start_date, first_day)
        end = min(payload.end_date, last_day)
        if start > end:
            continue
        span = (payload.end_date - payload.start_date).days + 1
        overlap = (end - start).days + 1
        total += to_decimal(payload.days) * overlap / span
    return quantize_money(total)


def compute_record(
    db: Session,
    employee: Employee,
    month_key: str,
    hours: Optional[Decimal] = None,
) -> Dict[str, Any]:
    """Payroll figures for one employee and month (nothing is written)."""
    employment_type = enum_to_str(employee.employment_type) or EmploymentType.MONTHLY.value
    total_hours = to_decimal(hours)
    if employment_type == EmploymentType.HOURLY.value:
        base = quantize_money(to_decimal(employee.hourly_rate) * total_hours)
    else:
        base = quantize_money(employee.base_salary)

    allowances = financials_service.allowances_for_month(db, employee.id, month_key)
    deductions = financials_service.deductions_for_month(db, employee.id, month_key)
    loans = [
        (loan, loan_ledger.installment_for_month(db, loan, month_key))
        for loan in loan_ledger.installments_due(db, employee.id, month_key)
    ]

    total_allowances = financials_service.summarize(allowances)
    custom_deductions = financials_service.summarize(deductions)
    loan_installments = quantize_money(sum((amount for _, amount in loans), ZERO))
    total_deductions = custom_deductions + loan_installments

    return {
        "employee_id": employee.id,
        "employment_type": employment_type,
        "base_salary": base,
        "total_allowances": total_allowances,
        "custom_deductions": custom_deductions,
        "loan_installments": loan_installments,
        "total_deductions": total_deductions,
        "total_hours": total_hours,
        "unpaid_leave_days": unpaid_leave_days(db, employee.id, month_key),
        "estimated_net": quantize_money(base + total_allowances - total_deductions),
        "breakdown": {
            "allowances": [{"id": a.id, "name": a.name, "amount": str(quantize_money(a.amount))} for a in allowances],
            "deductions": [
                {"id": d.id, "name": d.name, "category": d.category, "amount": str(quantize_money(d.amount))}
                for d in deductions
            ],
            "loans": [{"loan_id": loan.id, "amount": str(amount)} for loan, amount in loans],
        },
    }


def _generate_op(db: Session, month_key: str, actor_id: Optional[int], hours_by_employee: Mapping[int, Any]):
    month = get_or_create_month(db, month_key)
    PayrollMonthStateMachine.ensure_editable(month.status, month_key)

    before = month_snapshot(month)
    # Remove the old draft before inserting; (month, employee) is unique
    month.records.clear()
    db.flush()

    employees = db.query(Employee).filter(Employee.active.is_(True)).order_by(Employee.id).all()
    for employee in employees:
        figures = compute_record(db, employee, month_key, hours_by_employee.get(employee.id))
        month.records.append(
            PayrollRecord(
                employee_id=figures["employee_id"],
                employment_type=figures["employment_type"],
                base_salary=figures["base_salary"],
                total_allowances=figures["total_allowances"],
                custom_deductions=figures["custom_deductions"],
                loan_installments=figures["loan_installments"],
                total_deductions=figures["total_deductions"],
                total_hours=figures["total_hours"],
                unpaid_leave_days=figures["unpaid_leave_days"],
                estimated_net=figures["estimated_net"],
                breakdown_json=figures["breakdown"],
            )
        )
    month.generated_at = now_utc()
    month.generated_by_id = actor_id
    db.flush()

    log_audit(
        db,
        actor_id=actor_id,
        action="GENERATE",
        entity_type=ENTITY,
        entity_id=month.id,
        before=before,
        after=month_snapshot(month),
        meta={"month_key": month_key, "employees": len(employees)},
    )
    logger.info("Payroll generated: month=%s employees=%s", month_key, len(employees))
    return month


def generate_payroll(
    db: Session,
    month_key: str,
    actor_id: Optional[int] = None,
    hours_by_employee: Optional[Mapping[int, Any]] = None,
) -> PayrollMonth:
    """
    Compute (or recompute) the draft records of a month for every active employee.

    Args:
        hours_by_employee: worked hours per employee id from attendance; used
            for hourly employees' base pay and recorded on every record

    Raises:
        MonthNotEditable: month is finalized or locked
    """
    _validated_key(month_key)
    month = run_with_retry(db, ENTITY, month_key, _generate_op, month_key, actor_id, hours_by_employee or {})
    db.refresh(month)
    return month


STALE_FIELDS = (
    "base_salary",
    "total_allowances",
    "custom_deductions",
    "loan_installments",
    "total_deductions",
    "unpaid_leave_days",
    "estimated_net",
)


def stale_employees(db: Session, month: PayrollMonth) -> List[int]:
    """
    Employees whose draft record no longer matches the ledgers, plus employees
    who joined or left the active roster since the month was generated.
    """
    records = {record.employee_id: record for record in month.records}
    active_ids = {row.id for row in db.query(Employee.id).filter(Employee.active.is_(True))}
    stale = set(active_ids.symmetric_difference(records))
    for employee_id in active_ids & set(records):
        record = records[employee_id]
        figures = compute_record(db, get_employee(db, employee_id), month.month_key, record.total_hours)
        if (
            figures["employment_type"] != record.employment_type
            or figures["breakdown"] != (record.breakdown_json or {})
            or any(to_decimal(figures[field]) != to_decimal(getattr(record, field)) for field in STALE_FIELDS)
        ):
            stale.add(employee_id)
    return sorted(stale)


def _finalize_op(db: Session, month_key: str, actor_id: Optional[int]):
    month = get_month(db, month_key)
    PayrollMonthStateMachine.validate_transition(month.status, PayrollMonthStatus.FINALIZED, month_key)
    if month.generated_at is None:
        raise InvalidTransition(
            enum_to_str(month.status), PayrollMonthStatus.FINALIZED.value,
            entity_type=ENTITY, entity_id=month_key, reason="payroll has not been generated",
        )
    stale = stale_employees(db, month)
    if stale:
        raise InvalidTransition(
            enum_to_str(month.status), PayrollMonthStatus.FINALIZED.value,
            entity_type=ENTITY, entity_id=month_key,
            reason=f"draft is stale for employees {stale}; regenerate the month",
        )

    before = month_snapshot(month)
    consumed = 0
    for record in month.records:
        for item in (record.breakdown_json or {}).get("loans", []):
            loan = loan_ledger.get_loan(db, item["loan_id"])
            if loan_ledger.consume_installment(db, loan, month_key, actor_id):
                consumed += 1

    month.status = PayrollMonthStatus.FINALIZED.value
    month.finalized_at = now_utc()
    month.finalized_by_id = actor_id
    db.flush()
    log_audit(
        db,
        actor_id=actor_id,
        action="FINALIZE",
        entity_type=ENTITY,
        entity_id=month.id,
        before=before,
        after=month_snapshot(month),
        meta={"month_key": month_key, "installments_consumed": consumed},
    )
    logger.info("Payroll finalized: month=%s installments_consumed=%s", month_key, consumed)
    return month


def finalize_payroll(db: Session, month_key: str, actor_id: Optional[int] = None) -> PayrollMonth:
    """
    draft -> finalized. Freezes the records and consumes each loan
    installment they include (at most once per loan and month).

    Raises:
        InvalidTransition: month not draft, never generated, or its records
            no longer match the ledgers (regenerate first)
    """
    month = run_with_retry(db, ENTITY, month_key, _finalize_op, month_key, actor_id)
    db.refresh(month)
    return month


def _lock_op(db: Session, month_key: str, actor_id: Optional[int]):
    month = get_month(db, month_key)
    PayrollMonthStateMachine.validate_transition(month.status, PayrollMonthStatus.LOCKED, month_key)
    before = month_snapshot(month)
    month.status = PayrollMonthStatus.LOCKED.value
    month.locked_at = now_utc()
    month.locked_by_id = actor_id
    db.flush()
    log_audit(db, actor_id=actor_id, action="LOCK", entity_type=ENTITY, entity_id=month.id,
              before=before, after=month_snapshot(month), meta={"month_key": month_key})
    logger.info("Payroll locked: month=%s", month_key)
    return month


def lock_payroll(db: Session, month_key: str, actor_id: Optional[int] = None) -> PayrollMonth:
    """finalized -> locked. No path other than reopen_payroll writes to a locked month."""
    month = run_with_retry(db, ENTITY, month_key, _lock_op, month_key, actor_id)
    db.refresh(month)
    return month


def _reopen_op(db: Session, month_key: str, actor_id: int, reason: str):
    actor = get_employee(db, actor_id)
    if not actor.is_admin:
        raise NotAuthorized(f"Employee {actor_id} cannot reopen payroll", entity_type=ENTITY, entity_id=month_key)
    month = get_month(db, month_key)
    PayrollMonthStateMachine.validate_transition(month.status, PayrollMonthStatus.DRAFT, month_key)

    before = month_snapshot(month)
    month.status = PayrollMonthStatus.DRAFT.value
    month.reopen_count = (month.reopen_count or 0) + 1
    month.finalized_at = None
    month.finalized_by_id = None
    month.locked_at = None
    month.locked_by_id = None
    db.flush()
    log_audit(db, actor_id=actor_id, action="REOPEN", entity_type=ENTITY, entity_id=month.id,
              before=before, after=month_snapshot(month), reason=reason, meta={"month_key": month_key})
    logger.warning("Payroll reopened: month=%s by=%s reopen_count=%s", month_key, actor_id, month.reopen_count)
    return month


def reopen_payroll(db: Session, month_key: str, actor_id: int, reason: Optional[str]) -> PayrollMonth:
    """
    Administrative reversal back to draft. Installments already consumed for
    the month stay consumed and are reproduced on regeneration.

    Raises:
        MissingReason, NotAuthorized, InvalidTransition (month already draft)
    """
    if not reason or not reason.strip():
        raise MissingReason("Reopening a payroll month requires a reason", entity_type=ENTITY, entity_id=month_key)
    month = run_with_retry(db, ENTITY, month_key, _reopen_op, month_key, actor_id, reason.strip())
    db.refresh(month)
    return month


def list_months(db: Session) -> List[PayrollMonth]:
    return db.query(PayrollMonth).order_by(PayrollMonth.month_key.desc()).all()


def list_records(db: Session, month_key: str, employee_id: Optional[int] = None) -> List[PayrollRecord]:
    month = get_month(db, month_key)
    query = db.query(PayrollRecord).filter(PayrollRecord.payroll_month_id == month.id)
    if employee_id is not None:
        query = query.filter(PayrollRecord.employee_id == employee_id)
    return query.order_by(PayrollRecord.employee_id).all()


def get_payroll_summary(db: Session, month_key: str) -> Dict[str, Any]:
    """Month-level cost totals."""
    month = get_month(db, month_key)
    records = month.records

    def total(field: str) -> Decimal:
        return quantize_money(sum((to_decimal(getattr(r, field)) for r in records), ZERO))

    return {
        "month_key": month.month_key,
        "status": enum_to_str(month.status),
        "employee_count": len(records),
        "total_base_salary": total("base_salary"),
        "total_allowances": total("total_allowances"),
        "total_custom_deductions": total("custom_deductions"),
        "total_loan_installments": total("loan_installments"),
        "total_deductions": total("total_deductions"),
        "total_estimated_net": total("estimated_net"),
        "reopen_count": month.reopen_count,
        "generated_at": month.generated_at,
        "finalized_at": month.finalized_at,
        "locked_at": month.locked_at,
    }
