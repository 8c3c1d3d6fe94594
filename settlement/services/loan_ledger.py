"""
Loan ledger: installment schedule bookkeeping.

A loan row is created as `pending` together with its approval request,
becomes `active` when the request is approved, and is `closed` by the payroll
finalization that consumes its last installment. Consumption is recorded per
(loan, month) so no month can decrement the same loan twice.
"""
import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from settlement.core.exceptions import InvalidTransition, NotFound, TooLateToCancel
from settlement.models.loan import Loan, LoanInstallment, LoanStatus
from settlement.services.audit_service import log_audit
from settlement.utils.datetime_utils import now_utc
from settlement.utils.enums import enum_to_str
from settlement.utils.money import quantize_money, to_decimal

logger = logging.getLogger(__name__)


def loan_snapshot(loan: Loan) -> dict:
    return {
        "status": enum_to_str(loan.status),
        "remaining_installments": loan.remaining_installments,
        "disbursed": loan.disbursed,
    }


def create_pending_loan(db: Session, employee_id: int, payload, request_id: Optional[int] = None) -> Loan:
    """Loan row for a new loan request; inert until approved."""
    loan = Loan(
        employee_id=employee_id,
        request_id=request_id,
        loan_type=enum_to_str(payload.loan_type),
        loan_amount=payload.loan_amount,
        installment_amount=payload.installment_amount,
        total_installments=payload.total_installments,
        remaining_installments=payload.total_installments,
        start_month=payload.start_month,
        disbursed=False,
        status=LoanStatus.PENDING.value,
        created_at=now_utc(),
    )
    db.add(loan)
    db.flush()
    return loan


def get_loan(db: Session, loan_id: int) -> Loan:
    loan = db.query(Loan).filter(Loan.id == loan_id).first()
    if not loan:
        raise NotFound(f"Loan {loan_id} not found", entity_type="loan", entity_id=loan_id)
    return loan


def get_loan_for_request(db: Session, request_id: int) -> Loan:
    loan = db.query(Loan).filter(Loan.request_id == request_id).first()
    if not loan:
        raise NotFound(f"No loan recorded for request {request_id}", entity_type="approval_request", entity_id=request_id)
    return loan


def activate_loan(db: Session, loan: Loan) -> Loan:
    """pending (or cancelled, on override back to approved) -> active."""
    status = enum_to_str(loan.status)
    if status == LoanStatus.ACTIVE.value:
        return loan
    if status not in (LoanStatus.PENDING.value, LoanStatus.CANCELLED.value):
        raise InvalidTransition(status, LoanStatus.ACTIVE.value, entity_type="loan", entity_id=loan.id)
    loan.status = LoanStatus.ACTIVE.value
    db.flush()
    logger.info("Loan activated: loan_id=%s employee_id=%s", loan.id, loan.employee_id)
    return loan


def consumed_count(db: Session, loan_id: int) -> int:
    return db.query(LoanInstallment).filter(LoanInstallment.loan_id == loan_id).count()


def cancel_loan(db: Session, loan: Loan) -> Loan:
    """
    Withdraw a loan whose request was rejected or cancelled.

    Raises:
        TooLateToCancel: an installment has already been consumed by payroll
    """
    status = enum_to_str(loan.status)
    if status == LoanStatus.CANCELLED.value:
        return loan
    if consumed_count(db, loan.id) > 0 or status == LoanStatus.CLOSED.value:
        raise TooLateToCancel(
            f"Loan {loan.id} already has installments consumed by payroll",
            entity_type="loan",
            entity_id=loan.id,
            current_state=status,
        )
    loan.status = LoanStatus.CANCELLED.value
    db.flush()
    logger.info("Loan cancelled: loan_id=%s", loan.id)
    return loan


def disburse_loan(db: Session, loan_id: int, actor_id: int) -> Loan:
    """Mark an active loan as paid out to the employee (once)."""
    loan = get_loan(db, loan_id)
    status = enum_to_str(loan.status)
    if status != LoanStatus.ACTIVE.value:
        raise InvalidTransition(status, "disbursed", entity_type="loan", entity_id=loan.id,
                                reason="only active loans can be disbursed")
    if loan.disbursed:
        raise InvalidTransition("disbursed", "disbursed", entity_type="loan", entity_id=loan.id,
                                reason="loan already disbursed")
    before = loan_snapshot(loan)
    loan.disbursed = True
    loan.disbursed_at = now_utc()
    loan.disbursed_by_id = actor_id
    db.flush()
    log_audit(db, actor_id=actor_id, action="DISBURSE", entity_type="loan", entity_id=loan.id,
              before=before, after=loan_snapshot(loan))
    return loan


def next_installment_amount(loan: Loan) -> Decimal:
    """The regular installment, or the remainder of loan_amount when only one is left."""
    if loan.remaining_installments == 1:
        paid = to_decimal(loan.installment_amount) * (loan.total_installments - 1)
        return quantize_money(to_decimal(loan.loan_amount) - paid)
    return quantize_money(loan.installment_amount)


def installment_for_month(db: Session, loan: Loan, month_key: str) -> Decimal:
    """Amount the loan contributes to month_key: what was consumed there, else the next installment."""
    consumed = db.query(LoanInstallment).filter(
        LoanInstallment.loan_id == loan.id,
        LoanInstallment.month_key == month_key,
    ).first()
    if consumed:
        return quantize_money(consumed.amount)
    return next_installment_amount(loan)


def installments_due(db: Session, employee_id: int, month_key: str) -> List[Loan]:
    """
    Loans contributing an installment to month_key: active loans already
    started with installments left, plus loans this month has already
    consumed (so a regenerated month reproduces its finalized totals).
    """
    consumed_here = db.query(LoanInstallment.loan_id).filter(LoanInstallment.month_key == month_key)
    return (
        db.query(Loan)
        .filter(
            Loan.employee_id == employee_id,
            or_(
                Loan.id.in_(consumed_here),
                (Loan.status == LoanStatus.ACTIVE.value)
                & (Loan.start_month <= month_key)
                & (Loan.remaining_installments > 0),
            ),
        )
        .order_by(Loan.id)
        .all()
    )


def consume_installment(db: Session, loan: Loan, month_key: str, actor_id: Optional[int] = None) -> bool:
    """
    Decrement remaining_installments by one for month_key, closing the loan at zero.

    Returns:
        True if an installment was consumed, False if this month already
        consumed it or the loan is no longer active.
    """
    already = db.query(LoanInstallment).filter(
        LoanInstallment.loan_id == loan.id,
        LoanInstallment.month_key == month_key,
    ).first()
    if already:
        return False
    if enum_to_str(loan.status) != LoanStatus.ACTIVE.value or loan.remaining_installments <= 0:
        logger.warning(
            "Skipping installment for loan_id=%s month=%s: status=%s remaining=%s",
            loan.id, month_key, loan.status, loan.remaining_installments,
        )
        return False

    before = loan_snapshot(loan)
    db.add(LoanInstallment(
        loan_id=loan.id, month_key=month_key, amount=next_installment_amount(loan), consumed_at=now_utc()
    ))
    loan.remaining_installments -= 1
    if loan.remaining_installments == 0:
        loan.status = LoanStatus.CLOSED.value
    db.flush()
    log_audit(
        db,
        actor_id=actor_id,
        action="CONSUME_INSTALLMENT",
        entity_type="loan",
        entity_id=loan.id,
        before=before,
        after=loan_snapshot(loan),
        meta={"month_key": month_key},
    )
    return True


def list_loans(db: Session, employee_id: Optional[int] = None, status: Optional[str] = None) -> List[Loan]:
    query = db.query(Loan)
    if employee_id is not None:
        query = query.filter(Loan.employee_id == employee_id)
    if status:
        query = query.filter(Loan.status == enum_to_str(status))
    return query.order_by(Loan.id.desc()).all()
