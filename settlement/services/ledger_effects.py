"""
Ledger effect dispatch for approval outcomes.

When a request reaches `approved` its effect is applied exactly once; when an
applied request later ends up rejected or cancelled (late cancel, admin
override) the effect is reversed exactly once. The effect_applied flag on the
request is the guard: it is True exactly while the effect is in force.

    leave      deduct / restore the leave balance
    loan       activate / cancel the loan created with the request
    allowance  create / stop an employee allowance
    penalty    create / stop a one-time penalty deduction
    other      no ledger effect
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from settlement.models.approval import ApprovalRequest, RequestStatus, RequestType
from settlement.models.financials import DeductionCategory, EmployeeAllowance, EmployeeDeduction
from settlement.models.loan import LoanStatus
from settlement.schemas.payloads import parse_payload
from settlement.services import balance_ledger, financials_service, loan_ledger
from settlement.utils.enums import enum_to_str

logger = logging.getLogger(__name__)


def _apply_leave(db: Session, request: ApprovalRequest, payload, actor_id: Optional[int]) -> None:
    balance_ledger.deduct_balance(
        db, request.requester_id, payload.leave_type, payload.days,
        request_id=request.id, actor_id=actor_id,
    )


def _reverse_leave(db: Session, request: ApprovalRequest, payload, actor_id: Optional[int]) -> None:
    balance_ledger.restore_balance(
        db, request.requester_id, payload.leave_type, payload.days,
        request_id=request.id, actor_id=actor_id,
    )


def _apply_loan(db: Session, request: ApprovalRequest, payload, actor_id: Optional[int]) -> None:
    loan_ledger.activate_loan(db, loan_ledger.get_loan_for_request(db, request.id))


def _reverse_loan(db: Session, request: ApprovalRequest, payload, actor_id: Optional[int]) -> None:
    loan_ledger.cancel_loan(db, loan_ledger.get_loan_for_request(db, request.id))


def _apply_allowance(db: Session, request: ApprovalRequest, payload, actor_id: Optional[int]) -> None:
    financials_service.create_allowance(
        db,
        employee_id=request.requester_id,
        name=payload.name,
        amount=payload.amount,
        is_recurring=payload.is_recurring,
        start_month=payload.start_month,
        end_month=payload.end_month,
        actor_id=actor_id,
        source_request_id=request.id,
    )


def _reverse_allowance(db: Session, request: ApprovalRequest, payload, actor_id: Optional[int]) -> None:
    financials_service.stop_entries_for_request(db, EmployeeAllowance, request.id, actor_id)


def _apply_penalty(db: Session, request: ApprovalRequest, payload, actor_id: Optional[int]) -> None:
    financials_service.create_deduction(
        db,
        employee_id=payload.employee_id or request.requester_id,
        name=f"Penalty #{request.id}",
        amount=payload.amount,
        is_recurring=False,
        start_month=payload.month,
        category=DeductionCategory.PENALTY,
        reason=payload.reason,
        actor_id=actor_id,
        source_request_id=request.id,
    )


def _reverse_penalty(db: Session, request: ApprovalRequest, payload, actor_id: Optional[int]) -> None:
    financials_service.stop_entries_for_request(db, EmployeeDeduction, request.id, actor_id)


def _noop(db: Session, request: ApprovalRequest, payload, actor_id: Optional[int]) -> None:
    return None


APPLY_HANDLERS = {
    RequestType.LEAVE.value: _apply_leave,
    RequestType.LOAN.value: _apply_loan,
    RequestType.ALLOWANCE.value: _apply_allowance,
    RequestType.PENALTY.value: _apply_penalty,
    RequestType.OTHER.value: _noop,
}

REVERSE_HANDLERS = {
    RequestType.LEAVE.value: _reverse_leave,
    RequestType.LOAN.value: _reverse_loan,
    RequestType.ALLOWANCE.value: _reverse_allowance,
    RequestType.PENALTY.value: _reverse_penalty,
    RequestType.OTHER.value: _noop,
}


def apply_effect(db: Session, request: ApprovalRequest, actor_id: Optional[int]) -> bool:
    """Apply the request's ledger effect unless it is already in force."""
    if request.effect_applied:
        return False
    request_type = enum_to_str(request.request_type)
    payload = parse_payload(request.payload_json)
    APPLY_HANDLERS[request_type](db, request, payload, actor_id)
    request.effect_applied = True
    request.effect_reversed = False
    logger.info("Ledger effect applied: request_id=%s type=%s", request.id, request_type)
    return True


def reverse_effect(db: Session, request: ApprovalRequest, actor_id: Optional[int]) -> bool:
    """Undo an applied effect. A request whose effect never applied is left alone."""
    if not request.effect_applied:
        return False
    request_type = enum_to_str(request.request_type)
    payload = parse_payload(request.payload_json)
    REVERSE_HANDLERS[request_type](db, request, payload, actor_id)
    request.effect_applied = False
    request.effect_reversed = True
    logger.info("Ledger effect reversed: request_id=%s type=%s", request.id, request_type)
    return True


def settle(db: Session, request: ApprovalRequest, actor_id: Optional[int]) -> None:
    """
    Bring the ledgers in line with the request's final status.

    approved applies the effect; rejected/cancelled reverses an applied one.
    A loan that never became active is withdrawn so it cannot be picked up
    by payroll.
    """
    status = enum_to_str(request.final_status)
    if status == RequestStatus.APPROVED.value:
        apply_effect(db, request, actor_id)
    elif status in (RequestStatus.REJECTED.value, RequestStatus.CANCELLED.value):
        if not reverse_effect(db, request, actor_id) and enum_to_str(request.request_type) == RequestType.LOAN.value:
            loan = loan_ledger.get_loan_for_request(db, request.id)
            if enum_to_str(loan.status) == LoanStatus.PENDING.value:
                loan_ledger.cancel_loan(db, loan)
