"""
Approval state machine.

Step states:    pending -> approved | rejected
Request states: pending -> approved | rejected | cancelled

The request's final_status is re-derived from its steps and flags on every
mutation (see chain_builder.derive_final_status). When a mutation moves the
request into a terminal state the ledger effect dispatch runs inside the
same transaction, and a terminal-transition notification is emitted after
commit.

Every public mutation runs through run_with_retry: version conflicts on the
request row are retried, every other failure rolls back with no partial
effect.
"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from settlement.core.exceptions import (
    AlreadyDecided,
    MissingReason,
    NotAuthorized,
    NotFound,
    InsufficientBalance,
    RequestAlreadyClosed,
    SettlementError,
    TooLateToCancel,
)
from settlement.db.concurrency import run_with_retry
from settlement.models.approval import (
    ApprovalRequest,
    ApprovalStep,
    RequestStatus,
    RequestType,
    StepStatus,
    TERMINAL_REQUEST_STATUSES,
)
from settlement.models.leave import LeaveType
from settlement.models.loan import Loan, LoanStatus
from settlement.schemas.payloads import dump_payload, parse_payload
from settlement.services import ledger_effects, notifications
from settlement.services.audit_service import log_audit
from settlement.services.auto_approve import try_auto_approve
from settlement.services.balance_ledger import BUCKET_FIELDS, get_or_create_balance
from settlement.services.chain_builder import build_chain, derive_final_status, validate_chain
from settlement.services.delegation_service import delegators_for, resolve_approver
from settlement.services.hierarchy_service import get_employee, load_directory
from settlement.services.loan_ledger import create_pending_loan
from settlement.services.settings_service import get_current_settings
from settlement.utils.datetime_utils import now_utc
from settlement.utils.enums import enum_to_str
from settlement.utils.money import to_decimal

logger = logging.getLogger(__name__)

ENTITY = "approval_request"
_TERMINAL = {s.value for s in TERMINAL_REQUEST_STATUSES}
OVERRIDE_TARGETS = (RequestStatus.APPROVED.value, RequestStatus.REJECTED.value)


def request_snapshot(request: ApprovalRequest) -> Dict[str, Any]:
    return {
        "final_status": enum_to_str(request.final_status),
        "steps": [
            {"level": s.level, "approver_id": s.approver_id, "status": enum_to_str(s.status)}
            for s in request.steps
        ],
        "auto_approved": request.auto_approved,
        "override_status": request.override_status,
        "effect_applied": request.effect_applied,
        "escalated": request.escalated,
    }


def recompute_status(request: ApprovalRequest) -> str:
    return derive_final_status(
        [s.status for s in request.steps],
        cancelled=request.is_cancelled,
        override_status=request.override_status,
        auto_approved=request.auto_approved,
    )


def get_request(db: Session, request_id: int) -> ApprovalRequest:
    request = db.query(ApprovalRequest).filter(ApprovalRequest.id == request_id).first()
    if not request:
        raise NotFound(f"Approval request {request_id} not found", entity_type=ENTITY, entity_id=request_id)
    return request


def _ensure_open(request: ApprovalRequest) -> None:
    status = enum_to_str(request.final_status)
    if status in _TERMINAL:
        raise RequestAlreadyClosed(
            f"Request {request.id} is already {status}",
            entity_type=ENTITY,
            entity_id=request.id,
            current_state=status,
        )


def _get_step(request: ApprovalRequest, level: int) -> ApprovalStep:
    for step in request.steps:
        if step.level == level:
            return step
    raise NotFound(
        f"Request {request.id} has no approval level {level}",
        entity_type=ENTITY,
        entity_id=request.id,
        current_state=enum_to_str(request.final_status),
    )


def _finish_transition(
    db: Session,
    request: ApprovalRequest,
    before_status: str,
    action: str,
    actor_id: Optional[int],
) -> Optional[notifications.TerminalTransition]:
    """Run effect dispatch and build the notification when the status changed."""
    after_status = enum_to_str(request.final_status)
    logger.info(
        "approval transition: request_id=%s before=%s after=%s action=%s actor=%s",
        request.id, before_status, after_status, action, actor_id,
    )
    if after_status == before_status:
        return None
    ledger_effects.settle(db, request, actor_id)
    if after_status not in _TERMINAL:
        return None
    return notifications.TerminalTransition(
        request_id=request.id,
        request_type=enum_to_str(request.request_type),
        requester_id=request.requester_id,
        before_status=before_status,
        after_status=after_status,
        actor_id=actor_id,
        occurred_at=request.updated_at,
    )


def _run(db: Session, entity_id, operation, *args, **kwargs) -> ApprovalRequest:
    request, event = run_with_retry(db, ENTITY, entity_id, operation, *args, **kwargs)
    if event is not None:
        notifications.emit(event)
    db.refresh(request)
    return request


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------

def _precheck_leave_balance(db: Session, requester_id: int, payload) -> None:
    leave_type = LeaveType(payload.leave_type)
    if leave_type not in BUCKET_FIELDS:
        return
    balance = get_or_create_balance(db, requester_id)
    available = to_decimal(getattr(balance, BUCKET_FIELDS[leave_type]))
    if available < to_decimal(payload.days):
        raise InsufficientBalance(
            f"Insufficient {leave_type.value} balance: available {available}, requested {payload.days}",
            entity_type="leave_balance",
            entity_id=requester_id,
            current_state=str(available),
        )


def _create_request_op(db: Session, requester_id: int, payload, actor_id: Optional[int]):
    requester = get_employee(db, requester_id)
    if not requester.active:
        raise SettlementError(f"Employee {requester_id} is inactive", entity_type="employee", entity_id=requester_id)

    settings = get_current_settings(db)
    request_type = payload.type
    if request_type == RequestType.PENALTY.value and payload.employee_id is not None:
        get_employee(db, payload.employee_id)
    if request_type == RequestType.LEAVE.value:
        _precheck_leave_balance(db, requester_id, payload)

    chain = build_chain(request_type, requester_id, settings, load_directory(db))
    auto_approved = try_auto_approve(request_type, payload, settings)

    now = now_utc()
    request = ApprovalRequest(
        request_type=request_type,
        requester_id=requester_id,
        payload_json=dump_payload(payload),
        settings_version=settings.version,
        final_status=RequestStatus.PENDING.value,
        auto_approved=auto_approved,
        created_at=now,
        updated_at=now,
    )
    # Frozen even when auto-approved; auto_approved takes precedence in derive_final_status
    request.steps = [
        ApprovalStep(level=step.level, approver_id=step.approver_id, status=step.status)
        for step in chain
    ]
    db.add(request)
    db.flush()

    if request_type == RequestType.LOAN.value:
        create_pending_loan(db, requester_id, payload, request_id=request.id)

    request.final_status = recompute_status(request)
    log_audit(
        db,
        actor_id=actor_id or requester_id,
        action="CREATE",
        entity_type=ENTITY,
        entity_id=request.id,
        after=request_snapshot(request),
        meta={
            "settings_version": settings.version,
            "request_type": request_type,
            "chain": [step._asdict() for step in chain],
        },
    )
    event = _finish_transition(db, request, RequestStatus.PENDING.value, "CREATE", actor_id or requester_id)
    return request, event


def create_request(db: Session, requester_id: int, payload, actor_id: Optional[int] = None) -> ApprovalRequest:
    """
    Submit a request: freeze its chain, try auto-approval, and apply the
    ledger effect immediately when it is approved at creation (auto-approved
    or no approvers above the requester).

    Raises:
        NotFound, CycleDetected, InsufficientBalance, SettlementError
    """
    payload = parse_payload(payload)
    return _run(db, None, _create_request_op, requester_id, payload, actor_id)


def preview_chain(db: Session, requester_id: int, payload) -> Dict[str, Any]:
    """What create_request would produce, without persisting anything."""
    payload = parse_payload(payload)
    get_employee(db, requester_id)
    settings = get_current_settings(db)
    chain = build_chain(payload.type, requester_id, settings, load_directory(db))
    auto_approved = try_auto_approve(payload.type, payload, settings)
    return {
        "request_type": payload.type,
        "settings_version": settings.version,
        "steps": [step._asdict() for step in chain],
        "auto_approved": auto_approved,
        "final_status": derive_final_status([s.status for s in chain], auto_approved=auto_approved),
        "errors": validate_chain(chain, requester_id),
    }


# ---------------------------------------------------------------------------
# Step actions
# ---------------------------------------------------------------------------

def _decide_step_op(
    db: Session,
    request_id: int,
    acting_approver_id: int,
    level: int,
    decision: StepStatus,
    remarks: Optional[str],
    today: date,
):
    request = get_request(db, request_id)
    _ensure_open(request)
    step = _get_step(request, level)

    effective_id, delegation = resolve_approver(db, step.approver_id, today)
    if acting_approver_id != effective_id:
        raise NotAuthorized(
            f"Employee {acting_approver_id} is not the approver for level {level} of request {request.id}",
            entity_type=ENTITY,
            entity_id=request.id,
            current_state=enum_to_str(request.final_status),
        )
    if enum_to_str(step.status) != StepStatus.PENDING.value:
        raise AlreadyDecided(
            f"Level {level} of request {request.id} is already {enum_to_str(step.status)}",
            entity_type=ENTITY,
            entity_id=request.id,
            current_state=enum_to_str(step.status),
        )

    before = request_snapshot(request)
    before_status = enum_to_str(request.final_status)
    now = now_utc()
    step.status = decision.value
    step.acted_by_id = acting_approver_id
    step.delegation_id = delegation.id if delegation else None
    step.acted_at = now
    step.remarks = remarks
    request.updated_at = now
    request.final_status = recompute_status(request)

    action = "APPROVE_STEP" if decision == StepStatus.APPROVED else "REJECT_STEP"
    log_audit(
        db,
        actor_id=acting_approver_id,
        action=action,
        entity_type=ENTITY,
        entity_id=request.id,
        before=before,
        after=request_snapshot(request),
        reason=remarks,
        meta={
            "level": level,
            "original_approver_id": step.approver_id,
            "delegation_id": delegation.id if delegation else None,
        },
    )
    event = _finish_transition(db, request, before_status, action, acting_approver_id)
    return request, event


def approve_step(
    db: Session,
    request_id: int,
    acting_approver_id: int,
    level: int,
    remarks: Optional[str] = None,
    today: Optional[date] = None,
) -> ApprovalRequest:
    """
    Approve one level. The ledger effect fires once the whole request is approved.

    Raises:
        RequestAlreadyClosed, NotAuthorized, AlreadyDecided, NotFound, InsufficientBalance
    """
    return _run(
        db, request_id, _decide_step_op, request_id, acting_approver_id, level,
        StepStatus.APPROVED, remarks, today or now_utc().date(),
    )


def reject_step(
    db: Session,
    request_id: int,
    acting_approver_id: int,
    level: int,
    remarks: Optional[str] = None,
    today: Optional[date] = None,
) -> ApprovalRequest:
    """
    Reject one level; the whole request is rejected and its remaining
    pending levels are no longer actionable.
    """
    return _run(
        db, request_id, _decide_step_op, request_id, acting_approver_id, level,
        StepStatus.REJECTED, remarks, today or now_utc().date(),
    )


# ---------------------------------------------------------------------------
# Cancel / override / delete
# ---------------------------------------------------------------------------

def _cancel_request_op(db: Session, request_id: int, acting_user_id: int, reason: Optional[str], today: date):
    request = get_request(db, request_id)
    actor = get_employee(db, acting_user_id)
    status = enum_to_str(request.final_status)

    if actor.id != request.requester_id and not actor.is_admin:
        raise NotAuthorized(
            f"Employee {acting_user_id} cannot cancel request {request.id}",
            entity_type=ENTITY,
            entity_id=request.id,
            current_state=status,
        )

    if status == RequestStatus.PENDING.value:
        pass
    elif status == RequestStatus.APPROVED.value and enum_to_str(request.request_type) == RequestType.LEAVE.value:
        payload = parse_payload(request.payload_json)
        if today > payload.start_date:
            raise TooLateToCancel(
                f"Leave for request {request.id} started on {payload.start_date}",
                entity_type=ENTITY,
                entity_id=request.id,
                current_state=status,
            )
    elif status == RequestStatus.CANCELLED.value:
        raise RequestAlreadyClosed(
            f"Request {request.id} is already cancelled",
            entity_type=ENTITY,
            entity_id=request.id,
            current_state=status,
        )
    else:
        raise TooLateToCancel(
            f"Request {request.id} is {status} and can no longer be cancelled",
            entity_type=ENTITY,
            entity_id=request.id,
            current_state=status,
        )

    before = request_snapshot(request)
    now = now_utc()
    request.cancelled_at = now
    request.cancelled_by_id = acting_user_id
    request.updated_at = now
    request.final_status = recompute_status(request)
    log_audit(
        db,
        actor_id=acting_user_id,
        action="CANCEL",
        entity_type=ENTITY,
        entity_id=request.id,
        before=before,
        after=request_snapshot(request),
        reason=reason,
    )
    event = _finish_transition(db, request, status, "CANCEL", acting_user_id)
    return request, event


def cancel_request(
    db: Session,
    request_id: int,
    acting_user_id: int,
    reason: Optional[str] = None,
    today: Optional[date] = None,
) -> ApprovalRequest:
    """
    Cancel a pending request, or an approved leave whose start date has not
    passed (its balance is restored).

    Raises:
        NotAuthorized: actor is neither the requester nor HR/ADMIN
        TooLateToCancel: request decided, or approved leave already started
        RequestAlreadyClosed: request already cancelled
    """
    return _run(db, request_id, _cancel_request_op, request_id, acting_user_id, reason, today or now_utc().date())


def _admin_override_op(db: Session, request_id: int, target_status: str, reason: str, acting_admin_id: int):
    request = get_request(db, request_id)
    actor = get_employee(db, acting_admin_id)
    status = enum_to_str(request.final_status)
    if not actor.is_admin:
        raise NotAuthorized(
            f"Employee {acting_admin_id} cannot override approval decisions",
            entity_type=ENTITY,
            entity_id=request.id,
            current_state=status,
        )
    if status == RequestStatus.CANCELLED.value:
        raise RequestAlreadyClosed(
            f"Request {request.id} is cancelled and cannot be overridden",
            entity_type=ENTITY,
            entity_id=request.id,
            current_state=status,
        )

    before = request_snapshot(request)
    now = now_utc()
    request.override_status = target_status
    request.override_reason = reason
    request.override_by_id = acting_admin_id
    request.updated_at = now
    request.final_status = recompute_status(request)
    log_audit(
        db,
        actor_id=acting_admin_id,
        action="OVERRIDE",
        entity_type=ENTITY,
        entity_id=request.id,
        before=before,
        after=request_snapshot(request),
        reason=reason,
        meta={"target_status": target_status},
    )
    event = _finish_transition(db, request, status, "OVERRIDE", acting_admin_id)
    return request, event


def admin_override(
    db: Session,
    request_id: int,
    target_status,
    reason: Optional[str],
    acting_admin_id: int,
) -> ApprovalRequest:
    """
    Force a request to approved or rejected, bypassing per-step authorization.
    Effects go through the same dispatch as a normal decision.

    Raises:
        MissingReason: reason empty
        NotAuthorized: actor is not HR/ADMIN
        RequestAlreadyClosed: request cancelled
    """
    if not reason or not reason.strip():
        raise MissingReason("An override requires a reason", entity_type=ENTITY, entity_id=request_id)
    target = enum_to_str(target_status)
    if target not in OVERRIDE_TARGETS:
        raise SettlementError(
            f"Override target must be one of {list(OVERRIDE_TARGETS)}",
            entity_type=ENTITY,
            entity_id=request_id,
        )
    return _run(db, request_id, _admin_override_op, request_id, target, reason.strip(), acting_admin_id)


def hard_delete_request(db: Session, request_id: int, reason: Optional[str], acting_admin_id: int) -> None:
    """
    Remove a request outright. Bypasses the state machine and its ledger
    effects; only the audit record remains.
    """
    if not reason or not reason.strip():
        raise MissingReason("Deleting a request requires a reason", entity_type=ENTITY, entity_id=request_id)

    def _op(db: Session):
        request = get_request(db, request_id)
        actor = get_employee(db, acting_admin_id)
        if not actor.is_admin:
            raise NotAuthorized(
                f"Employee {acting_admin_id} cannot delete requests",
                entity_type=ENTITY,
                entity_id=request_id,
                current_state=enum_to_str(request.final_status),
            )
        before = request_snapshot(request)
        before["payload"] = request.payload_json
        # An inert loan row has no meaning without its request
        pending_loan = db.query(Loan).filter(
            Loan.request_id == request_id,
            Loan.status.in_([LoanStatus.PENDING.value, LoanStatus.CANCELLED.value]),
        ).first()
        if pending_loan:
            db.delete(pending_loan)
            db.flush()
        db.delete(request)
        log_audit(
            db,
            actor_id=acting_admin_id,
            action="HARD_DELETE",
            entity_type=ENTITY,
            entity_id=request_id,
            before=before,
            reason=reason.strip(),
        )
        logger.warning("Approval request hard-deleted: request_id=%s by=%s", request_id, acting_admin_id)

    run_with_retry(db, ENTITY, request_id, _op)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def list_requests(
    db: Session,
    requester_id: Optional[int] = None,
    request_type: Optional[str] = None,
    status: Optional[str] = None,
    escalated: Optional[bool] = None,
) -> List[ApprovalRequest]:
    query = db.query(ApprovalRequest)
    if requester_id is not None:
        query = query.filter(ApprovalRequest.requester_id == requester_id)
    if request_type:
        query = query.filter(ApprovalRequest.request_type == enum_to_str(request_type))
    if status:
        query = query.filter(ApprovalRequest.final_status == enum_to_str(status))
    if escalated is not None:
        query = query.filter(ApprovalRequest.escalated.is_(escalated))
    return query.order_by(ApprovalRequest.created_at.desc(), ApprovalRequest.id.desc()).all()


def list_pending_for_approver(
    db: Session,
    approver_id: int,
    today: Optional[date] = None,
) -> List[Tuple[ApprovalRequest, ApprovalStep]]:
    """
    Pending steps the approver can act on today: their own steps (unless
    delegated away) plus steps of approvers who delegated to them.
    """
    today = today or now_utc().date()
    candidates = set(delegators_for(db, approver_id, today))
    own_effective, _ = resolve_approver(db, approver_id, today)
    if own_effective == approver_id:
        candidates.add(approver_id)
    if not candidates:
        return []

    rows = (
        db.query(ApprovalRequest, ApprovalStep)
        .join(ApprovalStep, ApprovalStep.request_id == ApprovalRequest.id)
        .filter(
            ApprovalRequest.final_status == RequestStatus.PENDING.value,
            ApprovalStep.status == StepStatus.PENDING.value,
            ApprovalStep.approver_id.in_(candidates),
        )
        .order_by(ApprovalRequest.created_at, ApprovalRequest.id, ApprovalStep.level)
        .all()
    )
    return [(request, step) for request, step in rows]
