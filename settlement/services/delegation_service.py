"""
Approval delegation: effective approver resolution and delegation records
"""
import logging
from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from settlement.core.exceptions import NotFound, OverlappingDelegation, SettlementError
from settlement.models.delegation import ApprovalDelegation
from settlement.services.audit_service import log_audit
from settlement.services.hierarchy_service import get_employee
from settlement.utils.datetime_utils import now_utc

logger = logging.getLogger(__name__)


def _active_on(db: Session, on_date: date):
    return db.query(ApprovalDelegation).filter(
        ApprovalDelegation.is_active.is_(True),
        ApprovalDelegation.active_from <= on_date,
        ApprovalDelegation.active_to >= on_date,
    )


def resolve_approver(
    db: Session,
    original_approver_id: int,
    on_date: date,
) -> Tuple[int, Optional[ApprovalDelegation]]:
    """
    Effective approver for original_approver_id on on_date.

    Returns:
        (effective approver id, delegation used or None)
    """
    delegation = (
        _active_on(db, on_date)
        .filter(ApprovalDelegation.delegator_id == original_approver_id)
        .order_by(ApprovalDelegation.active_from.desc())
        .first()
    )
    if delegation:
        return delegation.delegate_id, delegation
    return original_approver_id, None


def delegators_for(db: Session, delegate_id: int, on_date: date) -> List[int]:
    """Approvers whose steps delegate_id may currently act on."""
    rows = _active_on(db, on_date).filter(ApprovalDelegation.delegate_id == delegate_id).all()
    return [row.delegator_id for row in rows]


def find_overlapping(
    db: Session,
    delegator_id: int,
    active_from: date,
    active_to: date,
) -> Optional[ApprovalDelegation]:
    return db.query(ApprovalDelegation).filter(
        ApprovalDelegation.delegator_id == delegator_id,
        ApprovalDelegation.is_active.is_(True),
        ApprovalDelegation.active_from <= active_to,
        ApprovalDelegation.active_to >= active_from,
    ).first()


def create_delegation(
    db: Session,
    delegator_id: int,
    delegate_id: int,
    active_from: date,
    active_to: date,
    actor_id: int,
) -> ApprovalDelegation:
    """
    Record a delegation period for an approver.

    Raises:
        SettlementError: self-delegation or an inverted date range
        NotFound: unknown delegator/delegate
        OverlappingDelegation: the delegator already has an active delegation in that range
    """
    if delegator_id == delegate_id:
        raise SettlementError("An approver cannot delegate to themselves", entity_type="employee", entity_id=delegator_id)
    if active_from > active_to:
        raise SettlementError("active_from must be on or before active_to", entity_type="employee", entity_id=delegator_id)

    get_employee(db, delegator_id)
    delegate = get_employee(db, delegate_id)
    if not delegate.active:
        raise SettlementError(f"Delegate {delegate_id} is inactive", entity_type="employee", entity_id=delegate_id)

    existing = find_overlapping(db, delegator_id, active_from, active_to)
    if existing:
        raise OverlappingDelegation(
            f"Delegation {existing.id} already covers {existing.active_from} to {existing.active_to}",
            entity_type="delegation",
            entity_id=existing.id,
            current_state="active",
        )

    delegation = ApprovalDelegation(
        delegator_id=delegator_id,
        delegate_id=delegate_id,
        active_from=active_from,
        active_to=active_to,
        is_active=True,
        created_by_id=actor_id,
        created_at=now_utc(),
    )
    db.add(delegation)
    db.flush()
    log_audit(
        db,
        actor_id=actor_id,
        action="CREATE",
        entity_type="delegation",
        entity_id=delegation.id,
        after={
            "delegator_id": delegator_id,
            "delegate_id": delegate_id,
            "active_from": active_from,
            "active_to": active_to,
        },
    )
    db.commit()
    db.refresh(delegation)
    logger.info(
        "Delegation created: id=%s delegator=%s delegate=%s %s..%s",
        delegation.id, delegator_id, delegate_id, active_from, active_to,
    )
    return delegation


def end_delegation(db: Session, delegation_id: int, actor_id: int) -> ApprovalDelegation:
    """Deactivate a delegation. Ending an already ended delegation is a no-op."""
    delegation = db.query(ApprovalDelegation).filter(ApprovalDelegation.id == delegation_id).first()
    if not delegation:
        raise NotFound(f"Delegation {delegation_id} not found", entity_type="delegation", entity_id=delegation_id)
    if not delegation.is_active:
        return delegation

    delegation.is_active = False
    delegation.ended_at = now_utc()
    delegation.ended_by_id = actor_id
    log_audit(
        db,
        actor_id=actor_id,
        action="END",
        entity_type="delegation",
        entity_id=delegation.id,
        before={"is_active": True},
        after={"is_active": False},
    )
    db.commit()
    db.refresh(delegation)
    return delegation


def list_delegations(
    db: Session,
    delegator_id: Optional[int] = None,
    delegate_id: Optional[int] = None,
    active_only: bool = False,
) -> List[ApprovalDelegation]:
    query = db.query(ApprovalDelegation)
    if delegator_id is not None:
        query = query.filter(ApprovalDelegation.delegator_id == delegator_id)
    if delegate_id is not None:
        query = query.filter(ApprovalDelegation.delegate_id == delegate_id)
    if active_only:
        query = query.filter(ApprovalDelegation.is_active.is_(True))
    return query.order_by(ApprovalDelegation.active_from.desc()).all()
