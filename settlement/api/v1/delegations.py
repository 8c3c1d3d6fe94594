"""
Approval delegation API endpoints
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from settlement.core.deps import get_current_user, get_db
from settlement.models.delegation import ApprovalDelegation
from settlement.models.employee import Employee
from settlement.schemas.delegation import (
    DelegationCreate,
    DelegationListResponse,
    DelegationOut,
    ResolvedApproverOut,
)
from settlement.services.delegation_service import (
    create_delegation,
    end_delegation,
    list_delegations,
    resolve_approver,
)
from settlement.utils.datetime_utils import now_utc

router = APIRouter()


@router.post("", response_model=DelegationOut, status_code=status.HTTP_201_CREATED)
async def create_approval_delegation(
    body: DelegationCreate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """Delegate your approvals for a period. HR/ADMIN may do it for anyone."""
    if body.delegator_id != current_user.id and not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only delegate your own approvals",
        )
    return create_delegation(
        db,
        delegator_id=body.delegator_id,
        delegate_id=body.delegate_id,
        active_from=body.active_from,
        active_to=body.active_to,
        actor_id=current_user.id,
    )


@router.get("", response_model=DelegationListResponse)
async def list_approval_delegations(
    delegator_id: Optional[int] = Query(None),
    delegate_id: Optional[int] = Query(None),
    active_only: bool = Query(False),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    items = list_delegations(db, delegator_id=delegator_id, delegate_id=delegate_id, active_only=active_only)
    if not current_user.is_admin:
        items = [d for d in items if current_user.id in (d.delegator_id, d.delegate_id)]
    return DelegationListResponse(items=items, total=len(items))


@router.get("/resolve", response_model=ResolvedApproverOut)
async def resolve_effective_approver(
    approver_id: int = Query(..., description="Original approver"),
    on_date: Optional[date] = Query(None, description="Defaults to today (UTC)"),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """Who acts for approver_id on the given date"""
    on_date = on_date or now_utc().date()
    effective_id, delegation = resolve_approver(db, approver_id, on_date)
    return ResolvedApproverOut(
        original_approver_id=approver_id,
        on_date=on_date,
        effective_approver_id=effective_id,
        delegation_id=delegation.id if delegation else None,
    )


@router.post("/{delegation_id}/end", response_model=DelegationOut)
async def end_approval_delegation(
    delegation_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    delegation = db.query(ApprovalDelegation).filter(ApprovalDelegation.id == delegation_id).first()
    if delegation and delegation.delegator_id != current_user.id and not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return end_delegation(db, delegation_id, current_user.id)
