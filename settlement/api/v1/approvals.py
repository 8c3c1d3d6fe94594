"""
Approval request API endpoints
Submit, act on, cancel and override requests
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from settlement.core.deps import get_current_user, get_db, require_admin
from settlement.models.approval import RequestStatus, RequestType
from settlement.models.employee import Employee
from settlement.schemas.approval import (
    ApprovalRequestCreate,
    ApprovalRequestListResponse,
    ApprovalRequestOut,
    CancelRequestBody,
    ChainPreviewOut,
    ChainPreviewRequest,
    OverrideBody,
    PendingApprovalListResponse,
    PendingApprovalOut,
    StepDecision,
)
from settlement.services import approval_service

router = APIRouter()


def _resolve_requester(requester_id: Optional[int], current_user: Employee) -> int:
    if requester_id is None or requester_id == current_user.id:
        return current_user.id
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only HR/ADMIN can file requests on behalf of another employee",
        )
    return requester_id


@router.post("", response_model=ApprovalRequestOut, status_code=status.HTTP_201_CREATED)
async def submit_request(
    body: ApprovalRequestCreate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """Submit a request; its approval chain is frozen at this point"""
    requester_id = _resolve_requester(body.requester_id, current_user)
    return approval_service.create_request(db, requester_id, body.payload, actor_id=current_user.id)


@router.post("/preview", response_model=ChainPreviewOut)
async def preview_request_chain(
    body: ChainPreviewRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """Show the chain a submission would get, without saving anything"""
    requester_id = _resolve_requester(body.requester_id, current_user)
    return approval_service.preview_chain(db, requester_id, body.payload)


@router.get("", response_model=ApprovalRequestListResponse)
async def list_approval_requests(
    requester_id: Optional[int] = Query(None, description="Filter by requester (HR/ADMIN)"),
    request_type: Optional[RequestType] = Query(None),
    request_status: Optional[RequestStatus] = Query(None, alias="status"),
    escalated: Optional[bool] = Query(None),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """List requests. Employees only see their own."""
    if not current_user.is_admin:
        requester_id = current_user.id
    items = approval_service.list_requests(
        db,
        requester_id=requester_id,
        request_type=request_type,
        status=request_status,
        escalated=escalated,
    )
    return ApprovalRequestListResponse(items=items, total=len(items))


@router.get("/pending", response_model=PendingApprovalListResponse)
async def list_my_pending_approvals(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """Steps the current user can act on today, including delegated ones"""
    rows = approval_service.list_pending_for_approver(db, current_user.id)
    items = [
        PendingApprovalOut(
            request=ApprovalRequestOut.model_validate(request),
            level=step.level,
            original_approver_id=step.approver_id,
            via_delegation=step.approver_id != current_user.id,
        )
        for request, step in rows
    ]
    return PendingApprovalListResponse(items=items, total=len(items))


@router.get("/{request_id}", response_model=ApprovalRequestOut)
async def get_approval_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    request = approval_service.get_request(db, request_id)
    if (
        not current_user.is_admin
        and request.requester_id != current_user.id
        and current_user.id not in {s.approver_id for s in request.steps}
    ):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return request


@router.post("/{request_id}/approve", response_model=ApprovalRequestOut)
async def approve_request_step(
    request_id: int,
    body: StepDecision,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """Approve one level as its (possibly delegated) approver"""
    return approval_service.approve_step(db, request_id, current_user.id, body.level, remarks=body.remarks)


@router.post("/{request_id}/reject", response_model=ApprovalRequestOut)
async def reject_request_step(
    request_id: int,
    body: StepDecision,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """Reject one level; the whole request is rejected"""
    return approval_service.reject_step(db, request_id, current_user.id, body.level, remarks=body.remarks)


@router.post("/{request_id}/cancel", response_model=ApprovalRequestOut)
async def cancel_approval_request(
    request_id: int,
    body: CancelRequestBody,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """Cancel a pending request, or an approved leave that has not started yet"""
    return approval_service.cancel_request(db, request_id, current_user.id, reason=body.reason)


@router.post("/{request_id}/override", response_model=ApprovalRequestOut)
async def override_approval_request(
    request_id: int,
    body: OverrideBody,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin)
):
    """Force a decision (HR/ADMIN). A reason is mandatory."""
    return approval_service.admin_override(db, request_id, body.target_status, body.reason, current_user.id)


@router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_approval_request(
    request_id: int,
    reason: Optional[str] = Query(None, description="Mandatory; recorded in the audit trail"),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin)
):
    """Remove a request without running ledger effects (HR/ADMIN)"""
    approval_service.hard_delete_request(db, request_id, reason, current_user.id)
