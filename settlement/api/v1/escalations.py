"""
Escalation API endpoints (HR/ADMIN)
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from settlement.core.deps import get_db, require_admin
from settlement.db.session import SessionLocal
from settlement.models.employee import Employee
from settlement.schemas.approval import ApprovalRequestListResponse
from settlement.services.escalation_service import EscalationScanner, list_escalated

router = APIRouter()

# Shared with the background job started in main
scanner = EscalationScanner(SessionLocal)


@router.get("", response_model=ApprovalRequestListResponse)
async def list_escalated_requests(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin)
):
    """Escalated requests still waiting for a decision"""
    items = list_escalated(db)
    return ApprovalRequestListResponse(items=items, total=len(items))


@router.post("/scan")
async def run_escalation_scan(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin)
):
    """Run one escalation sweep now"""
    escalated = scanner.run_once(db=db)
    if escalated is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An escalation sweep is already running",
        )
    return {"escalated": escalated, "count": len(escalated)}
