"""
Audit trail API endpoints (HR/ADMIN)
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from settlement.core.deps import get_db, require_admin
from settlement.models.employee import Employee
from settlement.schemas.audit import AuditLogListResponse
from settlement.services.audit_service import list_audit_logs

router = APIRouter()


@router.get("", response_model=AuditLogListResponse)
async def list_audit_entries(
    entity_type: Optional[str] = Query(None, description="e.g. approval_request, payroll_month, loan"),
    entity_id: Optional[int] = Query(None),
    actor_id: Optional[int] = Query(None),
    action: Optional[str] = Query(None),
    limit: int = Query(200, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin)
):
    items = list_audit_logs(
        db, entity_type=entity_type, entity_id=entity_id, actor_id=actor_id, action=action, limit=limit
    )
    return AuditLogListResponse(items=items, total=len(items))
