"""
Employee deduction API endpoints
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from settlement.core.deps import get_current_user, get_db, require_admin
from settlement.db.concurrency import run_with_retry
from settlement.models.employee import Employee
from settlement.models.financials import EntryStatus
from settlement.schemas.financials import DeductionCreate, DeductionListResponse, DeductionOut, StopEntryBody
from settlement.services.financials_service import (
    create_deduction,
    deductions_for_month,
    list_deductions,
    stop_deduction,
)

router = APIRouter()


@router.post("", response_model=DeductionOut, status_code=status.HTTP_201_CREATED)
async def create_employee_deduction(
    body: DeductionCreate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin)
):
    """Add a custom deduction or penalty directly (HR/ADMIN)"""
    return run_with_retry(
        db, "employee_deduction", None, create_deduction,
        employee_id=body.employee_id,
        name=body.name,
        amount=body.amount,
        is_recurring=body.is_recurring,
        start_month=body.start_month,
        end_month=body.end_month,
        category=body.category,
        reason=body.reason,
        actor_id=current_user.id,
    )


@router.get("", response_model=DeductionListResponse)
async def list_employee_deductions(
    employee_id: Optional[int] = Query(None),
    entry_status: Optional[EntryStatus] = Query(None, alias="status"),
    month_key: Optional[str] = Query(None, description="Only entries effective in this YYYY-MM (needs employee_id)"),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    if not current_user.is_admin:
        employee_id = current_user.id
    if month_key and employee_id is not None:
        items = deductions_for_month(db, employee_id, month_key)
    else:
        items = list_deductions(db, employee_id=employee_id, status=entry_status)
    return DeductionListResponse(items=items, total=len(items))


@router.post("/{deduction_id}/stop", response_model=DeductionOut)
async def stop_employee_deduction(
    deduction_id: int,
    body: StopEntryBody,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin)
):
    return run_with_retry(
        db, "employee_deduction", deduction_id, stop_deduction, deduction_id, current_user.id, body.month_key
    )
