"""
Employee allowance API endpoints
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from settlement.core.deps import get_current_user, get_db, require_admin
from settlement.db.concurrency import run_with_retry
from settlement.models.employee import Employee
from settlement.models.financials import EntryStatus
from settlement.schemas.financials import AllowanceCreate, AllowanceListResponse, AllowanceOut, StopEntryBody
from settlement.services.financials_service import (
    allowances_for_month,
    create_allowance,
    list_allowances,
    stop_allowance,
)

router = APIRouter()


@router.post("", response_model=AllowanceOut, status_code=status.HTTP_201_CREATED)
async def create_employee_allowance(
    body: AllowanceCreate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin)
):
    """Add an allowance directly (HR/ADMIN). One-time duplicates are refused."""
    return run_with_retry(
        db, "employee_allowance", None, create_allowance,
        employee_id=body.employee_id,
        name=body.name,
        amount=body.amount,
        is_recurring=body.is_recurring,
        start_month=body.start_month,
        end_month=body.end_month,
        actor_id=current_user.id,
    )


@router.get("", response_model=AllowanceListResponse)
async def list_employee_allowances(
    employee_id: Optional[int] = Query(None),
    entry_status: Optional[EntryStatus] = Query(None, alias="status"),
    month_key: Optional[str] = Query(None, description="Only entries effective in this YYYY-MM (needs employee_id)"),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    if not current_user.is_admin:
        employee_id = current_user.id
    if month_key and employee_id is not None:
        items = allowances_for_month(db, employee_id, month_key)
    else:
        items = list_allowances(db, employee_id=employee_id, status=entry_status)
    return AllowanceListResponse(items=items, total=len(items))


@router.post("/{allowance_id}/stop", response_model=AllowanceOut)
async def stop_employee_allowance(
    allowance_id: int,
    body: StopEntryBody,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin)
):
    return run_with_retry(
        db, "employee_allowance", allowance_id, stop_allowance, allowance_id, current_user.id, body.month_key
    )
