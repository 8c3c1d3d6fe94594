"""
Leave balance API endpoints
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from settlement.core.deps import get_current_user, get_db, require_admin
from settlement.db.concurrency import run_with_retry
from settlement.models.employee import Employee
from settlement.schemas.leave import LeaveBalanceAdjust, LeaveBalanceOut, LeaveTransactionListResponse
from settlement.services.balance_ledger import get_or_create_balance, list_transactions, set_balance
from settlement.services.hierarchy_service import get_employee

router = APIRouter()


def _check_access(employee_id: int, current_user: Employee) -> None:
    if employee_id != current_user.id and not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")


@router.get("/{employee_id}", response_model=LeaveBalanceOut)
async def get_leave_balance(
    employee_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """Current buckets; opened with the configured defaults on first access"""
    _check_access(employee_id, current_user)
    return run_with_retry(db, "leave_balance", employee_id, get_or_create_balance, employee_id)


@router.put("/{employee_id}", response_model=LeaveBalanceOut)
async def adjust_leave_balance(
    employee_id: int,
    body: LeaveBalanceAdjust,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin)
):
    """Set bucket values directly (HR/ADMIN, audited)"""
    return run_with_retry(
        db, "leave_balance", employee_id, set_balance, employee_id, current_user.id,
        annual=body.annual_balance,
        sick=body.sick_balance,
        emergency=body.emergency_balance,
        remarks=body.remarks,
    )


@router.get("/{employee_id}/transactions", response_model=LeaveTransactionListResponse)
async def list_leave_transactions(
    employee_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """Deduct/restore history"""
    _check_access(employee_id, current_user)
    get_employee(db, employee_id)
    items = list_transactions(db, employee_id)
    return LeaveTransactionListResponse(items=items, total=len(items))
