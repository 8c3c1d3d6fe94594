"""
Loan API endpoints
Loans are created through approval requests; this surface reads them and records payouts
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from settlement.core.deps import get_current_user, get_db, require_admin
from settlement.db.concurrency import run_with_retry
from settlement.models.employee import Employee
from settlement.models.loan import LoanStatus
from settlement.schemas.loan import LoanListResponse, LoanOut
from settlement.services.loan_ledger import disburse_loan, get_loan, list_loans

router = APIRouter()


@router.get("", response_model=LoanListResponse)
async def list_employee_loans(
    employee_id: Optional[int] = Query(None, description="Filter by employee (HR/ADMIN)"),
    loan_status: Optional[LoanStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    if not current_user.is_admin:
        employee_id = current_user.id
    items = list_loans(db, employee_id=employee_id, status=loan_status)
    return LoanListResponse(items=items, total=len(items))


@router.get("/{loan_id}", response_model=LoanOut)
async def get_employee_loan(
    loan_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    loan = get_loan(db, loan_id)
    if loan.employee_id != current_user.id and not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return loan


@router.post("/{loan_id}/disburse", response_model=LoanOut)
async def disburse_employee_loan(
    loan_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin)
):
    """Record that an active loan was paid out (HR/ADMIN)"""
    return run_with_retry(db, "loan", loan_id, disburse_loan, loan_id, current_user.id)
