"""
Payroll API endpoints
Generate, finalize, lock and reopen payroll months (HR/ADMIN)
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from settlement.core.deps import get_db, require_admin, require_roles
from settlement.models.employee import Employee, Role
from settlement.schemas.payroll import (
    GeneratePayrollBody,
    PayrollMonthListResponse,
    PayrollMonthOut,
    PayrollRecordListResponse,
    PayrollSummaryOut,
    ReopenPayrollBody,
)
from settlement.services import payroll_service

router = APIRouter()


@router.get("", response_model=PayrollMonthListResponse)
async def list_payroll_months(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin)
):
    items = payroll_service.list_months(db)
    return PayrollMonthListResponse(items=items, total=len(items))


@router.get("/{month_key}", response_model=PayrollMonthOut)
async def get_payroll_month(
    month_key: str,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin)
):
    return payroll_service.get_month(db, month_key)


@router.post("/{month_key}/generate", response_model=PayrollMonthOut)
async def generate_payroll_month(
    month_key: str,
    body: GeneratePayrollBody,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin)
):
    """(Re)compute the draft records of the month"""
    return payroll_service.generate_payroll(
        db, month_key, actor_id=current_user.id, hours_by_employee=body.hours_by_employee
    )


@router.post("/{month_key}/finalize", response_model=PayrollMonthOut)
async def finalize_payroll_month(
    month_key: str,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin)
):
    """Freeze the month and consume its loan installments"""
    return payroll_service.finalize_payroll(db, month_key, actor_id=current_user.id)


@router.post("/{month_key}/lock", response_model=PayrollMonthOut)
async def lock_payroll_month(
    month_key: str,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin)
):
    return payroll_service.lock_payroll(db, month_key, actor_id=current_user.id)


@router.post("/{month_key}/reopen", response_model=PayrollMonthOut)
async def reopen_payroll_month(
    month_key: str,
    body: ReopenPayrollBody,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_roles(Role.ADMIN))
):
    """Send a finalized or locked month back to draft (ADMIN). A reason is mandatory."""
    return payroll_service.reopen_payroll(db, month_key, current_user.id, body.reason)


@router.get("/{month_key}/records", response_model=PayrollRecordListResponse)
async def list_payroll_records(
    month_key: str,
    employee_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin)
):
    items = payroll_service.list_records(db, month_key, employee_id=employee_id)
    return PayrollRecordListResponse(items=items, total=len(items))


@router.get("/{month_key}/summary", response_model=PayrollSummaryOut)
async def get_payroll_month_summary(
    month_key: str,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin)
):
    return payroll_service.get_payroll_summary(db, month_key)
