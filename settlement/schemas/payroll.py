"""
Payroll schemas
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer

from settlement.utils.datetime_utils import iso_8601_utc


class GeneratePayrollBody(BaseModel):
    hours_by_employee: Dict[int, Decimal] = Field(
        default_factory=dict,
        description="Worked hours per employee id, from attendance",
    )


class ReopenPayrollBody(BaseModel):
    reason: Optional[str] = None


class PayrollMonthOut(BaseModel):
    id: int
    month_key: str
    status: str
    generated_at: Optional[datetime]
    finalized_at: Optional[datetime]
    locked_at: Optional[datetime]
    reopen_count: int

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("generated_at", "finalized_at", "locked_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt):
        return iso_8601_utc(dt)


class PayrollMonthListResponse(BaseModel):
    items: List[PayrollMonthOut]
    total: int


class PayrollRecordOut(BaseModel):
    id: int
    employee_id: int
    employment_type: str
    base_salary: Decimal
    total_allowances: Decimal
    custom_deductions: Decimal
    loan_installments: Decimal
    total_deductions: Decimal
    total_hours: Optional[Decimal]
    unpaid_leave_days: Decimal
    estimated_net: Decimal
    breakdown_json: Optional[Dict[str, Any]]

    model_config = ConfigDict(from_attributes=True)


class PayrollRecordListResponse(BaseModel):
    items: List[PayrollRecordOut]
    total: int


class PayrollSummaryOut(BaseModel):
    month_key: str
    status: str
    employee_count: int
    total_base_salary: Decimal
    total_allowances: Decimal
    total_custom_deductions: Decimal
    total_loan_installments: Decimal
    total_deductions: Decimal
    total_estimated_net: Decimal
    reopen_count: int
    generated_at: Optional[datetime]
    finalized_at: Optional[datetime]
    locked_at: Optional[datetime]

    @field_serializer("generated_at", "finalized_at", "locked_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt):
        return iso_8601_utc(dt)
