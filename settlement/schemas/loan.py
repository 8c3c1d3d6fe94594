"""
Loan schemas
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, field_serializer

from settlement.utils.datetime_utils import iso_8601_utc


class LoanInstallmentOut(BaseModel):
    month_key: str
    amount: Decimal
    consumed_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("consumed_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt):
        return iso_8601_utc(dt)


class LoanOut(BaseModel):
    id: int
    employee_id: int
    request_id: Optional[int]
    loan_type: str
    loan_amount: Decimal
    installment_amount: Decimal
    total_installments: int
    remaining_installments: int
    start_month: str
    status: str
    disbursed: bool
    disbursed_at: Optional[datetime]
    created_at: datetime
    installments: List[LoanInstallmentOut] = []

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("disbursed_at", "created_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt):
        return iso_8601_utc(dt)


class LoanListResponse(BaseModel):
    items: List[LoanOut]
    total: int
