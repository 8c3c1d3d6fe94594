"""
Allowance and deduction schemas
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from settlement.models.financials import DeductionCategory
from settlement.utils.datetime_utils import iso_8601_utc, validate_month_key


class _EntryBase(BaseModel):
    employee_id: int
    name: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    is_recurring: bool = False
    start_month: str = Field(..., description="YYYY-MM")
    end_month: Optional[str] = Field(None, description="YYYY-MM, recurring entries only")

    @field_validator("start_month", "end_month")
    @classmethod
    def _check_month(cls, v: Optional[str]) -> Optional[str]:
        return validate_month_key(v) if v is not None else v


class AllowanceCreate(_EntryBase):
    pass


class DeductionCreate(_EntryBase):
    category: DeductionCategory = DeductionCategory.CUSTOM
    reason: Optional[str] = None


class StopEntryBody(BaseModel):
    month_key: Optional[str] = Field(None, description="Last effective month; defaults to the current month")

    @field_validator("month_key")
    @classmethod
    def _check_month(cls, v: Optional[str]) -> Optional[str]:
        return validate_month_key(v) if v is not None else v


class AllowanceOut(BaseModel):
    id: int
    employee_id: int
    name: str
    amount: Decimal
    is_recurring: bool
    start_month: str
    end_month: Optional[str]
    status: str
    source_request_id: Optional[int]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt):
        return iso_8601_utc(dt)


class DeductionOut(AllowanceOut):
    category: str
    reason: Optional[str]


class AllowanceListResponse(BaseModel):
    items: List[AllowanceOut]
    total: int


class DeductionListResponse(BaseModel):
    items: List[DeductionOut]
    total: int
