"""
Leave balance schemas
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer

from settlement.utils.datetime_utils import iso_8601_utc


class LeaveBalanceOut(BaseModel):
    employee_id: int
    annual_balance: Decimal
    sick_balance: Decimal
    emergency_balance: Decimal
    unpaid_taken: Decimal
    updated_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("updated_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt):
        return iso_8601_utc(dt)


class LeaveBalanceAdjust(BaseModel):
    """Administrative adjustment; omitted buckets are left as they are"""
    annual_balance: Optional[Decimal] = Field(None, ge=0)
    sick_balance: Optional[Decimal] = Field(None, ge=0)
    emergency_balance: Optional[Decimal] = Field(None, ge=0)
    remarks: Optional[str] = None


class LeaveTransactionOut(BaseModel):
    id: int
    employee_id: int
    request_id: Optional[int]
    leave_type: str
    action: str
    delta_days: Decimal
    remarks: Optional[str]
    action_by_employee_id: Optional[int]
    action_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("action_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt):
        return iso_8601_utc(dt)


class LeaveTransactionListResponse(BaseModel):
    items: List[LeaveTransactionOut]
    total: int
