"""
Delegation schemas
"""
from datetime import date, datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer

from settlement.utils.datetime_utils import iso_8601_utc


class DelegationCreate(BaseModel):
    delegator_id: int
    delegate_id: int
    active_from: date
    active_to: date


class DelegationOut(BaseModel):
    id: int
    delegator_id: int
    delegate_id: int
    active_from: date
    active_to: date
    is_active: bool
    created_by_id: Optional[int]
    created_at: Optional[datetime]
    ended_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", "ended_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt):
        return iso_8601_utc(dt)


class DelegationListResponse(BaseModel):
    items: List[DelegationOut]
    total: int


class ResolvedApproverOut(BaseModel):
    original_approver_id: int
    on_date: date
    effective_approver_id: int
    delegation_id: Optional[int] = Field(None, description="Delegation used, if any")
