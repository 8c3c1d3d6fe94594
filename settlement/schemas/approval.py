"""
Approval request schemas
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer

from settlement.schemas.payloads import RequestPayload
from settlement.utils.datetime_utils import iso_8601_utc


class ApprovalRequestCreate(BaseModel):
    """Schema for submitting a request"""
    payload: RequestPayload
    requester_id: Optional[int] = Field(None, description="File on behalf of another employee (HR/ADMIN only)")


class StepDecision(BaseModel):
    """Schema for approving or rejecting one level"""
    level: int = Field(..., ge=1)
    remarks: Optional[str] = None


class CancelRequestBody(BaseModel):
    reason: Optional[str] = None


class OverrideBody(BaseModel):
    target_status: Literal["approved", "rejected"]
    reason: Optional[str] = Field(None, description="Mandatory; empty reasons are refused")


class ApprovalStepOut(BaseModel):
    level: int
    approver_id: int
    status: str
    acted_by_id: Optional[int]
    delegation_id: Optional[int]
    acted_at: Optional[datetime]
    remarks: Optional[str]

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("acted_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt):
        return iso_8601_utc(dt)


class ApprovalRequestOut(BaseModel):
    """Schema for approval request output. Datetimes in UTC."""
    id: int
    request_type: str
    requester_id: int
    payload_json: Dict[str, Any]
    settings_version: int
    final_status: str
    auto_approved: bool
    override_status: Optional[str]
    override_reason: Optional[str]
    cancelled_at: Optional[datetime]
    cancelled_by_id: Optional[int]
    effect_applied: bool
    escalated: bool
    escalated_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    steps: List[ApprovalStepOut]

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("cancelled_at", "escalated_at", "created_at", "updated_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt):
        return iso_8601_utc(dt)


class ApprovalRequestListResponse(BaseModel):
    items: List[ApprovalRequestOut]
    total: int


class PendingApprovalOut(BaseModel):
    request: ApprovalRequestOut
    level: int
    original_approver_id: int
    via_delegation: bool


class PendingApprovalListResponse(BaseModel):
    items: List[PendingApprovalOut]
    total: int


class ChainStepPreview(BaseModel):
    level: int
    approver_id: int
    status: str


class ChainPreviewOut(BaseModel):
    request_type: str
    settings_version: int
    steps: List[ChainStepPreview]
    auto_approved: bool
    final_status: str
    errors: List[str]


class ChainPreviewRequest(BaseModel):
    payload: RequestPayload
    requester_id: Optional[int] = None
