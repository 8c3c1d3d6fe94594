"""
Approval settings schemas
"""
from decimal import Decimal
from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class RequestTypeRuleIn(BaseModel):
    required_levels: Optional[int] = Field(None, ge=0, le=10)
    auto_approve_threshold: Optional[Decimal] = Field(None, ge=0, description="0 disables auto-approval")
    escalation_overdue_days: Optional[int] = Field(None, ge=0, description="0 disables escalation")


class ApprovalSettingsUpdate(BaseModel):
    rules: Dict[str, RequestTypeRuleIn]


class RequestTypeRuleOut(BaseModel):
    required_levels: int
    auto_approve_threshold: Decimal
    escalation_overdue_days: int


class ApprovalSettingsOut(BaseModel):
    version: int
    rules: Dict[str, RequestTypeRuleOut]


class ApprovalSettingsHistory(BaseModel):
    items: List[ApprovalSettingsOut]
    total: int
