"""
Audit log schemas
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, field_serializer

from settlement.utils.datetime_utils import iso_8601_utc


class AuditLogOut(BaseModel):
    id: int
    entity_type: str
    entity_id: Optional[int]
    action: str
    actor_id: Optional[int]
    before_state: Optional[Dict[str, Any]]
    after_state: Optional[Dict[str, Any]]
    reason: Optional[str]
    meta_json: Optional[Dict[str, Any]]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt):
        return iso_8601_utc(dt)


class AuditLogListResponse(BaseModel):
    items: List[AuditLogOut]
    total: int
