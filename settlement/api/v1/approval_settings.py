"""
Approval settings API endpoints
Versioned per-request-type rules: required levels, auto-approve threshold, escalation
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from settlement.core.deps import get_current_user, get_db, require_admin
from settlement.models.employee import Employee
from settlement.schemas.settings import ApprovalSettingsHistory, ApprovalSettingsOut, ApprovalSettingsUpdate
from settlement.services.settings_service import (
    get_current_settings,
    get_settings_version,
    list_settings_versions,
    settings_from_row,
    update_settings,
)

router = APIRouter()


@router.get("", response_model=ApprovalSettingsOut)
async def get_approval_settings(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """Settings new requests are built against"""
    return get_current_settings(db).to_dict()


@router.put("", response_model=ApprovalSettingsOut)
async def update_approval_settings(
    body: ApprovalSettingsUpdate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin)
):
    """
    Publish a new settings version (HR/ADMIN). Omitted types and fields keep
    their current values; requests already submitted keep their version.
    """
    rules = {name: rule.model_dump(exclude_none=True) for name, rule in body.rules.items()}
    return update_settings(db, rules, current_user.id).to_dict()


@router.get("/history", response_model=ApprovalSettingsHistory)
async def list_approval_settings_versions(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin)
):
    items = [settings_from_row(row).to_dict() for row in list_settings_versions(db)]
    return ApprovalSettingsHistory(items=items, total=len(items))


@router.get("/{version}", response_model=ApprovalSettingsOut)
async def get_approval_settings_version(
    version: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    return get_settings_version(db, version).to_dict()
