"""
Tests for the auto-approval short-circuit
"""
from decimal import Decimal

import pytest

from settlement.core.exceptions import RequestAlreadyClosed
from settlement.models.approval import RequestStatus
from settlement.models.leave import LeaveTransaction
from settlement.schemas.payloads import parse_payload
from settlement.services import approval_service
from settlement.services.auto_approve import try_auto_approve
from settlement.services.balance_ledger import get_or_create_balance
from settlement.services.settings_service import ApprovalSettings, RequestTypeRule, update_settings


def _leave(days: int):
    return parse_payload({
        "type": "leave",
        "leave_type": "annual",
        "start_date": "2025-03-10",
        "end_date": f"2025-03-{9 + days:02d}",
    })


def _settings(threshold: str) -> ApprovalSettings:
    return ApprovalSettings(version=1, rules={"leave": RequestTypeRule(auto_approve_threshold=Decimal(threshold))})


def test_threshold_zero_disables_auto_approval():
    assert try_auto_approve("leave", _leave(1), _settings("0")) is False


def test_magnitude_at_or_below_threshold_is_auto_approved():
    assert try_auto_approve("leave", _leave(2), _settings("2")) is True
    assert try_auto_approve("leave", _leave(1), _settings("2")) is True
    assert try_auto_approve("leave", _leave(3), _settings("2")) is False


def test_types_without_magnitude_are_never_auto_approved():
    payload = parse_payload({"type": "other", "description": "New laptop"})
    settings = ApprovalSettings(version=1, rules={"other": RequestTypeRule(auto_approve_threshold=Decimal("100"))})
    assert try_auto_approve("other", payload, settings) is False


def test_auto_approved_request_applies_effect_once(db, admin, manager, employee):
    update_settings(db, {"leave": {"auto_approve_threshold": "2"}}, admin.id)

    request = approval_service.create_request(db, employee.id, _leave(2).model_dump())

    assert request.final_status == RequestStatus.APPROVED.value
    assert request.auto_approved is True
    assert [(s.level, s.approver_id, s.status) for s in request.steps] == [(1, manager.id, "pending")]
    assert request.effect_applied is True
    assert get_or_create_balance(db, employee.id).annual_balance == Decimal("19")
    assert db.query(LeaveTransaction).filter(LeaveTransaction.request_id == request.id).count() == 1


def test_auto_approved_chain_is_not_actionable(db, admin, manager, employee):
    update_settings(db, {"leave": {"auto_approve_threshold": "2"}}, admin.id)
    request = approval_service.create_request(db, employee.id, _leave(1).model_dump())

    assert len(request.steps) == 1
    assert approval_service.list_pending_for_approver(db, manager.id) == []
    with pytest.raises(RequestAlreadyClosed):
        approval_service.approve_step(db, request.id, manager.id, 1)
