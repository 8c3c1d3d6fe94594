"""
Tests for approval delegation
"""
from datetime import date

import pytest

from settlement.core.exceptions import NotAuthorized, OverlappingDelegation, SettlementError
from settlement.models.audit_log import AuditLog
from settlement.services import approval_service
from settlement.services.delegation_service import (
    create_delegation,
    delegators_for,
    end_delegation,
    list_delegations,
    resolve_approver,
)

JAN_1 = date(2025, 1, 1)
JAN_31 = date(2025, 1, 31)


def test_resolve_approver_inside_and_outside_period(db, admin, manager, backup_manager):
    create_delegation(db, manager.id, backup_manager.id, JAN_1, JAN_31, actor_id=manager.id)

    effective, delegation = resolve_approver(db, manager.id, date(2025, 1, 15))
    assert effective == backup_manager.id
    assert delegation is not None

    effective, delegation = resolve_approver(db, manager.id, date(2025, 2, 1))
    assert effective == manager.id
    assert delegation is None


def test_period_bounds_are_inclusive(db, admin, manager, backup_manager):
    create_delegation(db, manager.id, backup_manager.id, JAN_1, JAN_31, actor_id=manager.id)
    assert resolve_approver(db, manager.id, JAN_1)[0] == backup_manager.id
    assert resolve_approver(db, manager.id, JAN_31)[0] == backup_manager.id
    assert resolve_approver(db, manager.id, date(2024, 12, 31))[0] == manager.id


def test_overlapping_delegation_is_refused(db, admin, hr, manager, backup_manager):
    create_delegation(db, manager.id, backup_manager.id, JAN_1, JAN_31, actor_id=manager.id)
    with pytest.raises(OverlappingDelegation):
        create_delegation(db, manager.id, hr.id, date(2025, 1, 31), date(2025, 2, 10), actor_id=manager.id)

    # adjacent period is fine
    create_delegation(db, manager.id, hr.id, date(2025, 2, 1), date(2025, 2, 10), actor_id=manager.id)
    assert len(list_delegations(db, delegator_id=manager.id)) == 2


def test_ended_delegation_no_longer_applies_or_overlaps(db, admin, hr, manager, backup_manager):
    delegation = create_delegation(db, manager.id, backup_manager.id, JAN_1, JAN_31, actor_id=manager.id)
    end_delegation(db, delegation.id, actor_id=manager.id)

    assert resolve_approver(db, manager.id, date(2025, 1, 15))[0] == manager.id
    create_delegation(db, manager.id, hr.id, JAN_1, JAN_31, actor_id=manager.id)


def test_invalid_delegations(db, admin, manager, backup_manager):
    with pytest.raises(SettlementError):
        create_delegation(db, manager.id, manager.id, JAN_1, JAN_31, actor_id=manager.id)
    with pytest.raises(SettlementError):
        create_delegation(db, manager.id, backup_manager.id, JAN_31, JAN_1, actor_id=manager.id)


def test_delegators_for(db, admin, manager, backup_manager):
    create_delegation(db, manager.id, backup_manager.id, JAN_1, JAN_31, actor_id=manager.id)
    assert delegators_for(db, backup_manager.id, date(2025, 1, 10)) == [manager.id]
    assert delegators_for(db, backup_manager.id, date(2025, 3, 1)) == []


def _leave_payload():
    return {"type": "leave", "leave_type": "annual", "start_date": "2025-02-10", "end_date": "2025-02-11"}


def test_delegate_acts_and_audit_keeps_provenance(db, admin, manager, backup_manager, employee):
    delegation = create_delegation(db, manager.id, backup_manager.id, JAN_1, JAN_31, actor_id=manager.id)
    request = approval_service.create_request(db, employee.id, _leave_payload())

    # the original approver is replaced for the period
    with pytest.raises(NotAuthorized):
        approval_service.approve_step(db, request.id, manager.id, 1, today=date(2025, 1, 15))

    request = approval_service.approve_step(db, request.id, backup_manager.id, 1, today=date(2025, 1, 15))
    assert request.final_status == "approved"

    step = request.steps[0]
    assert step.approver_id == manager.id
    assert step.acted_by_id == backup_manager.id
    assert step.delegation_id == delegation.id

    entry = db.query(AuditLog).filter(
        AuditLog.entity_type == "approval_request",
        AuditLog.entity_id == request.id,
        AuditLog.action == "APPROVE_STEP",
    ).one()
    assert entry.actor_id == backup_manager.id
    assert entry.meta_json["delegation_id"] == delegation.id
    assert entry.meta_json["original_approver_id"] == manager.id


def test_pending_list_follows_delegation(db, admin, manager, backup_manager, employee):
    create_delegation(db, manager.id, backup_manager.id, JAN_1, JAN_31, actor_id=manager.id)
    request = approval_service.create_request(db, employee.id, _leave_payload())

    delegate_rows = approval_service.list_pending_for_approver(db, backup_manager.id, today=date(2025, 1, 15))
    assert [(r.id, s.level) for r, s in delegate_rows] == [(request.id, 1)]
    assert approval_service.list_pending_for_approver(db, manager.id, today=date(2025, 1, 15)) == []

    manager_rows = approval_service.list_pending_for_approver(db, manager.id, today=date(2025, 2, 15))
    assert [r.id for r, _ in manager_rows] == [request.id]
