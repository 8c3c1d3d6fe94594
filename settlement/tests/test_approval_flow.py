"""
Tests for the approval state machine and its ledger effects
"""
from datetime import date
from decimal import Decimal

import pytest

from settlement.core.exceptions import (
    AlreadyDecided,
    MissingReason,
    NotAuthorized,
    NotFound,
    RequestAlreadyClosed,
    TooLateToCancel,
)
from settlement.models.approval import ApprovalRequest
from settlement.models.audit_log import AuditLog
from settlement.models.financials import EmployeeAllowance, EmployeeDeduction
from settlement.models.leave import LeaveTransaction
from settlement.models.loan import Loan
from settlement.services import approval_service, notifications
from settlement.services.balance_ledger import get_or_create_balance
from settlement.services.settings_service import update_settings

TODAY = date(2025, 3, 1)


def leave_payload(start="2025-03-10", end="2025-03-12", leave_type="annual"):
    return {"type": "leave", "leave_type": leave_type, "start_date": start, "end_date": end}


def loan_payload(amount="1200", installments=12, start_month="2025-04"):
    return {"type": "loan", "loan_amount": amount, "total_installments": installments, "start_month": start_month}


def annual_balance(db, employee_id):
    db.expire_all()
    return get_or_create_balance(db, employee_id).annual_balance


def test_new_request_freezes_chain_and_settings_version(db, admin, manager, employee):
    request = approval_service.create_request(db, employee.id, loan_payload())

    assert request.final_status == "pending"
    assert request.settings_version == 1
    assert [(s.level, s.approver_id, s.status) for s in request.steps] == [
        (1, manager.id, "pending"),
        (2, admin.id, "pending"),
    ]
    loan = db.query(Loan).filter(Loan.request_id == request.id).one()
    assert loan.status == "pending"

    # a later settings change does not touch the submitted chain
    update_settings(db, {"loan": {"required_levels": 1}}, admin.id)
    db.refresh(request)
    assert len(request.steps) == 2
    assert request.settings_version == 1


def test_full_chain_approval_applies_effect_once(db, admin, manager, employee):
    request = approval_service.create_request(db, employee.id, leave_payload())
    request = approval_service.approve_step(db, request.id, manager.id, 1, today=TODAY)

    assert request.final_status == "approved"
    assert request.effect_applied is True
    assert annual_balance(db, employee.id) == Decimal("18")

    with pytest.raises(RequestAlreadyClosed):
        approval_service.approve_step(db, request.id, manager.id, 1, today=TODAY)
    assert annual_balance(db, employee.id) == Decimal("18")
    assert db.query(LeaveTransaction).filter(LeaveTransaction.request_id == request.id).count() == 1


def test_two_level_loan_activates_only_at_the_end(db, admin, manager, employee):
    request = approval_service.create_request(db, employee.id, loan_payload())

    request = approval_service.approve_step(db, request.id, manager.id, 1, today=TODAY)
    assert request.final_status == "pending"
    assert db.query(Loan).filter(Loan.request_id == request.id).one().status == "pending"

    request = approval_service.approve_step(db, request.id, admin.id, 2, today=TODAY)
    assert request.final_status == "approved"
    loan = db.query(Loan).filter(Loan.request_id == request.id).one()
    assert loan.status == "active"
    assert loan.installment_amount == Decimal("100.00")
    assert loan.remaining_installments == 12


def test_any_pending_level_may_act(db, admin, manager, employee):
    request = approval_service.create_request(db, employee.id, loan_payload())
    request = approval_service.approve_step(db, request.id, admin.id, 2, today=TODAY)
    assert request.final_status == "pending"


def test_rejecting_one_level_closes_the_request(db, admin, manager, employee):
    request = approval_service.create_request(db, employee.id, loan_payload())
    request = approval_service.reject_step(db, request.id, manager.id, 1, remarks="Too large", today=TODAY)

    assert request.final_status == "rejected"
    assert request.steps[1].status == "pending"
    assert db.query(Loan).filter(Loan.request_id == request.id).one().status == "cancelled"

    with pytest.raises(RequestAlreadyClosed):
        approval_service.approve_step(db, request.id, admin.id, 2, today=TODAY)
    with pytest.raises(RequestAlreadyClosed):
        approval_service.reject_step(db, request.id, admin.id, 2, today=TODAY)


def test_wrong_actor_is_not_authorized(db, admin, manager, backup_manager, employee):
    request = approval_service.create_request(db, employee.id, leave_payload())
    with pytest.raises(NotAuthorized) as exc_info:
        approval_service.approve_step(db, request.id, backup_manager.id, 1, today=TODAY)
    assert exc_info.value.entity_id == request.id
    assert exc_info.value.current_state == "pending"

    with pytest.raises(NotAuthorized):
        approval_service.approve_step(db, request.id, employee.id, 1, today=TODAY)


def test_decided_level_cannot_be_decided_again(db, admin, manager, employee):
    request = approval_service.create_request(db, employee.id, loan_payload())
    approval_service.approve_step(db, request.id, manager.id, 1, today=TODAY)
    with pytest.raises(AlreadyDecided):
        approval_service.reject_step(db, request.id, manager.id, 1, today=TODAY)


def test_unknown_level_or_request(db, admin, manager, employee):
    request = approval_service.create_request(db, employee.id, leave_payload())
    with pytest.raises(NotFound):
        approval_service.approve_step(db, request.id, manager.id, 5, today=TODAY)
    with pytest.raises(NotFound):
        approval_service.approve_step(db, 9999, manager.id, 1, today=TODAY)


def test_clamped_chain_single_approval_completes(db, admin, manager):
    # manager reports straight to admin: a two-level loan chain has one level
    request = approval_service.create_request(db, manager.id, loan_payload())
    assert [s.approver_id for s in request.steps] == [admin.id]

    request = approval_service.approve_step(db, request.id, admin.id, 1, today=TODAY)
    assert request.final_status == "approved"


def test_root_requester_is_approved_at_creation(db, admin):
    request = approval_service.create_request(db, admin.id, leave_payload())
    assert request.steps == []
    assert request.final_status == "approved"
    assert request.effect_applied is True
    assert annual_balance(db, admin.id) == Decimal("18")


def test_leave_beyond_balance_is_refused_at_submission(db, admin, manager, employee):
    from settlement.core.exceptions import InsufficientBalance

    with pytest.raises(InsufficientBalance):
        approval_service.create_request(db, employee.id, leave_payload(start="2025-03-01", end="2025-03-31"))
    assert db.query(ApprovalRequest).count() == 0


def test_cancel_pending_request(db, admin, manager, employee):
    request = approval_service.create_request(db, employee.id, loan_payload())
    request = approval_service.cancel_request(db, request.id, employee.id, reason="Not needed", today=TODAY)

    assert request.final_status == "cancelled"
    assert request.cancelled_by_id == employee.id
    assert db.query(Loan).filter(Loan.request_id == request.id).one().status == "cancelled"

    with pytest.raises(RequestAlreadyClosed):
        approval_service.cancel_request(db, request.id, employee.id, today=TODAY)
    with pytest.raises(RequestAlreadyClosed):
        approval_service.approve_step(db, request.id, manager.id, 1, today=TODAY)


def test_only_requester_or_admin_can_cancel(db, admin, hr, manager, employee):
    request = approval_service.create_request(db, employee.id, leave_payload())
    with pytest.raises(NotAuthorized):
        approval_service.cancel_request(db, request.id, manager.id, today=TODAY)

    request = approval_service.cancel_request(db, request.id, hr.id, today=TODAY)
    assert request.final_status == "cancelled"


def test_late_cancel_of_approved_leave_restores_balance(db, admin, manager, employee):
    request = approval_service.create_request(db, employee.id, leave_payload())
    approval_service.approve_step(db, request.id, manager.id, 1, today=TODAY)
    assert annual_balance(db, employee.id) == Decimal("18")

    request = approval_service.cancel_request(db, request.id, employee.id, today=date(2025, 3, 10))

    assert request.final_status == "cancelled"
    assert request.effect_applied is False
    assert request.effect_reversed is True
    assert annual_balance(db, employee.id) == Decimal("21")


def test_cancel_after_leave_started_is_too_late(db, admin, manager, employee):
    request = approval_service.create_request(db, employee.id, leave_payload())
    approval_service.approve_step(db, request.id, manager.id, 1, today=TODAY)

    with pytest.raises(TooLateToCancel):
        approval_service.cancel_request(db, request.id, employee.id, today=date(2025, 3, 11))
    assert annual_balance(db, employee.id) == Decimal("18")


def test_decided_non_leave_cannot_be_cancelled(db, admin, manager, employee):
    request = approval_service.create_request(db, employee.id, leave_payload())
    approval_service.reject_step(db, request.id, manager.id, 1, today=TODAY)
    with pytest.raises(TooLateToCancel):
        approval_service.cancel_request(db, request.id, employee.id, today=TODAY)


def test_override_requires_reason(db, admin, manager, employee):
    request = approval_service.create_request(db, employee.id, leave_payload())
    with pytest.raises(MissingReason):
        approval_service.admin_override(db, request.id, "approved", "", admin.id)
    with pytest.raises(MissingReason):
        approval_service.admin_override(db, request.id, "approved", None, admin.id)


def test_override_requires_admin(db, admin, manager, employee):
    request = approval_service.create_request(db, employee.id, leave_payload())
    with pytest.raises(NotAuthorized):
        approval_service.admin_override(db, request.id, "approved", "urgent", manager.id)


def test_override_effects_are_symmetric(db, admin, hr, manager, employee):
    request = approval_service.create_request(db, employee.id, leave_payload())
    approval_service.approve_step(db, request.id, manager.id, 1, today=TODAY)
    assert annual_balance(db, employee.id) == Decimal("18")

    request = approval_service.admin_override(db, request.id, "rejected", "Approved by mistake", hr.id)
    assert request.final_status == "rejected"
    assert annual_balance(db, employee.id) == Decimal("21")

    request = approval_service.admin_override(db, request.id, "approved", "Re-approved after review", hr.id)
    assert request.final_status == "approved"
    assert annual_balance(db, employee.id) == Decimal("18")

    # same target again changes nothing
    approval_service.admin_override(db, request.id, "approved", "Duplicate click", hr.id)
    assert annual_balance(db, employee.id) == Decimal("18")

    overrides = db.query(AuditLog).filter(AuditLog.action == "OVERRIDE", AuditLog.entity_id == request.id).all()
    assert len(overrides) == 3
    assert all(entry.reason for entry in overrides)


def test_override_cannot_revive_cancelled_request(db, admin, manager, employee):
    request = approval_service.create_request(db, employee.id, leave_payload())
    approval_service.cancel_request(db, request.id, employee.id, today=TODAY)
    with pytest.raises(RequestAlreadyClosed):
        approval_service.admin_override(db, request.id, "approved", "please", admin.id)


def test_allowance_and_penalty_effects(db, admin, hr, manager, employee):
    allowance = approval_service.create_request(db, employee.id, {
        "type": "allowance", "name": "transport", "amount": "150", "is_recurring": True, "start_month": "2025-03",
    })
    approval_service.approve_step(db, allowance.id, manager.id, 1, today=TODAY)
    approval_service.approve_step(db, allowance.id, admin.id, 2, today=TODAY)
    row = db.query(EmployeeAllowance).filter(EmployeeAllowance.source_request_id == allowance.id).one()
    assert row.status == "active"
    assert row.amount == Decimal("150.00")

    approval_service.admin_override(db, allowance.id, "rejected", "Policy change", admin.id)
    db.refresh(row)
    assert row.status == "stopped"

    penalty = approval_service.create_request(db, hr.id, {
        "type": "penalty", "employee_id": employee.id, "amount": "50", "month": "2025-03", "reason": "Late arrivals",
    })
    approval_service.approve_step(db, penalty.id, admin.id, 1, today=TODAY)
    deduction = db.query(EmployeeDeduction).filter(EmployeeDeduction.source_request_id == penalty.id).one()
    assert deduction.employee_id == employee.id
    assert deduction.category == "penalty"
    assert deduction.is_recurring is False


def test_terminal_transitions_are_emitted_after_commit(db, admin, manager, employee):
    events = []
    notifications.subscribe(events.append)

    request = approval_service.create_request(db, employee.id, loan_payload())
    assert events == []

    approval_service.approve_step(db, request.id, manager.id, 1, today=TODAY)
    assert events == []

    approval_service.reject_step(db, request.id, admin.id, 2, today=TODAY)
    assert len(events) == 1
    assert events[0].request_id == request.id
    assert (events[0].before_status, events[0].after_status) == ("pending", "rejected")


def test_failing_subscriber_does_not_break_the_transition(db, admin, manager, employee):
    def broken(event):
        raise RuntimeError("mail server down")

    notifications.subscribe(broken)
    request = approval_service.create_request(db, employee.id, leave_payload())
    request = approval_service.approve_step(db, request.id, manager.id, 1, today=TODAY)
    assert request.final_status == "approved"


def test_failed_check_leaves_no_partial_effect(db, admin, manager, employee):
    request = approval_service.create_request(db, employee.id, leave_payload())
    audit_count = db.query(AuditLog).count()
    with pytest.raises(NotAuthorized):
        approval_service.approve_step(db, request.id, employee.id, 1, today=TODAY)
    assert db.query(AuditLog).count() == audit_count
    db.refresh(request)
    assert request.steps[0].status == "pending"


def test_hard_delete(db, admin, manager, employee):
    request = approval_service.create_request(db, employee.id, loan_payload())
    request_id = request.id

    with pytest.raises(MissingReason):
        approval_service.hard_delete_request(db, request_id, " ", admin.id)
    with pytest.raises(NotAuthorized):
        approval_service.hard_delete_request(db, request_id, "spam", manager.id)

    approval_service.hard_delete_request(db, request_id, "Submitted twice", admin.id)
    assert db.query(ApprovalRequest).filter(ApprovalRequest.id == request_id).first() is None
    assert db.query(Loan).filter(Loan.request_id == request_id).first() is None
    entry = db.query(AuditLog).filter(AuditLog.action == "HARD_DELETE").one()
    assert entry.entity_id == request_id
    assert entry.reason == "Submitted twice"


def test_every_transition_is_audited(db, admin, manager, employee):
    request = approval_service.create_request(db, employee.id, leave_payload())
    approval_service.approve_step(db, request.id, manager.id, 1, today=TODAY)

    actions = [
        entry.action
        for entry in db.query(AuditLog)
        .filter(AuditLog.entity_type == "approval_request", AuditLog.entity_id == request.id)
        .order_by(AuditLog.id)
    ]
    assert actions == ["CREATE", "APPROVE_STEP"]
    create_entry = db.query(AuditLog).filter(AuditLog.action == "CREATE", AuditLog.entity_id == request.id).one()
    assert create_entry.meta_json["settings_version"] == 1
