"""
Tests for overdue escalation
"""
from datetime import timedelta

from settlement.models.approval import ApprovalRequest
from settlement.models.audit_log import AuditLog
from settlement.services import approval_service
from settlement.services.escalation_service import EscalationScanner, list_escalated, scan_overdue
from settlement.services.settings_service import update_settings
from settlement.utils.datetime_utils import now_utc


def leave_payload():
    return {"type": "leave", "leave_type": "sick", "start_date": "2025-05-05", "end_date": "2025-05-05"}


def loan_payload():
    return {"type": "loan", "loan_amount": "600", "total_installments": 6, "start_month": "2025-06"}


def test_overdue_request_is_escalated_once(db, admin, manager, employee):
    request = approval_service.create_request(db, employee.id, leave_payload())
    later = now_utc() + timedelta(days=4)

    assert scan_overdue(db, now=later) == [request.id]
    assert scan_overdue(db, now=later + timedelta(days=1)) == []

    db.refresh(request)
    assert request.escalated is True
    assert request.final_status == "pending"
    assert [r.id for r in list_escalated(db)] == [request.id]

    entries = db.query(AuditLog).filter(AuditLog.action == "ESCALATE").all()
    assert len(entries) == 1
    assert entries[0].entity_id == request.id
    assert entries[0].actor_id is None
    assert entries[0].meta_json["approver_id"] == manager.id
    assert entries[0].meta_json["pending_level"] == 1


def test_escalated_request_stays_actionable(db, admin, manager, employee):
    request = approval_service.create_request(db, employee.id, leave_payload())
    scan_overdue(db, now=now_utc() + timedelta(days=4))

    request = approval_service.approve_step(db, request.id, manager.id, 1)
    assert request.final_status == "approved"
    assert list_escalated(db) == []


def test_request_inside_window_is_not_escalated(db, admin, manager, employee):
    approval_service.create_request(db, employee.id, leave_payload())
    assert scan_overdue(db, now=now_utc() + timedelta(days=2)) == []


def test_wait_restarts_when_previous_level_approves(db, admin, manager, employee):
    request = approval_service.create_request(db, employee.id, loan_payload())
    approval_service.approve_step(db, request.id, manager.id, 1)

    # level 2 has waited less than three days since level 1 acted
    assert scan_overdue(db, now=now_utc() + timedelta(days=2)) == []
    assert scan_overdue(db, now=now_utc() + timedelta(days=4)) == [request.id]


def test_zero_overdue_days_disables_escalation(db, admin, manager, employee):
    update_settings(db, {"leave": {"escalation_overdue_days": 0}}, admin.id)
    approval_service.create_request(db, employee.id, leave_payload())
    assert scan_overdue(db, now=now_utc() + timedelta(days=30)) == []


def test_decided_requests_are_ignored(db, admin, manager, employee):
    request = approval_service.create_request(db, employee.id, leave_payload())
    approval_service.reject_step(db, request.id, manager.id, 1)
    assert scan_overdue(db, now=now_utc() + timedelta(days=10)) == []


def test_scanner_is_single_flight(db, admin, manager, employee):
    approval_service.create_request(db, employee.id, leave_payload())
    scanner = EscalationScanner(lambda: db)

    scanner._lock.acquire()
    try:
        assert scanner.running is True
        assert scanner.run_once(now=now_utc() + timedelta(days=4), db=db) is None
    finally:
        scanner._lock.release()

    assert db.query(ApprovalRequest).filter(ApprovalRequest.escalated.is_(True)).count() == 0
    assert len(scanner.run_once(now=now_utc() + timedelta(days=4), db=db)) == 1
    assert scanner.running is False
