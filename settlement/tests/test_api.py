"""
End-to-end tests over the HTTP API
"""
from decimal import Decimal

from fastapi import status

from conftest import auth_headers


def leave_body(start="2025-03-10", end="2025-03-12"):
    return {"payload": {"type": "leave", "leave_type": "annual", "start_date": start, "end_date": end}}


def loan_body():
    return {"payload": {"type": "loan", "loan_amount": "1200", "total_installments": 12, "start_month": "2025-04"}}


def test_requires_authentication(client, db):
    response = client.get("/api/v1/approvals")
    assert response.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN)


def test_submit_and_approve_leave(client, db, admin, manager, employee):
    response = client.post("/api/v1/approvals", json=leave_body(), headers=auth_headers(employee))
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["final_status"] == "pending"
    assert data["request_type"] == "leave"
    assert [s["approver_id"] for s in data["steps"]] == [manager.id]
    request_id = data["id"]

    pending = client.get("/api/v1/approvals/pending", headers=auth_headers(manager)).json()
    assert pending["total"] == 1
    assert pending["items"][0]["request"]["id"] == request_id
    assert pending["items"][0]["via_delegation"] is False

    response = client.post(
        f"/api/v1/approvals/{request_id}/approve",
        json={"level": 1, "remarks": "Enjoy"},
        headers=auth_headers(manager),
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["final_status"] == "approved"

    balance = client.get(f"/api/v1/leave-balances/{employee.id}", headers=auth_headers(employee)).json()
    assert Decimal(balance["annual_balance"]) == Decimal("18")


def test_error_envelope_carries_entity_and_state(client, db, admin, manager, backup_manager, employee):
    request_id = client.post("/api/v1/approvals", json=leave_body(), headers=auth_headers(employee)).json()["id"]

    response = client.post(
        f"/api/v1/approvals/{request_id}/approve", json={"level": 1}, headers=auth_headers(backup_manager)
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN
    body = response.json()
    assert body["error"] is True
    assert body["code"] == "NotAuthorized"
    assert body["entity_type"] == "approval_request"
    assert body["entity_id"] == request_id
    assert body["current_state"] == "pending"
    assert body["path"] == f"/api/v1/approvals/{request_id}/approve"

    client.post(f"/api/v1/approvals/{request_id}/reject", json={"level": 1}, headers=auth_headers(manager))
    response = client.post(
        f"/api/v1/approvals/{request_id}/approve", json={"level": 1}, headers=auth_headers(manager)
    )
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["code"] == "RequestAlreadyClosed"
    assert response.json()["current_state"] == "rejected"


def test_override_without_reason_is_rejected(client, db, admin, manager, employee):
    request_id = client.post("/api/v1/approvals", json=leave_body(), headers=auth_headers(employee)).json()["id"]

    response = client.post(
        f"/api/v1/approvals/{request_id}/override",
        json={"target_status": "approved"},
        headers=auth_headers(admin),
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["code"] == "MissingReason"

    response = client.post(
        f"/api/v1/approvals/{request_id}/override",
        json={"target_status": "approved", "reason": "Manager on sick leave"},
        headers=auth_headers(manager),
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.post(
        f"/api/v1/approvals/{request_id}/override",
        json={"target_status": "approved", "reason": "Manager on sick leave"},
        headers=auth_headers(admin),
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["final_status"] == "approved"
    assert response.json()["override_status"] == "approved"


def test_invalid_payload_is_a_validation_error(client, db, admin, manager, employee):
    response = client.post(
        "/api/v1/approvals",
        json={"payload": {"type": "leave", "leave_type": "annual", "start_date": "2025-03-12", "end_date": "2025-03-10"}},
        headers=auth_headers(employee),
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    response = client.post(
        "/api/v1/approvals",
        json={"payload": {"type": "bonus", "amount": "10"}},
        headers=auth_headers(employee),
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json()["error"] is True


def test_employee_cannot_file_for_someone_else(client, db, admin, manager, employee):
    body = leave_body()
    body["requester_id"] = manager.id
    response = client.post("/api/v1/approvals", json=body, headers=auth_headers(employee))
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_employees_only_list_their_own_requests(client, db, admin, manager, employee):
    client.post("/api/v1/approvals", json=leave_body(), headers=auth_headers(employee))
    client.post("/api/v1/approvals", json=loan_body(), headers=auth_headers(manager))

    mine = client.get("/api/v1/approvals", headers=auth_headers(employee)).json()
    assert mine["total"] == 1
    everything = client.get("/api/v1/approvals", headers=auth_headers(admin)).json()
    assert everything["total"] == 2
    loans = client.get("/api/v1/approvals?request_type=loan", headers=auth_headers(admin)).json()
    assert loans["total"] == 1


def test_preview_does_not_persist(client, db, admin, manager, employee):
    response = client.post("/api/v1/approvals/preview", json=loan_body(), headers=auth_headers(employee))
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert [s["approver_id"] for s in data["steps"]] == [manager.id, admin.id]
    assert data["errors"] == []
    assert client.get("/api/v1/approvals", headers=auth_headers(admin)).json()["total"] == 0


def test_cancel_and_hard_delete(client, db, admin, manager, employee):
    request_id = client.post("/api/v1/approvals", json=loan_body(), headers=auth_headers(employee)).json()["id"]
    response = client.post(
        f"/api/v1/approvals/{request_id}/cancel", json={"reason": "Changed my mind"}, headers=auth_headers(employee)
    )
    assert response.json()["final_status"] == "cancelled"

    response = client.delete(f"/api/v1/approvals/{request_id}", headers=auth_headers(admin))
    assert response.status_code == status.HTTP_400_BAD_REQUEST

    response = client.delete(f"/api/v1/approvals/{request_id}?reason=Duplicate", headers=auth_headers(admin))
    assert response.status_code == status.HTTP_204_NO_CONTENT
    response = client.get(f"/api/v1/approvals/{request_id}", headers=auth_headers(admin))
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_settings_update_over_http(client, db, admin, employee):
    response = client.put(
        "/api/v1/approval-settings",
        json={"rules": {"loan": {"required_levels": 1}}},
        headers=auth_headers(employee),
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.put(
        "/api/v1/approval-settings",
        json={"rules": {"loan": {"required_levels": 1}}},
        headers=auth_headers(admin),
    )
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["version"] == 2
    assert data["rules"]["loan"]["required_levels"] == 1
    assert data["rules"]["allowance"]["required_levels"] == 2

    response = client.put(
        "/api/v1/approval-settings",
        json={"rules": {"bonus": {"required_levels": 1}}},
        headers=auth_headers(admin),
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json()["code"] == "InvalidSettings"

    history = client.get("/api/v1/approval-settings/history", headers=auth_headers(admin)).json()
    assert [v["version"] for v in history["items"]] == [2, 1]


def test_delegation_over_http(client, db, admin, manager, backup_manager, employee):
    body = {
        "delegator_id": manager.id,
        "delegate_id": backup_manager.id,
        "active_from": "2025-01-01",
        "active_to": "2025-01-31",
    }
    response = client.post("/api/v1/delegations", json=body, headers=auth_headers(employee))
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.post("/api/v1/delegations", json=body, headers=auth_headers(manager))
    assert response.status_code == status.HTTP_201_CREATED

    response = client.post("/api/v1/delegations", json=body, headers=auth_headers(manager))
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["code"] == "OverlappingDelegation"

    resolved = client.get(
        f"/api/v1/delegations/resolve?approver_id={manager.id}&on_date=2025-01-15", headers=auth_headers(admin)
    ).json()
    assert resolved["effective_approver_id"] == backup_manager.id


def test_payroll_lifecycle_over_http(client, db, admin, hr, employee):
    response = client.post("/api/v1/payroll/2025-06/generate", json={}, headers=auth_headers(employee))
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.post("/api/v1/payroll/2025-06/generate", json={}, headers=auth_headers(hr))
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "draft"

    records = client.get(
        f"/api/v1/payroll/2025-06/records?employee_id={employee.id}", headers=auth_headers(hr)
    ).json()
    assert records["total"] == 1
    assert records["items"][0]["estimated_net"] == "3000.00"

    client.post("/api/v1/payroll/2025-06/finalize", headers=auth_headers(hr))
    response = client.post("/api/v1/payroll/2025-06/generate", json={}, headers=auth_headers(hr))
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["code"] == "MonthNotEditable"
    assert response.json()["current_state"] == "finalized"

    # reopening is reserved to ADMIN
    response = client.post("/api/v1/payroll/2025-06/reopen", json={"reason": "fix"}, headers=auth_headers(hr))
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.post("/api/v1/payroll/2025-06/reopen", json={}, headers=auth_headers(admin))
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["code"] == "MissingReason"

    response = client.post("/api/v1/payroll/2025-06/reopen", json={"reason": "fix"}, headers=auth_headers(admin))
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["reopen_count"] == 1

    summary = client.get("/api/v1/payroll/2025-06/summary", headers=auth_headers(admin)).json()
    assert summary["status"] == "draft"


def test_escalation_scan_endpoint(client, db, admin, employee):
    response = client.post("/api/v1/escalations/scan", headers=auth_headers(employee))
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.post("/api/v1/escalations/scan", headers=auth_headers(admin))
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"escalated": [], "count": 0}


def test_audit_trail_over_http(client, db, admin, manager, employee):
    request_id = client.post("/api/v1/approvals", json=leave_body(), headers=auth_headers(employee)).json()["id"]
    response = client.get(
        f"/api/v1/audit?entity_type=approval_request&entity_id={request_id}", headers=auth_headers(admin)
    )
    assert response.status_code == status.HTTP_200_OK
    assert [e["action"] for e in response.json()["items"]] == ["CREATE"]

    response = client.get("/api/v1/audit", headers=auth_headers(employee))
    assert response.status_code == status.HTTP_403_FORBIDDEN
