"""
Agent onboarding and KYC review tests.

Tests cover:
  - Agent CRUD, status changes and balance view
  - Paged listing with status / search filters
  - KYC queue, approve (SAP ids minted) and reject (remarks required)
  - KYC role gate
"""

import pytest

from portal.models.audit import AuditLog


def _onboard(client, headers, **overrides):
    body = {"first_name": "Rehema", "last_name": "Mollel",
            "email": "rehema@example.co.tz", "phone": "+255716000001",
            "region": "Mwanza", "credit_limit": 200000}
    body.update(overrides)
    return client.post("/api/v1/agents", json=body, headers=headers)


@pytest.fixture()
def agent_id(client, agent_headers):
    return _onboard(client, agent_headers).get_json()["id"]


# ═══════════════════════════════════════════════════════════════
# AGENTS
# ═══════════════════════════════════════════════════════════════

class TestAgents:
    def test_onboard_starts_pending_kyc(self, client, agent_headers):
        res = _onboard(client, agent_headers)
        assert res.status_code == 201
        agent = res.get_json()
        assert agent["status"] == "pending_kyc"
        assert agent["onboarding_ref_no"].startswith("AGT-ONB-")
        assert agent["create_id"] == "agent"

    def test_onboard_invalid_email(self, client, agent_headers):
        res = _onboard(client, agent_headers, email="not-an-email")
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"

    def test_onboard_requires_auth(self, client):
        assert _onboard(client, {}).status_code == 401

    def test_onboard_missing_fields(self, client, agent_headers):
        res = client.post("/api/v1/agents", json={"first_name": "Solo"}, headers=agent_headers)
        assert res.status_code == 400
        assert set(res.get_json()["details"]["missing"]) == {"last_name", "email", "phone"}

    def test_get_update_delete(self, client, agent_id, agent_headers):
        assert client.get(f"/api/v1/agents/{agent_id}").get_json()["region"] == "Mwanza"

        res = client.put(f"/api/v1/agents/{agent_id}", json={"city": "Ilemela"},
                         headers=agent_headers)
        assert res.status_code == 200
        assert res.get_json()["city"] == "Ilemela"

        res = client.delete(f"/api/v1/agents/{agent_id}", headers=agent_headers)
        assert res.get_json()["message"] == "Agent deleted"
        assert client.get(f"/api/v1/agents/{agent_id}").status_code == 404

    def test_status_change(self, client, agent_id, manager_headers):
        res = client.patch(f"/api/v1/agents/{agent_id}/status", headers=manager_headers,
                           json={"status": "blocked", "message": "Cash shortfall"})
        assert res.status_code == 200
        assert res.get_json()["status"] == "blocked"
        assert res.get_json()["status_message"] == "Cash shortfall"

    def test_status_change_invalid(self, client, agent_id, manager_headers):
        res = client.patch(f"/api/v1/agents/{agent_id}/status", headers=manager_headers,
                           json={"status": "retired"})
        assert res.status_code == 400
        res = client.patch(f"/api/v1/agents/{agent_id}/status", headers=manager_headers,
                           json={})
        assert res.get_json()["error"] == "status is required"

    def test_balance(self, client, agent_id):
        data = client.get(f"/api/v1/agents/{agent_id}/balance").get_json()
        assert data["current_balance"] == 0.0
        assert data["credit_limit"] == 200000.0
        assert data["available_credit"] == 200000.0
        assert data["currency"] == "TZS"

    def test_list_paged_and_filtered(self, client, agent_headers):
        for i in range(3):
            _onboard(client, agent_headers, first_name=f"Agent{i}",
                     email=f"agent{i}@example.co.tz")
        _onboard(client, agent_headers, first_name="Zawadi", email="zawadi@example.co.tz")

        data = client.get("/api/v1/agents?limit=2&page=1").get_json()
        assert data["total"] == 4
        assert data["pages"] == 2
        assert len(data["items"]) == 2

        data = client.get("/api/v1/agents?search=zawadi").get_json()
        assert [a["first_name"] for a in data["items"]] == ["Zawadi"]

        data = client.get("/api/v1/agents?status=approved").get_json()
        assert data["total"] == 0


# ═══════════════════════════════════════════════════════════════
# KYC
# ═══════════════════════════════════════════════════════════════

class TestKyc:
    def test_pending_queue(self, client, agent_id, kyc_headers):
        res = client.get("/api/v1/kyc/pending", headers=kyc_headers)
        assert res.status_code == 200
        assert [a["id"] for a in res.get_json()["items"]] == [agent_id]
        assert client.get("/api/v1/kyc/pending").status_code == 401

    def test_review(self, client, agent_id, kyc_headers):
        res = client.get(f"/api/v1/kyc/review/{agent_id}", headers=kyc_headers)
        assert res.status_code == 200
        assert res.get_json()["status"] == "pending_kyc"

    def test_approve_mints_sap_ids(self, client, agent_id, kyc_headers):
        res = client.post(f"/api/v1/kyc/approve/{agent_id}", headers=kyc_headers,
                          json={"remarks": "Documents verified"})
        assert res.status_code == 200
        data = res.get_json()
        assert data["message"] == "KYC approved successfully"
        agent = data["agent"]
        assert agent["status"] == "approved"
        assert agent["sap_bp_id"] == f"BPA{agent_id:06d}"
        assert agent["sap_ca_id"] == f"CAA{agent_id:06d}"
        assert agent["kyc_reviewed_by"] == "kyc"

        from portal.models import db
        actions = [r.action for r in db.session.query(AuditLog).filter_by(entity_type="agent")]
        assert actions == ["created", "kyc_approved"]

    def test_approve_twice(self, client, agent_id, kyc_headers):
        client.post(f"/api/v1/kyc/approve/{agent_id}", headers=kyc_headers)
        res = client.post(f"/api/v1/kyc/approve/{agent_id}", headers=kyc_headers)
        assert res.status_code == 400
        assert res.get_json()["error"] == "Agent is not pending KYC verification"

    def test_reject_requires_remarks(self, client, agent_id, kyc_headers):
        res = client.post(f"/api/v1/kyc/reject/{agent_id}", headers=kyc_headers, json={})
        assert res.status_code == 400
        assert res.get_json()["error"] == "Rejection remarks are required"

    def test_reject(self, client, agent_id, manager_headers):
        res = client.post(f"/api/v1/kyc/reject/{agent_id}", headers=manager_headers,
                          json={"remarks": "TIN certificate unreadable"})
        assert res.status_code == 200
        assert res.get_json()["agent"]["status"] == "rejected"
        assert res.get_json()["agent"]["kyc_remarks"] == "TIN certificate unreadable"

    @pytest.mark.parametrize("role_headers", ["agent_headers", "finance_headers"])
    def test_non_kyc_roles_forbidden(self, client, agent_id, role_headers, request):
        res = client.post(f"/api/v1/kyc/approve/{agent_id}",
                          headers=request.getfixturevalue(role_headers))
        assert res.status_code == 403
        assert set(res.get_json()["required_roles"]) == {"admin", "manager", "kyc"}

    def test_approve_unknown_agent(self, client, kyc_headers):
        assert client.post("/api/v1/kyc/approve/555", headers=kyc_headers).status_code == 404
