"""
Customer transfer workflow tests.

Tests cover:
  - Eligibility: validate endpoint, per-customer summary, every ineligible reason
  - Create: eligibility re-check, CLEARED invoice → manual intervention
  - Decision: 404 before 401/403, APPROVED/REJECTED, INPROGRESS-only
  - Downstream jobs: submit → process → complete
  - Status endpoint with audit trail, listing with per-status counts
"""

import pytest

from portal.models.transfer import CustomerTransfer
from portal.services.job_queue import JobQueue

BASE = "/api/v1/customer-transfer"


@pytest.fixture()
def parties(make_customer, make_payment):
    source = make_customer(bp="BP200001")
    target = make_customer(bp="BP200002")
    make_payment(source, amount=10000.0)    # total 11800
    return source, target


def _body(source, target, **overrides):
    body = {
        "source_bp_id": source.sap_bp_id,
        "target_bp_id": target.sap_bp_id,
        "source_customer_id": source.id,
        "target_customer_id": target.id,
        "transfer_amount": 5000,
        "transfer_reason": "Paid into the wrong account",
    }
    body.update(overrides)
    return body


def _create(client, headers, source, target, **overrides):
    return client.post(BASE, json=_body(source, target, **overrides), headers=headers)


# ═══════════════════════════════════════════════════════════════
# ELIGIBILITY
# ═══════════════════════════════════════════════════════════════

class TestValidateTransfer:
    def test_eligible(self, client, parties):
        source, target = parties
        res = client.post(f"{BASE}/validate", json={
            "source_customer_id": source.id, "target_customer_id": target.id, "amount": 5000,
        })
        assert res.status_code == 200
        data = res.get_json()
        assert data["eligible"] is True
        assert data["reason"] is None
        assert data["source_customer"]["sap_bp_id"] == "BP200001"
        assert data["target_customer"]["sap_bp_id"] == "BP200002"
        assert len(data["available_payments"]) == 1

    def test_missing_fields(self, client):
        res = client.post(f"{BASE}/validate", json={"source_customer_id": 1})
        assert res.status_code == 400
        assert res.get_json()["error"] == \
            "Source customer ID, target customer ID, and amount are required"

    def test_unknown_source(self, client, parties):
        _, target = parties
        data = client.post(f"{BASE}/validate", json={
            "source_customer_id": 999, "target_customer_id": target.id, "amount": 10,
        }).get_json()
        assert data == {"eligible": False, "reason": "Source customer not found"}

    def test_unknown_target(self, client, parties):
        source, _ = parties
        data = client.post(f"{BASE}/validate", json={
            "source_customer_id": source.id, "target_customer_id": 999, "amount": 10,
        }).get_json()
        assert data["reason"] == "Target customer not found"

    def test_same_customer(self, client, parties):
        source, _ = parties
        data = client.post(f"{BASE}/validate", json={
            "source_customer_id": source.id, "target_customer_id": source.id, "amount": 10,
        }).get_json()
        assert data["eligible"] is False
        assert data["reason"] == "Cannot transfer payment to the same customer"

    def test_amount_above_any_payment(self, client, parties):
        source, target = parties
        data = client.post(f"{BASE}/validate", json={
            "source_customer_id": source.id, "target_customer_id": target.id, "amount": 20000,
        }).get_json()
        assert data["eligible"] is False
        assert data["reason"] == "No eligible payments found for the source customer"

    def test_only_completed_payments_count(self, client, make_customer, make_payment):
        source = make_customer()
        target = make_customer()
        make_payment(source, amount=50000.0, status="CANCELLED")
        data = client.post(f"{BASE}/validate", json={
            "source_customer_id": source.id, "target_customer_id": target.id, "amount": 100,
        }).get_json()
        assert data["eligible"] is False

    def test_customer_eligibility_summary(self, client, parties, make_payment):
        source, _ = parties
        make_payment(source, amount=1000.0, status="FAILED")
        res = client.get(f"{BASE}/customer/{source.id}/eligibility")
        assert res.status_code == 200
        data = res.get_json()
        assert data["customer"]["id"] == source.id
        assert data["eligibility"]["has_active_payments"] is True
        assert data["eligibility"]["total_payments"] == 1
        assert data["eligibility"]["total_amount"] == pytest.approx(11800.0)
        assert len(data["recent_payments"]) == 1

    def test_customer_eligibility_unknown(self, client):
        assert client.get(f"{BASE}/customer/404/eligibility").status_code == 404


# ═══════════════════════════════════════════════════════════════
# CREATE
# ═══════════════════════════════════════════════════════════════

class TestCreateTransfer:
    def test_create_inprogress_and_queue_submit(self, client, parties, agent_headers):
        source, target = parties
        res = _create(client, agent_headers, source, target)
        assert res.status_code == 201
        transfer = res.get_json()
        assert transfer["status"] == "INPROGRESS"
        assert transfer["transfer_amount"] == 5000.0
        assert transfer["currency"] == "TZS"
        assert transfer["manual_intervention_required"] is False
        assert [j["job_name"] for j in JobQueue.pending()] == ["transfer.submit_to_cm"]

    def test_create_requires_auth(self, client, parties):
        source, target = parties
        assert _create(client, {}, source, target).status_code == 401

    def test_create_missing_fields(self, client, agent_headers):
        res = client.post(BASE, json={"transfer_amount": 100}, headers=agent_headers)
        assert res.status_code == 400
        assert res.get_json()["error"] == "All required fields must be provided"

    @pytest.mark.parametrize("overrides", [
        {"transfer_reason": 12345},
        {"transfer_amount": "NaN"},
        {"source_customer_id": "abc"},
    ])
    def test_create_bad_values(self, client, parties, agent_headers, overrides):
        source, target = parties
        res = _create(client, agent_headers, source, target, **overrides)
        assert res.status_code == 400
        assert JobQueue.pending() == []

    def test_create_not_eligible_carries_reason(self, client, parties, agent_headers):
        source, target = parties
        res = _create(client, agent_headers, source, target, transfer_amount=99999)
        assert res.status_code == 400
        data = res.get_json()
        assert data["error"] == "Transfer not eligible"
        assert data["reason"] == "No eligible payments found for the source customer"
        assert JobQueue.pending() == []

    def test_cleared_invoice_needs_manual_intervention(self, client, parties, agent_headers):
        source, target = parties
        res = _create(client, agent_headers, source, target, invoice_number="INV-CLEARED-001")
        assert res.status_code == 201
        transfer = res.get_json()
        assert transfer["status"] == "APPROVED"
        assert transfer["invoice_status"] == "CLEARED"
        assert transfer["manual_intervention_required"] is True
        assert transfer["cm_status"] == "MANUAL_INTERVENTION_REQUIRED"
        assert JobQueue.pending() == []

    def test_pending_invoice_follows_normal_flow(self, client, parties, agent_headers):
        source, target = parties
        transfer = _create(client, agent_headers, source, target,
                           invoice_number="INV-OPEN-777").get_json()
        assert transfer["status"] == "INPROGRESS"
        assert transfer["invoice_status"] == "PENDING"


# ═══════════════════════════════════════════════════════════════
# DECISION
# ═══════════════════════════════════════════════════════════════

class TestDecideTransfer:
    def test_unknown_transfer_is_404_even_without_user(self, client):
        res = client.patch(f"{BASE}/9999/status", json={"status": "APPROVED"})
        assert res.status_code == 404

    def test_requires_user(self, client, parties, agent_headers):
        source, target = parties
        tid = _create(client, agent_headers, source, target).get_json()["id"]
        res = client.patch(f"{BASE}/{tid}/status", json={"status": "APPROVED"})
        assert res.status_code == 401

    def test_agent_cannot_approve(self, client, parties, agent_headers):
        source, target = parties
        tid = _create(client, agent_headers, source, target).get_json()["id"]
        res = client.patch(f"{BASE}/{tid}/status", json={"status": "APPROVED"},
                           headers=agent_headers)
        assert res.status_code == 403
        data = res.get_json()
        assert data["error"] == "Insufficient permissions for transfer approval"
        assert set(data["required_roles"]) == {"admin", "manager", "finance"}

    def test_invalid_status(self, client, parties, agent_headers, manager_headers):
        source, target = parties
        tid = _create(client, agent_headers, source, target).get_json()["id"]
        res = client.patch(f"{BASE}/{tid}/status", json={"status": "MAYBE"},
                           headers=manager_headers)
        assert res.status_code == 400
        assert res.get_json()["error"] == "status must be one of: APPROVED, REJECTED"

    def test_reject(self, client, parties, agent_headers, manager_headers):
        source, target = parties
        tid = _create(client, agent_headers, source, target).get_json()["id"]
        res = client.patch(f"{BASE}/{tid}/status", headers=manager_headers,
                           json={"status": "REJECTED", "reason": "Customer withdrew request"})
        assert res.status_code == 200
        data = res.get_json()
        assert data["message"] == "Transfer rejected successfully"
        assert data["transfer"]["status"] == "REJECTED"
        assert data["transfer"]["cm_status"] == "REJECTED"
        assert data["transfer"]["decision_reason"] == "Customer withdrew request"

    def test_cannot_decide_twice(self, client, parties, agent_headers, manager_headers):
        source, target = parties
        tid = _create(client, agent_headers, source, target).get_json()["id"]
        client.patch(f"{BASE}/{tid}/status", json={"status": "REJECTED"},
                     headers=manager_headers)
        res = client.patch(f"{BASE}/{tid}/status", json={"status": "APPROVED"},
                           headers=manager_headers)
        assert res.status_code == 400
        assert res.get_json()["error"] == "Cannot update transfer with status: REJECTED"

    def test_manual_transfer_cannot_be_decided(self, client, parties, agent_headers,
                                               admin_headers):
        source, target = parties
        tid = _create(client, agent_headers, source, target,
                      invoice_number="INV-CLEARED-001").get_json()["id"]
        res = client.patch(f"{BASE}/{tid}/status", json={"status": "APPROVED"},
                           headers=admin_headers)
        assert res.status_code == 400


# ═══════════════════════════════════════════════════════════════
# DOWNSTREAM
# ═══════════════════════════════════════════════════════════════

class TestTransferDownstream:
    def test_full_happy_path(self, client, parties, agent_headers, finance_headers, fresh):
        source, target = parties
        tid = _create(client, agent_headers, source, target).get_json()["id"]

        JobQueue.run_pending()
        transfer = fresh(CustomerTransfer, tid)
        assert transfer.status == "INPROGRESS"
        assert transfer.cm_status == "PROCESSING"
        assert transfer.fica_status == "PENDING"
        assert transfer.request_id.startswith("CM-")

        res = client.patch(f"{BASE}/{tid}/status", json={"status": "APPROVED"},
                           headers=finance_headers)
        assert res.get_json()["message"] == "Transfer approved successfully"
        assert res.get_json()["transfer"]["cm_status"] == "APPROVED"

        results = JobQueue.run_pending()
        assert [r["job_name"] for r in results] == ["transfer.process", "transfer.complete"]
        transfer = fresh(CustomerTransfer, tid)
        assert transfer.status == "COMPLETED"
        assert transfer.cm_status == "COMPLETED"
        assert transfer.fica_status == "COMPLETED"
        assert transfer.som_status == "COMPLETED"

    def test_submit_skipped_after_rejection(self, client, parties, agent_headers,
                                            manager_headers, fresh):
        source, target = parties
        tid = _create(client, agent_headers, source, target).get_json()["id"]
        client.patch(f"{BASE}/{tid}/status", json={"status": "REJECTED"},
                     headers=manager_headers)
        results = JobQueue.run_pending()
        assert results[0]["result"]["skipped"] is True
        assert fresh(CustomerTransfer, tid).cm_status == "REJECTED"

    def test_status_endpoint_lists_audit(self, client, parties, agent_headers,
                                         finance_headers):
        source, target = parties
        tid = _create(client, agent_headers, source, target).get_json()["id"]
        JobQueue.run_pending()
        client.patch(f"{BASE}/{tid}/status", json={"status": "APPROVED"},
                     headers=finance_headers)
        JobQueue.run_pending()

        res = client.get(f"{BASE}/{tid}/status")
        assert res.status_code == 200
        data = res.get_json()
        assert data["current_status"]["transfer_status"] == "COMPLETED"
        actions = [row["action"] for row in data["audit_trail"]]
        assert actions[0] == "TRANSFER_INITIATED"
        assert "CM_STATUS_UPDATE" in actions
        assert "FICA_STATUS_UPDATE" in actions
        assert actions[-1] == "STATUS_UPDATED"


# ═══════════════════════════════════════════════════════════════
# LISTING
# ═══════════════════════════════════════════════════════════════

class TestTransferListing:
    def test_list_with_counts(self, client, parties, agent_headers, manager_headers):
        source, target = parties
        first = _create(client, agent_headers, source, target).get_json()["id"]
        _create(client, agent_headers, source, target, transfer_amount=100)
        client.patch(f"{BASE}/{first}/status", json={"status": "REJECTED"},
                     headers=manager_headers)

        data = client.get(BASE).get_json()
        assert data["total"] == 2
        assert data["by_status"] == {"INPROGRESS": 1, "REJECTED": 1}

        data = client.get(f"{BASE}?status=REJECTED").get_json()
        assert [t["id"] for t in data["items"]] == [first]

    def test_get_single(self, client, parties, agent_headers):
        source, target = parties
        tid = _create(client, agent_headers, source, target).get_json()["id"]
        assert client.get(f"{BASE}/{tid}").get_json()["id"] == tid
        assert client.get(f"{BASE}/31337").status_code == 404
