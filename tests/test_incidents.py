"""
Incident tests.

Tests cover:
  - Service desk: SLA hours, routing table, impact / urgency, notifications,
    workflow progression on status updates, work notes, listing with offset paging
  - System incidents: SYS-<year>-<nnn> ids, validation, partial updates with
    status / assignment audit, notes, delete
"""

import pytest

from portal.models.base import utcnow
from portal.services import incident_service as svc

SYSTEM = {
    "title": "CM posting outage",
    "affected_system": "CM",
    "severity": "Major",
    "description": "CM rejects all posting requests with timeout",
    "start_time": "2026-03-01T08:00:00Z",
}


def _ticket(client, headers, **overrides):
    body = {"category": "hardware", "priority": "Medium",
            "short_description": "Decoder does not boot", "user_id": "+255718000001"}
    body.update(overrides)
    return client.post("/api/v1/incidents", json=body, headers=headers)


# ═══════════════════════════════════════════════════════════════
# SERVICE DESK RULES
# ═══════════════════════════════════════════════════════════════

class TestServiceDeskRules:
    @pytest.mark.parametrize("priority, hours", [
        ("Critical", 4), ("High", 24), ("Medium", 72), ("Low", 168), ("Whenever", 72),
    ])
    def test_sla_hours(self, priority, hours):
        assert svc.sla_hours(priority) == hours

    def test_routing(self):
        assert svc.determine_routing("hardware", "Critical") == \
            {"group": "FIELD_SERVICES", "escalation": "IMMEDIATE"}
        assert svc.determine_routing("network", "High") == \
            {"group": "NETWORK_OPERATIONS", "escalation": "1_HOUR"}
        assert svc.determine_routing("billing", "Low") == \
            {"group": "SERVICE_DESK_LEVEL_1", "escalation": "24_HOURS"}

    def test_impact_and_urgency(self):
        assert svc.calculate_impact("High", "network") == "HIGH"
        assert svc.calculate_impact("High", "access") == "MEDIUM"
        assert svc.calculate_impact("Low", "hardware") == "LOW"
        assert svc.calculate_urgency("Critical") == "URGENT"
        assert svc.calculate_urgency("Unknown") == "MEDIUM"

    def test_workflow_keeps_completion_stamps(self):
        first = svc.build_workflow("OPEN", "agent", "FIELD_SERVICES")
        assert [s["status"] for s in first] == \
            ["COMPLETED", "PENDING", "NOT_STARTED", "NOT_STARTED", "NOT_STARTED"]
        later = svc.build_workflow("RESOLVED", "agent", "FIELD_SERVICES", first)
        assert later[0]["completed_at"] == first[0]["completed_at"]
        assert [s["status"] for s in later][-1] == "PENDING"


# ═══════════════════════════════════════════════════════════════
# SERVICE DESK API
# ═══════════════════════════════════════════════════════════════

class TestServiceIncidents:
    def test_create_routes_and_sets_sla(self, client, agent_headers):
        res = _ticket(client, agent_headers, priority="Critical")
        assert res.status_code == 201
        data = res.get_json()
        incident = data["incident"]
        assert incident["incident_number"] == "INC001001"
        assert incident["sla_hours"] == 4
        assert incident["routing"] == {"group": "FIELD_SERVICES", "escalation": "IMMEDIATE"}
        assert incident["metadata"]["impact"] == "HIGH"
        assert incident["opened_by"] == "agent"
        assert data["message"] == "Incident INC001001 has been created and routed to FIELD_SERVICES"
        assert [n["type"] for n in data["notifications"]] == ["EMAIL", "SMS"]

    def test_low_priority_email_only(self, client, agent_headers):
        data = _ticket(client, agent_headers, priority="Low").get_json()
        assert [n["type"] for n in data["notifications"]] == ["EMAIL"]
        assert data["incident"]["sla_hours"] == 168

    def test_explicit_opened_drives_target(self, client, agent_headers):
        incident = _ticket(client, agent_headers, priority="High",
                           opened="2026-01-01T00:00:00Z").get_json()["incident"]
        assert incident["target_resolve_date"].startswith("2026-01-02T00:00:00")

    def test_create_validation(self, client, agent_headers):
        res = client.post("/api/v1/incidents", json={"category": "hardware"},
                          headers=agent_headers)
        assert res.status_code == 400
        assert _ticket(client, agent_headers, status="PARKED").status_code == 400
        assert _ticket(client, {}).status_code == 401

    def test_update_status_and_work_note(self, client, agent_headers, manager_headers):
        incident_id = _ticket(client, agent_headers).get_json()["incident"]["id"]
        res = client.patch(f"/api/v1/incidents/{incident_id}", headers=manager_headers, json={
            "status": "RESOLVED", "assigned_to": "tech01", "work_note": "Replaced PSU",
        })
        assert res.status_code == 200
        incident = res.get_json()
        assert incident["status"] == "RESOLVED"
        assert incident["resolved_at"] is not None
        assert incident["assigned_to"] == "tech01"
        assert incident["work_log"][0]["note"] == "Replaced PSU"
        assert incident["work_log"][0]["author"] == "manager"

        reopened = client.patch(f"/api/v1/incidents/{incident_id}", headers=manager_headers,
                                json={"status": "IN_PROGRESS"}).get_json()
        assert reopened["resolved_at"] is None

    def test_update_unknown(self, client, manager_headers):
        res = client.patch("/api/v1/incidents/404", json={"status": "CLOSED"},
                           headers=manager_headers)
        assert res.status_code == 404

    def test_list_with_offset(self, client, agent_headers):
        for priority in ("Low", "High", "High"):
            _ticket(client, agent_headers, priority=priority)
        data = client.get("/api/v1/incidents?priority=High&limit=1").get_json()
        assert data["total"] == 2
        assert len(data["incidents"]) == 1
        assert data["pagination"] == {"offset": 0, "limit": 1, "has_more": True}

        assert client.get("/api/v1/incidents/1").get_json()["priority"] == "Low"


# ═══════════════════════════════════════════════════════════════
# SYSTEM INCIDENTS
# ═══════════════════════════════════════════════════════════════

class TestSystemIncidents:
    def test_create_sequential_ids(self, client, agent_headers):
        year = utcnow().year
        first = client.post("/api/v1/system-incidents", json=SYSTEM, headers=agent_headers)
        assert first.status_code == 201
        assert first.get_json()["incident_id"] == f"SYS-{year}-001"
        assert first.get_json()["status"] == "Open"
        second = client.post("/api/v1/system-incidents", json=SYSTEM, headers=agent_headers)
        assert second.get_json()["incident_id"] == f"SYS-{year}-002"

    def test_id_not_reused_after_delete(self, client, agent_headers):
        year = utcnow().year
        first = client.post("/api/v1/system-incidents", json=SYSTEM,
                            headers=agent_headers).get_json()
        second = client.post("/api/v1/system-incidents", json=SYSTEM,
                             headers=agent_headers).get_json()
        client.delete(f"/api/v1/system-incidents/{first['id']}", headers=agent_headers)
        third = client.post("/api/v1/system-incidents", json=SYSTEM,
                            headers=agent_headers).get_json()
        assert second["incident_id"] == f"SYS-{year}-002"
        assert third["incident_id"] == f"SYS-{year}-003"

    def test_id_not_reused_after_deleting_newest(self, client, agent_headers):
        year = utcnow().year
        client.post("/api/v1/system-incidents", json=SYSTEM, headers=agent_headers)
        second = client.post("/api/v1/system-incidents", json=SYSTEM,
                             headers=agent_headers).get_json()
        res = client.delete(f"/api/v1/system-incidents/{second['id']}", headers=agent_headers)
        assert res.status_code == 204
        third = client.post("/api/v1/system-incidents", json=SYSTEM,
                            headers=agent_headers).get_json()
        assert second["incident_id"] == f"SYS-{year}-002"
        assert third["incident_id"] == f"SYS-{year}-003"

    @pytest.mark.parametrize("overrides, message", [
        ({"title": "CM"}, "Title must be at least 5 characters"),
        ({"description": "short"}, "Description must be at least 10 characters"),
        ({"impacted_customers": -1}, "impacted_customers must be a non-negative integer"),
        ({"affected_system": "MAINFRAME"}, "affected_system must be one of: "
                                           "Portal, CM, SOM, CC, CI, NAGRA"),
        ({"start_time": "not-a-date"}, "start_time must be an ISO-8601 date/time"),
    ])
    def test_validation(self, client, agent_headers, overrides, message):
        res = client.post("/api/v1/system-incidents", json=dict(SYSTEM, **overrides),
                          headers=agent_headers)
        assert res.status_code == 400
        assert res.get_json()["error"] == message

    def test_missing_start_time(self, client, agent_headers):
        body = {k: v for k, v in SYSTEM.items() if k != "start_time"}
        res = client.post("/api/v1/system-incidents", json=body, headers=agent_headers)
        assert res.status_code == 400
        assert res.get_json()["details"]["missing"] == ["start_time"]

    def test_update_audits_status_and_assignment(self, client, agent_headers, manager_headers):
        pk = client.post("/api/v1/system-incidents", json=SYSTEM,
                         headers=agent_headers).get_json()["id"]
        res = client.put(f"/api/v1/system-incidents/{pk}", headers=manager_headers, json={
            "status": "Investigating", "assigned_owner": "noc.lead", "owner_team": "Technical",
        })
        assert res.status_code == 200
        assert res.get_json()["status"] == "Investigating"

        audit = client.get(f"/api/v1/system-incidents/{pk}/audit").get_json()
        actions = [row["action"] for row in audit["items"]]
        assert actions == ["created", "status_changed", "assigned", "updated"]
        assert audit["items"][1]["old_value"] == "Open"
        assert audit["items"][1]["new_value"] == "Investigating"

    def test_update_rejects_bad_status(self, client, agent_headers):
        pk = client.post("/api/v1/system-incidents", json=SYSTEM,
                         headers=agent_headers).get_json()["id"]
        res = client.put(f"/api/v1/system-incidents/{pk}", headers=agent_headers,
                         json={"status": "Fixed"})
        assert res.status_code == 400

    def test_notes(self, client, agent_headers, manager_headers):
        pk = client.post("/api/v1/system-incidents", json=SYSTEM,
                         headers=agent_headers).get_json()["id"]
        res = client.post(f"/api/v1/system-incidents/{pk}/notes", headers=manager_headers,
                          json={"note": "Timeouts traced to DB pool", "is_rca": True})
        assert res.status_code == 201
        assert res.get_json()["user_name"] == "manager"
        assert res.get_json()["is_rca"] is True

        notes = client.get(f"/api/v1/system-incidents/{pk}/notes").get_json()
        assert notes["total"] == 1

        empty = client.post(f"/api/v1/system-incidents/{pk}/notes", headers=manager_headers,
                            json={"note": "   "})
        assert empty.status_code == 400

    def test_list_filters_and_delete(self, client, agent_headers):
        client.post("/api/v1/system-incidents", json=SYSTEM, headers=agent_headers)
        pk = client.post("/api/v1/system-incidents",
                         json=dict(SYSTEM, affected_system="SOM", severity="Minor"),
                         headers=agent_headers).get_json()["id"]
        data = client.get("/api/v1/system-incidents?affected_system=SOM").get_json()
        assert [i["id"] for i in data["items"]] == [pk]

        res = client.delete(f"/api/v1/system-incidents/{pk}", headers=agent_headers)
        assert res.status_code == 204
        assert client.get(f"/api/v1/system-incidents/{pk}").status_code == 404
