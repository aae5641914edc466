"""
Health, dashboard and cross-cutting HTTP behaviour.

Tests cover:
  - Health / readiness / liveness probes (including a database failure)
  - Dashboard stats, recent activity, downstream system status
  - JSON error bodies for 404 / 405 / 415 / 500 and database errors
  - Security and timing response headers
"""

from types import SimpleNamespace

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError


# ═══════════════════════════════════════════════════════════════
# HEALTH
# ═══════════════════════════════════════════════════════════════

class TestHealth:
    def test_health(self, client):
        res = client.get("/api/v1/health")
        assert res.status_code == 200
        assert res.get_json() == {"status": "ok", "app": "Pay-TV Back-Office Portal"}

    def test_ready(self, client):
        assert client.get("/api/v1/health/ready").get_json() == {"status": "ok"}

    def test_live(self, client):
        res = client.get("/api/v1/health/live")
        assert res.status_code == 200
        checks = res.get_json()["checks"]
        assert checks["database"]["status"] == "ok"
        assert checks["job_queue"] == {"status": "ok", "mode": "manual", "pending": 0}
        assert checks["app"]["testing"] is True

    def test_live_reports_database_failure(self, client, monkeypatch):
        def _fail(*args, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        fake_db = SimpleNamespace(text=text,
                                  session=SimpleNamespace(execute=_fail, rollback=lambda: None))
        monkeypatch.setattr("portal.blueprints.health_bp.db", fake_db)
        res = client.get("/api/v1/health/live")
        assert res.status_code == 503
        data = res.get_json()
        assert data["status"] == "degraded"
        assert data["checks"]["database"]["status"] == "error"


# ═══════════════════════════════════════════════════════════════
# DASHBOARD
# ═══════════════════════════════════════════════════════════════

class TestDashboard:
    def test_requires_auth(self, client):
        for path in ("stats", "activities", "system-status"):
            assert client.get(f"/api/v1/dashboard/{path}").status_code == 401

    def test_stats_from_stored_rows(self, client, make_customer, make_payment, user_headers):
        customer = make_customer()
        make_payment(customer, amount=1000.0)
        make_payment(customer, amount=500.0, status="FAILED")
        stats = client.get("/api/v1/dashboard/stats", headers=user_headers).get_json()
        assert stats["total_customers"] == 1
        assert stats["total_payments"] == 2
        assert stats["total_revenue"] == pytest.approx(1180.0)
        assert stats["pending_adjustments"] == 0
        assert stats["open_system_incidents"] == 0

    def test_activities_are_latest_audit_rows(self, client, agent_headers, user_headers):
        for i in range(3):
            client.post("/api/v1/agents", headers=agent_headers, json={
                "first_name": f"A{i}", "last_name": "B", "email": f"a{i}@x.tz", "phone": "1",
            })
        data = client.get("/api/v1/dashboard/activities?limit=2",
                          headers=user_headers).get_json()
        assert data["total"] == 2
        assert all(row["entity_type"] == "agent" for row in data["items"])
        assert data["items"][0]["id"] > data["items"][1]["id"]

    def test_system_status_marks_degraded(self, client, agent_headers, user_headers):
        client.post("/api/v1/system-incidents", headers=agent_headers, json={
            "title": "NAGRA key sync failing", "affected_system": "NAGRA",
            "severity": "Critical", "description": "Entitlements are not reaching decoders",
            "start_time": "2026-02-01T10:00:00Z",
        })
        data = client.get("/api/v1/dashboard/system-status", headers=user_headers).get_json()
        systems = {s["system"]: s["status"] for s in data["systems"]}
        assert systems["NAGRA"] == "DEGRADED"
        assert systems["CM"] == "ONLINE"
        assert [i["affected_system"] for i in data["open_incidents"]] == ["NAGRA"]
        assert "requests" in data["api"]


# ═══════════════════════════════════════════════════════════════
# ERRORS
# ═══════════════════════════════════════════════════════════════

class TestErrorHandling:
    def test_unknown_route_is_json_404(self, client):
        res = client.get("/api/v1/does-not-exist")
        assert res.status_code == 404
        assert res.get_json() == {"error": "Not found", "code": "ERR_NOT_FOUND",
                                  "path": "/api/v1/does-not-exist"}

    def test_method_not_allowed(self, client):
        res = client.delete("/api/v1/health")
        assert res.status_code == 405
        assert res.get_json()["error"] == "Method not allowed"
        assert res.get_json()["code"] == "ERR_METHOD_NOT_ALLOWED"

    def test_non_json_body_rejected(self, client, agent_headers):
        res = client.post("/api/v1/adjustments", data="bp_id=1",
                          content_type="text/plain",
                          headers=agent_headers)
        assert res.status_code == 415
        assert res.get_json()["error"] == "Content-Type must be application/json"
        assert res.get_json()["code"] == "ERR_UNSUPPORTED_MEDIA_TYPE"

    def test_service_errors_carry_code(self, client):
        res = client.get("/api/v1/adjustments/12345")
        assert res.get_json() == {"error": "Adjustment not found", "code": "ERR_NOT_FOUND"}

    def test_database_error_is_500(self, client, user_headers, monkeypatch):
        def _boom():
            raise SQLAlchemyError("connection reset")

        monkeypatch.setattr("portal.services.dashboard_service.dashboard_stats", _boom)
        res = client.get("/api/v1/dashboard/stats", headers=user_headers)
        assert res.status_code == 500
        assert res.get_json() == {"error": "Database error", "code": "ERR_DATABASE"}

    def test_unexpected_error_is_json_500(self, app, client, user_headers, monkeypatch):
        def _boom():
            raise RuntimeError("unexpected")

        monkeypatch.setattr("portal.services.dashboard_service.dashboard_stats", _boom)
        monkeypatch.setitem(app.config, "PROPAGATE_EXCEPTIONS", False)
        res = client.get("/api/v1/dashboard/stats", headers=user_headers)
        assert res.status_code == 500
        assert res.get_json() == {"error": "Internal server error", "code": "ERR_INTERNAL"}


# ═══════════════════════════════════════════════════════════════
# HEADERS
# ═══════════════════════════════════════════════════════════════

class TestResponseHeaders:
    def test_security_headers(self, client):
        res = client.get("/api/v1/health")
        assert res.headers["X-Content-Type-Options"] == "nosniff"
        assert res.headers["X-Frame-Options"] == "DENY"
        assert "default-src 'none'" in res.headers["Content-Security-Policy"]

    def test_request_id_is_echoed(self, client):
        res = client.get("/api/v1/health", headers={"X-Request-ID": "trace-42"})
        assert res.headers["X-Request-ID"] == "trace-42"
        assert float(res.headers["X-Request-Duration-Ms"]) >= 0
