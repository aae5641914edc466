"""
Dashboard Blueprint — headline numbers for the portal landing page.

Endpoints:
  GET /api/v1/dashboard/stats          — counts and revenue from stored data
  GET /api/v1/dashboard/activities     — latest audit entries (?limit=10)
  GET /api/v1/dashboard/system-status  — simulated downstream systems
"""

from flask import Blueprint, jsonify, request

from portal.middleware.role_required import require_auth
from portal.services import dashboard_service as svc

dashboard_bp = Blueprint("dashboard_bp", __name__, url_prefix="/api/v1/dashboard")


@dashboard_bp.route("/stats", methods=["GET"])
@require_auth
def stats():
    return jsonify(svc.dashboard_stats()), 200


@dashboard_bp.route("/activities", methods=["GET"])
@require_auth
def activities():
    limit = min(max(request.args.get("limit", 10, type=int), 1), 100)
    items = svc.recent_activities(limit)
    return jsonify({"items": items, "total": len(items)}), 200


@dashboard_bp.route("/system-status", methods=["GET"])
@require_auth
def system_status():
    return jsonify(svc.system_status()), 200
