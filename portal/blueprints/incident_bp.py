"""
Incident Blueprint — service-desk tickets and system outages.

Service desk:
  POST   /api/v1/incidents                         — open a ticket (SLA + routing)
  GET    /api/v1/incidents                         — list (?status=&priority=&...&offset=&limit=)
  GET    /api/v1/incidents/<id>                    — single ticket
  PATCH  /api/v1/incidents/<id>                    — status / assignment / work note

System incidents:
  GET    /api/v1/system-incidents                  — list (?status=&severity=&affected_system=)
  POST   /api/v1/system-incidents                  — record an outage
  GET    /api/v1/system-incidents/<id>             — single incident
  PUT    /api/v1/system-incidents/<id>             — update
  DELETE /api/v1/system-incidents/<id>             — delete (204)
  GET    /api/v1/system-incidents/<id>/notes       — notes
  POST   /api/v1/system-incidents/<id>/notes       — add note
  GET    /api/v1/system-incidents/<id>/audit       — audit trail
"""

from flask import Blueprint, jsonify, request

from portal.middleware.role_required import current_user, current_username, require_auth
from portal.services import incident_service as svc

incident_bp = Blueprint("incident_bp", __name__, url_prefix="/api/v1")

_SERVICE_FILTERS = ("status", "priority", "assignment_group", "assigned_to", "client", "category")
_SYSTEM_FILTERS = ("status", "severity", "affected_system")


# ═════════════════════════════════════════════════════════════════════════════
# SERVICE DESK
# ═════════════════════════════════════════════════════════════════════════════

@incident_bp.route("/incidents", methods=["POST"])
@require_auth
def create_incident():
    """Body: { category, priority, short_description, client?, sub_category?, ... }"""
    data = request.get_json(silent=True) or {}
    return jsonify(svc.create_service_incident(data, current_username())), 201


@incident_bp.route("/incidents", methods=["GET"])
def list_incidents():
    offset = max(request.args.get("offset", 0, type=int), 0)
    limit = min(max(request.args.get("limit", 50, type=int), 1), 500)
    filters = {k: request.args.get(k) for k in _SERVICE_FILTERS}
    return jsonify(svc.list_service_incidents(filters, offset=offset, limit=limit)), 200


@incident_bp.route("/incidents/<int:incident_id>", methods=["GET"])
def get_incident(incident_id):
    return jsonify(svc.get_service_incident(incident_id)), 200


@incident_bp.route("/incidents/<int:incident_id>", methods=["PATCH"])
@require_auth
def update_incident(incident_id):
    data = request.get_json(silent=True) or {}
    return jsonify(svc.update_service_incident(incident_id, data, current_username())), 200


# ═════════════════════════════════════════════════════════════════════════════
# SYSTEM INCIDENTS
# ═════════════════════════════════════════════════════════════════════════════

@incident_bp.route("/system-incidents", methods=["GET"])
def list_system_incidents():
    filters = {k: request.args.get(k) for k in _SYSTEM_FILTERS}
    items = svc.list_system_incidents(filters)
    return jsonify({"items": items, "total": len(items)}), 200


@incident_bp.route("/system-incidents", methods=["POST"])
@require_auth
def create_system_incident():
    """Body: { title, affected_system, severity, description, start_time, ... }"""
    data = request.get_json(silent=True) or {}
    return jsonify(svc.create_system_incident(data, current_username())), 201


@incident_bp.route("/system-incidents/<int:pk>", methods=["GET"])
def get_system_incident(pk):
    return jsonify(svc.get_system_incident(pk)), 200


@incident_bp.route("/system-incidents/<int:pk>", methods=["PUT"])
@require_auth
def update_system_incident(pk):
    data = request.get_json(silent=True) or {}
    return jsonify(svc.update_system_incident(pk, data, current_username())), 200


@incident_bp.route("/system-incidents/<int:pk>", methods=["DELETE"])
@require_auth
def delete_system_incident(pk):
    svc.delete_system_incident(pk)
    return "", 204


@incident_bp.route("/system-incidents/<int:pk>/notes", methods=["GET"])
def list_notes(pk):
    items = svc.list_notes(pk)
    return jsonify({"items": items, "total": len(items)}), 200


@incident_bp.route("/system-incidents/<int:pk>/notes", methods=["POST"])
@require_auth
def add_note(pk):
    """Body: { "note": "...", "is_rca"? }"""
    data = request.get_json(silent=True) or {}
    return jsonify(svc.add_note(pk, data, current_user())), 201


@incident_bp.route("/system-incidents/<int:pk>/audit", methods=["GET"])
def incident_audit(pk):
    items = svc.incident_audit(pk)
    return jsonify({"items": items, "total": len(items)}), 200
