"""
Agent Blueprint — agent onboarding and KYC review.

Endpoints:
  GET    /api/v1/agents                  — list (?status=&region=&search=&page=&limit=)
  POST   /api/v1/agents                  — onboard agent (starts pending_kyc)
  GET    /api/v1/agents/<id>             — single agent
  PUT    /api/v1/agents/<id>             — update profile fields
  DELETE /api/v1/agents/<id>             — delete
  PATCH  /api/v1/agents/<id>/status      — change status
  GET    /api/v1/agents/<id>/balance     — balance / credit view

  GET    /api/v1/kyc/pending             — agents awaiting KYC (?search=&page=&limit=)
  GET    /api/v1/kyc/review/<id>         — agent under review
  POST   /api/v1/kyc/approve/<id>        — approve KYC (KYC roles)
  POST   /api/v1/kyc/reject/<id>         — reject KYC with remarks (KYC roles)
"""

from flask import Blueprint, jsonify, request

from portal.blueprints import page_args, page_body
from portal.middleware.role_required import current_username, require_auth, require_roles
from portal.services import agent_service as svc

agent_bp = Blueprint("agent_bp", __name__, url_prefix="/api/v1")


# ═════════════════════════════════════════════════════════════════════════════
# AGENTS
# ═════════════════════════════════════════════════════════════════════════════

@agent_bp.route("/agents", methods=["GET"])
def list_agents():
    page, limit = page_args()
    filters = {k: request.args.get(k) for k in ("status", "region", "search")}
    items, total = svc.list_agents(filters, page=page, limit=limit)
    return jsonify(page_body(items, total, page, limit)), 200


@agent_bp.route("/agents", methods=["POST"])
@require_auth
def create_agent():
    """Body: { first_name, last_name, email, phone, agent_type?, region?, ... }"""
    data = request.get_json(silent=True) or {}
    return jsonify(svc.create_agent(data, current_username())), 201


@agent_bp.route("/agents/<int:agent_id>", methods=["GET"])
def get_agent(agent_id):
    return jsonify(svc.get_agent(agent_id)), 200


@agent_bp.route("/agents/<int:agent_id>", methods=["PUT"])
@require_auth
def update_agent(agent_id):
    data = request.get_json(silent=True) or {}
    return jsonify(svc.update_agent(agent_id, data, current_username())), 200


@agent_bp.route("/agents/<int:agent_id>", methods=["DELETE"])
@require_auth
def delete_agent(agent_id):
    svc.delete_agent(agent_id)
    return jsonify({"message": "Agent deleted"}), 200


@agent_bp.route("/agents/<int:agent_id>/status", methods=["PATCH"])
@require_auth
def update_agent_status(agent_id):
    """Body: { "status": "...", "message"? }"""
    data = request.get_json(silent=True) or {}
    agent = svc.update_agent_status(
        agent_id, data.get("status"), current_username(), data.get("message"),
    )
    return jsonify(agent), 200


@agent_bp.route("/agents/<int:agent_id>/balance", methods=["GET"])
def agent_balance(agent_id):
    return jsonify(svc.agent_balance(agent_id)), 200


# ═════════════════════════════════════════════════════════════════════════════
# KYC
# ═════════════════════════════════════════════════════════════════════════════

@agent_bp.route("/kyc/pending", methods=["GET"])
@require_auth
def pending_kyc():
    page, limit = page_args()
    items, total = svc.pending_kyc(request.args.get("search"), page=page, limit=limit)
    return jsonify(page_body(items, total, page, limit)), 200


@agent_bp.route("/kyc/review/<int:agent_id>", methods=["GET"])
@require_auth
def review_kyc(agent_id):
    return jsonify(svc.get_agent(agent_id)), 200


@agent_bp.route("/kyc/approve/<int:agent_id>", methods=["POST"])
@require_roles(config_key="KYC_ROLES")
def approve_kyc(agent_id):
    """Body: { "remarks"? }"""
    data = request.get_json(silent=True) or {}
    agent = svc.approve_kyc(agent_id, current_username(), data.get("remarks"))
    return jsonify({"message": "KYC approved successfully", "agent": agent}), 200


@agent_bp.route("/kyc/reject/<int:agent_id>", methods=["POST"])
@require_roles(config_key="KYC_ROLES")
def reject_kyc(agent_id):
    """Body: { "remarks": "..." } (required)"""
    data = request.get_json(silent=True) or {}
    agent = svc.reject_kyc(agent_id, current_username(), data.get("remarks"))
    return jsonify({"message": "KYC rejected", "agent": agent}), 200
