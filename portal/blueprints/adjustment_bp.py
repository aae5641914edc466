"""
Adjustment Blueprint — manual wallet CREDIT/DEBIT approval workflow.

Endpoints:
  GET   /api/v1/adjustments                  — list (?status=&bp_id=)
  GET   /api/v1/adjustments/pending          — PENDING queue (approvers)
  GET   /api/v1/adjustments/processed        — PROCESSED history
  GET   /api/v1/adjustments/stats            — counts + credit/debit totals
  GET   /api/v1/adjustments/<id>             — single adjustment
  POST  /api/v1/adjustments                  — request an adjustment
  PATCH /api/v1/adjustments/<id>/approve     — approve (approvers)
  PATCH /api/v1/adjustments/<id>/reject      — reject with reason (approvers)
"""

from flask import Blueprint, jsonify, request

from portal.middleware.role_required import current_username, require_auth, require_roles
from portal.services import adjustment_service as svc

adjustment_bp = Blueprint("adjustment_bp", __name__, url_prefix="/api/v1/adjustments")


@adjustment_bp.route("", methods=["GET"])
def list_adjustments():
    items = svc.list_adjustments(
        status=request.args.get("status"),
        bp_id=request.args.get("bp_id"),
    )
    return jsonify({"items": items, "total": len(items)}), 200


@adjustment_bp.route("/pending", methods=["GET"])
@require_roles(config_key="APPROVER_ROLES")
def pending_adjustments():
    items = svc.list_adjustments(status="PENDING")
    return jsonify({"items": items, "total": len(items)}), 200


@adjustment_bp.route("/processed", methods=["GET"])
def processed_adjustments():
    items = svc.list_adjustments(status="PROCESSED")
    return jsonify({"items": items, "total": len(items)}), 200


@adjustment_bp.route("/stats", methods=["GET"])
def adjustment_stats():
    return jsonify(svc.adjustment_stats()), 200


@adjustment_bp.route("/<int:adj_id>", methods=["GET"])
def get_adjustment(adj_id):
    return jsonify(svc.get_adjustment(adj_id)), 200


@adjustment_bp.route("", methods=["POST"])
@require_auth
def create_adjustment():
    """
    Body: { bp_id, type, reason, amount, sc_id?, invoice_number?, comments?,
            currency?, wallet_type?, vat_type? }
    """
    data = request.get_json(silent=True) or {}
    return jsonify(svc.create_adjustment(data, current_username())), 201


@adjustment_bp.route("/<int:adj_id>/approve", methods=["PATCH"])
@require_roles(config_key="APPROVER_ROLES")
def approve_adjustment(adj_id):
    adjustment = svc.approve_adjustment(adj_id, current_username())
    return jsonify({"message": "Adjustment approved", "adjustment": adjustment}), 200


@adjustment_bp.route("/<int:adj_id>/reject", methods=["PATCH"])
@require_roles(config_key="APPROVER_ROLES")
def reject_adjustment(adj_id):
    """Body: { "rejection_reason": "..." } (at least 10 characters)."""
    data = request.get_json(silent=True) or {}
    adjustment = svc.reject_adjustment(adj_id, current_username(), data.get("rejection_reason"))
    return jsonify({"message": "Adjustment rejected", "adjustment": adjustment}), 200
