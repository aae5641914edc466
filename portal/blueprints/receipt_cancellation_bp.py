"""
Receipt Cancellation Blueprint — reverse a completed receipt inside the FI period.

Endpoints:
  GET  /api/v1/receipt-cancellation/eligible          — cancellable receipts (approvers)
  GET  /api/v1/receipt-cancellation/<pay_id>          — receipt + eligibility (approvers)
  POST /api/v1/receipt-cancellation/cancel            — cancel a receipt (approvers)
  GET  /api/v1/receipt-cancellation/<pay_id>/audit    — cancellation audit trail
  GET  /api/v1/receipt-cancellation/<pay_id>/status   — CM / FICA status
  POST /api/v1/receipt-cancellation/cm-webhook        — CM status callback (no auth)
"""

from flask import Blueprint, jsonify, request

from portal.blueprints import page_args, page_body
from portal.middleware.role_required import current_username, require_auth, require_roles
from portal.services import receipt_cancellation_service as svc

receipt_cancellation_bp = Blueprint(
    "receipt_cancellation_bp", __name__, url_prefix="/api/v1/receipt-cancellation",
)

_FILTERS = ("date_from", "date_to", "customer_id", "agent_id", "payment_mode")


@receipt_cancellation_bp.route("/eligible", methods=["GET"])
@require_roles(config_key="APPROVER_ROLES")
def eligible_receipts():
    page, limit = page_args(default_limit=20)
    filters = {k: request.args.get(k) for k in _FILTERS if request.args.get(k)}
    items, total = svc.eligible_receipts(filters, page=page, limit=limit)
    return jsonify(page_body(items, total, page, limit)), 200


@receipt_cancellation_bp.route("/cancel", methods=["POST"])
@require_roles(config_key="APPROVER_ROLES")
def cancel_receipt():
    """Body: { "pay_id": "...", "cancellation_reason": "..." }"""
    data = request.get_json(silent=True) or {}
    result = svc.cancel_receipt(data, current_username())
    return jsonify({"message": "Receipt cancellation initiated", **result}), 200


@receipt_cancellation_bp.route("/cm-webhook", methods=["POST"])
def cm_webhook():
    """Body: { pay_id, cm_status?, cm_status_msg?, fica_status?, fica_status_msg? }"""
    data = request.get_json(silent=True) or {}
    cancellation = svc.apply_cm_update(data)
    return jsonify({"message": "Status updated", "cancellation": cancellation}), 200


@receipt_cancellation_bp.route("/<pay_id>", methods=["GET"])
@require_roles(config_key="APPROVER_ROLES")
def receipt_details(pay_id):
    return jsonify(svc.receipt_details(pay_id)), 200


@receipt_cancellation_bp.route("/<pay_id>/audit", methods=["GET"])
@require_auth
def cancellation_audit(pay_id):
    return jsonify(svc.cancellation_audit(pay_id)), 200


@receipt_cancellation_bp.route("/<pay_id>/status", methods=["GET"])
@require_auth
def cancellation_status(pay_id):
    return jsonify(svc.cancellation_status(pay_id)), 200
