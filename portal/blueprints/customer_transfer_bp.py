"""
Customer Transfer Blueprint — move a payment between two customers.

Endpoints:
  GET   /api/v1/customer-transfer                               — list (?status=)
  GET   /api/v1/customer-transfer/<id>                          — single transfer
  POST  /api/v1/customer-transfer/validate                      — eligibility check
  POST  /api/v1/customer-transfer                               — initiate transfer
  PATCH /api/v1/customer-transfer/<id>/status                   — approve / reject
  GET   /api/v1/customer-transfer/<id>/status                   — status + audit trail
  GET   /api/v1/customer-transfer/customer/<id>/eligibility     — source-side summary
"""

from flask import Blueprint, current_app, jsonify, request

from portal.core.exceptions import AuthenticationRequired, PermissionDenied
from portal.middleware.role_required import current_user, current_username, require_auth
from portal.services import transfer_service as svc

customer_transfer_bp = Blueprint(
    "customer_transfer_bp", __name__, url_prefix="/api/v1/customer-transfer",
)


@customer_transfer_bp.route("", methods=["GET"])
def list_transfers():
    items = svc.list_transfers(request.args.get("status"))
    return jsonify({"items": items, "total": len(items), "by_status": svc.transfer_counts()}), 200


@customer_transfer_bp.route("/<int:transfer_id>", methods=["GET"])
def get_transfer(transfer_id):
    return jsonify(svc.get_transfer(transfer_id)), 200


@customer_transfer_bp.route("/validate", methods=["POST"])
def validate_transfer():
    """Body: { source_customer_id, target_customer_id, amount }"""
    data = request.get_json(silent=True) or {}
    return jsonify(svc.validate_transfer(data)), 200


@customer_transfer_bp.route("", methods=["POST"])
@require_auth
def create_transfer():
    """
    Body: { source_bp_id, target_bp_id, source_customer_id, target_customer_id,
            transfer_amount, transfer_reason, currency?, payment_type?,
            payment_id?, invoice_number? }
    """
    data = request.get_json(silent=True) or {}
    return jsonify(svc.create_transfer(data, current_username())), 201


@customer_transfer_bp.route("/<int:transfer_id>/status", methods=["PATCH"])
def update_transfer_status(transfer_id):
    """
    Body: { "status": "APPROVED" | "REJECTED", "reason"?, "approved_by"? }

    The transfer must exist (404) before the caller's role is checked (403).
    """
    svc.get_transfer(transfer_id)
    user = current_user()
    if user is None:
        raise AuthenticationRequired()
    allowed = current_app.config["APPROVER_ROLES"]
    if user.role not in allowed:
        raise PermissionDenied(allowed, "Insufficient permissions for transfer approval")

    data = request.get_json(silent=True) or {}
    transfer = svc.decide_transfer(transfer_id, data, user.username)
    return jsonify({
        "message": f"Transfer {transfer['status'].lower()} successfully",
        "transfer": transfer,
    }), 200


@customer_transfer_bp.route("/<int:transfer_id>/status", methods=["GET"])
def transfer_status(transfer_id):
    return jsonify(svc.transfer_status(transfer_id)), 200


@customer_transfer_bp.route("/customer/<int:customer_id>/eligibility", methods=["GET"])
def customer_eligibility(customer_id):
    return jsonify(svc.customer_eligibility(customer_id)), 200
