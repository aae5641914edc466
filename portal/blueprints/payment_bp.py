"""
Payment Blueprint — hardware and subscription receipts.

Endpoints:
  GET    /api/v1/payments          — list (?customer_id=&status=&pay_type=&pay_mode=)
  POST   /api/v1/payments          — record a receipt
  GET    /api/v1/payments/<id>     — single receipt
  PUT    /api/v1/payments/<id>     — update descriptive fields / status
  DELETE /api/v1/payments/<id>     — delete
"""

from flask import Blueprint, jsonify, request

from portal.middleware.role_required import current_username, require_auth
from portal.services import payment_service as svc

payment_bp = Blueprint("payment_bp", __name__, url_prefix="/api/v1/payments")


@payment_bp.route("", methods=["GET"])
def list_payments():
    filters = {
        "customer_id": request.args.get("customer_id", type=int),
        "status": request.args.get("status"),
        "pay_type": request.args.get("pay_type"),
        "pay_mode": request.args.get("pay_mode"),
    }
    items = svc.list_payments(filters)
    return jsonify({"items": items, "total": len(items)}), 200


@payment_bp.route("", methods=["POST"])
@require_auth
def create_payment():
    """Body: { customer_id, pay_amount, pay_mode, pay_type, vat_amount?, ... }"""
    data = request.get_json(silent=True) or {}
    return jsonify(svc.create_payment(data, current_username())), 201


@payment_bp.route("/<int:payment_id>", methods=["GET"])
def get_payment(payment_id):
    return jsonify(svc.get_payment(payment_id)), 200


@payment_bp.route("/<int:payment_id>", methods=["PUT"])
@require_auth
def update_payment(payment_id):
    data = request.get_json(silent=True) or {}
    return jsonify(svc.update_payment(payment_id, data, current_username())), 200


@payment_bp.route("/<int:payment_id>", methods=["DELETE"])
@require_auth
def delete_payment(payment_id):
    svc.delete_payment(payment_id)
    return jsonify({"message": "Payment deleted"}), 200
