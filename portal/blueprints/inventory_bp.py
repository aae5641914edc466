"""
Inventory Blueprint — serialised devices and stock requests.

Endpoints:
  GET    /api/v1/inventory                        — list (?status=&material_type=&owner=&material_code=)
  POST   /api/v1/inventory                        — register one device
  GET    /api/v1/inventory/<id>                   — single device
  PUT    /api/v1/inventory/<id>                   — update
  DELETE /api/v1/inventory/<id>                   — delete
  POST   /api/v1/inventory/serial-upload          — bulk serial registration
  GET    /api/v1/inventory/stb-status             — device lookup (?serial_number=)

  GET    /api/v1/inventory-requests               — list (?status=)
  POST   /api/v1/inventory-requests               — raise a stock request
  POST   /api/v1/inventory-requests/<id>/approve  — approve (admin / manager)
  POST   /api/v1/inventory-requests/<id>/reject   — reject (admin / manager)
"""

from flask import Blueprint, jsonify, request

from portal.middleware.role_required import current_username, require_auth, require_roles
from portal.services import inventory_service as svc

inventory_bp = Blueprint("inventory_bp", __name__, url_prefix="/api/v1")

INVENTORY_APPROVER_ROLES = ("admin", "manager")


@inventory_bp.route("/inventory", methods=["GET"])
def list_items():
    filters = {k: request.args.get(k) for k in ("status", "material_type", "owner", "material_code")}
    items = svc.list_items(filters)
    return jsonify({"items": items, "total": len(items)}), 200


@inventory_bp.route("/inventory", methods=["POST"])
@require_auth
def create_item():
    """Body: { material_code, material_name, serial_number, material_type?, ... }"""
    data = request.get_json(silent=True) or {}
    return jsonify(svc.create_item(data, current_username())), 201


@inventory_bp.route("/inventory/serial-upload", methods=["POST"])
@require_auth
def serial_upload():
    """Body: { material_code, material_name, serial_numbers: [...], material_type? }"""
    data = request.get_json(silent=True) or {}
    return jsonify(svc.upload_serials(data, current_username())), 201


@inventory_bp.route("/inventory/stb-status", methods=["GET"])
def stb_status():
    return jsonify(svc.stb_status(request.args.get("serial_number"))), 200


@inventory_bp.route("/inventory/<int:item_id>", methods=["GET"])
def get_item(item_id):
    return jsonify(svc.get_item(item_id)), 200


@inventory_bp.route("/inventory/<int:item_id>", methods=["PUT"])
@require_auth
def update_item(item_id):
    data = request.get_json(silent=True) or {}
    return jsonify(svc.update_item(item_id, data, current_username())), 200


@inventory_bp.route("/inventory/<int:item_id>", methods=["DELETE"])
@require_auth
def delete_item(item_id):
    svc.delete_item(item_id)
    return jsonify({"message": "Inventory item deleted"}), 200


# ═════════════════════════════════════════════════════════════════════════════
# STOCK REQUESTS
# ═════════════════════════════════════════════════════════════════════════════

@inventory_bp.route("/inventory-requests", methods=["GET"])
def list_requests():
    items = svc.list_requests(request.args.get("status"))
    return jsonify({"items": items, "total": len(items)}), 200


@inventory_bp.route("/inventory-requests", methods=["POST"])
@require_auth
def create_request():
    """Body: { item_type, request_type?, item_qty?, item_amount?, transfer_from?, transfer_to? }"""
    data = request.get_json(silent=True) or {}
    return jsonify(svc.create_request(data, current_username())), 201


@inventory_bp.route("/inventory-requests/<int:request_pk>/approve", methods=["POST"])
@require_roles(*INVENTORY_APPROVER_ROLES)
def approve_request(request_pk):
    data = request.get_json(silent=True) or {}
    req = svc.decide_request(request_pk, "APPROVED", current_username(), data.get("remarks"))
    return jsonify({"message": "Request approved", "request": req}), 200


@inventory_bp.route("/inventory-requests/<int:request_pk>/reject", methods=["POST"])
@require_roles(*INVENTORY_APPROVER_ROLES)
def reject_request(request_pk):
    data = request.get_json(silent=True) or {}
    req = svc.decide_request(request_pk, "REJECTED", current_username(), data.get("remarks"))
    return jsonify({"message": "Request rejected", "request": req}), 200
