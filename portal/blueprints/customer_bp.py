"""
Customer Blueprint — subscriber master data.

Endpoints:
  GET    /api/v1/customers               — list (?status=&customer_type=)
  POST   /api/v1/customers               — register customer
  GET    /api/v1/customers/search        — free-text lookup (?query=)
  GET    /api/v1/customers/bp/<bp_id>    — detail view by SAP BP id
  GET    /api/v1/customers/sc/<sc_id>    — detail view by smart card number
  GET    /api/v1/customers/<id>          — single customer
  PUT    /api/v1/customers/<id>          — update
  DELETE /api/v1/customers/<id>          — delete
"""

from flask import Blueprint, jsonify, request

from portal.middleware.role_required import current_username, require_auth
from portal.services import customer_service as svc

customer_bp = Blueprint("customer_bp", __name__, url_prefix="/api/v1/customers")


@customer_bp.route("", methods=["GET"])
def list_customers():
    items = svc.list_customers(
        status=request.args.get("status"),
        customer_type=request.args.get("customer_type"),
    )
    return jsonify({"items": items, "total": len(items)}), 200


@customer_bp.route("", methods=["POST"])
@require_auth
def create_customer():
    """Body: { first_name, last_name, phone, customer_type, ... }"""
    data = request.get_json(silent=True) or {}
    return jsonify(svc.create_customer(data, current_username())), 201


@customer_bp.route("/search", methods=["GET"])
def search_customers():
    limit = min(max(request.args.get("limit", 10, type=int), 1), 50)
    items = svc.search_customers(request.args.get("query"), limit=limit)
    return jsonify({"items": items, "total": len(items)}), 200


@customer_bp.route("/bp/<bp_id>", methods=["GET"])
def customer_by_bp(bp_id):
    return jsonify(svc.customer_details(svc.get_customer_by_bp(bp_id))), 200


@customer_bp.route("/sc/<sc_id>", methods=["GET"])
def customer_by_sc(sc_id):
    return jsonify(svc.customer_details(svc.get_customer_by_sc(sc_id))), 200


@customer_bp.route("/<int:customer_id>", methods=["GET"])
def get_customer(customer_id):
    return jsonify(svc.get_customer(customer_id)), 200


@customer_bp.route("/<int:customer_id>", methods=["PUT"])
@require_auth
def update_customer(customer_id):
    data = request.get_json(silent=True) or {}
    return jsonify(svc.update_customer(customer_id, data, current_username())), 200


@customer_bp.route("/<int:customer_id>", methods=["DELETE"])
@require_auth
def delete_customer(customer_id):
    svc.delete_customer(customer_id)
    return jsonify({"message": "Customer deleted"}), 200
