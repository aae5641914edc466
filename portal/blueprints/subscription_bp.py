"""
Subscription Blueprint — plans, purchases and lifecycle changes.

Endpoints:
  GET  /api/v1/subscriptions                         — list (?customer_id=&status=&smart_card_number=)
  GET  /api/v1/subscriptions/<id>                    — single subscription
  GET  /api/v1/subscriptions/plans                   — plan catalogue
  GET  /api/v1/subscriptions/offers                  — promotional offers
  GET  /api/v1/subscriptions/addons                  — add-on packs
  GET  /api/v1/subscriptions/suspension-reasons      — allowed suspension reasons
  POST /api/v1/subscriptions/purchase                — new subscription
  POST /api/v1/subscriptions/renewal                 — extend by N months
  POST /api/v1/subscriptions/plan-change             — switch plan
  POST /api/v1/subscriptions/<id>/addons             — add / remove an add-on pack
  POST /api/v1/subscriptions/suspension              — suspend
  POST /api/v1/subscriptions/<id>/reactivate         — lift a suspension
"""

from flask import Blueprint, jsonify, request

from portal.middleware.role_required import current_username, require_auth
from portal.models.subscription import ADDON_PACKS, OFFERS, PLANS
from portal.services import subscription_service as svc

subscription_bp = Blueprint("subscription_bp", __name__, url_prefix="/api/v1/subscriptions")


# ── Catalogue ────────────────────────────────────────────────────────────────

@subscription_bp.route("/plans", methods=["GET"])
def list_plans():
    return jsonify({"items": svc.catalogue(PLANS)}), 200


@subscription_bp.route("/offers", methods=["GET"])
def list_offers():
    return jsonify({"items": svc.catalogue(OFFERS)}), 200


@subscription_bp.route("/addons", methods=["GET"])
def list_addons():
    return jsonify({"items": svc.catalogue(ADDON_PACKS)}), 200


@subscription_bp.route("/suspension-reasons", methods=["GET"])
def list_suspension_reasons():
    return jsonify({"items": svc.suspension_reasons()}), 200


# ── Subscriptions ────────────────────────────────────────────────────────────

@subscription_bp.route("", methods=["GET"])
def list_subscriptions():
    filters = {
        "customer_id": request.args.get("customer_id", type=int),
        "status": request.args.get("status"),
        "smart_card_number": request.args.get("smart_card_number"),
    }
    items = svc.list_subscriptions(filters)
    return jsonify({"items": items, "total": len(items)}), 200


@subscription_bp.route("/<int:sub_id>", methods=["GET"])
def get_subscription(sub_id):
    return jsonify(svc.get_subscription(sub_id)), 200


@subscription_bp.route("/purchase", methods=["POST"])
@require_auth
def purchase():
    """Body: { customer_id, smart_card_number, plan_id, offer_id?, add_ons? }"""
    data = request.get_json(silent=True) or {}
    return jsonify(svc.purchase(data, current_username())), 201


@subscription_bp.route("/renewal", methods=["POST"])
@require_auth
def renewal():
    """Body: { subscription_id, renewal_months? }"""
    data = request.get_json(silent=True) or {}
    return jsonify(svc.renew(data, current_username())), 200


@subscription_bp.route("/plan-change", methods=["POST"])
@require_auth
def plan_change():
    """Body: { subscription_id, new_plan_id }"""
    data = request.get_json(silent=True) or {}
    return jsonify(svc.change_plan(data, current_username())), 200


@subscription_bp.route("/<int:sub_id>/addons", methods=["POST"])
@require_auth
def manage_addon(sub_id):
    """Body: { addon_id, operation: "add" | "remove" }"""
    data = request.get_json(silent=True) or {}
    return jsonify(svc.manage_addon(sub_id, data, current_username())), 200


@subscription_bp.route("/suspension", methods=["POST"])
@require_auth
def suspension():
    """Body: { subscription_id, reason }"""
    data = request.get_json(silent=True) or {}
    return jsonify(svc.suspend(data, current_username())), 200


@subscription_bp.route("/<int:sub_id>/reactivate", methods=["POST"])
@require_auth
def reactivate(sub_id):
    return jsonify(svc.reactivate(sub_id, current_username())), 200
