"""
Pay-TV Back-Office Portal
Subscription Service — purchase, renewal, plan change, add-ons, suspension.

Every operation returns the updated subscription together with the
downstream workflow the order went through (CM order, NAGRA update,
contract) and, where money is taken, an invoice number.  Charges are
deducted from the customer's wallet balance.

    ACTIVE ──suspend──▶ SUSPENDED ──reactivate──▶ ACTIVE
"""

from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy import select

from portal.core.exceptions import ValidationError
from portal.models import db
from portal.models.audit import write_audit
from portal.models.base import iso, utcnow
from portal.models.customer import Customer
from portal.models.subscription import (
    ADDON_PACKS,
    OFFERS,
    PLANS,
    SUSPENSION_REASONS,
    Subscription,
)
from portal.utils.helpers import get_or_404, next_code, require_fields

logger = logging.getLogger(__name__)

PERIOD_DAYS = 30
MAX_RENEWAL_MONTHS = 36

PURCHASE_STEPS = (
    "Customer validation",
    "Plan eligibility check",
    "Payment processing",
    "Creating subscription order",
    "JSON request to CM",
    "NAGRA activation",
    "Contract creation",
    "Customer notification",
)
RENEWAL_STEPS = (
    "Customer validation",
    "Current subscription check",
    "Payment processing",
    "Creating renewal order",
    "JSON request to CM",
    "NAGRA validity extension",
    "Contract update",
    "Customer notification",
)
PLAN_CHANGE_STEPS = (
    "Customer validation",
    "Plan change eligibility check",
    "Proration calculation",
    "Payment processing (if required)",
    "Creating plan change order",
    "JSON request to CM",
    "NAGRA plan update",
    "Contract modification",
    "Customer notification",
)
ADDON_STEPS = (
    "Customer validation",
    "Add-on eligibility check",
    "Payment processing",
    "Creating add-on order",
    "JSON request to CM",
    "NAGRA add-on activation",
    "Contract update",
    "Customer notification",
)
SUSPENSION_STEPS = (
    "Customer validation",
    "Suspension eligibility check",
    "Reason validation and logging",
    "Creating suspension request",
    "JSON request to CM",
    "NAGRA disconnection",
    "Contract status update",
    "Customer notification",
)
REACTIVATION_STEPS = (
    "Customer validation",
    "Suspension status check",
    "Creating reactivation request",
    "JSON request to CM",
    "NAGRA reconnection",
    "Contract status update",
    "Customer notification",
)


def _steps(names) -> list[dict]:
    return [{"step": i, "name": name, "status": "COMPLETED"} for i, name in enumerate(names, 1)]


def _charge(customer: Customer, amount: float, actor: str) -> float:
    customer.balance = (customer.balance or 0.0) - amount
    customer.touch(actor)
    return customer.balance


def _invoice_number() -> str:
    return f"INV-{utcnow().strftime('%Y%m%d%H%M%S%f')}"


def _audit(sub: Subscription, action: str, actor: str, old: str | None = None, **details):
    write_audit(entity_type="subscription", entity_id=sub.id, action=action,
                actor=actor, old_value=old, new_value=sub.status, details=details)


def _lookup(table: dict, key):
    return table.get(key) if isinstance(key, str) else None


def _as_int(value, field: str, default: int) -> int:
    if value in (None, ""):
        return default
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise ValidationError(f"{field} must be an integer") from exc


# ═════════════════════════════════════════════════════════════════════════════
# Catalogue and queries
# ═════════════════════════════════════════════════════════════════════════════


def catalogue(table: dict) -> list[dict]:
    return [{"id": key, **value} for key, value in table.items()]


def suspension_reasons() -> list[dict]:
    return [{"code": code, "description": text} for code, text in SUSPENSION_REASONS.items()]


def list_subscriptions(filters: dict) -> list[dict]:
    stmt = select(Subscription).order_by(Subscription.id.desc())
    if filters.get("customer_id"):
        stmt = stmt.where(Subscription.customer_id == filters["customer_id"])
    if filters.get("status"):
        stmt = stmt.where(Subscription.status == filters["status"])
    if filters.get("smart_card_number"):
        stmt = stmt.where(Subscription.smart_card_number == filters["smart_card_number"])
    return [s.to_dict() for s in db.session.execute(stmt).scalars()]


def get_subscription(sub_id: int) -> dict:
    return get_or_404(Subscription, sub_id, "Subscription").to_dict()


# ═════════════════════════════════════════════════════════════════════════════
# Orders
# ═════════════════════════════════════════════════════════════════════════════


def purchase(data: dict, actor: str) -> dict:
    """Activate a plan on a smart card for one month.

    Raises:
        ValidationError: missing fields, unknown plan / offer / add-on, or the
            smart card already carries an active subscription.
        NotFoundError: unknown customer.
    """
    require_fields(data, "customer_id", "smart_card_number", "plan_id")
    plan = _lookup(PLANS, data["plan_id"])
    if plan is None:
        raise ValidationError(f"Unknown plan: {data['plan_id']}")
    offer_id = data.get("offer_id")
    if offer_id and _lookup(OFFERS, offer_id) is None:
        raise ValidationError(f"Unknown offer: {offer_id}")
    add_ons = data.get("add_ons") or []
    if not isinstance(add_ons, list) or not all(isinstance(a, str) for a in add_ons):
        raise ValidationError("add_ons must be a list of add-on ids")
    add_ons = list(add_ons)
    unknown = [a for a in add_ons if a not in ADDON_PACKS]
    if unknown:
        raise ValidationError(f"Unknown add-on packs: {', '.join(unknown)}")

    customer = get_or_404(Customer, data["customer_id"], "Customer")
    active = db.session.execute(
        select(Subscription.id).where(
            Subscription.smart_card_number == data["smart_card_number"],
            Subscription.status == "ACTIVE",
        )
    ).first()
    if active:
        raise ValidationError("Smart card already has an active subscription")

    amount = float(plan["price"]) + sum(ADDON_PACKS[a]["price"] for a in add_ons)
    if offer_id and OFFERS[offer_id]["type"] == "discount":
        amount = round(amount * (100 - OFFERS[offer_id]["discount"]) / 100, 2)

    today = utcnow().date()
    sub = Subscription(
        customer_id=customer.id,
        smart_card_number=data["smart_card_number"],
        plan_id=data["plan_id"],
        plan_name=plan["name"],
        amount=amount,
        currency=customer.currency,
        add_ons=add_ons,
        offer_id=offer_id,
        start_date=today,
        end_date=today + timedelta(days=PERIOD_DAYS),
        activation_type="NEW",
        status="ACTIVE",
        contract_id=next_code(Subscription, "CON-", width=6),
        create_id=actor,
    )
    db.session.add(sub)
    balance = _charge(customer, amount, actor)
    db.session.flush()
    _audit(sub, "purchased", actor, plan_id=sub.plan_id, amount=amount)
    db.session.commit()
    logger.info("Subscription purchased plan=%s", sub.plan_id,
                extra={"entity_type": "subscription", "entity_id": sub.id, "user": actor})
    return {
        "subscription": sub.to_dict(),
        "contract_id": sub.contract_id,
        "invoice_number": _invoice_number(),
        "workflow_steps": _steps(PURCHASE_STEPS),
        "wallet_balance_after": balance,
        "message": "Subscription created successfully",
    }


def renew(data: dict, actor: str) -> dict:
    require_fields(data, "subscription_id")
    months = _as_int(data.get("renewal_months"), "renewal_months", 1)
    if months < 1:
        raise ValidationError("Renewal months must be greater than 0")
    if months > MAX_RENEWAL_MONTHS:
        raise ValidationError(f"Renewal months must not exceed {MAX_RENEWAL_MONTHS}")
    sub = get_or_404(Subscription, data["subscription_id"], "Subscription")
    if sub.status == "SUSPENDED":
        raise ValidationError("Cannot renew a suspended subscription")

    today = utcnow().date()
    base = max(sub.end_date, today)
    amount = float(PLANS.get(sub.plan_id, {"price": sub.amount})["price"]) * months
    old = sub.status
    sub.end_date = base + timedelta(days=PERIOD_DAYS * months)
    sub.status = "ACTIVE"
    sub.activation_type = "RENEWAL"
    sub.touch(actor)
    balance = _charge(sub.customer, amount, actor)
    _audit(sub, "renewed", actor, old=old, months=months, amount=amount)
    db.session.commit()
    return {
        "subscription": sub.to_dict(),
        "contract_id": sub.contract_id,
        "invoice_number": _invoice_number(),
        "workflow_steps": _steps(RENEWAL_STEPS),
        "renewal_period": f"{months} month(s)",
        "amount": amount,
        "wallet_balance_after": balance,
        "message": "Subscription renewed successfully",
    }


def change_plan(data: dict, actor: str) -> dict:
    """Switch an ACTIVE subscription to another plan, prorating upgrades."""
    require_fields(data, "subscription_id", "new_plan_id")
    new_plan = _lookup(PLANS, data["new_plan_id"])
    if new_plan is None:
        raise ValidationError(f"Unknown plan: {data['new_plan_id']}")
    sub = get_or_404(Subscription, data["subscription_id"], "Subscription")
    if sub.status != "ACTIVE":
        raise ValidationError(f"Cannot change plan of subscription with status: {sub.status}")
    if sub.plan_id == data["new_plan_id"]:
        raise ValidationError("New plan must differ from the current plan")

    old_price = float(PLANS.get(sub.plan_id, {"price": sub.amount})["price"])
    remaining = max((sub.end_date - utcnow().date()).days, 0)
    difference = float(new_plan["price"]) - old_price
    prorated = round(max(difference, 0.0) * remaining / PERIOD_DAYS, 2)
    payment_required = prorated > 0

    old_plan = sub.plan_id
    sub.plan_id = data["new_plan_id"]
    sub.plan_name = new_plan["name"]
    sub.amount = float(new_plan["price"]) + sum(
        ADDON_PACKS[a]["price"] for a in (sub.add_ons or []) if a in ADDON_PACKS
    )
    sub.activation_type = "PLAN_CHANGE"
    sub.touch(actor)
    balance = _charge(sub.customer, prorated, actor) if payment_required else sub.customer.balance
    _audit(sub, "plan_changed", actor, old=sub.status, from_plan=old_plan,
           to_plan=sub.plan_id, prorated_amount=prorated)
    db.session.commit()
    return {
        "subscription": sub.to_dict(),
        "contract_id": sub.contract_id,
        "invoice_number": _invoice_number() if payment_required else None,
        "payment_required": payment_required,
        "prorated_amount": prorated,
        "workflow_steps": _steps(PLAN_CHANGE_STEPS),
        "plan_change_effective": iso(utcnow()),
        "wallet_balance_after": balance,
        "message": "Plan changed successfully",
    }


def manage_addon(sub_id: int, data: dict, actor: str) -> dict:
    """Add or remove an add-on pack. ``operation`` is ``add`` (default) or ``remove``."""
    require_fields(data, "addon_id")
    addon_id = data["addon_id"]
    operation = data.get("operation") or "add"
    if operation not in ("add", "remove"):
        raise ValidationError("operation must be one of: add, remove")
    pack = _lookup(ADDON_PACKS, addon_id)
    if pack is None:
        raise ValidationError(f"Unknown add-on pack: {addon_id}")
    sub = get_or_404(Subscription, sub_id, "Subscription")
    if sub.status != "ACTIVE":
        raise ValidationError(f"Cannot change add-ons of subscription with status: {sub.status}")

    current = list(sub.add_ons or [])
    if operation == "add":
        if addon_id in current:
            raise ValidationError(f"Add-on {addon_id} is already active")
        current.append(addon_id)
        sub.amount += pack["price"]
        balance = _charge(sub.customer, float(pack["price"]), actor)
        invoice = _invoice_number()
    else:
        if addon_id not in current:
            raise ValidationError(f"Add-on {addon_id} is not active on this subscription")
        current.remove(addon_id)
        sub.amount -= pack["price"]
        balance = sub.customer.balance
        invoice = None
    sub.add_ons = current
    sub.touch(actor)
    _audit(sub, f"addon_{operation}", actor, old=sub.status, addon_id=addon_id)
    db.session.commit()
    return {
        "subscription": sub.to_dict(),
        "operation": operation,
        "invoice_number": invoice,
        "workflow_steps": _steps(ADDON_STEPS),
        "wallet_balance_after": balance,
        "message": f"Add-on {'added' if operation == 'add' else 'removed'} successfully",
    }


def suspend(data: dict, actor: str) -> dict:
    require_fields(data, "subscription_id", "reason")
    reason = data["reason"]
    if reason not in SUSPENSION_REASONS:
        raise ValidationError(f"reason must be one of: {', '.join(SUSPENSION_REASONS)}")
    sub = get_or_404(Subscription, data["subscription_id"], "Subscription")
    if sub.status != "ACTIVE":
        raise ValidationError(f"Cannot suspend subscription with status: {sub.status}")

    sub.status = "SUSPENDED"
    sub.suspension_reason = reason
    sub.suspended_at = utcnow()
    sub.touch(actor)
    _audit(sub, "suspended", actor, old="ACTIVE", reason=reason, notes=data.get("notes"))
    db.session.commit()
    logger.info("Subscription suspended reason=%s", reason,
                extra={"entity_type": "subscription", "entity_id": sub.id, "user": actor})
    return {
        "subscription": sub.to_dict(),
        "suspension_id": f"SUS-{sub.id:06d}",
        "suspension_date": iso(sub.suspended_at),
        "reason": reason,
        "workflow_steps": _steps(SUSPENSION_STEPS),
        "message": "Subscription suspended successfully",
    }


def reactivate(sub_id: int, actor: str) -> dict:
    sub = get_or_404(Subscription, sub_id, "Subscription")
    if sub.status != "SUSPENDED":
        raise ValidationError(f"Cannot reactivate subscription with status: {sub.status}")

    sub.status = "ACTIVE"
    sub.suspension_reason = None
    sub.suspended_at = None
    sub.touch(actor)
    _audit(sub, "reactivated", actor, old="SUSPENDED")
    db.session.commit()
    return {
        "subscription": sub.to_dict(),
        "workflow_steps": _steps(REACTIVATION_STEPS),
        "message": "Subscription reactivated successfully",
    }
