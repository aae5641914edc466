"""
Pay-TV Back-Office Portal
Customer Service — customer master data and BP / smart-card lookups.
"""

from __future__ import annotations

import logging

from flask import current_app
from sqlalchemy import or_, select

from portal.core.exceptions import ConflictError, NotFoundError
from portal.models import db
from portal.models.customer import CUSTOMER_STATUSES, CUSTOMER_TYPES, Customer
from portal.models.subscription import Subscription
from portal.utils.helpers import get_or_404, next_code, number, one_of, require_fields, valid_email

logger = logging.getLogger(__name__)

_UPDATABLE = (
    "title", "first_name", "middle_name", "last_name", "phone", "mobile", "email",
    "account_class", "service_type", "region", "city", "address", "sc_id",
)


def _normalise_type(value: str | None) -> str | None:
    return value.upper() if isinstance(value, str) else value


def _active_subscription(customer_id: int) -> Subscription | None:
    return db.session.execute(
        select(Subscription)
        .where(Subscription.customer_id == customer_id, Subscription.status == "ACTIVE")
        .order_by(Subscription.end_date.desc())
    ).scalars().first()


def list_customers(status: str | None = None, customer_type: str | None = None) -> list[dict]:
    stmt = select(Customer).order_by(Customer.id)
    if status:
        stmt = stmt.where(Customer.status == status)
    if customer_type:
        stmt = stmt.where(Customer.customer_type == _normalise_type(customer_type))
    return [c.to_dict() for c in db.session.execute(stmt).scalars()]


def get_customer(customer_id: int) -> dict:
    return get_or_404(Customer, customer_id, "Customer").to_dict()


def search_customers(query: str | None, limit: int = 10) -> list[dict]:
    """Match name, phone, mobile, email or BP id; first ``limit`` customers when blank."""
    stmt = select(Customer).order_by(Customer.id)
    term = (query or "").strip().lower()
    if term:
        like = f"%{term}%"
        stmt = stmt.where(or_(
            db.func.lower(Customer.first_name).like(like),
            db.func.lower(Customer.last_name).like(like),
            Customer.phone.like(like),
            Customer.mobile.like(like),
            db.func.lower(Customer.email).like(like),
            db.func.lower(Customer.sap_bp_id).like(like),
        ))
    results = []
    for customer in db.session.execute(stmt.limit(limit)).scalars():
        data = customer.to_dict()
        sub = _active_subscription(customer.id)
        data["current_subscription"] = sub.to_dict() if sub else None
        results.append(data)
    return results


def create_customer(data: dict, actor: str) -> dict:
    """Register a customer and mint SAP BP / CA ids.

    Raises:
        ValidationError: missing required fields or bad enum value.
        ConflictError: explicit sap_bp_id or sc_id already used.
    """
    require_fields(data, "first_name", "last_name", "phone", "customer_type")
    customer_type = one_of(_normalise_type(data["customer_type"]), CUSTOMER_TYPES, "customer_type")
    email = valid_email(data.get("email"))
    balance = number(data.get("balance"), "balance", 0.0)

    bp_id = data.get("sap_bp_id")
    if bp_id and db.session.execute(
        select(Customer.id).where(Customer.sap_bp_id == bp_id)
    ).first():
        raise ConflictError("Customer", "sap_bp_id", bp_id)
    sc_id = data.get("sc_id")
    if sc_id and db.session.execute(
        select(Customer.id).where(Customer.sc_id == sc_id)
    ).first():
        raise ConflictError("Customer", "sc_id", sc_id)

    sequence = next_code(Customer, "", width=6)
    customer = Customer(
        customer_type=customer_type,
        sap_bp_id=bp_id or f"BP{sequence}",
        sap_ca_id=data.get("sap_ca_id") or f"CA{sequence}",
        onboarding_ref_no=f"CUST-ONB-{sequence}",
        balance=balance,
        currency=data.get("currency") or current_app.config["DEFAULT_CURRENCY"],
        status="ACTIVE",
        create_id=actor,
    )
    for field in _UPDATABLE:
        if field in data:
            setattr(customer, field, data[field])
    customer.email = email
    db.session.add(customer)
    db.session.commit()
    logger.info("Customer created",
                extra={"entity_type": "customer", "entity_id": customer.id, "user": actor})
    return customer.to_dict()


def update_customer(customer_id: int, data: dict, actor: str) -> dict:
    customer = get_or_404(Customer, customer_id, "Customer")
    email = valid_email(data.get("email"))
    customer_type = one_of(_normalise_type(data.get("customer_type")), CUSTOMER_TYPES, "customer_type")
    status = one_of(data.get("status"), CUSTOMER_STATUSES, "status")

    for field in _UPDATABLE:
        if field in data:
            setattr(customer, field, data[field])
    if "email" in data:
        customer.email = email
    if customer_type:
        customer.customer_type = customer_type
    if status:
        customer.status = status
    customer.touch(actor)
    db.session.commit()
    return customer.to_dict()


def delete_customer(customer_id: int) -> None:
    customer = get_or_404(Customer, customer_id, "Customer")
    db.session.delete(customer)
    db.session.commit()
    logger.info("Customer deleted", extra={"entity_type": "customer", "entity_id": customer_id})


# ═════════════════════════════════════════════════════════════════════════════
# Detail lookups (used by the adjustment screens)
# ═════════════════════════════════════════════════════════════════════════════


def customer_details(customer: Customer) -> dict:
    sub = _active_subscription(customer.id)
    return {
        "bp_id": customer.sap_bp_id,
        "sc_id": customer.sc_id,
        "name": customer.full_name,
        "customer_type": customer.customer_type,
        "account_type": customer.account_class,
        "balance": customer.balance,
        "currency": customer.currency,
        "subscription": sub.plan_name if sub else None,
        "status": customer.status,
        "phone": customer.phone,
        "email": customer.email,
    }


def get_customer_by_bp(bp_id: str) -> Customer:
    customer = db.session.execute(
        select(Customer).where(Customer.sap_bp_id == bp_id)
    ).scalar_one_or_none()
    if customer is None:
        raise NotFoundError("Customer", bp_id)
    return customer


def get_customer_by_sc(sc_id: str) -> Customer:
    customer = db.session.execute(
        select(Customer).where(Customer.sc_id == sc_id)
    ).scalar_one_or_none()
    if customer is None:
        raise NotFoundError("Customer", sc_id)
    return customer
