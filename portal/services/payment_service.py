"""
Pay-TV Back-Office Portal
Payment Service — receipts collected for hardware and subscriptions.

VAT is added on top of the paid amount (VAT_RATE, 18 % by default) unless
the caller supplies ``vat_amount``.  Every receipt gets a ``pay_id`` and a
``receipt_no``; CM / FICA posting is recorded as COMPLETED on creation.
"""

from __future__ import annotations

import logging

from flask import current_app
from sqlalchemy import select

from portal.models import db
from portal.models.customer import Customer
from portal.models.payment import PAY_MODES, PAY_TYPES, PAYMENT_STATUSES, Payment
from portal.utils.helpers import get_or_404, next_code, number, one_of, positive_amount, require_fields

logger = logging.getLogger(__name__)

_UPDATABLE = ("description", "collection_center", "trans_id")


def list_payments(filters: dict) -> list[dict]:
    stmt = select(Payment).order_by(Payment.id.desc())
    if filters.get("customer_id"):
        stmt = stmt.where(Payment.customer_id == filters["customer_id"])
    for field in ("status", "pay_type", "pay_mode"):
        if filters.get(field):
            stmt = stmt.where(getattr(Payment, field) == filters[field])
    return [p.to_dict() for p in db.session.execute(stmt).scalars()]


def get_payment(payment_id: int) -> dict:
    return get_or_404(Payment, payment_id, "Payment").to_dict()


def create_payment(data: dict, actor: str) -> dict:
    """Record a receipt for an existing customer.

    Raises:
        ValidationError: missing fields, amount <= 0, bad pay_mode / pay_type.
        NotFoundError: unknown customer.
    """
    require_fields(data, "customer_id", "pay_amount", "pay_mode", "pay_type")
    amount = positive_amount(data["pay_amount"], "pay_amount")
    pay_mode = one_of(data["pay_mode"], PAY_MODES, "pay_mode")
    pay_type = one_of(data["pay_type"], PAY_TYPES, "pay_type")
    customer = get_or_404(Customer, data["customer_id"], "Customer")

    vat = number(data.get("vat_amount"), "vat_amount")
    if vat is None:
        vat = round(amount * current_app.config["VAT_RATE"], 2)

    prefix = "HW" if pay_type == "HARDWARE" else "SUB"
    sequence = next_code(Payment, "", width=6)
    payment = Payment(
        pay_id=f"PAY_{prefix}_{sequence}",
        receipt_no=f"RCP{sequence}",
        customer_id=customer.id,
        customer_name=customer.full_name,
        customer_type=customer.customer_type,
        sap_bp_id=customer.sap_bp_id,
        sap_ca_id=customer.sap_ca_id,
        pay_type=pay_type,
        pay_amount=amount,
        vat_amount=vat,
        total_amount=round(amount + vat, 2),
        currency=data.get("currency") or customer.currency or current_app.config["DEFAULT_CURRENCY"],
        pay_mode=pay_mode,
        trans_id=data.get("trans_id") or f"TXN{sequence}",
        description=data.get("description") or f"{pay_type.title()} payment",
        collected_by=data.get("collected_by") or actor,
        collection_center=data.get("collection_center"),
        status="COMPLETED",
        cm_status="COMPLETED",
        cm_status_msg="Payment posted to CM",
        fica_status="COMPLETED",
        fica_status_msg="Payment cleared in FICA",
        create_id=actor,
    )
    db.session.add(payment)
    db.session.commit()
    logger.info("Payment recorded total=%.2f", payment.total_amount,
                extra={"entity_type": "payment", "entity_id": payment.pay_id, "user": actor})
    return payment.to_dict()


def update_payment(payment_id: int, data: dict, actor: str) -> dict:
    payment = get_or_404(Payment, payment_id, "Payment")
    for field in _UPDATABLE:
        if field in data:
            setattr(payment, field, data[field])
    if "status" in data:
        payment.status = one_of(data["status"], PAYMENT_STATUSES, "status")
    payment.touch(actor)
    db.session.commit()
    return payment.to_dict()


def delete_payment(payment_id: int) -> None:
    payment = get_or_404(Payment, payment_id, "Payment")
    db.session.delete(payment)
    db.session.commit()
