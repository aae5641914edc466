"""
Pay-TV Back-Office Portal
Receipt Cancellation Service — reverse a collected receipt inside the FI period.

A receipt is eligible when:
  - the payment exists and is COMPLETED
  - no cancellation has been recorded for its pay_id
  - it was collected no more than FI_PERIOD_DAYS (30) days ago

Cancelling marks the payment CANCELLED, records an INITIATED cancellation,
submits it to CM and, for PREPAID customers, credits the wallet with the
receipt total.  CM/FICA progress arrives later through the CM webhook.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import select

from portal.core.exceptions import NotFoundError, ValidationError
from portal.integrations.cm_gateway import CMGateway
from portal.models import db
from portal.models.audit import audit_trail, write_audit
from portal.models.base import iso
from portal.models.customer import Customer
from portal.models.payment import Payment, ReceiptCancellation
from portal.utils.helpers import as_utc, parse_datetime, require_fields, text

logger = logging.getLogger(__name__)

ENTITY = "receipt_cancellation"
_FINAL_CM_STATUSES = ("COMPLETED", "FAILED")


def _days_since(dt: datetime) -> int:
    return (datetime.now(timezone.utc) - as_utc(dt)).days


def _get_payment(pay_id: str) -> Payment | None:
    return db.session.execute(
        select(Payment).where(Payment.pay_id == pay_id)
    ).scalar_one_or_none()


def _get_cancellation(pay_id: str) -> ReceiptCancellation:
    cancellation = db.session.execute(
        select(ReceiptCancellation).where(ReceiptCancellation.pay_id == pay_id)
    ).scalar_one_or_none()
    if cancellation is None:
        raise NotFoundError("Cancellation", pay_id)
    return cancellation


def check_eligibility(pay_id: str) -> dict:
    """Return ``{"eligible": bool, "reason": str | None, "current_status": str | None}``."""
    payment = _get_payment(pay_id)
    if payment is None:
        return {"eligible": False, "reason": "Receipt not found", "current_status": None}
    if payment.status != "COMPLETED":
        return {"eligible": False, "reason": "Only completed payments can be cancelled",
                "current_status": payment.status}
    already = db.session.execute(
        select(ReceiptCancellation.id).where(ReceiptCancellation.pay_id == pay_id)
    ).first()
    if already:
        return {"eligible": False, "reason": "Receipt already cancelled",
                "current_status": payment.status}
    if _days_since(payment.create_dt) > current_app.config["FI_PERIOD_DAYS"]:
        return {"eligible": False, "reason": "FI period has closed for this payment",
                "current_status": payment.status}
    return {"eligible": True, "reason": None, "current_status": payment.status}


# ═════════════════════════════════════════════════════════════════════════════
# Queries
# ═════════════════════════════════════════════════════════════════════════════


def eligible_receipts(filters: dict, page: int = 1, limit: int = 20) -> tuple[list[dict], int]:
    """COMPLETED, uncancelled receipts inside the FI period.

    ``filters`` keys: date_from, date_to, customer_id, agent_id, payment_mode.
    Returns (page_of_receipts, total_matching).
    """
    cancelled = select(ReceiptCancellation.pay_id)
    stmt = (
        select(Payment)
        .where(Payment.status == "COMPLETED", Payment.pay_id.not_in(cancelled))
        .order_by(Payment.create_dt.desc(), Payment.id.desc())
    )
    if filters.get("customer_id"):
        stmt = stmt.where(Payment.customer_id == filters["customer_id"])
    if filters.get("agent_id"):
        stmt = stmt.where(Payment.collected_by == filters["agent_id"])
    if filters.get("payment_mode"):
        stmt = stmt.where(Payment.pay_mode == filters["payment_mode"])

    date_from = parse_datetime(filters.get("date_from"), "date_from")
    date_to = parse_datetime(filters.get("date_to"), "date_to")
    fi_days = current_app.config["FI_PERIOD_DAYS"]

    matches = []
    for payment in db.session.execute(stmt).scalars():
        created = as_utc(payment.create_dt)
        if _days_since(created) > fi_days:
            continue
        if date_from and created < date_from:
            continue
        if date_to and created > date_to:
            continue
        matches.append(payment)

    start = (page - 1) * limit
    return [p.to_dict() for p in matches[start:start + limit]], len(matches)


def receipt_details(pay_id: str) -> dict:
    """Receipt plus its eligibility.

    Raises:
        NotFoundError: unknown pay_id.
        ValidationError: receipt exists but cannot be cancelled.
    """
    payment = _get_payment(pay_id)
    if payment is None:
        raise NotFoundError("Receipt", pay_id)
    eligibility = check_eligibility(pay_id)
    if not eligibility["eligible"]:
        raise ValidationError("Receipt not eligible for cancellation",
                              details={"reason": eligibility["reason"]})
    data = payment.to_dict()
    data["cancellation_eligibility"] = eligibility
    return data


def cancellation_audit(pay_id: str) -> dict:
    _get_cancellation(pay_id)
    return {"pay_id": pay_id, "audit_trail": audit_trail(ENTITY, pay_id)}


def cancellation_status(pay_id: str) -> dict:
    c = _get_cancellation(pay_id)
    return {
        "pay_id": pay_id,
        "cancellation_status": c.status,
        "cm_request_id": c.cm_request_id,
        "cm_status": c.cm_status,
        "cm_status_msg": c.cm_status_msg,
        "fica_status": c.fica_status,
        "fica_status_msg": c.fica_status_msg,
        "wallet_adjusted": c.wallet_adjusted,
        "last_updated": iso(c.update_dt or c.create_dt),
    }


# ═════════════════════════════════════════════════════════════════════════════
# Commands
# ═════════════════════════════════════════════════════════════════════════════


def cancel_receipt(data: dict, actor: str) -> dict:
    """Cancel an eligible receipt and hand the reversal to CM."""
    require_fields(data, "pay_id", "cancellation_reason")
    pay_id = data["pay_id"]
    reason = text(data["cancellation_reason"], "cancellation_reason")

    eligibility = check_eligibility(pay_id)
    if not eligibility["eligible"]:
        raise ValidationError("Receipt not eligible for cancellation",
                              details={"reason": eligibility["reason"]})

    payment = _get_payment(pay_id)
    now = datetime.now(timezone.utc)
    payment.status = "CANCELLED"
    payment.touch(actor)

    cancellation = ReceiptCancellation(
        pay_id=pay_id,
        payment_id=payment.id,
        cancellation_reason=reason,
        cancelled_by=actor,
        cancellation_date=now,
        original_status=eligibility["current_status"],
        status="INITIATED",
        cm_status="PENDING",
        cm_status_msg="Cancellation initiated",
        fica_status="PENDING",
        fica_status_msg="Awaiting reversal processing",
        create_id=actor,
    )
    db.session.add(cancellation)
    db.session.flush()
    write_audit(entity_type=ENTITY, entity_id=pay_id, action="CANCELLATION_INITIATED",
                actor=actor, old_value=eligibility["current_status"], new_value="CANCELLED",
                details={"reason": reason})

    result = CMGateway.from_app().submit_cancellation(pay_id)
    cancellation.cm_request_id = result.request_id
    cancellation.cm_status = result.status
    cancellation.cm_status_msg = result.message
    write_audit(entity_type=ENTITY, entity_id=pay_id, action="CM_STATUS_UPDATE",
                actor="system", new_value=result.status,
                details={"request_id": result.request_id, "message": result.message})

    wallet_adjustment = None
    customer = db.session.get(Customer, payment.customer_id)
    if payment.customer_type == "PREPAID" and customer is not None:
        customer.balance = (customer.balance or 0.0) + payment.total_amount
        customer.touch(actor)
        cancellation.wallet_adjusted = True
        cancellation.wallet_adjustment_amount = payment.total_amount
        wallet_adjustment = {
            "customer_id": customer.id,
            "adjustment_amount": payment.total_amount,
            "adjustment_type": "CREDIT",
            "adjustment_reason": "Receipt cancellation refund",
            "new_balance": customer.balance,
            "adjustment_date": iso(now),
        }
        write_audit(entity_type=ENTITY, entity_id=pay_id, action="WALLET_ADJUSTED",
                    actor=actor, details={"amount": payment.total_amount,
                                          "new_balance": customer.balance})

    db.session.commit()
    logger.info("Receipt cancelled",
                extra={"entity_type": ENTITY, "entity_id": pay_id, "user": actor})
    return {
        "pay_id": pay_id,
        "cancellation_status": cancellation.status,
        "cm_status": cancellation.cm_status,
        "cm_request_id": cancellation.cm_request_id,
        "wallet_adjustment": wallet_adjustment,
        "audit_trail": {
            "cancelled_by": actor,
            "cancellation_date": iso(now),
            "reason": reason,
        },
    }


def apply_cm_update(data: dict) -> dict:
    """CM webhook: copy CM/FICA fields onto the cancellation and move its status."""
    require_fields(data, "pay_id")
    cancellation = _get_cancellation(data["pay_id"])
    old = cancellation.status

    for field in ("cm_status", "cm_status_msg", "fica_status", "fica_status_msg"):
        if data.get(field) is not None:
            setattr(cancellation, field, data[field])
    cancellation.status = (
        cancellation.cm_status if cancellation.cm_status in _FINAL_CM_STATUSES else "PROCESSING"
    )
    cancellation.touch("CM")

    write_audit(entity_type=ENTITY, entity_id=cancellation.pay_id, action="CM_STATUS_UPDATE",
                actor="CM", old_value=old, new_value=cancellation.status,
                details={"cm_status": cancellation.cm_status,
                         "message": cancellation.cm_status_msg})
    if data.get("fica_status") is not None:
        write_audit(entity_type=ENTITY, entity_id=cancellation.pay_id,
                    action="FICA_STATUS_UPDATE", actor="FICA",
                    new_value=cancellation.fica_status,
                    details={"message": cancellation.fica_status_msg})
    db.session.commit()
    logger.info("CM update applied status=%s", cancellation.status,
                extra={"entity_type": ENTITY, "entity_id": cancellation.pay_id})
    return cancellation.to_dict()
