"""
Pay-TV Back-Office Portal
Adjustment Service — manual wallet CREDIT/DEBIT corrections.

Lifecycle:
    PENDING ──approve──▶ APPROVED ──adjustment.post_to_cm──▶ PROCESSED
       └────reject────▶ REJECTED

Business rules:
  - amount must be > 0; the customer is resolved by SAP BP id
  - only PENDING adjustments can be approved or rejected
  - a rejection needs a reason of at least 10 characters
  - CM posting credits/debits the customer's wallet once, when the
    adjustment is still APPROVED at posting time
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import func, select

from portal.core.exceptions import NotFoundError, ValidationError
from portal.integrations.cm_gateway import CMGateway
from portal.models import db
from portal.models.adjustment import (
    ADJUSTMENT_TYPES,
    VAT_TYPES,
    WALLET_TYPES,
    Adjustment,
)
from portal.models.audit import write_audit
from portal.models.customer import Customer
from portal.services.job_queue import JobQueue, register_job
from portal.utils.helpers import get_or_404, one_of, positive_amount, require_fields, text

logger = logging.getLogger(__name__)

MIN_REJECTION_REASON = 10


# ═════════════════════════════════════════════════════════════════════════════
# Internal helpers
# ═════════════════════════════════════════════════════════════════════════════


def _require_status(adj: Adjustment, action: str) -> None:
    if adj.status != "PENDING":
        raise ValidationError(f"Cannot {action} adjustment with status: {adj.status}")


def _audit(adj: Adjustment, action: str, actor: str, old: str | None = None, **details) -> None:
    write_audit(
        entity_type="adjustment",
        entity_id=adj.id,
        action=action,
        actor=actor,
        old_value=old,
        new_value=adj.status,
        details=details,
    )


# ═════════════════════════════════════════════════════════════════════════════
# Queries
# ═════════════════════════════════════════════════════════════════════════════


def list_adjustments(status: str | None = None, bp_id: str | None = None) -> list[dict]:
    stmt = select(Adjustment).order_by(Adjustment.id.desc())
    if status:
        stmt = stmt.where(Adjustment.status == status)
    if bp_id:
        stmt = stmt.where(Adjustment.bp_id == bp_id)
    return [a.to_dict() for a in db.session.execute(stmt).scalars()]


def get_adjustment(adj_id: int) -> dict:
    return get_or_404(Adjustment, adj_id, "Adjustment").to_dict()


def adjustment_stats() -> dict:
    """Counts per status plus credit/debit totals across all adjustments."""
    counts = dict(
        db.session.execute(
            select(Adjustment.status, func.count(Adjustment.id)).group_by(Adjustment.status)
        ).all()
    )
    sums = dict(
        db.session.execute(
            select(Adjustment.type, func.coalesce(func.sum(Adjustment.amount), 0.0))
            .group_by(Adjustment.type)
        ).all()
    )
    credit = float(sums.get("CREDIT", 0.0))
    debit = float(sums.get("DEBIT", 0.0))
    return {
        "total": sum(counts.values()),
        "pending": counts.get("PENDING", 0),
        "approved": counts.get("APPROVED", 0),
        "rejected": counts.get("REJECTED", 0),
        "processed": counts.get("PROCESSED", 0),
        "total_amount": credit - debit,
        "credit_amount": credit,
        "debit_amount": debit,
    }


# ═════════════════════════════════════════════════════════════════════════════
# Commands
# ═════════════════════════════════════════════════════════════════════════════


def create_adjustment(data: dict, requested_by: str) -> dict:
    """Create a PENDING adjustment for the customer identified by ``bp_id``.

    Raises:
        ValidationError: missing fields, amount <= 0, bad enum value.
        NotFoundError: no customer with that BP id.
    """
    require_fields(data, "bp_id", "type", "reason", "amount")
    amount = positive_amount(data["amount"])
    reason = text(data["reason"], "reason")
    adj_type = one_of(data["type"], ADJUSTMENT_TYPES, "type")
    wallet_type = one_of(data.get("wallet_type"), WALLET_TYPES, "wallet_type")
    vat_type = one_of(data.get("vat_type"), VAT_TYPES, "vat_type")

    customer = db.session.execute(
        select(Customer).where(Customer.sap_bp_id == data["bp_id"])
    ).scalar_one_or_none()
    if customer is None:
        raise NotFoundError("Customer", data["bp_id"])

    now = datetime.now(timezone.utc)
    adj = Adjustment(
        bp_id=customer.sap_bp_id,
        sc_id=data.get("sc_id") or customer.sc_id,
        customer_id=customer.id,
        customer_name=customer.full_name,
        type=adj_type,
        invoice_number=data.get("invoice_number"),
        reason=reason,
        comments=data.get("comments"),
        amount=amount,
        currency=data.get("currency") or current_app.config["DEFAULT_CURRENCY"],
        wallet_type=wallet_type,
        vat_type=vat_type,
        status="PENDING",
        requested_by=requested_by,
        requested_at=now,
        create_id=requested_by,
    )
    db.session.add(adj)
    db.session.flush()
    _audit(adj, "created", requested_by, amount=amount, type=adj_type)
    db.session.commit()
    logger.info(
        "Adjustment created",
        extra={"entity_type": "adjustment", "entity_id": adj.id, "user": requested_by},
    )
    return adj.to_dict()


def approve_adjustment(adj_id: int, approver: str) -> dict:
    """Approve a PENDING adjustment and schedule its CM posting."""
    adj = get_or_404(Adjustment, adj_id, "Adjustment")
    _require_status(adj, "approve")

    result = CMGateway.from_app().post_adjustment(adj.id)
    adj.status = "APPROVED"
    adj.approved_by = approver
    adj.approved_at = datetime.now(timezone.utc)
    adj.cm_request_id = result.request_id
    adj.cm_status = result.status
    adj.cm_status_msg = result.message
    adj.touch(approver)
    _audit(adj, "approved", approver, old="PENDING", cm_request_id=result.request_id)
    db.session.commit()

    JobQueue.enqueue(
        "adjustment.post_to_cm",
        delay=current_app.config["ADJUSTMENT_POSTING_DELAY"],
        adjustment_id=adj.id,
    )
    logger.info(
        "Adjustment approved",
        extra={"entity_type": "adjustment", "entity_id": adj.id, "user": approver},
    )
    return adj.to_dict()


def reject_adjustment(adj_id: int, rejector: str, rejection_reason: str | None) -> dict:
    """Reject a PENDING adjustment with a reason of at least 10 characters."""
    reason = text(rejection_reason, "rejection_reason")
    if len(reason) < MIN_REJECTION_REASON:
        raise ValidationError(
            f"Rejection reason must be at least {MIN_REJECTION_REASON} characters long"
        )

    adj = get_or_404(Adjustment, adj_id, "Adjustment")
    _require_status(adj, "reject")

    adj.status = "REJECTED"
    adj.rejected_by = rejector
    adj.rejected_at = datetime.now(timezone.utc)
    adj.rejection_reason = reason
    adj.touch(rejector)
    _audit(adj, "rejected", rejector, old="PENDING", reason=reason)
    db.session.commit()
    logger.info(
        "Adjustment rejected",
        extra={"entity_type": "adjustment", "entity_id": adj.id, "user": rejector},
    )
    return adj.to_dict()


# ═════════════════════════════════════════════════════════════════════════════
# Downstream jobs
# ═════════════════════════════════════════════════════════════════════════════


@register_job("adjustment.post_to_cm")
def post_to_cm(adjustment_id: int) -> dict:
    """CM confirms the posting: APPROVED → PROCESSED and the wallet moves."""
    adj = db.session.get(Adjustment, adjustment_id)
    if adj is None or adj.status != "APPROVED":
        return {"skipped": True, "reason": "adjustment no longer APPROVED"}

    adj.status = "PROCESSED"
    adj.processed_at = datetime.now(timezone.utc)
    adj.cm_status = "COMPLETED"
    adj.cm_status_msg = "Adjustment successfully posted to CM"
    adj.fica_status = "COMPLETED"
    adj.fica_status_msg = "Customer account updated"
    adj.touch("CM")

    if adj.customer_id:
        customer = db.session.get(Customer, adj.customer_id)
        if customer is not None:
            customer.balance = (customer.balance or 0.0) + adj.signed_amount
            customer.touch("CM")

    _audit(adj, "processed", "CM", old="APPROVED", cm_request_id=adj.cm_request_id)
    db.session.commit()
    logger.info("Adjustment posted to CM",
                extra={"entity_type": "adjustment", "entity_id": adj.id})
    return {"adjustment_id": adj.id, "status": adj.status}
