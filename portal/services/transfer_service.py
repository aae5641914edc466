"""
Pay-TV Back-Office Portal
Customer Transfer Service — move a paid amount between customer accounts.

Lifecycle:
    INPROGRESS ──APPROVED──▶ APPROVED ──transfer.process──▶ (CM/FICA PROCESSING)
                                        ──transfer.complete──▶ COMPLETED
        └──────REJECTED────▶ REJECTED

Eligibility (checked on validate and again on create):
  - source and target customers exist and differ
  - the source has a COMPLETED payment whose total covers the amount

Invoice check: when an invoice number is supplied and CM reports it CLEARED,
the transfer cannot be reversed automatically.  It is created APPROVED with
cm_status MANUAL_INTERVENTION_REQUIRED and no downstream jobs run.
"""

from __future__ import annotations

import logging

from flask import current_app
from sqlalchemy import func, select

from portal.core.exceptions import ValidationError
from portal.integrations.cm_gateway import CMGateway
from portal.models import db
from portal.models.audit import audit_trail, write_audit
from portal.models.base import iso
from portal.models.customer import Customer
from portal.models.payment import Payment
from portal.models.transfer import TRANSFER_DECISIONS, CustomerTransfer
from portal.services.job_queue import JobQueue, register_job
from portal.utils.helpers import get_or_404, positive_amount, require_fields, text

logger = logging.getLogger(__name__)

ENTITY = "customer_transfer"


def _as_int(value, field: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise ValidationError(f"{field} must be an integer id") from exc


def _audit(transfer: CustomerTransfer, action: str, actor: str, old: str | None = None, **details):
    write_audit(
        entity_type=ENTITY,
        entity_id=transfer.id,
        action=action,
        actor=actor,
        old_value=old,
        new_value=transfer.status,
        details=details,
    )


def _customer_summary(customer: Customer) -> dict:
    return {
        "id": customer.id,
        "first_name": customer.first_name,
        "last_name": customer.last_name,
        "phone": customer.phone,
        "email": customer.email,
        "customer_type": customer.customer_type,
        "sap_bp_id": customer.sap_bp_id,
    }


# ═════════════════════════════════════════════════════════════════════════════
# Eligibility
# ═════════════════════════════════════════════════════════════════════════════


def check_eligibility(source_id: int, target_id: int, amount: float) -> dict:
    """Return ``{"eligible": bool, "reason": str | None, ...}`` for a transfer."""
    source = db.session.get(Customer, source_id)
    target = db.session.get(Customer, target_id)

    if source is None:
        return {"eligible": False, "reason": "Source customer not found"}
    if target is None:
        return {"eligible": False, "reason": "Target customer not found"}
    if source_id == target_id:
        return {"eligible": False, "reason": "Cannot transfer payment to the same customer"}

    payments = db.session.execute(
        select(Payment).where(
            Payment.customer_id == source_id,
            Payment.status == "COMPLETED",
            Payment.total_amount >= amount,
        ).order_by(Payment.id.desc())
    ).scalars().all()

    result = {
        "source_customer": _customer_summary(source),
        "target_customer": _customer_summary(target),
    }
    if not payments:
        result.update(eligible=False, reason="No eligible payments found for the source customer")
        return result

    result.update(
        eligible=True,
        reason=None,
        available_payments=[p.to_dict() for p in payments],
    )
    return result


def validate_transfer(data: dict) -> dict:
    if not data.get("source_customer_id") or not data.get("target_customer_id") or not data.get("amount"):
        raise ValidationError("Source customer ID, target customer ID, and amount are required")
    amount = positive_amount(data["amount"], "transfer_amount")
    return check_eligibility(
        _as_int(data["source_customer_id"], "source_customer_id"),
        _as_int(data["target_customer_id"], "target_customer_id"),
        amount,
    )


def customer_eligibility(customer_id: int) -> dict:
    """Customer summary with completed-payment totals and the 5 latest payments."""
    customer = get_or_404(Customer, customer_id, "Customer")
    payments = db.session.execute(
        select(Payment)
        .where(Payment.customer_id == customer_id, Payment.status == "COMPLETED")
        .order_by(Payment.create_dt.desc(), Payment.id.desc())
    ).scalars().all()
    return {
        "customer": _customer_summary(customer),
        "eligibility": {
            "has_active_payments": bool(payments),
            "total_payments": len(payments),
            "total_amount": sum(p.total_amount for p in payments),
            "currency": customer.currency or current_app.config["DEFAULT_CURRENCY"],
        },
        "recent_payments": [
            {
                "id": p.id,
                "pay_id": p.pay_id,
                "amount": p.total_amount,
                "currency": p.currency,
                "pay_mode": p.pay_mode,
                "pay_type": p.pay_type,
                "receipt_no": p.receipt_no,
                "created_at": iso(p.create_dt),
            }
            for p in payments[:5]
        ],
    }


# ═════════════════════════════════════════════════════════════════════════════
# Queries
# ═════════════════════════════════════════════════════════════════════════════


def list_transfers(status: str | None = None) -> list[dict]:
    stmt = select(CustomerTransfer).order_by(CustomerTransfer.id.desc())
    if status:
        stmt = stmt.where(CustomerTransfer.status == status)
    return [t.to_dict() for t in db.session.execute(stmt).scalars()]


def get_transfer(transfer_id: int) -> dict:
    return get_or_404(CustomerTransfer, transfer_id, "Transfer").to_dict()


def transfer_status(transfer_id: int) -> dict:
    """Transfer, its audit trail and a current-status summary."""
    transfer = get_or_404(CustomerTransfer, transfer_id, "Transfer")
    return {
        "transfer": transfer.to_dict(),
        "audit_trail": audit_trail(ENTITY, transfer.id),
        "current_status": {
            "transfer_status": transfer.status,
            "cm_status": transfer.cm_status,
            "fica_status": transfer.fica_status,
            "som_status": transfer.som_status,
            "manual_intervention_required": transfer.manual_intervention_required,
            "last_updated": iso(transfer.update_dt or transfer.create_dt),
        },
    }


def transfer_counts() -> dict:
    rows = db.session.execute(
        select(CustomerTransfer.status, func.count(CustomerTransfer.id))
        .group_by(CustomerTransfer.status)
    ).all()
    return dict(rows)


# ═════════════════════════════════════════════════════════════════════════════
# Commands
# ═════════════════════════════════════════════════════════════════════════════


def create_transfer(data: dict, actor: str) -> dict:
    """Create a transfer after re-checking eligibility.

    Raises:
        ValidationError: missing fields, amount <= 0, or not eligible
            (``details["reason"]`` carries the eligibility reason).
    """
    require_fields(
        data,
        "source_bp_id", "target_bp_id", "source_customer_id", "target_customer_id",
        "transfer_amount", "transfer_reason",
        message="All required fields must be provided",
    )
    amount = positive_amount(data["transfer_amount"], "transfer_amount")
    reason = text(data["transfer_reason"], "transfer_reason")
    source_id = _as_int(data["source_customer_id"], "source_customer_id")
    target_id = _as_int(data["target_customer_id"], "target_customer_id")

    eligibility = check_eligibility(source_id, target_id, amount)
    if not eligibility["eligible"]:
        raise ValidationError("Transfer not eligible", details={"reason": eligibility["reason"]})

    gateway = CMGateway.from_app()
    invoice_number = data.get("invoice_number")
    invoice_status = gateway.check_invoice_status(invoice_number) if invoice_number else "PENDING"
    manual = invoice_status == "CLEARED"

    transfer = CustomerTransfer(
        source_bp_id=data["source_bp_id"],
        target_bp_id=data["target_bp_id"],
        source_customer_id=source_id,
        target_customer_id=target_id,
        transfer_amount=amount,
        currency=data.get("currency") or current_app.config["DEFAULT_CURRENCY"],
        transfer_reason=reason,
        payment_type=data.get("payment_type") or "SUBSCRIPTION",
        payment_id=data.get("payment_id"),
        invoice_number=invoice_number,
        invoice_status=invoice_status,
        manual_intervention_required=manual,
        status="INPROGRESS",
        create_id=actor,
    )
    db.session.add(transfer)
    db.session.flush()
    _audit(transfer, "TRANSFER_INITIATED", actor, reason=transfer.transfer_reason, amount=amount)

    if manual:
        transfer.status = "APPROVED"
        transfer.cm_status = "MANUAL_INTERVENTION_REQUIRED"
        transfer.cm_status_msg = "Invoice already cleared - manual intervention required for reversal"
        transfer.touch("system")
        _audit(transfer, "STATUS_UPDATED", "system", old="INPROGRESS",
               message=transfer.cm_status_msg)
    db.session.commit()

    if not manual:
        JobQueue.enqueue(
            "transfer.submit_to_cm",
            delay=current_app.config["TRANSFER_SUBMIT_DELAY"],
            transfer_id=transfer.id,
        )

    logger.info(
        "Transfer created manual=%s", manual,
        extra={"entity_type": ENTITY, "entity_id": transfer.id, "user": actor},
    )
    return transfer.to_dict()


def decide_transfer(transfer_id: int, data: dict, actor: str) -> dict:
    """Approve or reject an INPROGRESS transfer.

    Raises:
        NotFoundError: unknown transfer.
        ValidationError: status not APPROVED/REJECTED, or transfer already decided.
    """
    transfer = get_or_404(CustomerTransfer, transfer_id, "Transfer")
    decision = data.get("status")
    if decision not in TRANSFER_DECISIONS:
        raise ValidationError(f"status must be one of: {', '.join(TRANSFER_DECISIONS)}")
    if transfer.status != "INPROGRESS":
        raise ValidationError(f"Cannot update transfer with status: {transfer.status}")

    old = transfer.status
    transfer.status = decision
    transfer.decided_by = data.get("approved_by") or actor
    transfer.touch(actor)

    if decision == "APPROVED":
        transfer.cm_status = "APPROVED"
        transfer.cm_status_msg = f"Transfer approved by {transfer.decided_by}"
    else:
        reason = text(data.get("reason"), "reason") or "No reason provided"
        transfer.decision_reason = reason
        transfer.cm_status = "REJECTED"
        transfer.cm_status_msg = f"Transfer rejected: {reason}"

    _audit(transfer, "STATUS_UPDATED", actor, old=old, message=transfer.cm_status_msg)
    db.session.commit()

    if decision == "APPROVED":
        JobQueue.enqueue(
            "transfer.process",
            delay=current_app.config["TRANSFER_PROCESS_DELAY"],
            transfer_id=transfer.id,
        )

    logger.info(
        "Transfer %s", decision.lower(),
        extra={"entity_type": ENTITY, "entity_id": transfer.id, "user": actor},
    )
    return transfer.to_dict()


# ═════════════════════════════════════════════════════════════════════════════
# Downstream jobs
# ═════════════════════════════════════════════════════════════════════════════


@register_job("transfer.submit_to_cm")
def submit_to_cm(transfer_id: int) -> dict:
    """CM acknowledges a new transfer; runs only while it is still INPROGRESS."""
    transfer = db.session.get(CustomerTransfer, transfer_id)
    if transfer is None or transfer.status != "INPROGRESS":
        return {"skipped": True, "reason": "transfer no longer INPROGRESS"}

    result = CMGateway.from_app().submit_transfer(transfer.id)
    transfer.request_id = result.request_id
    transfer.cm_status = result.status
    transfer.cm_status_msg = result.message
    transfer.fica_status = "PENDING"
    transfer.fica_status_msg = "Awaiting FICA processing"
    transfer.touch("CM")
    _audit(transfer, "CM_STATUS_UPDATE", "CM", request_id=result.request_id,
           message=result.message)
    db.session.commit()
    return {"transfer_id": transfer.id, "request_id": result.request_id}


@register_job("transfer.process")
def process_transfer(transfer_id: int) -> dict:
    """CM and FICA start the reversal of an APPROVED transfer."""
    transfer = db.session.get(CustomerTransfer, transfer_id)
    if transfer is None or transfer.status != "APPROVED" or transfer.manual_intervention_required:
        return {"skipped": True, "reason": "transfer not awaiting processing"}

    transfer.cm_status = "PROCESSING"
    transfer.cm_status_msg = "Transfer being processed by CM"
    transfer.fica_status = "PROCESSING"
    transfer.fica_status_msg = "Payment reversal in progress"
    transfer.touch("CM")
    _audit(transfer, "FICA_STATUS_UPDATE", "CM", message=transfer.fica_status_msg)
    db.session.commit()

    JobQueue.enqueue(
        "transfer.complete",
        delay=current_app.config["TRANSFER_COMPLETE_DELAY"],
        transfer_id=transfer.id,
    )
    return {"transfer_id": transfer.id, "cm_status": transfer.cm_status}


@register_job("transfer.complete")
def complete_transfer(transfer_id: int) -> dict:
    """Final CM / FICA / SOM confirmation: APPROVED → COMPLETED."""
    transfer = db.session.get(CustomerTransfer, transfer_id)
    if transfer is None or transfer.status != "APPROVED" or transfer.cm_status != "PROCESSING":
        return {"skipped": True, "reason": "transfer not in CM processing"}

    transfer.status = "COMPLETED"
    transfer.cm_status = "COMPLETED"
    transfer.cm_status_msg = "Transfer completed successfully"
    transfer.fica_status = "COMPLETED"
    transfer.fica_status_msg = "Payment successfully transferred"
    transfer.som_status = "COMPLETED"
    transfer.som_status_msg = "Subscription updated for target customer"
    transfer.touch("CM")
    _audit(transfer, "STATUS_UPDATED", "CM", old="APPROVED", message=transfer.cm_status_msg)
    db.session.commit()
    logger.info("Transfer completed", extra={"entity_type": ENTITY, "entity_id": transfer.id})
    return {"transfer_id": transfer.id, "status": transfer.status}
