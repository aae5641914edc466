"""
Payment domain model.

Models:
    - Payment: a collected receipt (hardware or subscription) with VAT split
      and CM / FICA posting status.
    - ReceiptCancellation: the reversal record raised when a completed
      receipt is cancelled inside the FI period.
"""

from portal.models import db
from portal.models.base import AuditFieldsMixin, iso

PAYMENT_STATUSES = ("PENDING", "COMPLETED", "FAILED", "CANCELLED")
PAY_TYPES = ("HARDWARE", "SUBSCRIPTION")
PAY_MODES = ("CASH", "CHEQUE", "MOBILE_MONEY", "BANK_TRANSFER", "CARD")
CANCELLATION_STATUSES = ("INITIATED", "PROCESSING", "COMPLETED", "FAILED")


class Payment(AuditFieldsMixin, db.Model):
    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)
    pay_id = db.Column(db.String(40), nullable=False, unique=True, index=True)
    receipt_no = db.Column(db.String(40), nullable=False)
    customer_id = db.Column(
        db.Integer, db.ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    customer_name = db.Column(db.String(200), nullable=True)
    customer_type = db.Column(db.String(20), nullable=False, default="PREPAID")
    sap_bp_id = db.Column(db.String(30), nullable=True)
    sap_ca_id = db.Column(db.String(30), nullable=True)

    pay_type = db.Column(db.String(20), nullable=False, default="SUBSCRIPTION")
    pay_amount = db.Column(db.Float, nullable=False)
    vat_amount = db.Column(db.Float, nullable=False, default=0.0)
    total_amount = db.Column(db.Float, nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="TZS")
    pay_mode = db.Column(db.String(20), nullable=False, default="CASH")
    trans_id = db.Column(db.String(60), nullable=True)
    description = db.Column(db.String(255), nullable=True)

    collected_by = db.Column(db.String(100), nullable=True, comment="Agent or cashier id")
    collection_center = db.Column(db.String(100), nullable=True)

    status = db.Column(db.String(20), nullable=False, default="COMPLETED", index=True)
    cm_status = db.Column(db.String(40), nullable=True)
    cm_status_msg = db.Column(db.String(255), nullable=True)
    fica_status = db.Column(db.String(40), nullable=True)
    fica_status_msg = db.Column(db.String(255), nullable=True)

    customer = db.relationship("Customer", lazy="joined")

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "pay_id": self.pay_id,
            "receipt_no": self.receipt_no,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_type": self.customer_type,
            "sap_bp_id": self.sap_bp_id,
            "sap_ca_id": self.sap_ca_id,
            "pay_type": self.pay_type,
            "pay_amount": self.pay_amount,
            "vat_amount": self.vat_amount,
            "total_amount": self.total_amount,
            "currency": self.currency,
            "pay_mode": self.pay_mode,
            "trans_id": self.trans_id,
            "description": self.description,
            "collected_by": self.collected_by,
            "collection_center": self.collection_center,
            "status": self.status,
            "cm_status": self.cm_status,
            "cm_status_msg": self.cm_status_msg,
            "fica_status": self.fica_status,
            "fica_status_msg": self.fica_status_msg,
        }
        data.update(self.audit_fields())
        return data

    def __repr__(self):
        return f"<Payment {self.pay_id}: {self.total_amount} [{self.status}]>"


class ReceiptCancellation(AuditFieldsMixin, db.Model):
    """One cancellation per receipt; ``pay_id`` is unique."""

    __tablename__ = "receipt_cancellations"

    id = db.Column(db.Integer, primary_key=True)
    pay_id = db.Column(db.String(40), nullable=False, unique=True, index=True)
    payment_id = db.Column(
        db.Integer, db.ForeignKey("payments.id", ondelete="CASCADE"), nullable=False,
    )
    cancellation_reason = db.Column(db.Text, nullable=False)
    cancelled_by = db.Column(db.String(100), nullable=False)
    cancellation_date = db.Column(db.DateTime(timezone=True), nullable=False)
    original_status = db.Column(db.String(20), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="INITIATED")

    cm_request_id = db.Column(db.String(80), nullable=True)
    cm_status = db.Column(db.String(40), nullable=True)
    cm_status_msg = db.Column(db.String(255), nullable=True)
    fica_status = db.Column(db.String(40), nullable=True)
    fica_status_msg = db.Column(db.String(255), nullable=True)

    wallet_adjusted = db.Column(db.Boolean, nullable=False, default=False)
    wallet_adjustment_amount = db.Column(db.Float, nullable=True)

    payment = db.relationship("Payment", lazy="joined")

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "pay_id": self.pay_id,
            "payment_id": self.payment_id,
            "cancellation_reason": self.cancellation_reason,
            "cancelled_by": self.cancelled_by,
            "cancellation_date": iso(self.cancellation_date),
            "original_status": self.original_status,
            "status": self.status,
            "cm_request_id": self.cm_request_id,
            "cm_status": self.cm_status,
            "cm_status_msg": self.cm_status_msg,
            "fica_status": self.fica_status,
            "fica_status_msg": self.fica_status_msg,
            "wallet_adjusted": self.wallet_adjusted,
            "wallet_adjustment_amount": self.wallet_adjustment_amount,
        }
        data.update(self.audit_fields())
        return data

    def __repr__(self):
        return f"<ReceiptCancellation {self.pay_id} [{self.status}]>"
