"""
Adjustment domain model.

Models:
    - Adjustment: a manual CREDIT/DEBIT correction to a customer wallet.

Lifecycle:
    PENDING ──approve──▶ APPROVED ──CM posting──▶ PROCESSED
       └────reject────▶ REJECTED
"""

from portal.models import db
from portal.models.base import AuditFieldsMixin, iso

ADJUSTMENT_STATUSES = ("PENDING", "APPROVED", "REJECTED", "PROCESSED")
ADJUSTMENT_TYPES = ("CREDIT", "DEBIT")
WALLET_TYPES = ("HW", "SUBSCRIPTION", "PREPAID")
VAT_TYPES = ("VAT", "NO_VAT")


class Adjustment(AuditFieldsMixin, db.Model):
    __tablename__ = "adjustments"

    id = db.Column(db.Integer, primary_key=True)
    bp_id = db.Column(db.String(30), nullable=False, index=True)
    sc_id = db.Column(db.String(30), nullable=True)
    customer_id = db.Column(
        db.Integer, db.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True,
    )
    customer_name = db.Column(db.String(200), nullable=True)

    type = db.Column(db.String(10), nullable=False)
    invoice_number = db.Column(db.String(40), nullable=True)
    reason = db.Column(db.String(255), nullable=False)
    comments = db.Column(db.Text, nullable=True)
    amount = db.Column(db.Float, nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="TZS")
    wallet_type = db.Column(db.String(20), nullable=True)
    vat_type = db.Column(db.String(10), nullable=True)

    status = db.Column(db.String(20), nullable=False, default="PENDING", index=True)
    requested_by = db.Column(db.String(100), nullable=False)
    requested_at = db.Column(db.DateTime(timezone=True), nullable=False)
    approved_by = db.Column(db.String(100), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_by = db.Column(db.String(100), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)
    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    cm_request_id = db.Column(db.String(80), nullable=True)
    cm_status = db.Column(db.String(40), nullable=True)
    cm_status_msg = db.Column(db.String(255), nullable=True)
    fica_status = db.Column(db.String(40), nullable=True)
    fica_status_msg = db.Column(db.String(255), nullable=True)

    @property
    def signed_amount(self) -> float:
        """Wallet effect: credits add, debits subtract."""
        return self.amount if self.type == "CREDIT" else -self.amount

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "bp_id": self.bp_id,
            "sc_id": self.sc_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "type": self.type,
            "invoice_number": self.invoice_number,
            "reason": self.reason,
            "comments": self.comments,
            "amount": self.amount,
            "currency": self.currency,
            "wallet_type": self.wallet_type,
            "vat_type": self.vat_type,
            "status": self.status,
            "requested_by": self.requested_by,
            "requested_at": iso(self.requested_at),
            "approved_by": self.approved_by,
            "approved_at": iso(self.approved_at),
            "rejected_by": self.rejected_by,
            "rejected_at": iso(self.rejected_at),
            "rejection_reason": self.rejection_reason,
            "processed_at": iso(self.processed_at),
            "cm_request_id": self.cm_request_id,
            "cm_status": self.cm_status,
            "cm_status_msg": self.cm_status_msg,
            "fica_status": self.fica_status,
            "fica_status_msg": self.fica_status_msg,
        }
        data.update(self.audit_fields())
        return data

    def __repr__(self):
        return f"<Adjustment {self.id}: {self.type} {self.amount} [{self.status}]>"
