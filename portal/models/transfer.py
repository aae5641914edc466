"""
Customer transfer domain model.

Models:
    - CustomerTransfer: moves a paid amount from one customer account to
      another. Downstream CM / FICA / SOM progress is tracked per system.

Lifecycle:
    INPROGRESS ──approve──▶ APPROVED ──CM processing──▶ COMPLETED
        └──────reject────▶ REJECTED
    A transfer against an already-cleared invoice is created APPROVED and
    flagged for manual intervention.
"""

from portal.models import db
from portal.models.base import AuditFieldsMixin

TRANSFER_STATUSES = ("INPROGRESS", "APPROVED", "REJECTED", "COMPLETED")
TRANSFER_DECISIONS = ("APPROVED", "REJECTED")


class CustomerTransfer(AuditFieldsMixin, db.Model):
    __tablename__ = "customer_transfers"

    id = db.Column(db.Integer, primary_key=True)
    source_bp_id = db.Column(db.String(30), nullable=False)
    target_bp_id = db.Column(db.String(30), nullable=False)
    source_customer_id = db.Column(
        db.Integer, db.ForeignKey("customers.id", ondelete="CASCADE"), nullable=False,
    )
    target_customer_id = db.Column(
        db.Integer, db.ForeignKey("customers.id", ondelete="CASCADE"), nullable=False,
    )
    transfer_amount = db.Column(db.Float, nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="TZS")
    transfer_reason = db.Column(db.String(255), nullable=False)
    payment_type = db.Column(db.String(20), nullable=False, default="SUBSCRIPTION")
    payment_id = db.Column(db.String(40), nullable=True)
    invoice_number = db.Column(db.String(40), nullable=True)
    invoice_status = db.Column(db.String(20), nullable=True)
    manual_intervention_required = db.Column(db.Boolean, nullable=False, default=False)

    status = db.Column(db.String(20), nullable=False, default="INPROGRESS", index=True)
    decided_by = db.Column(db.String(100), nullable=True)
    decision_reason = db.Column(db.String(255), nullable=True)

    request_id = db.Column(db.String(80), nullable=True)
    cm_status = db.Column(db.String(40), nullable=True)
    cm_status_msg = db.Column(db.String(255), nullable=True)
    fica_status = db.Column(db.String(40), nullable=True)
    fica_status_msg = db.Column(db.String(255), nullable=True)
    som_status = db.Column(db.String(40), nullable=True)
    som_status_msg = db.Column(db.String(255), nullable=True)

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "source_bp_id": self.source_bp_id,
            "target_bp_id": self.target_bp_id,
            "source_customer_id": self.source_customer_id,
            "target_customer_id": self.target_customer_id,
            "transfer_amount": self.transfer_amount,
            "currency": self.currency,
            "transfer_reason": self.transfer_reason,
            "payment_type": self.payment_type,
            "payment_id": self.payment_id,
            "invoice_number": self.invoice_number,
            "invoice_status": self.invoice_status,
            "manual_intervention_required": self.manual_intervention_required,
            "status": self.status,
            "decided_by": self.decided_by,
            "decision_reason": self.decision_reason,
            "request_id": self.request_id,
            "cm_status": self.cm_status,
            "cm_status_msg": self.cm_status_msg,
            "fica_status": self.fica_status,
            "fica_status_msg": self.fica_status_msg,
            "som_status": self.som_status,
            "som_status_msg": self.som_status_msg,
        }
        data.update(self.audit_fields())
        return data

    def __repr__(self):
        return f"<CustomerTransfer {self.id}: {self.source_bp_id}->{self.target_bp_id} [{self.status}]>"
