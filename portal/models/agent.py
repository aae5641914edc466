"""
Agent domain model.

Models:
    - Agent: sales/collection agent. Onboarding starts in ``pending_kyc``
      and a KYC reviewer moves it to ``approved`` or ``rejected``.
"""

from portal.models import db
from portal.models.base import AuditFieldsMixin, iso

AGENT_STATUSES = ("pending_kyc", "approved", "rejected", "active", "blocked", "inactive")


class Agent(AuditFieldsMixin, db.Model):
    __tablename__ = "agents"

    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(30), nullable=False)
    mobile = db.Column(db.String(30), nullable=True)
    agent_type = db.Column(db.String(30), nullable=False, default="INDIVIDUAL")
    business_name = db.Column(db.String(200), nullable=True)
    region = db.Column(db.String(100), nullable=True)
    city = db.Column(db.String(100), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    tin_number = db.Column(db.String(30), nullable=True)
    vrn_number = db.Column(db.String(30), nullable=True)

    commission = db.Column(db.Float, nullable=False, default=5.0)
    credit_limit = db.Column(db.Float, nullable=False, default=0.0)
    current_balance = db.Column(db.Float, nullable=False, default=0.0)
    currency = db.Column(db.String(3), nullable=False, default="TZS")

    status = db.Column(db.String(20), nullable=False, default="pending_kyc", index=True)
    status_message = db.Column(db.String(255), nullable=True)
    onboarding_ref_no = db.Column(db.String(40), nullable=True, unique=True)
    sap_bp_id = db.Column(db.String(30), nullable=True)
    sap_ca_id = db.Column(db.String(30), nullable=True)

    kyc_remarks = db.Column(db.Text, nullable=True)
    kyc_reviewed_by = db.Column(db.String(100), nullable=True)
    kyc_reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "mobile": self.mobile,
            "agent_type": self.agent_type,
            "business_name": self.business_name,
            "region": self.region,
            "city": self.city,
            "address": self.address,
            "tin_number": self.tin_number,
            "vrn_number": self.vrn_number,
            "commission": self.commission,
            "credit_limit": self.credit_limit,
            "current_balance": self.current_balance,
            "currency": self.currency,
            "status": self.status,
            "status_message": self.status_message,
            "onboarding_ref_no": self.onboarding_ref_no,
            "sap_bp_id": self.sap_bp_id,
            "sap_ca_id": self.sap_ca_id,
            "kyc_remarks": self.kyc_remarks,
            "kyc_reviewed_by": self.kyc_reviewed_by,
            "kyc_reviewed_at": iso(self.kyc_reviewed_at),
        }
        data.update(self.audit_fields())
        return data

    def __repr__(self):
        return f"<Agent {self.id}: {self.full_name} [{self.status}]>"
