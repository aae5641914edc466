"""
Customer domain model.

Models:
    - Customer: subscriber with SAP BRIM business-partner / contract-account
      references and a prepaid wallet balance.
"""

from portal.models import db
from portal.models.base import AuditFieldsMixin

CUSTOMER_TYPES = ("PREPAID", "POSTPAID")
CUSTOMER_STATUSES = ("ACTIVE", "SUSPENDED", "DISCONNECTED")


class Customer(AuditFieldsMixin, db.Model):
    __tablename__ = "customers"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(10), nullable=True)
    first_name = db.Column(db.String(100), nullable=False)
    middle_name = db.Column(db.String(100), nullable=True)
    last_name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(30), nullable=False)
    mobile = db.Column(db.String(30), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    customer_type = db.Column(db.String(20), nullable=False, default="PREPAID")
    account_class = db.Column(db.String(30), nullable=True, default="RESIDENTIAL")
    service_type = db.Column(db.String(30), nullable=True, default="DTH")
    region = db.Column(db.String(100), nullable=True)
    city = db.Column(db.String(100), nullable=True)
    address = db.Column(db.String(255), nullable=True)

    sap_bp_id = db.Column(db.String(30), nullable=True, unique=True, index=True)
    sap_ca_id = db.Column(db.String(30), nullable=True)
    sc_id = db.Column(db.String(30), nullable=True, unique=True, index=True,
                      comment="Smart card number of the primary decoder")
    onboarding_ref_no = db.Column(db.String(40), nullable=True)

    balance = db.Column(db.Float, nullable=False, default=0.0)
    currency = db.Column(db.String(3), nullable=False, default="TZS")
    status = db.Column(db.String(20), nullable=False, default="ACTIVE")

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.middle_name, self.last_name) if p)

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "title": self.title,
            "first_name": self.first_name,
            "middle_name": self.middle_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "phone": self.phone,
            "mobile": self.mobile,
            "email": self.email,
            "customer_type": self.customer_type,
            "account_class": self.account_class,
            "service_type": self.service_type,
            "region": self.region,
            "city": self.city,
            "address": self.address,
            "sap_bp_id": self.sap_bp_id,
            "sap_ca_id": self.sap_ca_id,
            "sc_id": self.sc_id,
            "onboarding_ref_no": self.onboarding_ref_no,
            "balance": self.balance,
            "currency": self.currency,
            "status": self.status,
        }
        data.update(self.audit_fields())
        return data

    def __repr__(self):
        return f"<Customer {self.id}: {self.sap_bp_id} [{self.status}]>"
