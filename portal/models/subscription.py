"""
Subscription domain model and product catalogue.

Models:
    - Subscription: a customer's plan on one smart card, with validity window
      and optional add-on packs.

The catalogue (plans, offers, add-on packs, suspension reasons) is static
master data maintained in code.
"""

from portal.models import db
from portal.models.base import AuditFieldsMixin, iso

SUBSCRIPTION_STATUSES = ("ACTIVE", "SUSPENDED", "EXPIRED")

PLANS = {
    "AZAM_LITE_1M": {"name": "Azam Lite 1 Month", "price": 12000, "channels": 40, "type": "Basic"},
    "AZAM_PLAY_1M": {"name": "Azam Play 1 Month", "price": 19000, "channels": 80, "type": "Standard"},
    "AZAM_PREM_1M": {"name": "Azam Premium 1 Month", "price": 35000, "channels": 150, "type": "Premium"},
    "AZAM_PLUS_1M": {"name": "Azam Plus 1 Month", "price": 28000, "channels": 120, "type": "Plus"},
}

OFFERS = {
    "PROMO001": {"name": "50% Off First Month", "discount": 50, "validity_days": 30, "type": "discount"},
    "PROMO002": {"name": "Free Premium Upgrade", "discount": 0, "validity_days": 60, "type": "upgrade"},
    "PROMO003": {"name": "Sports Package Free", "discount": 100, "validity_days": 30, "type": "free_addon"},
}

ADDON_PACKS = {
    "SPORT001": {"name": "Sports Pack", "price": 8000, "channels": 15},
    "MOVIE001": {"name": "Movie Pack", "price": 6000, "channels": 12},
    "KIDS001": {"name": "Kids Pack", "price": 4000, "channels": 8},
    "NEWS001": {"name": "News Pack", "price": 3000, "channels": 6},
}

SUSPENSION_REASONS = {
    "NON_PAYMENT": "Non-payment of dues",
    "CUSTOMER_REQUEST": "Customer request",
    "TECHNICAL_ISSUE": "Technical issues",
    "FRAUD_SUSPECTED": "Suspected fraud",
    "MAINTENANCE": "System maintenance",
}


class Subscription(AuditFieldsMixin, db.Model):
    __tablename__ = "subscriptions"

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(
        db.Integer, db.ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    smart_card_number = db.Column(db.String(30), nullable=False, index=True)
    plan_id = db.Column(db.String(30), nullable=False)
    plan_name = db.Column(db.String(100), nullable=False)
    amount = db.Column(db.Float, nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="TZS")
    add_ons = db.Column(db.JSON, nullable=False, default=list)
    offer_id = db.Column(db.String(30), nullable=True)

    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    activation_type = db.Column(db.String(20), nullable=False, default="NEW",
                                comment="NEW | RENEWAL | PLAN_CHANGE")
    status = db.Column(db.String(20), nullable=False, default="ACTIVE", index=True)
    suspension_reason = db.Column(db.String(40), nullable=True)
    suspended_at = db.Column(db.DateTime(timezone=True), nullable=True)
    contract_id = db.Column(db.String(40), nullable=True)

    customer = db.relationship("Customer", lazy="joined")

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "customer_id": self.customer_id,
            "smart_card_number": self.smart_card_number,
            "plan_id": self.plan_id,
            "plan_name": self.plan_name,
            "amount": self.amount,
            "currency": self.currency,
            "add_ons": list(self.add_ons or []),
            "offer_id": self.offer_id,
            "start_date": iso(self.start_date),
            "end_date": iso(self.end_date),
            "activation_type": self.activation_type,
            "status": self.status,
            "suspension_reason": self.suspension_reason,
            "suspended_at": iso(self.suspended_at),
            "contract_id": self.contract_id,
        }
        data.update(self.audit_fields())
        return data

    def __repr__(self):
        return f"<Subscription {self.id}: {self.plan_id} [{self.status}]>"
