"""
Pay-TV Back-Office Portal
Demo data seeding.

Creates one login per role plus a small book of customers, an agent, a few
receipts and a subscription so the approval workflows have something to act
on.  Safe to run multiple times: rows are matched on their natural keys and
skipped when present.

Call this from ``flask seed-demo`` or from create_app when SEED_DEMO_DATA is on.
"""

import logging
from datetime import date, timedelta

from sqlalchemy import select

from portal.models import db
from portal.models.agent import Agent
from portal.models.auth import User
from portal.models.base import utcnow
from portal.models.customer import Customer
from portal.models.payment import Payment
from portal.models.subscription import PLANS, Subscription
from portal.utils.crypto import hash_password

logger = logging.getLogger(__name__)

EMAIL_DOMAIN = "azamtv.co.tz"

DEMO_USERS = [
    # (username, password, role, first_name, last_name)
    ("admin", "admin123", "admin", "System", "Administrator"),
    ("manager", "manager123", "manager", "Operations", "Manager"),
    ("finance", "finance123", "finance", "Finance", "Officer"),
    ("kyc", "kyc123", "kyc", "KYC", "Reviewer"),
    ("agent", "agent123", "agent", "Field", "Agent"),
    ("demo", "demo123", "user", "Demo", "User"),
]

DEMO_CUSTOMERS = [
    {
        "sap_bp_id": "BP000101", "sap_ca_id": "CA000101", "sc_id": "SC700000101",
        "title": "Mr", "first_name": "Juma", "last_name": "Mwinyi",
        "phone": "+255712000101", "email": "juma.mwinyi@example.co.tz",
        "customer_type": "PREPAID", "region": "Dar es Salaam", "city": "Kinondoni",
        "balance": 50000.0,
    },
    {
        "sap_bp_id": "BP000102", "sap_ca_id": "CA000102", "sc_id": "SC700000102",
        "title": "Mrs", "first_name": "Neema", "last_name": "Kimaro",
        "phone": "+255713000102", "email": "neema.kimaro@example.co.tz",
        "customer_type": "PREPAID", "region": "Arusha", "city": "Arusha",
        "balance": 12000.0,
    },
    {
        "sap_bp_id": "BP000103", "sap_ca_id": "CA000103", "sc_id": "SC700000103",
        "title": "Ms", "first_name": "Amina", "last_name": "Said",
        "phone": "+255714000103", "email": "amina.said@example.co.tz",
        "customer_type": "POSTPAID", "account_class": "COMMERCIAL",
        "region": "Zanzibar", "city": "Stone Town", "balance": 0.0,
    },
]

DEMO_PAYMENTS = [
    # (pay_id, receipt_no, customer bp, pay_type, pay_amount, pay_mode, days_ago)
    ("PAY_SUB_DEMO01", "RCPDEMO01", "BP000101", "SUBSCRIPTION", 19000.0, "MOBILE_MONEY", 2),
    ("PAY_HW_DEMO02", "RCPDEMO02", "BP000101", "HARDWARE", 65000.0, "CASH", 5),
    ("PAY_SUB_DEMO03", "RCPDEMO03", "BP000102", "SUBSCRIPTION", 12000.0, "CASH", 45),
]


def _seed_users() -> int:
    created = 0
    for username, password, role, first_name, last_name in DEMO_USERS:
        exists = db.session.execute(
            select(User.id).where(User.username == username)
        ).scalar_one_or_none()
        if exists:
            continue
        db.session.add(User(
            username=username,
            email=f"{username}@{EMAIL_DOMAIN}",
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            role=role,
        ))
        created += 1
    return created


def _seed_customers() -> dict[str, Customer]:
    by_bp = {}
    for row in DEMO_CUSTOMERS:
        customer = db.session.execute(
            select(Customer).where(Customer.sap_bp_id == row["sap_bp_id"])
        ).scalar_one_or_none()
        if customer is None:
            customer = Customer(create_id="seed", **row)
            db.session.add(customer)
        by_bp[row["sap_bp_id"]] = customer
    db.session.flush()
    return by_bp


def _seed_agent() -> None:
    exists = db.session.execute(
        select(Agent.id).where(Agent.onboarding_ref_no == "AGT-ONB-DEMO01")
    ).scalar_one_or_none()
    if exists:
        return
    db.session.add(Agent(
        first_name="Baraka",
        last_name="Mushi",
        email=f"baraka.mushi@{EMAIL_DOMAIN}",
        phone="+255715000201",
        agent_type="INDIVIDUAL",
        region="Dar es Salaam",
        city="Ilala",
        onboarding_ref_no="AGT-ONB-DEMO01",
        credit_limit=500000.0,
        status="pending_kyc",
        create_id="seed",
    ))


def _seed_payments(customers: dict[str, Customer], vat_rate: float) -> None:
    for pay_id, receipt_no, bp_id, pay_type, amount, pay_mode, days_ago in DEMO_PAYMENTS:
        exists = db.session.execute(
            select(Payment.id).where(Payment.pay_id == pay_id)
        ).scalar_one_or_none()
        if exists:
            continue
        customer = customers[bp_id]
        vat = round(amount * vat_rate, 2)
        payment = Payment(
            pay_id=pay_id,
            receipt_no=receipt_no,
            customer_id=customer.id,
            customer_name=customer.full_name,
            customer_type=customer.customer_type,
            sap_bp_id=customer.sap_bp_id,
            sap_ca_id=customer.sap_ca_id,
            pay_type=pay_type,
            pay_amount=amount,
            vat_amount=vat,
            total_amount=round(amount + vat, 2),
            pay_mode=pay_mode,
            description=f"{pay_type.title()} payment",
            collected_by="agent",
            status="COMPLETED",
            cm_status="COMPLETED",
            fica_status="COMPLETED",
            create_id="seed",
            create_dt=utcnow() - timedelta(days=days_ago),
        )
        db.session.add(payment)


def _seed_subscription(customers: dict[str, Customer]) -> None:
    customer = customers["BP000101"]
    exists = db.session.execute(
        select(Subscription.id).where(Subscription.smart_card_number == customer.sc_id)
    ).scalar_one_or_none()
    if exists:
        return
    plan = PLANS["AZAM_PLAY_1M"]
    today = date.today()
    db.session.add(Subscription(
        customer_id=customer.id,
        smart_card_number=customer.sc_id,
        plan_id="AZAM_PLAY_1M",
        plan_name=plan["name"],
        amount=float(plan["price"]),
        start_date=today,
        end_date=today + timedelta(days=30),
        contract_id="CON-DEMO01",
        create_id="seed",
    ))


def seed_demo_data(vat_rate: float = 0.18) -> int:
    """Insert the demo book; returns the number of new user accounts."""
    users = _seed_users()
    customers = _seed_customers()
    _seed_agent()
    _seed_payments(customers, vat_rate)
    _seed_subscription(customers)
    db.session.commit()
    if users:
        logger.info("Seeded %d demo users", users)
    return users
