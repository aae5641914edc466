"""
Shared pytest fixtures for the back-office portal test suite.

Provides:
    - app: Flask application (session-scoped, ``testing`` config)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB recreate + job queue reset (autouse)
    - client: Flask test client
    - users: one account per role; ``*_headers`` bearer headers per role
    - make_customer / make_payment: model factories for workflow tests
    - fresh: re-read a row changed through the API
"""

from datetime import timedelta

import pytest

from portal import create_app
from portal.middleware.timing import reset_metrics
from portal.models import db as _db
from portal.models.auth import User
from portal.models.base import utcnow
from portal.models.customer import Customer
from portal.models.payment import Payment
from portal.services.job_queue import JobQueue
from portal.services.jwt_service import generate_access_token
from portal.utils.crypto import hash_password

ROLE_ACCOUNTS = ("admin", "manager", "finance", "kyc", "agent", "demo")


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, empty the job queue, recreate tables after."""
    with app.app_context():
        JobQueue.clear()
        reset_metrics()
        yield
        JobQueue.clear()
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Users & tokens ───────────────────────────────────────────────────────


@pytest.fixture()
def users():
    """One active account per role; password is ``<username>123``."""
    created = {}
    for username in ROLE_ACCOUNTS:
        user = User(
            username=username,
            email=f"{username}@azamtv.co.tz",
            password_hash=hash_password(f"{username}123", rounds=4),
            first_name=username.title(),
            last_name="Tester",
            role="user" if username == "demo" else username,
        )
        _db.session.add(user)
        created[username] = user
    _db.session.commit()
    return created


def _bearer(user):
    return {"Authorization": f"Bearer {generate_access_token(user)}"}


@pytest.fixture()
def admin_headers(users):
    return _bearer(users["admin"])


@pytest.fixture()
def manager_headers(users):
    return _bearer(users["manager"])


@pytest.fixture()
def finance_headers(users):
    return _bearer(users["finance"])


@pytest.fixture()
def kyc_headers(users):
    return _bearer(users["kyc"])


@pytest.fixture()
def agent_headers(users):
    return _bearer(users["agent"])


@pytest.fixture()
def user_headers(users):
    return _bearer(users["demo"])


# ── Model factories ──────────────────────────────────────────────────────


@pytest.fixture()
def make_customer():
    """Factory: ``make_customer(bp="BP1", balance=0, customer_type="PREPAID")``."""
    counter = {"n": 0}

    def _make(bp=None, balance=0.0, customer_type="PREPAID", **overrides):
        counter["n"] += 1
        n = counter["n"]
        customer = Customer(
            first_name=overrides.pop("first_name", f"First{n}"),
            last_name=overrides.pop("last_name", f"Last{n}"),
            phone=overrides.pop("phone", f"+2557000000{n:02d}"),
            customer_type=customer_type,
            sap_bp_id=bp or f"BPT{n:05d}",
            sap_ca_id=f"CAT{n:05d}",
            sc_id=overrides.pop("sc_id", f"SCT{n:08d}"),
            balance=balance,
            create_id="pytest",
            **overrides,
        )
        _db.session.add(customer)
        _db.session.commit()
        return customer

    return _make


@pytest.fixture()
def make_payment():
    """Factory: ``make_payment(customer, amount=10000, days_ago=0, status="COMPLETED")``."""
    counter = {"n": 0}

    def _make(customer, amount=10000.0, days_ago=0, status="COMPLETED", **overrides):
        counter["n"] += 1
        vat = round(amount * 0.18, 2)
        payment = Payment(
            pay_id=overrides.pop("pay_id", f"PAY_TEST_{counter['n']:04d}"),
            receipt_no=f"RCPTEST{counter['n']:04d}",
            customer_id=customer.id,
            customer_name=customer.full_name,
            customer_type=customer.customer_type,
            sap_bp_id=customer.sap_bp_id,
            sap_ca_id=customer.sap_ca_id,
            pay_type=overrides.pop("pay_type", "SUBSCRIPTION"),
            pay_amount=amount,
            vat_amount=vat,
            total_amount=round(amount + vat, 2),
            pay_mode=overrides.pop("pay_mode", "CASH"),
            collected_by=overrides.pop("collected_by", "agent"),
            status=status,
            create_id="pytest",
            create_dt=utcnow() - timedelta(days=days_ago),
            **overrides,
        )
        _db.session.add(payment)
        _db.session.commit()
        return payment

    return _make


@pytest.fixture()
def fresh():
    """Re-read a row after the API changed it in another session."""

    def _fresh(model, pk):
        _db.session.expire_all()
        return _db.session.get(model, pk)

    return _fresh
