"""
Pay-TV Back-Office Portal
Flask Application Factory.

Usage:
    from portal import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import importlib
import logging
import os

from flask import Flask, abort, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from portal.config import config
from portal.models import db
from portal.middleware.logging_config import configure_logging
from portal.middleware.timing import init_request_timing
from portal.middleware.security_headers import init_security_headers
from portal.middleware.rate_limiter import init_rate_limits
from portal.middleware.jwt_auth import init_jwt_middleware
from portal.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit; applied per blueprint
    storage_uri=os.getenv("RATELIMIT_STORAGE_URI", "memory://"),
)

# Modules whose @register_job handlers must be loaded before the queue starts
_JOB_MODULES = (
    "portal.services.adjustment_service",
    "portal.services.transfer_service",
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Security headers, request timing, JWT user resolution ────────────
    init_security_headers(app)
    init_request_timing(app)
    init_jwt_middleware(app)

    # ── Request guards (input length + Content-Type) ─────────────────────
    app.config.setdefault("MAX_CONTENT_LENGTH", 2 * 1024 * 1024)  # 2 MB

    @app.before_request
    def _guard_request():
        max_len = app.config.get("MAX_CONTENT_LENGTH")
        if max_len and request.content_length and request.content_length > max_len:
            abort(413, description="Request body too large")
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            if request.data and "json" not in ct:
                abort(415, description="Content-Type must be application/json")

    # ── Import all models so create_all / Alembic see them ───────────────
    from portal.models import adjustment as _adjustment_models      # noqa: F401
    from portal.models import agent as _agent_models                # noqa: F401
    from portal.models import audit as _audit_models                # noqa: F401
    from portal.models import auth as _auth_models                  # noqa: F401
    from portal.models import customer as _customer_models          # noqa: F401
    from portal.models import incident as _incident_models          # noqa: F401
    from portal.models import inventory as _inventory_models        # noqa: F401
    from portal.models import payment as _payment_models            # noqa: F401
    from portal.models import subscription as _subscription_models  # noqa: F401
    from portal.models import transfer as _transfer_models          # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) + demo data ────────────
    if not app.config.get("TESTING"):
        if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite:///"):
            os.makedirs(app.instance_path, exist_ok=True)
        with app.app_context():
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
            if app.config.get("SEED_DEMO_DATA"):
                from portal.services.seed_service import seed_demo_data
                seed_demo_data(app.config["VAT_RATE"])

    # ── Blueprints ───────────────────────────────────────────────────────
    from portal.blueprints.health_bp import health_bp
    from portal.blueprints.auth_bp import auth_bp
    from portal.blueprints.dashboard_bp import dashboard_bp
    from portal.blueprints.agent_bp import agent_bp
    from portal.blueprints.customer_bp import customer_bp
    from portal.blueprints.inventory_bp import inventory_bp
    from portal.blueprints.payment_bp import payment_bp
    from portal.blueprints.subscription_bp import subscription_bp
    from portal.blueprints.adjustment_bp import adjustment_bp
    from portal.blueprints.customer_transfer_bp import customer_transfer_bp
    from portal.blueprints.receipt_cancellation_bp import receipt_cancellation_bp
    from portal.blueprints.incident_bp import incident_bp
    from portal.blueprints.admin_bp import admin_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(agent_bp)
    app.register_blueprint(customer_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(payment_bp)
    app.register_blueprint(subscription_bp)
    app.register_blueprint(adjustment_bp)
    app.register_blueprint(customer_transfer_bp)
    app.register_blueprint(receipt_cancellation_bp)
    app.register_blueprint(incident_bp)
    app.register_blueprint(admin_bp)

    # ── Error handlers ───────────────────────────────────────────────────
    register_error_handlers(app)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-demo")
    def seed_demo_cmd():
        """Seed demo users, customers, an agent, receipts and a subscription."""
        from portal.services.seed_service import seed_demo_data
        db.create_all()
        count = seed_demo_data(app.config["VAT_RATE"])
        logger.info("Seeded %s new demo users.", count)

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    # ── Downstream job queue (import jobs to register them) ──────────────
    for module in _JOB_MODULES:
        importlib.import_module(module)
    from portal.services.job_queue import JobQueue
    JobQueue.init_app(app)

    return app
