"""
Pay-TV Back-Office Portal
Configuration classes for Flask App Factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name])
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

# Default SQLite path for local dev when no DATABASE_URL is set
_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'portal_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"

# Generate a random key for development; production MUST use a stable env var
_DEV_SECRET = secrets.token_hex(32)


def _csv(value: str) -> list[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


class Config:
    """Base configuration shared across all environments."""

    SECRET_KEY = os.getenv("SECRET_KEY", _DEV_SECRET)
    DEBUG = False
    TESTING = False

    # SQLAlchemy
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    # JWT
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    JWT_ACCESS_EXPIRES = int(os.getenv("JWT_ACCESS_EXPIRES", "3600"))
    JWT_RESET_EXPIRES = int(os.getenv("JWT_RESET_EXPIRES", "1800"))

    # CORS
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # Rate limiting (memory:// unless a shared store is configured)
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")

    # Business defaults
    DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "TZS")
    VAT_RATE = float(os.getenv("VAT_RATE", "0.18"))
    FI_PERIOD_DAYS = int(os.getenv("FI_PERIOD_DAYS", "30"))
    APPROVER_ROLES = ("admin", "manager", "finance")
    KYC_ROLES = ("admin", "manager", "kyc")

    # Demo data (users + a handful of customers/agents)
    SEED_DEMO_DATA = os.getenv("SEED_DEMO_DATA", "true").lower() == "true"

    # Simulated downstream systems (CM / FICA / SOM)
    DOWNSTREAM_MODE = os.getenv("DOWNSTREAM_MODE", "thread")   # thread | manual
    ADJUSTMENT_POSTING_DELAY = float(os.getenv("ADJUSTMENT_POSTING_DELAY", "3"))
    TRANSFER_SUBMIT_DELAY = float(os.getenv("TRANSFER_SUBMIT_DELAY", "1"))
    TRANSFER_PROCESS_DELAY = float(os.getenv("TRANSFER_PROCESS_DELAY", "2"))
    TRANSFER_COMPLETE_DELAY = float(os.getenv("TRANSFER_COMPLETE_DELAY", "3"))
    CM_INVOICE_CLEARED_RATE = float(os.getenv("CM_INVOICE_CLEARED_RATE", "0.3"))
    CM_CLEARED_INVOICES = _csv(os.getenv("CM_CLEARED_INVOICES", ""))


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = (
        _raw_db_url.replace("postgres://", "postgresql://", 1) if _raw_db_url else _SQLITE_DEV
    )


class TestingConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    RATELIMIT_ENABLED = False
    SEED_DEMO_DATA = False

    # Downstream jobs are queued and drained explicitly by the tests
    DOWNSTREAM_MODE = "manual"
    CM_INVOICE_CLEARED_RATE = 0.0
    CM_CLEARED_INVOICES = ["INV-CLEARED-001"]


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    # Heroku-style postgres:// URLs are rejected by SQLAlchemy 2.0
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = _raw_db_url.replace("postgres://", "postgresql://", 1) if _raw_db_url else None
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")  # Must be set explicitly in production
    SEED_DEMO_DATA = os.getenv("SEED_DEMO_DATA", "false").lower() == "true"

    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
    }

    def __init__(self):
        if not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL environment variable is required in production")
        if not os.getenv("SECRET_KEY"):
            raise RuntimeError("SECRET_KEY environment variable must be set in production")


# Configuration mapping: environment name -> config class
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
