"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in portal/__init__.py with no default limits;
this module applies granular limits per route category.

Usage:
    from portal.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

# Credential endpoints (brute-force protection)
AUTH_LIMIT = "20/minute"

# Workflow mutations (adjustments, transfers, cancellations)
WORKFLOW_LIMIT = "60/minute"

# Master-data and read-heavy blueprints
DEFAULT_LIMIT = "200/minute"

_WORKFLOW_BLUEPRINTS = ("adjustment_bp", "customer_transfer_bp", "receipt_cancellation_bp")


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - auth:       20/minute
        - workflows:  60/minute
        - others:    200/minute
        - health:     exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for name, bp in app.blueprints.items():
        if name == "health_bp":
            limiter.exempt(bp)
        elif name == "auth_bp":
            limiter.limit(AUTH_LIMIT)(bp)
        elif name in _WORKFLOW_BLUEPRINTS:
            limiter.limit(WORKFLOW_LIMIT)(bp)
        else:
            limiter.limit(DEFAULT_LIMIT)(bp)

    app.logger.info(
        "Rate limiter configured — auth: %s, workflows: %s, default: %s",
        AUTH_LIMIT, WORKFLOW_LIMIT, DEFAULT_LIMIT,
    )
