"""
Pay-TV Back-Office Portal
Dashboard Service — headline numbers, recent activity and system health.
"""

from __future__ import annotations

from sqlalchemy import func, select

from portal.integrations.cm_gateway import CMGateway
from portal.middleware.timing import summarize_metrics
from portal.models import db
from portal.models.adjustment import Adjustment
from portal.models.agent import Agent
from portal.models.audit import AuditLog
from portal.models.customer import Customer
from portal.models.incident import ServiceIncident, SystemIncident
from portal.models.payment import Payment
from portal.models.subscription import Subscription
from portal.models.transfer import CustomerTransfer

OPEN_SYSTEM_STATUSES = ("Open", "Investigating")


def _count(model, *criteria) -> int:
    return db.session.execute(select(func.count(model.id)).where(*criteria)).scalar() or 0


def dashboard_stats() -> dict:
    revenue = db.session.execute(
        select(func.coalesce(func.sum(Payment.total_amount), 0.0))
        .where(Payment.status == "COMPLETED")
    ).scalar()
    return {
        "total_agents": _count(Agent),
        "active_agents": _count(Agent, Agent.status.in_(("approved", "active"))),
        "pending_kyc": _count(Agent, Agent.status == "pending_kyc"),
        "total_customers": _count(Customer),
        "active_subscriptions": _count(Subscription, Subscription.status == "ACTIVE"),
        "suspended_subscriptions": _count(Subscription, Subscription.status == "SUSPENDED"),
        "total_payments": _count(Payment),
        "total_revenue": float(revenue or 0.0),
        "pending_adjustments": _count(Adjustment, Adjustment.status == "PENDING"),
        "transfers_in_progress": _count(CustomerTransfer, CustomerTransfer.status == "INPROGRESS"),
        "open_service_incidents": _count(
            ServiceIncident, ServiceIncident.status.in_(("OPEN", "IN_PROGRESS")),
        ),
        "open_system_incidents": _count(
            SystemIncident, SystemIncident.status.in_(OPEN_SYSTEM_STATUSES),
        ),
    }


def recent_activities(limit: int = 10) -> list[dict]:
    rows = db.session.execute(
        select(AuditLog).order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit)
    ).scalars()
    return [r.to_dict() for r in rows]


def system_status() -> dict:
    """Downstream availability; a system with an open incident reports DEGRADED."""
    open_incidents = db.session.execute(
        select(SystemIncident)
        .where(SystemIncident.status.in_(OPEN_SYSTEM_STATUSES))
        .order_by(SystemIncident.start_time.desc())
    ).scalars().all()
    degraded = {i.affected_system for i in open_incidents}
    return {
        "systems": CMGateway.from_app().system_status(degraded),
        "open_incidents": [
            {
                "incident_id": i.incident_id,
                "title": i.title,
                "affected_system": i.affected_system,
                "severity": i.severity,
                "status": i.status,
            }
            for i in open_incidents
        ],
        "api": summarize_metrics(3600),
    }
