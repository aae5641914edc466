"""
Pay-TV Back-Office Portal
Agent Service — agent master data, balances and KYC review.

Onboarding:
    pending_kyc ──approve──▶ approved   (SAP BP / CA ids minted)
        └───────reject───▶ rejected    (remarks required)
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import or_, select

from portal.core.exceptions import ValidationError
from portal.models import db
from portal.models.agent import AGENT_STATUSES, Agent
from portal.models.audit import write_audit
from portal.utils.helpers import get_or_404, next_code, one_of, require_fields, text, valid_email

logger = logging.getLogger(__name__)

_UPDATABLE = (
    "first_name", "last_name", "email", "phone", "mobile", "agent_type",
    "business_name", "region", "city", "address", "tin_number", "vrn_number",
    "commission", "credit_limit", "currency",
)


def _search_clause(term: str):
    like = f"%{term.lower()}%"
    return or_(
        db.func.lower(Agent.first_name).like(like),
        db.func.lower(Agent.last_name).like(like),
        db.func.lower(Agent.email).like(like),
        db.func.lower(Agent.onboarding_ref_no).like(like),
    )


def _paged(stmt, page: int, limit: int) -> tuple[list[dict], int]:
    total = db.session.execute(
        select(db.func.count()).select_from(stmt.subquery())
    ).scalar_one()
    rows = db.session.execute(stmt.limit(limit).offset((page - 1) * limit)).scalars()
    return [a.to_dict() for a in rows], total


# ═════════════════════════════════════════════════════════════════════════════
# Agents
# ═════════════════════════════════════════════════════════════════════════════


def list_agents(filters: dict, page: int = 1, limit: int = 10) -> tuple[list[dict], int]:
    """Filter by status, region and a free-text search; newest first."""
    stmt = select(Agent).order_by(Agent.create_dt.desc(), Agent.id.desc())
    if filters.get("status"):
        stmt = stmt.where(Agent.status == filters["status"])
    if filters.get("region"):
        stmt = stmt.where(Agent.region == filters["region"])
    if filters.get("search"):
        stmt = stmt.where(_search_clause(filters["search"]))
    return _paged(stmt, page, limit)


def get_agent(agent_id: int) -> dict:
    return get_or_404(Agent, agent_id, "Agent").to_dict()


def create_agent(data: dict, actor: str) -> dict:
    require_fields(data, "first_name", "last_name", "email", "phone")
    email = valid_email(data["email"])
    agent = Agent(status="pending_kyc", create_id=actor)
    for field in _UPDATABLE:
        if field in data:
            setattr(agent, field, data[field])
    agent.email = email
    agent.onboarding_ref_no = next_code(Agent, "AGT-ONB-", width=6)
    agent.status_message = "Awaiting KYC verification"
    db.session.add(agent)
    db.session.flush()
    write_audit(entity_type="agent", entity_id=agent.id, action="created",
                actor=actor, new_value=agent.status)
    db.session.commit()
    logger.info("Agent created", extra={"entity_type": "agent", "entity_id": agent.id, "user": actor})
    return agent.to_dict()


def update_agent(agent_id: int, data: dict, actor: str) -> dict:
    agent = get_or_404(Agent, agent_id, "Agent")
    email = valid_email(data.get("email"))
    for field in _UPDATABLE:
        if field in data:
            setattr(agent, field, data[field])
    if "email" in data:
        agent.email = email
    agent.touch(actor)
    db.session.commit()
    return agent.to_dict()


def delete_agent(agent_id: int) -> None:
    agent = get_or_404(Agent, agent_id, "Agent")
    db.session.delete(agent)
    db.session.commit()
    logger.info("Agent deleted", extra={"entity_type": "agent", "entity_id": agent_id})


def update_agent_status(agent_id: int, status: str | None, actor: str,
                        message: str | None = None) -> dict:
    agent = get_or_404(Agent, agent_id, "Agent")
    if not status:
        raise ValidationError("status is required")
    one_of(status, AGENT_STATUSES, "status")
    old = agent.status
    agent.status = status
    if message is not None:
        agent.status_message = message
    agent.touch(actor)
    write_audit(entity_type="agent", entity_id=agent.id, action="status_changed",
                actor=actor, old_value=old, new_value=status)
    db.session.commit()
    return agent.to_dict()


def agent_balance(agent_id: int) -> dict:
    agent = get_or_404(Agent, agent_id, "Agent")
    return {
        "agent_id": agent.id,
        "current_balance": agent.current_balance,
        "credit_limit": agent.credit_limit,
        "available_credit": agent.credit_limit + agent.current_balance,
        "currency": agent.currency,
        "status": agent.status,
    }


# ═════════════════════════════════════════════════════════════════════════════
# KYC review
# ═════════════════════════════════════════════════════════════════════════════


def pending_kyc(search: str | None, page: int = 1, limit: int = 10) -> tuple[list[dict], int]:
    return list_agents({"status": "pending_kyc", "search": search}, page, limit)


def _require_pending(agent: Agent) -> None:
    if agent.status != "pending_kyc":
        raise ValidationError("Agent is not pending KYC verification")


def approve_kyc(agent_id: int, reviewer: str, remarks: str | None = None) -> dict:
    """Approve a pending agent and mint SAP BP / CA ids."""
    agent = get_or_404(Agent, agent_id, "Agent")
    _require_pending(agent)

    sequence = f"{agent.id:06d}"
    agent.status = "approved"
    agent.status_message = "KYC approved - SAP Business Partner created"
    agent.sap_bp_id = agent.sap_bp_id or f"BPA{sequence}"
    agent.sap_ca_id = agent.sap_ca_id or f"CAA{sequence}"
    agent.kyc_remarks = remarks
    agent.kyc_reviewed_by = reviewer
    agent.kyc_reviewed_at = datetime.now(timezone.utc)
    agent.touch(reviewer)
    write_audit(entity_type="agent", entity_id=agent.id, action="kyc_approved",
                actor=reviewer, old_value="pending_kyc", new_value="approved",
                details={"remarks": remarks, "sap_bp_id": agent.sap_bp_id})
    db.session.commit()
    logger.info("Agent KYC approved",
                extra={"entity_type": "agent", "entity_id": agent.id, "user": reviewer})
    return agent.to_dict()


def reject_kyc(agent_id: int, reviewer: str, remarks: str | None) -> dict:
    """Reject a pending agent. Remarks are mandatory."""
    remarks = text(remarks, "remarks")
    if not remarks:
        raise ValidationError("Rejection remarks are required")
    agent = get_or_404(Agent, agent_id, "Agent")
    _require_pending(agent)

    agent.status = "rejected"
    agent.status_message = "KYC rejected - Please review and resubmit"
    agent.kyc_remarks = remarks
    agent.kyc_reviewed_by = reviewer
    agent.kyc_reviewed_at = datetime.now(timezone.utc)
    agent.touch(reviewer)
    write_audit(entity_type="agent", entity_id=agent.id, action="kyc_rejected",
                actor=reviewer, old_value="pending_kyc", new_value="rejected",
                details={"remarks": remarks})
    db.session.commit()
    logger.info("Agent KYC rejected",
                extra={"entity_type": "agent", "entity_id": agent.id, "user": reviewer})
    return agent.to_dict()
