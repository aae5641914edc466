"""
Pay-TV Back-Office Portal
Incident Service — service-desk tickets and platform (system) incidents.

Service desk:
    - SLA hours by priority (Critical 4, High 24, Medium 72, Low 168; 72 otherwise)
    - assignment group / escalation from a category x priority routing table
    - impact and urgency derived from priority (and category for High)
    - five-step resolution workflow advanced by status updates
    - e-mail to the assignment group, SMS to the reporter on High/Critical

System incidents:
    - incident ids ``SYS-<year>-<nnn>``
    - every change is written to the audit log
      (created, updated, status_changed, assigned, commented)
"""

from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy import func, select

from portal.core.exceptions import ValidationError
from portal.models import db
from portal.models.audit import audit_trail, write_audit
from portal.models.base import iso, next_reference_number, utcnow
from portal.models.incident import (
    AFFECTED_SYSTEMS,
    OWNER_TEAMS,
    SERVICE_STATUSES,
    SEVERITIES,
    SYSTEM_STATUSES,
    ServiceIncident,
    SystemIncident,
    SystemIncidentNote,
)
from portal.utils.helpers import get_or_404, next_code, one_of, parse_datetime, require_fields, text

logger = logging.getLogger(__name__)

SLA_HOURS = {"Critical": 4, "High": 24, "Medium": 72, "Low": 168}
DEFAULT_SLA_HOURS = 72

_DEFAULT_ROUTE = {"group": "SERVICE_DESK_LEVEL_1", "escalation": "24_HOURS"}

ROUTING_RULES = {
    "hardware": {
        "Critical": {"group": "FIELD_SERVICES", "escalation": "IMMEDIATE"},
        "High": {"group": "TECHNICAL_SUPPORT", "escalation": "2_HOURS"},
        "Medium": {"group": "SERVICE_DESK_LEVEL_1", "escalation": "4_HOURS"},
    },
    "software": {
        "Critical": {"group": "APPLICATION_SUPPORT", "escalation": "IMMEDIATE"},
        "High": {"group": "APPLICATION_SUPPORT", "escalation": "2_HOURS"},
        "Medium": {"group": "SERVICE_DESK_LEVEL_1", "escalation": "8_HOURS"},
    },
    "network": {
        "Critical": {"group": "NETWORK_OPERATIONS", "escalation": "IMMEDIATE"},
        "High": {"group": "NETWORK_OPERATIONS", "escalation": "1_HOUR"},
        "Medium": {"group": "TECHNICAL_SUPPORT", "escalation": "4_HOURS"},
    },
    "security": {
        "Critical": {"group": "TECHNICAL_SUPPORT", "escalation": "IMMEDIATE"},
        "High": {"group": "TECHNICAL_SUPPORT", "escalation": "1_HOUR"},
        "Medium": {"group": "TECHNICAL_SUPPORT", "escalation": "4_HOURS"},
    },
    "access": {
        "Critical": {"group": "SERVICE_DESK_LEVEL_1", "escalation": "1_HOUR"},
        "High": {"group": "SERVICE_DESK_LEVEL_1", "escalation": "2_HOURS"},
        "Medium": {"group": "SERVICE_DESK_LEVEL_1", "escalation": "8_HOURS"},
    },
}

WORKFLOW_STEPS = (
    "Incident Created",
    "Initial Assessment",
    "Investigation",
    "Resolution",
    "Verification & Closure",
)

# Number of completed steps once a ticket reaches each status
_STEPS_DONE = {"OPEN": 1, "IN_PROGRESS": 2, "RESOLVED": 4, "CLOSED": 5}


# ═════════════════════════════════════════════════════════════════════════════
# Service desk rules
# ═════════════════════════════════════════════════════════════════════════════


def sla_hours(priority: str) -> int:
    return SLA_HOURS.get(priority, DEFAULT_SLA_HOURS)


def determine_routing(category: str, priority: str) -> dict:
    return dict(ROUTING_RULES.get(category, {}).get(priority, _DEFAULT_ROUTE))


def calculate_impact(priority: str, category: str) -> str:
    if priority == "Critical":
        return "HIGH"
    if priority == "High":
        return "HIGH" if category in ("network", "hardware") else "MEDIUM"
    if priority == "Medium":
        return "MEDIUM"
    return "LOW"


def calculate_urgency(priority: str) -> str:
    return {"Critical": "URGENT", "High": "HIGH", "Medium": "MEDIUM", "Low": "LOW"}.get(
        priority, "MEDIUM",
    )


def build_workflow(status: str, opened_by: str, assignment_group: str,
                   previous: list | None = None) -> list[dict]:
    """Workflow steps for a ticket in ``status``; completion stamps are kept."""
    done = _STEPS_DONE.get(status, 1)
    previous = {s["step"]: s for s in (previous or [])}
    now = iso(utcnow())
    steps = []
    for number, name in enumerate(WORKFLOW_STEPS, 1):
        step = {"step": number, "name": name}
        if number <= done:
            old = previous.get(number, {})
            step["status"] = "COMPLETED"
            step["completed_at"] = old.get("completed_at") or now
            if number == 1:
                step["completed_by"] = opened_by
        elif number == done + 1:
            step["status"] = "PENDING"
        else:
            step["status"] = "NOT_STARTED"
        if number == 2:
            step["assigned_to"] = assignment_group
        steps.append(step)
    return steps


def generate_notifications(incident: ServiceIncident) -> list[dict]:
    notifications = [{
        "type": "EMAIL",
        "recipient": f"{incident.assignment_group.lower().replace('_', '.', 1)}@azamtv.co.tz",
        "subject": f"New Incident Assigned: {incident.incident_number}",
        "priority": incident.priority,
    }]
    if incident.priority in ("High", "Critical"):
        notifications.append({
            "type": "SMS",
            "recipient": incident.user_id,
            "message": (
                f"Your incident {incident.incident_number} has been created "
                f"with {incident.priority} priority"
            ),
        })
    return notifications


# ═════════════════════════════════════════════════════════════════════════════
# Service desk tickets
# ═════════════════════════════════════════════════════════════════════════════


def create_service_incident(data: dict, actor: str) -> dict:
    """Open a ticket, route it and compute its SLA target."""
    require_fields(data, "category", "priority", "short_description")
    status = one_of(data.get("status") or "OPEN", SERVICE_STATUSES, "status")
    category = data["category"]
    priority = data["priority"]

    hours = sla_hours(priority)
    routing = determine_routing(category, priority)
    opened_at = parse_datetime(data.get("opened"), "opened") or utcnow()
    target = parse_datetime(data.get("target_resolve_date"), "target_resolve_date")
    opened_by = data.get("opened_by") or actor
    group = data.get("assignment_group") or routing["group"]

    incident = ServiceIncident(
        incident_number=data.get("incident_number") or next_code(
            ServiceIncident, "INC", width=6, base=1000,
        ),
        client=data.get("client"),
        common_faults=data.get("common_faults"),
        category=category,
        sub_category=data.get("sub_category"),
        priority=priority,
        impact=calculate_impact(priority, category),
        urgency=calculate_urgency(priority),
        status=status,
        channel=data.get("channel") or "Others",
        user_id=data.get("user_id"),
        configuration_item=data.get("configuration_item"),
        alternate_location=data.get("alternate_location"),
        alternate_contact=data.get("alternate_contact"),
        short_description=data["short_description"],
        additional_comments=data.get("additional_comments"),
        assignment_group=group,
        assigned_to=data.get("assigned_to"),
        escalation=routing["escalation"],
        opened_by=opened_by,
        opened_at=opened_at,
        sla_hours=hours,
        target_resolve_date=target or opened_at + timedelta(hours=hours),
        workflow_steps=build_workflow(status, opened_by, group),
    )
    incident.notifications = generate_notifications(incident)
    db.session.add(incident)
    db.session.commit()
    logger.info("Service incident %s routed to %s", incident.incident_number, group,
                extra={"entity_type": "service_incident", "entity_id": incident.id, "user": actor})
    return {
        "incident": incident.to_dict(),
        "notifications": incident.notifications,
        "message": (
            f"Incident {incident.incident_number} has been created "
            f"and routed to {incident.assignment_group}"
        ),
    }


def list_service_incidents(filters: dict, offset: int = 0, limit: int = 50) -> dict:
    stmt = select(ServiceIncident).order_by(ServiceIncident.opened_at.desc(), ServiceIncident.id.desc())
    for field in ("status", "priority", "assignment_group", "assigned_to", "client", "category"):
        if filters.get(field):
            stmt = stmt.where(getattr(ServiceIncident, field) == filters[field])
    total = db.session.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    rows = db.session.execute(stmt.offset(offset).limit(limit)).scalars()
    return {
        "incidents": [i.to_dict() for i in rows],
        "total": total,
        "pagination": {"offset": offset, "limit": limit, "has_more": offset + limit < total},
    }


def get_service_incident(incident_id: int) -> dict:
    return get_or_404(ServiceIncident, incident_id, "Incident").to_dict()


def update_service_incident(incident_id: int, data: dict, actor: str) -> dict:
    """Change status / assignment and append a work note."""
    incident = get_or_404(ServiceIncident, incident_id, "Incident")
    status = one_of(data.get("status"), SERVICE_STATUSES, "status")

    if "assigned_to" in data:
        incident.assigned_to = data["assigned_to"]
    if data.get("assignment_group"):
        incident.assignment_group = data["assignment_group"]
    if status and status != incident.status:
        incident.status = status
        incident.workflow_steps = build_workflow(
            status, incident.opened_by, incident.assignment_group, incident.workflow_steps,
        )
        if status in ("RESOLVED", "CLOSED") and incident.resolved_at is None:
            incident.resolved_at = utcnow()
        elif status in ("OPEN", "IN_PROGRESS"):
            incident.resolved_at = None

    note = text(data.get("work_note"), "work_note")
    if note:
        incident.work_log = list(incident.work_log or []) + [
            {"note": note, "author": actor, "at": iso(utcnow())},
        ]
    incident.updated_at = utcnow()
    db.session.commit()
    return incident.to_dict()


# ═════════════════════════════════════════════════════════════════════════════
# System incidents
# ═════════════════════════════════════════════════════════════════════════════

_SYSTEM_FIELDS = (
    "title", "affected_system", "severity", "description", "impacted_customers",
    "root_cause", "resolution_steps", "status", "assigned_owner", "owner_team",
    "attachments", "notification_settings", "linked_service_tickets",
)


def _validate_system(data: dict, partial: bool = False) -> None:
    if not partial:
        require_fields(data, "title", "affected_system", "severity", "description", "start_time")
    if "title" in data and len(text(data.get("title"), "title")) < 5:
        raise ValidationError("Title must be at least 5 characters")
    if "description" in data and len(text(data.get("description"), "description")) < 10:
        raise ValidationError("Description must be at least 10 characters")
    one_of(data.get("affected_system"), AFFECTED_SYSTEMS, "affected_system")
    one_of(data.get("severity"), SEVERITIES, "severity")
    one_of(data.get("status"), SYSTEM_STATUSES, "status")
    one_of(data.get("owner_team"), OWNER_TEAMS, "owner_team")
    customers = data.get("impacted_customers")
    if customers is not None and (
        isinstance(customers, bool) or not isinstance(customers, int) or customers < 0
    ):
        raise ValidationError("impacted_customers must be a non-negative integer")


def _next_incident_id() -> str:
    year = utcnow().year
    prefix = f"SYS-{year}-"
    existing = db.session.execute(
        select(SystemIncident.incident_id).where(SystemIncident.incident_id.like(f"{prefix}%"))
    ).scalars()
    last = max((int(code.rsplit("-", 1)[1]) for code in existing), default=0)
    return f"{prefix}{next_reference_number(prefix.rstrip('-'), last):03d}"


def _audit(incident: SystemIncident, action: str, actor: str, **details) -> None:
    write_audit(entity_type="system_incident", entity_id=incident.id, action=action,
                actor=actor, new_value=incident.status, details=details)


def list_system_incidents(filters: dict) -> list[dict]:
    stmt = select(SystemIncident).order_by(SystemIncident.start_time.desc(), SystemIncident.id.desc())
    for field in ("status", "severity", "affected_system"):
        if filters.get(field):
            stmt = stmt.where(getattr(SystemIncident, field) == filters[field])
    return [i.to_dict() for i in db.session.execute(stmt).scalars()]


def get_system_incident(pk: int) -> dict:
    return get_or_404(SystemIncident, pk, "System incident").to_dict()


def create_system_incident(data: dict, actor: str) -> dict:
    _validate_system(data)
    incident = SystemIncident(
        incident_id=_next_incident_id(),
        start_time=parse_datetime(data["start_time"], "start_time"),
        end_time=parse_datetime(data.get("end_time"), "end_time"),
        status=data.get("status") or "Open",
    )
    for field in _SYSTEM_FIELDS:
        if field != "status" and data.get(field) is not None:
            setattr(incident, field, data[field])
    db.session.add(incident)
    db.session.flush()
    _audit(incident, "created", actor, incident_id=incident.incident_id)
    db.session.commit()
    logger.info("System incident created %s", incident.incident_id,
                extra={"entity_type": "system_incident", "entity_id": incident.id, "user": actor})
    return incident.to_dict()


def update_system_incident(pk: int, data: dict, actor: str) -> dict:
    """Partial update; status and owner changes get their own audit entries."""
    incident = get_or_404(SystemIncident, pk, "System incident")
    _validate_system(data, partial=True)

    old_status, old_owner = incident.status, incident.assigned_owner
    changed = []
    for field in _SYSTEM_FIELDS:
        if field in data and getattr(incident, field) != data[field]:
            setattr(incident, field, data[field])
            changed.append(field)
    for field in ("start_time", "end_time"):
        if field in data:
            setattr(incident, field, parse_datetime(data[field], field))
            changed.append(field)
    incident.updated_at = utcnow()

    if incident.status != old_status:
        write_audit(entity_type="system_incident", entity_id=incident.id,
                    action="status_changed", actor=actor,
                    old_value=old_status, new_value=incident.status)
    if incident.assigned_owner != old_owner:
        write_audit(entity_type="system_incident", entity_id=incident.id,
                    action="assigned", actor=actor,
                    old_value=old_owner, new_value=incident.assigned_owner)
    if changed:
        _audit(incident, "updated", actor, fields=changed)
    db.session.commit()
    return incident.to_dict()


def delete_system_incident(pk: int) -> None:
    incident = get_or_404(SystemIncident, pk, "System incident")
    db.session.delete(incident)
    db.session.commit()


def list_notes(pk: int) -> list[dict]:
    incident = get_or_404(SystemIncident, pk, "System incident")
    return [n.to_dict() for n in incident.notes]


def add_note(pk: int, data: dict, user) -> dict:
    incident = get_or_404(SystemIncident, pk, "System incident")
    note_text = text(data.get("note"), "note")
    if not note_text:
        raise ValidationError("note is required")
    note = SystemIncidentNote(
        incident_pk=incident.id,
        user_id=getattr(user, "id", None),
        user_name=getattr(user, "username", None) or "system",
        note=note_text,
        is_rca=bool(data.get("is_rca")),
    )
    db.session.add(note)
    db.session.flush()
    _audit(incident, "commented", note.user_name, note_id=note.id, is_rca=note.is_rca)
    db.session.commit()
    return note.to_dict()


def incident_audit(pk: int) -> list[dict]:
    incident = get_or_404(SystemIncident, pk, "System incident")
    return audit_trail("system_incident", incident.id)
