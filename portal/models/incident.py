"""
Incident domain models.

Models:
    - ServiceIncident: service-desk ticket with SLA target, auto-routing and
      a fixed five-step resolution workflow.
    - SystemIncident: platform outage record (Portal, CM, SOM, CC, CI, NAGRA).
    - SystemIncidentNote: work note or root-cause analysis entry.
"""

from portal.models import db
from portal.models.base import iso, utcnow

# ── Service desk ─────────────────────────────────────────────────────────────

SERVICE_PRIORITIES = ("Critical", "High", "Medium", "Low")
SERVICE_STATUSES = ("OPEN", "IN_PROGRESS", "RESOLVED", "CLOSED")
SERVICE_CATEGORIES = ("hardware", "software", "network", "security", "access")

# ── System incidents ─────────────────────────────────────────────────────────

AFFECTED_SYSTEMS = ("Portal", "CM", "SOM", "CC", "CI", "NAGRA")
SEVERITIES = ("Critical", "Major", "Minor")
SYSTEM_STATUSES = ("Open", "Investigating", "Resolved", "Closed")
OWNER_TEAMS = ("Technical", "Operations")


class ServiceIncident(db.Model):
    __tablename__ = "service_incidents"

    id = db.Column(db.Integer, primary_key=True)
    incident_number = db.Column(db.String(20), nullable=False, unique=True, index=True)
    client = db.Column(db.String(100), nullable=True)
    common_faults = db.Column(db.String(200), nullable=True)
    category = db.Column(db.String(40), nullable=False)
    sub_category = db.Column(db.String(60), nullable=True)
    priority = db.Column(db.String(10), nullable=False)
    impact = db.Column(db.String(10), nullable=False)
    urgency = db.Column(db.String(10), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="OPEN", index=True)
    channel = db.Column(db.String(30), nullable=False, default="Others")

    user_id = db.Column(db.String(50), nullable=True, comment="Reporting end user")
    configuration_item = db.Column(db.String(60), nullable=True)
    alternate_location = db.Column(db.String(200), nullable=True)
    alternate_contact = db.Column(db.String(60), nullable=True)
    short_description = db.Column(db.String(255), nullable=False)
    additional_comments = db.Column(db.Text, nullable=True)

    assignment_group = db.Column(db.String(60), nullable=False)
    assigned_to = db.Column(db.String(150), nullable=True)
    escalation = db.Column(db.String(20), nullable=False)

    opened_by = db.Column(db.String(100), nullable=False, default="USER001")
    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    sla_hours = db.Column(db.Integer, nullable=False)
    target_resolve_date = db.Column(db.DateTime(timezone=True), nullable=False)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    workflow_steps = db.Column(db.JSON, nullable=False, default=list)
    work_log = db.Column(db.JSON, nullable=False, default=list)
    notifications = db.Column(db.JSON, nullable=False, default=list)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "incident_number": self.incident_number,
            "client": self.client,
            "common_faults": self.common_faults,
            "category": self.category,
            "sub_category": self.sub_category,
            "priority": self.priority,
            "status": self.status,
            "channel": self.channel,
            "user_id": self.user_id,
            "configuration_item": self.configuration_item,
            "alternate_location": self.alternate_location,
            "alternate_contact": self.alternate_contact,
            "short_description": self.short_description,
            "additional_comments": self.additional_comments,
            "assignment_group": self.assignment_group,
            "assigned_to": self.assigned_to,
            "routing": {"group": self.assignment_group, "escalation": self.escalation},
            "metadata": {
                "source": "Service Desk Portal",
                "client_info": self.client,
                "asset_info": self.configuration_item,
                "impact": self.impact,
                "urgency": self.urgency,
            },
            "opened_by": self.opened_by,
            "opened_at": iso(self.opened_at),
            "sla_hours": self.sla_hours,
            "target_resolve_date": iso(self.target_resolve_date),
            "resolved_at": iso(self.resolved_at),
            "workflow_steps": list(self.workflow_steps or []),
            "work_log": list(self.work_log or []),
            "notifications": list(self.notifications or []),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

    def __repr__(self):
        return f"<ServiceIncident {self.incident_number} [{self.priority}/{self.status}]>"


class SystemIncident(db.Model):
    __tablename__ = "system_incidents"

    id = db.Column(db.Integer, primary_key=True)
    incident_id = db.Column(db.String(20), nullable=False, unique=True, index=True)
    title = db.Column(db.String(200), nullable=False)
    affected_system = db.Column(db.String(10), nullable=False)
    severity = db.Column(db.String(10), nullable=False)
    description = db.Column(db.Text, nullable=False)
    start_time = db.Column(db.DateTime(timezone=True), nullable=False)
    end_time = db.Column(db.DateTime(timezone=True), nullable=True)
    impacted_customers = db.Column(db.Integer, nullable=True)
    root_cause = db.Column(db.Text, nullable=True)
    resolution_steps = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="Open", index=True)
    assigned_owner = db.Column(db.String(100), nullable=True)
    owner_team = db.Column(db.String(20), nullable=True)
    attachments = db.Column(db.JSON, nullable=False, default=list)
    notification_settings = db.Column(db.JSON, nullable=True)
    linked_service_tickets = db.Column(db.JSON, nullable=False, default=list)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    notes = db.relationship(
        "SystemIncidentNote", backref="incident", lazy="dynamic",
        cascade="all, delete-orphan", order_by="SystemIncidentNote.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "incident_id": self.incident_id,
            "title": self.title,
            "affected_system": self.affected_system,
            "severity": self.severity,
            "description": self.description,
            "start_time": iso(self.start_time),
            "end_time": iso(self.end_time),
            "impacted_customers": self.impacted_customers,
            "root_cause": self.root_cause,
            "resolution_steps": self.resolution_steps,
            "status": self.status,
            "assigned_owner": self.assigned_owner,
            "owner_team": self.owner_team,
            "attachments": list(self.attachments or []),
            "notification_settings": self.notification_settings,
            "linked_service_tickets": list(self.linked_service_tickets or []),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

    def __repr__(self):
        return f"<SystemIncident {self.incident_id} [{self.severity}/{self.status}]>"


class SystemIncidentNote(db.Model):
    __tablename__ = "system_incident_notes"

    id = db.Column(db.Integer, primary_key=True)
    incident_pk = db.Column(
        db.Integer, db.ForeignKey("system_incidents.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    user_id = db.Column(db.Integer, nullable=True)
    user_name = db.Column(db.String(100), nullable=False)
    note = db.Column(db.Text, nullable=False)
    is_rca = db.Column(db.Boolean, nullable=False, default=False,
                       comment="True when the note is a root-cause analysis")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "incident_id": self.incident_pk,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "note": self.note,
            "is_rca": self.is_rca,
            "created_at": iso(self.created_at),
        }
