"""
Shared model plumbing.

AuditFieldsMixin adds the create/update stamp columns every back-office
record carries (create_id, create_dt, update_id, update_dt).
ReferenceCounter backs the sequential business references (BP numbers,
incident ids) so a number is never issued twice, even after deletes.
"""

from datetime import datetime, timezone

from sqlalchemy import select

from portal.models import db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def iso(value):
    """ISO-8601 string for a date/datetime column, None passthrough."""
    return value.isoformat() if value else None


class AuditFieldsMixin:
    """Create/update stamps. ``touch`` records who changed the row last."""

    create_id = db.Column(db.String(100), nullable=True)
    create_dt = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    update_id = db.Column(db.String(100), nullable=True)
    update_dt = db.Column(db.DateTime(timezone=True), nullable=True)

    def touch(self, actor: str | None) -> None:
        self.update_id = actor
        self.update_dt = utcnow()

    def audit_fields(self) -> dict:
        return {
            "create_id": self.create_id,
            "create_dt": iso(self.create_dt),
            "update_id": self.update_id,
            "update_dt": iso(self.update_dt),
        }


class ReferenceCounter(db.Model):
    """Last number handed out per reference series; only ever moves up."""

    __tablename__ = "reference_counters"

    name = db.Column(db.String(60), primary_key=True)
    value = db.Column(db.Integer, nullable=False, default=0)


def next_reference_number(name: str, floor: int = 0) -> int:
    """Advance the ``name`` series and return the new number.

    ``floor`` is the highest number already present in the data; the series
    never hands out anything at or below it.
    """
    counter = db.session.execute(
        select(ReferenceCounter).where(ReferenceCounter.name == name).with_for_update()
    ).scalar_one_or_none()
    if counter is None:
        counter = ReferenceCounter(name=name, value=0)
        db.session.add(counter)
    counter.value = max(counter.value or 0, floor) + 1
    db.session.flush()
    return counter.value
