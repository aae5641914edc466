"""Shared utility functions used by services and blueprints.

get_or_404:          fetch-by-pk or raise NotFoundError
parse_datetime:      strict datetime parsing (raises ValidationError)
as_utc:              normalise SQLite-naive datetimes to UTC-aware
require_fields:      required-field check for request payloads
number:              finite numeric value
positive_amount:     numeric amount > 0 check
text:                stripped string field, non-strings rejected
one_of:              enum membership check
valid_email:         syntax-checked, normalised e-mail address
next_code:           sequential business references
"""
import logging
import math
from datetime import datetime, timezone

from email_validator import EmailNotValidError, validate_email

from portal.core.exceptions import NotFoundError, ValidationError
from portal.models import db

logger = logging.getLogger(__name__)


def get_or_404(model, pk, label=None):
    """Fetch a model instance by primary key or raise NotFoundError."""
    label = label or model.__name__
    obj = db.session.get(model, pk)
    if not obj:
        raise NotFoundError(label, pk)
    return obj


def as_utc(dt: datetime | None) -> datetime | None:
    """Normalise a datetime to UTC-aware regardless of whether SQLite stored it naive.

    SQLite's DateTime columns return naive datetimes; PostgreSQL returns tz-aware.
    All comparisons against datetime.now(timezone.utc) go through this helper.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_datetime(value, field: str = "date"):
    """Parse an ISO-8601 timestamp into a UTC-aware datetime.

    Accepts a trailing ``Z``.  Raises ValidationError on bad input.
    """
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValidationError(f"{field} must be an ISO-8601 date/time") from exc
    return as_utc(parsed)


def require_fields(data: dict, *fields: str, message: str | None = None) -> None:
    """Raise ValidationError listing every field that is missing or blank."""
    missing = [
        f for f in fields
        if data.get(f) is None or (isinstance(data.get(f), str) and not data.get(f).strip())
    ]
    if missing:
        raise ValidationError(
            message or f"Missing required fields: {', '.join(missing)}",
            details={"missing": missing},
        )


def number(value, field: str, default: float | None = None) -> float | None:
    """Coerce to a finite float; None or "" gives ``default``."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        result = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be a number") from exc
    if not math.isfinite(result):
        raise ValidationError(f"{field} must be a finite number")
    return result


def positive_amount(value, field: str = "amount") -> float:
    """Coerce to a finite float and require > 0."""
    amount = number(value, field)
    if amount is None:
        raise ValidationError(f"{field} must be a number")
    if amount <= 0:
        raise ValidationError(f"{field.capitalize().replace('_', ' ')} must be greater than 0")
    return amount


def text(value, field: str) -> str:
    """Stripped string value; None gives "" and non-strings are rejected."""
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value.strip()


def one_of(value, allowed, field: str):
    """Validate an enum-like string field; None passes through."""
    if value is None:
        return None
    if value not in allowed:
        raise ValidationError(f"{field} must be one of: {', '.join(allowed)}")
    return value


def valid_email(value: str | None) -> str | None:
    """Validate e-mail syntax (no DNS lookup) and return the normalised form."""
    if not value:
        return value
    if not isinstance(value, str):
        raise ValidationError("Invalid email: must be a string")
    try:
        return validate_email(value, check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}") from e


def next_code(model, prefix: str, width: int = 6, base: int = 0) -> str:
    """Generate the next sequential business reference: ``BP000001``, ``INC000002`` ...

    One persisted series per table, never below max(id), so a reference is not
    reissued after the newest row is deleted.
    """
    from sqlalchemy import func, select

    from portal.models.base import next_reference_number

    last = db.session.execute(select(func.max(model.id))).scalar() or 0
    return f"{prefix}{(base + next_reference_number(model.__tablename__, last)):0{width}d}"
