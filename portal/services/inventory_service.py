"""
Pay-TV Back-Office Portal
Inventory Service — serialised devices and stock requests.

Serial numbers are unique across the warehouse.  Stock requests are
decided once by a manager: PENDING → APPROVED | REJECTED.  Approving a
TRANSFER request moves the referenced device to the ``transfer_to`` owner.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import select

from portal.core.exceptions import ConflictError, NotFoundError, ValidationError
from portal.models import db
from portal.models.audit import write_audit
from portal.models.inventory import (
    ITEM_STATUSES,
    MATERIAL_TYPES,
    REQUEST_TYPES,
    InventoryItem,
    InventoryRequest,
)
from portal.utils.helpers import get_or_404, next_code, number, one_of, require_fields, text

logger = logging.getLogger(__name__)

_ITEM_FIELDS = (
    "material_code", "material_name", "material_type", "cas_id",
    "state", "status", "owner", "location",
)


def _serial_taken(serial: str) -> bool:
    return db.session.execute(
        select(InventoryItem.id).where(InventoryItem.serial_number == serial)
    ).first() is not None


# ═════════════════════════════════════════════════════════════════════════════
# Items
# ═════════════════════════════════════════════════════════════════════════════


def list_items(filters: dict) -> list[dict]:
    stmt = select(InventoryItem).order_by(InventoryItem.id)
    for field in ("status", "material_type", "owner", "material_code"):
        if filters.get(field):
            stmt = stmt.where(getattr(InventoryItem, field) == filters[field])
    return [i.to_dict() for i in db.session.execute(stmt).scalars()]


def get_item(item_id: int) -> dict:
    return get_or_404(InventoryItem, item_id, "Inventory item").to_dict()


def create_item(data: dict, actor: str) -> dict:
    require_fields(data, "material_code", "material_name", "serial_number")
    one_of(data.get("material_type"), MATERIAL_TYPES, "material_type")
    one_of(data.get("status"), ITEM_STATUSES, "status")
    serial = text(data["serial_number"], "serial_number")
    if _serial_taken(serial):
        raise ConflictError("Inventory item", "serial_number", serial)

    item = InventoryItem(serial_number=serial, create_id=actor)
    for field in _ITEM_FIELDS:
        if data.get(field) is not None:
            setattr(item, field, data[field])
    db.session.add(item)
    db.session.commit()
    return item.to_dict()


def update_item(item_id: int, data: dict, actor: str) -> dict:
    item = get_or_404(InventoryItem, item_id, "Inventory item")
    one_of(data.get("material_type"), MATERIAL_TYPES, "material_type")
    one_of(data.get("status"), ITEM_STATUSES, "status")
    serial = text(data.get("serial_number"), "serial_number")
    if serial and serial != item.serial_number:
        if _serial_taken(serial):
            raise ConflictError("Inventory item", "serial_number", serial)
        item.serial_number = serial
    for field in _ITEM_FIELDS:
        if field in data:
            setattr(item, field, data[field])
    item.touch(actor)
    db.session.commit()
    return item.to_dict()


def delete_item(item_id: int) -> None:
    item = get_or_404(InventoryItem, item_id, "Inventory item")
    db.session.delete(item)
    db.session.commit()


def upload_serials(data: dict, actor: str) -> dict:
    """Bulk-register serial numbers for one material; duplicates are skipped."""
    require_fields(data, "material_code", "material_name")
    serials = data.get("serial_numbers")
    if not isinstance(serials, list) or not serials:
        raise ValidationError("serial_numbers must be a non-empty list")
    one_of(data.get("material_type"), MATERIAL_TYPES, "material_type")

    created, skipped, seen = [], [], set()
    for raw in serials:
        serial = str(raw).strip()
        if not serial or serial in seen or _serial_taken(serial):
            skipped.append(serial)
            continue
        seen.add(serial)
        db.session.add(InventoryItem(
            material_code=data["material_code"],
            material_name=data["material_name"],
            material_type=data.get("material_type") or "STB",
            serial_number=serial,
            owner=data.get("owner") or "WAREHOUSE",
            location=data.get("warehouse") or data.get("location"),
            create_id=actor,
        ))
        created.append(serial)
    db.session.commit()
    logger.info("Serial upload created=%d skipped=%d", len(created), len(skipped),
                extra={"user": actor})
    return {
        "processed": len(created),
        "errors": len(skipped),
        "created": created,
        "skipped": skipped,
        "message": f"Successfully processed {len(created)} serial numbers with {len(skipped)} errors",
    }


def stb_status(serial_number: str | None) -> dict:
    if not serial_number:
        raise ValidationError("Serial number is required")
    item = db.session.execute(
        select(InventoryItem).where(InventoryItem.serial_number == serial_number)
    ).scalar_one_or_none()
    if item is None:
        raise NotFoundError("Inventory item", serial_number)
    return {
        "serial_number": item.serial_number,
        "material_code": item.material_code,
        "material_name": item.material_name,
        "cas_id": item.cas_id,
        "state": item.state,
        "status": item.status,
        "owner": item.owner,
        "location": item.location,
    }


# ═════════════════════════════════════════════════════════════════════════════
# Stock requests
# ═════════════════════════════════════════════════════════════════════════════


def list_requests(status: str | None = None) -> list[dict]:
    stmt = select(InventoryRequest).order_by(InventoryRequest.id.desc())
    if status:
        stmt = stmt.where(InventoryRequest.status == status)
    return [r.to_dict() for r in db.session.execute(stmt).scalars()]


def create_request(data: dict, actor: str) -> dict:
    require_fields(data, "item_type")
    one_of(data.get("request_type"), REQUEST_TYPES, "request_type")
    raw_qty = data.get("item_qty")
    try:
        qty = 1 if raw_qty is None else int(raw_qty)
    except (TypeError, ValueError, OverflowError) as exc:
        raise ValidationError("item_qty must be an integer") from exc
    if qty <= 0:
        raise ValidationError("Item qty must be greater than 0")

    amount = number(data.get("item_amount"), "item_amount", 0.0)
    vat = round(amount * current_app.config["VAT_RATE"], 2)
    req = InventoryRequest(
        request_id=next_code(InventoryRequest, "REQ", width=6),
        request_type=data.get("request_type") or "STOCK_REQUEST",
        module=data.get("module") or "AGENT",
        sap_bp_id=data.get("sap_bp_id"),
        item_type=data["item_type"],
        item_qty=qty,
        item_serial_no=data.get("item_serial_no"),
        item_amount=amount or None,
        vat_amount=vat if amount else None,
        total_amount=round(amount + vat, 2) if amount else None,
        transfer_from=data.get("transfer_from"),
        transfer_to=data.get("transfer_to"),
        remarks=data.get("remarks"),
        status="PENDING",
        create_id=actor,
    )
    db.session.add(req)
    db.session.commit()
    return req.to_dict()


def decide_request(request_pk: int, decision: str, actor: str, remarks: str | None = None) -> dict:
    """Approve or reject a PENDING stock request."""
    req = get_or_404(InventoryRequest, request_pk, "Inventory request")
    if req.status != "PENDING":
        verb = "approve" if decision == "APPROVED" else "reject"
        raise ValidationError(f"Cannot {verb} request with status: {req.status}")

    old = req.status
    req.status = decision
    req.decided_by = actor
    req.decided_at = datetime.now(timezone.utc)
    if remarks:
        req.remarks = remarks
    req.touch(actor)

    if decision == "APPROVED" and req.request_type == "TRANSFER" and req.item_serial_no:
        item = db.session.execute(
            select(InventoryItem).where(InventoryItem.serial_number == req.item_serial_no)
        ).scalar_one_or_none()
        if item is not None and req.transfer_to:
            item.owner = req.transfer_to
            item.touch(actor)

    write_audit(entity_type="inventory_request", entity_id=req.id,
                action=decision.lower(), actor=actor, old_value=old, new_value=decision)
    db.session.commit()
    logger.info("Inventory request %s", decision.lower(),
                extra={"entity_type": "inventory_request", "entity_id": req.id, "user": actor})
    return req.to_dict()
