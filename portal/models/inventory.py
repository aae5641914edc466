"""
Inventory domain model.

Models:
    - InventoryItem: one serialised device (STB, smart card, dish, LNB).
    - InventoryRequest: stock request / transfer awaiting manager decision.
"""

from portal.models import db
from portal.models.base import AuditFieldsMixin, iso

ITEM_STATUSES = ("AVAILABLE", "ALLOCATED", "SOLD", "FAULTY", "RETURNED")
MATERIAL_TYPES = ("STB", "SMART_CARD", "DISH", "LNB", "ACCESSORY")
REQUEST_STATUSES = ("PENDING", "APPROVED", "REJECTED")
REQUEST_TYPES = ("STOCK_REQUEST", "TRANSFER", "RETURN")


class InventoryItem(AuditFieldsMixin, db.Model):
    __tablename__ = "inventory_items"

    id = db.Column(db.Integer, primary_key=True)
    material_code = db.Column(db.String(40), nullable=False)
    material_name = db.Column(db.String(200), nullable=False)
    material_type = db.Column(db.String(30), nullable=False, default="STB")
    serial_number = db.Column(db.String(60), nullable=False, unique=True, index=True)
    cas_id = db.Column(db.String(60), nullable=True)
    state = db.Column(db.String(30), nullable=False, default="NEW",
                      comment="NEW | REFURBISHED | DAMAGED")
    status = db.Column(db.String(20), nullable=False, default="AVAILABLE")
    owner = db.Column(db.String(100), nullable=False, default="WAREHOUSE")
    location = db.Column(db.String(100), nullable=True)

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "material_code": self.material_code,
            "material_name": self.material_name,
            "material_type": self.material_type,
            "serial_number": self.serial_number,
            "cas_id": self.cas_id,
            "state": self.state,
            "status": self.status,
            "owner": self.owner,
            "location": self.location,
        }
        data.update(self.audit_fields())
        return data

    def __repr__(self):
        return f"<InventoryItem {self.id}: {self.serial_number} [{self.status}]>"


class InventoryRequest(AuditFieldsMixin, db.Model):
    __tablename__ = "inventory_requests"

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(db.String(40), nullable=False, unique=True)
    request_type = db.Column(db.String(30), nullable=False, default="STOCK_REQUEST")
    module = db.Column(db.String(30), nullable=False, default="AGENT")
    sap_bp_id = db.Column(db.String(30), nullable=True)
    item_type = db.Column(db.String(30), nullable=False)
    item_qty = db.Column(db.Integer, nullable=False, default=1)
    item_serial_no = db.Column(db.String(60), nullable=True)
    item_amount = db.Column(db.Float, nullable=True)
    vat_amount = db.Column(db.Float, nullable=True)
    total_amount = db.Column(db.Float, nullable=True)
    transfer_from = db.Column(db.String(100), nullable=True)
    transfer_to = db.Column(db.String(100), nullable=True)
    status = db.Column(db.String(20), nullable=False, default="PENDING", index=True)
    decided_by = db.Column(db.String(100), nullable=True)
    decided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    remarks = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "request_id": self.request_id,
            "request_type": self.request_type,
            "module": self.module,
            "sap_bp_id": self.sap_bp_id,
            "item_type": self.item_type,
            "item_qty": self.item_qty,
            "item_serial_no": self.item_serial_no,
            "item_amount": self.item_amount,
            "vat_amount": self.vat_amount,
            "total_amount": self.total_amount,
            "transfer_from": self.transfer_from,
            "transfer_to": self.transfer_to,
            "status": self.status,
            "decided_by": self.decided_by,
            "decided_at": iso(self.decided_at),
            "remarks": self.remarks,
        }
        data.update(self.audit_fields())
        return data

    def __repr__(self):
        return f"<InventoryRequest {self.request_id} [{self.status}]>"
