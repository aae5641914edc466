"""
Inventory tests: serialised devices, bulk serial upload, STB lookup and
stock-request decisions.
"""

import pytest

from portal.models.inventory import InventoryItem

DEVICE = {"material_code": "STB-HD-01", "material_name": "HD Decoder",
          "material_type": "STB", "serial_number": "SN0001"}


def _add_item(client, headers, **overrides):
    return client.post("/api/v1/inventory", json=dict(DEVICE, **overrides), headers=headers)


class TestInventoryItems:
    def test_create_and_get(self, client, agent_headers):
        res = _add_item(client, agent_headers, cas_id="CAS-99")
        assert res.status_code == 201
        item = res.get_json()
        assert item["status"] == "AVAILABLE"
        assert item["owner"] == "WAREHOUSE"
        assert client.get(f"/api/v1/inventory/{item['id']}").get_json()["cas_id"] == "CAS-99"

    def test_duplicate_serial(self, client, agent_headers):
        _add_item(client, agent_headers)
        res = _add_item(client, agent_headers)
        assert res.status_code == 409

    def test_invalid_material_type(self, client, agent_headers):
        res = _add_item(client, agent_headers, material_type="ROUTER")
        assert res.status_code == 400

    def test_non_string_serial(self, client, agent_headers):
        res = _add_item(client, agent_headers, serial_number=12345)
        assert res.status_code == 400
        assert res.get_json()["error"] == "serial_number must be a string"

    def test_create_requires_auth(self, client):
        assert _add_item(client, {}).status_code == 401

    def test_update_and_delete(self, client, agent_headers):
        item_id = _add_item(client, agent_headers).get_json()["id"]
        _add_item(client, agent_headers, serial_number="SN0002")

        res = client.put(f"/api/v1/inventory/{item_id}", headers=agent_headers,
                         json={"status": "ALLOCATED", "owner": "AGT-01"})
        assert res.get_json()["status"] == "ALLOCATED"
        assert res.get_json()["owner"] == "AGT-01"

        res = client.put(f"/api/v1/inventory/{item_id}", headers=agent_headers,
                         json={"serial_number": "SN0002"})
        assert res.status_code == 409

        assert client.delete(f"/api/v1/inventory/{item_id}",
                             headers=agent_headers).status_code == 200
        assert client.get(f"/api/v1/inventory/{item_id}").status_code == 404

    def test_list_filters(self, client, agent_headers):
        _add_item(client, agent_headers)
        _add_item(client, agent_headers, serial_number="SC-1", material_type="SMART_CARD",
                  material_code="SC-01", material_name="Smart card")
        assert client.get("/api/v1/inventory").get_json()["total"] == 2
        data = client.get("/api/v1/inventory?material_type=SMART_CARD").get_json()
        assert [i["serial_number"] for i in data["items"]] == ["SC-1"]

    def test_stb_status(self, client, agent_headers):
        _add_item(client, agent_headers, location="Dar Warehouse")
        data = client.get("/api/v1/inventory/stb-status?serial_number=SN0001").get_json()
        assert data["material_code"] == "STB-HD-01"
        assert data["location"] == "Dar Warehouse"

        assert client.get("/api/v1/inventory/stb-status").status_code == 400
        assert client.get("/api/v1/inventory/stb-status?serial_number=NOPE").status_code == 404


class TestSerialUpload:
    def test_upload_skips_duplicates(self, client, agent_headers):
        _add_item(client, agent_headers, serial_number="SN-EXIST")
        res = client.post("/api/v1/inventory/serial-upload", headers=agent_headers, json={
            "material_code": "STB-HD-01", "material_name": "HD Decoder",
            "serial_numbers": ["SN-A", "SN-B", "SN-A", "SN-EXIST", " "],
            "warehouse": "Arusha",
        })
        assert res.status_code == 201
        data = res.get_json()
        assert data["processed"] == 2
        assert data["errors"] == 3
        assert data["created"] == ["SN-A", "SN-B"]
        assert data["message"] == "Successfully processed 2 serial numbers with 3 errors"

        from portal.models import db
        item = db.session.query(InventoryItem).filter_by(serial_number="SN-B").one()
        assert item.location == "Arusha"

    def test_upload_requires_list(self, client, agent_headers):
        res = client.post("/api/v1/inventory/serial-upload", headers=agent_headers, json={
            "material_code": "X", "material_name": "Y", "serial_numbers": "SN-1",
        })
        assert res.status_code == 400
        assert res.get_json()["error"] == "serial_numbers must be a non-empty list"


class TestInventoryRequests:
    def _raise(self, client, headers, **overrides):
        body = {"item_type": "STB", "item_qty": 5, "item_amount": 1000}
        body.update(overrides)
        return client.post("/api/v1/inventory-requests", json=body, headers=headers)

    def test_create_computes_vat(self, client, agent_headers):
        res = self._raise(client, agent_headers)
        assert res.status_code == 201
        req = res.get_json()
        assert req["request_id"] == "REQ000001"
        assert req["status"] == "PENDING"
        assert req["vat_amount"] == pytest.approx(180.0)
        assert req["total_amount"] == pytest.approx(1180.0)

    @pytest.mark.parametrize("qty", [0, -2, "lots"])
    def test_create_bad_qty(self, client, agent_headers, qty):
        assert self._raise(client, agent_headers, item_qty=qty).status_code == 400

    def test_missing_qty_defaults_to_one(self, client, agent_headers):
        body = {"item_type": "STB"}
        res = client.post("/api/v1/inventory-requests", json=body, headers=agent_headers)
        assert res.status_code == 201
        assert res.get_json()["item_qty"] == 1

    @pytest.mark.parametrize("amount", ["abc", "NaN", [1]])
    def test_create_bad_amount(self, client, agent_headers, amount):
        res = self._raise(client, agent_headers, item_amount=amount)
        assert res.status_code == 400
        assert res.get_json()["error"].startswith("item_amount must be")

    def test_approve_transfer_moves_owner(self, client, agent_headers, manager_headers, fresh):
        item_id = _add_item(client, agent_headers).get_json()["id"]
        req_id = self._raise(client, agent_headers, request_type="TRANSFER",
                             item_serial_no="SN0001", transfer_from="WAREHOUSE",
                             transfer_to="AGT-ONB-000001").get_json()["id"]

        res = client.post(f"/api/v1/inventory-requests/{req_id}/approve",
                          headers=manager_headers)
        assert res.status_code == 200
        assert res.get_json()["message"] == "Request approved"
        assert res.get_json()["request"]["decided_by"] == "manager"
        assert fresh(InventoryItem, item_id).owner == "AGT-ONB-000001"

    def test_reject_then_approve_fails(self, client, agent_headers, admin_headers):
        req_id = self._raise(client, agent_headers).get_json()["id"]
        res = client.post(f"/api/v1/inventory-requests/{req_id}/reject",
                          headers=admin_headers, json={"remarks": "Out of budget"})
        assert res.get_json()["request"]["status"] == "REJECTED"
        assert res.get_json()["request"]["remarks"] == "Out of budget"

        res = client.post(f"/api/v1/inventory-requests/{req_id}/approve",
                          headers=admin_headers)
        assert res.status_code == 400
        assert res.get_json()["error"] == "Cannot approve request with status: REJECTED"

    def test_finance_cannot_decide(self, client, agent_headers, finance_headers):
        req_id = self._raise(client, agent_headers).get_json()["id"]
        res = client.post(f"/api/v1/inventory-requests/{req_id}/approve",
                          headers=finance_headers)
        assert res.status_code == 403

    def test_list_by_status(self, client, agent_headers, admin_headers):
        first = self._raise(client, agent_headers).get_json()["id"]
        self._raise(client, agent_headers)
        client.post(f"/api/v1/inventory-requests/{first}/approve", headers=admin_headers)
        data = client.get("/api/v1/inventory-requests?status=PENDING").get_json()
        assert data["total"] == 1
