"""
Subscription lifecycle tests.

Tests cover:
  - Catalogue endpoints
  - Purchase: wallet charge, offer discount, add-ons, one active per smart card
  - Renewal, plan change with proration, add-on add/remove
  - Suspension / reactivation state rules
"""

from datetime import timedelta

import pytest

from portal.models.base import utcnow
from portal.models.customer import Customer
from portal.models.subscription import Subscription

BASE = "/api/v1/subscriptions"


@pytest.fixture()
def customer(make_customer):
    return make_customer(bp="BP500001", sc_id="SC500001", balance=100000.0)


def _purchase(client, headers, customer, **overrides):
    body = {"customer_id": customer.id, "smart_card_number": customer.sc_id,
            "plan_id": "AZAM_PLAY_1M"}
    body.update(overrides)
    return client.post(f"{BASE}/purchase", json=body, headers=headers)


@pytest.fixture()
def subscription_id(client, customer, agent_headers):
    return _purchase(client, agent_headers, customer).get_json()["subscription"]["id"]


class TestCatalogue:
    def test_plans(self, client):
        items = client.get(f"{BASE}/plans").get_json()["items"]
        prices = {p["id"]: p["price"] for p in items}
        assert prices == {"AZAM_LITE_1M": 12000, "AZAM_PLAY_1M": 19000,
                          "AZAM_PREM_1M": 35000, "AZAM_PLUS_1M": 28000}

    def test_offers_addons_reasons(self, client):
        assert len(client.get(f"{BASE}/offers").get_json()["items"]) == 3
        addons = client.get(f"{BASE}/addons").get_json()["items"]
        assert {"id": "SPORT001", "name": "Sports Pack", "price": 8000, "channels": 15} in addons
        codes = [r["code"] for r in client.get(f"{BASE}/suspension-reasons").get_json()["items"]]
        assert "NON_PAYMENT" in codes


class TestPurchase:
    def test_purchase_charges_wallet(self, client, customer, agent_headers, fresh):
        res = _purchase(client, agent_headers, customer)
        assert res.status_code == 201
        data = res.get_json()
        assert data["message"] == "Subscription created successfully"
        assert data["subscription"]["status"] == "ACTIVE"
        assert data["subscription"]["amount"] == 19000.0
        assert data["contract_id"].startswith("CON-")
        assert data["invoice_number"].startswith("INV-")
        assert data["wallet_balance_after"] == pytest.approx(81000.0)
        assert len(data["workflow_steps"]) == 8
        assert fresh(Customer, customer.id).balance == pytest.approx(81000.0)

    def test_purchase_with_offer_and_addons(self, client, customer, agent_headers):
        data = _purchase(client, agent_headers, customer, offer_id="PROMO001",
                         add_ons=["SPORT001"]).get_json()
        assert data["subscription"]["amount"] == pytest.approx((19000 + 8000) / 2)
        assert data["subscription"]["add_ons"] == ["SPORT001"]

    def test_one_active_per_smart_card(self, client, customer, subscription_id, agent_headers):
        res = _purchase(client, agent_headers, customer)
        assert res.status_code == 400
        assert res.get_json()["error"] == "Smart card already has an active subscription"

    @pytest.mark.parametrize("overrides, message", [
        ({"plan_id": "AZAM_GOLD"}, "Unknown plan: AZAM_GOLD"),
        ({"offer_id": "PROMO999"}, "Unknown offer: PROMO999"),
        ({"add_ons": ["SPORT001", "CHESS01"]}, "Unknown add-on packs: CHESS01"),
    ])
    def test_purchase_rejects_unknown_codes(self, client, customer, agent_headers,
                                            overrides, message):
        res = _purchase(client, agent_headers, customer, **overrides)
        assert res.status_code == 400
        assert res.get_json()["error"] == message

    def test_purchase_unknown_customer(self, client, customer, agent_headers):
        res = _purchase(client, agent_headers, customer, customer_id=4040)
        assert res.status_code == 404

    def test_purchase_requires_auth(self, client, customer):
        assert _purchase(client, {}, customer).status_code == 401


class TestLifecycle:
    def test_renewal_extends_end_date(self, client, subscription_id, agent_headers):
        before = client.get(f"{BASE}/{subscription_id}").get_json()["end_date"]
        res = client.post(f"{BASE}/renewal", headers=agent_headers,
                          json={"subscription_id": subscription_id, "renewal_months": 2})
        assert res.status_code == 200
        data = res.get_json()
        assert data["amount"] == 38000.0
        assert data["renewal_period"] == "2 month(s)"
        assert data["subscription"]["activation_type"] == "RENEWAL"
        assert data["subscription"]["end_date"] > before

    def test_renewal_bad_months(self, client, subscription_id, agent_headers):
        res = client.post(f"{BASE}/renewal", headers=agent_headers,
                          json={"subscription_id": subscription_id, "renewal_months": 0})
        assert res.status_code == 400

    @pytest.mark.parametrize("months", [37, 10 ** 8, "lots", 1e309])
    def test_renewal_months_out_of_range(self, client, subscription_id, agent_headers, months):
        res = client.post(f"{BASE}/renewal", headers=agent_headers,
                          json={"subscription_id": subscription_id, "renewal_months": months})
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"

    def test_upgrade_is_prorated(self, client, subscription_id, agent_headers):
        res = client.post(f"{BASE}/plan-change", headers=agent_headers,
                          json={"subscription_id": subscription_id,
                                "new_plan_id": "AZAM_PREM_1M"})
        assert res.status_code == 200
        data = res.get_json()
        assert data["payment_required"] is True
        assert 0 < data["prorated_amount"] <= 16000
        assert data["subscription"]["plan_id"] == "AZAM_PREM_1M"

    def test_downgrade_needs_no_payment(self, client, subscription_id, agent_headers):
        data = client.post(f"{BASE}/plan-change", headers=agent_headers,
                           json={"subscription_id": subscription_id,
                                 "new_plan_id": "AZAM_LITE_1M"}).get_json()
        assert data["payment_required"] is False
        assert data["invoice_number"] is None

    def test_plan_change_to_same_plan(self, client, subscription_id, agent_headers):
        res = client.post(f"{BASE}/plan-change", headers=agent_headers,
                          json={"subscription_id": subscription_id,
                                "new_plan_id": "AZAM_PLAY_1M"})
        assert res.status_code == 400

    def test_addon_add_and_remove(self, client, subscription_id, agent_headers):
        url = f"{BASE}/{subscription_id}/addons"
        res = client.post(url, headers=agent_headers, json={"addon_id": "KIDS001"})
        assert res.status_code == 200
        assert res.get_json()["subscription"]["add_ons"] == ["KIDS001"]
        assert res.get_json()["subscription"]["amount"] == 23000.0

        dup = client.post(url, headers=agent_headers, json={"addon_id": "KIDS001"})
        assert dup.status_code == 400

        res = client.post(url, headers=agent_headers,
                          json={"addon_id": "KIDS001", "operation": "remove"})
        assert res.get_json()["subscription"]["add_ons"] == []
        assert res.get_json()["invoice_number"] is None

    def test_plan_change_keeps_addon_price(self, client, subscription_id, agent_headers):
        url = f"{BASE}/{subscription_id}/addons"
        client.post(url, headers=agent_headers, json={"addon_id": "KIDS001"})
        data = client.post(f"{BASE}/plan-change", headers=agent_headers,
                           json={"subscription_id": subscription_id,
                                 "new_plan_id": "AZAM_LITE_1M"}).get_json()
        assert data["subscription"]["add_ons"] == ["KIDS001"]
        assert data["subscription"]["amount"] == 16000.0

        res = client.post(url, headers=agent_headers,
                          json={"addon_id": "KIDS001", "operation": "remove"})
        assert res.get_json()["subscription"]["amount"] == 12000.0

    def test_addon_id_must_be_string(self, client, subscription_id, agent_headers):
        res = client.post(f"{BASE}/{subscription_id}/addons", headers=agent_headers,
                          json={"addon_id": ["KIDS001"]})
        assert res.status_code == 400

    def test_suspend_and_reactivate(self, client, subscription_id, agent_headers):
        res = client.post(f"{BASE}/suspension", headers=agent_headers,
                          json={"subscription_id": subscription_id, "reason": "NON_PAYMENT"})
        assert res.status_code == 200
        data = res.get_json()
        assert data["subscription"]["status"] == "SUSPENDED"
        assert data["suspension_id"] == f"SUS-{subscription_id:06d}"

        renew = client.post(f"{BASE}/renewal", headers=agent_headers,
                            json={"subscription_id": subscription_id})
        assert renew.status_code == 400
        assert renew.get_json()["error"] == "Cannot renew a suspended subscription"

        res = client.post(f"{BASE}/{subscription_id}/reactivate", headers=agent_headers)
        assert res.status_code == 200
        assert res.get_json()["subscription"]["status"] == "ACTIVE"
        assert res.get_json()["subscription"]["suspension_reason"] is None

    def test_reactivate_active_fails(self, client, subscription_id, agent_headers):
        res = client.post(f"{BASE}/{subscription_id}/reactivate", headers=agent_headers)
        assert res.status_code == 400
        assert res.get_json()["error"] == "Cannot reactivate subscription with status: ACTIVE"

    def test_suspend_bad_reason(self, client, subscription_id, agent_headers):
        res = client.post(f"{BASE}/suspension", headers=agent_headers,
                          json={"subscription_id": subscription_id, "reason": "BORED"})
        assert res.status_code == 400

    def test_list_filters(self, client, subscription_id, customer):
        assert client.get(f"{BASE}?customer_id={customer.id}").get_json()["total"] == 1
        assert client.get(f"{BASE}?status=SUSPENDED").get_json()["total"] == 0
        data = client.get(f"{BASE}?smart_card_number={customer.sc_id}").get_json()
        assert data["items"][0]["id"] == subscription_id

    def test_renewal_of_lapsed_starts_today(self, client, subscription_id, agent_headers):
        from portal.models import db
        sub = db.session.get(Subscription, subscription_id)
        sub.end_date = utcnow().date() - timedelta(days=10)
        db.session.commit()
        data = client.post(f"{BASE}/renewal", headers=agent_headers,
                           json={"subscription_id": subscription_id}).get_json()
        expected = (utcnow().date() + timedelta(days=30)).isoformat()
        assert data["subscription"]["end_date"] == expected
