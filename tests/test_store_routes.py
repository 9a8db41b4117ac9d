"""Tests for orders, addresses, coupons and stock checks."""

import pytest

from dreamshop.routes.products import check_item
from dreamshop.utils.errors import UpstreamError

CART_ITEM = {"product_id": 10, "variation_id": None, "name": "Statua Goku", "quantity": 1, "price": "100.00"}
PRODUCT = {"id": 10, "stock_status": "instock", "manage_stock": True, "stock_quantity": 5,
           "sold_individually": False, "price": "100.00"}


class TestOrders:
    def test_order_detail_of_owner(self, client, fakes, auth_headers):
        fakes.wc.add_order(300, customer_id=7, status="processing")

        resp = client.get("/api/orders/300", headers=auth_headers)

        assert resp.status_code == 200
        assert resp.get_json()["id"] == 300

    def test_guest_order_matched_by_billing_email(self, client, fakes, auth_headers):
        fakes.wc.add_order(301, customer_id=0, billing={"email": "Cliente@Example.com"})

        assert client.get("/api/orders/301", headers=auth_headers).status_code == 200

    def test_order_of_another_customer(self, client, fakes, auth_headers):
        fakes.wc.add_order(302, customer_id=8, billing={"email": "altro@example.com"})

        resp = client.get("/api/orders/302", headers=auth_headers)

        assert resp.status_code == 403

    def test_other_account_order_with_same_billing_email(self, client, fakes, auth_headers):
        fakes.wc.add_order(310, customer_id=8, billing={"email": "cliente@example.com"})

        resp = client.get("/api/orders/310", headers=auth_headers)

        assert resp.status_code == 403

    def test_unknown_order(self, client, auth_headers):
        assert client.get("/api/orders/404", headers=auth_headers).status_code == 404

    def test_user_orders_fall_back_to_email_search(self, client, fakes, auth_headers):
        fakes.wc.add_order(303, customer_id=0, billing={"email": "cliente@example.com"})
        fakes.wc.add_order(304, customer_id=9, billing={"email": "altro@example.com"})
        fakes.wc.add_order(305, customer_id=8, billing={"email": "cliente@example.com"})

        resp = client.get("/api/orders/user", headers=auth_headers)

        assert [o["id"] for o in resp.get_json()] == [303]


class TestAddresses:
    def test_addresses_default_country_and_email(self, client, fakes, auth_headers):
        fakes.wc.add_customer(7, "cliente@example.com", billing={"first_name": "Luca", "city": "Roma"})

        resp = client.get("/api/user/addresses", headers=auth_headers)

        billing = resp.get_json()["billing"]
        assert billing["country"] == "IT"
        assert billing["email"] == "cliente@example.com"
        assert resp.get_json()["shipping"] is None

    def test_save_requires_fields(self, client, fakes, auth_headers):
        fakes.wc.add_customer(7, "cliente@example.com")

        resp = client.post("/api/user/addresses/shipping", headers=auth_headers, json={"first_name": "Luca"})

        assert resp.status_code == 400
        assert "last_name" in resp.get_json()["error"]

    def test_save_shipping(self, client, fakes, auth_headers):
        fakes.wc.add_customer(7, "cliente@example.com")
        address = {"first_name": "Luca", "last_name": "Verdi", "address_1": "Via Roma 1", "city": "Roma",
                   "state": "RM", "postcode": "00100", "country": "IT"}

        resp = client.post("/api/user/addresses/shipping", headers=auth_headers, json=address)

        assert resp.status_code == 200
        assert fakes.wc.customers[7]["shipping"]["city"] == "Roma"


class TestCoupons:
    def test_verify_expired(self, client, fakes):
        fakes.wc.coupons.append({"code": "OLD", "date_expires_gmt": "2020-01-01T00:00:00"})

        resp = client.get("/api/coupons/verify?code=OLD")

        assert resp.status_code == 400

    def test_verify_valid(self, client, fakes):
        fakes.wc.coupons.append({"code": "NEW10", "date_expires_gmt": None, "usage_limit": None})

        resp = client.get("/api/coupons/verify?code=new10")

        assert resp.get_json()["coupon"]["code"] == "NEW10"

    def test_verify_unknown(self, client):
        assert client.get("/api/coupons/verify?code=NOPE").status_code == 404

    def test_apply(self, client, fakes):
        fakes.wp.respond("POST", "dreamshop/v1/validate-coupon",
                         {"valid": True, "discount": 5, "coupon": {"code": "NEW10"}})
        items = [{"id": 10, "quantity": 2, "price": "25.00"}]

        resp = client.post("/api/coupons/apply", json={"code": "NEW10", "items": items})

        assert resp.get_json()["discount"] == 5
        sent = fakes.wp.calls_to("dreamshop/v1/validate-coupon")[0]["json"]
        assert sent["items"][0]["variation_id"] == 0

    def test_apply_rejected(self, client, fakes):
        fakes.wp.respond("POST", "dreamshop/v1/validate-coupon", {"valid": False, "message": "Coupon scaduto"})

        resp = client.post("/api/coupons/apply", json={"code": "X", "items": [{"id": 1}]})

        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Coupon scaduto"

    def test_apply_empty_cart(self, client):
        assert client.post("/api/coupons/apply", json={"code": "X", "items": []}).status_code == 400


class TestCheckItem:
    def test_available_item(self):
        assert check_item(CART_ITEM, PRODUCT) == []

    def test_out_of_stock_short_circuits(self):
        issues = check_item(CART_ITEM, dict(PRODUCT, stock_status="outofstock", price="50.00"))

        assert [i["issue"] for i in issues] == ["not_in_stock"]

    def test_insufficient_quantity(self):
        issues = check_item(dict(CART_ITEM, quantity=3), dict(PRODUCT, stock_quantity=1))

        assert issues[0]["issue"] == "insufficient_quantity"
        assert issues[0]["message"] == 'Solo 1 pezzo di "Statua Goku" è disponibile.'

    def test_sold_individually(self):
        issues = check_item(dict(CART_ITEM, quantity=2), dict(PRODUCT, sold_individually=True))

        assert issues[0]["issue"] == "sold_individually"

    def test_price_change(self):
        issues = check_item(CART_ITEM, dict(PRODUCT, price="120.00"))

        assert issues[0]["issue"] == "price_changed"
        assert issues[0]["new_price"] == 120.0

    def test_price_change_ignored_for_custom_gift_card(self):
        item = dict(CART_ITEM, meta_data=[{"key": "_gift_card_custom_amount", "value": "75"}])

        assert check_item(item, dict(PRODUCT, price="120.00")) == []


class TestCheckStock:
    def test_reports_upstream_failure_per_item(self, client, fakes):
        fakes.wc.products["products/10"] = PRODUCT

        resp = client.post("/api/check-stock", json={"cartItems": [CART_ITEM, dict(CART_ITEM, product_id=11)]})

        body = resp.get_json()
        assert body["success"] is False
        assert [i["issue"] for i in body["stockIssues"]] == ["api_error"]
        assert body["stockIssues"][0]["id"] == 11

    def test_all_available(self, client, fakes):
        fakes.wc.products["products/10"] = PRODUCT

        resp = client.post("/api/check-stock", json={"cartItems": [CART_ITEM]})

        assert resp.get_json() == {"success": True, "stockIssues": [],
                                   "message": "Tutti i prodotti sono disponibili."}

    def test_empty_cart(self, client):
        assert client.post("/api/check-stock", json={"cartItems": []}).status_code == 400

    @pytest.mark.parametrize("status", [500, 404])
    def test_any_upstream_error_is_reported(self, client, fakes, status):
        fakes.wc.fail_with = UpstreamError(status, None)

        resp = client.post("/api/check-stock", json={"cartItems": [CART_ITEM]})

        assert resp.status_code == 200
        assert resp.get_json()["stockIssues"][0]["issue"] == "api_error"
