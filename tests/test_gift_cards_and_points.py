"""Tests for gift card and loyalty points routes."""

import pytest

from dreamshop.routes.gift_cards import format_euro

GIFT_COUPON = {
    "id": 1, "code": "GC-ABC123", "description": "Gift Card - Generato automaticamente",
    "status": "publish", "amount": "30.00", "discount_type": "fixed_cart", "usage_limit": 1, "usage_count": 0,
}


class TestFormatEuro:
    def test_uses_comma_decimal(self):
        assert format_euro(12.5) == "€12,50"
        assert format_euro(0) == "€0,00"


class TestRedeem:
    def test_cannot_redeem_for_another_user(self, client, fakes, auth_headers):
        resp = client.post("/api/gift-cards/redeem", headers=auth_headers,
                           json={"gift_card_code": "GIFT-1", "user_id": 8})

        assert resp.status_code == 403
        assert fakes.wp.calls == []

    def test_missing_code(self, client, auth_headers):
        resp = client.post("/api/gift-cards/redeem", headers=auth_headers, json={"user_id": 7})

        assert resp.status_code == 400

    def test_redeem(self, client, fakes, auth_headers):
        fakes.wp.respond("POST", "gift-card/v1/redeem", {
            "success": True,
            "data": {"message": "Gift card riscattata", "amount": 50, "formatted_amount": "€50,00",
                     "new_balance": 75, "formatted_new_balance": "€75,00"},
        })

        resp = client.post("/api/gift-cards/redeem", headers=auth_headers,
                           json={"gift_card_code": " GIFT-1 ", "user_id": "7"})

        assert resp.status_code == 200
        assert resp.get_json()["data"]["new_balance"] == 75
        assert fakes.wp.calls_to("gift-card/v1/redeem")[0]["json"] == {"gift_card_code": "GIFT-1", "user_id": 7}

    def test_rejected_by_plugin(self, client, fakes, auth_headers):
        fakes.wp.respond("POST", "gift-card/v1/redeem", {"success": False, "message": "Codice già utilizzato"})

        resp = client.post("/api/gift-cards/redeem", headers=auth_headers,
                           json={"gift_card_code": "GIFT-1", "user_id": 7})

        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Codice già utilizzato"


class TestGenerateCoupon:
    def test_amount_must_be_positive(self, client, auth_headers):
        resp = client.post("/api/gift-cards/generate-coupon", headers=auth_headers, json={"amount": 0})

        assert resp.status_code == 400

    def test_generate(self, client, fakes, auth_headers):
        fakes.wp.respond("POST", "gift-card/v1/generate-coupon",
                         {"success": True, "data": {"coupon_code": "GC-XYZ", "amount": 20}})

        resp = client.post("/api/gift-cards/generate-coupon", headers=auth_headers, json={"amount": "20"})

        assert resp.get_json()["coupon_code"] == "GC-XYZ"
        assert fakes.wp.calls_to("gift-card/v1/generate-coupon")[0]["json"] == {"user_id": 7, "amount": 20.0}


class TestValidateCoupon:
    def test_fixed_cart_discount_is_capped_at_total(self, client, fakes):
        fakes.wc.coupons.append(dict(GIFT_COUPON))

        resp = client.post("/api/gift-cards/validate-coupon", json={"coupon_code": "GC-ABC123", "cart_total": 20})

        body = resp.get_json()
        assert body["valid"] is True
        assert body["discount_amount"] == 20.0
        assert body["new_total"] == 0.0
        assert body["formatted_discount"] == "€20,00"

    def test_percent_discount(self, client, fakes):
        fakes.wc.coupons.append(dict(GIFT_COUPON, discount_type="percent", amount="10"))

        resp = client.post("/api/gift-cards/validate-coupon", json={"coupon_code": "GC-ABC123", "cart_total": 80})

        assert resp.get_json()["discount_amount"] == 8.0

    @pytest.mark.parametrize("coupon, message", [
        (dict(GIFT_COUPON, code="SUMMER10"), "Questo coupon non è valido per le gift card"),
        (dict(GIFT_COUPON, description="Promo"), "Questo coupon non è valido per le gift card"),
        (dict(GIFT_COUPON, status="draft"), "Coupon non attivo"),
        (dict(GIFT_COUPON, usage_count=1), "Coupon già utilizzato"),
    ])
    def test_invalid_coupons(self, client, fakes, coupon, message):
        fakes.wc.coupons.append(coupon)

        resp = client.post("/api/gift-cards/validate-coupon",
                           json={"coupon_code": coupon["code"], "cart_total": 50})

        assert resp.status_code == 200
        assert resp.get_json() == {"success": False, "message": message}

    def test_unknown_coupon(self, client):
        resp = client.post("/api/gift-cards/validate-coupon", json={"coupon_code": "GC-NONE"})

        assert resp.get_json() == {"success": False, "message": "Coupon non trovato"}


class TestPoints:
    def test_add_points_without_api_key(self, client, fakes, auth_headers):
        fakes.wp.respond("POST", "dreamshop-points/v1/points/add", {"success": True, "points": 150})

        resp = client.post("/api/points/add", headers=auth_headers, json={"points": 50, "order_id": 12})

        call = fakes.wp.calls_to("dreamshop-points/v1/points/add")[0]
        assert resp.get_json() == {"success": True, "points": 150}
        assert call["json"]["order_id"] == 12
        assert call["headers"] is None

    def test_deduct_uses_api_key(self, client, fakes, auth_headers):
        fakes.wp.respond("POST", "dreamshop-points/v1/points/deduct-only",
                         {"success": True, "message": "ok", "new_balance": 50})

        resp = client.post("/api/points/deduct", headers=auth_headers, json={"points": 100, "orderId": 33})

        assert resp.get_json() == {"success": True, "message": "ok", "points_deducted": 100, "new_balance": 50}
        call = fakes.wp.calls_to("dreamshop-points/v1/points/deduct-only")[0]
        assert call["headers"] == {"X-API-Key": "points-key"}
        assert call["json"]["description"] == "Punti utilizzati per ordine #33"

    @pytest.mark.parametrize("points", [0, -10, "abc", None, True])
    def test_redeem_rejects_invalid_points(self, client, fakes, auth_headers, points):
        resp = client.post("/api/points/redeem", headers=auth_headers, json={"points": points, "order_id": 5})

        assert resp.status_code == 400
        assert fakes.wp.calls == []

    def test_redeem_requires_order(self, client, auth_headers):
        resp = client.post("/api/points/redeem", headers=auth_headers, json={"points": 100})

        assert resp.status_code == 400

    def test_redeem_without_server_key(self, app, client, fakes, auth_headers):
        app.config["POINTS_API_KEY"] = ""

        resp = client.post("/api/points/redeem", headers=auth_headers, json={"points": 100, "order_id": 5})

        assert resp.status_code == 500
        assert resp.get_json()["error"] == "Configurazione server mancante"
        assert fakes.wp.calls == []

    def test_redeem(self, client, fakes, auth_headers):
        fakes.wp.respond("POST", "dreamshop-points/v1/points/secure-redeem",
                         {"success": True, "message": "Punti riscattati", "points": 20})

        resp = client.post("/api/points/redeem", headers=auth_headers, json={"points": "100", "order_id": 5})

        assert resp.get_json() == {"success": True, "message": "Punti riscattati", "points": 20,
                                   "user_id": 7, "order_id": 5, "points_redeemed": 100}
        call = fakes.wp.calls_to("dreamshop-points/v1/points/secure-redeem")[0]
        assert call["headers"] == {"X-API-Key": "points-key"}
        assert call["json"]["user_id"] == 7
