"""Tests for JWT issuing, the auth guard and the auth routes."""

from datetime import datetime, timedelta, timezone

import jwt


class TestJwtGuard:
    def test_missing_token_is_rejected(self, client, fakes):
        resp = client.get("/api/points/user")

        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Token non fornito"
        assert fakes.wp.calls == []

    def test_malformed_token_is_rejected_before_upstream(self, client, fakes):
        resp = client.get("/api/gift-cards/balance", headers={"Authorization": "Bearer not-a-jwt"})

        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Token non valido"
        assert fakes.wp.calls == []

    def test_token_signed_with_other_secret_is_rejected(self, client):
        token = jwt.encode({"id": 7}, "another-secret-0123456789abcdef-000000", algorithm="HS256")
        resp = client.get("/api/points/user", headers={"Authorization": f"Bearer {token}"})

        assert resp.status_code == 401

    def test_expired_token(self, client):
        past = datetime.now(timezone.utc) - timedelta(days=8)
        token = jwt.encode({"id": 7, "iat": past, "exp": past + timedelta(days=7)}, "dreamshop-test-secret-0123456789abcdef", algorithm="HS256")
        resp = client.get("/api/points/user", headers={"Authorization": f"Bearer {token}"})

        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Token scaduto"

    def test_token_without_user_id(self, client):
        token = jwt.encode({"email": "x@example.com"}, "dreamshop-test-secret-0123456789abcdef", algorithm="HS256")
        resp = client.get("/api/points/user", headers={"Authorization": f"Bearer {token}"})

        assert resp.status_code == 401

    def test_valid_token_reaches_upstream(self, client, fakes, auth_headers):
        fakes.wp.respond("GET", "dreamshop-points/v1/points/user/7", {"points": 120})

        resp = client.get("/api/points/user", headers=auth_headers)

        assert resp.status_code == 200
        assert resp.get_json() == {"points": 120}

    def test_issued_token_expires_in_seven_days(self, make_token):
        payload = jwt.decode(make_token(), "dreamshop-test-secret-0123456789abcdef", algorithms=["HS256"])

        assert payload["id"] == 7
        assert payload["exp"] - payload["iat"] == 7 * 24 * 3600


class TestLogin:
    def test_login_success(self, client, fakes):
        fakes.wc.add_customer(42, "mario@example.com", first_name="Mario", last_name="Rossi")
        fakes.wp.passwords["mario@example.com"] = "segreta"

        resp = client.post("/api/auth/login", json={"email": "mario@example.com", "password": "segreta"})

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["user"]["id"] == 42
        assert body["user"]["displayName"] == "Mario Rossi"
        assert jwt.decode(body["token"], "dreamshop-test-secret-0123456789abcdef", algorithms=["HS256"])["id"] == 42

    def test_wrong_password(self, client, fakes):
        fakes.wc.add_customer(42, "mario@example.com")
        fakes.wp.passwords["mario@example.com"] = "segreta"

        resp = client.post("/api/auth/login", json={"email": "mario@example.com", "password": "sbagliata"})

        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Credenziali non valide"

    def test_missing_fields(self, client):
        resp = client.post("/api/auth/login", json={"email": "mario@example.com"})

        assert resp.status_code == 400


class TestRegister:
    def test_register_returns_token(self, client, fakes):
        resp = client.post("/api/auth/register", json={
            "email": "nuovo@example.com", "password": "pw", "firstName": "Anna", "lastName": "Bianchi",
        })

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["user"]["email"] == "nuovo@example.com"
        assert body["token"]

    def test_duplicate_email_is_a_client_error(self, client, fakes):
        fakes.wc.add_customer(1, "esiste@example.com")

        resp = client.post("/api/auth/register", json={"email": "esiste@example.com", "password": "pw"})

        assert resp.status_code == 400
        assert "già registrato" in resp.get_json()["error"]


class TestValidateAndUpdate:
    def test_validate_returns_current_customer(self, client, fakes, auth_headers):
        fakes.wc.add_customer(7, "cliente@example.com", first_name="Luca")

        resp = client.get("/api/auth/validate", headers=auth_headers)

        assert resp.status_code == 200
        assert resp.get_json()["valid"] is True
        assert resp.get_json()["user"]["firstName"] == "Luca"

    def test_update_user_requires_fields(self, client, fakes, auth_headers):
        fakes.wc.add_customer(7, "cliente@example.com")

        resp = client.put("/api/auth/update-user", headers=auth_headers, json={})

        assert resp.status_code == 400

    def test_update_user(self, client, fakes, auth_headers):
        fakes.wc.add_customer(7, "cliente@example.com")

        resp = client.put("/api/auth/update-user", headers=auth_headers, json={"firstName": "Giulia"})

        assert resp.status_code == 200
        assert fakes.wc.customers[7]["first_name"] == "Giulia"
