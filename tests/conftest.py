"""Pytest fixtures for DreamShop API tests.

Upstream services are replaced by in-memory fakes that subclass the real
connectors, so helper logic (meta lookups, payload building) still runs.
"""

import copy
import json
from types import SimpleNamespace

import pytest

from dreamshop.main import create_app
from dreamshop.models.connector_base import ConnectorConfig
from dreamshop.models.connector_manager import get_manager
from dreamshop.models.paypal_connector import PAYPAL_BASE_URLS, PayPalConnector
from dreamshop.models.stripe_gateway import StripeGateway
from dreamshop.models.woocommerce_connector import WooCommerceConnector
from dreamshop.models.wordpress_connector import WordPressConnector
from dreamshop.utils.auth import issue_token
from dreamshop.utils.errors import NotFoundError, UpstreamError, ValidationError

TEST_CONFIG = {
    "SQLALCHEMY_DATABASE_URI": "sqlite://",
    "JWT_SECRET": "dreamshop-test-secret-0123456789abcdef",
    "POINTS_API_KEY": "points-key",
    "WORDPRESS_URL": "https://wp.test",
    "FRONTEND_URL": "https://dreamshop18.com",
    "CORS_ORIGINS": ["https://dreamshop18.com", "https://www.dreamshop18.com"],
    "STRIPE_SECRET_KEY": "sk_test_fake",
    "STRIPE_WEBHOOK_SECRET": "whsec_test",
    "DEBUG_ROUTES": False,
}


class FakeWooCommerce(WooCommerceConnector):
    """WooCommerce em memória: pedidos, clientes, produtos, cupons e zonas."""

    def __init__(self):
        super().__init__(ConnectorConfig(name="woocommerce", api_key="ck_test", api_secret="cs_test",
                                         base_url="https://wp.test"))
        self.orders = {}
        self.customers = {}
        self.products = {}
        self.coupons = []
        self.zones = []
        self.zone_methods = {}
        self.zone_locations = {}
        self.notes = []
        self.writes = []
        self.fail_with = None
        self._next_id = 1000

    def add_order(self, order_id, **fields):
        order = {"id": order_id, "status": "pending", "customer_id": 0, "transaction_id": "",
                 "meta_data": [], "total": "0.00", "billing": {}}
        order.update(fields)
        self.orders[order_id] = order
        return order

    def add_customer(self, customer_id, email, **fields):
        customer = {"id": customer_id, "email": email, "username": email.split("@")[0],
                    "first_name": "", "last_name": "", "billing": {}, "shipping": {}}
        customer.update(fields)
        self.customers[customer_id] = customer
        return customer

    def order_updates(self, order_id):
        return [data for method, path, data in self.writes if method == "PUT" and path == f"orders/{order_id}"]

    def created_orders(self):
        return [data for method, path, data in self.writes if method == "POST" and path == "orders"]

    def _check(self):
        if self.fail_with is not None:
            raise self.fail_with

    def _order(self, order_id):
        if order_id not in self.orders:
            raise UpstreamError(404, {"code": "woocommerce_rest_shop_order_invalid_id", "message": "ID non valido."})
        return self.orders[order_id]

    def _customer(self, customer_id):
        if customer_id not in self.customers:
            raise UpstreamError(404, {"code": "woocommerce_rest_invalid_id", "message": "ID non valido."})
        return self.customers[customer_id]

    def get(self, path, params=None):
        self._check()
        params = params or {}
        parts = path.split("/")
        if path == "orders":
            orders = sorted(self.orders.values(), key=lambda o: o["id"], reverse=True)
            if "customer" in params:
                orders = [o for o in orders if o.get("customer_id") == params["customer"]]
            if "search" in params:
                orders = [o for o in orders if (o.get("billing") or {}).get("email") == params["search"]]
            return copy.deepcopy(orders[:params.get("per_page", 10)])
        if parts[0] == "orders":
            return copy.deepcopy(self._order(int(parts[1])))
        if path == "customers":
            return [copy.deepcopy(c) for c in self.customers.values() if c["email"] == params.get("email")]
        if parts[0] == "customers":
            return copy.deepcopy(self._customer(int(parts[1])))
        if path == "coupons":
            code = params.get("code", "").lower()
            return [copy.deepcopy(c) for c in self.coupons if c.get("code", "").lower() == code]
        if parts[0] == "products":
            if path not in self.products:
                raise UpstreamError(404, {"message": "ID non valido."})
            return copy.deepcopy(self.products[path])
        if path == "shipping/zones":
            return copy.deepcopy(self.zones)
        if parts[:2] == ["shipping", "zones"] and parts[3] == "methods":
            return copy.deepcopy(self.zone_methods.get(int(parts[2]), []))
        if parts[:2] == ["shipping", "zones"] and parts[3] == "locations":
            return copy.deepcopy(self.zone_locations.get(int(parts[2]), []))
        raise AssertionError(f"GET inesperado: {path}")

    def post(self, path, data):
        self._check()
        self.writes.append(("POST", path, copy.deepcopy(data)))
        parts = path.split("/")
        if path == "orders":
            self._next_id += 1
            order = {"id": self._next_id, "total": "0.00", "meta_data": []}
            order.update(copy.deepcopy(data))
            self.orders[order["id"]] = order
            return copy.deepcopy(order)
        if parts[0] == "orders" and parts[2] == "notes":
            self.notes.append((int(parts[1]), data["note"]))
            return {"id": len(self.notes), "note": data["note"]}
        if path == "customers":
            if any(c["email"] == data["email"] for c in self.customers.values()):
                raise UpstreamError(400, {"code": "registration-error-email-exists",
                                          "message": "Un account è già registrato con questa email."})
            self._next_id += 1
            customer = self.add_customer(self._next_id, data["email"], username=data.get("username"),
                                         first_name=data.get("first_name", ""), last_name=data.get("last_name", ""))
            return copy.deepcopy(customer)
        raise AssertionError(f"POST inesperado: {path}")

    def put(self, path, data):
        self._check()
        self.writes.append(("PUT", path, copy.deepcopy(data)))
        parts = path.split("/")
        if parts[0] == "orders":
            order = self._order(int(parts[1]))
            data = copy.deepcopy(data)
            meta = data.pop("meta_data", [])
            order.update(data)
            for entry in meta:
                order["meta_data"] = [m for m in order["meta_data"] if m["key"] != entry["key"]] + [entry]
            return copy.deepcopy(order)
        if parts[0] == "customers":
            customer = self._customer(int(parts[1]))
            customer.update(copy.deepcopy(data))
            return copy.deepcopy(customer)
        raise AssertionError(f"PUT inesperado: {path}")


class FakeWordPress(WordPressConnector):
    """Endpoints de plugin com respostas configuradas por (método, caminho)."""

    def __init__(self):
        super().__init__(ConnectorConfig(name="wordpress", api_key="ck_test", api_secret="cs_test",
                                         base_url="https://wp.test",
                                         options={"points_api_key": "points-key"}))
        self.responses = {}
        self.calls = []
        self.passwords = {}

    def respond(self, method, path, result):
        self.responses[(method, path)] = result

    def calls_to(self, path):
        return [c for c in self.calls if c["path"] == path]

    def call(self, method, path, params=None, json=None, headers=None):
        self.calls.append({"method": method, "path": path, "params": params, "json": json, "headers": headers})
        result = self.responses.get((method, path), {})
        if isinstance(result, Exception):
            raise result
        return copy.deepcopy(result)

    def verify_credentials(self, email, password):
        return self.passwords.get(email) == password


class FakeStripe(StripeGateway):
    """PaymentIntents e Checkout Sessions em memória; webhook assinado com 'valid'."""

    def __init__(self):
        super().__init__("sk_test_fake", "whsec_test", "eur")
        self.intents = {}
        self.sessions = {}
        self.created_intents = []
        self.metadata_updates = []

    def add_intent(self, intent_id, status="succeeded", metadata=None, amount=1000):
        self.intents[intent_id] = {"id": intent_id, "status": status, "amount": amount,
                                   "client_secret": f"{intent_id}_secret", "metadata": dict(metadata or {})}
        return self.intents[intent_id]

    def add_session(self, session_id, payment_status="paid", metadata=None, payment_intent=None):
        self.sessions[session_id] = {"id": session_id, "payment_status": payment_status,
                                     "metadata": dict(metadata or {}), "payment_intent": payment_intent,
                                     "url": f"https://checkout.stripe.test/{session_id}"}
        return self.sessions[session_id]

    def create_payment_intent(self, amount_cents, metadata, payment_method_types=("card",),
                              description=None, receipt_email=None, idempotency_key=None):
        intent = self.add_intent(f"pi_test_{len(self.intents) + 1}", "requires_payment_method", metadata, amount_cents)
        self.created_intents.append({"id": intent["id"], "amount": amount_cents, "metadata": dict(metadata),
                                     "payment_method_types": list(payment_method_types),
                                     "description": description, "receipt_email": receipt_email,
                                     "idempotency_key": idempotency_key})
        return copy.deepcopy(intent)

    def retrieve_payment_intent(self, payment_intent_id):
        if payment_intent_id not in self.intents:
            raise NotFoundError("Risorsa Stripe non trovata")
        return copy.deepcopy(self.intents[payment_intent_id])

    def update_payment_intent_metadata(self, payment_intent_id, metadata):
        self.metadata_updates.append((payment_intent_id, dict(metadata)))
        self.intents[payment_intent_id]["metadata"].update(metadata)
        return copy.deepcopy(self.intents[payment_intent_id])

    def create_checkout_session(self, **params):
        session = self.add_session(f"cs_test_{len(self.sessions) + 1}", "unpaid", params.get("metadata"))
        session["params"] = params
        return copy.deepcopy(session)

    def retrieve_checkout_session(self, session_id):
        if session_id not in self.sessions:
            raise NotFoundError("Risorsa Stripe non trovata")
        return copy.deepcopy(self.sessions[session_id])

    def construct_event(self, payload, signature):
        if signature != "valid":
            raise ValidationError("Errore di verifica della firma: firma non valida")
        return json.loads(payload)


class FakePayPal(PayPalConnector):
    """Pedidos PayPal em memória."""

    def __init__(self):
        super().__init__(ConnectorConfig(name="paypal", api_key="client", api_secret="secret",
                                         base_url=PAYPAL_BASE_URLS["sandbox"]))
        self.orders = {}
        self.created = []
        self.captured = []

    def add_order(self, paypal_order_id, status, custom_id=None, capture_id=None, amount="10.00"):
        unit = {"amount": {"currency_code": "EUR", "value": amount}}
        if custom_id:
            unit["custom_id"] = custom_id
        if capture_id:
            unit["payments"] = {"captures": [{"id": capture_id, "status": "COMPLETED"}]}
        self.orders[paypal_order_id] = {"id": paypal_order_id, "status": status, "purchase_units": [unit]}
        return self.orders[paypal_order_id]

    def create_order(self, amount, description, custom_id, return_url, cancel_url, currency="EUR"):
        paypal_order_id = f"PAYPAL-{len(self.orders) + 1}"
        self.created.append({"id": paypal_order_id, "amount": amount, "description": description,
                             "custom_id": custom_id, "return_url": return_url, "cancel_url": cancel_url})
        order = copy.deepcopy(self.add_order(paypal_order_id, "CREATED", custom_id=custom_id, amount=amount))
        order["links"] = [{"rel": "approve", "href": f"https://paypal.test/approve/{paypal_order_id}"}]
        return order

    def get_order(self, paypal_order_id):
        if paypal_order_id not in self.orders:
            raise UpstreamError(404, {"name": "RESOURCE_NOT_FOUND", "message": "Ordine non trovato"})
        return copy.deepcopy(self.orders[paypal_order_id])

    def capture_order(self, paypal_order_id):
        self.captured.append(paypal_order_id)
        order = self.orders[paypal_order_id]
        order["status"] = "COMPLETED"
        order["purchase_units"][0]["payments"] = {
            "captures": [{"id": f"CAP-{paypal_order_id}", "status": "COMPLETED"}]
        }
        return copy.deepcopy(order)


@pytest.fixture
def fakes():
    """Fake upstream connectors."""
    return SimpleNamespace(wc=FakeWooCommerce(), wp=FakeWordPress(), stripe=FakeStripe(), paypal=FakePayPal())


@pytest.fixture
def app(fakes):
    """Flask app backed by in-memory SQLite and fake connectors."""
    app = create_app(dict(TEST_CONFIG))
    app.config["TESTING"] = True
    with app.app_context():
        manager = get_manager()
        manager.register_connector("woocommerce", fakes.wc)
        manager.register_connector("wordpress", fakes.wp)
        manager.register_connector("stripe", fakes.stripe)
        manager.register_connector("paypal", fakes.paypal)
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_token(app):
    """Build a signed JWT for a customer id."""

    def _make(user_id=7, email="cliente@example.com", username="cliente"):
        with app.app_context():
            return issue_token({"id": user_id, "email": email, "username": username})

    return _make


@pytest.fixture
def auth_headers(make_token):
    """Authorization header for customer 7."""
    return {"Authorization": f"Bearer {make_token()}"}
