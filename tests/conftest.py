import os

# Désactive l'init fastapi-limiter (évite toute connexion Redis pendant les tests)
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")
os.environ.setdefault("CORS_ORIGINS", "*")

import pytest
from typing import Any, Dict, Generator, List, Optional
from fastapi.testclient import TestClient

from livraison import config
from livraison.app import app as fastapi_app
from livraison.commandes import repository
from livraison.utils.security import require_user, require_admin

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)
        elif "tests/functional/" in nodeid:
            item.add_marker(pytest.mark.functional)

TEST_USER: Dict[str, Any] = {
    "id": "test-user",
    "email": "test@example.com",
    "role": "user",
    "metadata": {"full_name": "Test User"},
}
ADMIN_USER: Dict[str, Any] = {"id": "admin-user-id", "email": "admin@example.com", "role": "admin", "metadata": {}}


class FakeStripe:
    """
    Remplace le module stripe de livraison.payments.stripe_client.
    - calls: liste (nom, kwargs) dans l’ordre des appels
    - failures: {"Customer.create": Exception(...)} pour simuler une étape en échec
    - intents: PaymentIntents créés, relus par PaymentIntent.retrieve
    """

    def __init__(self):
        self.api_key = None
        self.calls: List[tuple] = []
        self.failures: Dict[str, Exception] = {}
        self.intents: Dict[str, Dict[str, Any]] = {}
        fake = self

        class Customer:
            @staticmethod
            def create(**kwargs):
                return fake._call("Customer.create", kwargs, lambda: {"id": "cus_test_123"})

            @staticmethod
            def delete(customer_id):
                return fake._call("Customer.delete", {"id": customer_id}, lambda: {"id": customer_id, "deleted": True})

        class EphemeralKey:
            @staticmethod
            def create(**kwargs):
                return fake._call("EphemeralKey.create", kwargs, lambda: {"secret": "ek_test_secret_456"})

        class PaymentIntent:
            @staticmethod
            def create(**kwargs):
                return fake._call("PaymentIntent.create", kwargs, lambda: fake._new_intent(kwargs))

            @staticmethod
            def retrieve(intent_id):
                def _lookup():
                    if intent_id not in fake.intents:
                        raise LookupError(f"No such payment_intent: '{intent_id}'")
                    return fake.intents[intent_id]
                return fake._call("PaymentIntent.retrieve", {"id": intent_id}, _lookup)

        self.Customer = Customer
        self.EphemeralKey = EphemeralKey
        self.PaymentIntent = PaymentIntent

    def _new_intent(self, kwargs: Dict[str, Any]) -> Dict[str, Any]:
        intent_id = f"pi_test_{len(self.intents) + 1}"
        intent = {
            "id": intent_id,
            "client_secret": f"{intent_id}_secret_abc",
            "amount": kwargs["amount"],
            "currency": kwargs["currency"],
            "status": "requires_payment_method",
            "metadata": kwargs.get("metadata") or {},
        }
        self.intents[intent_id] = intent
        return intent

    def _call(self, name: str, kwargs: Dict[str, Any], result):
        self.calls.append((name, kwargs))
        if name in self.failures:
            raise self.failures[name]
        return result()

    def count(self, name: Optional[str] = None) -> int:
        return len([c for c in self.calls if name is None or c[0] == name])

    def last(self, name: str) -> Dict[str, Any]:
        return [kw for n, kw in self.calls if n == name][-1]

    def confirm(self, intent_id: str, status: str = "succeeded") -> None:
        """Simule la confirmation du paiement par la feuille de paiement."""
        self.intents[intent_id]["status"] = status


class FakeOrdersRepository:
    """Table commandes/panier en mémoire, mêmes signatures que livraison.commandes.repository
    (index unique sur payment_intent_id compris)."""

    def __init__(self):
        self.orders: Dict[str, Dict[str, Any]] = {}
        self.cart: List[Dict[str, Any]] = []
        self.fail_insert = False

    def insert_order(self, row):
        if self.fail_insert:
            return None
        intent_id = row.get("payment_intent_id")
        if intent_id and any(r.get("payment_intent_id") == intent_id for r in self.orders.values()):
            raise repository.DuplicatePaymentIntent(intent_id)
        self.orders[row["id"]] = dict(row)
        return dict(row)

    def fetch_order(self, order_id, user_id=None):
        row = self.orders.get(order_id)
        if not row or (user_id and row.get("user_id") != user_id):
            return None
        return dict(row)

    def fetch_order_by_payment_intent(self, payment_intent_id):
        for row in self.orders.values():
            if row.get("payment_intent_id") == payment_intent_id:
                return dict(row)
        return None

    def fetch_user_orders(self, user_id, limit=50):
        rows = [dict(r) for r in self.orders.values() if r.get("user_id") == user_id]
        rows.sort(key=lambda r: r.get("date") or "", reverse=True)
        return rows[:limit]

    def update_order_status(self, order_id, status, expected_status):
        row = self.orders.get(order_id)
        if not row or row.get("status") != expected_status:
            return False
        row["status"] = status
        return True

    def add_cart_items(self, user_id, items):
        rows = [{"user_id": user_id, **item} for item in items]
        self.cart.extend(rows)
        return len(rows)

    def seed(self, **row):
        base = {
            "id": "order-1",
            "user_id": TEST_USER["id"],
            "status": "pending",
            "date": "2024-06-01T12:00:00+00:00",
            "items": [{"product_id": "p1", "name": "Tajine", "unit_price": 50.0, "quantity": 2, "image": None}],
            "subtotal": 100.0,
            "delivery_fee": 10.0,
            "total": 110.0,
            "restaurant": "Dar Tajine",
            "delivery_option": "homeDelivery",
            "address": {"address": "12 rue des Oliviers, Rabat", "label": "Maison"},
            "payment_method": "cashOnDelivery",
            "payment_status": "pending_cod",
            "payment_intent_id": None,
            "phone_number": "+212600000000",
            "notes": "",
            "currency": "MAD",
        }
        base.update(row)
        self.orders[base["id"]] = base
        return base


@pytest.fixture(autouse=True)
def _test_config(monkeypatch):
    monkeypatch.setattr(config, "STRIPE_SECRET_KEY", "sk_test_dummy")
    monkeypatch.setattr(config, "STRIPE_PUBLISHABLE_KEY", "pk_test_dummy")
    monkeypatch.setattr(config, "CURRENCY", "MAD")
    monkeypatch.setattr(config, "ALLOW_DIAGNOSTIC_AMOUNT", False)
    monkeypatch.setattr(config, "STRIPE_CLEANUP_CUSTOMER_ON_FAILURE", False)
    monkeypatch.setattr(config, "ADMIN_EMAILS", ["admin@example.com"])
    monkeypatch.delenv("LOCAL_RATE_LIMIT_FALLBACK", raising=False)

@pytest.fixture()
def fake_stripe(monkeypatch) -> FakeStripe:
    fake = FakeStripe()
    monkeypatch.setattr("livraison.payments.stripe_client.stripe", fake)
    return fake

@pytest.fixture()
def orders_repo(monkeypatch) -> FakeOrdersRepository:
    repo = FakeOrdersRepository()
    for name in (
        "insert_order",
        "fetch_order",
        "fetch_order_by_payment_intent",
        "fetch_user_orders",
        "update_order_status",
        "add_cart_items",
    ):
        monkeypatch.setattr(f"livraison.commandes.repository.{name}", getattr(repo, name))
    return repo

@pytest.fixture(scope="session")
def app():
    return fastapi_app

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c

# Simuler un utilisateur authentifié pour les endpoints protégés
@pytest.fixture(autouse=True)
def _override_require_user(app):
    app.dependency_overrides[require_user] = lambda: TEST_USER
    try:
        yield
    finally:
        app.dependency_overrides.pop(require_user, None)

@pytest.fixture
def admin_client(app, client):
    app.dependency_overrides[require_admin] = lambda: ADMIN_USER
    yield client
    app.dependency_overrides.pop(require_admin, None)

@pytest.fixture
def order_payload() -> Dict[str, Any]:
    """Corps JSON (camelCase) d’une commande valide: 2 x 50 + 10 de livraison."""
    return {
        "items": [{"productId": "p1", "name": "Tajine", "unitPrice": 50.0, "quantity": 2}],
        "subtotal": 100.0,
        "deliveryFee": 10.0,
        "total": 110.0,
        "restaurant": "Dar Tajine",
        "deliveryOption": "homeDelivery",
        "address": {"address": "12 rue des Oliviers, Rabat", "label": "Maison"},
        "paymentMethod": "cashOnDelivery",
        "phoneNumber": "+212600000000",
    }
