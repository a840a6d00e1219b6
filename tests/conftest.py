import json
import os
from decimal import Decimal
from itertools import count
from typing import Generator

# Configuration is read at import time, so the test environment goes first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["FIREBASE_PROJECT_ID"] = "agencyhub-test"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
os.environ.pop("REDIS_URL", None)
os.environ.pop("STRIPE_SECRET_KEY", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from agencyhub import models_invoice  # noqa: E402,F401
from agencyhub.auth import get_current_user  # noqa: E402
from agencyhub.database import Base, get_db  # noqa: E402
from agencyhub.errors import AuthenticationError  # noqa: E402
from agencyhub.main import app as fastapi_app  # noqa: E402
from agencyhub.models import Client, ServiceTemplate, User  # noqa: E402
from agencyhub.services.stripe_service import (  # noqa: E402
    CheckoutSession,
    GatewayRefund,
    get_stripe_service,
)
from agencyhub.shared.enums import UserRole  # noqa: E402
from agencyhub.webhook_security import create_stripe_signature  # noqa: E402

WEBHOOK_SECRET = "whsec_test"


# Automatic marking by folder
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)


class FakeGateway:
    """Stands in for StripeService; records every call"""

    def __init__(self):
        self.sessions = []
        self.refunds = []
        self.fail_with = None
        self._ids = count(1)

    def is_available(self) -> bool:
        return True

    def create_checkout_session(self, **kwargs) -> CheckoutSession:
        if self.fail_with is not None:
            raise self.fail_with
        n = next(self._ids)
        self.sessions.append(kwargs)
        return CheckoutSession(id=f"cs_test_{n}", url=f"https://checkout.stripe.test/c/{n}")

    def create_refund(self, *, payment_intent_id, amount, metadata, reason="requested_by_customer") -> GatewayRefund:
        if self.fail_with is not None:
            raise self.fail_with
        n = next(self._ids)
        self.refunds.append(
            {"payment_intent_id": payment_intent_id, "amount": amount, "metadata": metadata, "reason": reason}
        )
        return GatewayRefund(id=f"re_test_{n}", amount=amount, status="succeeded")


@pytest.fixture()
def engine():
    test_engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture()
def db_session(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def events(monkeypatch):
    """Capture lifecycle events instead of queueing them"""
    captured = []

    async def _fake_notify(event, data):
        captured.append((event, data))
        return None

    for module in (
        "agencyhub.domain.orders.router",
        "agencyhub.domain.refunds.router",
        "agencyhub.domain.contracts.router",
        "agencyhub.domain.payments.router",
    ):
        monkeypatch.setattr(f"{module}.notify", _fake_notify)
    return captured


@pytest.fixture()
def agency_client(db_session) -> Client:
    client = Client(name="Acme Corp", business_name="Acme Corporation", email="billing@acme.test")
    db_session.add(client)
    db_session.commit()
    return client


@pytest.fixture()
def client_user(db_session, agency_client) -> User:
    user = User(
        firebase_uid="client-uid",
        email="owner@acme.test",
        full_name="Jane Owner",
        role=UserRole.CLIENT,
        client_id=agency_client.id,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture()
def admin_user(db_session) -> User:
    user = User(firebase_uid="admin-uid", email="admin@agency.test", full_name="Agency Admin", role=UserRole.ADMIN)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture()
def make_template(db_session):
    def _make(name="Website Audit", price="100.00", **kwargs) -> ServiceTemplate:
        values = {
            "name": name,
            "price": Decimal(price) if price is not None else None,
            "currency": "usd",
            "is_purchasable": True,
            "is_active": True,
            "requires_contract": False,
            "max_quantity": 10,
        }
        values.update(kwargs)
        template = ServiceTemplate(**values)
        db_session.add(template)
        db_session.commit()
        return template

    return _make


class AuthState:
    def __init__(self):
        self.user = None

    def login(self, user):
        self.user = user


@pytest.fixture()
def auth() -> AuthState:
    return AuthState()


@pytest.fixture()
def app(db_session, gateway, auth, events):
    def _override_get_db():
        yield db_session

    def _override_current_user():
        if auth.user is None:
            raise AuthenticationError("Not authenticated")
        return auth.user

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    fastapi_app.dependency_overrides[get_current_user] = _override_current_user
    fastapi_app.dependency_overrides[get_stripe_service] = lambda: gateway
    try:
        yield fastapi_app
    finally:
        fastapi_app.dependency_overrides.clear()


@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def stripe_event(client):
    """POST a signed Stripe event to the callback endpoint"""

    def _post(event_type: str, obj: dict, secret: str = WEBHOOK_SECRET, event_id: str = "evt_test"):
        body = json.dumps({"id": event_id, "type": event_type, "data": {"object": obj}}).encode("utf-8")
        return client.post(
            "/webhooks/stripe",
            content=body,
            headers={"Stripe-Signature": create_stripe_signature(secret, body), "Content-Type": "application/json"},
        )

    return _post


@pytest.fixture()
def checkout(client, auth, client_user):
    """Place an order as the client user and return the checkout response body"""

    def _checkout(*items):
        auth.login(client_user)
        response = client.post(
            "/checkout",
            json={"items": [{"serviceTemplateId": t.id, "quantity": q} for t, q in items]},
        )
        assert response.status_code == 200, response.text
        return response.json()

    return _checkout


@pytest.fixture()
def pay(stripe_event):
    """Confirm payment for an order through the checkout.session.completed callback"""

    def _pay(order_id: int, payment_intent: str = None):
        payment_intent = payment_intent or f"pi_test_{order_id}"
        response = stripe_event(
            "checkout.session.completed",
            {
                "id": f"cs_unused_{order_id}",
                "client_reference_id": str(order_id),
                "payment_status": "paid",
                "payment_intent": payment_intent,
                "metadata": {"orderId": str(order_id)},
            },
        )
        assert response.status_code == 200, response.text
        return response

    return _pay
