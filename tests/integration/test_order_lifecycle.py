from datetime import datetime, timezone
from decimal import Decimal

import pytest

from agencyhub.domain.orders import service as order_service
from agencyhub.errors import ConflictError, GatewayError
from agencyhub.models import Client, Order, SalesMetrics, ServiceContract, User
from agencyhub.models_invoice import Invoice
from agencyhub.shared.enums import OrderStatus, PaymentStatus, UserRole


def current_year() -> int:
    return datetime.now(timezone.utc).year


def test_checkout_creates_pending_order(client, db_session, gateway, events, checkout, make_template, agency_client):
    template = make_template(name="Brand Strategy", price="2500.00")

    body = checkout((template, 1))

    order = db_session.get(Order, body["orderId"])
    assert body["checkoutUrl"].startswith("https://checkout.stripe.test/")
    assert body["orderNumber"] == order.order_number
    assert order.status == OrderStatus.PENDING
    assert order.payment_status == PaymentStatus.PENDING
    assert order.subtotal == Decimal("2500.00")
    assert order.total == Decimal("2500.00")
    assert order.client_id == agency_client.id
    assert order.stripe_session_id == "cs_test_1"
    assert [entry.title for entry in order.timeline] == ["Order created"]
    assert [(item.service_name, item.unit_price) for item in order.items] == [("Brand Strategy", Decimal("2500.00"))]

    session_call = gateway.sessions[0]
    assert session_call["client_reference_id"] == str(order.id)
    assert session_call["metadata"] == {"orderId": str(order.id), "clientId": str(agency_client.id)}
    assert session_call["success_url"].endswith(f"/store/success?orderId={order.id}")
    assert [e for e, _ in events] == ["order.created"]


def test_payment_completes_order_and_issues_invoice(client, db_session, events, checkout, pay, make_template, agency_client):
    template = make_template(name="Brand Strategy", price="2500.00")
    order_id = checkout((template, 1))["orderId"]

    pay(order_id, payment_intent="pi_brand")

    order = db_session.get(Order, order_id)
    assert order.payment_status == PaymentStatus.SUCCEEDED
    assert order.status == OrderStatus.COMPLETED
    assert order.stripe_payment_intent_id == "pi_brand"
    assert order.paid_at is not None and order.completed_at is not None
    assert [entry.title for entry in order.timeline] == ["Order created", "Payment received", "Order completed"]

    invoice = db_session.query(Invoice).filter(Invoice.order_id == order_id).one()
    assert invoice.invoice_number == f"INV-{current_year()}-1000"
    assert invoice.pdf_url == f"/api/invoices/{invoice.invoice_number}/pdf"

    client_row = db_session.get(Client, agency_client.id)
    assert client_row.lifetime_value == Decimal("2500.00")
    assert client_row.total_orders == 1
    assert client_row.first_order_date is not None

    metrics = db_session.query(SalesMetrics).one()
    assert metrics.revenue == Decimal("2500.00")
    assert metrics.order_count == 1
    assert metrics.new_customers == 1

    assert [e for e, _ in events] == ["order.created", "order.paid", "order.completed"]


def test_repeated_confirmation_changes_nothing(client, db_session, events, checkout, pay, make_template, agency_client):
    template = make_template(price="400.00")
    order_id = checkout((template, 1))["orderId"]

    pay(order_id)
    pay(order_id)

    client_row = db_session.get(Client, agency_client.id)
    assert client_row.lifetime_value == Decimal("400.00")
    assert client_row.total_orders == 1
    assert db_session.query(SalesMetrics).one().order_count == 1
    assert db_session.query(Invoice).count() == 1
    assert [e for e, _ in events].count("order.paid") == 1


def test_invoice_numbers_are_sequential(client, db_session, checkout, pay, make_template):
    template = make_template(price="100.00")
    first = checkout((template, 1))["orderId"]
    second = checkout((template, 2))["orderId"]

    pay(first)
    pay(second)

    numbers = [invoice.invoice_number for invoice in db_session.query(Invoice).order_by(Invoice.id)]
    assert numbers == [f"INV-{current_year()}-1000", f"INV-{current_year()}-1001"]


def test_returning_client_is_not_counted_as_new(client, db_session, checkout, pay, make_template):
    template = make_template(price="100.00")
    pay(checkout((template, 1))["orderId"])
    pay(checkout((template, 1))["orderId"])

    metrics = db_session.query(SalesMetrics).one()
    assert metrics.order_count == 2
    assert metrics.new_customers == 1
    assert metrics.avg_order_value == Decimal("100.00")


def test_gateway_failure_leaves_no_order(client, db_session, gateway, auth, client_user, make_template, events):
    template = make_template(price="100.00")
    gateway.fail_with = GatewayError("Payment gateway checkout session creation failed", retryable=True)
    auth.login(client_user)

    response = client.post("/checkout", json={"items": [{"serviceTemplateId": template.id, "quantity": 1}]})

    assert response.status_code == 502
    assert response.json()["error"]["retryable"] is True
    assert db_session.query(Order).count() == 0
    assert events == []


def test_checkout_rejects_unpurchasable_items(client, db_session, auth, client_user, make_template):
    draft = make_template(name="Internal Retainer", is_purchasable=False)
    auth.login(client_user)

    response = client.post(
        "/checkout",
        json={"items": [{"serviceTemplateId": draft.id, "quantity": 1}, {"serviceTemplateId": 9999, "quantity": 1}]},
    )

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "order_creation_failed"
    assert len(error["details"]) == 2
    assert db_session.query(Order).count() == 0


def test_checkout_rejects_empty_and_invalid_payloads(client, auth, client_user):
    auth.login(client_user)

    assert client.post("/checkout", json={"items": []}).status_code == 400
    assert client.post("/checkout", json={"items": [{"serviceTemplateId": 1, "quantity": 0}]}).status_code == 400


def test_checkout_requires_client_record(client, db_session, auth, make_template):
    orphan = User(firebase_uid="orphan", email="orphan@nowhere.test", role=UserRole.CLIENT)
    db_session.add(orphan)
    db_session.commit()
    template = make_template()
    auth.login(orphan)

    response = client.post("/checkout", json={"items": [{"serviceTemplateId": template.id, "quantity": 1}]})

    assert response.status_code == 404


def test_admin_cannot_checkout(client, auth, admin_user, make_template):
    template = make_template()
    auth.login(admin_user)

    response = client.post("/checkout", json={"items": [{"serviceTemplateId": template.id, "quantity": 1}]})

    assert response.status_code == 403


def test_unauthenticated_requests_are_rejected(client):
    response = client.get("/orders")

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "unauthenticated"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["Cache-Control"].startswith("no-store")
    assert "Strict-Transport-Security" not in response.headers
    assert "X-Frame-Options" not in client.get("/health").headers


def test_admin_mark_paid(client, db_session, auth, admin_user, checkout, make_template):
    template = make_template(price="75.00")
    order_id = checkout((template, 1))["orderId"]
    auth.login(admin_user)

    response = client.post(f"/orders/{order_id}/mark-paid", json={"paymentIntentId": "pi_offline"})

    assert response.status_code == 200
    body = response.json()
    assert body["paymentStatus"] == "SUCCEEDED"
    assert body["status"] == "COMPLETED"
    assert body["isActivated"] is True
    assert body["invoice"]["number"] == f"INV-{current_year()}-1000"


def test_order_visibility(client, db_session, auth, admin_user, checkout, make_template):
    template = make_template()
    order_id = checkout((template, 1))["orderId"]

    other_client = Client(name="Rival Inc")
    db_session.add(other_client)
    db_session.commit()
    outsider = User(firebase_uid="rival", email="rival@rival.test", role=UserRole.CLIENT, client_id=other_client.id)
    db_session.add(outsider)
    db_session.commit()

    auth.login(outsider)
    assert client.get(f"/orders/{order_id}").status_code == 403
    assert client.get("/orders").json() == []

    auth.login(admin_user)
    assert client.get(f"/orders/{order_id}").status_code == 200
    assert len(client.get("/orders").json()) == 1
    assert client.get("/orders/424242").status_code == 404


# ============================================================================
# CONTRACT-GATED ORDERS
# ============================================================================


def test_contract_gates_activation(client, db_session, auth, client_user, events, checkout, pay, make_template):
    template = make_template(
        name="Monthly Retainer",
        price="1200.00",
        requires_contract=True,
        contract_template="The agency will provide 20 hours of work per month.",
    )
    order_id = checkout((template, 1))["orderId"]

    pay(order_id)

    order = db_session.get(Order, order_id)
    assert order.payment_status == PaymentStatus.SUCCEEDED
    assert order.status == OrderStatus.PROCESSING
    assert order.contract.template_content == "The agency will provide 20 hours of work per month."
    assert db_session.query(Invoice).count() == 0

    auth.login(client_user)
    body = client.get(f"/orders/{order_id}").json()
    assert body["contract"] == {"required": True, "signed": False, "signedAt": None, "signedByName": None}
    assert body["isActivated"] is False
    assert body["invoice"] is None

    response = client.post(
        f"/orders/{order_id}/contract/sign",
        json={"signatureData": "data:image/png;base64,AAAA", "fullName": "Jane Owner", "email": "Owner@Acme.test"},
        headers={"x-forwarded-for": "203.0.113.9, 10.0.0.1", "user-agent": "pytest"},
    )

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["status"] == "COMPLETED"
    assert body["isActivated"] is True
    assert body["contract"]["signed"] is True
    assert body["contract"]["signedByName"] == "Jane Owner"
    assert body["invoice"]["number"] == f"INV-{current_year()}-1000"
    assert [entry["title"] for entry in body["timeline"]][-2:] == ["Contract signed", "Order completed"]

    contract = db_session.query(ServiceContract).one()
    assert contract.ip_address == "203.0.113.9"
    assert contract.signed_by_email == "owner@acme.test"
    assert db_session.query(SalesMetrics).one().contracts_signed == 1
    assert "contract.signed" in [e for e, _ in events]


def test_contract_cannot_be_signed_twice(client, db_session, auth, client_user, checkout, pay, make_template):
    template = make_template(requires_contract=True, contract_template="Terms")
    order_id = checkout((template, 1))["orderId"]
    pay(order_id)
    auth.login(client_user)
    payload = {"signatureData": "sig", "fullName": "Jane Owner", "email": "owner@acme.test"}

    assert client.post(f"/orders/{order_id}/contract/sign", json=payload).status_code == 200
    response = client.post(f"/orders/{order_id}/contract/sign", json=payload)

    assert response.status_code == 409
    assert db_session.query(Invoice).count() == 1
    assert db_session.query(SalesMetrics).one().contracts_signed == 1


def test_contract_cannot_be_signed_before_payment(client, auth, client_user, checkout, make_template):
    template = make_template(requires_contract=True, contract_template="Terms")
    order_id = checkout((template, 1))["orderId"]
    auth.login(client_user)

    response = client.post(
        f"/orders/{order_id}/contract/sign",
        json={"signatureData": "sig", "fullName": "Jane Owner", "email": "owner@acme.test"},
    )

    # No contract exists until the payment has been confirmed
    assert response.status_code == 404



def test_contract_added_to_template_after_purchase_does_not_reopen_order(
    client, auth, admin_user, client_user, checkout, pay, make_template
):
    template = make_template(name="Logo Refresh", price="300.00")
    order_id = checkout((template, 1))["orderId"]
    pay(order_id)

    auth.login(admin_user)
    edited = client.patch(
        f"/service-templates/{template.id}", json={"requiresContract": True, "contractTemplate": "New terms"}
    )
    assert edited.status_code == 200, edited.text

    auth.login(client_user)
    body = client.get(f"/orders/{order_id}").json()
    assert body["status"] == "COMPLETED"
    assert body["isActivated"] is True
    assert body["contract"]["required"] is False


def test_contract_removed_from_template_before_payment_still_gates(
    client, db_session, auth, admin_user, checkout, pay, make_template
):
    template = make_template(name="Monthly Retainer", requires_contract=True, contract_template="Retainer terms")
    order_id = checkout((template, 1))["orderId"]

    auth.login(admin_user)
    edited = client.patch(f"/service-templates/{template.id}", json={"requiresContract": False})
    assert edited.status_code == 200, edited.text

    pay(order_id)

    order = db_session.get(Order, order_id)
    assert order.items[0].requires_contract is True
    assert order.status == OrderStatus.PROCESSING
    assert order.contract.template_content == "Retainer terms"
    assert db_session.query(Invoice).count() == 0


# ============================================================================
# PAYMENT STATUS COVERAGE
# ============================================================================


def test_every_payment_status_is_handled_by_confirmation():
    assert order_service.CONFIRMABLE_PAYMENT_STATUSES | order_service.ALREADY_CONFIRMED_STATUSES == set(PaymentStatus)
    assert not order_service.CONFIRMABLE_PAYMENT_STATUSES & order_service.ALREADY_CONFIRMED_STATUSES


def test_unconfirmable_status_is_a_conflict(db_session, gateway, checkout, make_template, monkeypatch):
    order_id = checkout((make_template(), 1))["orderId"]
    order = db_session.get(Order, order_id)
    order.payment_status = PaymentStatus.FAILED
    db_session.commit()
    monkeypatch.setattr(order_service, "CONFIRMABLE_PAYMENT_STATUSES", {PaymentStatus.PENDING})

    with pytest.raises(ConflictError):
        order_service.OrderService(db_session, gateway).confirm_payment(order_id)

    db_session.refresh(order)
    assert order.payment_status == PaymentStatus.FAILED
