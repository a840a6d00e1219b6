import logging
from decimal import Decimal

from agencyhub.domain.refunds.service import RefundService
from agencyhub.errors import PersistenceError
from agencyhub.models import Client, Order, SalesMetrics
from agencyhub.shared.enums import OrderStatus, PaymentStatus


def paid_order(checkout, pay, make_template, price="2500.00"):
    template = make_template(name="Brand Strategy", price=price)
    order_id = checkout((template, 1))["orderId"]
    pay(order_id, payment_intent=f"pi_refund_{order_id}")
    return order_id


def test_full_refund(client, db_session, auth, admin_user, gateway, events, checkout, pay, make_template, agency_client):
    order_id = paid_order(checkout, pay, make_template)
    auth.login(admin_user)

    response = client.post(f"/orders/{order_id}/refund", json={"type": "full", "reason": "customer request"})

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["success"] is True
    assert body["refund"]["id"].startswith("re_test_")
    assert Decimal(body["refund"]["amount"]) == Decimal("2500.00")

    assert gateway.refunds == [
        {
            "payment_intent_id": f"pi_refund_{order_id}",
            "amount": Decimal("2500.00"),
            "metadata": {"orderId": str(order_id), "adminId": str(admin_user.id), "refundReason": "customer request"},
            "reason": "requested_by_customer",
        }
    ]

    order = db_session.get(Order, order_id)
    assert order.status == OrderStatus.REFUNDED
    assert order.payment_status == PaymentStatus.REFUNDED
    assert order.timeline[-1].title == "Full refund processed"
    assert order.timeline[-1].description == "Refunded $2,500.00. Reason: customer request"
    assert order.order_metadata["refund"]["amount"] == "2500.00"
    assert len(order.order_metadata["refund_history"]) == 1

    client_row = db_session.get(Client, agency_client.id)
    assert client_row.lifetime_value == Decimal("0.00")
    assert client_row.total_orders == 0

    metrics = db_session.query(SalesMetrics).one()
    assert metrics.refund_amount == Decimal("2500.00")
    assert metrics.revenue == Decimal("2500.00")
    assert ("order.refunded", {"orderId": order_id, "refundId": body["refund"]["id"], "amount": "2500.00", "type": "full"}) in events


def test_second_refund_is_rejected_without_gateway_call(
    client, db_session, auth, admin_user, gateway, checkout, pay, make_template, agency_client
):
    order_id = paid_order(checkout, pay, make_template)
    auth.login(admin_user)
    assert client.post(f"/orders/{order_id}/refund", json={"type": "full", "reason": "customer request"}).status_code == 200
    timeline_before = len(db_session.get(Order, order_id).timeline)

    response = client.post(f"/orders/{order_id}/refund", json={"type": "full", "reason": "again"})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "refund_rejected"
    assert len(gateway.refunds) == 1

    db_session.expire_all()
    assert len(db_session.get(Order, order_id).timeline) == timeline_before
    assert db_session.get(Client, agency_client.id).lifetime_value == Decimal("0.00")
    assert db_session.query(SalesMetrics).one().refund_amount == Decimal("2500.00")


def test_partial_refund_keeps_order_active(
    client, db_session, auth, admin_user, gateway, checkout, pay, make_template, agency_client
):
    order_id = paid_order(checkout, pay, make_template)
    auth.login(admin_user)

    response = client.post(
        f"/orders/{order_id}/refund", json={"type": "partial", "amount": "500.00", "reason": "scope reduced"}
    )

    assert response.status_code == 200, response.text
    assert gateway.refunds[0]["amount"] == Decimal("500.00")

    order = db_session.get(Order, order_id)
    assert order.status == OrderStatus.COMPLETED
    assert order.payment_status == PaymentStatus.SUCCEEDED
    assert order.order_metadata["refund"]["amount"] == "500.00"
    assert order.order_metadata["refund"]["type"] == "partial"
    assert order.timeline[-1].title == "Partial refund processed"

    assert db_session.get(Client, agency_client.id).lifetime_value == Decimal("2500.00")
    assert db_session.query(SalesMetrics).one().refund_amount == Decimal("500.00")

    body = client.get(f"/orders/{order_id}").json()
    assert Decimal(body["refundedAmount"]) == Decimal("500.00")


def test_partial_refunds_cannot_exceed_remaining_amount(client, db_session, auth, admin_user, gateway, checkout, pay, make_template):
    order_id = paid_order(checkout, pay, make_template)
    auth.login(admin_user)
    first = client.post(f"/orders/{order_id}/refund", json={"type": "partial", "amount": "2000.00", "reason": "first"})
    assert first.status_code == 200

    response = client.post(f"/orders/{order_id}/refund", json={"type": "partial", "amount": "600.00", "reason": "second"})

    assert response.status_code == 400
    assert "remaining" in response.json()["error"]["message"]
    assert len(gateway.refunds) == 1

    over_total = client.post(f"/orders/{order_id}/refund", json={"type": "partial", "amount": "3000.00", "reason": "x"})
    assert over_total.status_code == 400
    assert len(gateway.refunds) == 1


def test_refund_requires_a_payment(client, auth, admin_user, gateway, checkout, make_template):
    order_id = checkout((make_template(), 1))["orderId"]
    auth.login(admin_user)

    response = client.post(f"/orders/{order_id}/refund", json={"type": "full", "reason": "never paid"})

    assert response.status_code == 400
    assert gateway.refunds == []


def test_refund_request_validation(client, auth, admin_user, checkout, pay, make_template):
    order_id = paid_order(checkout, pay, make_template)
    auth.login(admin_user)

    assert client.post(f"/orders/{order_id}/refund", json={"type": "partial", "reason": "x"}).status_code == 400
    assert client.post(f"/orders/{order_id}/refund", json={"type": "full", "reason": "   "}).status_code == 400
    assert client.post(f"/orders/{order_id}/refund", json={"type": "other", "reason": "x"}).status_code == 400
    assert client.post("/orders/424242/refund", json={"type": "full", "reason": "x"}).status_code == 404


def test_refund_requires_admin(client, auth, client_user, gateway, checkout, pay, make_template):
    order_id = paid_order(checkout, pay, make_template)
    auth.login(client_user)

    response = client.post(f"/orders/{order_id}/refund", json={"type": "full", "reason": "customer request"})

    assert response.status_code == 403
    assert gateway.refunds == []


def test_local_failure_after_gateway_refund_is_logged_for_reconciliation(
    client, db_session, auth, admin_user, gateway, checkout, pay, make_template, monkeypatch, caplog
):
    order_id = paid_order(checkout, pay, make_template)
    auth.login(admin_user)

    def _fail(self, order_id, record):
        raise PersistenceError("Database error during refund recording")

    monkeypatch.setattr(RefundService, "_record_refund", _fail)

    with caplog.at_level(logging.ERROR, logger="agencyhub.domain.refunds.service"):
        response = client.post(f"/orders/{order_id}/refund", json={"type": "full", "reason": "customer request"})

    assert response.status_code == 500
    assert response.json()["error"]["code"] == "persistence_error"
    assert len(gateway.refunds) == 1
    assert any("RECONCILIATION REQUIRED" in r.message and "re_test_" in r.message for r in caplog.records)

    db_session.expire_all()
    assert db_session.get(Order, order_id).payment_status == PaymentStatus.SUCCEEDED
