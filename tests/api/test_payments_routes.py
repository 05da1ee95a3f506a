import asyncio
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

from api.dependencies import get_payment_intent_service, get_receipt_dispatcher
from application.services.payment_service import PaymentIntentService
from application.services.receipt_service import InvoiceReceiptStrategy, ReceiptDispatcher
from domain.booking.entity import Booking, BookingStatus
from main import app


@pytest.fixture
def client(gateway, store, clock):
    app.dependency_overrides[get_payment_intent_service] = lambda: PaymentIntentService(gateway, clock=clock)
    app.dependency_overrides[get_receipt_dispatcher] = lambda: ReceiptDispatcher(
        gateway, InvoiceReceiptStrategy(gateway), store, clock=clock
    )
    # lifespan is not entered: no processor or Redis clients are built
    yield TestClient(app)
    app.dependency_overrides.clear()


INTENT_BODY = {
    "amount": 1000.00,
    "currency": "PHP",
    "payerEmail": "payer@example.com",
    "providerEmail": "provider@example.com",
    "serviceDescription": "House cleaning",
}


def test_create_intent(client, gateway):
    resp = client.post("/api/v1/payments/intents", json=INTENT_BODY)
    assert resp.status_code == 200
    body = resp.json()
    assert body["code"] == 0
    data = body["data"]
    assert data["clientSecret"] == "pi_1_secret_abc"
    assert data["ephemeralKey"] == "ek_test_1"
    assert data["customerId"] == "cus_1"
    assert Decimal(data["totalAmount"]) == Decimal("1150.00")
    assert Decimal(data["commissionAmount"]) == Decimal("150.00")
    assert data["commissionRate"] == "15%"
    assert resp.headers.get("X-Request-ID")


def test_create_intent_rejects_other_currency(client, gateway):
    resp = client.post("/api/v1/payments/intents", json={**INTENT_BODY, "currency": "USD"})
    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == 60010
    assert "USD" in body["message"]
    assert body["error"]["field"] == "currency"
    assert gateway.calls == []


def test_create_intent_rejects_amount_beyond_precision(client, gateway):
    resp = client.post("/api/v1/payments/intents", json={**INTENT_BODY, "amount": 1e30})
    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == 60011
    assert body["error"]["field"] == "amount"
    assert gateway.calls == []


def test_create_intent_validation_error(client, gateway):
    payload = {k: v for k, v in INTENT_BODY.items() if k != "amount"}
    resp = client.post("/api/v1/payments/intents", json=payload)
    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == 10003
    assert body["error"]["type"] == "ValidationError"
    assert gateway.calls == []


def test_receipt_requires_payment_reference(client, gateway):
    resp = client.post("/api/v1/payments/receipts", json={})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Payment ID is required"
    assert gateway.calls == []


def test_receipt_for_incomplete_payment(client, gateway, succeeded_metadata):
    gateway.add_payment(status="requires_payment_method", metadata=succeeded_metadata)
    resp = client.post("/api/v1/payments/receipts", json={"paymentId": "pi_paid"})
    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == 61000
    assert body["message"] == "Cannot send receipt for incomplete payment"
    assert "create_invoice" not in gateway.ops


def test_receipt_sent(client, gateway, succeeded_metadata):
    gateway.add_payment(metadata=succeeded_metadata)
    resp = client.post("/api/v1/payments/receipts", json={"paymentId": "pi_paid"})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["message"] == "Receipt sent successfully"
    assert data["reference"] == "in_1"
    assert Decimal(data["paymentDetails"]["totalAmount"]) == Decimal("1150.00")
    assert data["sentTo"] == ["payer@example.com"]
    assert data["providerNotified"] is False


def test_receipt_route_uses_lifespan_dispatcher(gateway, store, clock, succeeded_metadata):
    dispatcher = ReceiptDispatcher(gateway, InvoiceReceiptStrategy(gateway), store, clock=clock)
    app.state.receipt_dispatcher = dispatcher
    try:
        assert get_receipt_dispatcher(Request({"type": "http", "app": app})) is dispatcher
        gateway.add_payment(metadata=succeeded_metadata)
        resp = TestClient(app).post("/api/v1/payments/receipts", json={"paymentId": "pi_paid"})
    finally:
        del app.state.receipt_dispatcher
    assert resp.status_code == 200
    assert gateway.ops[-1] == "send_invoice"


def test_unknown_payment_surfaces_processor_error(client, gateway):
    resp = client.post("/api/v1/payments/receipts", json={"paymentId": "pi_missing"})
    assert resp.status_code == 500
    assert "pi_missing" in resp.json()["message"]


def test_booking_event_marks_booking(client, gateway, store, succeeded_metadata):
    gateway.add_payment(metadata=succeeded_metadata)
    asyncio.run(store.save(
        Booking(booking_id="bk_1", amount=Decimal("1000.00"), status=BookingStatus.COMPLETED, payment_id="pi_paid")
    ))
    resp = client.post("/api/v1/payments/receipts", json={"bookingId": "bk_1", "type": "bookingStatusChange"})
    assert resp.status_code == 200
    assert resp.json()["data"]["bookingId"] == "bk_1"
    assert asyncio.run(store.get("bk_1")).receipt_sent is True

    again = client.post("/api/v1/payments/receipts", json={"bookingId": "bk_1", "type": "bookingStatusChange"})
    assert again.json()["data"]["skipped"] is True
    assert gateway.ops.count("send_invoice") == 1


def test_unknown_booking_is_404(client):
    resp = client.post("/api/v1/payments/receipts", json={"bookingId": "nope", "type": "bookingStatusChange"})
    assert resp.status_code == 404
    assert resp.json()["code"] == 20101


def test_receipts_reachability(client):
    resp = client.get("/api/v1/payments/receipts")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["message"] == "Send receipt endpoint is accessible"
    assert data["timestamp"].endswith("Z")
    assert "environment" in data


def test_method_not_allowed_lists_methods(client):
    resp = client.put("/api/v1/payments/receipts", json={})
    assert resp.status_code == 405
    body = resp.json()
    assert body["code"] == 40005
    allowed = body["error"]["details"]["allowed_methods"]
    assert {"GET", "POST"} <= set(allowed)
    assert {"GET", "POST"} <= {m.strip() for m in resp.headers["allow"].split(",")}

    resp = client.delete("/api/v1/payments/intents")
    assert resp.status_code == 405
    assert resp.json()["error"]["details"]["allowed_methods"] == ["POST"]


def test_root_and_health(client):
    assert client.get("/health").json()["data"] == {"status": "healthy"}
    assert client.get("/").json()["data"]["name"]
