import pytest

stripe = pytest.importorskip("stripe")

from application.dtos.payments import CreateInvoice, CreatePaymentIntent, InvoiceField
from infrastructure.external.payments.exceptions import PaymentProviderError, PaymentRecoverableError
from infrastructure.external.payments.stripe_client import StripeClient


@pytest.fixture
def client():
    return StripeClient(secret_key="sk_test_dummy", ephemeral_key_api_version="2022-11-15")


def test_missing_secret_key_fails_fast(monkeypatch):
    from core.settings import payment_settings

    monkeypatch.setattr(payment_settings.stripe, "secret_key", None)
    with pytest.raises(RuntimeError):
        StripeClient()


@pytest.mark.asyncio
async def test_customer_key_and_intent(client, monkeypatch):
    seen = {}

    def fake_customer(**kwargs):
        seen["customer"] = kwargs
        return {"id": "cus_1", "email": kwargs["email"]}

    def fake_key(**kwargs):
        seen["key"] = kwargs
        return {"id": "ephkey_1", "secret": "ek_test_1", "expires": 1760862600}

    def fake_intent(**kwargs):
        seen["intent"] = kwargs
        return {
            "id": "pi_1",
            "status": "requires_payment_method",
            "amount": kwargs["amount"],
            "currency": kwargs["currency"],
            "customer": kwargs["customer"],
            "client_secret": "pi_1_secret_abc",
            "metadata": kwargs["metadata"],
        }

    monkeypatch.setattr(stripe.Customer, "create", fake_customer)
    monkeypatch.setattr(stripe.EphemeralKey, "create", fake_key)
    monkeypatch.setattr(stripe.PaymentIntent, "create", fake_intent)

    payer = await client.create_customer("payer@example.com")
    key = await client.create_ephemeral_key(payer.customer_id)
    record = await client.create_payment_intent(
        CreatePaymentIntent(amount_minor=115000, currency="PHP", customer_id="cus_1", metadata={"providerEmail": "p@example.com"})
    )

    assert payer.customer_id == "cus_1"
    assert seen["key"] == {"customer": "cus_1", "stripe_version": "2022-11-15"}
    assert key.secret == "ek_test_1"
    assert key.expires_at is not None
    assert seen["intent"]["currency"] == "php"
    assert seen["intent"]["amount"] == 115000
    assert record.state == "awaiting_payment"
    assert record.metadata == {"providerEmail": "p@example.com"}


@pytest.mark.asyncio
async def test_invoice_flow_records_recipient(client, monkeypatch):
    seen = {}

    def fake_create(**kwargs):
        seen["create"] = kwargs
        return {"id": "in_1", "status": "draft"}

    monkeypatch.setattr(stripe.Invoice, "create", fake_create)
    monkeypatch.setattr(stripe.Invoice, "finalize_invoice", lambda invoice_id: {"id": invoice_id, "status": "open"})
    monkeypatch.setattr(
        stripe.Invoice,
        "send_invoice",
        lambda invoice_id: {
            "id": invoice_id,
            "status": "open",
            "hosted_invoice_url": "https://invoice.example/in_1",
            "customer_email": "payer@example.com",
        },
    )

    created = await client.create_invoice(
        CreateInvoice(
            customer_id="cus_1",
            recipient_email="provider@example.com",
            metadata={"paymentId": "pi_1"},
            custom_fields=[InvoiceField(name="Service", value="House cleaning")],
        )
    )
    await client.finalize_invoice(created.invoice_id)
    sent = await client.send_invoice(created.invoice_id)

    assert seen["create"]["collection_method"] == "send_invoice"
    assert seen["create"]["metadata"] == {"paymentId": "pi_1", "receiptRecipient": "provider@example.com"}
    assert seen["create"]["custom_fields"] == [{"name": "Service", "value": "House cleaning"}]
    assert sent.hosted_invoice_url == "https://invoice.example/in_1"
    assert sent.customer_email == "payer@example.com"


@pytest.mark.asyncio
async def test_sdk_errors_are_mapped(client, monkeypatch):
    def rate_limited(*args, **kwargs):
        raise stripe.RateLimitError("Too many requests")

    def not_found(*args, **kwargs):
        raise stripe.InvalidRequestError("No such payment_intent: 'pi_x'", param="intent")

    monkeypatch.setattr(stripe.PaymentIntent, "retrieve", rate_limited)
    with pytest.raises(PaymentRecoverableError):
        await client.retrieve_payment_intent("pi_x")

    monkeypatch.setattr(stripe.PaymentIntent, "retrieve", not_found)
    with pytest.raises(PaymentProviderError) as ei:
        await client.retrieve_payment_intent("pi_x")
    assert "pi_x" in ei.value.message
