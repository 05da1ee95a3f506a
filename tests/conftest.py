"""Pytest bootstrap configuration.

Ensure mandatory environment variables are set before test collection
and module imports that depend on application settings, and provide
in-process fakes for the payment processor and the mail relay.
"""
import os

# Settings are read at import time
os.environ.setdefault("STRIPE__SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BOOKINGS__BACKEND", "memory")

import threading
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

import pytest

from application.dtos.payments import (
    CreateInvoice,
    CreatePaymentIntent,
    EphemeralCredential,
    InvoiceRecord,
    OutboundEmail,
    PayerIdentity,
    PaymentRecord,
)
from domain.common.exceptions import ReceiptDeliveryError
from domain.payment.commission import CommissionBreakdown, build_intent_metadata
from domain.payment.receipt import Receipt, ReceiptAudience
from infrastructure.bookings.inmemory import InMemoryBookingStore
from infrastructure.external.payments.exceptions import PaymentProviderError


FIXED_NOW = datetime(2026, 10, 19, 8, 30, tzinfo=timezone.utc)


class FakeGateway:
    """Records every processor call; payments are served from ``self.payments``."""

    provider = "fake"

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple]] = []
        self.payments: dict[str, PaymentRecord] = {}
        self.invoices: list[CreateInvoice] = []
        self.fail_on: dict[str, Exception] = {}
        # address the processor reports for the billed customer
        self.invoice_customer_email: str | None = "payer@example.com"

    def _record(self, op: str, *args) -> None:
        self.calls.append((op, args))
        exc = self.fail_on.get(op)
        if exc is not None:
            raise exc

    @property
    def ops(self) -> list[str]:
        return [op for op, _ in self.calls]

    def add_payment(
        self,
        payment_id: str = "pi_paid",
        *,
        status: str = "succeeded",
        metadata: Optional[dict] = None,
        amount_minor: int = 115000,
        customer_id: Optional[str] = "cus_1",
    ) -> PaymentRecord:
        record = PaymentRecord(
            payment_id=payment_id,
            status=status,
            amount_minor=amount_minor,
            currency="php",
            customer_id=customer_id,
            metadata=metadata or {},
        )
        self.payments[payment_id] = record
        return record

    async def create_customer(self, email: str) -> PayerIdentity:
        self._record("create_customer", email)
        return PayerIdentity(customer_id="cus_1", email=email)

    async def create_ephemeral_key(self, customer_id: str) -> EphemeralCredential:
        self._record("create_ephemeral_key", customer_id)
        return EphemeralCredential(secret="ek_test_1")

    async def create_payment_intent(self, req: CreatePaymentIntent) -> PaymentRecord:
        self._record("create_payment_intent", req)
        record = PaymentRecord(
            payment_id="pi_1",
            status="requires_payment_method",
            amount_minor=req.amount_minor,
            currency=req.currency,
            customer_id=req.customer_id,
            client_secret="pi_1_secret_abc",
            metadata=req.metadata,
        )
        self.payments[record.payment_id] = record
        return record

    async def retrieve_payment_intent(self, payment_id: str) -> PaymentRecord:
        self._record("retrieve_payment_intent", payment_id)
        if payment_id not in self.payments:
            raise PaymentProviderError(f"No such payment_intent: '{payment_id}'", provider=self.provider)
        return self.payments[payment_id]

    async def create_invoice(self, req: CreateInvoice) -> InvoiceRecord:
        self._record("create_invoice", req)
        self.invoices.append(req)
        return InvoiceRecord(invoice_id="in_1", status="draft")

    async def finalize_invoice(self, invoice_id: str) -> InvoiceRecord:
        self._record("finalize_invoice", invoice_id)
        return InvoiceRecord(invoice_id=invoice_id, status="open", hosted_invoice_url="https://invoice.example/in_1")

    async def send_invoice(self, invoice_id: str) -> InvoiceRecord:
        self._record("send_invoice", invoice_id)
        return InvoiceRecord(
            invoice_id=invoice_id,
            status="open",
            hosted_invoice_url="https://invoice.example/in_1",
            customer_email=self.invoice_customer_email,
        )

    async def aclose(self) -> None:
        return None


class FakeMailer:
    def __init__(self) -> None:
        self.sent: list[OutboundEmail] = []
        self.fail = False

    async def send(self, message: OutboundEmail) -> str:
        if self.fail:
            raise ReceiptDeliveryError("Email relay rejected message: boom", channel="email")
        self.sent.append(message)
        return f"em_{len(self.sent)}"

    async def aclose(self) -> None:
        return None


class FakeRenderer:
    content_type = "application/pdf"
    extension = "pdf"

    def __init__(self) -> None:
        self.rendered: list[tuple[str, ReceiptAudience]] = []
        self.render_threads: list[int] = []

    def render(self, receipt: Receipt, audience: ReceiptAudience) -> bytes:
        self.rendered.append((receipt.receipt_number, audience))
        self.render_threads.append(threading.get_ident())
        return b"%PDF-fake-" + audience.value.encode()

    def render_html(self, receipt: Receipt, audience: ReceiptAudience) -> str:
        return f"<p>Receipt {receipt.receipt_number} for {audience.value}</p>"


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture
def store() -> InMemoryBookingStore:
    return InMemoryBookingStore()


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def succeeded_metadata() -> dict:
    """Metadata as written at intent creation for a 1,000.00 PHP service."""
    return build_intent_metadata(
        CommissionBreakdown.compute(Decimal("1000.00")),
        provider_email="provider@example.com",
        payer_email="payer@example.com",
        service_description="House cleaning",
        currency="php",
        payment_date=FIXED_NOW,
        booking_id="bk_1",
    )
