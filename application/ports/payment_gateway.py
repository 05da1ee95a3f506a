"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from application.dtos.payments import (
    CreateInvoice,
    CreatePaymentIntent,
    EphemeralCredential,
    InvoiceRecord,
    PayerIdentity,
    PaymentRecord,
)


@runtime_checkable
class PaymentGateway(Protocol):
    """Gateway protocol for the third-party payment processor.

    Implementations should be async and side-effect free beyond IO.
    """

    provider: str

    async def create_customer(self, email: str) -> PayerIdentity: ...

    async def create_ephemeral_key(self, customer_id: str) -> EphemeralCredential: ...

    async def create_payment_intent(self, req: CreatePaymentIntent) -> PaymentRecord: ...

    async def retrieve_payment_intent(self, payment_id: str) -> PaymentRecord: ...

    async def create_invoice(self, req: CreateInvoice) -> InvoiceRecord: ...

    async def finalize_invoice(self, invoice_id: str) -> InvoiceRecord: ...

    async def send_invoice(self, invoice_id: str) -> InvoiceRecord: ...

    async def aclose(self) -> None: ...
