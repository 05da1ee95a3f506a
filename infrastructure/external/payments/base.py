"""
Base payment client implementing shared concerns: status mapping, logging.

Concrete providers should subclass and implement provider-specific logic.
"""
from __future__ import annotations

from application.dtos.payments import (
    CreateInvoice,
    CreatePaymentIntent,
    EphemeralCredential,
    InvoiceRecord,
    PayerIdentity,
    PaymentRecord,
)
from application.ports.payment_gateway import PaymentGateway
from core.logging_config import get_logger
from shared.codes.payment_codes import PROVIDER_STATUS_TO_INTERNAL


logger = get_logger(__name__)


class BasePaymentClient(PaymentGateway):
    provider: str = "base"

    # Default implementations raise to force override where needed
    async def create_customer(self, email: str) -> PayerIdentity:  # type: ignore[override]
        raise NotImplementedError

    async def create_ephemeral_key(self, customer_id: str) -> EphemeralCredential:  # type: ignore[override]
        raise NotImplementedError

    async def create_payment_intent(self, req: CreatePaymentIntent) -> PaymentRecord:  # type: ignore[override]
        raise NotImplementedError

    async def retrieve_payment_intent(self, payment_id: str) -> PaymentRecord:  # type: ignore[override]
        raise NotImplementedError

    async def create_invoice(self, req: CreateInvoice) -> InvoiceRecord:  # type: ignore[override]
        raise NotImplementedError

    async def finalize_invoice(self, invoice_id: str) -> InvoiceRecord:  # type: ignore[override]
        raise NotImplementedError

    async def send_invoice(self, invoice_id: str) -> InvoiceRecord:  # type: ignore[override]
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release provider resources; SDK-backed clients hold none."""

    # Helpers
    def _map_status(self, provider_status: str) -> str:
        mapping = PROVIDER_STATUS_TO_INTERNAL.get(self.provider, {})
        return mapping.get(provider_status, provider_status)

    def _log(self, event: str, **kwargs) -> None:
        logger.info(
            event,
            provider=self.provider,
            **kwargs,
        )
