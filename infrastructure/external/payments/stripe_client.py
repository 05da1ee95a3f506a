"""
Stripe adapter using the official stripe-python SDK.

Notes on SDK usage:
- Module-level resources (`stripe.Customer`, `stripe.PaymentIntent`, ...)
  are configured once through `stripe.api_key`. The SDK is synchronous, so
  each call runs in a worker thread to keep the event loop free.
- Ephemeral keys must be created with an explicit API version matching
  the mobile SDK.
- Hosted invoices are delivered by Stripe to the billed customer's email;
  the intended receipt recipient is recorded in invoice metadata.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import stripe

from application.dtos.payments import (
    CreateInvoice,
    CreatePaymentIntent,
    EphemeralCredential,
    InvoiceRecord,
    PayerIdentity,
    PaymentRecord,
)
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.exceptions import (
    PaymentProviderError,
    PaymentRecoverableError,
)
from core.settings import payment_settings
from core.logging_config import get_logger


logger = get_logger(__name__)


def _as_dict(obj: Any) -> dict[str, Any]:
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return dict(obj)
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return dict(obj)


def _str_metadata(obj: Any) -> dict[str, str]:
    return {str(k): "" if v is None else str(v) for k, v in _as_dict(obj).items()}


def _customer_id(value: Any) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    return str(_as_dict(value).get("id") or "") or None


class StripeClient(BasePaymentClient):
    provider = "stripe"

    def __init__(
        self,
        *,
        secret_key: Optional[str] = None,
        ephemeral_key_api_version: Optional[str] = None,
        max_network_retries: Optional[int] = None,
    ):
        cfg = payment_settings.stripe
        key = secret_key or cfg.secret_key
        if not key:
            raise RuntimeError("STRIPE__SECRET_KEY not configured")
        stripe.api_key = key
        stripe.max_network_retries = cfg.max_network_retries if max_network_retries is None else max_network_retries
        self.ephemeral_key_api_version = ephemeral_key_api_version or cfg.ephemeral_key_api_version

    async def _call(self, operation: str, fn: Callable[..., Any], *args, **kwargs) -> Any:
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except (stripe.RateLimitError, stripe.APIConnectionError) as exc:
            logger.warning("stripe_call_failed", operation=operation, error=str(exc), recoverable=True)
            raise PaymentRecoverableError(
                getattr(exc, "user_message", None) or str(exc),
                provider=self.provider,
                provider_code=getattr(exc, "code", None),
            ) from exc
        except stripe.StripeError as exc:
            logger.error("stripe_call_failed", operation=operation, error=str(exc), code=getattr(exc, "code", None))
            raise PaymentProviderError(
                getattr(exc, "user_message", None) or str(exc),
                provider=self.provider,
                provider_code=getattr(exc, "code", None),
                details={"operation": operation},
            ) from exc

    def _to_record(self, pi: Any) -> PaymentRecord:
        data = _as_dict(pi)
        status = str(data.get("status") or "")
        return PaymentRecord(
            payment_id=str(data["id"]),
            status=status,
            state=self._map_status(status),
            amount_minor=int(data.get("amount") or 0),
            currency=str(data.get("currency") or ""),
            customer_id=_customer_id(data.get("customer")),
            client_secret=data.get("client_secret"),
            metadata=_str_metadata(data.get("metadata")),
        )

    @staticmethod
    def _to_invoice(inv: Any) -> InvoiceRecord:
        data = _as_dict(inv)
        return InvoiceRecord(
            invoice_id=str(data["id"]),
            status=str(data.get("status") or ""),
            hosted_invoice_url=data.get("hosted_invoice_url"),
            customer_email=data.get("customer_email"),
        )

    async def create_customer(self, email: str) -> PayerIdentity:  # type: ignore[override]
        customer = await self._call("customer.create", stripe.Customer.create, email=email)
        data = _as_dict(customer)
        self._log("stripe_customer_created", customer_id=data.get("id"))
        return PayerIdentity(customer_id=str(data["id"]), email=email)

    async def create_ephemeral_key(self, customer_id: str) -> EphemeralCredential:  # type: ignore[override]
        key = await self._call(
            "ephemeral_key.create",
            stripe.EphemeralKey.create,
            customer=customer_id,
            stripe_version=self.ephemeral_key_api_version,
        )
        data = _as_dict(key)
        expires = data.get("expires")
        return EphemeralCredential(
            secret=str(data["secret"]),
            expires_at=datetime.fromtimestamp(int(expires), tz=timezone.utc) if expires else None,
        )

    async def create_payment_intent(self, req: CreatePaymentIntent) -> PaymentRecord:  # type: ignore[override]
        pi = await self._call(
            "payment_intent.create",
            stripe.PaymentIntent.create,
            amount=req.amount_minor,
            currency=req.currency.lower(),
            customer=req.customer_id,
            metadata=req.metadata,
        )
        record = self._to_record(pi)
        self._log("stripe_payment_intent_created", payment_id=record.payment_id, status=record.status)
        return record

    async def retrieve_payment_intent(self, payment_id: str) -> PaymentRecord:  # type: ignore[override]
        pi = await self._call("payment_intent.retrieve", stripe.PaymentIntent.retrieve, payment_id)
        return self._to_record(pi)

    async def create_invoice(self, req: CreateInvoice) -> InvoiceRecord:  # type: ignore[override]
        invoice = await self._call(
            "invoice.create",
            stripe.Invoice.create,
            customer=req.customer_id,
            auto_advance=True,
            collection_method="send_invoice",
            days_until_due=req.days_until_due,
            pending_invoice_items_behavior="exclude",
            description=req.description,
            metadata={**req.metadata, "receiptRecipient": req.recipient_email},
            custom_fields=[f.model_dump() for f in req.custom_fields],
        )
        record = self._to_invoice(invoice)
        self._log("stripe_invoice_created", invoice_id=record.invoice_id, recipient=req.recipient_email)
        return record

    async def finalize_invoice(self, invoice_id: str) -> InvoiceRecord:  # type: ignore[override]
        invoice = await self._call("invoice.finalize", stripe.Invoice.finalize_invoice, invoice_id)
        return self._to_invoice(invoice)

    async def send_invoice(self, invoice_id: str) -> InvoiceRecord:  # type: ignore[override]
        invoice = await self._call("invoice.send", stripe.Invoice.send_invoice, invoice_id)
        record = self._to_invoice(invoice)
        self._log("stripe_invoice_sent", invoice_id=record.invoice_id, status=record.status)
        return record
