"""
Receipt dispatch use-cases.

Two entry points share one dispatch function:
- manual dispatch with a payment reference (HTTP), and
- booking-status change notifications pushed by the booking store.

Each dispatch is a single best-effort pass: no retry, and the booking's
receipt flag is only written after the strategy confirmed delivery.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable

from application.dtos.payments import (
    CreateInvoice,
    EmailAttachment,
    InvoiceField,
    OutboundEmail,
    PaymentDetails,
    ReceiptDelivery,
    ReceiptRequest,
    ReceiptResult,
)
from application.ports.booking_store import BookingStore
from application.ports.payment_gateway import PaymentGateway
from application.ports.receipts import ReceiptMailer, ReceiptRenderer, ReceiptStrategy
from core.logging_config import get_logger
from domain.booking.entity import BookingChange, BookingStatus
from domain.common.exceptions import (
    BookingNotFoundException,
    ReceiptDeliveryError,
    ReceiptNotEligibleException,
)
from domain.payment.commission import DEFAULT_COMMISSION_RATE, MetadataKey
from domain.payment.receipt import Receipt, ReceiptAudience, check_receipt_eligibility


logger = get_logger(__name__)

# Processor limit on invoice custom field values
_CUSTOM_FIELD_MAX = 140


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InvoiceReceiptStrategy:
    """Hosted invoice issued by the payment processor."""

    name = "invoice"

    def __init__(self, gateway: PaymentGateway, *, days_until_due: int = 1) -> None:
        self.gateway = gateway
        self.days_until_due = days_until_due

    def _custom_fields(self, receipt: Receipt) -> list[InvoiceField]:
        cur = receipt.currency
        values = [
            ("Service", receipt.service_description),
            (f"Original Amount ({cur})", f"{receipt.breakdown.original:.2f}"),
            (f"Commission Amount ({cur})", f"{receipt.breakdown.commission:.2f}"),
            ("Commission Rate", receipt.breakdown.rate_label),
        ]
        return [InvoiceField(name=n, value=v[:_CUSTOM_FIELD_MAX]) for n, v in values]

    async def deliver(self, receipt: Receipt) -> ReceiptDelivery:
        if not receipt.customer_id:
            raise ReceiptDeliveryError(
                "Payment has no payer record to invoice",
                channel=self.name,
                details={"payment_id": receipt.receipt_number},
            )
        metadata = {
            "paymentId": receipt.receipt_number,
            "receiptRecipient": receipt.provider_email,
            MetadataKey.PROVIDER_EMAIL: receipt.provider_email,
            MetadataKey.SERVICE_DESCRIPTION: receipt.service_description,
            MetadataKey.PAYMENT_DATE: receipt.payment_date.isoformat(),
            **receipt.breakdown.to_metadata(),
        }
        invoice = await self.gateway.create_invoice(
            CreateInvoice(
                customer_id=receipt.customer_id,
                recipient_email=receipt.provider_email,
                description=f"Receipt for {receipt.service_description} (payment {receipt.receipt_number})",
                metadata=metadata,
                custom_fields=self._custom_fields(receipt),
                days_until_due=self.days_until_due,
            )
        )
        await self.gateway.finalize_invoice(invoice.invoice_id)
        sent = await self.gateway.send_invoice(invoice.invoice_id)
        # The processor mails the billed customer (the payer), never the provider
        emailed = sent.customer_email or invoice.customer_email or receipt.payer_email
        return ReceiptDelivery(
            strategy=self.name,
            reference=invoice.invoice_id,
            recipients=[emailed] if emailed else [],
            provider_notified=False,
            hosted_url=sent.hosted_invoice_url or invoice.hosted_invoice_url,
        )


class EmailedDocumentReceiptStrategy:
    """Rendered receipt document emailed through the mail relay."""

    name = "document"

    def __init__(
        self,
        renderer: ReceiptRenderer,
        mailer: ReceiptMailer,
        *,
        send_payer_copy: bool = False,
        brand_name: str = "Marketplace",
        reply_to: str | None = None,
    ) -> None:
        self.renderer = renderer
        self.mailer = mailer
        self.send_payer_copy = send_payer_copy
        self.brand_name = brand_name
        self.reply_to = reply_to

    def _subject(self, receipt: Receipt, audience: ReceiptAudience) -> str:
        if audience is ReceiptAudience.PAYER:
            return f"{self.brand_name} payment receipt {receipt.receipt_number}"
        return f"{self.brand_name}: payment received for {receipt.service_description}"

    async def _message(self, receipt: Receipt, audience: ReceiptAudience, to: str) -> OutboundEmail:
        # ReportLab rendering is CPU-bound
        document = await asyncio.to_thread(self.renderer.render, receipt, audience)
        return OutboundEmail(
            to=[to],
            subject=self._subject(receipt, audience),
            html=self.renderer.render_html(receipt, audience),
            reply_to=self.reply_to,
            attachments=[
                EmailAttachment(
                    filename=f"receipt-{receipt.receipt_number}-{audience.value}.{self.renderer.extension}",
                    content=document,
                    content_type=self.renderer.content_type,
                )
            ],
            tags=[{"name": "category", "value": f"receipt_{audience.value}"}],
        )

    async def deliver(self, receipt: Receipt) -> ReceiptDelivery:
        provider_message = await self._message(receipt, ReceiptAudience.PROVIDER, receipt.provider_email)
        reference = await self.mailer.send(provider_message)
        recipients = [receipt.provider_email]
        if self.send_payer_copy and receipt.payer_email:
            await self.mailer.send(await self._message(receipt, ReceiptAudience.PAYER, receipt.payer_email))
            recipients.append(receipt.payer_email)
        return ReceiptDelivery(strategy=self.name, reference=reference, recipients=recipients, provider_notified=True)


class ReceiptDispatcher:
    def __init__(
        self,
        gateway: PaymentGateway,
        strategy: ReceiptStrategy,
        bookings: BookingStore,
        *,
        default_rate: Decimal = DEFAULT_COMMISSION_RATE,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.gateway = gateway
        self.strategy = strategy
        self.bookings = bookings
        self.default_rate = default_rate
        self._clock = clock

    async def handle(self, req: ReceiptRequest) -> ReceiptResult:
        if req.is_booking_event:
            return await self.dispatch_for_booking(req.booking_id)  # type: ignore[arg-type]
        return await self.dispatch(req.payment_id)  # type: ignore[arg-type]

    async def dispatch(self, payment_id: str) -> ReceiptResult:
        record = await self.gateway.retrieve_payment_intent(payment_id)
        check_receipt_eligibility(record.payment_id, record.status, record.metadata)

        receipt = Receipt.from_payment(
            payment_id=record.payment_id,
            amount_minor=record.amount_minor,
            currency=record.currency,
            metadata=record.metadata,
            customer_id=record.customer_id,
            default_rate=self.default_rate,
        )
        logger.info(
            "receipt_dispatch_started",
            payment_id=record.payment_id,
            strategy=self.strategy.name,
            provider_email=receipt.provider_email,
        )
        delivery = await self.strategy.deliver(receipt)
        logger.info(
            "receipt_dispatched",
            payment_id=record.payment_id,
            strategy=delivery.strategy,
            reference=delivery.reference,
            recipients=delivery.recipients,
            provider_notified=delivery.provider_notified,
        )
        breakdown = receipt.breakdown
        return ReceiptResult(
            message="Receipt sent successfully",
            payment_id=record.payment_id,
            strategy=delivery.strategy,
            reference=delivery.reference,
            hosted_url=delivery.hosted_url,
            sent_to=delivery.recipients,
            provider_notified=delivery.provider_notified,
            payment_details=PaymentDetails(
                original_amount=breakdown.original,
                commission_amount=breakdown.commission,
                total_amount=breakdown.total,
                commission_rate=breakdown.rate_label,
                service_description=receipt.service_description,
                payment_date=receipt.payment_date.isoformat().replace("+00:00", "Z"),
            ),
        )

    async def dispatch_for_booking(self, booking_id: str) -> ReceiptResult:
        booking = await self.bookings.get(booking_id)
        if booking is None:
            raise BookingNotFoundException(booking_id)
        if booking.receipt_sent:
            logger.info("receipt_dispatch_skipped", booking_id=booking_id, reason="already_sent")
            return ReceiptResult(
                message="Receipt already sent",
                booking_id=booking_id,
                payment_id=booking.payment_id,
                skipped=True,
            )
        if not booking.is_completed:
            raise ReceiptNotEligibleException(
                "Booking is not completed",
                reason="booking_not_completed",
                details={"booking_id": booking_id, "status": booking.status.value},
            )
        if not booking.payment_id:
            raise ReceiptNotEligibleException(
                "Booking has no payment reference",
                reason="missing_payment_reference",
                details={"booking_id": booking_id},
            )

        result = await self.dispatch(booking.payment_id)
        await self.bookings.mark_receipt_sent(booking_id, self._clock())
        result.booking_id = booking_id
        return result

    async def on_booking_change(self, change: BookingChange) -> None:
        """Subscription callback for the booking store."""
        if change.status is not BookingStatus.COMPLETED:
            return
        try:
            await self.dispatch_for_booking(change.booking_id)
        except ReceiptNotEligibleException as exc:
            logger.warning(
                "receipt_dispatch_not_eligible",
                booking_id=change.booking_id,
                reason=(exc.details or {}).get("reason"),
                error=exc.message,
            )
        except Exception as exc:
            # Flag stays unset; a later notification or manual call may re-dispatch
            logger.error(
                "receipt_dispatch_failed",
                booking_id=change.booking_id,
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
            )
