"""
Application service for the commission-inclusive payment intent use-case.

This class depends only on the application PaymentGateway port and DTOs.
Gateway implementations are provided by infrastructure and must be injected
from the composition root (the app lifespan), keeping dependencies one-way.
"""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable

from application.dtos.payments import (
    CreateIntentRequest,
    CreatePaymentIntent,
    IntentResponse,
)
from application.ports.payment_gateway import PaymentGateway
from core.logging_config import get_logger
from domain.payment.commission import (
    CommissionBreakdown,
    DEFAULT_COMMISSION_RATE,
    DEFAULT_PAYMENT_METHOD,
    MetadataKey,
    SUPPORTED_CURRENCY,
    build_intent_metadata,
    ensure_supported_currency,
)


logger = get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PaymentIntentService:
    def __init__(
        self,
        gateway: PaymentGateway,
        *,
        commission_rate: Decimal = DEFAULT_COMMISSION_RATE,
        supported_currency: str = SUPPORTED_CURRENCY,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.gateway = gateway
        self.commission_rate = commission_rate
        self.supported_currency = supported_currency
        self._clock = clock

    async def create_intent(self, req: CreateIntentRequest) -> IntentResponse:
        # Input checks happen before any processor call
        currency = ensure_supported_currency(req.currency, self.supported_currency)
        breakdown = CommissionBreakdown.compute(req.amount, self.commission_rate)
        payment_method = req.payment_method or DEFAULT_PAYMENT_METHOD

        logger.info(
            "payment_intent_create_request",
            provider=self.gateway.provider,
            amount_minor=breakdown.amount_minor,
            commission_minor=breakdown.commission_minor,
            total_minor=breakdown.total_minor,
            currency=currency,
            booking_id=req.booking_id,
        )

        payer = await self.gateway.create_customer(str(req.payer_email))
        credential = await self.gateway.create_ephemeral_key(payer.customer_id)

        metadata = build_intent_metadata(
            breakdown,
            provider_email=str(req.provider_email),
            payer_email=str(req.payer_email),
            service_description=req.service_description,
            currency=currency,
            payment_date=self._clock(),
            payment_method=payment_method,
            booking_id=req.booking_id,
        )
        record = await self.gateway.create_payment_intent(
            CreatePaymentIntent(
                amount_minor=breakdown.total_minor,
                currency=currency,
                customer_id=payer.customer_id,
                metadata=metadata,
                payment_method=payment_method,
            )
        )

        logger.info(
            "payment_intent_created",
            provider=self.gateway.provider,
            payment_id=record.payment_id,
            customer_id=payer.customer_id,
            status=record.status,
        )
        return IntentResponse(
            client_secret=record.client_secret,
            ephemeral_key=credential.secret,
            customer_id=payer.customer_id,
            payment_id=record.payment_id,
            provider_email=str(req.provider_email),
            payment_method=payment_method,
            payment_date=metadata[MetadataKey.PAYMENT_DATE],
            currency=currency,
            status=record.status,
            commission_rate=breakdown.rate_label,
            original_amount=breakdown.original,
            commission_amount=breakdown.commission,
            total_amount=breakdown.total,
        )
