"""
Receipt value object and the eligibility rule for dispatching it.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Mapping, Optional

from domain.common.exceptions import ReceiptNotEligibleException
from domain.payment.commission import (
    CommissionBreakdown,
    DEFAULT_COMMISSION_RATE,
    DEFAULT_PAYMENT_METHOD,
    MetadataKey,
)


SUCCEEDED = "succeeded"


class ReceiptAudience(str, Enum):
    PROVIDER = "provider"
    PAYER = "payer"


def check_receipt_eligibility(payment_id: str, status: str, metadata: Mapping[str, str]) -> str:
    """Return the provider email when a receipt may be sent, raise otherwise.

    Must hold before any receipt side effect: the payment succeeded and the
    provider email was recorded at intent creation.
    """
    if status != SUCCEEDED:
        raise ReceiptNotEligibleException(
            "Cannot send receipt for incomplete payment",
            reason="payment_not_succeeded",
            details={"payment_id": payment_id, "status": status},
        )
    provider_email = (metadata.get(MetadataKey.PROVIDER_EMAIL) or "").strip()
    if not provider_email:
        raise ReceiptNotEligibleException(
            "Provider email not found in payment metadata",
            reason="missing_provider_email",
            details={"payment_id": payment_id, "status": status, "metadata_keys": sorted(metadata.keys())},
        )
    return provider_email


def _parse_payment_date(value: Optional[str]) -> datetime:
    if value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
        except ValueError:
            pass
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Receipt:
    receipt_number: str
    payment_date: datetime
    service_description: str
    provider_email: str
    payer_email: Optional[str]
    currency: str
    payment_method: str
    breakdown: CommissionBreakdown
    customer_id: Optional[str] = None

    @classmethod
    def from_payment(
        cls,
        *,
        payment_id: str,
        amount_minor: int,
        currency: str,
        metadata: Mapping[str, str],
        customer_id: Optional[str] = None,
        default_rate: Decimal = DEFAULT_COMMISSION_RATE,
    ) -> "Receipt":
        return cls(
            receipt_number=payment_id,
            payment_date=_parse_payment_date(metadata.get(MetadataKey.PAYMENT_DATE)),
            service_description=metadata.get(MetadataKey.SERVICE_DESCRIPTION) or "Service",
            provider_email=metadata.get(MetadataKey.PROVIDER_EMAIL, ""),
            payer_email=metadata.get(MetadataKey.PAYER_EMAIL) or None,
            currency=currency.upper(),
            payment_method=metadata.get(MetadataKey.PAYMENT_METHOD) or DEFAULT_PAYMENT_METHOD,
            breakdown=CommissionBreakdown.from_metadata(
                metadata, charged_minor=amount_minor, default_rate=default_rate
            ),
            customer_id=customer_id,
        )

    @property
    def display_date(self) -> str:
        return f"{self.payment_date:%B} {self.payment_date.day}, {self.payment_date.year}"

    def money(self, value: Decimal) -> str:
        return f"{self.currency} {value:,.2f}"
