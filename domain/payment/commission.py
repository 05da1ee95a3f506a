"""
平台佣金计算 - 领域值对象

Commission is computed once, at intent-creation time, in the processor's
minor unit. The three minor values are persisted in the intent metadata and
read back verbatim when a receipt is produced, so the numbers shown on a
receipt are always the numbers that were charged.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Mapping, Optional

from domain.common.exceptions import InvalidAmountException, UnsupportedCurrencyException


SUPPORTED_CURRENCY = "PHP"
DEFAULT_COMMISSION_RATE = Decimal("0.15")
MINOR_PER_MAJOR = 100
DEFAULT_PAYMENT_METHOD = "card"

_CENT = Decimal("0.01")


class MetadataKey:
    """Canonical metadata keys written to the payment intent."""

    PROVIDER_EMAIL = "providerEmail"
    PAYER_EMAIL = "payerEmail"
    SERVICE_DESCRIPTION = "serviceDescription"
    COMMISSION_RATE = "commissionRate"
    COMMISSION_AMOUNT = "commissionAmount"
    ORIGINAL_AMOUNT = "originalAmount"
    TOTAL_AMOUNT = "totalAmount"
    CURRENCY = "currency"
    PAYMENT_DATE = "paymentDate"
    PAYMENT_METHOD = "paymentMethod"
    BOOKING_ID = "bookingId"


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def to_minor(amount: Decimal) -> int:
    """Major → minor units (e.g. pesos → centavos), half-up."""
    return round_half_up(amount * MINOR_PER_MAJOR)


def to_major(minor: int) -> Decimal:
    return (Decimal(minor) / MINOR_PER_MAJOR).quantize(_CENT)


def format_rate(rate: Decimal) -> str:
    """0.15 → '15%'"""
    pct = (rate * 100).normalize()
    return f"{pct:f}%"


def parse_rate(value: str) -> Decimal:
    """'15%' → Decimal('0.15'); a bare fraction such as '0.15' is accepted too."""
    text = value.strip()
    if text.endswith("%"):
        return Decimal(text[:-1].strip()) / 100
    return Decimal(text)


def ensure_supported_currency(currency: Optional[str], supported: str = SUPPORTED_CURRENCY) -> str:
    """Return the normalized (lower-case) currency or raise before any IO happens."""
    value = (currency or "").strip()
    if value.lower() != supported.lower():
        raise UnsupportedCurrencyException(value or "<missing>", supported)
    return value.lower()


@dataclass(frozen=True)
class CommissionBreakdown:
    amount_minor: int
    commission_minor: int
    rate: Decimal = DEFAULT_COMMISSION_RATE

    @classmethod
    def compute(cls, amount: Decimal, rate: Decimal = DEFAULT_COMMISSION_RATE) -> "CommissionBreakdown":
        try:
            amount = Decimal(amount)
            if not amount.is_finite() or amount < 0:
                raise InvalidAmountException(amount)
            # 超出 Decimal 精度的金额在取整时抛 InvalidOperation
            amount_minor = to_minor(amount)
            commission_minor = round_half_up(Decimal(amount_minor) * rate)
        except (InvalidOperation, TypeError, ValueError) as exc:
            raise InvalidAmountException(amount) from exc
        return cls(amount_minor=amount_minor, commission_minor=commission_minor, rate=rate)

    @property
    def total_minor(self) -> int:
        return self.amount_minor + self.commission_minor

    @property
    def original(self) -> Decimal:
        return to_major(self.amount_minor)

    @property
    def commission(self) -> Decimal:
        return to_major(self.commission_minor)

    @property
    def total(self) -> Decimal:
        return to_major(self.total_minor)

    @property
    def rate_label(self) -> str:
        return format_rate(self.rate)

    def to_metadata(self) -> dict[str, str]:
        return {
            MetadataKey.COMMISSION_RATE: self.rate_label,
            MetadataKey.COMMISSION_AMOUNT: str(self.commission_minor),
            MetadataKey.ORIGINAL_AMOUNT: str(self.amount_minor),
            MetadataKey.TOTAL_AMOUNT: str(self.total_minor),
        }

    @classmethod
    def from_metadata(
        cls,
        metadata: Mapping[str, str],
        *,
        charged_minor: int,
        default_rate: Decimal = DEFAULT_COMMISSION_RATE,
    ) -> "CommissionBreakdown":
        """Read back the stored breakdown.

        Intents created before all three values were stored fall back to
        re-deriving the commission from ``originalAmount`` with the same rule,
        then to splitting a stored ``commissionAmount`` off the charged amount,
        and finally to treating the charged amount as commission-free.
        """
        rate_text = metadata.get(MetadataKey.COMMISSION_RATE)
        rate = parse_rate(rate_text) if rate_text else default_rate
        original = metadata.get(MetadataKey.ORIGINAL_AMOUNT)
        commission = metadata.get(MetadataKey.COMMISSION_AMOUNT)
        if original is not None and commission is not None:
            return cls(amount_minor=int(original), commission_minor=int(commission), rate=rate)
        if original is not None:
            amount_minor = int(original)
            return cls(
                amount_minor=amount_minor,
                commission_minor=round_half_up(Decimal(amount_minor) * rate),
                rate=rate,
            )
        if commission is not None:
            commission_minor = int(commission)
            return cls(amount_minor=charged_minor - commission_minor, commission_minor=commission_minor, rate=rate)
        return cls(amount_minor=charged_minor, commission_minor=0, rate=rate)


def build_intent_metadata(
    breakdown: CommissionBreakdown,
    *,
    provider_email: str,
    payer_email: str,
    service_description: str,
    currency: str,
    payment_date: datetime,
    payment_method: Optional[str] = None,
    booking_id: Optional[str] = None,
) -> dict[str, str]:
    metadata = {
        MetadataKey.PROVIDER_EMAIL: provider_email,
        MetadataKey.PAYER_EMAIL: payer_email,
        MetadataKey.SERVICE_DESCRIPTION: service_description,
        MetadataKey.CURRENCY: currency.lower(),
        MetadataKey.PAYMENT_DATE: payment_date.isoformat().replace("+00:00", "Z"),
        MetadataKey.PAYMENT_METHOD: payment_method or DEFAULT_PAYMENT_METHOD,
        **breakdown.to_metadata(),
    }
    if booking_id:
        metadata[MetadataKey.BOOKING_ID] = booking_id
    return metadata
