"""
预订领域实体

Bookings are created and status-mutated by the external booking system;
this service only observes status changes and records receipt delivery.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional

from domain.payment.commission import SUPPORTED_CURRENCY


class BookingStatus(str, Enum):
    """预订状态枚举（值与预订系统保持一致）"""
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _parse_dt(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    return ensure_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes"}


@dataclass
class Booking:
    booking_id: str
    amount: Decimal
    status: BookingStatus
    currency: str = SUPPORTED_CURRENCY
    payment_id: Optional[str] = None
    provider_email: Optional[str] = None
    payer_email: Optional[str] = None
    service_description: Optional[str] = None
    receipt_sent: bool = False
    receipt_sent_at: Optional[datetime] = None

    def __post_init__(self):
        self.status = BookingStatus(self.status)
        self.amount = Decimal(str(self.amount))
        self.receipt_sent_at = ensure_utc(self.receipt_sent_at)

    @property
    def is_completed(self) -> bool:
        return self.status is BookingStatus.COMPLETED

    def mark_receipt_sent(self, at: Optional[datetime] = None) -> None:
        self.receipt_sent = True
        self.receipt_sent_at = ensure_utc(at) or datetime.now(timezone.utc)

    def to_record(self) -> dict[str, Any]:
        """Serialize to the record-store field layout (camelCase)."""
        return {
            "bookingId": self.booking_id,
            "amount": str(self.amount),
            "currency": self.currency,
            "status": self.status.value,
            "paymentId": self.payment_id or "",
            "providerEmail": self.provider_email or "",
            "payerEmail": self.payer_email or "",
            "serviceDescription": self.service_description or "",
            "receiptSent": "true" if self.receipt_sent else "false",
            "receiptSentAt": self.receipt_sent_at.isoformat() if self.receipt_sent_at else "",
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Booking":
        return cls(
            booking_id=str(record["bookingId"]),
            amount=Decimal(str(record.get("amount") or "0")),
            currency=str(record.get("currency") or SUPPORTED_CURRENCY),
            status=BookingStatus(record.get("status") or BookingStatus.PENDING.value),
            payment_id=record.get("paymentId") or None,
            provider_email=record.get("providerEmail") or None,
            payer_email=record.get("payerEmail") or None,
            service_description=record.get("serviceDescription") or None,
            receipt_sent=_parse_bool(record.get("receiptSent", False)),
            receipt_sent_at=_parse_dt(record.get("receiptSentAt")),
        )


@dataclass
class BookingChange:
    """预订状态变更事件（由记录存储推送）"""
    booking_id: str
    status: BookingStatus
    previous_status: Optional[BookingStatus] = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_message(self) -> dict[str, Any]:
        return {
            "bookingId": self.booking_id,
            "status": self.status.value,
            "previousStatus": self.previous_status.value if self.previous_status else None,
            "occurredAt": self.occurred_at.isoformat(),
        }

    @classmethod
    def from_message(cls, data: Mapping[str, Any]) -> "BookingChange":
        previous = data.get("previousStatus")
        return cls(
            booking_id=str(data["bookingId"]),
            status=BookingStatus(data["status"]),
            previous_status=BookingStatus(previous) if previous else None,
            occurred_at=_parse_dt(data.get("occurredAt")) or datetime.now(timezone.utc),
        )
