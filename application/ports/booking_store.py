"""
Booking record store port.

The store is the real-time record backend the booking system writes to.
This service reads bookings, records receipt delivery and subscribes to
status changes pushed by the store.
"""
from __future__ import annotations

from datetime import datetime
from typing import Awaitable, Callable, Optional, Protocol

from domain.booking.entity import Booking, BookingChange, BookingStatus


BookingChangeHandler = Callable[[BookingChange], Awaitable[None]]


class BookingStore(Protocol):
    async def get(self, booking_id: str) -> Optional[Booking]: ...

    async def save(self, booking: Booking) -> None: ...

    async def update_status(self, booking_id: str, status: BookingStatus) -> Optional[BookingChange]: ...

    async def mark_receipt_sent(self, booking_id: str, sent_at: datetime) -> None: ...

    async def watch(self, handler: BookingChangeHandler) -> None: ...

    async def aclose(self) -> None: ...


__all__ = ["BookingStore", "BookingChangeHandler"]
