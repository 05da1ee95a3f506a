"""In-memory implementation of BookingStore.

Single-process only. Useful for local dev and tests.
"""
from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional

from application.ports.booking_store import BookingChangeHandler, BookingStore
from core.logging_config import get_logger
from domain.booking.entity import Booking, BookingChange, BookingStatus


logger = get_logger(__name__)


class InMemoryBookingStore(BookingStore):
    def __init__(self) -> None:
        self._records: Dict[str, Booking] = {}
        self._handlers: List[BookingChangeHandler] = []
        self._lock = asyncio.Lock()

    async def get(self, booking_id: str) -> Optional[Booking]:  # type: ignore[override]
        async with self._lock:
            booking = self._records.get(booking_id)
            return replace(booking) if booking else None

    async def save(self, booking: Booking) -> None:  # type: ignore[override]
        async with self._lock:
            self._records[booking.booking_id] = replace(booking)

    async def update_status(self, booking_id: str, status: BookingStatus) -> Optional[BookingChange]:  # type: ignore[override]
        async with self._lock:
            booking = self._records.get(booking_id)
            if booking is None:
                return None
            previous = booking.status
            booking.status = BookingStatus(status)
            if previous is booking.status:
                return None
            change = BookingChange(booking_id=booking_id, status=booking.status, previous_status=previous)
            handlers = list(self._handlers)
        # Deliver sequentially outside the lock so handlers may read/write the store
        for h in handlers:
            try:
                await h(change)
            except Exception as exc:
                logger.error("booking_change_handler_failed", booking_id=booking_id, error=str(exc))
        return change

    async def mark_receipt_sent(self, booking_id: str, sent_at: datetime) -> None:  # type: ignore[override]
        async with self._lock:
            booking = self._records.get(booking_id)
            if booking is not None:
                booking.mark_receipt_sent(sent_at)

    async def watch(self, handler: BookingChangeHandler) -> None:  # type: ignore[override]
        async with self._lock:
            self._handlers.append(handler)

    async def aclose(self) -> None:  # type: ignore[override]
        async with self._lock:
            self._handlers.clear()
