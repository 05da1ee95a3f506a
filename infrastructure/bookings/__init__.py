"""Booking record stores (in-memory, Redis)."""
from __future__ import annotations

from application.ports.booking_store import BookingStore
from core.config import settings

from .inmemory import InMemoryBookingStore
from .redis_store import RedisBookingStore


def get_booking_store(backend: str | None = None) -> BookingStore:
    kind = (backend or settings.bookings.backend).lower()
    if kind == "memory":
        return InMemoryBookingStore()
    if kind == "redis":
        return RedisBookingStore()
    raise ValueError(f"Unsupported booking store backend: {kind}")


__all__ = ["InMemoryBookingStore", "RedisBookingStore", "get_booking_store"]
