"""Redis based BookingStore implementation.

Each booking is a hash at ``{namespace}:{prefix}:{booking_id}`` holding the
camelCase record fields. Status changes are published as JSON on
``{namespace}:{prefix}:changes``; ``watch`` subscribes to that channel from
a background task and resubscribes with exponential backoff when the
connection drops.
"""
from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from typing import Optional

from redis import asyncio as aioredis
from redis.exceptions import RedisError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_never,
    wait_exponential,
)

from application.ports.booking_store import BookingChangeHandler, BookingStore
from core.config import settings
from core.logging_config import get_logger
from domain.booking.entity import Booking, BookingChange, BookingStatus, ensure_utc
from infrastructure.external.cache import get_redis_client


logger = get_logger(__name__)


class RedisBookingStore(BookingStore):
    def __init__(
        self,
        client: Optional[aioredis.Redis] = None,
        *,
        namespace: Optional[str] = None,
        key_prefix: Optional[str] = None,
        reconnect_min_backoff: Optional[float] = None,
        reconnect_max_backoff: Optional[float] = None,
    ) -> None:
        self._client = client
        ns = namespace or settings.redis.namespace
        prefix = key_prefix or settings.bookings.key_prefix
        self._base = f"{ns}:{prefix}"
        self._min_backoff = (
            reconnect_min_backoff if reconnect_min_backoff is not None else settings.bookings.reconnect_min_backoff
        )
        self._max_backoff = reconnect_max_backoff or settings.bookings.reconnect_max_backoff
        self._handler: Optional[BookingChangeHandler] = None
        self._task: Optional[asyncio.Task] = None
        self._stopping = asyncio.Event()

    @property
    def channel(self) -> str:
        return f"{self._base}:changes"

    def _key(self, booking_id: str) -> str:
        return f"{self._base}:{booking_id}"

    async def _redis(self) -> aioredis.Redis:
        if self._client is None:
            self._client = await get_redis_client()
        return self._client

    async def get(self, booking_id: str) -> Optional[Booking]:  # type: ignore[override]
        client = await self._redis()
        record = await client.hgetall(self._key(booking_id))
        if not record:
            return None
        record.setdefault("bookingId", booking_id)
        return Booking.from_record(record)

    async def save(self, booking: Booking) -> None:  # type: ignore[override]
        client = await self._redis()
        await client.hset(self._key(booking.booking_id), mapping=booking.to_record())

    async def update_status(self, booking_id: str, status: BookingStatus) -> Optional[BookingChange]:  # type: ignore[override]
        client = await self._redis()
        key = self._key(booking_id)
        current = await client.hget(key, "status")
        if current is None:
            return None
        new_status = BookingStatus(status)
        previous = BookingStatus(current)
        if previous is new_status:
            return None
        await client.hset(key, "status", new_status.value)
        change = BookingChange(booking_id=booking_id, status=new_status, previous_status=previous)
        await client.publish(self.channel, json.dumps(change.to_message()))
        return change

    async def mark_receipt_sent(self, booking_id: str, sent_at: datetime) -> None:  # type: ignore[override]
        client = await self._redis()
        ts = ensure_utc(sent_at)
        await client.hset(
            self._key(booking_id),
            mapping={"receiptSent": "true", "receiptSentAt": ts.isoformat() if ts else ""},
        )

    async def _dispatch(self, raw: object) -> None:
        if self._handler is None:
            return
        try:
            data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
            if not isinstance(data, dict):
                return
            change = BookingChange.from_message(data)
        except (ValueError, KeyError) as exc:
            logger.warning("booking_change_parse_failed", error=str(exc))
            return
        await self._handler(change)

    async def _listen_once(self) -> None:
        client = await self._redis()
        pubsub = client.pubsub()
        try:
            await pubsub.subscribe(self.channel)
            logger.info("booking_changes_subscribed", channel=self.channel)
            async for message in pubsub.listen():
                if self._stopping.is_set():
                    break
                if message.get("type") != "message":
                    continue
                await self._dispatch(message.get("data"))
        finally:
            await pubsub.aclose()

    async def _listen(self) -> None:
        retrying = AsyncRetrying(
            reraise=True,
            stop=stop_never,
            wait=wait_exponential(multiplier=self._min_backoff, min=self._min_backoff, max=self._max_backoff),
            retry=retry_if_exception_type((RedisError, OSError)),
            before_sleep=before_sleep_log(logging.getLogger(__name__), logging.WARNING),
        )
        try:
            async for attempt in retrying:
                with attempt:
                    await self._listen_once()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("booking_changes_listen_failed", error=str(exc))

    async def watch(self, handler: BookingChangeHandler) -> None:  # type: ignore[override]
        self._handler = handler
        await self._redis()
        self._stopping.clear()
        self._task = asyncio.create_task(self._listen(), name="booking-change-listener")

    async def aclose(self) -> None:  # type: ignore[override]
        self._stopping.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        self._handler = None
