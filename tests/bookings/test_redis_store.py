import asyncio
import json
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from domain.booking.entity import Booking, BookingStatus
from infrastructure.bookings.redis_store import RedisBookingStore


class _FakeRedis:
    """Hash + publish subset of redis.asyncio.Redis (decode_responses=True)."""

    def __init__(self, pubsubs=None) -> None:
        self.hashes: dict[str, dict[str, str]] = {}
        self.published: list[tuple[str, str]] = []
        self._pubsubs = list(pubsubs or [])

    async def hgetall(self, key):
        return dict(self.hashes.get(key, {}))

    async def hget(self, key, field):
        return self.hashes.get(key, {}).get(field)

    async def hset(self, key, field=None, value=None, mapping=None):
        h = self.hashes.setdefault(key, {})
        if field is not None:
            h[field] = value
        if mapping:
            h.update({k: str(v) for k, v in mapping.items()})
        return 1

    async def publish(self, channel, message):
        self.published.append((channel, message))
        return 1

    def pubsub(self):
        return self._pubsubs.pop(0)


class _FakePubSub:
    """One subscription session: replays ``messages``, then drops or idles."""

    def __init__(self, messages, *, drop_after: bool) -> None:
        self.messages = messages
        self.drop_after = drop_after
        self.channels: list[str] = []
        self.closed = False

    async def subscribe(self, *channels):
        self.channels.extend(channels)

    async def listen(self):
        for channel in self.channels:
            yield {"type": "subscribe", "channel": channel, "data": 1}
        for data in self.messages:
            yield {"type": "message", "channel": self.channels[0], "data": data}
        if self.drop_after:
            raise RedisConnectionError("Connection closed by server.")
        await asyncio.Event().wait()

    async def aclose(self):
        self.closed = True


@pytest.fixture
def redis_store():
    return RedisBookingStore(_FakeRedis(), namespace="test", key_prefix="bookings")


async def _seed(store):
    await store.save(
        Booking(booking_id="bk_1", amount=Decimal("1000.00"), status=BookingStatus.CONFIRMED, payment_id="pi_1")
    )


@pytest.mark.asyncio
async def test_booking_hash_layout(redis_store):
    await _seed(redis_store)
    raw = redis_store._client.hashes["test:bookings:bk_1"]
    assert raw["status"] == "Confirmed"
    assert raw["paymentId"] == "pi_1"
    booking = await redis_store.get("bk_1")
    assert booking.amount == Decimal("1000.00")
    assert await redis_store.get("missing") is None


@pytest.mark.asyncio
async def test_status_change_is_published(redis_store):
    await _seed(redis_store)
    change = await redis_store.update_status("bk_1", BookingStatus.COMPLETED)

    assert change.previous_status is BookingStatus.CONFIRMED
    channel, payload = redis_store._client.published[0]
    assert channel == "test:bookings:changes"
    message = json.loads(payload)
    assert message["bookingId"] == "bk_1"
    assert message["status"] == "Completed"
    assert message["previousStatus"] == "Confirmed"

    assert await redis_store.update_status("bk_1", BookingStatus.COMPLETED) is None
    assert len(redis_store._client.published) == 1


@pytest.mark.asyncio
async def test_mark_receipt_sent(redis_store):
    await _seed(redis_store)
    await redis_store.mark_receipt_sent("bk_1", datetime(2026, 10, 19, 8, 30, tzinfo=timezone.utc))
    booking = await redis_store.get("bk_1")
    assert booking.receipt_sent is True
    assert booking.receipt_sent_at == datetime(2026, 10, 19, 8, 30, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_dispatch_skips_malformed_messages(redis_store):
    seen = []

    async def handler(change):
        seen.append(change)

    redis_store._handler = handler
    await redis_store._dispatch("not json")
    await redis_store._dispatch(json.dumps({"status": "Completed"}))
    await redis_store._dispatch(json.dumps({"bookingId": "bk_1", "status": "Completed"}))
    assert [c.booking_id for c in seen] == ["bk_1"]


@pytest.mark.asyncio
async def test_dispatch_without_handler_is_ignored(redis_store):
    assert await redis_store._dispatch(json.dumps({"bookingId": "bk_1", "status": "Completed"})) is None


def _completed(booking_id: str) -> str:
    return json.dumps({"bookingId": booking_id, "status": "Completed"})


@pytest.mark.asyncio
async def test_listener_resubscribes_after_connection_drop():
    first = _FakePubSub([_completed("bk_1")], drop_after=True)
    second = _FakePubSub([_completed("bk_2")], drop_after=False)
    store = RedisBookingStore(
        _FakeRedis(pubsubs=[first, second]),
        namespace="test",
        key_prefix="bookings",
        reconnect_min_backoff=0,
        reconnect_max_backoff=0.01,
    )
    seen: list[str] = []
    both_seen = asyncio.Event()

    async def handler(change):
        seen.append(change.booking_id)
        if len(seen) == 2:
            both_seen.set()

    await store.watch(handler)
    await asyncio.wait_for(both_seen.wait(), timeout=2)

    assert seen == ["bk_1", "bk_2"]
    assert first.channels == second.channels == ["test:bookings:changes"]
    assert first.closed

    task = store._task
    await store.aclose()
    assert task.cancelled()
    assert second.closed
    assert store._task is None
