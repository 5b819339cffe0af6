"""Tests for the Redis pub/sub change relay."""
import asyncio
from collections.abc import AsyncIterator
from uuid import uuid4

from core.realtime import ChangeBroker, ChangeEvent, ChangeType
from core.realtime_relay import RedisChangeRelay
from tests.helpers import wait_for


class FakeRedis:
    """
    In-memory stand-in for RedisClient's publish/listen pair.

    Like a Redis server, PUBLISH reaches only listeners whose subscription is
    already confirmed and returns how many that was.
    """

    def __init__(self, connected: bool = True, publish_fails: bool = False) -> None:
        self.is_connected = connected
        self.publish_fails = publish_fails
        self.published: list[tuple[str, str]] = []
        self.subscribers = 0
        self.listening = asyncio.Event()
        self._inbox: asyncio.Queue[bytes] = asyncio.Queue()

    async def publish(self, channel: str, message: str) -> int | None:
        if self.publish_fails:
            return None
        self.published.append((channel, message))
        if self.subscribers:
            await self._inbox.put(message.encode())
        return self.subscribers

    def inject(self, payload: bytes) -> None:
        """Simulate a message published by another process."""
        self._inbox.put_nowait(payload)

    async def listen(self, channel: str, on_subscribed=None) -> AsyncIterator[bytes]:
        self.subscribers += 1
        self.listening.set()
        if on_subscribed is not None:
            on_subscribed()
        try:
            while True:
                yield await self._inbox.get()
        finally:
            self.subscribers -= 1


def _event(owner_id) -> ChangeEvent:
    return ChangeEvent(table="bookmarks", event=ChangeType.INSERT, owner_id=owner_id, record_id=uuid4())


class TestRedisChangeRelay:
    """Cross-process delivery with local fallback."""

    async def test__publish__goes_through_redis_and_back_to_broker(self) -> None:
        redis = FakeRedis()
        broker = ChangeBroker()
        owner = uuid4()
        subscription = broker.subscribe("bookmarks", owner)
        relay = RedisChangeRelay(redis, broker, "realtime-bookmarks")
        relay.start()
        await asyncio.wait_for(redis.listening.wait(), timeout=1)

        event = _event(owner)
        await relay.publish(event)

        assert redis.published[0][0] == "realtime-bookmarks"
        assert await asyncio.wait_for(anext(subscription), timeout=1) == event
        await relay.stop()

    async def test__remote_event__delivered_to_local_subscribers(self) -> None:
        redis = FakeRedis()
        broker = ChangeBroker()
        owner = uuid4()
        subscription = broker.subscribe("bookmarks", owner)
        relay = RedisChangeRelay(redis, broker, "realtime-bookmarks")
        relay.start()

        event = _event(owner)
        redis.inject(event.model_dump_json().encode())

        assert await asyncio.wait_for(anext(subscription), timeout=1) == event
        await relay.stop()

    async def test__malformed_payload__ignored(self) -> None:
        redis = FakeRedis()
        broker = ChangeBroker()
        owner = uuid4()
        subscription = broker.subscribe("bookmarks", owner)
        relay = RedisChangeRelay(redis, broker, "realtime-bookmarks")
        relay.start()

        redis.inject(b"not json")
        event = _event(owner)
        redis.inject(event.model_dump_json().encode())

        assert await asyncio.wait_for(anext(subscription), timeout=1) == event
        assert relay.is_running
        await relay.stop()

    async def test__not_connected__publishes_locally(self) -> None:
        redis = FakeRedis(connected=False)
        broker = ChangeBroker()
        owner = uuid4()
        subscription = broker.subscribe("bookmarks", owner)
        relay = RedisChangeRelay(redis, broker, "realtime-bookmarks")
        relay.start()

        assert not relay.is_running
        event = _event(owner)
        await relay.publish(event)

        assert redis.published == []
        assert await asyncio.wait_for(anext(subscription), timeout=1) == event

    async def test__publish_failure__falls_back_to_local(self) -> None:
        redis = FakeRedis(publish_fails=True)
        broker = ChangeBroker()
        owner = uuid4()
        subscription = broker.subscribe("bookmarks", owner)
        relay = RedisChangeRelay(redis, broker, "realtime-bookmarks")
        relay.start()

        event = _event(owner)
        await relay.publish(event)

        assert await asyncio.wait_for(anext(subscription), timeout=1) == event
        await relay.stop()

    async def test__stop__ends_listener(self) -> None:
        redis = FakeRedis()
        relay = RedisChangeRelay(redis, ChangeBroker(), "realtime-bookmarks")
        relay.start()
        await wait_for(lambda: redis.listening.is_set())

        await relay.stop()

        assert not relay.is_running
        # Stopping twice is harmless
        await relay.stop()

    async def test__publish_before_subscription_confirmed__delivered_locally(self) -> None:
        redis = FakeRedis()
        broker = ChangeBroker()
        owner = uuid4()
        subscription = broker.subscribe("bookmarks", owner)
        relay = RedisChangeRelay(redis, broker, "realtime-bookmarks")
        relay.start()

        # Listener task has not run yet, so Redis reaches nobody
        event = _event(owner)
        await relay.publish(event)

        assert redis.published
        assert await asyncio.wait_for(anext(subscription), timeout=1) == event
        await relay.stop()

    async def test__wait_subscribed(self) -> None:
        redis = FakeRedis()
        broker = ChangeBroker()
        owner = uuid4()
        subscription = broker.subscribe("bookmarks", owner)
        relay = RedisChangeRelay(redis, broker, "realtime-bookmarks")
        relay.start()
        assert not relay.is_subscribed

        assert await relay.wait_subscribed(timeout=1)
        assert relay.is_subscribed

        event = _event(owner)
        await relay.publish(event)
        assert await asyncio.wait_for(anext(subscription), timeout=1) == event
        assert redis.subscribers == 1

        await relay.stop()
        assert not relay.is_subscribed
        assert redis.subscribers == 0

    async def test__wait_subscribed__times_out_when_not_running(self) -> None:
        relay = RedisChangeRelay(FakeRedis(connected=False), ChangeBroker(), "realtime-bookmarks")
        relay.start()

        assert not await relay.wait_subscribed(timeout=0.01)
