"""Relay change events between processes over Redis pub/sub."""
import asyncio
import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError

from core.realtime import ChangeBroker, ChangeEvent

if TYPE_CHECKING:
    from core.redis import RedisClient

logger = logging.getLogger(__name__)


class RedisChangeRelay:
    """
    Publishes change events to a Redis channel and feeds received ones to the local broker.

    Every process runs one relay, so a mutation handled by one server instance
    reaches subscribers connected to any other. While Redis is unavailable, or the
    listener has not yet confirmed its subscription, events are also delivered to
    the local broker directly. Local subscribers may then see an event twice,
    which is harmless since every event only means "refetch".
    """

    def __init__(self, redis_client: "RedisClient", broker: ChangeBroker, channel: str) -> None:
        self._redis = redis_client
        self._broker = broker
        self._channel = channel
        self._task: asyncio.Task | None = None
        self._subscribed = asyncio.Event()

    @property
    def is_running(self) -> bool:
        """True while the listener task is alive."""
        return self._task is not None and not self._task.done()

    @property
    def is_subscribed(self) -> bool:
        """True once the listener receives this process's own publishes."""
        return self.is_running and self._subscribed.is_set()

    def start(self) -> None:
        """Start listening on the channel. No-op if Redis is not connected."""
        if self.is_running or not self._redis.is_connected:
            return
        self._subscribed.clear()
        self._task = asyncio.create_task(self._run(), name=f"realtime-relay:{self._channel}")
        logger.info("Realtime relay listening on %s", self._channel)

    async def wait_subscribed(self, timeout: float | None = None) -> bool:
        """Wait until the channel subscription is confirmed. Returns False on timeout."""
        try:
            await asyncio.wait_for(self._subscribed.wait(), timeout=timeout)
        except TimeoutError:
            return False
        return self.is_subscribed

    async def stop(self) -> None:
        """Stop the listener task."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self._subscribed.clear()
        logger.info("Realtime relay stopped")

    async def publish(self, event: ChangeEvent) -> None:
        """Publish `event` to all processes, falling back to local delivery."""
        if self.is_running:
            subscribed = self._subscribed.is_set()
            receivers = await self._redis.publish(self._channel, event.model_dump_json())
            # Our own listener is one of the receivers only once subscribed
            if receivers and subscribed:
                return
        await self._broker.publish(event)

    async def _run(self) -> None:
        try:
            async for payload in self._redis.listen(self._channel, on_subscribed=self._subscribed.set):
                try:
                    event = ChangeEvent.model_validate_json(payload)
                except ValidationError as e:
                    logger.warning("Ignoring malformed realtime payload: %s", e)
                    continue
                self._broker.deliver(event)
        finally:
            self._subscribed.clear()
