"""
Change notifications for the bookmarks table.

A `ChangeBroker` fans events out to in-process subscribers. Each subscriber holds a
`Subscription`: a cancellable async iterator of `ChangeEvent`s scoped to one table
and one owner. Closing a subscription ends its iteration; nothing is delivered to it
afterwards.
"""
import asyncio
import logging
from enum import StrEnum
from typing import Protocol
from uuid import UUID

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 64


class ChangeType(StrEnum):
    """Kind of row change that produced an event."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChangeEvent(BaseModel):
    """A row in `table` owned by `owner_id` was inserted, updated or deleted."""

    model_config = ConfigDict(frozen=True)

    table: str
    event: ChangeType
    owner_id: UUID
    record_id: UUID | None = None


class ChangePublisher(Protocol):
    """Anything mutation entry points can announce changes through."""

    async def publish(self, event: ChangeEvent) -> None:
        """Deliver `event` to every matching subscriber."""
        ...


class _Closed:
    """Sentinel that ends iteration."""


_CLOSED = _Closed()


class Subscription:
    """Lazy, non-restartable stream of change events for one table and owner."""

    def __init__(
        self,
        broker: "ChangeBroker",
        table: str,
        owner_id: UUID,
        maxsize: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        self.table = table
        self.owner_id = owner_id
        self._broker = broker
        # One extra slot so the close sentinel always fits
        self._queue: asyncio.Queue[ChangeEvent | _Closed] = asyncio.Queue(maxsize=maxsize + 1)
        self._maxsize = maxsize
        self._closed = False

    @property
    def closed(self) -> bool:
        """True once close() has been called."""
        return self._closed

    def matches(self, event: ChangeEvent) -> bool:
        """True if `event` falls under this subscription's filter."""
        return event.table == self.table and event.owner_id == self.owner_id

    def deliver(self, event: ChangeEvent) -> bool:
        """
        Queue `event` for the consumer. Returns False if it was not queued.

        Events only mean "something changed", so when the queue is full the new
        event is dropped: a pending one already guarantees a refetch.
        """
        if self._closed:
            return False
        if self._queue.qsize() >= self._maxsize:
            logger.debug("realtime_event_dropped table=%s owner_id=%s", self.table, self.owner_id)
            return False
        self._queue.put_nowait(event)
        return True

    def close(self) -> None:
        """Stop the stream. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._broker.unsubscribe(self)
        # Drop anything pending so the consumer sees the end immediately
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> ChangeEvent:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if isinstance(item, _Closed):
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()


class ChangeBroker:
    """In-process fan-out of change events to open subscriptions."""

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self._queue_size = queue_size
        self._subscriptions: set[Subscription] = set()

    @property
    def subscriber_count(self) -> int:
        """Number of open subscriptions."""
        return len(self._subscriptions)

    def subscribe(self, table: str, owner_id: UUID) -> Subscription:
        """Open a subscription for changes to `owner_id`'s rows in `table`."""
        subscription = Subscription(self, table, owner_id, maxsize=self._queue_size)
        self._subscriptions.add(subscription)
        logger.debug("realtime_subscribe table=%s owner_id=%s", table, owner_id)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Forget `subscription`. Called by Subscription.close()."""
        self._subscriptions.discard(subscription)

    def deliver(self, event: ChangeEvent) -> int:
        """Hand `event` to every matching subscription; return how many took it."""
        delivered = 0
        for subscription in list(self._subscriptions):
            if subscription.matches(event) and subscription.deliver(event):
                delivered += 1
        return delivered

    async def publish(self, event: ChangeEvent) -> None:
        """Deliver `event` locally."""
        delivered = self.deliver(event)
        logger.debug(
            "realtime_publish table=%s event=%s owner_id=%s delivered=%s",
            event.table, event.event, event.owner_id, delivered,
        )

    def close_all(self) -> None:
        """Close every open subscription (application shutdown)."""
        for subscription in list(self._subscriptions):
            subscription.close()
