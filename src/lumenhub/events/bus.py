"""In-process publish/subscribe for hub events.

Delivery is best-effort and non-blocking: each subscriber owns a bounded
buffer, and events that do not fit are dropped for that subscriber only.
Publishers are never back-pressured.

Usage:
    bus = EventBus()
    sub = bus.subscribe(CommandOutcome)

    async for event in sub:
        print(event.to_dict())
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from .models import Event

logger = logging.getLogger(__name__)

_CLOSED = object()

# After the first drop, a slow subscriber is reported again every N drops
DROP_LOG_EVERY = 1000


class Subscription:
    """One subscriber's buffered view of the bus.

    Iterate it with ``async for``; iteration ends once the subscription
    (or the bus) is closed and the buffer has been drained.
    """

    def __init__(
        self,
        bus: "EventBus",
        event_types: tuple[type[Event], ...],
        predicate: Callable[[Event], bool] | None,
        buffer: int,
    ):
        self._bus = bus
        self._event_types = event_types
        self._predicate = predicate
        # Unbounded so the end marker always fits; offer() enforces the limit
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._buffer = buffer
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def wants(self, event: Event) -> bool:
        """Check whether this subscription accepts the event."""
        if self._event_types and not isinstance(event, self._event_types):
            return False
        if self._predicate is not None and not self._predicate(event):
            return False
        return True

    def offer(self, event: Event) -> bool:
        """Buffer an event without blocking. Returns False if it was dropped."""
        if self._closed:
            return False
        if self._queue.qsize() >= self._buffer:
            self.dropped += 1
            return False
        self._queue.put_nowait(event)
        return True

    async def get(self, timeout: float | None = None) -> Event:
        """Wait for the next event.

        Raises:
            asyncio.TimeoutError: If no event arrives within timeout.
            StopAsyncIteration: If the subscription is closed and drained.
        """
        item = await asyncio.wait_for(self._queue.get(), timeout)
        if item is _CLOSED:
            # Leave the marker for any other waiter
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item

    def get_nowait(self) -> Event | None:
        """Return a buffered event, or None if the buffer is empty."""
        try:
            item = self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None
        if item is _CLOSED:
            self._queue.put_nowait(_CLOSED)
            return None
        return item

    def close(self) -> None:
        """Stop receiving events and wake any waiting iterator."""
        if self._closed:
            return
        self._closed = True
        self._bus._remove(self)
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Event:
        return await self.get()


class EventBus:
    """Best-effort broadcaster for CommandOutcome, TriggerFired and
    ConnectionStateChanged events.

    The subscriber list is replaced wholesale on subscribe/unsubscribe, so
    publish iterates an immutable snapshot and never takes a lock.
    """

    def __init__(self, subscriber_buffer: int = 128):
        self._buffer = subscriber_buffer
        self._subscribers: tuple[Subscription, ...] = ()
        self._published = 0

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def published_count(self) -> int:
        return self._published

    def subscribe(
        self,
        *event_types: type[Event],
        predicate: Callable[[Event], bool] | None = None,
        buffer: int | None = None,
    ) -> Subscription:
        """Register a new subscriber.

        Args:
            event_types: Only deliver events of these types (default: all)
            predicate: Optional extra filter
            buffer: Per-subscriber buffer size (default: bus setting)

        Returns:
            Subscription to iterate
        """
        sub = Subscription(self, event_types, predicate, buffer or self._buffer)
        self._subscribers = self._subscribers + (sub,)
        logger.debug(f"Event subscriber added ({len(self._subscribers)} total)")
        return sub

    def _remove(self, sub: Subscription) -> None:
        self._subscribers = tuple(s for s in self._subscribers if s is not sub)

    def publish(self, event: Event) -> int:
        """Deliver an event to every interested subscriber.

        Args:
            event: The event to publish

        Returns:
            Number of subscribers that buffered the event
        """
        self._published += 1
        delivered = 0
        for sub in self._subscribers:
            if not sub.wants(event):
                continue
            if sub.offer(event):
                delivered += 1
            elif sub.dropped == 1 or sub.dropped % DROP_LOG_EVERY == 0:
                logger.warning(
                    f"Slow subscriber is dropping events "
                    f"({sub.dropped} dropped so far, latest {event.event_type})"
                )
            else:
                logger.debug(f"Dropped {event.event_type} event for slow subscriber")
        return delivered

    def close(self) -> None:
        """Close every subscription."""
        for sub in self._subscribers:
            sub.close()
        self._subscribers = ()
