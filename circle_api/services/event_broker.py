"""
Circle Event Broker
Fans out resource, claim and membership changes to the subscribers of a circle.

Publishing never blocks the caller: each subscriber owns a bounded asyncio
queue and delivery is scheduled onto the subscriber's event loop, so services
running in worker threads can publish safely.
"""

import asyncio
import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from ..config import EVENT_QUEUE_SIZE

logger = logging.getLogger(__name__)

EVENT_TYPES = (
    "resource_created",
    "resource_updated",
    "resource_deleted",
    "claim_created",
    "claim_updated",
    "claim_cancelled",
    "claim_returned",
    "user_joined",
    "user_left",
)


@dataclass(frozen=True)
class CircleEvent:
    """A single change notification for one circle"""

    type: str
    data: Any
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {"type": self.type, "data": self.data, "timestamp": self.timestamp.isoformat()}

    def to_sse(self) -> str:
        """Serialize as a server-sent events frame"""
        return f"data: {json.dumps(self.to_dict(), default=str)}\n\n"


class Subscription:
    """One connected listener; owns its queue and the loop that drains it"""

    def __init__(self, circle_slug: str, loop: asyncio.AbstractEventLoop, max_size: int) -> None:
        self.circle_slug = circle_slug
        self.loop = loop
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=max_size)
        self.dropped = 0

    def _deliver(self, event: CircleEvent) -> None:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                f"⚠️ Subscriber queue full for circle {self.circle_slug}, dropped {event.type} "
                f"({self.dropped} dropped so far)"
            )

    async def get(self, timeout: Optional[float] = None) -> Optional[CircleEvent]:
        """Wait for the next event; None when `timeout` elapses first"""
        try:
            return await asyncio.wait_for(self.queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None


class EventBroker:
    """In-process publish/subscribe keyed by circle slug"""

    def __init__(self, queue_size: int = EVENT_QUEUE_SIZE) -> None:
        self.queue_size = queue_size
        self._subscribers: dict[str, list[Subscription]] = {}
        self._lock = threading.Lock()

    def subscribe(self, circle_slug: str) -> Subscription:
        """Register a listener. Must be called from within a running event loop."""
        subscription = Subscription(circle_slug, asyncio.get_running_loop(), self.queue_size)
        with self._lock:
            self._subscribers.setdefault(circle_slug, []).append(subscription)
        logger.debug(f"📡 Subscriber added for circle {circle_slug}")
        return subscription

    def unsubscribe(self, circle_slug: str, subscription: Subscription) -> None:
        with self._lock:
            subscribers = self._subscribers.get(circle_slug, [])
            if subscription in subscribers:
                subscribers.remove(subscription)
            if not subscribers:
                self._subscribers.pop(circle_slug, None)
        logger.debug(f"📡 Subscriber removed for circle {circle_slug}")

    def subscriber_count(self, circle_slug: str) -> int:
        with self._lock:
            return len(self._subscribers.get(circle_slug, []))

    def publish(self, circle_slug: str, event_type: str, data: Any) -> CircleEvent:
        """Broadcast an event to every subscriber of the circle"""
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {event_type}")

        event = CircleEvent(type=event_type, data=data)

        with self._lock:
            subscribers = list(self._subscribers.get(circle_slug, []))

        for subscription in subscribers:
            try:
                subscription.loop.call_soon_threadsafe(subscription._deliver, event)
            except RuntimeError:
                # Loop already closed: the client went away without unsubscribing
                logger.info(f"📡 Dropping stale subscriber for circle {circle_slug}")
                self.unsubscribe(circle_slug, subscription)

        logger.debug(f"📣 Published {event_type} to {len(subscribers)} subscriber(s) of {circle_slug}")
        return event


broker = EventBroker()


def get_event_broker() -> EventBroker:
    """Dependency injection for the process-wide EventBroker"""
    return broker
