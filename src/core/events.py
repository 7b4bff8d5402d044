"""In-process change notifications for breakout invitations.

Observers subscribe to a topic describing the query they care about
(``room:<room_id>``, ``invitee:<profile_id>``, ``inviter:<profile_id>``) and
receive an event whenever a matching invitation row is created, updated or
deleted. Events are invalidation hints: subscribers re-read the store rather
than trusting the payload.
"""

import asyncio
import logging
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

SUBSCRIBER_QUEUE_SIZE = 100


class InvitationEventType(str, Enum):
    """Kinds of store mutation."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass
class InvitationEvent:
    """A single invitation mutation."""

    event_type: InvitationEventType
    invitation_id: str
    room_id: str
    inviter_id: str
    invitee_id: str
    status: str | None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def topics(self) -> tuple[str, ...]:
        return (
            room_topic(self.room_id),
            invitee_topic(self.invitee_id),
            inviter_topic(self.inviter_id),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.event_type.value,
            "invitation_id": self.invitation_id,
            "room_id": self.room_id,
            "status": self.status,
            "timestamp": self.timestamp.isoformat(),
        }


def room_topic(room_id: str) -> str:
    return f"room:{room_id}"


def invitee_topic(profile_id: str) -> str:
    return f"invitee:{profile_id}"


def inviter_topic(profile_id: str) -> str:
    return f"inviter:{profile_id}"


class InvitationEventBroker:
    """Fan out invitation events to per-topic subscriber queues."""

    def __init__(self, queue_size: int = SUBSCRIBER_QUEUE_SIZE) -> None:
        self._queue_size = queue_size
        self._subscribers: dict[str, set[asyncio.Queue[InvitationEvent]]] = defaultdict(set)

    def publish(self, event: InvitationEvent) -> int:
        """Deliver an event to every subscriber of its topics.

        Never blocks. A subscriber whose queue is full misses the event; the
        watch loop re-checks periodically so a missed hint only delays it.

        Returns:
            int: Number of queues the event was delivered to.
        """
        delivered = 0
        for topic in event.topics:
            for queue in list(self._subscribers.get(topic, ())):
                try:
                    queue.put_nowait(event)
                    delivered += 1
                except asyncio.QueueFull:
                    logger.warning("Dropping %s event for slow subscriber on %s", event.event_type.value, topic)
        return delivered

    @asynccontextmanager
    async def subscribe(self, topic: str) -> AsyncIterator[asyncio.Queue[InvitationEvent]]:
        """Register a queue for a topic for the duration of the context."""
        queue: asyncio.Queue[InvitationEvent] = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers[topic].add(queue)
        logger.debug("Subscriber added on %s", topic)
        try:
            yield queue
        finally:
            subscribers = self._subscribers.get(topic)
            if subscribers is not None:
                subscribers.discard(queue)
                if not subscribers:
                    del self._subscribers[topic]
            logger.debug("Subscriber removed from %s", topic)

    def subscriber_count(self, topic: str | None = None) -> int:
        if topic is not None:
            return len(self._subscribers.get(topic, ()))
        return sum(len(queues) for queues in self._subscribers.values())


_broker: InvitationEventBroker | None = None


def get_event_broker() -> InvitationEventBroker:
    """Get or create the global event broker."""
    global _broker
    if _broker is None:
        _broker = InvitationEventBroker()
    return _broker
