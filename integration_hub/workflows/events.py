"""Integration event recording and real-time fan-out."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Set, Tuple

from ..persistence.repository import EventRepository
from ..utils.logging import get_logger
from .models import IntegrationEvent

logger = get_logger(__name__)

EVENT_CHANNEL = "integration_event"

Message = Tuple[str, IntegrationEvent]


class EventBroadcaster:
    """In-process publish/subscribe channel for live dashboards.

    Each subscriber owns a bounded queue; when it falls behind, the oldest
    message is dropped.
    """

    def __init__(self, queue_size: int = 100) -> None:
        self.queue_size = queue_size
        self._subscribers: Set[asyncio.Queue] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def send(self, channel: str, event: IntegrationEvent) -> None:
        for queue in list(self._subscribers):
            if queue.full():
                queue.get_nowait()
            queue.put_nowait((channel, event))

    @asynccontextmanager
    async def subscribe(self) -> AsyncIterator["asyncio.Queue[Message]"]:
        queue: "asyncio.Queue[Message]" = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.add(queue)
        try:
            yield queue
        finally:
            self._subscribers.discard(queue)


class EventRecorder:
    """Persists events, then publishes them on the broadcaster."""

    def __init__(self, repository: EventRepository, broadcaster: Optional[EventBroadcaster] = None):
        self.repository = repository
        self.broadcaster = broadcaster

    async def record(self, event: IntegrationEvent) -> IntegrationEvent:
        logger.warning(
            f"Integration event {event.type} ({event.severity.value}): {event.title} - {event.description}"
        )
        await self.repository.add(event)
        if self.broadcaster is not None:
            self.broadcaster.send(EVENT_CHANNEL, event)
        return event

    async def list(
        self,
        integration_id: Optional[str] = None,
        workflow_id: Optional[str] = None,
        unresolved_only: bool = False
    ) -> List[IntegrationEvent]:
        return await self.repository.list(
            integration_id=integration_id,
            workflow_id=workflow_id,
            unresolved_only=unresolved_only
        )

    async def resolve(self, event_id: str) -> Optional[IntegrationEvent]:
        return await self.repository.resolve(event_id)
