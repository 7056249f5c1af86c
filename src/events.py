"""
Event Streaming - In-memory pub/sub for reconcile events.

The controller publishes one event per reconcile outcome; the health server
streams them to clients as Server-Sent Events.
"""

import asyncio
import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import AsyncIterator, Optional, Set

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Types of reconcile events."""

    CREATED = "CREATED"
    UPDATED = "UPDATED"
    DELETED = "DELETED"
    RECONCILED = "RECONCILED"
    FAILED = "FAILED"


@dataclass
class ReconcileEvent:
    """Event emitted when a Service has been reconciled."""

    event_type: EventType
    namespace: str
    name: str
    endpoint_service_id: Optional[str]
    message: str
    timestamp: str

    def to_sse(self) -> str:
        """
        Format the event as an SSE message.

        Returns:
            SSE-formatted string with event type and JSON data lines.
        """
        data = asdict(self)
        data["event_type"] = self.event_type.value
        return f"event: {self.event_type.value}\ndata: {json.dumps(data)}\n\n"

    @classmethod
    def create(
        cls,
        event_type: EventType,
        service_key: str,
        endpoint_service_id: Optional[str] = None,
        message: str = "",
    ) -> "ReconcileEvent":
        """
        Create an event for a Service key.

        Args:
            event_type: The type of event.
            service_key: "<namespace>/<name>" of the Service.
            endpoint_service_id: Id of the endpoint service, if known.
            message: Human-readable detail.

        Returns:
            A new ReconcileEvent instance.
        """
        namespace, _, name = service_key.partition("/")
        return cls(
            event_type=event_type,
            namespace=namespace,
            name=name,
            endpoint_service_id=endpoint_service_id,
            message=message,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )


class EventBus:
    """
    Fans reconcile events out to every attached listener.

    Each listener owns a bounded queue. When a listener falls behind its
    queue fills up and further events for it are dropped.
    """

    def __init__(self, queue_size: int = 256):
        self._queue_size = queue_size
        self._queues: Set[asyncio.Queue] = set()

    async def publish(self, event: ReconcileEvent) -> None:
        for queue in list(self._queues):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(
                    f"Dropped {event.event_type.value} event for "
                    f"{event.namespace}/{event.name}: listener queue full"
                )

    async def listen(self) -> AsyncIterator[ReconcileEvent]:
        """
        Yield events published after the first ``__anext__`` call.

        The listener is detached when the generator is closed or cancelled.
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._queues.add(queue)
        logger.debug(f"Event listener attached ({len(self._queues)} total)")
        try:
            while True:
                yield await queue.get()
        finally:
            self._queues.discard(queue)
            logger.debug("Event listener detached")
