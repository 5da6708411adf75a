"""DistributionChannel: multiplex tag changes to independently-lived listeners.

Every listener gets one ``{"initial": {...}}`` event on attach, then one
``{"tag": name, "value": value}`` event per change. Deliveries are isolated:
a failing listener never stops delivery to the others.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable

from waterstation.errors import TransportClosedError
from waterstation.state.tag_store import TagValueStore

logger = logging.getLogger(__name__)

Event = dict[str, Any]
Deliver = Callable[[Event], None]


@dataclass(frozen=True)
class ListenerRegistration:
    """Back-reference to a downstream sink. The channel never owns the consumer."""

    id: str
    deliver: Deliver


class DistributionChannel:
    """
    Ordered registry of listeners.

    publish() is synchronous so it can run straight from a data-change
    callback; delivery order for one tag follows publish order.
    """

    def __init__(self, store: TagValueStore):
        self.store = store
        self._listeners: dict[str, ListenerRegistration] = {}

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def attach(self, deliver: Deliver) -> str:
        """
        Register a sink and hand it the full snapshot before any live change.

        Returns an opaque subscription id for detach().
        """
        snapshot = await self.store.get_all()
        registration = ListenerRegistration(id=uuid.uuid4().hex, deliver=deliver)

        # No await between the snapshot delivery and registration: a change
        # published afterwards reaches this listener, one published before is
        # already in the snapshot.
        deliver({"initial": snapshot})
        self._listeners[registration.id] = registration

        logger.info(
            f"Listener attached: {registration.id}, total: {len(self._listeners)}"
        )
        return registration.id

    def detach(self, subscription_id: str) -> None:
        """Remove a listener. Unknown or already removed ids are ignored."""
        if self._listeners.pop(subscription_id, None) is not None:
            logger.info(
                f"Listener detached: {subscription_id}, remaining: {len(self._listeners)}"
            )

    def publish(self, tag_name: str, value: Any) -> None:
        """Deliver one tag change to every attached listener, in attachment order."""
        event = {"tag": tag_name, "value": value}

        # Snapshot: listeners may detach while we iterate
        for registration in list(self._listeners.values()):
            self._deliver(registration, event)

    def close(self) -> None:
        """Detach every listener."""
        count = len(self._listeners)
        self._listeners.clear()
        if count:
            logger.info(f"Distribution channel closed, {count} listener(s) dropped")

    def _deliver(self, registration: ListenerRegistration, event: Event) -> None:
        try:
            registration.deliver(event)
        except TransportClosedError:
            logger.info(f"Listener {registration.id} transport closed, detaching")
            self.detach(registration.id)
        except Exception:
            logger.exception(f"Error sending update to listener {registration.id}")


class QueueListener:
    """
    asyncio.Queue-backed sink for one downstream consumer.

    A full queue means the consumer stopped reading; the sink then reports
    its transport as closed so the channel drops it.
    """

    def __init__(self, maxsize: int = 1000):
        self.queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def __call__(self, event: Event) -> None:
        if self.closed:
            raise TransportClosedError("listener closed")
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            self.closed = True
            raise TransportClosedError("listener queue overflow") from None

    async def get(self) -> Event:
        return await self.queue.get()

    def close(self) -> None:
        self.closed = True
