# waterstation/state/tag_store.py
"""
Authoritative in-memory snapshot of tag values.

Single source of truth read by every consumer. Mutated only by the
session manager, the subscription engine and the write gateway's
optimistic commit.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from waterstation.tags.registry import TagRegistry
from waterstation.tags.values import TagValue


@dataclass
class ConnectionStatus:
    """Connection flag plus the session state it was derived from."""

    connected: bool = False
    state: str = "disconnected"
    changed_at: datetime = field(default_factory=datetime.now)


class TagValueStore:
    """
    One entry per registered tag, all None until first read or notification.

    Each key is replaced as a unit under the lock, so readers never see a
    half-applied update.
    """

    def __init__(self, registry: TagRegistry):
        self.registry = registry
        self._values: dict[str, TagValue | None] = {name: None for name in registry.names()}
        self._status = ConnectionStatus()
        self._lock = asyncio.Lock()

    # ----------------------------------------------------------------
    # Tag values
    # ----------------------------------------------------------------

    async def get(self, name: str) -> TagValue | None:
        """Latest committed value for a tag."""
        self.registry.lookup(name)
        async with self._lock:
            return self._values[name]

    async def get_all(self) -> dict[str, TagValue | None]:
        """Copy of the full snapshot."""
        async with self._lock:
            return dict(self._values)

    async def set(self, name: str, value: TagValue | None) -> None:
        """Replace the value of one tag."""
        defn = self.registry.lookup(name)
        if value is not None and not defn.readable:
            raise ValueError(f"Tag {name!r} is not readable; its value is never cached")
        async with self._lock:
            self._values[name] = value

    async def update_many(self, values: dict[str, TagValue | None]) -> None:
        """Replace several tags at once; unknown names raise before anything is applied."""
        for name, value in values.items():
            defn = self.registry.lookup(name)
            if value is not None and not defn.readable:
                raise ValueError(f"Tag {name!r} is not readable; its value is never cached")
        async with self._lock:
            self._values.update(values)

    # ----------------------------------------------------------------
    # Connection status
    # ----------------------------------------------------------------

    async def set_connected(self, connected: bool) -> None:
        async with self._lock:
            self._status.connected = connected
            self._status.changed_at = datetime.now()

    async def set_state(self, state: str, connected: bool) -> None:
        async with self._lock:
            self._status = ConnectionStatus(connected=connected, state=state)

    async def is_connected(self) -> bool:
        async with self._lock:
            return self._status.connected

    async def snapshot_status(self) -> dict[str, Any]:
        async with self._lock:
            return {
                "connected": self._status.connected,
                "state": self._status.state,
                "changed_at": self._status.changed_at.isoformat(),
            }

    # ----------------------------------------------------------------
    # Lifecycle
    # ----------------------------------------------------------------

    async def reset_to_initial(self) -> None:
        """Every tag back to None and the connection flag to False."""
        async with self._lock:
            self._values = {name: None for name in self.registry.names()}
            self._status = ConnectionStatus()
