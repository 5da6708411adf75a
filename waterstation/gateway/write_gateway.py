# waterstation/gateway/write_gateway.py
"""
Write gateway.

Validates a control write against the registry, encodes it by the tag's
declared type and sends it over the live session. On a good status the
value is committed to the store optimistically; the subscription then
delivers the authoritative value.
"""

import asyncio
import logging
from typing import Any

from waterstation.errors import (
    NotConnectedError,
    UnwritableTagError,
    WriteRejectedError,
)
from waterstation.session.base_session import TypedValue
from waterstation.session.manager import SessionManager
from waterstation.state.tag_store import TagValueStore
from waterstation.tags.registry import TagRegistry
from waterstation.tags.values import TagValue, coerce

logger = logging.getLogger(__name__)


class WriteGateway:
    def __init__(
        self,
        registry: TagRegistry,
        store: TagValueStore,
        manager: SessionManager,
    ):
        self.registry = registry
        self.store = store
        self.manager = manager
        self._lock = asyncio.Lock()

    async def write(self, tag_name: str, value: Any) -> TagValue:
        """
        Write one value to a tag.

        Checks run in order: unknown tag, not connected, unwritable, then
        type coercion. Nothing reaches the controller unless all pass.

        Returns:
            The value as encoded for the controller.
        """
        defn = self.registry.lookup(tag_name)

        if not self.manager.is_connected:
            raise NotConnectedError()

        if not defn.writable:
            raise UnwritableTagError(tag_name)

        typed = coerce(defn, value)

        async with self._lock:
            session = self.manager.session
            if session is None:
                raise NotConnectedError()

            logger.info(f"Writing {tag_name} = {typed!r} ({defn.value_type.value})")
            try:
                result = await session.write(
                    defn.address, TypedValue(defn.value_type, typed)
                )
            except Exception as e:
                logger.error(f"Error writing tag {tag_name}: {e!r}")
                raise WriteRejectedError(
                    tag_name, f"Failed to write value to tag {tag_name!r}: {e}", cause=e
                ) from e

            if not result.good:
                logger.error(f"Write to {tag_name} rejected: {result.status}")
                raise WriteRejectedError(
                    tag_name,
                    f"Failed to write value to tag {tag_name!r}: {result.status}",
                    status=result.status,
                )

            if defn.readable:
                await self.store.set(tag_name, typed)

        return typed
