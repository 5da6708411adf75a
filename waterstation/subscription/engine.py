# waterstation/subscription/engine.py
"""
Subscription engine.

Functions:
- Registers one monitored item per readable tag on an established session
- Decodes each notification by the tag's declared type
- Commits it to the store and fans it out through the distribution channel
- Seeds the snapshot with explicit reads after connect

Setup is per tag: one tag failing to monitor never aborts the others.
"""

import logging
from typing import Any

from waterstation.distribution.channel import DistributionChannel
from waterstation.errors import InvalidTagValueError, NotConnectedError
from waterstation.session.base_session import (
    BaseSession,
    MonitoringParameters,
    SubscriptionParameters,
)
from waterstation.state.tag_store import TagValueStore
from waterstation.tags.registry import TagRegistry
from waterstation.tags.values import TagValue, coerce

logger = logging.getLogger(__name__)


class SubscriptionEngine:
    """Owns the monitored item set for the active session."""

    def __init__(
        self,
        registry: TagRegistry,
        store: TagValueStore,
        channel: DistributionChannel,
        subscription_params: SubscriptionParameters | None = None,
        monitoring_params: MonitoringParameters | None = None,
    ):
        self.registry = registry
        self.store = store
        self.channel = channel
        self.subscription_params = subscription_params or SubscriptionParameters()
        self.monitoring_params = monitoring_params or MonitoringParameters()

        self._session: BaseSession | None = None
        self._items: dict[str, Any] = {}

    @property
    def monitored_tags(self) -> list[str]:
        return list(self._items)

    # ----------------------------------------------------------------
    # Lifecycle
    # ----------------------------------------------------------------

    async def start(self, session: BaseSession) -> None:
        """Create the subscription and one monitored item per readable tag."""
        self._session = session
        self._items.clear()

        logger.info("Creating subscription for tag monitoring")
        try:
            await session.create_subscription(self.subscription_params)
        except Exception:
            logger.exception("Error creating subscription")
            return

        for defn in self.registry.readable_tags():
            try:
                handle = await session.monitor_item(
                    defn.address,
                    self.monitoring_params,
                    self._change_callback(defn.name),
                )
            except Exception:
                logger.exception(f"Error monitoring tag {defn.name}")
                continue
            self._items[defn.name] = handle
            logger.debug(f"Monitoring tag {defn.name} ({defn.address})")

        logger.info(
            f"Monitoring {len(self._items)}/{len(self.registry.readable_tags())} tags"
        )

    async def stop(self) -> None:
        """Cancel every monitored item. Teardown failures are logged, never raised."""
        session = self._session
        self._session = None
        self._items.clear()
        if session is None:
            return

        try:
            await session.terminate_subscription()
        except Exception as e:
            logger.warning(f"Error terminating subscription: {e!r}")

    def _change_callback(self, tag_name: str):
        async def on_change(raw: Any) -> None:
            await self.apply_change(tag_name, raw)

        return on_change

    # ----------------------------------------------------------------
    # Change handling
    # ----------------------------------------------------------------

    async def apply_change(self, tag_name: str, raw: Any) -> TagValue | None:
        """
        Decode, commit and publish one tag change.

        Single funnel for monitored items, explicit reads and the degraded
        simulator. Values that do not match the declared type are dropped.
        """
        defn = self.registry.lookup(tag_name)
        value = None
        if raw is not None:
            try:
                value = coerce(defn, raw)
            except InvalidTagValueError as e:
                logger.warning(f"Dropping notification: {e}")
                return None

        await self.store.set(tag_name, value)
        self.channel.publish(tag_name, value)
        logger.debug(f"{tag_name} value changed to {value!r}")
        return value

    # ----------------------------------------------------------------
    # Explicit reads
    # ----------------------------------------------------------------

    async def read_tag(self, tag_name: str) -> TagValue | None:
        """Read one readable tag from the controller and commit it."""
        defn = self.registry.lookup(tag_name)
        if self._session is None:
            raise NotConnectedError()
        if not defn.readable:
            raise ValueError(f"Tag {tag_name!r} is not readable")

        raw = await self._session.read(defn.address)
        return await self.apply_change(tag_name, raw)

    async def read_all(self) -> dict[str, TagValue | None]:
        """Read every readable tag; a failing tag keeps its previous value."""
        if self._session is None:
            raise NotConnectedError()

        for defn in self.registry.readable_tags():
            try:
                await self.read_tag(defn.name)
            except Exception as e:
                logger.warning(f"Error reading tag {defn.name}: {e!r}")

        return await self.store.get_all()
