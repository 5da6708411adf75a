# waterstation/runtime.py
"""
Station runtime.

Builds one of each component from a StationConfig and wires them together.
Nothing here is module-level state: every runtime is independent, so tests
can run several side by side.
"""

import logging
import random
from typing import Any

from waterstation.adapters.opcua_asyncua_client import AsyncuaSessionAdapter
from waterstation.config.config_loader import StationConfig
from waterstation.distribution.channel import DistributionChannel
from waterstation.gateway.write_gateway import WriteGateway
from waterstation.session.base_session import (
    BaseSession,
    MonitoringParameters,
    SubscriptionParameters,
)
from waterstation.session.manager import SessionManager, SessionState
from waterstation.session.simulator import DegradedSimulator
from waterstation.state.tag_store import TagValueStore
from waterstation.subscription.engine import SubscriptionEngine
from waterstation.tags.registry import TagRegistry, get_default_registry

logger = logging.getLogger(__name__)


class StationRuntime:
    """Owns the registry, store, channel, engine, session manager and gateway."""

    def __init__(
        self,
        config: StationConfig | None = None,
        primitive: BaseSession | None = None,
        rng: random.Random | None = None,
        registry: TagRegistry | None = None,
    ):
        self.config = config or StationConfig()
        cfg = self.config

        self.registry = registry or get_default_registry()
        self.store = TagValueStore(self.registry)
        self.channel = DistributionChannel(self.store)

        sub = cfg.subscription
        self.engine = SubscriptionEngine(
            self.registry,
            self.store,
            self.channel,
            SubscriptionParameters(
                publishing_interval=sub.publishing_interval,
                lifetime_count=sub.lifetime_count,
                max_keepalive_count=sub.max_keepalive_count,
                max_notifications_per_publish=sub.max_notifications_per_publish,
                priority=sub.priority,
            ),
            MonitoringParameters(
                sampling_interval=sub.sampling_interval,
                queue_size=sub.queue_size,
                discard_oldest=sub.discard_oldest,
            ),
        )

        self.simulator: DegradedSimulator | None = None
        if cfg.session.degraded_fallback or cfg.session.strategy == "simulated":
            self.simulator = DegradedSimulator(
                self.registry,
                self.engine.apply_change,
                level_interval=cfg.simulator.level_interval,
                toggle_interval=cfg.simulator.toggle_interval,
                rng=rng or random.Random(cfg.simulator.seed),
            )

        if primitive is None:
            primitive = AsyncuaSessionAdapter(
                request_timeout=cfg.opcua.request_timeout,
                initial_delay=cfg.opcua.retry.initial_delay,
                max_retry=cfg.opcua.retry.max_retry,
                max_delay=cfg.opcua.retry.max_delay,
            )
        self.primitive = primitive

        self.manager = SessionManager(
            primitive,
            self.store,
            self.engine,
            connect_timeout=cfg.opcua.connect_timeout,
            simulator=self.simulator,
            strategy=cfg.session.strategy,
            watchdog_interval=cfg.opcua.watchdog_interval,
        )
        self.gateway = WriteGateway(self.registry, self.store, self.manager)

        self.initialised = False

    @property
    def default_endpoint(self) -> str:
        return self.config.opcua.endpoint

    # ----------------------------------------------------------------
    # Lifecycle
    # ----------------------------------------------------------------

    async def initialise(self) -> None:
        if self.initialised:
            return
        await self.store.reset_to_initial()
        self.initialised = True
        logger.info(
            f"Station runtime initialised: {len(self.registry)} tags, "
            f"strategy={self.config.session.strategy}, "
            f"degraded_fallback={self.simulator is not None}"
        )

    async def shutdown(self) -> None:
        """Tear down the session and drop every listener. Safe to repeat."""
        await self.manager.disconnect()
        self.channel.close()
        self.initialised = False
        logger.info("Station runtime shut down")

    # ----------------------------------------------------------------
    # Operations
    # ----------------------------------------------------------------

    async def ensure_connected(self, endpoint: str | None = None) -> SessionState:
        return await self.manager.connect(endpoint or self.default_endpoint)

    async def write(self, tag: str, value: Any, endpoint: str | None = None) -> Any:
        """Connect if an endpoint is given, then write through the gateway."""
        if endpoint:
            await self.manager.connect(endpoint)
        return await self.gateway.write(tag, value)

    async def test_connection(self, endpoint: str | None = None) -> dict[str, Any]:
        return await self.manager.test_connection(endpoint or self.default_endpoint)

    async def status(self) -> dict[str, Any]:
        status = await self.store.snapshot_status()
        status["session_state"] = self.manager.state.value
        status["endpoint"] = self.manager.endpoint
        status["listeners"] = self.channel.listener_count
        return status
