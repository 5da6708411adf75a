# waterstation/session/manager.py
"""
Session manager.

Functions:
- Owns the single upstream session and its state machine
- Bounds every connect attempt with an overall timeout
- Falls back to simulated data only when a simulator was explicitly supplied
- Tears down subscription, session and transport in order, best effort
- Watches the live transport and tears down when it dies

States:
- disconnected -> connecting -> connected | degraded | disconnected
"""

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any

from waterstation.errors import ConnectError, ConnectFailure
from waterstation.session.base_session import BaseSession
from waterstation.state.tag_store import TagValueStore

if TYPE_CHECKING:
    from waterstation.session.simulator import DegradedSimulator
    from waterstation.subscription.engine import SubscriptionEngine

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DEGRADED = "degraded"


class SessionManager:
    """
    Serialises connect and disconnect for one controller session.

    The simulator argument is the fallback opt-in: without one, a failed
    connect always ends in disconnected and raises ConnectError.
    """

    def __init__(
        self,
        primitive: BaseSession,
        store: TagValueStore,
        engine: "SubscriptionEngine",
        *,
        connect_timeout: float = 10.0,
        simulator: "DegradedSimulator | None" = None,
        strategy: str = "real",
        watchdog_interval: float = 5.0,
    ):
        if strategy == "simulated" and simulator is None:
            raise ValueError("simulated strategy requires a simulator")

        self.primitive = primitive
        self.store = store
        self.engine = engine
        self.connect_timeout = connect_timeout
        self.simulator = simulator
        self.strategy = strategy
        self.watchdog_interval = watchdog_interval

        self._state = SessionState.DISCONNECTED
        self._endpoint: str | None = None
        self._lock = asyncio.Lock()
        self._watchdog_task: asyncio.Task | None = None
        self._generation = 0

    # ----------------------------------------------------------------
    # Properties
    # ----------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def endpoint(self) -> str | None:
        return self._endpoint

    @property
    def is_connected(self) -> bool:
        return self._state is SessionState.CONNECTED

    @property
    def is_degraded(self) -> bool:
        return self._state is SessionState.DEGRADED

    @property
    def session(self) -> BaseSession | None:
        """The live primitive, only while connected."""
        return self.primitive if self.is_connected else None

    # ----------------------------------------------------------------
    # Connect / disconnect
    # ----------------------------------------------------------------

    async def connect(
        self,
        endpoint: str,
        *,
        subscribe: bool = True,
        allow_fallback: bool = True,
    ) -> SessionState:
        """
        Ensure a session to endpoint.

        Same endpoint while connected or degraded is a no-op. A different
        endpoint tears the current session down first. Concurrent callers
        for the same endpoint share one attempt.
        """
        if self._state is SessionState.CONNECTING and endpoint != self._endpoint:
            raise ConnectError(
                ConnectFailure.ALREADY_CONNECTING_ELSEWHERE,
                endpoint,
                f"Already connecting to {self._endpoint}",
            )

        async with self._lock:
            return await self._connect_locked(
                endpoint, subscribe=subscribe, allow_fallback=allow_fallback
            )

    async def _connect_locked(
        self, endpoint: str, *, subscribe: bool, allow_fallback: bool
    ) -> SessionState:
        if endpoint == self._endpoint and self._state in (
            SessionState.CONNECTED,
            SessionState.DEGRADED,
        ):
            return self._state

        if self._state is not SessionState.DISCONNECTED:
            logger.info(f"Switching endpoint from {self._endpoint} to {endpoint}")
            await self._teardown()

        self._state = SessionState.CONNECTING
        self._endpoint = endpoint
        await self.store.set_state(SessionState.CONNECTING.value, False)

        if self.strategy == "simulated":
            logger.info("Simulated session strategy selected")
            await self._enter_degraded()
            return self._state

        logger.info(f"Connecting to OPC UA server at {endpoint}")
        try:
            await asyncio.wait_for(self._establish(endpoint), self.connect_timeout)
        except asyncio.CancelledError:
            await self._abort_partial()
            self._state = SessionState.DISCONNECTED
            self._endpoint = None
            await self.store.set_state(SessionState.DISCONNECTED.value, False)
            raise
        except asyncio.TimeoutError as e:
            error = ConnectError(
                ConnectFailure.TIMEOUT,
                endpoint,
                f"Connection to {endpoint} timed out after {self.connect_timeout}s",
                cause=e,
            )
        except Exception as e:
            error = ConnectError(
                ConnectFailure.REFUSED,
                endpoint,
                f"Connection to {endpoint} failed: {e}",
                cause=e,
            )
        else:
            error = None

        if error is not None:
            logger.error(str(error))
            await self._abort_partial()

            if self.simulator is not None and allow_fallback:
                logger.warning("Falling back to simulated data (degraded mode)")
                await self._enter_degraded()
                return self._state

            self._state = SessionState.DISCONNECTED
            self._endpoint = None
            await self.store.set_state(SessionState.DISCONNECTED.value, False)
            raise error

        self._state = SessionState.CONNECTED
        self._generation += 1
        await self.store.set_state(SessionState.CONNECTED.value, True)
        logger.info(f"Connected to OPC UA server at {endpoint}")

        if subscribe:
            await self.engine.start(self.primitive)
            await self.engine.read_all()

        self._start_watchdog()
        return self._state

    async def disconnect(self) -> None:
        """Tear down whatever is open and reset the store. Safe to repeat."""
        async with self._lock:
            await self._teardown()

    async def _establish(self, endpoint: str) -> None:
        await self.primitive.connect(endpoint)
        await self.primitive.create_session()

    async def _abort_partial(self) -> None:
        for step in (self.primitive.close_session, self.primitive.disconnect):
            try:
                await step()
            except Exception as e:
                logger.debug(f"Cleanup after failed connect: {e!r}")

    async def _enter_degraded(self) -> None:
        self._state = SessionState.DEGRADED
        await self.store.set_state(SessionState.DEGRADED.value, True)
        await self.simulator.start()
        logger.warning(f"Degraded mode active for {self._endpoint}: values are simulated")

    async def _teardown(self) -> None:
        await self._stop_watchdog()

        if self._state is SessionState.DISCONNECTED:
            return

        if self._state is SessionState.DEGRADED:
            try:
                await self.simulator.stop()
            except Exception as e:
                logger.warning(f"Error stopping simulator: {e!r}")
        else:
            steps = (
                ("subscription", self.engine.stop),
                ("session", self.primitive.close_session),
                ("transport", self.primitive.disconnect),
            )
            for label, step in steps:
                try:
                    await step()
                except Exception as e:
                    logger.warning(f"Error closing {label}: {e!r}")

        logger.info(f"Disconnected from {self._endpoint}")
        self._state = SessionState.DISCONNECTED
        self._endpoint = None
        await self.store.reset_to_initial()

    # ----------------------------------------------------------------
    # Connection test
    # ----------------------------------------------------------------

    async def test_connection(self, endpoint: str) -> dict[str, Any]:
        """
        Connect/disconnect round trip without a lasting subscription.

        Runs under the session lock. A session that is live on endpoint
        when the lock is taken belongs to someone else and is left alone.
        """
        if self._state is SessionState.CONNECTING and endpoint != self._endpoint:
            return self._connection_failed(
                ConnectError(
                    ConnectFailure.ALREADY_CONNECTING_ELSEWHERE,
                    endpoint,
                    f"Already connecting to {self._endpoint}",
                )
            )

        async with self._lock:
            if endpoint == self._endpoint:
                if self.is_connected:
                    return {"success": True}
                if self.is_degraded:
                    return {"success": True, "mock": True}

            try:
                await self._connect_locked(endpoint, subscribe=False, allow_fallback=False)
            except ConnectError as e:
                return self._connection_failed(e)

            await self._teardown()
            return {"success": True}

    def _connection_failed(self, error: ConnectError) -> dict[str, Any]:
        if self.simulator is not None:
            return {"success": True, "mock": True}
        return {"success": False, "error": str(error)}

    # ----------------------------------------------------------------
    # Watchdog
    # ----------------------------------------------------------------

    def _start_watchdog(self) -> None:
        if self.watchdog_interval and self.watchdog_interval > 0:
            self._watchdog_task = asyncio.create_task(self._watchdog(self._generation))

    async def _stop_watchdog(self) -> None:
        task, self._watchdog_task = self._watchdog_task, None
        if task is None or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _watchdog(self, generation: int) -> None:
        while self.is_connected and self._generation == generation:
            await asyncio.sleep(self.watchdog_interval)
            try:
                await self.primitive.check_connection()
            except Exception as e:
                logger.error(f"Connection to {self._endpoint} lost: {e!r}")
                await self._drop_lost_session(generation)
                return

    async def _drop_lost_session(self, generation: int) -> None:
        async with self._lock:
            # A newer session may have replaced the one that was lost
            if self._generation != generation or not self.is_connected:
                logger.debug("Lost session already replaced, nothing to tear down")
                return
            await self._teardown()
