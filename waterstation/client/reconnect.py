# waterstation/client/reconnect.py
"""
Client reconnection controller.

Keeps one push channel open. On transport failure it retries after a fixed
delay, at most max_retries times in a row; then it gives up and reports a
terminal state. Any event received resets the attempt counter.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable

logger = logging.getLogger(__name__)

GAVE_UP_MESSAGE = "Failed to connect after multiple attempts. Please try again."


class ClientState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    RETRYING = "retrying"
    GAVE_UP = "gave_up"
    CLOSED = "closed"


class ReconnectionController:
    def __init__(
        self,
        open_stream: Callable[[], AsyncIterator[dict[str, Any]]],
        on_event: Callable[[dict[str, Any]], None],
        *,
        max_retries: int = 5,
        retry_delay: float = 3.0,
        on_status: Callable[[ClientState, str | None], None] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.open_stream = open_stream
        self.on_event = on_event
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.on_status = on_status
        self._sleep = sleep

        self.attempts = 0
        self._state = ClientState.IDLE
        self._stopped = False
        self._task: asyncio.Task | None = None

    @property
    def state(self) -> ClientState:
        return self._state

    def _set_state(self, state: ClientState, message: str | None = None) -> None:
        self._state = state
        if message:
            logger.info(message)
        if self.on_status is not None:
            self.on_status(state, message)

    # ----------------------------------------------------------------
    # Lifecycle
    # ----------------------------------------------------------------

    async def run(self) -> ClientState:
        """Stream until stopped or until the retry budget is spent."""
        self._stopped = False
        self.attempts = 0

        while not self._stopped:
            self._set_state(ClientState.CONNECTING)
            try:
                async for event in self.open_stream():
                    if self._state is not ClientState.OPEN:
                        self.attempts = 0
                        self._set_state(ClientState.OPEN)
                    self.on_event(event)
                reason = "stream ended"
            except Exception as e:
                reason = repr(e)

            if self._stopped:
                break

            logger.warning(f"Event stream error: {reason}")
            if self.attempts >= self.max_retries:
                self._set_state(ClientState.GAVE_UP, GAVE_UP_MESSAGE)
                return self._state

            self.attempts += 1
            self._set_state(
                ClientState.RETRYING,
                f"Connection lost. Retrying ({self.attempts}/{self.max_retries})...",
            )
            await self._sleep(self.retry_delay)

        self._set_state(ClientState.CLOSED)
        return self._state

    def start(self) -> asyncio.Task:
        self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        """Close the channel and cancel any pending retry."""
        self._stopped = True
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self._state is not ClientState.GAVE_UP:
            self._set_state(ClientState.CLOSED)
