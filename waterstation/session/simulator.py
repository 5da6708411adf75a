"""
Degraded-mode simulator.

Stands in for the controller when the session manager is configured to
fall back to simulated data. Never active in production configuration.
"""

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable

from waterstation.tags.registry import TagRegistry

logger = logging.getLogger(__name__)

MOCK_VALUES: dict[str, Any] = {
    "ARU": False,
    "AUT": False,
    "BPpompe": True,
    "BPvanne": True,
    "REA": False,
    "arret": False,
    "marche": True,
    "niveau": 65,
    "pompe": True,
    "vanne": True,
}

TOGGLE_CANDIDATES = ("BPpompe", "BPvanne", "pompe", "vanne")


class DegradedSimulator:
    """
    Periodically changes the level tag and flips one boolean tag.

    Changes go through on_change, the same funnel live notifications use.
    """

    def __init__(
        self,
        registry: TagRegistry,
        on_change: Callable[[str, Any], Awaitable[Any]],
        level_interval: float = 5.0,
        toggle_interval: float = 15.0,
        level_tag: str = "niveau",
        level_range: tuple[int, int] = (0, 100),
        toggle_candidates: tuple[str, ...] = TOGGLE_CANDIDATES,
        rng: random.Random | None = None,
    ):
        self.registry = registry
        self.on_change = on_change
        self.level_interval = level_interval
        self.toggle_interval = toggle_interval
        self.level_tag = level_tag
        self.level_range = level_range
        self.toggle_candidates = tuple(t for t in toggle_candidates if t in registry)
        self.rng = rng or random.Random()

        self._values: dict[str, Any] = {}
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    # ----------------------------------------------------------------
    # Lifecycle
    # ----------------------------------------------------------------

    async def start(self) -> None:
        if self._tasks:
            return

        logger.info("Initialising mock tag values")
        self._values = {
            name: value
            for name, value in MOCK_VALUES.items()
            if name in self.registry and self.registry.lookup(name).readable
        }
        for name, value in self._values.items():
            await self.on_change(name, value)

        if self.level_tag in self._values:
            self._tasks.append(asyncio.create_task(self._level_loop()))
        if self.toggle_candidates:
            self._tasks.append(asyncio.create_task(self._toggle_loop()))

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

    # ----------------------------------------------------------------
    # Loops
    # ----------------------------------------------------------------

    async def _level_loop(self) -> None:
        low, high = self.level_range
        while True:
            await asyncio.sleep(self.level_interval)
            previous = self._values.get(self.level_tag)
            value = self.rng.randrange(low, high)
            while value == previous and high - low > 1:
                value = self.rng.randrange(low, high)
            self._values[self.level_tag] = value
            await self._emit(self.level_tag, value)

    async def _toggle_loop(self) -> None:
        while True:
            await asyncio.sleep(self.toggle_interval)
            tag = self.rng.choice(self.toggle_candidates)
            value = not self._values.get(tag, False)
            self._values[tag] = value
            await self._emit(tag, value)

    async def _emit(self, tag: str, value: Any) -> None:
        try:
            await self.on_change(tag, value)
        except Exception:
            logger.exception(f"Simulated update of {tag} failed")
