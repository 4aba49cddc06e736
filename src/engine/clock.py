"""
Swipe Arena - Turn Clock

Whole-second countdown for a turn. With a positive ``tick_interval`` the clock
schedules itself on the running asyncio loop; with ``tick_interval=None`` it
is driven by calling ``tick()`` directly.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from src.engine.validators import validate_turn_duration

logger = logging.getLogger(__name__)


class TurnClock:
    """Countdown timer with tick and expiry callbacks.

    ``on_expire`` fires exactly once per ``start``. The countdown cannot be
    reset while running; call ``stop()`` and then ``start()``.
    """

    def __init__(
        self,
        on_tick: Callable[[int], None],
        on_expire: Callable[[], None],
        tick_interval: float | None = 1.0,
    ) -> None:
        self._on_tick = on_tick
        self._on_expire = on_expire
        self.tick_interval = tick_interval
        self._remaining = 0
        self._active = False
        self._task: asyncio.Task | None = None

    @property
    def active(self) -> bool:
        return self._active

    @property
    def remaining(self) -> int:
        return self._remaining

    def start(self, duration: int) -> None:
        """Arm the countdown.

        Raises:
            RuntimeError: If the clock is already running
            ValueError: If duration is not a positive whole number of seconds
        """
        if self._active:
            raise RuntimeError("Turn clock is already running; stop it first.")
        self._remaining = validate_turn_duration(duration)
        self._active = True
        if self.tick_interval:
            self._task = asyncio.get_running_loop().create_task(
                self._run(), name="turn-clock"
            )

    def stop(self) -> None:
        """Cancel the countdown. Safe to call when not running."""
        self._active = False
        self._cancel_task()

    def tick(self) -> None:
        """Advance one second."""
        if not self._active:
            return
        self._remaining = max(self._remaining - 1, 0)
        if self._remaining == 0:
            self._active = False
            self._cancel_task()
            self._on_expire()
        else:
            self._on_tick(self._remaining)

    def _cancel_task(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            task.cancel()

    async def _run(self) -> None:
        """Tick once per interval until stopped, expired or superseded."""
        me = asyncio.current_task()
        while self._active and self._task is me:
            await asyncio.sleep(self.tick_interval)
            if not self._active or self._task is not me:
                break
            try:
                self.tick()
            except Exception:
                logger.exception("Error in turn clock callback")
