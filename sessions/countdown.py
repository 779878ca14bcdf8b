"""
Round Countdown Module

The oral-trial clock. One countdown is bound to one "awaiting input" phase of
one round: the turn engine starts it when the round opens and cancels it the
instant the round leaves that phase. On reaching zero it fires the expiry
callback, which submits whatever the player has drafted.

Each start() takes a new generation number. A tick or expiry belonging to an
older generation is discarded, so a round that has already advanced can never
be auto-submitted by a stale timer.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from constants import COUNTDOWN_TICK_SECONDS, ORAL_TURN_SECONDS

logger = logging.getLogger(__name__)


class RoundCountdown:
    """Cancellable per-round countdown running as an asyncio task."""

    def __init__(
        self,
        on_expire: Callable[[int], Awaitable[None]],
        on_tick: Optional[Callable[[int], None]] = None,
        duration: int = ORAL_TURN_SECONDS,
        tick_seconds: float = COUNTDOWN_TICK_SECONDS,
    ) -> None:
        """
        Args:
            on_expire: Awaited with the generation number when time runs out
            on_tick: Called with the remaining time units after every tick
            duration: Time units per round
            tick_seconds: Wall-clock seconds per time unit
        """
        self._on_expire = on_expire
        self._on_tick = on_tick
        self.duration = duration
        self.tick_seconds = tick_seconds

        self.remaining = duration
        self.expired = False
        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self._expiring: Optional[asyncio.Task] = None  # Task running the expiry callback

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> int:
        """Reset to the full duration and start ticking. Returns the new generation."""
        self.cancel()
        self.remaining = self.duration
        self.expired = False
        generation = self._generation
        self._task = asyncio.create_task(self._run(generation))
        logger.debug("[Countdown] Started generation %d (%d units)", generation, self.duration)
        return generation

    def cancel(self) -> None:
        """
        Stop the clock. Safe to call from inside the expiry callback.

        Called from any other task it also cancels an expiry callback that is
        still running, so a reset drops a pending auto-submit.
        """
        self._generation += 1
        task, self._task = self._task, None
        for pending in (task, self._expiring):
            if pending is not None and not pending.done() and pending is not asyncio.current_task():
                pending.cancel()

    async def _run(self, generation: int) -> None:
        try:
            while self.remaining > 0:
                await asyncio.sleep(self.tick_seconds)
                if generation != self._generation:
                    return
                self.remaining -= 1
                if self._on_tick:
                    self._on_tick(self.remaining)

            if generation != self._generation:
                return
            self.expired = True
            self._task = None
            self._expiring = asyncio.current_task()
            logger.info("[Countdown] Generation %d expired", generation)
            try:
                await self._on_expire(generation)
            finally:
                if self._expiring is asyncio.current_task():
                    self._expiring = None
        except asyncio.CancelledError:
            pass  # Round advanced before the deadline, or the case was reset
