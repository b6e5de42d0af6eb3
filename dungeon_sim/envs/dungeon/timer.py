"""Escape countdown driven by simulation ticks."""

from __future__ import annotations

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)


class EscapeTimer:
    """Counts down in simulation seconds and fires its listeners once.

    Expiry is checked before the countdown advances: a tick fires only if
    it finds no time left.  A zero-second timer therefore fires on its
    first tick, which inside an environment step is the same step that
    started it.  A timer of ``d`` seconds fires on the tick after the one
    that used up the last of ``d``, one tick later than a wall clock would.
    """

    def __init__(self) -> None:
        self._duration = 0.0
        self._remaining = 0.0
        self._active = False
        self._listeners: list[Callable[[], None]] = []

    def on_expired(self, listener: Callable[[], None]) -> None:
        self._listeners.append(listener)

    def start(self, seconds: float) -> None:
        self._duration = seconds
        self._remaining = seconds
        self._active = True
        logger.info("Escape timer started: %.1fs to escape.", seconds)

    def stop(self) -> None:
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    @property
    def remaining(self) -> float:
        return max(0.0, self._remaining)

    @property
    def elapsed_fraction(self) -> float:
        """Share of the countdown already spent, in [0, 1]."""
        if not self._active:
            return 0.0
        if self._duration <= 0.0:
            return 1.0
        return min(1.0, max(0.0, 1.0 - self._remaining / self._duration))

    def tick(self, dt: float) -> bool:
        """Advance by ``dt`` seconds.  Returns True on the tick it expires."""
        if not self._active:
            return False
        if self._remaining > 0.0:
            self._remaining -= dt
            return False

        logger.info("Escape timer expired.")
        self._active = False
        for listener in self._listeners:
            listener()
        return True
