"""In-memory singleton managing the current run's lifecycle.

V1 supports one run at a time.  The RunManager holds the current run
state (id, running flag, episode and step counters, stop signal) and the
outcome of the last finished episode.
"""

from __future__ import annotations

import asyncio


class RunManager:
    """Process-wide run state."""

    def __init__(self) -> None:
        self.run_id: str | None = None
        self.running: bool = False
        self.episode: int = 0
        self.num_episodes: int = 0
        self.step: int = 0
        self.last_outcome: str | None = None
        self._stop_event: asyncio.Event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Stop signal
    # ------------------------------------------------------------------

    def request_stop(self) -> None:
        self._stop_event.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    # ------------------------------------------------------------------
    # Task tracking
    # ------------------------------------------------------------------

    def attach_task(self, task: asyncio.Task[None]) -> None:
        self._task = task

    def reset_state(self) -> None:
        """Prepare for a fresh run."""
        self.run_id = None
        self.running = False
        self.episode = 0
        self.num_episodes = 0
        self.step = 0
        self.last_outcome = None
        self._stop_event = asyncio.Event()
        self._task = None


# Module-level singleton
manager = RunManager()
