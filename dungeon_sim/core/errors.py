"""Error taxonomy for the dungeon simulation.

  ConfigurationError     fatal, raised while building an environment
  SpawnExhaustionError   recoverable, the spawn solver relaxes and retries
  InconsistentStateError internal, discarded by the orchestrator
"""

from __future__ import annotations


class DungeonError(Exception):
    """Base class for every simulation-specific error."""


class ConfigurationError(DungeonError, ValueError):
    """A required personality or behaviour binding is missing."""


class SpawnExhaustionError(DungeonError):
    """The rejection sampler ran out of attempts for one position."""

    def __init__(self, attempts: int, radius: float) -> None:
        super().__init__(
            f"no free position found after {attempts} attempts (safety radius {radius:.3f})"
        )
        self.attempts = attempts
        self.radius = radius


class InconsistentStateError(DungeonError):
    """An event refers to state that no longer exists in this episode."""
