"""Abstract base environment — the episode contract exposed to a harness.

This class enforces:
  1. Lifecycle  — begin_episode()/reset() produces initial observations
  2. Step       — step() accepts actions, returns per-agent StepResults
  3. Obs spec   — observation_spec() declared before training
  4. Action spec— action_spec() declared before training
  5. Termination— done signals + termination_reason
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from dungeon_sim.core.types import AgentID, StepResult, TerminationReason


class BaseEnvironment(ABC):
    """Abstract multi-agent episodic environment contract."""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @abstractmethod
    def reset(self, seed: int | None = None) -> dict[AgentID, dict[str, Any]]:
        """Reset to initial state. Return initial observations keyed by agent ID."""
        ...

    def begin_episode(self) -> dict[AgentID, dict[str, Any]]:
        """Start the next episode without reseeding."""
        return self.reset()

    # ------------------------------------------------------------------
    # Step
    # ------------------------------------------------------------------

    @abstractmethod
    def step(
        self, actions: dict[AgentID, Any]
    ) -> dict[AgentID, StepResult]:
        """Advance one tick given all agents' actions."""
        ...

    # ------------------------------------------------------------------
    # Specs (declared before training)
    # ------------------------------------------------------------------

    @abstractmethod
    def observation_spec(self) -> dict[str, Any]:
        """Describe the observation structure agents will receive."""
        ...

    @abstractmethod
    def action_spec(self) -> dict[str, Any]:
        """Describe the valid action structure agents must submit."""
        ...

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @abstractmethod
    def active_agents(self) -> list[AgentID]:
        """Return IDs of agents taking part in the current episode."""
        ...

    @abstractmethod
    def is_done(self) -> bool:
        """True if the episode has terminated."""
        ...

    @abstractmethod
    def termination_reason(self) -> TerminationReason | None:
        """Why the episode ended, or None if still running."""
        ...

    @property
    @abstractmethod
    def current_step(self) -> int:
        """Current tick within the episode (0-indexed)."""
        ...
