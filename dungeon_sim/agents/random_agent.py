"""Random agent — uniform (rotation, forward) inputs (deterministic given seed)."""

from __future__ import annotations

import numpy as np

from dungeon_sim.core.seeding import make_rng
from dungeon_sim.envs.dungeon.actions import Action

from dungeon_sim.agents.base import BaseAgent


class RandomAgent(BaseAgent):
    """Uniformly random policy, fully deterministic given its seed."""

    def __init__(self) -> None:
        self._rng: np.random.Generator | None = None

    def reset(self, agent_id: str, seed: int) -> None:
        self._rng = make_rng(seed)

    def act(self, observation: dict) -> Action:
        assert self._rng is not None, "Must call reset() before act()"
        rotation, forward = self._rng.uniform(-1.0, 1.0, size=2)
        return Action(rotation=float(rotation), forward=float(forward))
