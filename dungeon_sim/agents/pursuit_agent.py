"""Pursuit agent — scripted heuristic that plays the whole episode.

Chases the nearest visible target while targets are alive, then the key,
then the door once it holds the key.  With nothing in sight it turns in
place to scan, creeping forward so it does not stall in a corner.
"""

from __future__ import annotations

import numpy as np

from dungeon_sim.core.seeding import make_rng
from dungeon_sim.envs.dungeon.actions import Action

from dungeon_sim.agents.base import BaseAgent

# Angles below this are treated as "dead ahead".
_AIM_TOLERANCE = 5.0
_SCAN_FORWARD = 0.3


class PursuitAgent(BaseAgent):
    """Steers towards whatever the current phase asks for."""

    def __init__(self) -> None:
        self._rng: np.random.Generator | None = None
        self._scan_direction = 1.0

    def reset(self, agent_id: str, seed: int) -> None:
        self._rng = make_rng(seed)
        self._scan_direction = 1.0 if self._rng.random() < 0.5 else -1.0

    def _goal(self, observation: dict) -> str:
        if observation.get("has_key"):
            return "door"
        if observation.get("targets_alive"):
            return "target"
        return "key"

    def act(self, observation: dict) -> Action:
        assert self._rng is not None, "Must call reset() before act()"
        visible, _distance, angle = observation["sightings"][self._goal(observation)]
        if not visible:
            return Action(rotation=self._scan_direction, forward=_SCAN_FORWARD)

        if abs(angle) <= _AIM_TOLERANCE:
            return Action(rotation=0.0, forward=1.0)
        rotation = float(np.clip(angle / 90.0, -1.0, 1.0))
        forward = float(np.clip(np.cos(np.radians(angle)), 0.0, 1.0))
        return Action(rotation=rotation, forward=forward)
