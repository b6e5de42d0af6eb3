"""Perception collaborator — "can this agent see something with tag X?".

The default implementation replaces ray casting with a sight cone: a
candidate is visible when it lies within ``view_distance`` and inside
``field_of_view``.  Obstacles do not occlude.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

import numpy as np

from dungeon_sim.config.schema import PerceptionConfig
from dungeon_sim.envs.dungeon.geometry import planar_distance, signed_angle


class SightTag(Enum):
    TARGET = "target"
    KEY = "key"
    DOOR = "door"
    AGENT = "agent"


@dataclass(frozen=True, slots=True)
class Sighting:
    """Closest visible entity of one tag.  Angle is signed degrees."""

    visible: bool
    distance: float = 0.0
    angle: float = 0.0

    @classmethod
    def hidden(cls) -> Sighting:
        return cls(False, 0.0, 0.0)

    def as_tuple(self) -> tuple[bool, float, float]:
        return self.visible, self.distance, self.angle


class Perception(Protocol):
    def can_see_tagged(
        self, position: np.ndarray, heading: float, candidates: Sequence[np.ndarray]
    ) -> Sighting: ...


class FieldOfViewPerception:
    """Sight cone around the agent heading."""

    def __init__(self, config: PerceptionConfig) -> None:
        self._view_distance = config.view_distance
        self._half_fov = config.field_of_view / 2.0

    def can_see_tagged(
        self, position: np.ndarray, heading: float, candidates: Sequence[np.ndarray]
    ) -> Sighting:
        best: Sighting | None = None
        for point in candidates:
            distance = planar_distance(position, point)
            if distance > self._view_distance:
                continue
            angle = signed_angle(heading, position, point) if distance > 0 else 0.0
            if abs(angle) > self._half_fov:
                continue
            if best is None or distance < best.distance:
                best = Sighting(True, distance, angle)
        return best or Sighting.hidden()
