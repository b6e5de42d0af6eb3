"""Action and collision types for the dungeon arena.

Action model:
  - rotation ∈ [-1, 1]  turn input, scaled by the body rotation speed
  - forward  ∈ [-1, 1]  speed input, scaled by the body move speed

Collisions reported by the movement collaborator are a tagged union
(``CollisionCategory``) rather than free-form tags.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True, slots=True)
class Action:
    """A single agent's action for one tick.

    Parameters
    ----------
    rotation : float
        Turn input in [-1, 1]; positive turns clockwise.
    forward : float
        Forward speed input in [-1, 1]; negative walks backwards.
    """

    rotation: float = 0.0
    forward: float = 0.0

    def __post_init__(self) -> None:
        for name in ("rotation", "forward"):
            value = getattr(self, name)
            if not -1.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [-1, 1], got {value}")


class CollisionCategory(Enum):
    """What an agent bumped into during movement."""

    WALL = "wall"
    OBSTACLE = "obstacle"
    PEER_AGENT = "peer_agent"
    TARGET = "target"
    KEY = "key"
    DOOR = "door"


# Combat hits are resolved before anything else in a tick.
DISPATCH_ORDER: tuple[CollisionCategory, ...] = (
    CollisionCategory.TARGET,
    CollisionCategory.KEY,
    CollisionCategory.DOOR,
    CollisionCategory.PEER_AGENT,
    CollisionCategory.OBSTACLE,
    CollisionCategory.WALL,
)


@dataclass(frozen=True, slots=True)
class CollisionEvent:
    """One contact reported for one agent during a tick."""

    agent_id: str
    category: CollisionCategory
    other_id: str | None = None
