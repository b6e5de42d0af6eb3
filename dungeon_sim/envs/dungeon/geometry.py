"""Planar geometry helpers for the arena.

Positions are NumPy float arrays ``[x, y, z]``.  Everything that matters
for gameplay (distances, collisions, headings) happens on the x/z floor
plane; ``y`` only carries the spawn height offset.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from dungeon_sim.config.schema import ArenaConfig


def vec3(x: float, y: float, z: float) -> np.ndarray:
    return np.array([x, y, z], dtype=np.float64)


def planar_distance(a: np.ndarray, b: np.ndarray) -> float:
    return float(math.hypot(a[0] - b[0], a[2] - b[2]))


def heading_vector(heading_deg: float) -> np.ndarray:
    """Unit forward vector for a yaw measured clockwise from +z."""
    rad = math.radians(heading_deg)
    return vec3(math.sin(rad), 0.0, math.cos(rad))


def yaw_towards(origin: np.ndarray, point: np.ndarray) -> float:
    """Yaw (degrees, clockwise from +z) that faces ``point`` from ``origin``."""
    return math.degrees(math.atan2(point[0] - origin[0], point[2] - origin[2])) % 360.0


def signed_angle(heading_deg: float, origin: np.ndarray, point: np.ndarray) -> float:
    """Signed angle in (-180, 180] from the heading to the direction of ``point``."""
    delta = (yaw_towards(origin, point) - heading_deg) % 360.0
    return delta - 360.0 if delta > 180.0 else delta


@dataclass(frozen=True, slots=True)
class Region:
    """Axis-aligned rectangle on the floor plane."""

    min_x: float
    max_x: float
    min_z: float
    max_z: float

    def contains(self, position: np.ndarray) -> bool:
        return (
            self.min_x <= position[0] <= self.max_x
            and self.min_z <= position[2] <= self.max_z
        )


@dataclass(frozen=True, slots=True)
class ArenaBounds:
    """Floor rectangle of the arena plus its centroid."""

    min_x: float
    max_x: float
    min_z: float
    max_z: float
    floor_y: float

    @classmethod
    def from_config(cls, arena: ArenaConfig) -> ArenaBounds:
        return cls(
            min_x=arena.center_x - arena.width / 2,
            max_x=arena.center_x + arena.width / 2,
            min_z=arena.center_z - arena.depth / 2,
            max_z=arena.center_z + arena.depth / 2,
            floor_y=arena.floor_y,
        )

    @property
    def center(self) -> np.ndarray:
        return vec3(
            (self.min_x + self.max_x) / 2, self.floor_y, (self.min_z + self.max_z) / 2
        )

    @property
    def diagonal(self) -> float:
        return float(math.hypot(self.max_x - self.min_x, self.max_z - self.min_z))

    def inset(self, margin: float) -> Region:
        return Region(
            min_x=self.min_x + margin,
            max_x=self.max_x - margin,
            min_z=self.min_z + margin,
            max_z=self.max_z - margin,
        )

    def clamp(self, position: np.ndarray, radius: float) -> tuple[np.ndarray, bool]:
        """Keep a body of ``radius`` inside the walls.  Returns (position, touched_wall)."""
        x = min(max(position[0], self.min_x + radius), self.max_x - radius)
        z = min(max(position[2], self.min_z + radius), self.max_z - radius)
        touched = x != position[0] or z != position[2]
        return vec3(x, position[1], z), touched
