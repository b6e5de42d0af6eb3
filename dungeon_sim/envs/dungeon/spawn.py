"""Spawn placement by rejection sampling.

Positions are drawn uniformly inside a floor region, rejected when a
sphere of the safety radius would touch an existing blocking volume, and
resampled.  Every sampler call is bounded by ``max_spawn_attempts``; when
it runs out the solver relaxes the safety radius and tries again, so a
saturated arena degrades to tighter packing instead of looping forever.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from dungeon_sim.config.schema import ArenaConfig
from dungeon_sim.core.errors import SpawnExhaustionError
from dungeon_sim.envs.dungeon.geometry import (
    ArenaBounds,
    Region,
    planar_distance,
    vec3,
    yaw_towards,
)

logger = logging.getLogger(__name__)


class BlockerKind(Enum):
    OBSTACLE = "obstacle"
    DOOR = "door"
    TARGET = "target"
    AGENT = "agent"
    KEY = "key"


@dataclass(frozen=True, slots=True)
class Blocker:
    center: np.ndarray
    radius: float
    kind: BlockerKind


@dataclass(slots=True)
class BlockingVolumes:
    """Set of spheres that new spawns must keep clear of."""

    blockers: list[Blocker] = field(default_factory=list)

    def add(self, center: np.ndarray, radius: float, kind: BlockerKind) -> None:
        self.blockers.append(Blocker(np.array(center, dtype=np.float64), radius, kind))

    def check_sphere(self, position: np.ndarray, radius: float) -> bool:
        """True if a sphere at ``position`` overlaps any blocker."""
        return any(
            planar_distance(position, b.center) < radius + b.radius for b in self.blockers
        )

    def clearance(self, position: np.ndarray) -> float:
        """Distance from ``position`` to the nearest blocker surface."""
        if not self.blockers:
            return float("inf")
        return min(planar_distance(position, b.center) - b.radius for b in self.blockers)

    def __len__(self) -> int:
        return len(self.blockers)


@dataclass(frozen=True, slots=True)
class LairPlacement:
    position: np.ndarray
    yaw: float
    companion_region: Region


class SpawnSolver:
    """Samples non-overlapping positions inside the arena."""

    def __init__(self, arena: ArenaConfig, rng: np.random.Generator) -> None:
        self._arena = arena
        self._bounds = ArenaBounds.from_config(arena)
        self._rng = rng
        self.relaxations = 0

    @property
    def bounds(self) -> ArenaBounds:
        return self._bounds

    def reseed(self, rng: np.random.Generator) -> None:
        self._rng = rng

    # ------------------------------------------------------------------
    # Regions
    # ------------------------------------------------------------------

    def spawn_region(self) -> Region:
        """Whole floor minus the wall margin."""
        return self._bounds.inset(self._arena.wall_margin)

    # ------------------------------------------------------------------
    # Generic sampling
    # ------------------------------------------------------------------

    def sample_positions(
        self,
        count: int,
        blockers: BlockingVolumes,
        *,
        region: Region | None = None,
        body_radius: float = 0.0,
        kind: BlockerKind = BlockerKind.AGENT,
    ) -> list[np.ndarray]:
        """Return ``count`` positions clear of ``blockers`` and of each other.

        Accepted positions are registered in ``blockers`` with
        ``body_radius`` so later calls keep clear of them too.
        """
        region = region or self.spawn_region()
        height = self._bounds.floor_y + self._arena.spawn_height_offset
        positions: list[np.ndarray] = []
        for _ in range(count):
            position = self._place_one(region, blockers, height)
            blockers.add(position, body_radius, kind)
            positions.append(position)
        return positions

    def _place_one(
        self, region: Region, blockers: BlockingVolumes, height: float
    ) -> np.ndarray:
        radius = self._arena.safe_spawn_radius
        while True:
            try:
                return self._sample(region, blockers, height, radius)
            except SpawnExhaustionError as exc:
                self.relaxations += 1
                if radius <= self._arena.min_safe_radius:
                    logger.warning("%s; accepting the clearest candidate.", exc)
                    return self._clearest_candidate(region, blockers, height)
                relaxed = max(self._arena.min_safe_radius, radius * self._arena.spawn_relaxation)
                logger.warning("%s; relaxing safety radius to %.3f.", exc, relaxed)
                radius = relaxed

    def _sample(
        self, region: Region, blockers: BlockingVolumes, height: float, radius: float
    ) -> np.ndarray:
        for _ in range(self._arena.max_spawn_attempts):
            position = self._uniform(region, height)
            if not blockers.check_sphere(position, radius):
                return position
        raise SpawnExhaustionError(self._arena.max_spawn_attempts, radius)

    def _clearest_candidate(
        self, region: Region, blockers: BlockingVolumes, height: float
    ) -> np.ndarray:
        candidates = [self._uniform(region, height) for _ in range(self._arena.max_spawn_attempts)]
        return max(candidates, key=blockers.clearance)

    def _uniform(self, region: Region, height: float) -> np.ndarray:
        x = float(self._rng.uniform(region.min_x, region.max_x))
        z = float(self._rng.uniform(region.min_z, region.max_z))
        return vec3(x, height, z)

    # ------------------------------------------------------------------
    # Landmarks
    # ------------------------------------------------------------------

    def place_door(self) -> tuple[np.ndarray, float]:
        """Midpoint of a uniformly chosen wall, facing the arena centroid."""
        b = self._bounds
        margin = self._arena.wall_margin
        y = b.floor_y + self._arena.door_height_offset
        center = b.center
        side_centers = [
            vec3(b.min_x + margin, y, center[2]),  # left
            vec3(b.max_x - margin, y, center[2]),  # right
            vec3(center[0], y, b.min_z + margin),  # bottom
            vec3(center[0], y, b.max_z - margin),  # top
        ]
        position = side_centers[int(self._rng.integers(len(side_centers)))]
        return position, yaw_towards(position, center)

    def place_lair(self) -> LairPlacement:
        """Random corner for the lair; companions spawn in the opposite quadrant."""
        b = self._bounds
        margin = self._arena.lair_margin
        y = b.floor_y + self._arena.lair_height_offset
        corners = [
            vec3(b.min_x + margin, y, b.min_z + margin),
            vec3(b.min_x + margin, y, b.max_z - margin),
            vec3(b.max_x - margin, y, b.min_z + margin),
            vec3(b.max_x - margin, y, b.max_z - margin),
        ]
        lair = corners[int(self._rng.integers(len(corners)))]
        center = b.center

        lair_on_left = lair[0] < center[0]
        lair_on_bottom = lair[2] < center[2]
        inner = b.inset(self._arena.wall_margin)
        region = Region(
            min_x=center[0] if lair_on_left else inner.min_x,
            max_x=inner.max_x if lair_on_left else center[0],
            min_z=center[2] if lair_on_bottom else inner.min_z,
            max_z=inner.max_z if lair_on_bottom else center[2],
        )
        return LairPlacement(position=lair, yaw=yaw_towards(lair, center), companion_region=region)

    def random_heading(self) -> float:
        return float(self._rng.uniform(0.0, 360.0))
