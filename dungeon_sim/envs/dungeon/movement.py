"""Movement and navigation collaborators.

``KinematicMover`` integrates an agent's (rotation, forward) input for one
tick, resolves overlaps by pushing the body back to the contact surface,
and reports only contacts that *began* this tick, like collision-enter
callbacks.  ``StraightLineNavigator`` walks targets towards a destination.
"""

from __future__ import annotations

from collections.abc import Mapping

import numpy as np

from dungeon_sim.config.schema import BodyConfig, ObstacleConfig
from dungeon_sim.core.types import AgentID, TargetID
from dungeon_sim.envs.dungeon.actions import (
    DISPATCH_ORDER,
    Action,
    CollisionCategory,
    CollisionEvent,
)
from dungeon_sim.envs.dungeon.geometry import ArenaBounds, heading_vector, planar_distance, vec3
from dungeon_sim.envs.dungeon.state import AgentState

# Distance beyond the touching point that still counts as contact.
CONTACT_SKIN = 0.05

Contact = tuple[CollisionCategory, str | None]


def _push_out(position: np.ndarray, center: np.ndarray, min_distance: float,
              fallback: np.ndarray) -> np.ndarray:
    offset = np.array([position[0] - center[0], 0.0, position[2] - center[2]])
    norm = float(np.hypot(offset[0], offset[2]))
    direction = offset / norm if norm > 1e-9 else -fallback
    return vec3(
        center[0] + direction[0] * min_distance,
        position[1],
        center[2] + direction[2] * min_distance,
    )


class KinematicMover:
    """Applies actions on the floor plane and reports new contacts."""

    def __init__(
        self,
        bounds: ArenaBounds,
        bodies: BodyConfig,
        obstacles: list[ObstacleConfig],
        tick_seconds: float,
    ) -> None:
        self._bounds = bounds
        self._bodies = bodies
        self._obstacles = [
            (f"obstacle_{i}", vec3(o.x, bounds.floor_y, o.z), o.radius)
            for i, o in enumerate(obstacles)
        ]
        self._dt = tick_seconds
        self._contacts: dict[AgentID, set[Contact]] = {}

    def reset(self) -> None:
        self._contacts.clear()

    def move(
        self,
        agent: AgentState,
        action: Action,
        peers: Mapping[AgentID, np.ndarray],
        targets: Mapping[TargetID, np.ndarray],
        key_position: np.ndarray | None,
        door_position: np.ndarray,
    ) -> list[CollisionEvent]:
        """Move ``agent`` in place and return the contacts that started this tick."""
        b = self._bodies
        agent.heading = (agent.heading + action.rotation * b.rotation_speed) % 360.0
        forward = heading_vector(agent.heading)
        agent.forward_speed = action.forward * b.agent_speed

        position = agent.position + forward * agent.forward_speed * self._dt
        contacts: set[Contact] = set()

        solids: list[tuple[CollisionCategory, str | None, np.ndarray, float]] = [
            (CollisionCategory.OBSTACLE, oid, center, radius)
            for oid, center, radius in self._obstacles
        ]
        solids.append((CollisionCategory.DOOR, None, door_position, b.door_radius))
        solids.extend(
            (CollisionCategory.PEER_AGENT, pid, pos, b.agent_radius) for pid, pos in peers.items()
        )
        solids.extend(
            (CollisionCategory.TARGET, tid, pos, b.target_radius) for tid, pos in targets.items()
        )

        for category, other_id, center, radius in solids:
            reach = b.agent_radius + radius
            if planar_distance(position, center) < reach:
                position = _push_out(position, center, reach, forward)

        position, _ = self._bounds.clamp(position, b.agent_radius)
        agent.position = position

        # Contacts are evaluated at the resolved position.
        for category, other_id, center, radius in solids:
            if planar_distance(position, center) <= b.agent_radius + radius + CONTACT_SKIN:
                contacts.add((category, other_id))
        if self._touches_wall(position):
            contacts.add((CollisionCategory.WALL, None))
        if key_position is not None and (
            planar_distance(position, key_position) <= b.agent_radius + b.key_radius
        ):
            contacts.add((CollisionCategory.KEY, None))

        previous = self._contacts.get(agent.agent_id, set())
        self._contacts[agent.agent_id] = contacts
        started = contacts - previous
        return [
            CollisionEvent(agent.agent_id, category, other_id)
            for category in DISPATCH_ORDER
            for cat, other_id in sorted(started, key=lambda c: c[1] or "")
            if cat is category
        ]

    def _touches_wall(self, position: np.ndarray) -> bool:
        r = self._bodies.agent_radius + CONTACT_SKIN
        b = self._bounds
        return (
            position[0] - b.min_x <= r
            or b.max_x - position[0] <= r
            or position[2] - b.min_z <= r
            or b.max_z - position[2] <= r
        )


class StraightLineNavigator:
    """Moves a body towards a destination at constant speed."""

    def __init__(self, speed: float, arrival_radius: float, tick_seconds: float) -> None:
        self._step = speed * tick_seconds
        self._arrival_radius = arrival_radius

    def advance(self, position: np.ndarray, destination: np.ndarray) -> tuple[np.ndarray, bool]:
        """Return (new position, arrived)."""
        distance = planar_distance(position, destination)
        if distance <= self._arrival_radius:
            return position, True
        travel = min(self._step, distance)
        direction = np.array(
            [destination[0] - position[0], 0.0, destination[2] - position[2]]
        ) / distance
        moved = position + direction * travel
        return moved, planar_distance(moved, destination) <= self._arrival_radius
