"""Tests for the movement, navigation and perception collaborators."""

import math

import numpy as np
import pytest

from dungeon_sim.config.defaults import default_config
from dungeon_sim.config.schema import ArenaConfig, BodyConfig, ObstacleConfig, PerceptionConfig
from dungeon_sim.envs.dungeon.actions import Action, CollisionCategory
from dungeon_sim.envs.dungeon.geometry import ArenaBounds, vec3
from dungeon_sim.envs.dungeon.movement import KinematicMover, StraightLineNavigator
from dungeon_sim.envs.dungeon.perception import FieldOfViewPerception, Sighting
from dungeon_sim.envs.dungeon.state import AgentState

FAR_DOOR = vec3(0.0, 0.0, -9.0)


def _agent(agent_id: str, x: float, z: float, heading: float = 0.0) -> AgentState:
    agent = AgentState(
        agent_id=agent_id,
        personality=default_config().agents[0].personality,
        behavior_name="test",
    )
    agent.reset(vec3(x, 0.0, z), heading)
    return agent


def _mover(obstacles: list[ObstacleConfig] | None = None) -> KinematicMover:
    bounds = ArenaBounds.from_config(ArenaConfig())
    return KinematicMover(bounds, BodyConfig(), obstacles or [], tick_seconds=0.1)


def _categories(events) -> list[tuple[CollisionCategory, str | None]]:
    return [(e.category, e.other_id) for e in events]


# ---------------------------------------------------------------------------
# KinematicMover
# ---------------------------------------------------------------------------

class TestKinematicMover:
    def test_forward_and_rotation(self):
        mover = _mover()
        agent = _agent("agent_0", 0.0, 0.0)
        mover.move(agent, Action(rotation=0.0, forward=1.0), {}, {}, None, FAR_DOOR)
        # agent_speed 2.0 for one 0.1s tick
        np.testing.assert_allclose(agent.position, [0.0, 0.0, 0.2], atol=1e-9)

        mover.move(agent, Action(rotation=-1.0), {}, {}, None, FAR_DOOR)
        assert agent.heading == pytest.approx(340.0)

    def test_obstacle_contact_once_per_touch(self):
        mover = _mover([ObstacleConfig(x=0.0, z=0.0, radius=0.6)])
        agent = _agent("agent_0", 0.0, -0.95)
        push = Action(forward=1.0)

        events = mover.move(agent, push, {}, {}, None, FAR_DOOR)
        assert _categories(events) == [(CollisionCategory.OBSTACLE, "obstacle_0")]
        # Pushed back to the surface
        assert agent.position[2] == pytest.approx(-0.9)

        assert mover.move(agent, push, {}, {}, None, FAR_DOOR) == []

        # Back off, then touch again
        agent.heading = 180.0
        assert mover.move(agent, push, {}, {}, None, FAR_DOOR) == []
        agent.heading = 0.0
        events = mover.move(agent, push, {}, {}, None, FAR_DOOR)
        assert _categories(events) == [(CollisionCategory.OBSTACLE, "obstacle_0")]

    def test_wall_contact(self):
        mover = _mover()
        agent = _agent("agent_0", 9.5, 0.0, heading=90.0)
        push = Action(forward=1.0)

        events = mover.move(agent, push, {}, {}, None, FAR_DOOR)
        assert _categories(events) == [(CollisionCategory.WALL, None)]
        assert agent.position[0] == pytest.approx(10.0 - 0.3)
        assert mover.move(agent, push, {}, {}, None, FAR_DOOR) == []

    def test_peer_contact_names_the_peer(self):
        mover = _mover()
        agent = _agent("agent_0", 0.0, 0.0)
        peers = {"agent_1": vec3(0.0, 0.0, 0.7)}

        events = mover.move(agent, Action(forward=1.0), peers, {}, None, FAR_DOOR)
        assert _categories(events) == [(CollisionCategory.PEER_AGENT, "agent_1")]
        assert agent.position[2] == pytest.approx(0.1)

    def test_key_and_target_contacts(self):
        mover = _mover()
        agent = _agent("agent_0", 0.0, 0.0)
        targets = {"target_0": vec3(0.0, 0.0, -0.8)}
        key = vec3(0.5, 0.0, 0.0)

        events = mover.move(agent, Action(), {}, targets, key, FAR_DOOR)
        # Combat hits come first
        assert _categories(events) == [
            (CollisionCategory.TARGET, "target_0"),
            (CollisionCategory.KEY, None),
        ]

    def test_reset_forgets_contacts(self):
        mover = _mover([ObstacleConfig(x=0.0, z=0.0, radius=0.6)])
        agent = _agent("agent_0", 0.0, -0.95)
        mover.move(agent, Action(forward=1.0), {}, {}, None, FAR_DOOR)
        mover.reset()
        events = mover.move(agent, Action(), {}, {}, None, FAR_DOOR)
        assert _categories(events) == [(CollisionCategory.OBSTACLE, "obstacle_0")]


# ---------------------------------------------------------------------------
# StraightLineNavigator
# ---------------------------------------------------------------------------

class TestStraightLineNavigator:
    def test_walks_and_reports_arrival(self):
        nav = StraightLineNavigator(speed=1.0, arrival_radius=0.45, tick_seconds=0.1)
        position = vec3(0.0, 0.0, 0.0)
        destination = vec3(0.0, 0.0, 1.0)

        arrivals = []
        for _ in range(6):
            position, arrived = nav.advance(position, destination)
            arrivals.append(arrived)
        assert arrivals == [False] * 5 + [True]
        assert position[2] == pytest.approx(0.6)

    def test_already_there(self):
        nav = StraightLineNavigator(speed=1.0, arrival_radius=0.5, tick_seconds=0.1)
        start = vec3(0.0, 0.0, 0.3)
        position, arrived = nav.advance(start, vec3(0.0, 0.0, 0.0))
        assert arrived
        np.testing.assert_allclose(position, start)

    def test_never_overshoots(self):
        nav = StraightLineNavigator(speed=100.0, arrival_radius=0.1, tick_seconds=0.1)
        position, arrived = nav.advance(vec3(0.0, 0.0, 0.0), vec3(3.0, 0.0, 4.0))
        assert arrived
        np.testing.assert_allclose(position, [3.0, 0.0, 4.0])


# ---------------------------------------------------------------------------
# FieldOfViewPerception
# ---------------------------------------------------------------------------

class TestFieldOfViewPerception:
    @pytest.fixture
    def perception(self):
        return FieldOfViewPerception(PerceptionConfig(view_distance=5.0, field_of_view=90.0))

    def test_visible_straight_ahead(self, perception):
        sighting = perception.can_see_tagged(vec3(0.0, 0.0, 0.0), 0.0, [vec3(0.0, 0.0, 3.0)])
        assert sighting.as_tuple() == (True, pytest.approx(3.0), pytest.approx(0.0))

    def test_hidden_beyond_view_distance(self, perception):
        sighting = perception.can_see_tagged(vec3(0.0, 0.0, 0.0), 0.0, [vec3(0.0, 0.0, 6.0)])
        assert sighting.as_tuple() == (False, 0.0, 0.0)

    def test_hidden_outside_field_of_view(self, perception):
        sighting = perception.can_see_tagged(vec3(0.0, 0.0, 0.0), 0.0, [vec3(3.0, 0.0, 0.0)])
        assert sighting == Sighting.hidden()

    def test_nothing_to_see(self, perception):
        assert perception.can_see_tagged(vec3(0.0, 0.0, 0.0), 0.0, []) == Sighting.hidden()

    def test_closest_visible_wins(self, perception):
        sighting = perception.can_see_tagged(
            vec3(0.0, 0.0, 0.0), 0.0, [vec3(0.0, 0.0, 4.0), vec3(1.0, 0.0, 2.0)]
        )
        assert sighting.visible
        assert sighting.distance == pytest.approx(math.sqrt(5.0))
        assert sighting.angle == pytest.approx(math.degrees(math.atan2(1.0, 2.0)))
