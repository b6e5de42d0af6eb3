"""DungeonEnvironment — the episode orchestrator.

Implements the BaseEnvironment contract:
  reset(seed) -> initial observations
  step(actions) -> dict[AgentID, StepResult]

One tick runs, in order: agent movement, target navigation, collision
dispatch (combat hits first), escape timer, per-tick shaping rewards,
statistics.  Phase changes are driven by events from the targets, the
door and the timer, which this class subscribes to at construction.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import numpy as np

from dungeon_sim.config.schema import DungeonConfig
from dungeon_sim.core.base_env import BaseEnvironment
from dungeon_sim.core.errors import ConfigurationError, InconsistentStateError
from dungeon_sim.core.events import EffectSink, NullEffectSink, VisualEffect
from dungeon_sim.core.seeding import make_rng, spawn_seed
from dungeon_sim.core.types import AgentID, StepResult, TargetID, TerminationReason
from dungeon_sim.envs.dungeon.actions import (
    DISPATCH_ORDER,
    Action,
    CollisionCategory,
    CollisionEvent,
)
from dungeon_sim.envs.dungeon.door import Door, DoorContact
from dungeon_sim.envs.dungeon.geometry import ArenaBounds, planar_distance, vec3
from dungeon_sim.envs.dungeon.movement import KinematicMover, StraightLineNavigator
from dungeon_sim.envs.dungeon.perception import (
    FieldOfViewPerception,
    Perception,
    Sighting,
    SightTag,
)
from dungeon_sim.envs.dungeon.rewards import RewardContext, RewardEngine
from dungeon_sim.envs.dungeon.spawn import BlockerKind, BlockingVolumes, SpawnSolver
from dungeon_sim.envs.dungeon.state import AgentState, EpisodeState, Phase
from dungeon_sim.envs.dungeon.target import Target
from dungeon_sim.envs.dungeon.termination import check_termination
from dungeon_sim.envs.dungeon.timer import EscapeTimer
from dungeon_sim.envs.dungeon.transition import try_transition
from dungeon_sim.metrics.collector import EpisodeStatsCollector
from dungeon_sim.runner.run_logger import RunLogger

logger = logging.getLogger(__name__)

Handler = Callable[[AgentState, CollisionEvent], None]


class DungeonEnvironment(BaseEnvironment):
    """Cooperative dungeon escape with personality-shaped rewards."""

    def __init__(
        self,
        config: DungeonConfig,
        *,
        stats_sink: RunLogger | None = None,
        effects: EffectSink | None = None,
        perception: Perception | None = None,
    ) -> None:
        episode = config.episode
        if len(config.agents) < episode.num_agents:
            raise ConfigurationError(
                f"{episode.num_agents} agents requested but only "
                f"{len(config.agents)} personality bindings configured."
            )

        self._config = config
        self._bounds = ArenaBounds.from_config(config.arena)
        self._max_distance = self._bounds.diagonal
        self._effects: EffectSink = effects or NullEffectSink()
        self._sink = stats_sink
        self._perception: Perception = perception or FieldOfViewPerception(config.perception)
        self._spawner = SpawnSolver(config.arena, make_rng(spawn_seed(config.identity.seed)))
        self._mover = KinematicMover(
            self._bounds, config.bodies, config.arena.obstacles, episode.tick_seconds
        )
        self._navigator = StraightLineNavigator(
            episode.target_speed, episode.target_arrival_radius, episode.tick_seconds
        )

        self._timer = EscapeTimer()
        self._timer.on_expired(self._on_timer_expired)

        self._door = Door()
        self._door.subscribe(self)

        self._targets: dict[TargetID, Target] = {}
        for i in range(episode.num_targets):
            target = Target(f"target_{i}", episode.target_lives, self._effects)
            target.subscribe(self)
            self._targets[target.target_id] = target
        self._target_start_distance: dict[TargetID, float] = {}

        bindings = config.agents[: episode.num_agents]
        self._state = EpisodeState(
            agents={
                f"agent_{i}": AgentState(
                    agent_id=f"agent_{i}",
                    personality=b.personality,
                    behavior_name=b.behavior_name,
                )
                for i, b in enumerate(bindings)
            }
        )
        self._engines: dict[AgentID, RewardEngine] = {
            aid: RewardEngine(agent.personality, config.rewards)
            for aid, agent in self._state.agents.items()
        }
        self._stats = EpisodeStatsCollector(config.instrumentation, config.bodies)

        self._handlers: dict[CollisionCategory, Handler] = {
            CollisionCategory.TARGET: self._handle_target_hit,
            CollisionCategory.KEY: self._handle_key_contact,
            CollisionCategory.DOOR: self._handle_door_contact,
            CollisionCategory.PEER_AGENT: self._handle_peer_collision,
            CollisionCategory.OBSTACLE: self._handle_obstacle_collision,
            CollisionCategory.WALL: self._handle_obstacle_collision,
        }

        self._pending: dict[AgentID, float] = {}
        self._components: dict[AgentID, dict[str, float]] = {}
        self._pending_group = 0.0
        self._failure_reason: TerminationReason | None = None
        self._termination: TerminationReason | None = None
        self._done = False
        self._started = False
        self._stats_flushed = True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self, seed: int | None = None) -> dict[AgentID, dict[str, Any]]:
        if seed is not None:
            self._spawner.reseed(make_rng(seed))
        self._flush_statistics()
        self._reset_arena()
        self._started = True
        return {aid: self._observation(aid) for aid in self._state.agents}

    def _reset_arena(self) -> None:
        state = self._state
        config = self._config
        bodies = config.bodies

        self._timer.stop()
        state.key.destroy()
        state.phase = Phase.COMBAT
        state.remaining_targets = config.episode.num_targets
        state.step = 0
        state.elapsed = 0.0
        state.group_reward = 0.0
        self._failure_reason = None
        self._termination = None
        self._done = False
        self._clear_pending()
        self._mover.reset()
        self._spawner.relaxations = 0

        blockers = BlockingVolumes()
        for obs in config.arena.obstacles:
            blockers.add(vec3(obs.x, self._bounds.floor_y, obs.z), obs.radius, BlockerKind.OBSTACLE)

        # Exit door on a random side, locked
        door_position, door_yaw = self._spawner.place_door()
        self._door.place(door_position, door_yaw)
        self._door.lock()
        blockers.add(door_position, bodies.door_radius, BlockerKind.DOOR)

        # Lair corner, targets healed in the opposite quadrant
        lair = self._spawner.place_lair()
        state.lair_position = lair.position
        positions = self._spawner.sample_positions(
            len(self._targets), blockers,
            region=lair.companion_region,
            body_radius=bodies.target_radius,
            kind=BlockerKind.TARGET,
        )
        for target, position in zip(self._targets.values(), positions):
            target.resurrect(position)
            self._target_start_distance[target.target_id] = planar_distance(
                position, lair.position
            )

        for aid, agent in state.agents.items():
            self._engines[aid].reset_counters()
            position = self._spawner.sample_positions(
                1, blockers, body_radius=bodies.agent_radius, kind=BlockerKind.AGENT
            )[0]
            agent.reset(position, self._spawner.random_heading())

        self._effects.request(VisualEffect.RESET_SIGNAL)
        state.episode += 1
        self._stats.begin_episode(
            state.episode, {aid: a.personality.name for aid, a in state.agents.items()}
        )
        self._stats.record_spawn_relaxations(self._spawner.relaxations)
        self._stats_flushed = False
        logger.info("Episode %d started.", state.episode)

    def flush_statistics(self) -> None:
        """Write the current episode's rows to the sink (once per episode)."""
        self._flush_statistics()

    def _flush_statistics(self) -> None:
        if self._stats_flushed:
            return
        events = self._stats.drain_events()
        if self._sink is not None:
            self._sink.log_agent_episodes(self._stats.agent_rows())
            self._sink.log_global_episode(self._stats.global_row())
            self._sink.log_events(events)
        self._stats_flushed = True

    # ------------------------------------------------------------------
    # Step
    # ------------------------------------------------------------------

    def step(
        self, actions: dict[AgentID, Any]
    ) -> dict[AgentID, StepResult]:
        if not self._started:
            raise RuntimeError("Must call reset() before step().")
        if self._done:
            raise RuntimeError("Episode is done. Call reset().")

        state = self._state
        dt = self._config.episode.tick_seconds
        parsed = self._parse_actions(actions)

        state.step += 1
        state.elapsed += dt

        # Movement: contacts that began this tick, in agent order
        previous = {aid: a.position.copy() for aid, a in state.agents.items()}
        collisions: list[CollisionEvent] = []
        alive = {tid: t.position for tid, t in self._targets.items() if t.alive}
        for aid, agent in state.agents.items():
            peers = {oid: o.position for oid, o in state.agents.items() if oid != aid}
            collisions.extend(
                self._mover.move(
                    agent, parsed[aid], peers, alive, state.key.position, self._door.position
                )
            )

        # Targets walk towards the lair
        for target in self._targets.values():
            if not target.alive or state.phase.terminal:
                continue
            target.position, arrived = self._navigator.advance(
                target.position, state.lair_position
            )
            if arrived:
                target.reach_goal()

        # Combat hits before anything else
        for category in DISPATCH_ORDER:
            for event in collisions:
                if event.category is category:
                    self.dispatch_collision(event)

        if not state.phase.terminal:
            self._timer.tick(dt)

        if not state.phase.terminal:
            for aid, agent in state.agents.items():
                reward, components = self._engines[aid].step_reward(
                    self._context(agent), parsed[aid].forward
                )
                self._add_reward(aid, reward, components)

        self._stats.update_tick(
            dt,
            state.elapsed,
            {aid: a.position for aid, a in state.agents.items()},
            {aid: planar_distance(previous[aid], a.position) for aid, a in state.agents.items()},
            [t.position for t in self._targets.values() if t.alive],
        )

        self._termination = check_termination(state, self._config, self._failure_reason)
        self._done = self._termination is not None
        if self._termination is TerminationReason.MAX_STEPS:
            self._timer.stop()
            self._stats.record_outcome(self._termination, state.elapsed)

        results: dict[AgentID, StepResult] = {}
        for aid in state.agents:
            results[aid] = StepResult(
                observation=self._observation(aid),
                reward=self._pending.get(aid, 0.0) + self._pending_group,
                done=self._done,
                info={
                    "reward_components": dict(self._components.get(aid, {})),
                    "group_reward": self._pending_group,
                    "phase": state.phase.value,
                    "episode": state.episode,
                },
            )
        self._clear_pending()
        return results

    def _parse_actions(self, actions: dict[AgentID, Any]) -> dict[AgentID, Action]:
        parsed: dict[AgentID, Action] = {}
        for aid in self._state.agents:
            raw = actions.get(aid)
            if raw is None:
                parsed[aid] = Action()
            elif isinstance(raw, Action):
                parsed[aid] = raw
            elif isinstance(raw, dict):
                parsed[aid] = Action(
                    rotation=float(raw.get("rotation", 0.0)),
                    forward=float(raw.get("forward", 0.0)),
                )
            elif isinstance(raw, (tuple, list, np.ndarray)) and len(raw) == 2:
                parsed[aid] = Action(rotation=float(raw[0]), forward=float(raw[1]))
            else:
                raise TypeError(f"Invalid action for {aid}: {raw!r}")
        return parsed

    # ------------------------------------------------------------------
    # Collision dispatch
    # ------------------------------------------------------------------

    def dispatch_collision(self, event: CollisionEvent) -> None:
        """Route one contact to its handler.

        Public so that an external movement collaborator can feed contacts
        directly.  Contacts arriving after the episode ended are dropped.
        """
        if not self._started or self._done or self._state.phase.terminal:
            return
        agent = self._state.agents.get(event.agent_id)
        if agent is None:
            logger.debug("Dropping contact for unknown agent %s", event.agent_id)
            return
        try:
            self._handlers[event.category](agent, event)
        except InconsistentStateError as exc:
            logger.debug("Dropping %s contact by %s: %s", event.category.value, agent.agent_id, exc)

    def _handle_target_hit(self, agent: AgentState, event: CollisionEvent) -> None:
        target = self._targets.get(event.other_id or "")
        if target is None or not target.alive:
            raise InconsistentStateError(f"target {event.other_id} is not alive")

        ctx = self._context(agent)
        lives_left = target.take_hit(agent.agent_id)
        agent.hits_inflicted += 1
        self._stats.record_hit(agent.agent_id)
        reward, components = self._engines[agent.agent_id].target_hit_reward(
            ctx, target.target_id, target.attackers, lives_left
        )
        self._add_reward(agent.agent_id, reward, components)

    def _handle_key_contact(self, agent: AgentState, event: CollisionEvent) -> None:
        state = self._state
        if not state.key.present or state.phase is not Phase.KEY_PHASE:
            raise InconsistentStateError(f"no key to grab in phase {state.phase.value}")

        ctx = self._context(agent)
        state.key.grab(agent.agent_id)
        agent.has_key = True
        try_transition(state, Phase.ESCAPE_PHASE)
        reward, components = self._engines[agent.agent_id].key_grab_reward(ctx)
        self._add_reward(agent.agent_id, reward, components)
        self._stats.record_key_grab(agent.agent_id, state.elapsed)
        logger.info("%s grabbed the key.", agent.agent_id)

    def _handle_door_contact(self, agent: AgentState, event: CollisionEvent) -> None:
        if self._door.contact(agent.agent_id, agent.has_key) is DoorContact.BLOCKED:
            reward, components = self._engines[agent.agent_id].closed_door_reward()
            self._add_reward(agent.agent_id, reward, components)

    def _handle_peer_collision(self, agent: AgentState, event: CollisionEvent) -> None:
        reward, components = self._engines[agent.agent_id].peer_hit_reward(self._context(agent))
        self._add_reward(agent.agent_id, reward, components)
        self._stats.record_peer_collision(agent.agent_id)

    def _handle_obstacle_collision(self, agent: AgentState, event: CollisionEvent) -> None:
        reward, components = self._engines[agent.agent_id].obstacle_hit_reward()
        self._add_reward(agent.agent_id, reward, components)

    # ------------------------------------------------------------------
    # Observers: targets, door, timer
    # ------------------------------------------------------------------

    def on_target_defeated(self, target: Target, attacker_id: AgentID) -> None:
        state = self._state
        if state.phase is not Phase.COMBAT:
            logger.debug("Ignoring defeat of %s outside combat", target.target_id)
            return
        state.remaining_targets -= 1
        self._add_group_reward(self._config.group_rewards.kill_target)
        self._stats.record_target_defeated(attacker_id, target.target_id, state.elapsed)
        if state.remaining_targets == 0:
            self._enter_key_phase()

    def on_target_escaped(self, target: Target) -> None:
        self._fail(TerminationReason.TARGET_ESCAPED, target_id=target.target_id)

    def on_agent_escape(self, agent_id: AgentID) -> None:
        state = self._state
        if not try_transition(state, Phase.WON):
            return
        self._timer.stop()
        self._add_group_reward(self._config.group_rewards.escape_bonus)
        self._effects.request(VisualEffect.SUCCESS_SIGNAL)
        self._stats.record_outcome(TerminationReason.ESCAPED, state.elapsed, agent_id=agent_id)
        logger.info("Episode %d won: %s escaped.", state.episode, agent_id)

    def _on_timer_expired(self) -> None:
        self._fail(TerminationReason.TIMER_EXPIRED)

    def _enter_key_phase(self) -> None:
        state = self._state
        if not try_transition(state, Phase.KEY_PHASE):
            return
        self._timer.start(self._config.episode.time_to_escape)
        for agent in state.agents.values():
            agent.targets_alive = False
        key_position = self._spawner.sample_positions(
            1, self._live_blockers(),
            body_radius=self._config.bodies.key_radius,
            kind=BlockerKind.KEY,
        )[0]
        state.key.spawn(key_position)
        self._add_group_reward(self._config.group_rewards.kill_all_bonus)
        self._stats.record_all_targets_defeated(state.elapsed)
        logger.info("Episode %d: all targets defeated, key spawned.", state.episode)

    def _fail(self, reason: TerminationReason, *, target_id: TargetID | None = None) -> None:
        state = self._state
        if not try_transition(state, Phase.FAILED):
            return
        self._failure_reason = reason
        self._timer.stop()
        self._add_group_reward(-self._config.group_rewards.fail_penalty)
        self._effects.request(VisualEffect.FAILURE_SIGNAL)
        self._stats.record_outcome(reason, state.elapsed, target_id=target_id)
        logger.info("Episode %d failed: %s.", state.episode, reason.value)

    def _live_blockers(self) -> BlockingVolumes:
        bodies = self._config.bodies
        blockers = BlockingVolumes()
        for obs in self._config.arena.obstacles:
            blockers.add(vec3(obs.x, self._bounds.floor_y, obs.z), obs.radius, BlockerKind.OBSTACLE)
        blockers.add(self._door.position, bodies.door_radius, BlockerKind.DOOR)
        for target in self._targets.values():
            if target.alive:
                blockers.add(target.position, bodies.target_radius, BlockerKind.TARGET)
        for agent in self._state.agents.values():
            blockers.add(agent.position, bodies.agent_radius, BlockerKind.AGENT)
        return blockers

    # ------------------------------------------------------------------
    # Rewards
    # ------------------------------------------------------------------

    def _add_reward(self, aid: AgentID, reward: float, components: dict[str, float]) -> None:
        self._pending[aid] = self._pending.get(aid, 0.0) + reward
        merged = self._components.setdefault(aid, {})
        for name, value in components.items():
            merged[name] = merged.get(name, 0.0) + value

    def _add_group_reward(self, amount: float) -> None:
        self._pending_group += amount
        self._state.group_reward += amount

    def _clear_pending(self) -> None:
        self._pending = {}
        self._components = {}
        self._pending_group = 0.0

    def _context(self, agent: AgentState) -> RewardContext:
        return RewardContext(
            agent_id=agent.agent_id,
            position=agent.position.copy(),
            has_key=agent.has_key,
            targets_alive=agent.targets_alive,
            urgency=self.urgency,
            elapsed=self._state.elapsed,
            peer_positions=tuple(p.copy() for p in self._state.peer_positions(agent.agent_id)),
            exit_position=self._door.position.copy(),
            max_distance=self._max_distance,
            target_sighting=self._sighting(agent, SightTag.TARGET),
        )

    @property
    def urgency(self) -> float:
        """Time pressure in [0, 1].

        In combat it is how far the most advanced target has walked towards
        its lair; afterwards it is the spent share of the escape timer.
        """
        state = self._state
        if state.phase is Phase.COMBAT:
            progress = 0.0
            for target in self._targets.values():
                start = self._target_start_distance.get(target.target_id, 0.0)
                if not target.alive or start <= 0:
                    continue
                remaining = planar_distance(target.position, state.lair_position)
                progress = max(progress, 1.0 - remaining / start)
            return min(1.0, max(0.0, progress))
        return self._timer.elapsed_fraction

    # ------------------------------------------------------------------
    # Perception and observations
    # ------------------------------------------------------------------

    def _sighting(self, agent: AgentState, tag: SightTag) -> Sighting:
        if tag is SightTag.TARGET:
            candidates = [t.position for t in self._targets.values() if t.alive]
        elif tag is SightTag.KEY:
            key = self._state.key.position
            candidates = [] if key is None else [key]
        elif tag is SightTag.DOOR:
            candidates = [self._door.position]
        else:
            candidates = list(self._state.peer_positions(agent.agent_id))
        return self._perception.can_see_tagged(agent.position, agent.heading, candidates)

    def _observation(self, agent_id: AgentID) -> dict[str, Any]:
        state = self._state
        agent = state.agents[agent_id]
        center = self._bounds.center
        return {
            "step": state.step,
            "phase": state.phase.value,
            "position": [
                float(agent.position[0] - center[0]),
                float(agent.position[1]),
                float(agent.position[2] - center[2]),
            ],
            "heading": agent.heading,
            "has_key": agent.has_key,
            "targets_alive": agent.targets_alive,
            "door_locked": self._door.locked,
            "urgency": self.urgency,
            "remaining_targets": state.remaining_targets,
            "time_remaining": self._timer.remaining,
            "sightings": {
                tag.value: self._sighting(agent, tag).as_tuple() for tag in SightTag
            },
        }

    # ------------------------------------------------------------------
    # Specs
    # ------------------------------------------------------------------

    def observation_spec(self) -> dict[str, Any]:
        return {
            "step": {"type": "int", "min": 0},
            "phase": {"type": "enum", "values": [p.value for p in Phase]},
            "position": {"type": "list", "length": 3, "item": {"type": "float"}},
            "heading": {"type": "float", "min": 0.0, "max": 360.0},
            "has_key": {"type": "bool"},
            "targets_alive": {"type": "bool"},
            "door_locked": {"type": "bool"},
            "urgency": {"type": "float", "min": 0.0, "max": 1.0},
            "remaining_targets": {"type": "int", "min": 0},
            "time_remaining": {"type": "float", "min": 0.0},
            "sightings": {
                "type": "dict",
                "keys": [t.value for t in SightTag],
                "value": {"visible": "bool", "distance": "float", "angle": "float"},
            },
        }

    def action_spec(self) -> dict[str, Any]:
        return {
            "rotation": {"type": "float", "min": -1.0, "max": 1.0},
            "forward": {"type": "float", "min": -1.0, "max": 1.0},
        }

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def active_agents(self) -> list[AgentID]:
        if not self._started:
            return []
        return self._state.agent_ids()

    def is_done(self) -> bool:
        return self._done

    def termination_reason(self) -> TerminationReason | None:
        return self._termination

    @property
    def current_step(self) -> int:
        return self._state.step

    @property
    def phase(self) -> Phase:
        return self._state.phase

    @property
    def state(self) -> EpisodeState:
        return self._state

    @property
    def episode_counter(self) -> int:
        return self._state.episode

    @property
    def group_reward(self) -> float:
        """Group reward accumulated in the current episode."""
        return self._state.group_reward

    @property
    def targets(self) -> dict[TargetID, Target]:
        return self._targets

    @property
    def door(self) -> Door:
        return self._door

    @property
    def timer(self) -> EscapeTimer:
        return self._timer

    @property
    def stats(self) -> EpisodeStatsCollector:
        return self._stats

    def engine(self, agent_id: AgentID) -> RewardEngine:
        return self._engines[agent_id]
