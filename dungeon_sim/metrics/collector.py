"""Episode statistics collector for the dungeon arena.

Accumulates, for the episode in progress:
  - one AgentEpisodeStats per agent (combat, key, movement, social metrics)
  - one GlobalEpisodeStats (outcome and phase durations)
  - semantic event records

Respects InstrumentationConfig flags.  Rows are produced on demand and
persisted by the run logger; the collector itself holds no file handles.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from dungeon_sim.config.schema import BodyConfig, InstrumentationConfig
from dungeon_sim.core.types import AgentID, TerminationReason
from dungeon_sim.envs.dungeon.geometry import planar_distance
from dungeon_sim.metrics.definitions import NOT_REACHED, EventType


class RunningMean:
    __slots__ = ("mean", "count")

    def __init__(self) -> None:
        self.mean = 0.0
        self.count = 0

    def add(self, value: float) -> None:
        # ((n - 1) * m_{n-1} + a_n) / n
        self.count += 1
        self.mean += (value - self.mean) / self.count


@dataclass(slots=True)
class AgentEpisodeStats:
    personality_name: str
    hits_inflicted: int = 0
    targets_defeated: int = 0
    has_key: bool = False
    time_to_find_key: float = NOT_REACHED
    peer_collisions: int = 0
    distance_traveled: float = 0.0
    elapsed: float = 0.0
    idle_time: float = 0.0
    time_near_peers: float = 0.0
    peer_distance: RunningMean = field(default_factory=RunningMean, repr=False)
    target_distance: RunningMean = field(default_factory=RunningMean, repr=False)

    def to_row(self, episode: int) -> dict[str, Any]:
        mean_speed = self.distance_traveled / self.elapsed if self.elapsed > 0 else 0.0
        return {
            "episode": episode,
            "personalityName": self.personality_name,
            "hitsInflicted": self.hits_inflicted,
            "targetsDefeated": self.targets_defeated,
            "hasKey": 1 if self.has_key else 0,
            "timeToFindKey": round(self.time_to_find_key, 3),
            "peerCollisions": self.peer_collisions,
            "distanceTraveled": round(self.distance_traveled, 3),
            "meanSpeed": round(mean_speed, 3),
            "meanDistanceFromPeers": round(self.peer_distance.mean, 3),
            "meanDistanceFromTargets": round(self.target_distance.mean, 3),
            "idleTime": round(self.idle_time, 3),
            "timeNearPeers": round(self.time_near_peers, 3),
        }


@dataclass(slots=True)
class GlobalEpisodeStats:
    win: bool = False
    failure_reason: TerminationReason | None = None
    episode_duration: float = 0.0
    all_targets_defeated_at: float | None = None
    key_spawned_at: float | None = None
    key_grabbed_at: float | None = None
    escaped_at: float | None = None

    def to_row(self, episode: int) -> dict[str, Any]:
        def span(start: float | None, end: float | None) -> float:
            if start is None or end is None:
                return NOT_REACHED
            return round(end - start, 3)

        return {
            "episode": episode,
            "win": 1 if self.win else 0,
            "failureReason": self.failure_reason.value if self.failure_reason else None,
            "episodeDuration": round(self.episode_duration, 3),
            "timeToDefeatAllTargets": span(0.0, self.all_targets_defeated_at),
            "timeToGrabKey": span(self.key_spawned_at, self.key_grabbed_at),
            "timeFromGrabToEscape": span(self.key_grabbed_at, self.escaped_at),
        }


class EpisodeStatsCollector:
    """Collects and structures statistics for one episode at a time."""

    def __init__(self, config: InstrumentationConfig, bodies: BodyConfig) -> None:
        self._config = config
        self._bodies = bodies
        self._episode = 0
        self._agents: dict[AgentID, AgentEpisodeStats] = {}
        self._global = GlobalEpisodeStats()
        self._events: list[dict[str, Any]] = []

    @property
    def enabled(self) -> bool:
        return self._config.enable_episode_stats

    @property
    def episode(self) -> int:
        return self._episode

    # ------------------------------------------------------------------
    # Episode lifecycle
    # ------------------------------------------------------------------

    def begin_episode(self, episode: int, personalities: Mapping[AgentID, str]) -> None:
        self._episode = episode
        self._agents = {aid: AgentEpisodeStats(name) for aid, name in personalities.items()}
        self._global = GlobalEpisodeStats()
        self._emit(EventType.EPISODE_STARTED)

    def agent_rows(self) -> list[dict[str, Any]]:
        if not self.enabled:
            return []
        return [s.to_row(self._episode) for s in self._agents.values()]

    def global_row(self) -> dict[str, Any]:
        if not self.enabled:
            return {}
        return self._global.to_row(self._episode)

    def agent_stats(self, agent_id: AgentID) -> AgentEpisodeStats:
        return self._agents[agent_id]

    @property
    def global_stats(self) -> GlobalEpisodeStats:
        return self._global

    # ------------------------------------------------------------------
    # Event hooks
    # ------------------------------------------------------------------

    def record_hit(self, agent_id: AgentID) -> None:
        self._agents[agent_id].hits_inflicted += 1

    def record_target_defeated(self, agent_id: AgentID, target_id: str, time: float) -> None:
        self._agents[agent_id].targets_defeated += 1
        self._emit(EventType.TARGET_DEFEATED, time=time, target_id=target_id, agent_id=agent_id)

    def record_all_targets_defeated(self, time: float) -> None:
        self._global.all_targets_defeated_at = time
        self._global.key_spawned_at = time
        self._emit(EventType.ALL_TARGETS_DEFEATED, time=time)

    def record_key_grab(self, agent_id: AgentID, time: float) -> None:
        stats = self._agents[agent_id]
        stats.has_key = True
        if self._global.key_spawned_at is not None:
            stats.time_to_find_key = time - self._global.key_spawned_at
        self._global.key_grabbed_at = time
        self._emit(EventType.KEY_GRABBED, time=time, agent_id=agent_id)

    def record_peer_collision(self, agent_id: AgentID) -> None:
        self._agents[agent_id].peer_collisions += 1

    def record_spawn_relaxations(self, count: int) -> None:
        if count:
            self._emit(EventType.SPAWN_RELAXED, count=count)

    def record_outcome(
        self,
        reason: TerminationReason,
        time: float,
        *,
        agent_id: AgentID | None = None,
        target_id: str | None = None,
    ) -> None:
        self._global.episode_duration = time
        if reason is TerminationReason.ESCAPED:
            self._global.win = True
            self._global.escaped_at = time
            self._emit(EventType.ESCAPED, time=time, agent_id=agent_id)
        elif reason is TerminationReason.TIMER_EXPIRED:
            self._global.failure_reason = reason
            self._emit(EventType.TIMER_EXPIRED, time=time)
        elif reason is TerminationReason.TARGET_ESCAPED:
            self._global.failure_reason = reason
            self._emit(EventType.TARGET_ESCAPED, time=time, target_id=target_id)
        else:
            self._global.failure_reason = reason

    # ------------------------------------------------------------------
    # Per tick
    # ------------------------------------------------------------------

    def update_tick(
        self,
        dt: float,
        elapsed: float,
        positions: Mapping[AgentID, np.ndarray],
        displacements: Mapping[AgentID, float],
        alive_targets: Sequence[np.ndarray],
    ) -> None:
        """Accumulate timed metrics after a tick has been resolved."""
        self._global.episode_duration = elapsed
        if not self.enabled:
            return
        for aid, stats in self._agents.items():
            position = positions[aid]
            moved = displacements.get(aid, 0.0)
            stats.elapsed = elapsed
            stats.distance_traveled += moved
            if moved / dt < self._bodies.idle_speed_threshold:
                stats.idle_time += dt

            peer_distances = [
                planar_distance(position, other)
                for oid, other in positions.items()
                if oid != aid
            ]
            if peer_distances:
                stats.peer_distance.add(sum(peer_distances) / len(peer_distances))
                if min(peer_distances) < self._bodies.vicinity_threshold:
                    stats.time_near_peers += dt

            if alive_targets:
                stats.target_distance.add(
                    sum(planar_distance(position, t) for t in alive_targets) / len(alive_targets)
                )

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _emit(self, event: EventType, **fields: Any) -> None:
        if not self._config.enable_event_log:
            return
        self._events.append({"event": event.value, "episode": self._episode, **fields})

    @property
    def events(self) -> list[dict[str, Any]]:
        """All semantic events collected so far."""
        return list(self._events)

    def drain_events(self) -> list[dict[str, Any]]:
        drained, self._events = self._events, []
        return drained
