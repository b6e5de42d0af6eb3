"""PettingZoo ParallelEnv adapter for DungeonEnvironment.

Thin wrapper that translates between our DungeonEnvironment interface
and the PettingZoo ParallelEnv API (gymnasium spaces).
"""

from __future__ import annotations

from typing import Any

import numpy as np
from gymnasium import spaces
from pettingzoo import ParallelEnv

from dungeon_sim.config.schema import DungeonConfig
from dungeon_sim.core.types import TerminationReason
from dungeon_sim.envs.dungeon.actions import Action
from dungeon_sim.envs.dungeon.env import DungeonEnvironment
from dungeon_sim.envs.dungeon.perception import SightTag
from dungeon_sim.envs.dungeon.state import Phase

# Canonical ordering of sighting rows in the observation array.
SIGHT_ORDER: list[SightTag] = [SightTag.TARGET, SightTag.KEY, SightTag.DOOR, SightTag.AGENT]
PHASE_ORDER: list[Phase] = list(Phase)


class DungeonPettingZooParallelEnv(ParallelEnv):
    """PettingZoo ParallelEnv wrapper around DungeonEnvironment."""

    metadata = {"render_modes": [], "name": "dungeon_v0"}

    def __init__(self, config: DungeonConfig, **env_kwargs: Any) -> None:
        super().__init__()
        self._config = config
        self._env = DungeonEnvironment(config, **env_kwargs)
        self._num_agents = config.episode.num_agents

        self.possible_agents: list[str] = [
            f"agent_{i}" for i in range(self._num_agents)
        ]
        self.agents: list[str] = []

        self._action_spaces = {
            agent: self._build_action_space() for agent in self.possible_agents
        }
        self._observation_spaces = {
            agent: self._build_observation_space() for agent in self.possible_agents
        }

    @property
    def env(self) -> DungeonEnvironment:
        return self._env

    # ------------------------------------------------------------------
    # Space definitions
    # ------------------------------------------------------------------

    def _build_action_space(self) -> spaces.Box:
        # (rotation, forward)
        return spaces.Box(low=-1.0, high=1.0, shape=(2,), dtype=np.float32)

    def _build_observation_space(self) -> spaces.Dict:
        big = np.finfo(np.float32).max
        return spaces.Dict(
            {
                "phase": spaces.Discrete(len(PHASE_ORDER)),
                "position": spaces.Box(low=-big, high=big, shape=(3,), dtype=np.float32),
                # sin/cos of the heading
                "heading": spaces.Box(low=-1.0, high=1.0, shape=(2,), dtype=np.float32),
                # has_key, targets_alive, door_locked, urgency
                "flags": spaces.Box(low=0.0, high=1.0, shape=(4,), dtype=np.float32),
                "remaining_targets": spaces.Box(
                    low=0, high=self._config.episode.num_targets, shape=(1,), dtype=np.int32
                ),
                "time_remaining": spaces.Box(low=0.0, high=big, shape=(1,), dtype=np.float32),
                # (visible, distance, angle) per sight tag
                "sightings": spaces.Box(
                    low=np.array([[0.0, 0.0, -180.0]] * len(SIGHT_ORDER), dtype=np.float32),
                    high=np.array([[1.0, big, 180.0]] * len(SIGHT_ORDER), dtype=np.float32),
                    dtype=np.float32,
                ),
            }
        )

    def observation_space(self, agent: str) -> spaces.Dict:
        return self._observation_spaces[agent]

    def action_space(self, agent: str) -> spaces.Box:
        return self._action_spaces[agent]

    # ------------------------------------------------------------------
    # Observation conversion
    # ------------------------------------------------------------------

    def _convert_obs(self, raw_obs: dict[str, Any]) -> dict[str, Any]:
        """Convert a raw env observation dict into gymnasium-compatible arrays."""
        heading = np.radians(raw_obs["heading"])
        sightings = np.zeros((len(SIGHT_ORDER), 3), dtype=np.float32)
        for i, tag in enumerate(SIGHT_ORDER):
            visible, distance, angle = raw_obs["sightings"][tag.value]
            sightings[i] = (1.0 if visible else 0.0, distance, angle)

        phase = Phase(raw_obs["phase"])
        return {
            "phase": PHASE_ORDER.index(phase),
            "position": np.array(raw_obs["position"], dtype=np.float32),
            "heading": np.array([np.sin(heading), np.cos(heading)], dtype=np.float32),
            "flags": np.array(
                [
                    float(raw_obs["has_key"]),
                    float(raw_obs["targets_alive"]),
                    float(raw_obs["door_locked"]),
                    raw_obs["urgency"],
                ],
                dtype=np.float32,
            ),
            "remaining_targets": np.array([raw_obs["remaining_targets"]], dtype=np.int32),
            "time_remaining": np.array([raw_obs["time_remaining"]], dtype=np.float32),
            "sightings": sightings,
        }

    # ------------------------------------------------------------------
    # Action conversion
    # ------------------------------------------------------------------

    @staticmethod
    def _convert_action(gym_action: Any) -> Action:
        """Convert a gymnasium Box action into our Action dataclass."""
        arr = np.clip(np.asarray(gym_action, dtype=np.float64).reshape(-1), -1.0, 1.0)
        return Action(rotation=float(arr[0]), forward=float(arr[1]))

    # ------------------------------------------------------------------
    # ParallelEnv API
    # ------------------------------------------------------------------

    def reset(
        self,
        seed: int | None = None,
        options: dict | None = None,
    ) -> tuple[dict[str, dict], dict[str, dict]]:
        raw_obs = self._env.reset(seed=seed)
        self.agents = list(raw_obs.keys())

        observations = {a: self._convert_obs(raw_obs[a]) for a in self.agents}
        infos: dict[str, dict] = {a: {} for a in self.agents}
        return observations, infos

    def step(
        self, actions: dict[str, Any]
    ) -> tuple[
        dict[str, dict],
        dict[str, float],
        dict[str, bool],
        dict[str, bool],
        dict[str, dict],
    ]:
        env_actions = {
            aid: self._convert_action(act) for aid, act in actions.items()
        }

        step_results = self._env.step(env_actions)
        is_done = self._env.is_done()
        is_truncated = self._env.termination_reason() is TerminationReason.MAX_STEPS

        observations: dict[str, dict] = {}
        rewards: dict[str, float] = {}
        terminations: dict[str, bool] = {}
        truncations: dict[str, bool] = {}
        infos: dict[str, dict] = {}

        for aid in self.agents:
            sr = step_results[aid]
            observations[aid] = self._convert_obs(sr.observation)
            rewards[aid] = sr.reward
            terminations[aid] = sr.done and not is_truncated
            truncations[aid] = is_truncated
            infos[aid] = sr.info

        if is_done:
            self.agents = []

        return observations, rewards, terminations, truncations, infos

    def render(self) -> None:
        pass

    def close(self) -> None:
        self._env.flush_statistics()
