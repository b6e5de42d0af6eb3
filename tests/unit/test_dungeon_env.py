"""Unit tests for the dungeon environment core loop."""

import csv

import numpy as np
import pytest

from dungeon_sim.agents import RandomAgent
from dungeon_sim.config.defaults import default_config
from dungeon_sim.config.schema import DungeonConfig
from dungeon_sim.core.errors import ConfigurationError
from dungeon_sim.core.events import RecordingEffectSink, VisualEffect
from dungeon_sim.core.seeding import derive_seed
from dungeon_sim.core.types import TerminationReason
from dungeon_sim.envs.dungeon.actions import Action, CollisionCategory, CollisionEvent
from dungeon_sim.envs.dungeon.env import DungeonEnvironment
from dungeon_sim.envs.dungeon.geometry import planar_distance, vec3
from dungeon_sim.envs.dungeon.state import Phase
from dungeon_sim.runner.run_logger import RunLogger


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _quick_config(seed: int = 42, num_agents: int = 2, **episode_overrides) -> DungeonConfig:
    """Small fast config for testing."""
    cfg = default_config(seed=seed, num_agents=num_agents)
    episode = cfg.episode.model_copy(update=episode_overrides)
    return cfg.model_copy(update={"episode": episode})


def _hit(agent_id: str, target_id: str) -> CollisionEvent:
    return CollisionEvent(agent_id, CollisionCategory.TARGET, target_id)


def _key(agent_id: str) -> CollisionEvent:
    return CollisionEvent(agent_id, CollisionCategory.KEY)


def _door(agent_id: str) -> CollisionEvent:
    return CollisionEvent(agent_id, CollisionCategory.DOOR)


def _idle(env: DungeonEnvironment) -> dict:
    return {aid: Action() for aid in env.active_agents()}


# ---------------------------------------------------------------------------
# Construction / reset / step contract
# ---------------------------------------------------------------------------

class TestResetStepContract:
    def test_missing_binding_is_fatal(self):
        cfg = _quick_config(num_agents=3)
        cfg = cfg.model_copy(update={"agents": cfg.agents[:2]})
        with pytest.raises(ConfigurationError):
            DungeonEnvironment(cfg)

    def test_reset_returns_observations_for_all_agents(self):
        env = DungeonEnvironment(_quick_config(num_agents=3))
        obs = env.reset()

        assert sorted(obs) == ["agent_0", "agent_1", "agent_2"]
        for ob in obs.values():
            assert ob["step"] == 0
            assert ob["phase"] == "combat"
            assert ob["has_key"] is False
            assert ob["targets_alive"] is True
            assert ob["door_locked"] is True
            assert set(ob["sightings"]) == {"target", "key", "door", "agent"}
            assert set(ob) == set(env.observation_spec())

    def test_step_before_reset_raises(self):
        env = DungeonEnvironment(_quick_config())
        with pytest.raises(RuntimeError, match="reset"):
            env.step({})

    def test_step_returns_step_results(self):
        env = DungeonEnvironment(_quick_config())
        env.reset()
        results = env.step(_idle(env))

        assert set(results) == {"agent_0", "agent_1"}
        for sr in results.values():
            assert sr.done is False
            assert sr.observation["step"] == 1
            components = sr.info["reward_components"]
            assert "step" in components and "socialization" in components
            assert sr.reward == pytest.approx(sum(components.values()) + sr.info["group_reward"])

    def test_action_formats(self):
        env = DungeonEnvironment(_quick_config())
        env.reset()
        env.step({"agent_0": {"rotation": 0.5, "forward": 1.0}, "agent_1": (0.0, -1.0)})
        env.step({"agent_0": None})
        with pytest.raises(TypeError):
            env.step({"agent_0": "forward"})

    def test_begin_episode_counts_episodes(self):
        env = DungeonEnvironment(_quick_config())
        env.begin_episode()
        env.begin_episode()
        assert env.episode_counter == 2


# ---------------------------------------------------------------------------
# Episode flow
# ---------------------------------------------------------------------------

class TestEpisodeFlow:
    def test_kills_then_zero_second_timer_fails_once(self):
        effects = RecordingEffectSink()
        cfg = _quick_config(num_targets=2, target_lives=1, time_to_escape=0.0)
        group = cfg.group_rewards
        env = DungeonEnvironment(cfg, effects=effects)
        env.reset()

        env.dispatch_collision(_hit("agent_0", "target_0"))
        assert not env.targets["target_0"].alive
        assert env.phase is Phase.COMBAT

        env.dispatch_collision(_hit("agent_1", "target_1"))
        assert not env.targets["target_1"].alive
        assert env.phase is Phase.KEY_PHASE
        assert env.timer.active
        assert env.state.key.present
        assert all(not a.targets_alive for a in env.state.agents.values())

        before = env.group_reward
        assert before == pytest.approx(2 * group.kill_target + group.kill_all_bonus)

        results = env.step(_idle(env))
        assert env.phase is Phase.FAILED
        assert env.termination_reason() is TerminationReason.TIMER_EXPIRED
        assert env.group_reward == pytest.approx(before - group.fail_penalty)
        assert all(sr.done for sr in results.values())
        assert results["agent_0"].info["group_reward"] == pytest.approx(
            2 * group.kill_target + group.kill_all_bonus - group.fail_penalty
        )
        assert len(effects.of_kind(VisualEffect.FAILURE_SIGNAL)) == 1

        with pytest.raises(RuntimeError, match="done"):
            env.step(_idle(env))

    def test_key_holder_opens_door_and_wins(self):
        effects = RecordingEffectSink()
        cfg = _quick_config(num_targets=1, target_lives=1)
        group = cfg.group_rewards
        env = DungeonEnvironment(cfg, effects=effects)
        env.reset()

        env.dispatch_collision(_hit("agent_0", "target_0"))
        env.dispatch_collision(_key("agent_1"))
        assert env.phase is Phase.ESCAPE_PHASE
        assert env.state.agents["agent_1"].has_key
        assert not env.state.key.present

        # Without the key the door stays shut
        env.dispatch_collision(_door("agent_0"))
        assert env.phase is Phase.ESCAPE_PHASE
        assert env.door.locked

        env.dispatch_collision(_door("agent_1"))
        assert env.phase is Phase.WON
        assert not env.timer.active
        assert env.group_reward == pytest.approx(
            group.kill_target + group.kill_all_bonus + group.escape_bonus
        )
        assert len(effects.of_kind(VisualEffect.SUCCESS_SIGNAL)) == 1

        results = env.step(_idle(env))
        assert all(sr.done for sr in results.values())
        assert env.termination_reason() is TerminationReason.ESCAPED
        assert results["agent_0"].info["reward_components"]["closed_door"] == pytest.approx(
            cfg.rewards.hit_closed_door
        )
        assert "embarrassment" in results["agent_1"].info["reward_components"]

    def test_target_reaching_lair_fails(self):
        env = DungeonEnvironment(_quick_config())
        env.reset()
        env.targets["target_0"].reach_goal()
        assert env.phase is Phase.FAILED
        env.step(_idle(env))
        assert env.termination_reason() is TerminationReason.TARGET_ESCAPED

    def test_max_steps_truncates(self):
        env = DungeonEnvironment(_quick_config(max_steps=3))
        env.reset()
        for _ in range(3):
            env.step(_idle(env))
        assert env.is_done()
        assert env.termination_reason() is TerminationReason.MAX_STEPS
        assert env.phase is Phase.COMBAT

    def test_contacts_after_truncation_are_dropped(self):
        env = DungeonEnvironment(_quick_config(max_steps=1, num_targets=1, target_lives=1))
        env.reset()
        env.step(_idle(env))
        assert env.is_done()

        env.dispatch_collision(_hit("agent_0", "target_0"))
        assert env.targets["target_0"].alive
        assert env.phase is Phase.COMBAT
        assert not env.timer.active
        assert not env.state.key.present
        assert env.group_reward == 0.0
        assert env.stats.global_stats.failure_reason is TerminationReason.MAX_STEPS

    def test_target_walking_into_lair_fails(self):
        env = DungeonEnvironment(_quick_config(num_agents=1, num_targets=1))
        env.reset()
        target = env.targets["target_0"]
        lair = env.state.lair_position
        target.position = vec3(lair[0], lair[1], lair[2] + 0.1)

        results = env.step(_idle(env))
        assert env.phase is Phase.FAILED
        assert env.termination_reason() is TerminationReason.TARGET_ESCAPED
        assert results["agent_0"].done

    def test_inconsistent_events_are_discarded(self):
        env = DungeonEnvironment(_quick_config(target_lives=1))
        env.reset()

        # Key contact before the key exists
        env.dispatch_collision(_key("agent_0"))
        assert env.phase is Phase.COMBAT
        assert not env.state.agents["agent_0"].has_key

        # Second hit on an already dead target
        env.dispatch_collision(_hit("agent_0", "target_0"))
        env.dispatch_collision(_hit("agent_1", "target_0"))
        assert env.state.agents["agent_1"].hits_inflicted == 0
        assert env.state.remaining_targets == 1

        # Unknown ids
        env.dispatch_collision(_hit("agent_0", "target_99"))
        env.dispatch_collision(_hit("agent_99", "target_1"))
        assert env.targets["target_1"].alive

    def test_movement_contact_lands_a_hit(self):
        env = DungeonEnvironment(_quick_config(num_agents=1, num_targets=1))
        env.reset()
        target = env.targets["target_0"]
        agent = env.state.agents["agent_0"]
        target.position = vec3(0.0, 0.3, 0.0)
        agent.position = vec3(0.0, 0.3, -1.0)
        agent.heading = 0.0

        results = env.step({"agent_0": Action(forward=1.0)})
        assert target.lives == target.max_lives - 1
        assert agent.hits_inflicted == 1
        assert "hit" in results["agent_0"].info["reward_components"]

        # Staying in contact does not hit again
        env.step({"agent_0": Action()})
        assert target.lives == target.max_lives - 1

    def _clear_targets(self, env: DungeonEnvironment) -> None:
        for target, x in zip(env.targets.values(), (-6.0, 6.0)):
            target.position = vec3(x, 0.3, 0.0)

    def test_movement_into_obstacle_costs_hit_wall(self):
        cfg = _quick_config(num_agents=1)
        env = DungeonEnvironment(cfg)
        env.reset()
        self._clear_targets(env)
        agent = env.state.agents["agent_0"]
        # Just short of the column at (4, 4)
        agent.position = vec3(4.0, 0.3, 4.0 - 0.95)
        agent.heading = 0.0

        results = env.step({"agent_0": Action(forward=1.0)})
        assert results["agent_0"].info["reward_components"]["wall"] == pytest.approx(
            cfg.rewards.hit_wall
        )
        results = env.step({"agent_0": Action(forward=1.0)})
        assert "wall" not in results["agent_0"].info["reward_components"]

    def test_movement_into_peer_counts_collisions(self):
        env = DungeonEnvironment(_quick_config(num_agents=2))
        env.reset()
        self._clear_targets(env)
        first, second = env.state.agents["agent_0"], env.state.agents["agent_1"]
        first.position, first.heading = vec3(0.0, 0.3, 0.0), 0.0
        second.position, second.heading = vec3(0.0, 0.3, 0.7), 180.0

        results = env.step({"agent_0": Action(forward=1.0), "agent_1": Action()})
        assert "politeness" in results["agent_0"].info["reward_components"]
        assert "politeness" in results["agent_1"].info["reward_components"]
        assert env.stats.agent_stats("agent_0").peer_collisions == 1
        assert env.stats.agent_stats("agent_1").peer_collisions == 1

        env.step(_idle(env))
        assert env.stats.agent_stats("agent_0").peer_collisions == 1


# ---------------------------------------------------------------------------
# Urgency
# ---------------------------------------------------------------------------

class TestUrgency:
    def test_combat_urgency_tracks_target_progress(self):
        env = DungeonEnvironment(
            _quick_config(num_agents=1, num_targets=1, target_speed=2.0, time_to_escape=10.0)
        )
        env.reset()
        target = env.targets["target_0"]
        lair = env.state.lair_position
        start = planar_distance(target.position, lair)
        assert env.urgency == pytest.approx(0.0)

        seen = []
        for _ in range(5):
            env.step(_idle(env))
            seen.append(env.urgency)
        assert seen == sorted(seen)
        assert seen[-1] > 0.0
        assert seen[-1] == pytest.approx(1.0 - planar_distance(target.position, lair) / start)

    def test_timer_fraction_after_last_kill(self):
        env = DungeonEnvironment(
            _quick_config(num_agents=1, num_targets=1, target_lives=1, time_to_escape=10.0)
        )
        env.reset()
        env.dispatch_collision(_hit("agent_0", "target_0"))
        assert env.phase is Phase.KEY_PHASE
        assert env.urgency == pytest.approx(0.0)

        results = env.step(_idle(env))
        assert env.urgency == pytest.approx(0.01)
        assert results["agent_0"].observation["urgency"] == pytest.approx(0.01)

        env.dispatch_collision(_key("agent_0"))
        assert env.phase is Phase.ESCAPE_PHASE
        env.step(_idle(env))
        assert env.urgency == pytest.approx(0.02)

    def test_terminal_urgency_is_zero(self):
        env = DungeonEnvironment(_quick_config(num_targets=1, target_lives=1))
        env.reset()
        env.dispatch_collision(_hit("agent_0", "target_0"))
        env.dispatch_collision(_key("agent_0"))
        env.dispatch_collision(_door("agent_0"))
        assert env.phase is Phase.WON
        assert env.urgency == 0.0


# ---------------------------------------------------------------------------
# Reset
# ---------------------------------------------------------------------------

class TestReset:
    def test_reset_increments_episode_and_zeroes_counters(self):
        cfg = _quick_config(num_targets=1, target_lives=1)
        effects = RecordingEffectSink()
        env = DungeonEnvironment(cfg, effects=effects)
        env.reset()
        first = env.episode_counter

        env.dispatch_collision(_hit("agent_0", "target_0"))
        env.dispatch_collision(_key("agent_0"))
        env.step(_idle(env))

        env.reset()
        assert env.episode_counter == first + 1
        assert env.phase is Phase.COMBAT
        assert env.current_step == 0
        assert env.group_reward == 0.0
        assert env.door.locked
        assert not env.timer.active
        assert not env.state.key.present
        assert env.state.remaining_targets == cfg.episode.num_targets
        for agent in env.state.agents.values():
            assert agent.has_key is False
            assert agent.hits_inflicted == 0
            assert agent.targets_alive is True
        for target in env.targets.values():
            assert target.lives == target.max_lives
            assert len(target.attackers) == 0
        assert len(effects.of_kind(VisualEffect.RESET_SIGNAL)) == 2

    def test_reward_memory_cleared_once_per_reset(self):
        env = DungeonEnvironment(_quick_config())
        env.reset()
        env.reset()
        for aid in env.active_agents():
            assert env.engine(aid).memory.resets == 2

    def test_spawns_do_not_overlap(self):
        cfg = _quick_config(num_agents=5)
        env = DungeonEnvironment(cfg)
        for seed in range(20):
            env.reset(seed=seed)
            positions = [a.position for a in env.state.agents.values()]
            for i, a in enumerate(positions):
                for b in positions[:i]:
                    assert np.hypot(a[0] - b[0], a[2] - b[2]) >= cfg.arena.safe_spawn_radius


# ---------------------------------------------------------------------------
# Determinism
# ---------------------------------------------------------------------------

class TestDeterminism:
    def _rollout(self, seed: int, steps: int = 40) -> list:
        cfg = _quick_config(seed=seed, num_agents=3)
        env = DungeonEnvironment(cfg)
        obs = env.reset()
        agents = {}
        for i, aid in enumerate(env.active_agents()):
            agents[aid] = RandomAgent()
            agents[aid].reset(aid, derive_seed(seed, i))

        trace = [obs]
        for _ in range(steps):
            if env.is_done():
                break
            results = env.step({aid: agents[aid].act(obs[aid]) for aid in env.active_agents()})
            obs = {aid: sr.observation for aid, sr in results.items()}
            trace.append((obs, {aid: sr.reward for aid, sr in results.items()}))
        return trace

    def test_same_seed_same_trajectory(self):
        assert self._rollout(5) == self._rollout(5)

    def test_different_seed_different_layout(self):
        a = DungeonEnvironment(_quick_config(seed=1)).reset()
        b = DungeonEnvironment(_quick_config(seed=2)).reset()
        assert a["agent_0"]["position"] != b["agent_0"]["position"]


# ---------------------------------------------------------------------------
# Statistics sink
# ---------------------------------------------------------------------------

class TestStatisticsFlush:
    def _rows(self, path):
        with path.open(encoding="utf-8", newline="") as f:
            return list(csv.DictReader(f, delimiter=";"))

    def test_rows_flushed_once_per_episode(self, tmp_path):
        cfg = _quick_config(num_targets=1, target_lives=1, time_to_escape=0.0)
        sink = RunLogger(tmp_path, "run1")
        env = DungeonEnvironment(cfg, stats_sink=sink)

        env.reset()
        assert not sink.initialized

        env.dispatch_collision(_hit("agent_1", "target_0"))
        env.step(_idle(env))
        env.reset()

        agents = self._rows(sink.run_dir / "agents.csv")
        episodes = self._rows(sink.run_dir / "global.csv")
        assert len(agents) == 2
        assert len(episodes) == 1
        assert episodes[0]["win"] == "0"
        assert episodes[0]["failureReason"] == "timer_expired"
        by_agent = {r["personalityName"]: r for r in agents}
        assert by_agent[cfg.agents[1].personality.name]["targetsDefeated"] == "1"

        env.flush_statistics()
        env.flush_statistics()
        assert len(self._rows(sink.run_dir / "global.csv")) == 2
        assert (sink.run_dir / "events.jsonl").exists()
