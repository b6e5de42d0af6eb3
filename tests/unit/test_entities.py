"""Tests for the arena entities: targets, door, escape timer, phase table."""

import numpy as np
import pytest

from dungeon_sim.config.defaults import default_config
from dungeon_sim.core.events import RecordingEffectSink, VisualEffect
from dungeon_sim.core.types import TerminationReason
from dungeon_sim.envs.dungeon.actions import Action
from dungeon_sim.envs.dungeon.door import Door, DoorContact
from dungeon_sim.envs.dungeon.state import EpisodeState, Phase
from dungeon_sim.envs.dungeon.target import Target
from dungeon_sim.envs.dungeon.termination import check_termination
from dungeon_sim.envs.dungeon.timer import EscapeTimer
from dungeon_sim.envs.dungeon.transition import try_transition


class _Recorder:
    """Observer that remembers every notification it receives."""

    def __init__(self) -> None:
        self.defeated: list[tuple[str, str]] = []
        self.escaped: list[str] = []
        self.agent_escapes: list[str] = []

    def on_target_defeated(self, target, attacker_id):
        self.defeated.append((target.target_id, attacker_id))

    def on_target_escaped(self, target):
        self.escaped.append(target.target_id)

    def on_agent_escape(self, agent_id):
        self.agent_escapes.append(agent_id)


# ---------------------------------------------------------------------------
# Target
# ---------------------------------------------------------------------------

class TestTarget:
    @pytest.mark.parametrize("lives", [1, 2, 5])
    def test_resurrect_then_hits_kill_with_single_attacker(self, lives):
        target = Target("target_0", lives)
        target.resurrect(np.array([1.0, 0.0, 2.0]))
        for _ in range(lives):
            target.take_hit("agent_0")
        assert target.lives == 0
        assert not target.alive
        assert len(target.attackers) == 1
        assert "agent_0" in target.attackers

    def test_resurrect_clears_attackers(self):
        target = Target("target_0", 3)
        target.take_hit("agent_0")
        target.take_hit("agent_1")
        assert len(target.attackers) == 2
        target.resurrect(np.array([4.0, 0.0, 4.0]))
        assert len(target.attackers) == 0
        assert target.lives == 3
        np.testing.assert_allclose(target.position, [4.0, 0.0, 4.0])

    def test_take_hit_returns_remaining_lives(self):
        target = Target("target_0", 3)
        assert target.take_hit("agent_0") == 2
        assert target.take_hit("agent_1") == 1

    def test_defeat_notifies_observers_once(self):
        recorder = _Recorder()
        target = Target("target_0", 1)
        target.subscribe(recorder)
        target.take_hit("agent_2")
        target.take_hit("agent_3")
        assert recorder.defeated == [("target_0", "agent_2")]
        assert "agent_3" not in target.attackers

    def test_contains_other_than(self):
        target = Target("target_0", 3)
        target.take_hit("agent_0")
        assert not target.attackers.contains_other_than("agent_0")
        target.take_hit("agent_1")
        assert target.attackers.contains_other_than("agent_0")

    def test_hit_requests_flash(self):
        sink = RecordingEffectSink()
        target = Target("target_0", 2, sink)
        target.take_hit("agent_0")
        assert [r.subject for r in sink.of_kind(VisualEffect.HIT_FLASH)] == ["target_0"]

    def test_reach_goal_only_while_alive(self):
        recorder = _Recorder()
        target = Target("target_0", 1)
        target.subscribe(recorder)
        target.reach_goal()
        assert recorder.escaped == ["target_0"]
        target.take_hit("agent_0")
        target.reach_goal()
        assert recorder.escaped == ["target_0"]

    def test_invalid_lives(self):
        with pytest.raises(ValueError):
            Target("target_0", 0)


# ---------------------------------------------------------------------------
# Door
# ---------------------------------------------------------------------------

class TestDoor:
    def test_locked_door_blocks_without_key(self):
        recorder = _Recorder()
        door = Door()
        door.subscribe(recorder)
        assert door.contact("agent_0", has_key=False) is DoorContact.BLOCKED
        assert door.locked
        assert recorder.agent_escapes == []

    def test_key_holder_unlocks_and_escapes(self):
        recorder = _Recorder()
        door = Door()
        door.subscribe(recorder)
        assert door.contact("agent_1", has_key=True) is DoorContact.ESCAPED
        assert not door.locked
        assert recorder.agent_escapes == ["agent_1"]

    def test_lock_relocks(self):
        door = Door()
        door.contact("agent_0", has_key=True)
        door.lock()
        assert door.locked


# ---------------------------------------------------------------------------
# Timer
# ---------------------------------------------------------------------------

class TestEscapeTimer:
    def test_zero_second_timer_fires_on_first_tick(self):
        fired: list[bool] = []
        timer = EscapeTimer()
        timer.on_expired(lambda: fired.append(True))
        timer.start(0.0)
        assert timer.tick(0.1) is True
        assert fired == [True]
        assert not timer.active

    def test_fires_exactly_once(self):
        fired: list[bool] = []
        timer = EscapeTimer()
        timer.on_expired(lambda: fired.append(True))
        timer.start(0.25)
        results = [timer.tick(0.1) for _ in range(10)]
        assert results.count(True) == 1
        assert len(fired) == 1

    def test_fires_on_the_tick_after_time_runs_out(self):
        timer = EscapeTimer()
        timer.start(0.25)
        assert [timer.tick(0.1) for _ in range(4)] == [False, False, False, True]

    def test_stopped_timer_never_fires(self):
        fired: list[bool] = []
        timer = EscapeTimer()
        timer.on_expired(lambda: fired.append(True))
        timer.start(0.0)
        timer.stop()
        assert timer.tick(0.1) is False
        assert fired == []

    def test_elapsed_fraction(self):
        timer = EscapeTimer()
        assert timer.elapsed_fraction == 0.0
        timer.start(1.0)
        timer.tick(0.25)
        assert timer.elapsed_fraction == pytest.approx(0.25)
        assert timer.remaining == pytest.approx(0.75)


# ---------------------------------------------------------------------------
# Phase table and termination
# ---------------------------------------------------------------------------

class TestPhaseTransitions:
    def test_happy_path(self):
        state = EpisodeState()
        assert try_transition(state, Phase.KEY_PHASE)
        assert try_transition(state, Phase.ESCAPE_PHASE)
        assert try_transition(state, Phase.WON)
        assert state.phase is Phase.WON

    def test_cannot_skip_key_phase(self):
        state = EpisodeState()
        assert not try_transition(state, Phase.WON)
        assert not try_transition(state, Phase.ESCAPE_PHASE)
        assert state.phase is Phase.COMBAT

    @pytest.mark.parametrize("phase", [Phase.COMBAT, Phase.KEY_PHASE, Phase.ESCAPE_PHASE])
    def test_any_live_phase_can_fail(self, phase):
        state = EpisodeState(phase=phase)
        assert try_transition(state, Phase.FAILED)

    @pytest.mark.parametrize("phase", [Phase.WON, Phase.FAILED])
    def test_terminal_phases_are_sticky(self, phase):
        state = EpisodeState(phase=phase)
        for other in Phase:
            assert not try_transition(state, other)


class TestTermination:
    def test_reasons(self):
        cfg = default_config()
        assert check_termination(EpisodeState(), cfg, None) is None
        assert check_termination(
            EpisodeState(phase=Phase.WON), cfg, None
        ) is TerminationReason.ESCAPED
        assert check_termination(
            EpisodeState(phase=Phase.FAILED), cfg, TerminationReason.TARGET_ESCAPED
        ) is TerminationReason.TARGET_ESCAPED
        assert check_termination(
            EpisodeState(step=cfg.episode.max_steps), cfg, None
        ) is TerminationReason.MAX_STEPS


class TestAction:
    def test_out_of_range_rejected(self):
        with pytest.raises(ValueError):
            Action(rotation=1.5)
        with pytest.raises(ValueError):
            Action(forward=-2.0)
