"""Termination checks for the dungeon arena.

An episode ends when:
  1. the team escapes              (phase WON)
  2. it fails                      (phase FAILED, with the failure reason)
  3. the tick budget runs out      (truncation)
"""

from __future__ import annotations

from dungeon_sim.config.schema import DungeonConfig
from dungeon_sim.core.types import TerminationReason
from dungeon_sim.envs.dungeon.state import EpisodeState, Phase


def check_termination(
    state: EpisodeState,
    config: DungeonConfig,
    failure_reason: TerminationReason | None,
) -> TerminationReason | None:
    """Return the first applicable termination reason, or None."""
    if state.phase is Phase.WON:
        return TerminationReason.ESCAPED

    if state.phase is Phase.FAILED:
        return failure_reason or TerminationReason.TIMER_EXPIRED

    if state.step >= config.episode.max_steps:
        return TerminationReason.MAX_STEPS

    return None
