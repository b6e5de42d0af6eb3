"""Phase transition table for the episode orchestrator.

  COMBAT       -> KEY_PHASE     every target defeated
  KEY_PHASE    -> ESCAPE_PHASE  an agent picks up the key
  ESCAPE_PHASE -> WON           the key holder opens the door
  any live     -> FAILED        timer expiry or a target reaching its lair

Terminal phases only leave through a full reset.
"""

from __future__ import annotations

import logging

from dungeon_sim.envs.dungeon.state import EpisodeState, Phase

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[Phase, frozenset[Phase]] = {
    Phase.COMBAT: frozenset({Phase.KEY_PHASE, Phase.FAILED}),
    Phase.KEY_PHASE: frozenset({Phase.ESCAPE_PHASE, Phase.FAILED}),
    Phase.ESCAPE_PHASE: frozenset({Phase.WON, Phase.FAILED}),
    Phase.WON: frozenset(),
    Phase.FAILED: frozenset(),
}


def try_transition(state: EpisodeState, target: Phase) -> bool:
    """Move ``state`` to ``target`` if the table allows it.

    Returns False, leaving the phase untouched, for a request that belongs
    to an episode that already moved on.
    """
    if target not in ALLOWED_TRANSITIONS[state.phase]:
        logger.debug("Discarding transition %s -> %s", state.phase.value, target.value)
        return False
    state.phase = target
    return True
