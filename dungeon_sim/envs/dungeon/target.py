"""Guarded target ("monster") state machine.

States: Alive(lives > 0) and Dead.

  take_hit(attacker)  Alive -> Alive | Dead, records the attacker
  resurrect(position) any   -> Alive, full lives, empty attacker set
  reach_goal()        Alive -> (escaped), notifies observers

Observers subscribe once; the target never knows who is listening.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

import numpy as np

from dungeon_sim.core.events import EffectSink, NullEffectSink, TargetObserver, VisualEffect
from dungeon_sim.core.types import AgentID, TargetID

logger = logging.getLogger(__name__)


class AttackerSet:
    """Distinct agents that damaged a target since its last resurrection."""

    __slots__ = ("_ids",)

    def __init__(self) -> None:
        self._ids: set[AgentID] = set()

    def add(self, agent_id: AgentID) -> None:
        self._ids.add(agent_id)

    def clear(self) -> None:
        self._ids.clear()

    def contains_other_than(self, agent_id: AgentID) -> bool:
        return any(other != agent_id for other in self._ids)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self) -> Iterator[AgentID]:
        return iter(sorted(self._ids))


class Target:
    """Health and attacker tracking for one guarded target."""

    def __init__(
        self,
        target_id: TargetID,
        max_lives: int,
        effects: EffectSink | None = None,
    ) -> None:
        if max_lives < 1:
            raise ValueError(f"max_lives must be >= 1, got {max_lives}")
        self.target_id = target_id
        self.max_lives = max_lives
        self.lives = max_lives
        self.position = np.zeros(3)
        self.attackers = AttackerSet()
        self._effects: EffectSink = effects or NullEffectSink()
        self._observers: list[TargetObserver] = []

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, observer: TargetObserver) -> None:
        self._observers.append(observer)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def alive(self) -> bool:
        return self.lives > 0

    def take_hit(self, attacker_id: AgentID) -> int:
        """Apply one hit and return the remaining lives.

        Hits on a dead target are stale collisions from the same tick and
        are ignored.
        """
        if not self.alive:
            logger.debug("Ignoring hit by %s on dead %s", attacker_id, self.target_id)
            return 0

        self.lives -= 1
        self.attackers.add(attacker_id)
        self._effects.request(VisualEffect.HIT_FLASH, self.target_id)

        if self.lives == 0:
            for observer in self._observers:
                observer.on_target_defeated(self, attacker_id)
        return self.lives

    def reach_goal(self) -> None:
        """The target arrived at its lair while still alive."""
        if not self.alive:
            return
        for observer in self._observers:
            observer.on_target_escaped(self)

    def resurrect(self, position: np.ndarray) -> None:
        self.position = np.array(position, dtype=np.float64)
        self.lives = self.max_lives
        self.attackers.clear()
