"""Exit door — locked at reset, unlocked by the first agent carrying the key."""

from __future__ import annotations

from enum import Enum

import numpy as np

from dungeon_sim.core.events import DoorObserver
from dungeon_sim.core.types import AgentID


class DoorContact(Enum):
    """Outcome of an agent touching the door."""

    ESCAPED = "escaped"
    BLOCKED = "blocked"


class Door:
    def __init__(self) -> None:
        self.position = np.zeros(3)
        self.yaw = 0.0
        self._locked = True
        self._observers: list[DoorObserver] = []

    def subscribe(self, observer: DoorObserver) -> None:
        self._observers.append(observer)

    @property
    def locked(self) -> bool:
        return self._locked

    def lock(self) -> None:
        self._locked = True

    def place(self, position: np.ndarray, yaw: float) -> None:
        self.position = np.array(position, dtype=np.float64)
        self.yaw = yaw

    def contact(self, agent_id: AgentID, has_key: bool) -> DoorContact:
        """Resolve an agent touching the door.

        The key holder unlocks the door for everyone; once unlocked any
        contact is an escape.
        """
        if self._locked and has_key:
            self._locked = False

        if self._locked:
            return DoorContact.BLOCKED

        for observer in self._observers:
            observer.on_agent_escape(agent_id)
        return DoorContact.ESCAPED
