"""State representations for the dungeon arena.

All mutable simulation state lives here — explicit, typed, no unstructured dicts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from dungeon_sim.config.schema import Personality
from dungeon_sim.core.types import AgentID


class Phase(Enum):
    """Episode phases, in the order a successful episode visits them."""

    COMBAT = "combat"
    KEY_PHASE = "key_phase"
    ESCAPE_PHASE = "escape_phase"
    WON = "won"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (Phase.WON, Phase.FAILED)


@dataclass(slots=True)
class AgentState:
    """Per-agent mutable state.  Only the owning agent's events write it."""

    agent_id: AgentID
    personality: Personality
    behavior_name: str
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    heading: float = 0.0
    has_key: bool = False
    hits_inflicted: int = 0
    targets_alive: bool = True
    forward_speed: float = 0.0

    def reset(self, position: np.ndarray, heading: float) -> None:
        self.position = np.array(position, dtype=np.float64)
        self.heading = heading
        self.has_key = False
        self.hits_inflicted = 0
        self.targets_alive = True
        self.forward_speed = 0.0


@dataclass(slots=True)
class KeyState:
    """The key is either lying in the arena or held by an agent, never both."""

    position: np.ndarray | None = None
    grabbed: bool = False
    holder: AgentID | None = None

    @property
    def present(self) -> bool:
        return self.position is not None

    def spawn(self, position: np.ndarray) -> None:
        self.position = np.array(position, dtype=np.float64)
        self.grabbed = False
        self.holder = None

    def grab(self, agent_id: AgentID) -> None:
        self.position = None
        self.grabbed = True
        self.holder = agent_id

    def destroy(self) -> None:
        self.position = None
        self.grabbed = False
        self.holder = None


@dataclass(slots=True)
class EpisodeState:
    """Episode-wide bookkeeping owned by the orchestrator."""

    phase: Phase = Phase.COMBAT
    remaining_targets: int = 0
    step: int = 0
    elapsed: float = 0.0
    episode: int = 0
    key: KeyState = field(default_factory=KeyState)
    agents: dict[AgentID, AgentState] = field(default_factory=dict)
    lair_position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    group_reward: float = 0.0

    def agent_ids(self) -> list[AgentID]:
        return list(self.agents)

    def peer_positions(self, agent_id: AgentID) -> tuple[np.ndarray, ...]:
        return tuple(a.position for aid, a in self.agents.items() if aid != agent_id)
