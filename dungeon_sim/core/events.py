"""Observer channels and fire-and-forget visual effect requests.

Targets and the door never call the orchestrator directly.  They publish
to whatever observers subscribed at construction time, which keeps the
entity state machines free of any knowledge about phases or rewards.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from dungeon_sim.core.types import AgentID

if TYPE_CHECKING:
    from dungeon_sim.envs.dungeon.target import Target


class TargetObserver(Protocol):
    def on_target_defeated(self, target: Target, attacker_id: AgentID) -> None: ...

    def on_target_escaped(self, target: Target) -> None: ...


class DoorObserver(Protocol):
    def on_agent_escape(self, agent_id: AgentID) -> None: ...


# ---------------------------------------------------------------------------
# Visual effects (consumed by an external renderer)
# ---------------------------------------------------------------------------

class VisualEffect(Enum):
    HIT_FLASH = "hit_flash"
    SUCCESS_SIGNAL = "success_signal"
    FAILURE_SIGNAL = "failure_signal"
    RESET_SIGNAL = "reset_signal"


@dataclass(frozen=True, slots=True)
class EffectRequest:
    effect: VisualEffect
    subject: str | None = None


class EffectSink(Protocol):
    def request(self, effect: VisualEffect, subject: str | None = None) -> None: ...


class NullEffectSink:
    """Drops every request.  Used when nothing renders the arena."""

    def request(self, effect: VisualEffect, subject: str | None = None) -> None:
        return None


class RecordingEffectSink:
    """Keeps requests in arrival order; handy for replays and tests."""

    def __init__(self) -> None:
        self.requests: list[EffectRequest] = []

    def request(self, effect: VisualEffect, subject: str | None = None) -> None:
        self.requests.append(EffectRequest(effect=effect, subject=subject))

    def of_kind(self, effect: VisualEffect) -> list[EffectRequest]:
        return [r for r in self.requests if r.effect is effect]

    def clear(self) -> None:
        self.requests.clear()
