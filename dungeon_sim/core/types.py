"""Framework-level types used across the dungeon simulation.

These are the shared vocabulary of the simulation framework.
Arena-specific types (actions, collision categories, phases) live in
``dungeon_sim.envs.dungeon``, not here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# Entity identity
# ---------------------------------------------------------------------------

AgentID = str  # unique within an environment, e.g. "agent_0"
TargetID = str  # unique within an environment, e.g. "target_0"


# ---------------------------------------------------------------------------
# Step result (what the environment returns per agent per step)
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class StepResult:
    """Per-agent output of a single environment tick."""

    observation: dict[str, Any]
    reward: float
    done: bool
    info: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Termination
# ---------------------------------------------------------------------------

class TerminationReason(Enum):
    """Why an episode ended."""

    ESCAPED = "escaped"
    TIMER_EXPIRED = "timer_expired"
    TARGET_ESCAPED = "target_escaped"
    MAX_STEPS = "max_steps"
