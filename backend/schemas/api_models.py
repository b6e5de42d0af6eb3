"""Request/response models for the API layer.

These are thin API-surface models only.  The actual config schema lives in
dungeon_sim.config.schema and is imported directly — no duplication.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Config endpoints
# ---------------------------------------------------------------------------

class ConfigListItem(BaseModel):
    """Summary returned when listing saved configs."""

    config_id: str
    seed: int
    num_agents: int
    num_targets: int
    personalities: list[str]


class ConfigCreatedResponse(BaseModel):
    config_id: str


# ---------------------------------------------------------------------------
# Run control
# ---------------------------------------------------------------------------

class StartRunRequest(BaseModel):
    config_id: str = Field(description="ID of a previously saved config.")
    agent_policy: Literal["random", "pursuit", "idle"] = Field(
        default="pursuit",
        description="Scripted policy to use for all agents in the run.",
    )
    num_episodes: int = Field(default=1, ge=1, le=10_000)


class StartRunResponse(BaseModel):
    run_id: str


class RunStatus(BaseModel):
    running: bool
    run_id: str | None = None
    episode: int | None = None
    num_episodes: int | None = None
    step: int | None = None
    last_outcome: str | None = None


class RunStats(BaseModel):
    run_id: str
    episodes: list[dict]
    agents: list[dict]
