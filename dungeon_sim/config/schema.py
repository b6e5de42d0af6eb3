"""Configuration schema for the dungeon arena — single source of truth.

This module defines the Pydantic models that fully describe one dungeon
environment instance: the arena layout, the episode rules, the personality
bound to every agent and the complete table of reward constants.  The
backend imports these directly; no duplication.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ---------------------------------------------------------------------------
# Section 1: Environment Identity
# ---------------------------------------------------------------------------

class EnvironmentIdentity(BaseModel):
    """What this environment instance is."""

    environment_type: str = Field(
        default="dungeon",
        pattern=r"^dungeon$",
        description="Arena type. Only 'dungeon' is supported.",
    )
    environment_version: str = Field(
        default="0.1.0",
        description="Schema version for compatibility checks.",
    )
    seed: int = Field(
        ge=0,
        description="Root seed for full reproducibility.",
    )


# ---------------------------------------------------------------------------
# Section 2: Personalities and bindings
# ---------------------------------------------------------------------------

class Personality(BaseModel):
    """Five-trait OCEAN profile.  Immutable once loaded."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    openness: float = Field(ge=-1.0, le=1.0)
    conscientiousness: float = Field(ge=-1.0, le=1.0)
    extraversion: float = Field(ge=-1.0, le=1.0)
    agreeableness: float = Field(ge=-1.0, le=1.0)
    neuroticism: float = Field(ge=-1.0, le=1.0)


class AgentBinding(BaseModel):
    """Pairs an agent slot with its personality and the behaviour it trains."""

    personality: Personality
    behavior_name: str = Field(
        min_length=1,
        description="Name of the policy/behaviour this agent feeds.",
    )


# ---------------------------------------------------------------------------
# Section 3: Arena
# ---------------------------------------------------------------------------

class ObstacleConfig(BaseModel):
    """A cylindrical column that blocks movement and spawning."""

    x: float
    z: float
    radius: float = Field(gt=0.0)


class ArenaConfig(BaseModel):
    """Floor extents, margins and spawn parameters."""

    width: float = Field(default=20.0, gt=2.0, description="Extent along x.")
    depth: float = Field(default=20.0, gt=2.0, description="Extent along z.")
    center_x: float = 0.0
    center_z: float = 0.0
    floor_y: float = 0.0
    wall_margin: float = Field(default=1.0, ge=0.0)
    lair_margin: float = Field(default=0.7, ge=0.0)
    spawn_height_offset: float = Field(default=0.3, ge=0.0)
    lair_height_offset: float = Field(default=0.5, ge=0.0)
    door_height_offset: float = Field(default=0.9, ge=0.0)
    safe_spawn_radius: float = Field(
        default=0.8, gt=0.0,
        description="Minimum clearance between a new spawn and any blocker.",
    )
    max_spawn_attempts: int = Field(
        default=1000, ge=1,
        description="Samples per position before the radius is relaxed.",
    )
    spawn_relaxation: float = Field(
        default=0.75, gt=0.0, lt=1.0,
        description="Multiplier applied to the safety radius on exhaustion.",
    )
    min_safe_radius: float = Field(default=0.05, gt=0.0)
    obstacles: list[ObstacleConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def margins_fit_floor(self) -> ArenaConfig:
        for name in ("wall_margin", "lair_margin"):
            margin = getattr(self, name)
            if 2 * margin >= min(self.width, self.depth):
                raise ValueError(f"{name} ({margin}) leaves no room inside the arena.")
        return self

    @model_validator(mode="after")
    def obstacles_inside_floor(self) -> ArenaConfig:
        half_w, half_d = self.width / 2, self.depth / 2
        for obs in self.obstacles:
            if abs(obs.x - self.center_x) > half_w or abs(obs.z - self.center_z) > half_d:
                raise ValueError(f"Obstacle at ({obs.x}, {obs.z}) lies outside the floor.")
        return self


# ---------------------------------------------------------------------------
# Section 4: Episode rules
# ---------------------------------------------------------------------------

class EpisodeConfig(BaseModel):
    """Who exists and for how long."""

    num_agents: int = Field(ge=1, le=16)
    num_targets: int = Field(default=2, ge=1, le=16)
    target_lives: int = Field(default=3, ge=1)
    time_to_escape: float = Field(
        default=30.0, ge=0.0,
        description="Seconds on the escape timer once every target is down.",
    )
    tick_seconds: float = Field(default=0.1, gt=0.0, le=1.0)
    max_steps: int = Field(
        default=5000, ge=1,
        description="Ticks before the episode is truncated.",
    )
    target_speed: float = Field(
        default=0.25, ge=0.0,
        description="Units per second a target walks towards its lair.",
    )
    target_arrival_radius: float = Field(default=0.5, gt=0.0)


class BodyConfig(BaseModel):
    """Collision radii and kinematics of moving bodies."""

    agent_radius: float = Field(default=0.3, gt=0.0)
    target_radius: float = Field(default=0.5, gt=0.0)
    key_radius: float = Field(default=0.3, gt=0.0)
    door_radius: float = Field(default=0.8, gt=0.0)
    agent_speed: float = Field(default=2.0, gt=0.0)
    rotation_speed: float = Field(
        default=20.0, gt=0.0,
        description="Degrees turned per tick at full rotation input.",
    )
    idle_speed_threshold: float = Field(default=0.1, ge=0.0)
    vicinity_threshold: float = Field(default=1.0, gt=0.0)


class PerceptionConfig(BaseModel):
    """Cone-of-sight parameters for the default perception collaborator."""

    view_distance: float = Field(default=12.0, gt=0.0)
    field_of_view: float = Field(default=120.0, gt=0.0, le=360.0)


# ---------------------------------------------------------------------------
# Section 5: Rewards
# ---------------------------------------------------------------------------

class RewardConfig(BaseModel):
    """Per-agent reward constants.  Loaded once per run."""

    # Event bases
    hit_target: float = 2.0
    grab_key: float = 2.0
    hit_wall: float = -0.05
    hit_closed_door: float = -0.05
    step_penalty: float = -0.001

    # Social radius bounds (extraversion -1 -> introvert, +1 -> extrovert)
    introvert_preferred_distance: float = Field(default=3.0, gt=0.0)
    extrovert_preferred_distance: float = Field(default=1.0, gt=0.0)

    # Bravery / panic
    bravery_threshold: float = Field(default=5.0, gt=0.0)
    bravery_time_scale: float = Field(default=-0.5, lt=0.0)
    bravery_scale: float = 10.0
    bravery_log_scale: float = 2.0

    coop_scale: float = 0.5
    commitment_base_hit_percent: float = 0.2
    diligence_scale: float = 0.1
    exploration_scale: float = 0.001
    impatience_scale: float = Field(default=-0.02, le=0.0)
    anxiety_scale: float = 0.05
    recklessness_scale: float = 0.001

    # Collisions with peers
    self_control_scale: float = Field(default=-0.1, le=0.0)
    politeness_scale: float = Field(default=-0.1, le=0.0)
    panic_scale: float = Field(default=0.1, ge=0.0)


class GroupRewardConfig(BaseModel):
    """Rewards shared by the whole team."""

    kill_target: float = 1.0
    kill_all_bonus: float = 5.0
    escape_bonus: float = 10.0
    fail_penalty: float = Field(
        default=10.0, ge=0.0,
        description="Magnitude subtracted from the group reward on failure.",
    )


# ---------------------------------------------------------------------------
# Section 6: Instrumentation
# ---------------------------------------------------------------------------

class InstrumentationConfig(BaseModel):
    """What statistics to collect."""

    enable_episode_stats: bool = Field(
        default=True,
        description="Collect per-agent and global episode statistics rows.",
    )
    enable_event_log: bool = Field(
        default=True,
        description="Record semantic events (target defeated, key grabbed, ...).",
    )
    stats_delimiter: str = Field(default=";", min_length=1, max_length=1)


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------

class DungeonConfig(BaseModel):
    """Complete configuration for one dungeon environment instance.

    A single instance of this model fully defines a reproducible experiment.
    """

    identity: EnvironmentIdentity
    arena: ArenaConfig = ArenaConfig()
    episode: EpisodeConfig
    bodies: BodyConfig = BodyConfig()
    perception: PerceptionConfig = PerceptionConfig()
    agents: list[AgentBinding] = Field(default_factory=list)
    rewards: RewardConfig = RewardConfig()
    group_rewards: GroupRewardConfig = GroupRewardConfig()
    instrumentation: InstrumentationConfig = InstrumentationConfig()

    @model_validator(mode="after")
    def spawn_radius_covers_agents(self) -> DungeonConfig:
        if self.arena.safe_spawn_radius < self.bodies.agent_radius:
            raise ValueError(
                "safe_spawn_radius must be >= agent_radius "
                f"(got {self.arena.safe_spawn_radius} < {self.bodies.agent_radius})."
            )
        return self

    @model_validator(mode="after")
    def min_radius_below_safe_radius(self) -> DungeonConfig:
        if self.arena.min_safe_radius > self.arena.safe_spawn_radius:
            raise ValueError(
                "min_safe_radius cannot exceed safe_spawn_radius "
                f"({self.arena.min_safe_radius} > {self.arena.safe_spawn_radius})."
            )
        return self
