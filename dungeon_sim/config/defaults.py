"""Default dungeon configuration.

Provides a sensible baseline for quick experiments.
All values are explicit.
"""

from dungeon_sim.config.schema import (
    AgentBinding,
    ArenaConfig,
    DungeonConfig,
    EnvironmentIdentity,
    EpisodeConfig,
    InstrumentationConfig,
    ObstacleConfig,
    Personality,
)

# Reference profiles, one per dominant trait.
REFERENCE_PERSONALITIES: dict[str, Personality] = {
    "explorer": Personality(
        name="explorer", openness=0.9, conscientiousness=0.0,
        extraversion=0.3, agreeableness=0.2, neuroticism=-0.4,
    ),
    "diligent": Personality(
        name="diligent", openness=0.1, conscientiousness=0.9,
        extraversion=-0.2, agreeableness=0.4, neuroticism=-0.3,
    ),
    "extrovert": Personality(
        name="extrovert", openness=0.3, conscientiousness=-0.2,
        extraversion=0.9, agreeableness=0.3, neuroticism=0.0,
    ),
    "agreeable": Personality(
        name="agreeable", openness=0.0, conscientiousness=0.3,
        extraversion=0.2, agreeableness=0.9, neuroticism=-0.1,
    ),
    "neurotic": Personality(
        name="neurotic", openness=-0.3, conscientiousness=-0.4,
        extraversion=-0.6, agreeableness=-0.5, neuroticism=0.9,
    ),
}


def default_bindings(num_agents: int) -> list[AgentBinding]:
    """Cycle through the reference personalities, one behaviour per profile."""
    profiles = list(REFERENCE_PERSONALITIES.values())
    return [
        AgentBinding(
            personality=profiles[i % len(profiles)],
            behavior_name=profiles[i % len(profiles)].name,
        )
        for i in range(num_agents)
    ]


def default_config(seed: int = 42, num_agents: int = 3) -> DungeonConfig:
    """Return a complete, valid default config for the dungeon arena."""
    return DungeonConfig(
        identity=EnvironmentIdentity(seed=seed),
        arena=ArenaConfig(
            width=20.0,
            depth=20.0,
            obstacles=[
                ObstacleConfig(x=-4.0, z=-4.0, radius=0.6),
                ObstacleConfig(x=-4.0, z=4.0, radius=0.6),
                ObstacleConfig(x=4.0, z=-4.0, radius=0.6),
                ObstacleConfig(x=4.0, z=4.0, radius=0.6),
            ],
        ),
        episode=EpisodeConfig(
            num_agents=num_agents,
            num_targets=2,
            target_lives=3,
            time_to_escape=30.0,
            tick_seconds=0.1,
            max_steps=3000,
        ),
        agents=default_bindings(num_agents),
        instrumentation=InstrumentationConfig(),
    )
