"""Experiment runner — drives the env loop as an async background task.

The environment owns statistics collection; the runner only hands it a
RunLogger as its sink and flushes the final episode when the run ends.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from dungeon_sim.agents import create_agent
from dungeon_sim.agents.base import BaseAgent
from dungeon_sim.config.schema import DungeonConfig
from dungeon_sim.core.seeding import derive_seed
from dungeon_sim.envs.dungeon import Action, DungeonEnvironment
from dungeon_sim.runner.run_logger import RunLogger

from backend.runner.run_manager import RunManager

logger = logging.getLogger(__name__)


async def run_experiment(
    config: DungeonConfig,
    run_id: str,
    storage_base: str | Path,
    mgr: RunManager,
    *,
    agent_policy: str = "pursuit",
    num_episodes: int = 1,
    step_delay: float = 0.0,
) -> None:
    """Play ``num_episodes`` episodes, persisting episode statistics.

    Designed to be launched as an ``asyncio.Task`` from the API layer.
    Checks ``mgr.stop_requested`` each step for graceful cancellation.
    """
    sink = RunLogger(storage_base, run_id, config.instrumentation.stats_delimiter)
    env = DungeonEnvironment(config, stats_sink=sink)

    # Persist config snapshot (include agent_policy for later inspection)
    config_dump = config.model_dump(mode="json")
    config_dump["_agent_policy"] = agent_policy
    sink.write_config(config_dump)

    mgr.running = True
    mgr.run_id = run_id
    mgr.num_episodes = num_episodes

    try:
        for episode in range(num_episodes):
            if mgr.stop_requested:
                break

            observations = env.reset()
            agents: dict[str, BaseAgent] = {}
            for i, aid in enumerate(env.active_agents()):
                agent = create_agent(agent_policy)
                agent.reset(aid, derive_seed(config.identity.seed, episode * len(observations) + i))
                agents[aid] = agent
            mgr.episode = env.episode_counter

            while not env.is_done():
                if mgr.stop_requested:
                    break

                actions: dict[str, Action] = {
                    aid: agents[aid].act(observations[aid]) for aid in env.active_agents()
                }
                results = env.step(actions)
                for aid, sr in results.items():
                    observations[aid] = sr.observation
                mgr.step = env.current_step

                # Yield to the event loop so status requests are served
                await asyncio.sleep(step_delay)

            reason = env.termination_reason()
            mgr.last_outcome = reason.value if reason else None
            logger.info(
                "Run %s episode %d finished: %s", run_id, env.episode_counter, mgr.last_outcome
            )

        env.flush_statistics()

    finally:
        mgr.running = False
