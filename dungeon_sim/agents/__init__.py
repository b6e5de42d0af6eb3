"""Agent policies package — registry and factory for pluggable policies."""

from __future__ import annotations

from dungeon_sim.agents.base import BaseAgent
from dungeon_sim.agents.idle_agent import IdleAgent
from dungeon_sim.agents.pursuit_agent import PursuitAgent
from dungeon_sim.agents.random_agent import RandomAgent

POLICY_REGISTRY: dict[str, type[BaseAgent]] = {
    "random": RandomAgent,
    "pursuit": PursuitAgent,
    "idle": IdleAgent,
}

ALLOWED_POLICIES = frozenset(POLICY_REGISTRY)


def create_agent(policy: str) -> BaseAgent:
    """Instantiate an agent by policy name.

    Raises KeyError if the policy name is not registered.
    """
    cls = POLICY_REGISTRY[policy]
    return cls()


__all__ = [
    "BaseAgent",
    "ALLOWED_POLICIES",
    "POLICY_REGISTRY",
    "create_agent",
    "IdleAgent",
    "PursuitAgent",
    "RandomAgent",
]
