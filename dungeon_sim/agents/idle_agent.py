"""Idle agent — never moves.  Useful as a baseline and in tests."""

from __future__ import annotations

from dungeon_sim.envs.dungeon.actions import Action

from dungeon_sim.agents.base import BaseAgent


class IdleAgent(BaseAgent):
    def reset(self, agent_id: str, seed: int) -> None:
        pass

    def act(self, observation: dict) -> Action:
        return Action()
