"""Dungeon escape environment package."""

from dungeon_sim.envs.dungeon.actions import Action, CollisionCategory, CollisionEvent
from dungeon_sim.envs.dungeon.env import DungeonEnvironment
from dungeon_sim.envs.dungeon.state import Phase

__all__ = ["Action", "CollisionCategory", "CollisionEvent", "DungeonEnvironment", "Phase"]
