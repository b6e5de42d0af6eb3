"""Deterministic seeding utilities.

All randomness in the simulation (spawn layout, headings, scripted
policies) flows through seeded NumPy generators so that an experiment is
reproducible from its config seed alone.
"""

from __future__ import annotations

import numpy as np


def make_rng(seed: int | None = None) -> np.random.Generator:
    """Create a NumPy Generator from an explicit seed.

    If seed is None a fresh (non-reproducible) generator is returned.
    """
    return np.random.default_rng(seed)


def derive_seed(parent_seed: int, index: int) -> int:
    """Derive a child seed deterministically from a parent seed + index.

    Agents get ``derive_seed(root, i)`` for their policy RNG; the spawn
    solver takes its own stream from the same root so layouts do not shift
    when the number of agents changes.
    """
    ss = np.random.SeedSequence(parent_seed).spawn(index + 1)
    return int(ss[-1].generate_state(1)[0])


SPAWN_STREAM = 10_000


def spawn_seed(root_seed: int) -> int:
    """Seed reserved for the spawn/layout stream of an environment."""
    return derive_seed(root_seed, SPAWN_STREAM)
