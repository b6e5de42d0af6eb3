"""Personality-driven reward shaping for the dungeon arena.

Every trigger event (target hit, key grab, tick, collision) maps to a sum
of sub-terms, each coupling one OCEAN trait to a slice of the environment
snapshot:

  target hit   initiative (E), bravery (N), cooperation (A),
               commitment (C), heroism (A)
  key grab     embarrassment (E)
  tick         diligence (C), socialization (E), exploration (O),
               impatience (C), anxiety (N), recklessness (N)
  peer bump    self-control (C), politeness (A), panic (N)
  wall bump    constant

The module-level functions are pure.  ``RewardEngine`` composes them for
one agent and owns that agent's private memory (previous target, last hit
time, previous distances), which it only writes after every term of an
invocation has been read.  Each method returns ``(scalar, components)``;
the components dict is surfaced in step infos for logging.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

import numpy as np

from dungeon_sim.config.schema import Personality, RewardConfig
from dungeon_sim.core.types import AgentID, TargetID
from dungeon_sim.envs.dungeon.geometry import planar_distance
from dungeon_sim.envs.dungeon.perception import Sighting
from dungeon_sim.envs.dungeon.target import AttackerSet

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Snapshot and memory
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class RewardContext:
    """Read-only view of the environment for one agent at one instant."""

    agent_id: AgentID
    position: np.ndarray
    has_key: bool
    targets_alive: bool
    urgency: float
    elapsed: float
    peer_positions: tuple[np.ndarray, ...]
    exit_position: np.ndarray
    max_distance: float
    target_sighting: Sighting = field(default_factory=Sighting.hidden)


@dataclass(slots=True)
class RewardMemory:
    """Per-agent values carried between invocations within one episode."""

    previous_target: TargetID | None = None
    last_hit_time: float | None = None
    previous_team_error: float | None = None
    previous_distance_from_exit: float | None = None
    key_grab_position: np.ndarray | None = None
    max_distance_from_key_grab: float = 0.0
    resets: int = 0

    def clear(self) -> None:
        self.previous_target = None
        self.last_hit_time = None
        self.previous_team_error = None
        self.previous_distance_from_exit = None
        self.key_grab_position = None
        self.max_distance_from_key_grab = 0.0
        self.resets += 1


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

def lerp(a: float, b: float, t: float) -> float:
    t = min(1.0, max(0.0, t))
    return a + (b - a) * t


def preferred_radius(extraversion: float, rewards: RewardConfig) -> float:
    """Introverts (-1) want the far radius, extroverts (+1) the near one."""
    return lerp(
        rewards.introvert_preferred_distance,
        rewards.extrovert_preferred_distance,
        (extraversion + 1.0) / 2.0,
    )


def peer_density(
    position: np.ndarray, peers: Sequence[np.ndarray], radius: float
) -> float:
    """Fraction of peers closer than ``radius``; 0 with no peers."""
    if not peers:
        return 0.0
    near = sum(1 for p in peers if planar_distance(position, p) < radius)
    return near / len(peers)


def team_centroid_distance(
    position: np.ndarray, peers: Sequence[np.ndarray]
) -> float | None:
    if not peers:
        return None
    centroid = np.mean(np.stack(peers), axis=0)
    return planar_distance(position, centroid)


# ---------------------------------------------------------------------------
# Sub-terms
# ---------------------------------------------------------------------------

def density_reward(base: float, trait: float, density: float) -> float:
    """Social reward that flips sign with the trait; zero at density 0.5."""
    return base * trait * (2.0 * density - 1.0)


def bravery_reward(trait: float, time_since_hit: float, rewards: RewardConfig) -> float:
    """Time-decay reward for hitting again.

    Before the threshold a neurotic agent is punished, more so the sooner
    it strikes again; the early branch decays to exactly 0 at the
    threshold where the logarithmic branch takes over.
    """
    threshold = rewards.bravery_threshold
    k = rewards.bravery_time_scale
    if time_since_hit < threshold:
        decay = math.exp(k * time_since_hit) - math.exp(k * threshold)
        return -trait * decay * rewards.bravery_scale
    return trait * math.log(time_since_hit - threshold + 1.0) * rewards.bravery_log_scale


def commitment_reward(base_factor: float, trait: float, same_target: bool) -> float:
    return base_factor * trait * (1.0 if same_target else -1.0)


def cooperation_reward(
    base: float, trait: float, hit_by_others: bool, coop_scale: float
) -> float:
    if not hit_by_others and trait < 0:
        return base * (1.0 - trait)
    return base * trait * coop_scale


def heroism_reward(base: float, trait: float, urgency: float, lives_left: int) -> float:
    if lives_left != 0:
        return 0.0
    return urgency ** 2 * trait * base


def exploration_reward(
    trait: float, forward: float, sighting: Sighting, targets_alive: bool, scale: float
) -> float:
    if sighting.visible or forward <= 0 or not targets_alive:
        return 0.0
    return max(0.0, trait) * forward * scale


def impatience_reward(trait: float, forward: float, sighting: Sighting, scale: float) -> float:
    if not sighting.visible:
        return 0.0
    return scale * trait * forward * math.cos(math.radians(sighting.angle))


def anxiety_reward(trait: float, sighting: Sighting, max_distance: float, scale: float) -> float:
    if not sighting.visible:
        return 0.0
    normalized = sighting.distance / max_distance
    return scale * trait * (normalized - 0.5)


def recklessness_reward(trait: float, forward: float, urgency: float, scale: float) -> float:
    """Neurotic agents creep while calm and rush as urgency rises."""
    if trait <= 0:
        return 0.0
    return trait * forward * scale * (2.0 * urgency - 1.0)


def self_control_reward(conscientiousness: float, scale: float) -> float:
    return scale * conscientiousness


def politeness_reward(agreeableness: float, scale: float) -> float:
    return scale * agreeableness


def panic_reward(neuroticism: float, urgency: float, scale: float) -> float:
    if neuroticism <= 0:
        return 0.0
    return urgency * neuroticism * scale


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

def _safe(name: str, fn: Callable[..., float], *args: object) -> float:
    """Evaluate one term; arithmetic failures contribute nothing."""
    try:
        value = float(fn(*args))
    except (ArithmeticError, ValueError) as exc:
        logger.debug("Reward term %s dropped: %s", name, exc)
        return 0.0
    if not math.isfinite(value):
        logger.debug("Reward term %s dropped: non-finite %r", name, value)
        return 0.0
    return value


def _total(components: dict[str, float]) -> float:
    return float(sum(components.values()))


class RewardEngine:
    """Reward shaping for one agent with a fixed personality."""

    def __init__(self, personality: Personality, rewards: RewardConfig) -> None:
        self.personality = personality
        self._rewards = rewards
        self.memory = RewardMemory()

    def reset_counters(self) -> None:
        """Clear private memory.  Called once per episode by the orchestrator."""
        self.memory.clear()

    # ------------------------------------------------------------------
    # Target hit
    # ------------------------------------------------------------------

    def target_hit_reward(
        self,
        ctx: RewardContext,
        target_id: TargetID,
        attackers: AttackerSet,
        lives_left: int,
    ) -> tuple[float, dict[str, float]]:
        """Shaping for a hit that has already been applied to the target."""
        p, rw, mem = self.personality, self._rewards, self.memory
        radius = preferred_radius(p.extraversion, rw)
        since = ctx.elapsed - (mem.last_hit_time if mem.last_hit_time is not None else 0.0)

        components = {
            "hit": rw.hit_target,
            "initiative": _safe(
                "initiative", lambda: density_reward(
                    rw.hit_target, p.extraversion,
                    peer_density(ctx.position, ctx.peer_positions, radius),
                ),
            ),
            "bravery": _safe("bravery", bravery_reward, p.neuroticism, since, rw),
            "cooperation": _safe(
                "cooperation", cooperation_reward, rw.hit_target, p.agreeableness,
                attackers.contains_other_than(ctx.agent_id), rw.coop_scale,
            ),
            "commitment": _safe(
                "commitment", commitment_reward,
                rw.hit_target * rw.commitment_base_hit_percent, p.conscientiousness,
                target_id == mem.previous_target,
            ),
            "heroism": _safe(
                "heroism", heroism_reward, rw.hit_target, p.agreeableness,
                ctx.urgency, lives_left,
            ),
        }

        mem.last_hit_time = ctx.elapsed
        mem.previous_target = target_id
        return _total(components), components

    # ------------------------------------------------------------------
    # Key grab
    # ------------------------------------------------------------------

    def key_grab_reward(self, ctx: RewardContext) -> tuple[float, dict[str, float]]:
        p, rw, mem = self.personality, self._rewards, self.memory
        radius = preferred_radius(p.extraversion, rw)
        components = {
            "embarrassment": _safe(
                "embarrassment", lambda: density_reward(
                    rw.grab_key, p.extraversion,
                    peer_density(ctx.position, ctx.peer_positions, radius),
                ),
            ),
        }
        exit_distance = _safe(
            "exit_distance",
            lambda: planar_distance(ctx.position, ctx.exit_position) / ctx.max_distance,
        )

        mem.key_grab_position = np.array(ctx.position, dtype=np.float64)
        mem.max_distance_from_key_grab = 0.0
        mem.previous_distance_from_exit = exit_distance
        return _total(components), components

    # ------------------------------------------------------------------
    # Per tick
    # ------------------------------------------------------------------

    def step_reward(
        self, ctx: RewardContext, forward: float
    ) -> tuple[float, dict[str, float]]:
        """Per-tick shaping.  ``forward`` is the signed forward input in [-1, 1]."""
        p, rw = self.personality, self._rewards
        sighting = ctx.target_sighting

        diligence, diligence_update = self._diligence(ctx)
        social, social_update = self._socialization(ctx)
        components = {
            "step": rw.step_penalty,
            "diligence": diligence,
            "socialization": social,
            "exploration": _safe(
                "exploration", exploration_reward, p.openness, forward, sighting,
                ctx.targets_alive, rw.exploration_scale,
            ),
            "impatience": _safe(
                "impatience", impatience_reward, p.conscientiousness, forward, sighting,
                rw.impatience_scale,
            ),
            "anxiety": _safe(
                "anxiety", anxiety_reward, p.neuroticism, sighting, ctx.max_distance,
                rw.anxiety_scale,
            ),
            "recklessness": _safe(
                "recklessness", recklessness_reward, p.neuroticism, forward, ctx.urgency,
                rw.recklessness_scale,
            ),
        }

        diligence_update()
        social_update()
        return _total(components), components

    def _diligence(self, ctx: RewardContext) -> tuple[float, Callable[[], None]]:
        mem, rw = self.memory, self._rewards
        c = self.personality.conscientiousness
        if not ctx.has_key:
            return 0.0, lambda: None

        if c > 0:
            distance = _safe(
                "diligence",
                lambda: planar_distance(ctx.position, ctx.exit_position) / ctx.max_distance,
            )
            previous = mem.previous_distance_from_exit
            reward = 0.0 if previous is None else c * (previous - distance) * rw.diligence_scale

            def update() -> None:
                mem.previous_distance_from_exit = distance

            return reward, update

        if mem.key_grab_position is None:
            grab = np.array(ctx.position, dtype=np.float64)

            def update() -> None:
                mem.key_grab_position = grab

            return 0.0, update

        from_grab = planar_distance(ctx.position, mem.key_grab_position)
        delta = from_grab - mem.max_distance_from_key_grab
        if delta <= 0:
            return 0.0, lambda: None

        def update() -> None:
            mem.max_distance_from_key_grab = from_grab

        return -c * delta * rw.diligence_scale, update

    def _socialization(self, ctx: RewardContext) -> tuple[float, Callable[[], None]]:
        mem = self.memory
        e = self.personality.extraversion
        distance = team_centroid_distance(ctx.position, ctx.peer_positions)
        if distance is None:
            return 0.0, lambda: None

        error = abs(distance - preferred_radius(e, self._rewards))
        previous = mem.previous_team_error
        reward = 0.0 if previous is None else _safe("socialization", lambda: e * (previous - error))

        def update() -> None:
            mem.previous_team_error = error

        return reward, update

    # ------------------------------------------------------------------
    # Collisions
    # ------------------------------------------------------------------

    def obstacle_hit_reward(self) -> tuple[float, dict[str, float]]:
        components = {"wall": self._rewards.hit_wall}
        return _total(components), components

    def closed_door_reward(self) -> tuple[float, dict[str, float]]:
        components = {"closed_door": self._rewards.hit_closed_door}
        return _total(components), components

    def peer_hit_reward(self, ctx: RewardContext) -> tuple[float, dict[str, float]]:
        p, rw = self.personality, self._rewards
        components = {
            "self_control": self_control_reward(p.conscientiousness, rw.self_control_scale),
            "politeness": politeness_reward(p.agreeableness, rw.politeness_scale),
            "panic": _safe("panic", panic_reward, p.neuroticism, ctx.urgency, rw.panic_scale),
        }
        return _total(components), components
