"""Row schemas and semantic event types for episode statistics.

Defines three categories:
  - Agent rows: one per agent per episode
  - Global rows: one per episode
  - Event types: semantic events (target defeated, key grabbed, ...)

All schemas are plain dicts describing expected keys and types,
used for documentation, CSV headers and optional runtime validation.
"""

from __future__ import annotations

from enum import Enum


# ---------------------------------------------------------------------------
# Agent rows (one record per agent per episode)
# ---------------------------------------------------------------------------

AGENT_ROW_SCHEMA: dict[str, str] = {
    "episode": "int",
    "personalityName": "str",
    "hitsInflicted": "int",
    "targetsDefeated": "int",
    "hasKey": "int",
    "timeToFindKey": "float",
    "peerCollisions": "int",
    "distanceTraveled": "float",
    "meanSpeed": "float",
    "meanDistanceFromPeers": "float",
    "meanDistanceFromTargets": "float",
    "idleTime": "float",
    "timeNearPeers": "float",
}

AGENT_ROW_KEYS: list[str] = list(AGENT_ROW_SCHEMA)


# ---------------------------------------------------------------------------
# Global rows (one record per episode)
# ---------------------------------------------------------------------------

GLOBAL_ROW_SCHEMA: dict[str, str] = {
    "episode": "int",
    "win": "int",
    "failureReason": "str | None",
    "episodeDuration": "float",
    "timeToDefeatAllTargets": "float",
    "timeToGrabKey": "float",
    "timeFromGrabToEscape": "float",
}

GLOBAL_ROW_KEYS: list[str] = list(GLOBAL_ROW_SCHEMA)

# Durations that never happened in an episode are reported with this value.
NOT_REACHED = -1.0


# ---------------------------------------------------------------------------
# Semantic event types
# ---------------------------------------------------------------------------

class EventType(Enum):
    """Semantic events emitted during an episode."""

    EPISODE_STARTED = "episode_started"
    TARGET_DEFEATED = "target_defeated"
    ALL_TARGETS_DEFEATED = "all_targets_defeated"
    KEY_GRABBED = "key_grabbed"
    TARGET_ESCAPED = "target_escaped"
    TIMER_EXPIRED = "timer_expired"
    ESCAPED = "escaped"
    SPAWN_RELAXED = "spawn_relaxed"


EVENT_SCHEMAS: dict[str, dict[str, str]] = {
    EventType.EPISODE_STARTED.value: {"event": "str", "episode": "int"},
    EventType.TARGET_DEFEATED.value: {
        "event": "str", "episode": "int", "time": "float",
        "target_id": "str", "agent_id": "str",
    },
    EventType.ALL_TARGETS_DEFEATED.value: {"event": "str", "episode": "int", "time": "float"},
    EventType.KEY_GRABBED.value: {
        "event": "str", "episode": "int", "time": "float", "agent_id": "str",
    },
    EventType.TARGET_ESCAPED.value: {
        "event": "str", "episode": "int", "time": "float", "target_id": "str",
    },
    EventType.TIMER_EXPIRED.value: {"event": "str", "episode": "int", "time": "float"},
    EventType.ESCAPED.value: {
        "event": "str", "episode": "int", "time": "float", "agent_id": "str",
    },
    EventType.SPAWN_RELAXED.value: {"event": "str", "episode": "int", "count": "int"},
}
