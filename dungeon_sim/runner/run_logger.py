"""Run artifact logger — writes structured files into storage/runs/{run_id}/.

Produces:
  - config.json   Full environment config snapshot
  - agents.csv    One row per agent per episode (append)
  - global.csv    One row per episode (append)
  - events.jsonl  Semantic event records (append)

Constructed once per run and handed to the environment.  The run
directory and the CSV headers are created lazily on the first write, so
a logger that never receives a row leaves nothing behind.
"""

from __future__ import annotations

import csv
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from dungeon_sim.metrics.definitions import AGENT_ROW_KEYS, GLOBAL_ROW_KEYS


class RunLogger:
    """Append-only statistics sink for one run."""

    def __init__(self, base_dir: str | Path, run_id: str, delimiter: str = ";") -> None:
        self._run_dir = Path(base_dir) / run_id
        self._delimiter = delimiter
        self._initialized = False
        self._agents_path = self._run_dir / "agents.csv"
        self._global_path = self._run_dir / "global.csv"
        self._events_path = self._run_dir / "events.jsonl"

    @property
    def run_dir(self) -> Path:
        return self._run_dir

    @property
    def initialized(self) -> bool:
        return self._initialized

    def _ensure_initialized(self) -> None:
        if self._initialized:
            return
        self._run_dir.mkdir(parents=True, exist_ok=True)
        for path, header in (
            (self._agents_path, AGENT_ROW_KEYS),
            (self._global_path, GLOBAL_ROW_KEYS),
        ):
            if not path.exists():
                with path.open("w", encoding="utf-8", newline="") as f:
                    csv.writer(f, delimiter=self._delimiter).writerow(header)
        self._initialized = True

    # ------------------------------------------------------------------
    # Config snapshot
    # ------------------------------------------------------------------

    def write_config(self, config_dict: dict[str, Any]) -> None:
        """Write the full environment config as config.json."""
        self._ensure_initialized()
        payload = {
            "written_at": datetime.now(timezone.utc).isoformat(),
            **config_dict,
        }
        (self._run_dir / "config.json").write_text(
            json.dumps(payload, indent=2, default=str), encoding="utf-8"
        )

    # ------------------------------------------------------------------
    # Episode rows (append)
    # ------------------------------------------------------------------

    def log_agent_episodes(self, rows: list[dict[str, Any]]) -> None:
        """Append per-agent episode rows to agents.csv."""
        if not rows:
            return
        self._append_rows(self._agents_path, AGENT_ROW_KEYS, rows)

    def log_global_episode(self, row: dict[str, Any]) -> None:
        """Append one episode row to global.csv."""
        if not row:
            return
        self._append_rows(self._global_path, GLOBAL_ROW_KEYS, [row])

    def _append_rows(
        self, path: Path, keys: list[str], rows: list[dict[str, Any]]
    ) -> None:
        self._ensure_initialized()
        with path.open("a", encoding="utf-8", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=keys, delimiter=self._delimiter)
            for row in rows:
                writer.writerow({k: ("" if row.get(k) is None else row[k]) for k in keys})

    # ------------------------------------------------------------------
    # Events (append)
    # ------------------------------------------------------------------

    def log_events(self, events: list[dict[str, Any]]) -> None:
        """Append semantic events to events.jsonl."""
        if not events:
            return
        self._ensure_initialized()
        with self._events_path.open("a", encoding="utf-8") as f:
            for evt in events:
                f.write(json.dumps(evt, default=str) + "\n")
