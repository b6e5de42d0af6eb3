"""Run control endpoints — start, stop, status, episode statistics."""

from __future__ import annotations

import asyncio
import csv
import json
import uuid
from pathlib import Path

from fastapi import APIRouter, HTTPException

from dungeon_sim.config.schema import DungeonConfig

from backend.runner.experiment_runner import run_experiment
from backend.runner.run_manager import manager
from backend.schemas.api_models import RunStats, RunStatus, StartRunRequest, StartRunResponse

router = APIRouter(prefix="/api/runs", tags=["runs"])

CONFIGS_DIR = Path("storage/configs")
RUNS_DIR = Path("storage/runs")


@router.post("/start", response_model=StartRunResponse)
async def start_run(req: StartRunRequest) -> StartRunResponse:
    """Start a new run from a saved config. One run at a time."""
    if manager.running:
        raise HTTPException(status_code=409, detail="A run is already in progress.")

    config_path = CONFIGS_DIR / f"{req.config_id}.json"
    if not config_path.exists():
        raise HTTPException(status_code=404, detail=f"Config {req.config_id} not found.")

    config = DungeonConfig.model_validate_json(config_path.read_text(encoding="utf-8"))

    run_id = uuid.uuid4().hex[:12]
    manager.reset_state()

    task = asyncio.create_task(
        run_experiment(
            config, run_id, RUNS_DIR, manager,
            agent_policy=req.agent_policy,
            num_episodes=req.num_episodes,
        )
    )
    manager.attach_task(task)

    # Give the task a moment to initialise so status is immediately consistent
    await asyncio.sleep(0)

    return StartRunResponse(run_id=run_id)


@router.post("/stop")
async def stop_run() -> dict:
    """Gracefully stop the current run."""
    if not manager.running:
        raise HTTPException(status_code=409, detail="No run is currently active.")
    manager.request_stop()
    return {"detail": "Stop requested.", "run_id": manager.run_id}


@router.get("/status", response_model=RunStatus)
async def run_status() -> RunStatus:
    return RunStatus(
        running=manager.running,
        run_id=manager.run_id,
        episode=manager.episode if manager.running else None,
        num_episodes=manager.num_episodes if manager.running else None,
        step=manager.step if manager.running else None,
        last_outcome=manager.last_outcome,
    )


def _run_delimiter(run_dir: Path) -> str:
    config_path = run_dir / "config.json"
    if not config_path.exists():
        return ";"
    data = json.loads(config_path.read_text(encoding="utf-8"))
    return data.get("instrumentation", {}).get("stats_delimiter", ";")


def _read_rows(path: Path, delimiter: str) -> list[dict]:
    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", newline="") as f:
        return list(csv.DictReader(f, delimiter=delimiter))


@router.get("/{run_id}/stats", response_model=RunStats)
async def run_stats(run_id: str) -> RunStats:
    """Return the per-episode and per-agent rows persisted for a run."""
    run_dir = RUNS_DIR / run_id
    if not run_dir.is_dir():
        raise HTTPException(status_code=404, detail=f"Run {run_id} not found.")
    delimiter = _run_delimiter(run_dir)
    return RunStats(
        run_id=run_id,
        episodes=_read_rows(run_dir / "global.csv", delimiter),
        agents=_read_rows(run_dir / "agents.csv", delimiter),
    )
