"""FastAPI application assembly."""

from __future__ import annotations

from fastapi import FastAPI

from backend.api.routes_config import router as config_router
from backend.api.routes_experiment import router as experiment_router

app = FastAPI(title="Dungeon Personality Simulation", version="0.1.0")

app.include_router(config_router)
app.include_router(experiment_router)


@app.get("/api/health")
async def health() -> dict:
    return {"status": "ok"}
