"""FastAPI entrypoint for the SeedCore hotel simulation."""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from packages.seedcore_core.sim.runner import UnknownAgentError

from .routers.llm import router as llm_router
from .routers.sim import router as sim_router
from .services.runtime_scheduler import (
    start_hotel_runtime_scheduler,
    stop_hotel_runtime_scheduler,
)
from .services.simulation import get_engine

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("seedcore_api")


def _truthy_env(name: str, default: bool = False) -> bool:
    raw = str(os.environ.get(name) or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}

app = FastAPI(title="SeedCore Hotel API", version="0.1.0")

_cors_origins = [o.strip() for o in os.environ.get("SEEDCORE_CORS_ORIGINS", "*").split(",")]
_cors_allow_credentials = "*" not in _cors_origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=_cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(sim_router)
app.include_router(llm_router)


@app.exception_handler(UnknownAgentError)
async def _unknown_agent_handler(request: Request, exc: UnknownAgentError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.on_event("startup")
def startup() -> None:
    logger.info("[STARTUP] SeedCore API starting up at %s", datetime.now(timezone.utc).isoformat())
    try:
        engine = get_engine()
    except Exception as e:
        logger.error("[STARTUP] Failed to build the hotel simulation: %s", e)
        raise
    logger.info(
        "[STARTUP] Hotel ready: %dx%d, %d agents",
        engine.hotel_map.width,
        engine.hotel_map.height,
        len(engine.agents()),
    )

    if _truthy_env("SEEDCORE_AUTOSTART_SCHEDULER", default=False):
        start_hotel_runtime_scheduler()
        logger.info("[STARTUP] Background hotel scheduler autostart is enabled")

    logger.info("[STARTUP] SeedCore API startup complete")


@app.on_event("shutdown")
def shutdown() -> None:
    stop_hotel_runtime_scheduler()


@app.get("/healthz")
def healthz() -> dict[str, str]:
    logger.debug("[HEALTH] Health check requested")
    return {"status": "ok"}
