"""Hotel simulation endpoints."""

from __future__ import annotations

from typing import Optional
import logging

from fastapi import APIRouter, HTTPException, Request, Response
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from packages.seedcore_core.llm.speech import SpeechErrorCode
from packages.seedcore_core.maps.validator import validate_hotel_map
from packages.seedcore_core.sim.world import LOG_MOODS, Atmosphere, CorePlane

from ..services.runtime_scheduler import (
    hotel_runtime_scheduler_status,
    start_hotel_runtime_scheduler,
    stop_hotel_runtime_scheduler,
)
from ..services.simulation import get_engine


logger = logging.getLogger("seedcore_api.sim")
router = APIRouter(prefix="/api/v1/sim", tags=["sim"])
LOG_MOOD_PATTERN = "^(" + "|".join(LOG_MOODS) + ")$"


class TickRequest(BaseModel):
    steps: int = Field(default=1, ge=1, le=240)


class AtmosphereRequest(BaseModel):
    atmosphere: Atmosphere


class AiToggleRequest(BaseModel):
    enabled: bool


class AppendLogRequest(BaseModel):
    plane: CorePlane = CorePlane.DIRECTOR
    message: str = Field(min_length=1, max_length=500)
    mood: str = Field(default="NEUTRAL", pattern=LOG_MOOD_PATTERN)


class RuntimeStartRequest(BaseModel):
    tick_interval_seconds: Optional[float] = Field(default=None, ge=0.05, le=60)
    sweep_interval_seconds: Optional[float] = Field(default=None, ge=0.05, le=3600)


@router.get("/map")
def get_map() -> dict:
    return {"map": get_engine().hotel_map.to_dict()}


@router.get("/map/validation")
def get_map_validation() -> dict:
    errors, warnings, summary = validate_hotel_map(get_engine().hotel_map)
    return {"ok": not errors, "errors": errors, "warnings": warnings, "summary": summary}


@router.get("/state")
def get_state() -> dict:
    return {"state": get_engine().snapshot()}


@router.post("/tick")
def tick(req: Optional[TickRequest] = None) -> dict:
    steps = req.steps if req is not None else 1
    state = get_engine().tick(steps)
    logger.debug("[TICK] Manual tick of %d step(s) -> step %s", steps, state["step"])
    return {"ok": True, "steps": steps, "state": state}


@router.post("/agents/{agent_id}/converse")
def converse(agent_id: str) -> dict:
    handoff = get_engine().begin_conversation(agent_id)
    if handoff is None:
        raise HTTPException(status_code=409, detail=f"Agent '{agent_id}' cannot hold a conversation")
    return {"ok": True, **handoff}


@router.post("/agents/{agent_id}/exit-conversation")
def exit_conversation(agent_id: str) -> dict:
    engine = get_engine()
    released = engine.exit_conversation(agent_id)
    agent = engine.agent(agent_id)
    return {"ok": True, "released": released, "agent": agent.to_dict()}


@router.post("/dialogue/sweep")
def sweep_dialogue() -> dict:
    engine = get_engine()
    queued = engine.sweep_dialogue()
    return {"ok": True, "ai_enabled": engine.ai_enabled, "queued": queued}


@router.put("/atmosphere")
def put_atmosphere(req: AtmosphereRequest) -> dict:
    value = get_engine().set_atmosphere(req.atmosphere)
    return {"ok": True, "atmosphere": value.value}


@router.put("/ai")
def put_ai(req: AiToggleRequest) -> dict:
    return {"ok": True, "ai_enabled": get_engine().set_ai_enabled(req.enabled)}


@router.post("/logs")
def post_log(req: AppendLogRequest) -> dict:
    entry = get_engine().append_log(req.plane, req.message, mood=req.mood)
    return {"ok": True, "log": entry}


@router.get("/audio/{audio_id}")
def get_audio(audio_id: str) -> Response:
    clip = get_engine().get_audio(audio_id)
    if clip is None:
        raise HTTPException(status_code=404, detail=f"Audio clip not found: {audio_id}")
    return Response(content=clip.data, media_type=clip.content_type)


_TRANSCRIPTION_ERROR_STATUS = {
    SpeechErrorCode.INVALID_INPUT: 400,
    SpeechErrorCode.QUOTA_EXCEEDED: 429,
    SpeechErrorCode.API_KEY_MISSING: 503,
}


@router.post("/speech/transcribe")
async def transcribe_speech(request: Request, filename: str = "audio.wav") -> dict:
    """Transcribe the raw audio request body; its Content-Type is forwarded."""
    audio = await request.body()
    content_type = request.headers.get("content-type") or "audio/wav"
    result = await run_in_threadpool(
        get_engine().transcribe,
        audio,
        filename=filename,
        content_type=content_type,
    )
    if result.text is None:
        code = result.error or SpeechErrorCode.GENERIC_ERROR
        raise HTTPException(
            status_code=_TRANSCRIPTION_ERROR_STATUS.get(code, 502),
            detail={"error": code.value, "message": result.message},
        )
    return {"ok": True, "text": result.text}


@router.get("/speech/voices")
def speech_voices() -> dict:
    return {"voices": get_engine().list_voices()}


@router.post("/runtime/start")
def runtime_start(req: Optional[RuntimeStartRequest] = None) -> dict:
    req = req or RuntimeStartRequest()
    started = start_hotel_runtime_scheduler(
        tick_interval_seconds=req.tick_interval_seconds,
        sweep_interval_seconds=req.sweep_interval_seconds,
    )
    return {"ok": True, "started": started, "scheduler": hotel_runtime_scheduler_status()}


@router.post("/runtime/stop")
def runtime_stop() -> dict:
    stopped = stop_hotel_runtime_scheduler()
    return {"ok": True, "stopped": stopped, "scheduler": hotel_runtime_scheduler_status()}


@router.get("/runtime/status")
def runtime_status() -> dict:
    return {"scheduler": hotel_runtime_scheduler_status()}
