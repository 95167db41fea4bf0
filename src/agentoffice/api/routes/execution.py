import uuid
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from agentoffice.api.streaming import SSE_HEADERS, stream_events
from agentoffice.core.domain.models import ExecutionMode

router = APIRouter()


class MissionRequest(BaseModel):
    """Request to execute a mission."""
    mission: Optional[str] = None
    mode: Optional[str] = None
    missionId: Optional[str] = None


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": message})


def _start_stream(request: Request, payload: MissionRequest):
    services = request.app.state.services

    if not payload.mission or not payload.mission.strip():
        return _bad_request("Mission content is required")

    try:
        mode = ExecutionMode.parse(payload.mode) if payload.mode else services.settings.mode
    except ValueError:
        return _bad_request("Invalid mode. Must be simulation, hybrid, or real")

    mission_id = payload.missionId or str(uuid.uuid4())

    async def producer(emit):
        await services.engine.execute(payload.mission, mode, mission_id, emit)

    return StreamingResponse(
        stream_events(producer),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/claude-team")
async def execute_mission_get(
    request: Request,
    mission: Optional[str] = None,
    mode: Optional[str] = None,
    missionId: Optional[str] = None,
):
    """Execute a mission and stream its events (EventSource-compatible)."""
    return _start_stream(request, MissionRequest(mission=mission, mode=mode, missionId=missionId))


@router.post("/claude-team")
async def execute_mission_post(request: Request, payload: MissionRequest):
    """Execute a mission and stream its events via SSE."""
    return _start_stream(request, payload)
