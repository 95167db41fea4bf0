from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from agentoffice.api.streaming import SSE_HEADERS, stream_events
from agentoffice.application.chat import ChatValidationError, validate_chat_request

router = APIRouter()


class ChatRequest(BaseModel):
    """User message addressed to one agent."""
    missionId: Optional[str] = None
    agentId: Optional[str] = None
    message: Optional[str] = None


@router.post("/chat")
async def chat(request: Request, payload: ChatRequest):
    """Send a message to an agent and stream the exchange via SSE."""
    try:
        validate_chat_request(payload.missionId, payload.agentId, payload.message)
    except ChatValidationError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})

    responder = request.app.state.services.chat

    async def producer(emit):
        await responder.respond(payload.missionId, payload.agentId, payload.message, emit)

    return StreamingResponse(
        stream_events(producer),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
