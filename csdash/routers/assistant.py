"""Chat assistant API."""
from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from csdash.models import ChatRequest
from csdash.services import assistant

assistant_router = APIRouter(prefix="/api/assistant", tags=["assistant"])


@assistant_router.post("/chat")
async def chat(body: ChatRequest):
    """Answer a question about the loaded sessions."""
    if not body.message.strip():
        return JSONResponse(status_code=400, content={"error": "Message is required"})
    try:
        return await assistant.analyze(body.message, body.sessions)
    except assistant.AssistantUnavailable as e:
        return JSONResponse(status_code=503, content={"error": str(e)})
    except assistant.AssistantError as e:
        return JSONResponse(status_code=502, content={"error": str(e)})
