"""
Chat API Routes for the LeadFlow qualification engine.
"""

import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from llm.lead_chat import ConversationNotFound

from ..services import get_services

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Request / Response Models ─────────────────────────────────────

class ChatRequest(BaseModel):
    conversation_id: str
    message: str = Field(..., min_length=1, max_length=4000)


# ── Endpoints ─────────────────────────────────────────────────────

@router.post("/chat")
async def chat(request: ChatRequest):
    """
    Stream the assistant's reply to a lead's message as plain text.

    The reply is stored once the stream completes, and every few turns
    the conversation is re-scored in the background.
    """
    services = get_services()
    if not services.is_ready:
        raise HTTPException(status_code=503, detail="Chat service unavailable")

    try:
        chunks = await services.chat.reply(request.conversation_id, request.message)
    except ConversationNotFound:
        raise HTTPException(status_code=404, detail="Conversation not found")

    return StreamingResponse(chunks, media_type="text/plain; charset=utf-8")
