"""
Lead Management API Routes for the LeadFlow qualification engine.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from admission.controller import RATE_LIMITS
from lead_scoring.scoring_model import calculate_qualification_status

from ..middleware.rate_limit import rate_limit
from ..services import get_services

logger = logging.getLogger(__name__)

router = APIRouter()


# Models
class LeadCreate(BaseModel):
    """Lead intake request."""
    email: str = Field(..., min_length=3, max_length=255)
    name: Optional[str] = None
    company: Optional[str] = None
    industry: Optional[str] = None
    company_size: Optional[str] = None
    source: str = "widget"


class LeadCreated(BaseModel):
    lead_id: str
    conversation_id: str


class LeadScoreView(BaseModel):
    lead_id: str
    company_fit: int
    budget_alignment: int
    timeline: int
    authority: int
    need: int
    engagement: int
    total: int
    reasoning: Optional[str]
    updated_at: Optional[str]
    qualification: Dict[str, str]


class ConversationStarted(BaseModel):
    lead_id: str
    conversation_id: str


class ConversationCompleted(BaseModel):
    conversation_id: str
    lead_id: str
    status: str
    summary: Optional[str]
    score: Dict[str, Any]


def _services():
    services = get_services()
    if not services.is_ready:
        raise HTTPException(status_code=503, detail="Qualification service unavailable")
    return services


# Endpoints
@router.post(
    "/leads",
    response_model=LeadCreated,
    status_code=201,
    dependencies=[Depends(rate_limit(RATE_LIMITS["REGISTRATION"]))],
)
async def create_lead(lead: LeadCreate):
    """Register a lead and open its qualification conversation."""
    lead_id, conversation_id = await _services().chat.register_lead(**lead.model_dump())
    return LeadCreated(lead_id=lead_id, conversation_id=conversation_id)


@router.post("/leads/{lead_id}/conversations", response_model=ConversationStarted, status_code=201)
async def start_conversation(lead_id: str):
    """Open a new qualification conversation for a returning lead."""
    conversation_id = await _services().chat.start_conversation(lead_id)
    if conversation_id is None:
        raise HTTPException(status_code=404, detail="Lead not found")
    return ConversationStarted(lead_id=lead_id, conversation_id=conversation_id)


@router.get("/leads/{lead_id}/score", response_model=LeadScoreView)
async def get_lead_score(lead_id: str):
    """Current score for a lead, with its follow-up priority."""
    score = await _services().qualification.get_lead_score(lead_id)
    if score is None:
        raise HTTPException(status_code=404, detail="Lead score not found")
    return LeadScoreView(**score, qualification=calculate_qualification_status(score["total"]))


@router.post("/conversations/{conversation_id}/complete", response_model=ConversationCompleted)
async def complete_conversation(conversation_id: str):
    """Summarize, run a final scoring pass, and close the conversation."""
    result = await _services().qualification.complete_conversation(conversation_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return ConversationCompleted(**result)
