"""
AI provider status and switching.
"""

import logging
from typing import List

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from ..services import get_services

logger = logging.getLogger(__name__)

router = APIRouter()


class ProviderState(BaseModel):
    name: str
    enabled: bool
    current: bool


class ProviderStatusResponse(BaseModel):
    available_providers: List[str]
    provider_status: List[ProviderState]
    total_providers: int
    has_backup: bool


class SwitchProviderRequest(BaseModel):
    provider_name: str = Field(..., min_length=1)


class SwitchProviderResponse(BaseModel):
    success: bool
    message: str
    current_provider: str


def _orchestrator():
    orchestrator = get_services().orchestrator
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="No AI providers configured")
    return orchestrator


@router.get("/ai/providers", response_model=ProviderStatusResponse)
async def get_provider_status():
    """List every provider, whether it is enabled, and which one is tried first."""
    orchestrator = _orchestrator()
    available = [p.name for p in orchestrator.providers]
    return ProviderStatusResponse(
        available_providers=available,
        provider_status=[ProviderState(**s) for s in orchestrator.status()],
        total_providers=len(available),
        has_backup=len(available) > 1,
    )


@router.post("/ai/providers/switch", response_model=SwitchProviderResponse)
async def switch_provider(request: SwitchProviderRequest):
    """Make the named provider the first one tried."""
    if not _orchestrator().switch_to(request.provider_name):
        raise HTTPException(status_code=400, detail="Provider not found or not available")

    return SwitchProviderResponse(
        success=True,
        message=f"Switched to {request.provider_name}",
        current_provider=request.provider_name,
    )
