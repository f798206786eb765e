"""Agent control endpoints."""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from surface_pilot.api.deps import get_runtime
from surface_pilot.services.runtime import AgentRuntime

router = APIRouter()
logger = logging.getLogger(__name__)


class AgentStatusResponse(BaseModel):
    """Current agent and connection state."""

    running: bool
    iteration: int
    last_error: Optional[str] = None
    last_actions: list[dict[str, Any]] = []
    history_turns: int
    surface: str
    connection: str
    streaming: bool


class AgentControlResponse(BaseModel):
    """Result of a start/stop request."""

    success: bool
    running: bool
    message: Optional[str] = None


@router.get("/agent", response_model=AgentStatusResponse)
async def get_agent_status(runtime: AgentRuntime = Depends(get_runtime)) -> AgentStatusResponse:
    return AgentStatusResponse(**runtime.status())


async def _start(runtime: AgentRuntime) -> AgentControlResponse:
    if runtime.agent.running:
        return AgentControlResponse(success=True, running=True, message="Agent already running")
    try:
        await runtime.start_agent()
    except Exception as e:
        logger.error(f"Failed to start agent: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return AgentControlResponse(success=True, running=True, message="Agent started")


@router.post("/agent", response_model=AgentControlResponse)
async def start_agent(runtime: AgentRuntime = Depends(get_runtime)) -> AgentControlResponse:
    """Connect the surface if needed and start the agent loop."""
    return await _start(runtime)


@router.delete("/agent", response_model=AgentControlResponse)
async def stop_agent(runtime: AgentRuntime = Depends(get_runtime)) -> AgentControlResponse:
    """Stop the agent loop and release the surface."""
    stopped = await runtime.stop_agent()
    message = "Agent stopped" if stopped else "Agent stop requested; loop still finishing"
    return AgentControlResponse(success=True, running=False, message=message)


@router.api_route("/init", methods=["GET", "POST"], response_model=AgentControlResponse)
async def init_agent(runtime: AgentRuntime = Depends(get_runtime)) -> AgentControlResponse:
    """Idempotent start, used by deployment hooks."""
    return await _start(runtime)
