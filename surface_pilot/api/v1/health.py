"""Health check endpoint."""
from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from surface_pilot.api.deps import get_runtime
from surface_pilot.services.runtime import AgentRuntime

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str  # "healthy", "degraded"
    service: str
    version: str
    surface: str
    connection: str
    agent_running: bool


@router.get("/health", response_model=HealthResponse)
async def health_check(runtime: AgentRuntime = Depends(get_runtime)) -> HealthResponse:
    """Liveness plus connection state; degraded while the agent runs disconnected."""
    connection = runtime.supervisor.state.value
    running = runtime.agent.running
    degraded = running and not runtime.supervisor.is_connected

    return HealthResponse(
        status="degraded" if degraded else "healthy",
        service=runtime.settings.service_name,
        version=runtime.settings.service_version,
        surface=runtime.settings.surface_kind,
        connection=connection,
        agent_running=running,
    )
