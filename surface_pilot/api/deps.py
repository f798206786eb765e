"""FastAPI dependencies."""
from __future__ import annotations

from fastapi import Request

from surface_pilot.services.runtime import AgentRuntime


def get_runtime(request: Request) -> AgentRuntime:
    """Return the process runtime stored on the application state."""
    return request.app.state.runtime
