"""Latest-frame endpoint for pollers."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from surface_pilot.api.deps import get_runtime
from surface_pilot.services.runtime import AgentRuntime

router = APIRouter()
logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


@router.get("/screenshot")
async def get_screenshot(runtime: AgentRuntime = Depends(get_runtime)) -> Response:
    """Return the most recent composited frame.

    Served from the supervisor's cache; never touches the surface.
    """
    snapshot = runtime.supervisor.latest_frame()
    if snapshot is None:
        raise HTTPException(status_code=503, detail="No screenshot available yet")

    return Response(
        content=snapshot.image,
        media_type=snapshot.media_type,
        headers={**NO_CACHE_HEADERS, "X-Screenshot-Timestamp": str(snapshot.timestamp_ms)},
    )
