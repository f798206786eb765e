"""Surface Pilot Service - FastAPI Application Entry Point."""
from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request

from surface_pilot.api.v1 import agent, health, screenshots
from surface_pilot.core.config import Settings, settings as default_settings
from surface_pilot.core.logging import get_logger, setup_logging
from surface_pilot.services.runtime import AgentRuntime

logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    runtime: Optional[AgentRuntime] = None,
) -> FastAPI:
    """Build the application around one AgentRuntime."""
    settings = settings or default_settings
    runtime = runtime or AgentRuntime(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler for startup and shutdown."""
        setup_logging(settings.log_level)
        logger.info(f"Starting Surface Pilot ({settings.surface_kind})...")

        if settings.agent_autostart:
            runtime.schedule_autostart()

        try:
            yield
        finally:
            logger.info("Shutting down Surface Pilot...")
            try:
                await runtime.shutdown()
                logger.info("Agent stopped and surface released")
            except Exception as e:
                logger.error(f"Error during shutdown: {e}")

    app = FastAPI(
        title="Surface Pilot",
        description="Autonomous agent driving a remote VNC desktop or adb device",
        version=settings.service_version,
        lifespan=lifespan,
        docs_url="/v1/docs",
        redoc_url="/v1/redoc",
    )
    app.state.runtime = runtime

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        """Add request ID to all requests for tracing."""
        rid = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = rid
        response = await call_next(request)
        response.headers["x-request-id"] = rid
        return response

    app.include_router(health.router, tags=["health"])
    app.include_router(agent.router, prefix="/v1", tags=["agent"])
    app.include_router(screenshots.router, prefix="/v1", tags=["screenshots"])
    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run(
        "surface_pilot.main:app",
        host=default_settings.host,
        port=default_settings.port,
    )


if __name__ == "__main__":
    run()
