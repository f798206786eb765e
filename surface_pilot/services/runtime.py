"""Process-wide runtime wiring the supervisor, decision client and agent.

One AgentRuntime is built per process by the FastAPI lifespan and stored on
``app.state``; route handlers reach it through ``api.deps.get_runtime``.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from surface_pilot.adapters.factory import SurfaceFactory
from surface_pilot.core.config import Settings
from surface_pilot.core.llm.decision import DecisionClient
from surface_pilot.domain.agent.agent_loop import AgentLoop
from surface_pilot.domain.agent.conversation import ConversationWindow
from surface_pilot.domain.agent.prompts import build_system_prompt
from surface_pilot.services.compositor import FrameCompositor
from surface_pilot.services.supervisor import ConnectionSupervisor

logger = logging.getLogger(__name__)


class AgentRuntime:
    """Owns the single supervisor and agent loop of the process."""

    def __init__(
        self,
        settings: Settings,
        supervisor: Optional[ConnectionSupervisor] = None,
        agent: Optional[AgentLoop] = None,
    ):
        self.settings = settings
        self.factory = SurfaceFactory(settings)
        self.vocabulary = self.factory.create_vocabulary()

        self.supervisor = supervisor or ConnectionSupervisor(
            surface_factory=self.factory,
            compositor=FrameCompositor(),
            capture_interval=settings.capture_interval,
        )
        self.agent = agent or self._build_agent()
        self._autostart_task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()

    def _build_agent(self) -> AgentLoop:
        s = self.settings
        width, height = self.vocabulary.logical_size
        conversation = ConversationWindow(
            instruction=build_system_prompt(self.factory.family, width, height, s.goal),
            capacity=s.history_turns,
        )
        decision = DecisionClient(
            base_url=s.llm_base_url,
            model=s.llm_model,
            vocabulary=self.vocabulary,
            api_key=s.llm_api_key,
            temperature=s.llm_temperature,
            timeout=s.llm_timeout,
        )
        return AgentLoop(
            supervisor=self.supervisor,
            decision=decision,
            vocabulary=self.vocabulary,
            conversation=conversation,
            action_delay=s.action_delay_ms / 1000,
            screenshot_delay=s.screenshot_delay_ms / 1000,
            error_backoff=s.error_backoff,
            reconnect_backoff=s.reconnect_backoff,
            frame_source=s.frame_source,
        )

    def status(self) -> dict[str, Any]:
        return {
            **self.agent.status(),
            "surface": self.settings.surface_kind,
            "connection": self.supervisor.state.value,
            "streaming": self.supervisor.is_streaming,
        }

    async def start_agent(self) -> None:
        """Start the agent loop, connecting the surface if needed."""
        async with self._lock:
            await self.agent.start()

    async def stop_agent(self) -> bool:
        """Stop the loop and release the surface.

        An iteration still running after ``stop_timeout`` is cancelled before
        the surface is released.

        Returns:
            False if the loop did not finish within ``stop_timeout``
        """
        async with self._lock:
            self.agent.stop()
            stopped = await self.agent.wait_stopped(self.settings.stop_timeout)
            if not stopped:
                await self.agent.cancel()
            await self.supervisor.release()
            return stopped

    def schedule_autostart(self) -> asyncio.Task:
        """Start the agent in the background after ``agent_start_delay``.

        Failed starts are retried every ``agent_start_retry`` seconds until
        the agent runs or the runtime shuts down.
        """
        if self._autostart_task is None or self._autostart_task.done():
            self._autostart_task = asyncio.create_task(self._autostart())
        return self._autostart_task

    async def _autostart(self) -> None:
        s = self.settings
        logger.info(f"Agent autostart in {s.agent_start_delay}s")
        await asyncio.sleep(s.agent_start_delay)
        while not self.agent.running:
            try:
                await self.start_agent()
                logger.info("Agent autostarted")
            except Exception as e:
                logger.error(f"Agent autostart failed: {e}; retrying in {s.agent_start_retry}s")
                await asyncio.sleep(s.agent_start_retry)

    async def shutdown(self) -> None:
        task, self._autostart_task = self._autostart_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self.stop_agent()
