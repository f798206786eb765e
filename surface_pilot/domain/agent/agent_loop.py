"""AgentLoop - continuous observe/decide/act engine.

Each iteration:
1. Observe: capture (or read the cached) composited frame
2. Decide: ask the decision service for the next batch of actions
3. Act: execute the validated actions in order through the supervisor

Failures never end the loop; it backs off, reconnects if the surface was
lost, and keeps going until stop() is called.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Literal, Optional

from surface_pilot.core.errors import SurfacePilotError
from surface_pilot.core.retry import ReconnectBackoff

if TYPE_CHECKING:
    from surface_pilot.domain.actions import ActionVocabulary
    from surface_pilot.domain.agent.conversation import ConversationWindow
    from surface_pilot.domain.entities import FrameSnapshot
    from surface_pilot.domain.ports import DecisionService
    from surface_pilot.services.supervisor import ConnectionSupervisor

logger = logging.getLogger(__name__)

FrameSource = Literal["surface", "cache"]


class AgentLoop:
    """Long-running agent driving one supervised surface.

    Args:
        supervisor: Connection supervisor owning the surface
        decision: Decision service proposing actions
        vocabulary: Action vocabulary used to validate proposals
        conversation: Bounded history sent with each request
        action_delay: Pause after every executed action (seconds)
        screenshot_delay: Pause before each capture (seconds)
        error_backoff: Pause after a failed iteration (seconds)
        reconnect_backoff: Extra pause after every failed reconnect
        frame_source: "surface" captures fresh, "cache" reuses the latest frame
        sleep: Awaitable sleep, injectable for tests
    """

    def __init__(
        self,
        supervisor: "ConnectionSupervisor",
        decision: "DecisionService",
        vocabulary: "ActionVocabulary",
        conversation: "ConversationWindow",
        action_delay: float = 0.15,
        screenshot_delay: float = 0.3,
        error_backoff: float = 2.0,
        reconnect_backoff: float = 5.0,
        frame_source: FrameSource = "surface",
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.supervisor = supervisor
        self.decision = decision
        self.vocabulary = vocabulary
        self.conversation = conversation
        self.action_delay = action_delay
        self.screenshot_delay = screenshot_delay
        self.error_backoff = error_backoff
        self.frame_source = frame_source
        self._sleep = sleep
        self._backoff = ReconnectBackoff(long_delay=reconnect_backoff)

        self._running = False
        self._task: Optional[asyncio.Task] = None
        self.iteration = 0
        self.last_error: Optional[str] = None
        self.last_actions: list[dict[str, Any]] = []

    @property
    def running(self) -> bool:
        return self._running

    def status(self) -> dict[str, Any]:
        return {
            "running": self._running,
            "iteration": self.iteration,
            "last_error": self.last_error,
            "last_actions": self.last_actions,
            "history_turns": len(self.conversation),
        }

    async def start(self) -> None:
        """Connect and launch the loop. No-op while already running.

        Raises:
            ConnectError: If the surface could not be acquired
        """
        if self._running:
            logger.info("Agent loop already running")
            return
        if self._task is not None and not self._task.done():
            logger.warning("Previous agent loop still finishing its iteration, cancelling it")
            await self.cancel()

        await self.supervisor.acquire()
        if self._running:
            return
        self.conversation.reset()
        self.iteration = 0
        self.last_error = None
        self._running = True
        self._task = asyncio.create_task(self._run())

    def stop(self) -> None:
        """Ask the loop to exit after the in-flight iteration."""
        if self._running:
            logger.info("Stopping agent loop")
        self._running = False

    async def wait_stopped(self, timeout: Optional[float] = None) -> bool:
        """Wait for the loop task to finish. Returns False on timeout."""
        task = self._task
        if task is None or task.done():
            return True
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Agent loop did not stop within {timeout}s")
            return False
        return True

    async def cancel(self) -> None:
        """Stop the loop and abandon any iteration still in flight."""
        self._running = False
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.wait({task})
        logger.info("Agent loop cancelled")

    async def _run(self) -> None:
        logger.info("Agent loop started")
        while self._running:
            self.iteration += 1
            try:
                await self.run_iteration()
            except Exception as e:
                await self._recover(e)
        logger.info(f"Agent loop stopped after {self.iteration} iterations")

    async def _observe(self) -> "FrameSnapshot":
        if self.frame_source == "cache":
            snapshot = self.supervisor.latest_frame()
            if snapshot is not None:
                return snapshot
        return await self.supervisor.refresh()

    async def run_iteration(self) -> None:
        """One observe/decide/act cycle. Errors propagate to the caller."""
        await self._sleep(self.screenshot_delay)
        snapshot = await self._observe()

        proposal = await self.decision.infer(snapshot.image, self.conversation.messages())
        response = self.vocabulary.validate_response(proposal)

        actions = [self.vocabulary.serialize(action) for action in response.actions]
        self.conversation.append(snapshot.image, json.dumps({"actions": actions}))
        self.last_actions = actions
        logger.info(f"Iteration {self.iteration}: {len(actions)} actions")

        for action in response.actions:
            logger.debug(f"Executing {action}")
            await self.supervisor.execute(action)
            await self._sleep(self.action_delay)

    async def _recover(self, error: Exception) -> None:
        self.last_error = str(error)
        logger.error(
            f"Agent iteration {self.iteration} failed: {error}",
            exc_info=not isinstance(error, SurfacePilotError),
        )
        await self._sleep(self.error_backoff)

        if not self._running or self.supervisor.is_connected:
            return

        logger.info("Surface disconnected, reconnecting")
        try:
            await self.supervisor.acquire()
        except Exception as e:
            delay = self._backoff.record_failure()
            logger.error(
                f"Reconnect failed ({self._backoff.consecutive_failures} in a row): {e}"
            )
            if delay:
                await self._sleep(delay)
            return

        self._backoff.record_success()
        self.conversation.reset()
        logger.info("Reconnected, conversation history cleared")
