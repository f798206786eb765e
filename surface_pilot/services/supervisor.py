"""Connection supervisor.

Owns the single live remote surface, serializes access to it, and keeps the
latest composited frame fresh for HTTP readers and the agent loop.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from surface_pilot.core.errors import ConnectError, NotConnectedError, SurfacePilotError
from surface_pilot.domain.actions import ActionBase
from surface_pilot.domain.entities import ConnectionState, FrameSnapshot
from surface_pilot.domain.ports import RemoteSurface
from surface_pilot.services.compositor import FrameCompositor

logger = logging.getLogger(__name__)


class ConnectionSupervisor:
    """Single-flight connection manager for one remote surface.

    Concurrent ``acquire`` callers share one connection attempt: exactly one
    surface is created per attempt and every waiter sees the same result or
    the same error. Frame captures and action execution never overlap.
    """

    def __init__(
        self,
        surface_factory: Callable[[], RemoteSurface],
        compositor: Optional[FrameCompositor] = None,
        capture_interval: float = 0.1,
    ):
        self._surface_factory = surface_factory
        self._compositor = compositor or FrameCompositor()
        self.capture_interval = capture_interval

        self._surface: Optional[RemoteSurface] = None
        self._connecting: Optional[asyncio.Task] = None
        self._capture_task: Optional[asyncio.Task] = None
        self._snapshot: Optional[FrameSnapshot] = None
        self._surface_lock = asyncio.Lock()
        self.connect_attempts = 0

    @property
    def surface(self) -> Optional[RemoteSurface]:
        return self._surface

    @property
    def state(self) -> ConnectionState:
        if self._connecting is not None and not self._connecting.done():
            return ConnectionState.CONNECTING
        if self.is_connected:
            return ConnectionState.CONNECTED
        return ConnectionState.DISCONNECTED

    @property
    def is_connected(self) -> bool:
        return self._surface is not None and self._surface.is_connected()

    @property
    def is_streaming(self) -> bool:
        return self._capture_task is not None and not self._capture_task.done()

    async def acquire(self) -> RemoteSurface:
        """Return the connected surface, connecting first if needed.

        Raises:
            ConnectError: If the connection attempt failed
        """
        if self.is_connected:
            return self._surface  # type: ignore[return-value]

        task = self._connecting
        if task is None:
            task = asyncio.create_task(self._connect())
            self._connecting = task
            task.add_done_callback(self._clear_connecting)

        # Shielded so a cancelled waiter doesn't abort the shared attempt
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                raise ConnectError("Connection attempt aborted by release") from None
            raise

    def _clear_connecting(self, task: asyncio.Task) -> None:
        if self._connecting is task:
            self._connecting = None

    async def _connect(self) -> RemoteSurface:
        self.connect_attempts += 1
        await self._stop_capture_loop()
        if self._surface is not None:
            stale, self._surface = self._surface, None
            await stale.disconnect()

        surface = self._surface_factory()
        logger.info(f"Connecting {type(surface).__name__} (attempt {self.connect_attempts})")
        try:
            await surface.connect()
        except asyncio.CancelledError:
            await surface.disconnect()
            raise
        self._surface = surface

        try:
            await self.refresh()
        except SurfacePilotError as e:
            logger.warning(f"Initial frame capture failed: {e}")

        self._capture_task = asyncio.create_task(self._capture_loop())
        logger.info("Surface connected, frame capture started")
        return surface

    def _require_surface(self) -> RemoteSurface:
        if not self.is_connected:
            raise NotConnectedError("Remote surface is not connected")
        return self._surface  # type: ignore[return-value]

    async def refresh(self) -> FrameSnapshot:
        """Capture, composite and cache a new frame.

        Raises:
            NotConnectedError: If no surface is connected
            CaptureError: If the capture failed
        """
        surface = self._require_surface()
        async with self._surface_lock:
            frame = await surface.capture_frame()
        snapshot = await asyncio.to_thread(self._compositor.composite, frame)

        # A slower capture must never replace a newer frame
        current = self._snapshot
        if current is None or snapshot.timestamp_ms >= current.timestamp_ms:
            self._snapshot = snapshot
        return snapshot

    async def execute(self, action: ActionBase) -> None:
        """Run one action on the surface, serialized with captures."""
        surface = self._require_surface()
        async with self._surface_lock:
            await surface.execute(action)

    def latest_frame(self) -> Optional[FrameSnapshot]:
        """Most recent composited frame, or None before the first capture."""
        return self._snapshot

    async def _capture_loop(self) -> None:
        while self.is_connected:
            try:
                await self.refresh()
            except NotConnectedError:
                break
            except SurfacePilotError as e:
                logger.debug(f"Periodic capture failed: {e}")
            except Exception as e:
                logger.error(f"Periodic capture error: {e}", exc_info=True)
            await asyncio.sleep(self.capture_interval)
        logger.info("Frame capture stopped")

    async def _stop_capture_loop(self) -> None:
        task, self._capture_task = self._capture_task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _abort_connecting(self) -> None:
        task = self._connecting
        if task is None or task.done():
            return
        logger.info("Aborting connection attempt in flight")
        task.cancel()
        await asyncio.wait({task})

    async def release(self) -> None:
        """Abort any pending connect, stop capturing, disconnect and drop the cached frame."""
        await self._abort_connecting()
        await self._stop_capture_loop()
        surface, self._surface = self._surface, None
        self._snapshot = None
        if surface is not None:
            await surface.disconnect()
            logger.info("Surface released")
