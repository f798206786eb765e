"""Device-bridge (adb) remote surface with touch emulation."""
from __future__ import annotations

import asyncio
import io
import logging
import re
from typing import Awaitable, Callable, Optional

from PIL import Image, UnidentifiedImageError

from surface_pilot.adapters.adb.bridge import AdbBridge, AdbCommandError
from surface_pilot.core.errors import CaptureError, DeviceNotReadyError, NotConnectedError
from surface_pilot.core.retry import BoundedRetry, RetryExhausted
from surface_pilot.domain.actions import ActionBase, ActionFamily
from surface_pilot.domain.entities import Frame, Point
from surface_pilot.domain.geometry import interpolate_path, scale_point
from surface_pilot.domain.ports import RemoteSurface

logger = logging.getLogger(__name__)

WM_SIZE_PATTERN = re.compile(r"(Physical|Override) size:\s*(\d+)x(\d+)")

MIN_PATH_STEPS = 10
HOLD_SETTLE_SECONDS = 0.05
LONG_PRESS_SECONDS = 0.6
TAP_DRAG_MS = 300


class AdbSurface(RemoteSurface):
    """Drives an Android device as a touch surface.

    Tracks an open touch (finger down) in device pixels so that a press and
    a release at different points become a recognizable drag gesture.

    Args:
        bridge: Command channel to the device
        logical_width: Width of the coordinate space actions use
        logical_height: Height of the coordinate space actions use
        display_density: Optional ``wm density`` to apply on connect
        boot_retries: Boot-completed polls before giving up
        boot_retry_interval: Seconds between polls
        sleep: Injectable sleep coroutine (tests)
    """

    family = ActionFamily.TOUCH
    indicator_size = 20

    def __init__(
        self,
        bridge: AdbBridge,
        logical_width: int = 1000,
        logical_height: int = 1000,
        display_density: Optional[int] = None,
        boot_retries: int = 60,
        boot_retry_interval: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        super().__init__(logical_width, logical_height)
        self.bridge = bridge
        self.display_density = display_density
        self.boot_retries = boot_retries
        self.boot_retry_interval = boot_retry_interval
        self._sleep = sleep

        self._connected = False
        self.device_width = logical_width
        self.device_height = logical_height
        self._last_touch = Point(logical_width // 2, logical_height // 2)
        self._touch_down: Optional[tuple[int, int]] = None

    @property
    def device_size(self) -> tuple[int, int]:
        return (self.device_width, self.device_height)

    @property
    def indicator_position(self) -> Optional[Point]:
        return self._last_touch

    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        """Wait for boot completion, then cache the device resolution.

        Raises:
            DeviceNotReadyError: If the device never reports boot completion
            ConnectError: If adb cannot be started at all
        """
        retry = BoundedRetry(
            attempts=self.boot_retries,
            interval=self.boot_retry_interval,
            sleep=self._sleep,
            name="boot_completed",
            retry_on=(AdbCommandError,),
        )
        try:
            await retry.run(self._boot_completed)
        except RetryExhausted as e:
            self._connected = False
            raise DeviceNotReadyError(
                f"Device did not finish booting after {e.attempts} checks"
            ) from e

        self.device_width, self.device_height = await self._query_size()
        if self.display_density:
            await self.bridge.shell(f"wm density {self.display_density}")

        self._touch_down = None
        self._connected = True
        logger.info(
            f"Connected to device ({self.device_width}x{self.device_height}, "
            f"logical {self.logical_width}x{self.logical_height})"
        )

    async def _boot_completed(self) -> bool:
        output = await self.bridge.shell("getprop sys.boot_completed")
        return output.strip() == "1"

    async def _query_size(self) -> tuple[int, int]:
        output = await self.bridge.shell("wm size")
        sizes = {kind: (int(w), int(h)) for kind, w, h in WM_SIZE_PATTERN.findall(output)}
        size = sizes.get("Override") or sizes.get("Physical")
        if size is None:
            logger.warning(f"Could not parse 'wm size' output: {output.strip()!r}")
            return self.logical_size
        return size

    async def disconnect(self) -> None:
        self._connected = False
        self._touch_down = None

    def _ensure_connected(self) -> None:
        if not self._connected:
            raise NotConnectedError("Device surface is not connected")

    async def capture_frame(self) -> Frame:
        """Grab a fresh PNG from the device; no framebuffer is kept."""
        self._ensure_connected()
        try:
            data = await self.bridge.screencap()
            image = Image.open(io.BytesIO(data))
            image.load()
        except (AdbCommandError, UnidentifiedImageError, OSError) as e:
            raise CaptureError(f"Device screencap failed: {e}") from e

        return Frame(
            image=image.convert("RGBA"),
            logical_width=self.logical_width,
            logical_height=self.logical_height,
            indicator=self._last_touch,
            indicator_size=self.indicator_size,
        )

    def to_device(self, x: int, y: int) -> tuple[int, int]:
        """Scale logical coordinates to device pixels."""
        return scale_point(x, y, self.logical_size, self.device_size)

    async def _input(self, command: str) -> None:
        await self.bridge.shell(f"input {command}")

    async def _motion(self, event: str, point: tuple[int, int]) -> None:
        await self._input(f"motionevent {event} {point[0]} {point[1]}")

    async def _move_path(self, start: tuple[int, int], end: tuple[int, int], duration_ms: int) -> None:
        path = interpolate_path(start, end, min_steps=MIN_PATH_STEPS)
        delay = duration_ms / 1000 / len(path)
        for point in path:
            await self._motion("MOVE", point)
            await self._sleep(delay)

    async def _press(self, target: tuple[int, int]) -> None:
        if self._touch_down is not None:
            await self._motion("UP", self._touch_down)
        await self._motion("DOWN", target)
        self._touch_down = target

    async def _release(self, target: tuple[int, int], duration_ms: int, settle: float) -> None:
        start = self._touch_down
        if start != target:
            await self._move_path(start, target, duration_ms)
        if settle:
            await self._sleep(settle)
        await self._motion("UP", target)
        self._touch_down = None

    async def execute(self, action: ActionBase) -> None:
        self._ensure_connected()

        match action.action:
            case "tap":
                target = self.to_device(action.x, action.y)
                if action.pressed:
                    await self._press(target)
                elif self._touch_down is None:
                    await self._input(f"tap {target[0]} {target[1]}")
                else:
                    await self._release(target, TAP_DRAG_MS, settle=0)
                self._last_touch = Point(action.x, action.y)

            case "hold":
                target = self.to_device(action.x, action.y)
                if action.pressed:
                    await self._press(target)
                    await self._sleep(action.ms / 1000)
                elif self._touch_down is None:
                    # No open press: a long press in place
                    await self._input(f"swipe {target[0]} {target[1]} {target[0]} {target[1]} {action.ms}")
                else:
                    await self._release(target, action.ms, settle=HOLD_SETTLE_SECONDS)
                self._last_touch = Point(action.x, action.y)

            case "swipe":
                start = self.to_device(action.start_x, action.start_y)
                end = self.to_device(action.end_x, action.end_y)
                await self._input(f"swipe {start[0]} {start[1]} {end[0]} {end[1]} {action.ms}")
                self._last_touch = Point(action.end_x, action.end_y)

            case "drag":
                start = self.to_device(action.start_x, action.start_y)
                end = self.to_device(action.end_x, action.end_y)
                await self._press(start)
                await self._sleep(LONG_PRESS_SECONDS)
                await self._release(end, action.ms, settle=HOLD_SETTLE_SECONDS)
                self._last_touch = Point(action.end_x, action.end_y)

            case "wait":
                await self._sleep(action.ms / 1000)

            case _:
                raise ValueError(f"Action '{action.action}' is not supported by the device surface")
