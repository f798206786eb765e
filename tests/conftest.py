"""Pytest configuration and fixtures."""
from __future__ import annotations

import asyncio
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from PIL import Image

from surface_pilot.core.errors import NotConnectedError
from surface_pilot.domain.actions import ActionBase, ActionFamily, ActionVocabulary
from surface_pilot.domain.entities import Frame, Point
from surface_pilot.domain.ports import RemoteSurface


class RecordingSleep:
    """Sleep replacement that records durations and only yields to the loop."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        await asyncio.sleep(0)


class FakeSurface(RemoteSurface):
    """In-memory pointer surface."""

    family = ActionFamily.POINTER

    def __init__(
        self,
        width: int = 800,
        height: int = 600,
        connect_error: Optional[Exception] = None,
        color: tuple[int, int, int, int] = (0, 0, 255, 255),
    ):
        super().__init__(width, height)
        self.connect_error = connect_error
        self.color = color
        self.connected = False
        self.connect_calls = 0
        self.captures = 0
        self.executed: list[ActionBase] = []

    @property
    def indicator_position(self) -> Optional[Point]:
        return Point(10, 10)

    async def connect(self) -> None:
        self.connect_calls += 1
        # Give concurrent callers a chance to pile up
        await asyncio.sleep(0.01)
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False

    def is_connected(self) -> bool:
        return self.connected

    async def capture_frame(self) -> Frame:
        if not self.connected:
            raise NotConnectedError("fake surface is not connected")
        self.captures += 1
        return Frame(
            image=Image.new("RGBA", (self.logical_width, self.logical_height), self.color),
            logical_width=self.logical_width,
            logical_height=self.logical_height,
            indicator=self.indicator_position,
            indicator_size=self.indicator_size,
        )

    async def execute(self, action: ActionBase) -> None:
        if not self.connected:
            raise NotConnectedError("fake surface is not connected")
        self.executed.append(action)


@pytest.fixture
def recording_sleep():
    """Create a sleep recorder."""
    return RecordingSleep()


@pytest.fixture
def fake_surface():
    """Create an unconnected in-memory surface."""
    return FakeSurface()


@pytest.fixture
def pointer_vocabulary():
    """Pointer vocabulary at the default 800x600 resolution."""
    return ActionVocabulary(ActionFamily.POINTER, 800, 600, max_actions=20)


@pytest.fixture
def touch_vocabulary():
    """Touch vocabulary at the default 1000x1000 resolution."""
    return ActionVocabulary(ActionFamily.TOUCH, 1000, 1000, max_actions=100)


@pytest.fixture
def mock_bridge():
    """Create a mock adb bridge for a booted 1080x2280 device."""
    bridge = MagicMock()
    bridge.build_command = MagicMock(return_value=["adb"])

    async def shell(command: str) -> str:
        if command == "getprop sys.boot_completed":
            return "1\n"
        if command == "wm size":
            return "Physical size: 1080x2280\n"
        return ""

    bridge.shell = AsyncMock(side_effect=shell)
    bridge.screencap = AsyncMock()
    return bridge
