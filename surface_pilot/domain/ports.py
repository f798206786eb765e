"""Port interfaces for dependency injection.

The agent loop and supervisor only talk to these abstractions; the concrete
RFB and adb surfaces live in ``surface_pilot.adapters``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional, Protocol

from surface_pilot.domain.actions import ActionBase, ActionFamily
from surface_pilot.domain.entities import Frame, Point


class RemoteSurface(ABC):
    """A controllable remote screen.

    Implementations are not safe for concurrent ``execute``/``capture_frame``
    calls; callers serialize access (see ConnectionSupervisor).
    """

    family: ActionFamily
    indicator_size: int = 12

    def __init__(self, logical_width: int, logical_height: int):
        self.logical_width = logical_width
        self.logical_height = logical_height

    @property
    def logical_size(self) -> tuple[int, int]:
        return (self.logical_width, self.logical_height)

    @abstractmethod
    async def connect(self) -> None:
        """Establish the channel.

        Raises:
            ConnectError: On timeout or refusal
        """

    @abstractmethod
    async def disconnect(self) -> None:
        """Release the channel. Safe to call more than once."""

    @abstractmethod
    def is_connected(self) -> bool:
        ...

    @abstractmethod
    async def capture_frame(self) -> Frame:
        """Return the current screen as an RGBA frame.

        Raises:
            NotConnectedError: If the surface is not connected
            CaptureError: If the capture failed
        """

    @abstractmethod
    async def execute(self, action: ActionBase) -> None:
        """Translate one validated action into transport primitives.

        Raises:
            NotConnectedError: If the surface is not connected
        """

    @property
    @abstractmethod
    def indicator_position(self) -> Optional[Point]:
        """Last injected pointer/touch position in logical coordinates."""


class DecisionService(Protocol):
    """Proposes the next batch of actions for a frame."""

    async def infer(self, image: bytes, history: list[dict[str, Any]]) -> Any:
        """Return the decoded reply; ActionVocabulary.validate_response checks it."""
        ...
