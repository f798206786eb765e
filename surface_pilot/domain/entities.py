"""Core data classes shared by surfaces, the compositor and the supervisor."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from PIL import Image


class ConnectionState(str, Enum):
    """Lifecycle of the supervised surface connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True)
class Point:
    """A position in logical (decision-service) coordinates."""

    x: int
    y: int


@dataclass
class Frame:
    """A freshly captured raster.

    The image is always RGBA regardless of the transport's wire order.
    ``indicator`` is the last injected pointer/touch position in logical
    coordinates, or None when nothing has been injected yet.
    """

    image: Image.Image
    logical_width: int
    logical_height: int
    indicator: Optional[Point] = None
    indicator_size: int = 12

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height


@dataclass(frozen=True)
class FrameSnapshot:
    """Encoded frame paired with its capture time (epoch milliseconds)."""

    image: bytes
    timestamp_ms: int
    media_type: str = "image/png"
