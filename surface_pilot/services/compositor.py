"""Frame compositor: indicator overlay and PNG encoding."""
from __future__ import annotations

import io
import time
from typing import Callable

from PIL import Image, ImageDraw

from surface_pilot.domain.entities import Frame, FrameSnapshot, Point
from surface_pilot.domain.geometry import clamp

INDICATOR_FILL = (255, 0, 0, 255)
INDICATOR_OUTLINE = (255, 255, 255, 255)


def indicator_box(
    position: Point, size: int, width: int, height: int
) -> tuple[int, int, int, int]:
    """Bounding box of the indicator centred on ``position``.

    The top-left corner is clamped to ``[0, width-size] x [0, height-size]``
    so the circle never leaves the frame.
    """
    left = clamp(round(position.x - size / 2), 0, max(0, width - size))
    top = clamp(round(position.y - size / 2), 0, max(0, height - size))
    return (left, top, left + size, top + size)


class FrameCompositor:
    """Turns raw frames into encoded snapshots for the cache and the model.

    Frames are resized to their logical resolution first, so the image the
    decision service sees uses the same coordinate space the surfaces scale
    back from.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock

    def render(self, frame: Frame) -> Image.Image:
        """Resize to the logical resolution and draw the indicator."""
        image = frame.image.convert("RGBA")
        logical = (frame.logical_width, frame.logical_height)
        if image.size != logical:
            image = image.resize(logical, Image.Resampling.BILINEAR)
        else:
            image = image.copy()

        if frame.indicator is not None:
            draw = ImageDraw.Draw(image)
            box = indicator_box(frame.indicator, frame.indicator_size, *logical)
            # ImageDraw boxes are inclusive of the far edge
            draw.ellipse(
                (box[0], box[1], box[2] - 1, box[3] - 1),
                fill=INDICATOR_FILL,
                outline=INDICATOR_OUTLINE,
                width=2,
            )
        return image

    @staticmethod
    def encode(image: Image.Image) -> bytes:
        buffer = io.BytesIO()
        image.save(buffer, format="PNG", optimize=False)
        return buffer.getvalue()

    def composite(self, frame: Frame) -> FrameSnapshot:
        """Render and encode a frame into an immutable snapshot."""
        encoded = self.encode(self.render(frame))
        return FrameSnapshot(image=encoded, timestamp_ms=int(self._clock() * 1000))
