"""Coordinate scaling and gesture path helpers."""

from __future__ import annotations

import math


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


def round_half_up(value: float) -> int:
    """Round to the nearest integer; halves always round up."""
    return math.floor(value + 0.5)


def scale_coordinate(value: int, logical: int, device: int) -> int:
    """Map a logical coordinate onto a device axis.

    Linear transform ``round_half_up(value / logical * device)`` clamped to
    ``[0, device - 1]``; monotonic in ``value``.
    """
    scaled = round_half_up(value / logical * device)
    return clamp(scaled, 0, device - 1)


def scale_point(
    x: int,
    y: int,
    logical_size: tuple[int, int],
    device_size: tuple[int, int],
) -> tuple[int, int]:
    """Scale a logical (x, y) to device pixels."""
    return (
        scale_coordinate(x, logical_size[0], device_size[0]),
        scale_coordinate(y, logical_size[1], device_size[1]),
    )


def interpolate_path(
    start: tuple[int, int],
    end: tuple[int, int],
    min_steps: int = 10,
    step_px: float = 25.0,
) -> list[tuple[int, int]]:
    """Points from just after ``start`` to exactly ``end``.

    Uses at least ``min_steps`` points; long moves get one point every
    ``step_px`` pixels. The last point is always ``end``.
    """
    distance = math.hypot(end[0] - start[0], end[1] - start[1])
    steps = max(min_steps, math.ceil(distance / step_px))
    points = []
    for i in range(1, steps + 1):
        t = i / steps
        points.append((
            round_half_up(start[0] + (end[0] - start[0]) * t),
            round_half_up(start[1] + (end[1] - start[1]) * t),
        ))
    points[-1] = end
    return points
