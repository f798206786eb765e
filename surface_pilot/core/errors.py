"""Error taxonomy shared by surfaces, the supervisor and the agent loop."""
from __future__ import annotations

from typing import Optional


class SurfacePilotError(Exception):
    """Base class for all service errors."""


class ConnectError(SurfacePilotError):
    """Transport refused the connection or the handshake timed out."""


class DeviceNotReadyError(ConnectError):
    """Device never reported boot completion within the retry budget."""


class NotConnectedError(SurfacePilotError):
    """An operation was attempted on a surface that is not connected."""


class CaptureError(SurfacePilotError):
    """A frame could not be captured or decoded."""


class UnknownKeyError(SurfacePilotError):
    """A press/release action named a key with no keysym mapping."""

    def __init__(self, key: str):
        super().__init__(f"Unknown key: {key!r}")
        self.key = key


class ValidationError(SurfacePilotError):
    """An action or response failed vocabulary validation.

    Attributes:
        field: Dotted path of the offending field (e.g. ``actions.2.x``)
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class DecisionServiceError(SurfacePilotError):
    """The decision service could not be reached or returned an error."""
