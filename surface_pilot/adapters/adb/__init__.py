"""adb device-bridge surface."""
from surface_pilot.adapters.adb.bridge import AdbBridge, AdbCommandError
from surface_pilot.adapters.adb.surface import AdbSurface

__all__ = ["AdbBridge", "AdbCommandError", "AdbSurface"]
