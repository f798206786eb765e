"""Factory for the configured remote surface and its action vocabulary."""
from __future__ import annotations

import logging

from surface_pilot.adapters.adb.bridge import AdbBridge
from surface_pilot.adapters.adb.surface import AdbSurface
from surface_pilot.adapters.rfb.surface import RfbSurface
from surface_pilot.core.config import Settings
from surface_pilot.domain.actions import ActionFamily, ActionVocabulary
from surface_pilot.domain.ports import RemoteSurface

logger = logging.getLogger(__name__)


class SurfaceFactory:
    """Creates RemoteSurface instances based on ``settings.surface_kind``."""

    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def family(self) -> ActionFamily:
        if self.settings.surface_kind == "adb":
            return ActionFamily.TOUCH
        return ActionFamily.POINTER

    def create_vocabulary(self) -> ActionVocabulary:
        width, height = self.settings.logical_size
        return ActionVocabulary(
            family=self.family,
            width=width,
            height=height,
            max_actions=self.settings.response_cap,
        )

    def create_surface(self) -> RemoteSurface:
        """Build a fresh, unconnected surface."""
        s = self.settings
        width, height = s.logical_size

        if s.surface_kind == "adb":
            bridge = AdbBridge(
                container=s.adb_container or None,
                serial=s.adb_serial,
                adb_binary=s.adb_binary,
            )
            logger.debug(f"Creating adb surface via {bridge.build_command()}")
            return AdbSurface(
                bridge=bridge,
                logical_width=width,
                logical_height=height,
                display_density=s.display_density,
                boot_retries=s.boot_retries,
                boot_retry_interval=s.boot_retry_interval,
            )

        logger.debug(f"Creating VNC surface for {s.vnc_host}:{s.vnc_port}")
        return RfbSurface(
            host=s.vnc_host,
            port=s.vnc_port,
            password=s.vnc_password,
            logical_width=width,
            logical_height=height,
            connect_timeout=s.connect_timeout,
            update_wait=s.rfb_update_wait,
        )

    __call__ = create_surface
