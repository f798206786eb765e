"""adb command channel, optionally routed through ``docker exec``."""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from surface_pilot.core.errors import ConnectError, SurfacePilotError

logger = logging.getLogger(__name__)


class AdbCommandError(SurfacePilotError):
    """An adb command exited with a non-zero status or timed out."""


class AdbBridge:
    """Runs adb commands against one device.

    When ``container`` is set, commands run as
    ``docker exec <container> adb ...`` (emulator-in-container setups);
    otherwise adb is invoked directly, optionally pinned to ``serial``.
    """

    def __init__(
        self,
        container: Optional[str] = None,
        serial: Optional[str] = None,
        adb_binary: str = "adb",
        command_timeout: float = 30.0,
    ):
        self.container = container
        self.serial = serial
        self.adb_binary = adb_binary
        self.command_timeout = command_timeout

    def build_command(self, *args: str) -> list[str]:
        command = [self.adb_binary]
        if self.serial:
            command += ["-s", self.serial]
        command += list(args)
        if self.container:
            command = ["docker", "exec", self.container] + command
        return command

    async def run(self, *args: str, timeout: Optional[float] = None) -> bytes:
        """Run an adb command and return its stdout.

        Raises:
            ConnectError: If the adb/docker executable cannot be started
            AdbCommandError: On non-zero exit or timeout
        """
        command = self.build_command(*args)
        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ConnectError(f"Cannot start {command[0]}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=timeout or self.command_timeout
            )
        except asyncio.TimeoutError as e:
            await self._kill(proc)
            raise AdbCommandError(f"Command timed out: {' '.join(command)}") from e
        except asyncio.CancelledError:
            await self._kill(proc)
            raise

        if proc.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()
            raise AdbCommandError(
                f"Command failed ({proc.returncode}): {' '.join(command)}: {message}"
            )
        return stdout

    @staticmethod
    async def _kill(proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is not None:
            return
        try:
            proc.kill()
        except ProcessLookupError:
            return
        await proc.wait()

    async def shell(self, command: str) -> str:
        """Run ``adb shell <command>`` and return decoded stdout."""
        output = await self.run("shell", command)
        return output.decode("utf-8", errors="replace")

    async def screencap(self) -> bytes:
        """Capture the screen as PNG bytes via ``exec-out``."""
        return await self.run("exec-out", "screencap", "-p")
