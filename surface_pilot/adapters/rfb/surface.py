"""Display-protocol (VNC) remote surface."""
from __future__ import annotations

import asyncio
import contextlib
import logging
import struct
from typing import Awaitable, Callable, Optional

from surface_pilot.adapters.rfb import protocol
from surface_pilot.adapters.rfb.keysyms import keysym_for_char, keysym_for_key
from surface_pilot.core.errors import ConnectError, NotConnectedError
from surface_pilot.domain.actions import ActionBase, ActionFamily, MouseButton, ScrollDirection
from surface_pilot.domain.entities import Frame, Point
from surface_pilot.domain.geometry import clamp, scale_point
from surface_pilot.domain.ports import RemoteSurface

logger = logging.getLogger(__name__)

BUTTON_BITS = {
    MouseButton.LEFT: 1,
    MouseButton.MIDDLE: 2,
    MouseButton.RIGHT: 4,
}
SCROLL_BITS = {
    ScrollDirection.UP: 8,
    ScrollDirection.DOWN: 16,
}

ENCODINGS = [
    protocol.ENCODING_RAW,
    protocol.ENCODING_COPYRECT,
    protocol.ENCODING_DESKTOP_SIZE,
]


class RfbSurface(RemoteSurface):
    """Drives a VNC server as a pointer/keyboard surface.

    A background reader task keeps ``_framebuffer`` up to date from
    FramebufferUpdate messages; captures request an incremental update and
    snapshot the buffer once the update arrives (or after ``update_wait``).

    Args:
        host: VNC server host
        port: VNC server port
        password: Optional VNC password (enables VNC Authentication)
        logical_width: Width of the coordinate space actions use
        logical_height: Height of the coordinate space actions use
        connect_timeout: Handshake budget in seconds
        update_wait: Seconds to wait for rectangles after a capture request
        key_delay: Pause between key events when typing
        scroll_pulse: How long the wheel button mask is held
        sleep: Injectable sleep coroutine (tests)
    """

    family = ActionFamily.POINTER
    indicator_size = 12

    def __init__(
        self,
        host: str,
        port: int,
        password: Optional[str] = None,
        logical_width: int = 800,
        logical_height: int = 600,
        connect_timeout: float = 30.0,
        update_wait: float = 0.1,
        key_delay: float = 0.02,
        scroll_pulse: float = 0.03,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        super().__init__(logical_width, logical_height)
        self.host = host
        self.port = port
        self.password = password
        self.connect_timeout = connect_timeout
        self.update_wait = update_wait
        self.key_delay = key_delay
        self.scroll_pulse = scroll_pulse
        self._sleep = sleep

        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._framebuffer: Optional[protocol.Framebuffer] = None
        self._pixel_format = protocol.DEFAULT_PIXEL_FORMAT
        self._update_event = asyncio.Event()
        self._connected = False
        self.server_name = ""

        self._pointer = Point(0, 0)
        self._button_mask = 0

    @property
    def framebuffer_size(self) -> tuple[int, int]:
        if self._framebuffer is None:
            return (self.logical_width, self.logical_height)
        return (self._framebuffer.width, self._framebuffer.height)

    @property
    def indicator_position(self) -> Optional[Point]:
        return self._pointer

    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        """Open the TCP connection and run the RFB handshake."""
        if self._connected:
            return
        # Transport left behind by a dropped session
        await self.disconnect()

        logger.info(f"Connecting to VNC server {self.host}:{self.port}")
        try:
            await asyncio.wait_for(self._open(), timeout=self.connect_timeout)
        except asyncio.TimeoutError as e:
            await self._close_transport()
            raise ConnectError(
                f"VNC handshake with {self.host}:{self.port} timed out "
                f"after {self.connect_timeout}s"
            ) from e
        except ConnectError:
            await self._close_transport()
            raise
        except (OSError, asyncio.IncompleteReadError, protocol.RfbProtocolError) as e:
            await self._close_transport()
            raise ConnectError(f"VNC connection to {self.host}:{self.port} failed: {e}") from e

        self._update_event = asyncio.Event()
        self._reader_task = asyncio.create_task(self._read_loop())
        await self._send(protocol.framebuffer_update_request(False, 0, 0, *self.framebuffer_size))
        width, height = self.framebuffer_size
        logger.info(f"Connected to VNC desktop '{self.server_name}' ({width}x{height})")

    async def _open(self) -> None:
        self._reader, self._writer = await asyncio.open_connection(self.host, self.port)
        version = await self._negotiate_version()
        await self._negotiate_security(version)

        self._writer.write(protocol.client_init(shared=True))
        await self._writer.drain()

        header = await self._reader.readexactly(24)
        width, height, server_format, name_length = protocol.parse_server_init_header(header)
        self.server_name = (await self._reader.readexactly(name_length)).decode(
            "utf-8", errors="replace"
        )
        logger.debug(f"Server pixel format: {server_format}")

        self._pixel_format = protocol.DEFAULT_PIXEL_FORMAT
        self._framebuffer = protocol.Framebuffer(width, height, self._pixel_format.bytes_per_pixel)
        self._writer.write(protocol.set_pixel_format(self._pixel_format))
        self._writer.write(protocol.set_encodings(ENCODINGS))
        await self._writer.drain()
        self._connected = True

    async def _negotiate_version(self) -> tuple[int, int]:
        banner = await self._reader.readexactly(12)
        version = protocol.choose_version(protocol.parse_version(banner))
        self._writer.write(protocol.format_version(version))
        await self._writer.drain()
        return version

    async def _negotiate_security(self, version: tuple[int, int]) -> None:
        if version == (3, 3):
            (security_type,) = struct.unpack(">I", await self._reader.readexactly(4))
            if security_type == protocol.SECURITY_INVALID:
                raise ConnectError(f"VNC server refused connection: {await self._read_reason()}")
        else:
            (count,) = await self._reader.readexactly(1)
            if count == 0:
                raise ConnectError(f"VNC server refused connection: {await self._read_reason()}")
            offered = list(await self._reader.readexactly(count))
            security_type = self._pick_security(offered)
            self._writer.write(struct.pack(">B", security_type))
            await self._writer.drain()

        if security_type == protocol.SECURITY_VNC_AUTH:
            if not self.password:
                raise ConnectError("VNC server requires a password but none is configured")
            challenge = await self._reader.readexactly(16)
            self._writer.write(protocol.vnc_auth_response(self.password, challenge))
            await self._writer.drain()
        elif security_type != protocol.SECURITY_NONE:
            raise ConnectError(f"Unsupported VNC security type {security_type}")

        # 3.8 always sends a result; older versions only after VNC auth
        if version == (3, 8) or security_type == protocol.SECURITY_VNC_AUTH:
            (result,) = struct.unpack(">I", await self._reader.readexactly(4))
            if result != 0:
                reason = await self._read_reason() if version == (3, 8) else "authentication failed"
                raise ConnectError(f"VNC authentication failed: {reason}")

    def _pick_security(self, offered: list[int]) -> int:
        if self.password and protocol.SECURITY_VNC_AUTH in offered:
            return protocol.SECURITY_VNC_AUTH
        if protocol.SECURITY_NONE in offered:
            return protocol.SECURITY_NONE
        if protocol.SECURITY_VNC_AUTH in offered:
            return protocol.SECURITY_VNC_AUTH
        raise ConnectError(f"No supported VNC security type in {offered}")

    async def _read_reason(self) -> str:
        (length,) = struct.unpack(">I", await self._reader.readexactly(4))
        return (await self._reader.readexactly(length)).decode("utf-8", errors="replace")

    async def _read_loop(self) -> None:
        """Consume server messages until the connection drops."""
        try:
            while True:
                (message_type,) = await self._reader.readexactly(1)
                if message_type == protocol.FRAMEBUFFER_UPDATE:
                    await self._read_framebuffer_update()
                    self._update_event.set()
                elif message_type == protocol.SET_COLOUR_MAP_ENTRIES:
                    _, count = struct.unpack(">xHH", await self._reader.readexactly(5))
                    await self._reader.readexactly(count * 6)
                elif message_type == protocol.BELL:
                    continue
                elif message_type == protocol.SERVER_CUT_TEXT:
                    (length,) = struct.unpack(">3xI", await self._reader.readexactly(7))
                    await self._reader.readexactly(length)
                else:
                    raise protocol.RfbProtocolError(f"Unknown server message type {message_type}")
        except (asyncio.IncompleteReadError, ConnectionError) as e:
            logger.warning(f"VNC connection closed: {e}")
        except protocol.RfbProtocolError as e:
            logger.error(f"VNC protocol error: {e}")
        finally:
            self._connected = False
            self._update_event.set()

    async def _read_framebuffer_update(self) -> None:
        (count,) = struct.unpack(">xH", await self._reader.readexactly(3))
        bpp = self._pixel_format.bytes_per_pixel
        for _ in range(count):
            x, y, width, height, encoding = protocol.RECT_HEADER_STRUCT.unpack(
                await self._reader.readexactly(protocol.RECT_HEADER_STRUCT.size)
            )
            if encoding == protocol.ENCODING_RAW:
                pixels = await self._reader.readexactly(width * height * bpp)
                self._framebuffer.apply_raw(x, y, width, height, pixels)
            elif encoding == protocol.ENCODING_COPYRECT:
                src_x, src_y = struct.unpack(">HH", await self._reader.readexactly(4))
                self._framebuffer.copy_rect(src_x, src_y, x, y, width, height)
            elif encoding == protocol.ENCODING_DESKTOP_SIZE:
                logger.info(f"VNC desktop resized to {width}x{height}")
                self._framebuffer.resize(width, height)
            else:
                raise protocol.RfbProtocolError(f"Unsupported encoding {encoding}")

    async def disconnect(self) -> None:
        if self._reader_task is None and self._writer is None:
            self._connected = False
            return
        logger.info(f"Disconnecting from VNC server {self.host}:{self.port}")
        self._connected = False
        if self._reader_task:
            self._reader_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task
            self._reader_task = None
        await self._close_transport()

    async def _close_transport(self) -> None:
        self._connected = False
        if self._writer is not None:
            self._writer.close()
            with contextlib.suppress(OSError):
                await self._writer.wait_closed()
        self._reader = None
        self._writer = None

    def _ensure_connected(self) -> None:
        if not self._connected or self._writer is None:
            raise NotConnectedError(f"VNC surface {self.host}:{self.port} is not connected")

    async def _send(self, data: bytes) -> None:
        self._ensure_connected()
        try:
            self._writer.write(data)
            await self._writer.drain()
        except ConnectionError as e:
            self._connected = False
            raise NotConnectedError(f"VNC connection lost: {e}") from e

    async def capture_frame(self) -> Frame:
        """Request an incremental update and snapshot the framebuffer as RGBA."""
        self._ensure_connected()
        self._update_event.clear()
        await self._send(protocol.framebuffer_update_request(True, 0, 0, *self.framebuffer_size))
        try:
            await asyncio.wait_for(self._update_event.wait(), timeout=self.update_wait)
        except asyncio.TimeoutError:
            # Nothing changed on screen; the buffer is current
            pass
        self._ensure_connected()

        return Frame(
            image=self._framebuffer.to_image(self._pixel_format),
            logical_width=self.logical_width,
            logical_height=self.logical_height,
            indicator=self._pointer,
            indicator_size=self.indicator_size,
        )

    def _to_device(self, point: Point) -> tuple[int, int]:
        return scale_point(point.x, point.y, self.logical_size, self.framebuffer_size)

    async def _pointer_event(self, mask: int) -> None:
        x, y = self._to_device(self._pointer)
        await self._send(protocol.pointer_event(x, y, mask))

    async def _key_event(self, keysym: int, down: bool) -> None:
        await self._send(protocol.key_event(keysym, down))

    async def execute(self, action: ActionBase) -> None:
        self._ensure_connected()

        match action.action:
            case "move":
                self._pointer = Point(
                    clamp(action.x, 0, self.logical_width),
                    clamp(action.y, 0, self.logical_height),
                )
                await self._pointer_event(self._button_mask)

            case "down":
                self._button_mask |= BUTTON_BITS[action.button]
                await self._pointer_event(self._button_mask)

            case "up":
                self._button_mask &= ~BUTTON_BITS[action.button]
                await self._pointer_event(self._button_mask)

            case "press":
                await self._key_event(keysym_for_key(action.key), True)

            case "release":
                await self._key_event(keysym_for_key(action.key), False)

            case "type":
                for char in action.text:
                    keysym = keysym_for_char(char)
                    await self._key_event(keysym, True)
                    await self._sleep(self.key_delay)
                    await self._key_event(keysym, False)
                    await self._sleep(self.key_delay)

            case "scroll":
                await self._pointer_event(self._button_mask | SCROLL_BITS[action.direction])
                await self._sleep(self.scroll_pulse)
                await self._pointer_event(self._button_mask)

            case "wait":
                await self._sleep(action.ms / 1000)

            case _:
                raise ValueError(f"Action '{action.action}' is not supported by the VNC surface")
