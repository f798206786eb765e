"""RFB (VNC) wire codec.

Only the client-side subset needed for screen polling and input injection:
version/security handshake, ServerInit, SetPixelFormat, SetEncodings,
FramebufferUpdateRequest, KeyEvent, PointerEvent and the Raw, CopyRect and
DesktopSize encodings.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

from cryptography.hazmat.decrepit.ciphers.algorithms import TripleDES
from cryptography.hazmat.primitives.ciphers import Cipher, modes
from PIL import Image

# Client -> server message types
SET_PIXEL_FORMAT = 0
SET_ENCODINGS = 2
FRAMEBUFFER_UPDATE_REQUEST = 3
KEY_EVENT = 4
POINTER_EVENT = 5

# Server -> client message types
FRAMEBUFFER_UPDATE = 0
SET_COLOUR_MAP_ENTRIES = 1
BELL = 2
SERVER_CUT_TEXT = 3

# Encodings
ENCODING_RAW = 0
ENCODING_COPYRECT = 1
ENCODING_DESKTOP_SIZE = -223

# Security types
SECURITY_INVALID = 0
SECURITY_NONE = 1
SECURITY_VNC_AUTH = 2

SUPPORTED_VERSIONS = ((3, 8), (3, 7), (3, 3))

PIXEL_FORMAT_STRUCT = struct.Struct(">BBBBHHHBBB3x")
RECT_HEADER_STRUCT = struct.Struct(">HHHHi")


class RfbProtocolError(Exception):
    """The server sent something this client cannot handle."""


@dataclass(frozen=True)
class PixelFormat:
    bits_per_pixel: int
    depth: int
    big_endian: bool
    true_colour: bool
    red_max: int
    green_max: int
    blue_max: int
    red_shift: int
    green_shift: int
    blue_shift: int

    @classmethod
    def unpack(cls, data: bytes) -> "PixelFormat":
        (bpp, depth, big_endian, true_colour, red_max, green_max, blue_max,
         red_shift, green_shift, blue_shift) = PIXEL_FORMAT_STRUCT.unpack(data)
        return cls(
            bits_per_pixel=bpp,
            depth=depth,
            big_endian=bool(big_endian),
            true_colour=bool(true_colour),
            red_max=red_max,
            green_max=green_max,
            blue_max=blue_max,
            red_shift=red_shift,
            green_shift=green_shift,
            blue_shift=blue_shift,
        )

    def pack(self) -> bytes:
        return PIXEL_FORMAT_STRUCT.pack(
            self.bits_per_pixel,
            self.depth,
            int(self.big_endian),
            int(self.true_colour),
            self.red_max,
            self.green_max,
            self.blue_max,
            self.red_shift,
            self.green_shift,
            self.blue_shift,
        )

    @property
    def bytes_per_pixel(self) -> int:
        return self.bits_per_pixel // 8

    def channel_offsets(self) -> tuple[int, int, int]:
        """Byte offsets of red, green and blue inside one pixel.

        Raises:
            RfbProtocolError: For anything other than 32bpp 8-bit true colour
        """
        if (
            self.bits_per_pixel != 32
            or not self.true_colour
            or (self.red_max, self.green_max, self.blue_max) != (255, 255, 255)
            or any(s % 8 for s in (self.red_shift, self.green_shift, self.blue_shift))
        ):
            raise RfbProtocolError(f"Unsupported pixel format: {self}")

        def offset(shift: int) -> int:
            index = shift // 8
            return 3 - index if self.big_endian else index

        return (offset(self.red_shift), offset(self.green_shift), offset(self.blue_shift))


# 32bpp little-endian with red in bits 16-23: BGRX in memory
DEFAULT_PIXEL_FORMAT = PixelFormat(
    bits_per_pixel=32,
    depth=24,
    big_endian=False,
    true_colour=True,
    red_max=255,
    green_max=255,
    blue_max=255,
    red_shift=16,
    green_shift=8,
    blue_shift=0,
)


def parse_version(banner: bytes) -> tuple[int, int]:
    """Parse a ``RFB xxx.yyy\\n`` banner."""
    if len(banner) != 12 or not banner.startswith(b"RFB ") or banner[-1:] != b"\n":
        raise RfbProtocolError(f"Not an RFB server: {banner!r}")
    try:
        major, minor = banner[4:11].split(b".")
        return int(major), int(minor)
    except ValueError as e:
        raise RfbProtocolError(f"Malformed RFB version: {banner!r}") from e


def choose_version(server: tuple[int, int]) -> tuple[int, int]:
    """Highest supported version not above the server's."""
    for version in SUPPORTED_VERSIONS:
        if server >= version:
            return version
    raise RfbProtocolError(f"Unsupported RFB version {server[0]}.{server[1]}")


def format_version(version: tuple[int, int]) -> bytes:
    return b"RFB %03d.%03d\n" % version


def _reverse_bits(byte: int) -> int:
    result = 0
    for _ in range(8):
        result = (result << 1) | (byte & 1)
        byte >>= 1
    return result


def vnc_auth_response(password: str, challenge: bytes) -> bytes:
    """DES-encrypt the 16-byte challenge with the VNC password.

    VNC uses the first eight password bytes, zero padded, with the bit
    order of every key byte mirrored.
    """
    if len(challenge) != 16:
        raise RfbProtocolError("VNC auth challenge must be 16 bytes")
    raw_key = password.encode("latin-1", errors="replace")[:8].ljust(8, b"\x00")
    key = bytes(_reverse_bits(b) for b in raw_key)
    encryptor = Cipher(TripleDES(key), modes.ECB()).encryptor()
    return encryptor.update(challenge) + encryptor.finalize()


def client_init(shared: bool = True) -> bytes:
    return struct.pack(">B", int(shared))


def parse_server_init_header(data: bytes) -> tuple[int, int, PixelFormat, int]:
    """Split the fixed 24-byte ServerInit header into size, format and name length."""
    width, height = struct.unpack(">HH", data[:4])
    pixel_format = PixelFormat.unpack(data[4:20])
    (name_length,) = struct.unpack(">I", data[20:24])
    return width, height, pixel_format, name_length


def set_pixel_format(pixel_format: PixelFormat) -> bytes:
    return struct.pack(">B3x", SET_PIXEL_FORMAT) + pixel_format.pack()


def set_encodings(encodings: list[int]) -> bytes:
    return struct.pack(">BxH", SET_ENCODINGS, len(encodings)) + b"".join(
        struct.pack(">i", e) for e in encodings
    )


def framebuffer_update_request(
    incremental: bool, x: int, y: int, width: int, height: int
) -> bytes:
    return struct.pack(
        ">BBHHHH", FRAMEBUFFER_UPDATE_REQUEST, int(incremental), x, y, width, height
    )


def key_event(keysym: int, down: bool) -> bytes:
    return struct.pack(">BBxxI", KEY_EVENT, int(down), keysym)


def pointer_event(x: int, y: int, button_mask: int) -> bytes:
    return struct.pack(">BBHH", POINTER_EVENT, button_mask & 0xFF, x, y)


class Framebuffer:
    """Client-side reconstruction of the remote screen in wire pixel order."""

    def __init__(self, width: int, height: int, bytes_per_pixel: int = 4):
        self.bytes_per_pixel = bytes_per_pixel
        self.resize(width, height)

    def resize(self, width: int, height: int) -> None:
        self.width = width
        self.height = height
        self.data = bytearray(width * height * self.bytes_per_pixel)

    def _check_bounds(self, x: int, y: int, width: int, height: int) -> None:
        if x + width > self.width or y + height > self.height:
            raise RfbProtocolError(
                f"Rectangle {width}x{height}+{x}+{y} outside "
                f"{self.width}x{self.height} framebuffer"
            )

    def apply_raw(self, x: int, y: int, width: int, height: int, pixels: bytes) -> None:
        """Blit a Raw-encoded rectangle."""
        self._check_bounds(x, y, width, height)
        bpp = self.bytes_per_pixel
        row_bytes = width * bpp
        if len(pixels) != row_bytes * height:
            raise RfbProtocolError("Raw rectangle length mismatch")
        for row in range(height):
            dst = ((y + row) * self.width + x) * bpp
            src = row * row_bytes
            self.data[dst:dst + row_bytes] = pixels[src:src + row_bytes]

    def copy_rect(
        self, src_x: int, src_y: int, x: int, y: int, width: int, height: int
    ) -> None:
        """Apply a CopyRect rectangle; source and target may overlap."""
        self._check_bounds(src_x, src_y, width, height)
        self._check_bounds(x, y, width, height)
        bpp = self.bytes_per_pixel
        row_bytes = width * bpp
        rows = []
        for row in range(height):
            src = ((src_y + row) * self.width + src_x) * bpp
            rows.append(bytes(self.data[src:src + row_bytes]))
        self.apply_raw(x, y, width, height, b"".join(rows))

    def to_image(self, pixel_format: PixelFormat) -> Image.Image:
        """Snapshot the buffer as an RGBA image with opaque alpha."""
        red, green, blue = pixel_format.channel_offsets()
        size = (self.width, self.height)
        raw = Image.frombytes("RGBA", size, bytes(self.data))
        bands = raw.split()
        alpha = Image.new("L", size, 255)
        return Image.merge("RGBA", (bands[red], bands[green], bands[blue], alpha))
