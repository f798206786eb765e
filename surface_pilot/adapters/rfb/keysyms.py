"""X11 keysym lookup for press/release/type actions."""

from __future__ import annotations

from surface_pilot.core.errors import UnknownKeyError

KEY_MAP: dict[str, int] = {
    "backspace": 0xFF08, "tab": 0xFF09, "enter": 0xFF0D, "return": 0xFF0D,
    "escape": 0xFF1B, "esc": 0xFF1B, "insert": 0xFF63, "delete": 0xFFFF, "del": 0xFFFF,
    "home": 0xFF50, "end": 0xFF57, "pageup": 0xFF55, "pagedown": 0xFF56,
    "left": 0xFF51, "up": 0xFF52, "right": 0xFF53, "down": 0xFF54,
    "f1": 0xFFBE, "f2": 0xFFBF, "f3": 0xFFC0, "f4": 0xFFC1, "f5": 0xFFC2, "f6": 0xFFC3,
    "f7": 0xFFC4, "f8": 0xFFC5, "f9": 0xFFC6, "f10": 0xFFC7, "f11": 0xFFC8, "f12": 0xFFC9,
    "shift": 0xFFE1, "ctrl": 0xFFE3, "control": 0xFFE3, "alt": 0xFFE9,
    "meta": 0xFFE7, "win": 0xFFEB, "super": 0xFFEB, "space": 0x0020,
}

# Control characters that appear in typed text
CHAR_MAP: dict[str, int] = {
    "\n": 0xFF0D,
    "\r": 0xFF0D,
    "\t": 0xFF09,
    "\b": 0xFF08,
}


def keysym_for_char(char: str) -> int:
    """Keysym for one typed character.

    Latin-1 characters map to their code point; everything else uses the
    Unicode keysym range ``0x01000000 + codepoint``.
    """
    if char in CHAR_MAP:
        return CHAR_MAP[char]
    code = ord(char)
    if 0x20 <= code <= 0x7E or 0xA0 <= code <= 0xFF:
        return code
    return 0x01000000 + code


def keysym_for_key(key: str) -> int:
    """Keysym for a named key or a single character.

    Raises:
        UnknownKeyError: If the name is neither mapped nor a single character
    """
    lower = key.lower()
    if lower in KEY_MAP:
        return KEY_MAP[lower]
    if len(key) == 1:
        return keysym_for_char(key)
    raise UnknownKeyError(key)
