"""Keyboard and mouse input parsing.

``parse_key`` turns one complete input sequence (as emitted by
:class:`~fluxy.tui.stdin_buffer.StdinBuffer`) into a key identifier such as
``"enter"``, ``"ctrl+c"`` or ``"shift+tab"``. ``parse_mouse`` decodes SGR
mouse reports.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

KeyId = str


# Legacy escape sequences -> key names
LEGACY_KEY_SEQUENCES: dict[str, str] = {
    "\x1b[A": "up",
    "\x1b[B": "down",
    "\x1b[C": "right",
    "\x1b[D": "left",
    "\x1b[H": "home",
    "\x1b[F": "end",
    "\x1bOA": "up",
    "\x1bOB": "down",
    "\x1bOC": "right",
    "\x1bOD": "left",
    "\x1bOH": "home",
    "\x1bOF": "end",
    "\x1b[1~": "home",
    "\x1b[4~": "end",
    "\x1b[3~": "delete",
    "\x1b[Z": "shift+tab",
}

# xterm-style modifier parameter -> prefix, e.g. ESC [ 1 ; 5 D = ctrl+left
_MODIFIER_PREFIXES: dict[int, str] = {
    2: "shift+",
    3: "alt+",
    4: "shift+alt+",
    5: "ctrl+",
    6: "ctrl+shift+",
    7: "ctrl+alt+",
    8: "ctrl+shift+alt+",
}

_MODIFIED_CSI_RE = re.compile(r"^\x1b\[1;(\d)([ABCDHF])$")
_MODIFIED_TILDE_RE = re.compile(r"^\x1b\[(\d+);(\d)~$")

_CSI_FINAL_TO_KEY = {
    "A": "up",
    "B": "down",
    "C": "right",
    "D": "left",
    "H": "home",
    "F": "end",
}
_TILDE_TO_KEY = {1: "home", 3: "delete", 4: "end"}


def parse_key(data: str) -> KeyId | None:
    """Parse raw terminal input and return its key identifier, or ``None``."""
    if not data:
        return None

    if data in LEGACY_KEY_SEQUENCES:
        return LEGACY_KEY_SEQUENCES[data]

    match = _MODIFIED_CSI_RE.match(data)
    if match:
        prefix = _MODIFIER_PREFIXES.get(int(match.group(1)), "")
        return prefix + _CSI_FINAL_TO_KEY[match.group(2)]

    match = _MODIFIED_TILDE_RE.match(data)
    if match and int(match.group(1)) in _TILDE_TO_KEY:
        prefix = _MODIFIER_PREFIXES.get(int(match.group(2)), "")
        return prefix + _TILDE_TO_KEY[int(match.group(1))]

    if data == "\x1b":
        return "escape"
    if data in ("\r", "\n"):
        return "enter"
    if data == "\t":
        return "tab"
    if data == " ":
        return "space"
    if data in ("\x7f", "\x08"):
        return "backspace"

    if len(data) == 1 and 1 <= ord(data) <= 26:
        return "ctrl+" + chr(ord(data) + ord("a") - 1)

    if len(data) == 2 and data[0] == "\x1b":
        ch = data[1]
        if ch in ("\x7f", "\x08"):
            return "alt+backspace"
        if ch in ("\r", "\n"):
            return "alt+enter"
        if ch.isprintable():
            return "alt+" + ch.lower()

    if len(data) == 1 and data.isprintable():
        return data

    return None


def is_printable(data: str) -> bool:
    """Return ``True`` if *data* is plain text (no control characters)."""
    return bool(data) and not any(
        ord(ch) < 32 or ord(ch) == 0x7F or 0x80 <= ord(ch) <= 0x9F for ch in data
    )


# ---------------------------------------------------------------------------
# Mouse
# ---------------------------------------------------------------------------

_SGR_MOUSE_RE = re.compile(r"^\x1b\[<(\d+);(\d+);(\d+)([Mm])$")


@dataclass(frozen=True)
class MouseEvent:
    """A decoded SGR mouse report; ``row``/``col`` are 0-based cells."""

    button: int
    row: int
    col: int
    pressed: bool

    @property
    def is_left_click(self) -> bool:
        # Bits 5 (motion) and 6 (wheel) must be clear
        return self.pressed and (self.button & ~0x1C) == 0


def parse_mouse(data: str) -> MouseEvent | None:
    match = _SGR_MOUSE_RE.match(data)
    if match is None:
        return None
    return MouseEvent(
        button=int(match.group(1)),
        col=int(match.group(2)) - 1,
        row=int(match.group(3)) - 1,
        pressed=match.group(4) == "M",
    )
