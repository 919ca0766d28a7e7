"""Reassemble raw stdin chunks into complete key, mouse and reply sequences.

Raw-mode reads can split an escape sequence across chunks (an SGR mouse
report or a CSI 16 t cell-size reply arriving in two reads, say). Emitting
the halves separately would turn them into bogus key presses, so partial
sequences are held back until they complete or a short timeout expires.
"""

from __future__ import annotations

import asyncio
import re
from typing import Callable, Literal

ESC = "\x1b"
BRACKETED_PASTE_START = "\x1b[200~"
BRACKETED_PASTE_END = "\x1b[201~"

Completeness = Literal["complete", "incomplete", "not-escape"]

_SGR_MOUSE_RE = re.compile(r"^<\d+;\d+;\d+[Mm]$")

# Introducers of string-type sequences terminated by ST (or BEL for OSC)
_STRING_INTRODUCERS = {"]": True, "P": False, "_": False}


def classify_sequence(data: str) -> Completeness:
    """Report whether *data* is a complete escape sequence."""
    if not data.startswith(ESC):
        return "not-escape"
    if len(data) == 1:
        return "incomplete"

    kind = data[1]
    if kind == "[":
        return _classify_csi(data)
    if kind in _STRING_INTRODUCERS:
        if data.endswith(f"{ESC}\\"):
            return "complete"
        if _STRING_INTRODUCERS[kind] and data.endswith("\x07"):
            return "complete"
        return "incomplete"
    if kind == "O":
        return "complete" if len(data) >= 3 else "incomplete"
    # ESC followed by a single character is an alt/meta key
    return "complete"


def _classify_csi(data: str) -> Completeness:
    if len(data) < 3:
        return "incomplete"

    payload = data[2:]
    if payload.startswith("M"):
        # X10 mouse: ESC [ M b x y
        return "complete" if len(data) >= 6 else "incomplete"

    final = payload[-1]
    if not 0x40 <= ord(final) <= 0x7E:
        return "incomplete"

    if payload.startswith("<"):
        if _SGR_MOUSE_RE.match(payload):
            return "complete"
        return "incomplete"
    return "complete"


def split_sequences(buffer: str) -> tuple[list[str], str]:
    """Split *buffer* into complete sequences and a pending remainder."""
    sequences: list[str] = []
    pos = 0

    while pos < len(buffer):
        if buffer[pos] != ESC:
            sequences.append(buffer[pos])
            pos += 1
            continue

        end = pos + 1
        while end <= len(buffer):
            if classify_sequence(buffer[pos:end]) != "incomplete":
                sequences.append(buffer[pos:end])
                pos = end
                break
            end += 1
        else:
            return sequences, buffer[pos:]

    return sequences, ""


class StdinBuffer:
    """Buffers stdin input and emits complete sequences.

    Bracketed pastes are collected whole and delivered through the paste
    callback so that a pasted prompt never triggers key bindings.
    """

    def __init__(self, *, timeout: float = 0.01) -> None:
        self._buffer = ""
        self._timeout = timeout
        self._timeout_handle: asyncio.TimerHandle | None = None
        self._paste_buffer: str | None = None

        self._on_data: Callable[[str], None] | None = None
        self._on_paste: Callable[[str], None] | None = None

    def on_data(self, callback: Callable[[str], None]) -> None:
        self._on_data = callback

    def on_paste(self, callback: Callable[[str], None]) -> None:
        self._on_paste = callback

    @property
    def pending(self) -> str:
        return self._buffer

    def process(self, data: str) -> None:
        """Feed a chunk of decoded stdin data."""
        self._cancel_timeout()

        if self._paste_buffer is not None:
            self._paste_buffer += data
            self._finish_paste()
            return

        self._buffer += data
        start = self._buffer.find(BRACKETED_PASTE_START)
        if start != -1:
            before = self._buffer[:start]
            self._paste_buffer = self._buffer[start + len(BRACKETED_PASTE_START):]
            self._buffer = ""
            sequences, remainder = split_sequences(before)
            self._emit_all(sequences + ([remainder] if remainder else []))
            self._finish_paste()
            return

        sequences, self._buffer = split_sequences(self._buffer)
        self._emit_all(sequences)

        if self._buffer:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                self._emit_all(self.flush())
                return
            self._timeout_handle = loop.call_later(self._timeout, self._on_timeout)

    def flush(self) -> list[str]:
        """Return (and drop) any incomplete sequence still buffered."""
        self._cancel_timeout()
        if not self._buffer:
            return []
        pending, self._buffer = self._buffer, ""
        return [pending]

    def clear(self) -> None:
        self._cancel_timeout()
        self._buffer = ""
        self._paste_buffer = None

    def _finish_paste(self) -> None:
        if self._paste_buffer is None:
            return
        end = self._paste_buffer.find(BRACKETED_PASTE_END)
        if end == -1:
            return
        content = self._paste_buffer[:end]
        remaining = self._paste_buffer[end + len(BRACKETED_PASTE_END):]
        self._paste_buffer = None
        if self._on_paste is not None:
            self._on_paste(content)
        if remaining:
            self.process(remaining)

    def _on_timeout(self) -> None:
        self._timeout_handle = None
        self._emit_all(self.flush())

    def _cancel_timeout(self) -> None:
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
            self._timeout_handle = None

    def _emit_all(self, sequences: list[str]) -> None:
        if self._on_data is None:
            return
        for sequence in sequences:
            self._on_data(sequence)
