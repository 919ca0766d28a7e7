"""Input component - single-line prompt editor with horizontal scrolling."""

from __future__ import annotations

import re

from fluxy.tui.keys import is_printable, parse_key
from fluxy.tui.stdin_buffer import BRACKETED_PASTE_END, BRACKETED_PASTE_START
from fluxy.tui.utils import (
    graphemes,
    is_punctuation_char,
    is_whitespace_char,
    strip_ansi,
    visible_width,
)

CURSOR_ON = "\x1b[7m"
CURSOR_OFF = "\x1b[27m"

_LINE_BREAKS = re.compile(r"\r\n|[\r\n\t]")


def clean_paste(text: str) -> str:
    """Flatten pasted text onto one line and drop escape sequences and control characters."""
    text = _LINE_BREAKS.sub(" ", strip_ansi(text))
    return "".join(ch for ch in text if is_printable(ch))


class Input:
    """Single-line text input.

    ``handle_input`` consumes editing keys (characters, backspace, delete,
    cursor movement, word deletion, paste) and reports whether it used the
    key, so callers can give unhandled keys (enter, tab, ...) other meanings.
    """

    def __init__(self, value: str = "", placeholder: str = "") -> None:
        self._value = value
        self._cursor = len(value)
        self.placeholder = placeholder

    @property
    def value(self) -> str:
        return self._value

    @property
    def cursor(self) -> int:
        return self._cursor

    def set_value(self, value: str) -> None:
        self._value = value
        self._cursor = len(value)

    def handle_input(self, data: str) -> bool:
        if data.startswith(BRACKETED_PASTE_START) and data.endswith(BRACKETED_PASTE_END):
            pasted = data[len(BRACKETED_PASTE_START) : -len(BRACKETED_PASTE_END)]
            self._insert(clean_paste(pasted))
            return True

        key = parse_key(data)
        if key == "backspace":
            self._delete_backward()
        elif key == "delete" or key == "ctrl+d":
            self._delete_forward()
        elif key in ("left", "ctrl+b"):
            self._move_left()
        elif key in ("right", "ctrl+f"):
            self._move_right()
        elif key in ("home", "ctrl+a"):
            self._cursor = 0
        elif key in ("end", "ctrl+e"):
            self._cursor = len(self._value)
        elif key in ("ctrl+w", "alt+backspace"):
            self._delete_word_backward()
        elif key == "ctrl+u":
            self._value = self._value[self._cursor :]
            self._cursor = 0
        elif key == "ctrl+k":
            self._value = self._value[: self._cursor]
        elif key == "space":
            self._insert(" ")
        elif is_printable(data):
            self._insert(data)
        else:
            return False
        return True

    # -- editing ------------------------------------------------------------

    def _insert(self, text: str) -> None:
        self._value = self._value[: self._cursor] + text + self._value[self._cursor :]
        self._cursor += len(text)

    def _delete_backward(self) -> None:
        if self._cursor == 0:
            return
        clusters = graphemes(self._value[: self._cursor])
        size = len(clusters[-1]) if clusters else 1
        self._value = self._value[: self._cursor - size] + self._value[self._cursor :]
        self._cursor -= size

    def _delete_forward(self) -> None:
        if self._cursor >= len(self._value):
            return
        clusters = graphemes(self._value[self._cursor :])
        size = len(clusters[0]) if clusters else 1
        self._value = self._value[: self._cursor] + self._value[self._cursor + size :]

    def _move_left(self) -> None:
        if self._cursor > 0:
            clusters = graphemes(self._value[: self._cursor])
            self._cursor -= len(clusters[-1]) if clusters else 1

    def _move_right(self) -> None:
        if self._cursor < len(self._value):
            clusters = graphemes(self._value[self._cursor :])
            self._cursor += len(clusters[0]) if clusters else 1

    def _delete_word_backward(self) -> None:
        if self._cursor == 0:
            return
        clusters = graphemes(self._value[: self._cursor])
        start = self._cursor

        while clusters and is_whitespace_char(clusters[-1]):
            start -= len(clusters.pop())
        if clusters and is_punctuation_char(clusters[-1]):
            while clusters and is_punctuation_char(clusters[-1]):
                start -= len(clusters.pop())
        else:
            while (
                clusters
                and not is_whitespace_char(clusters[-1])
                and not is_punctuation_char(clusters[-1])
            ):
                start -= len(clusters.pop())

        self._value = self._value[:start] + self._value[self._cursor :]
        self._cursor = start

    # -- rendering ----------------------------------------------------------

    def render(self, width: int) -> str:
        """Render to exactly *width* columns, scrolling to keep the cursor visible."""
        prompt = "> "
        available = width - len(prompt)
        if available <= 0:
            return prompt[:width]

        clusters = graphemes(self._value)
        # Cursor position as a cluster index
        cursor_index = len(graphemes(self._value[: self._cursor]))

        start = 0
        while visible_width("".join(clusters[start : cursor_index + 1])) >= available:
            start += 1

        line = ""
        used = 0
        for index in range(start, len(clusters) + 1):
            cluster = clusters[index] if index < len(clusters) else " "
            cluster_width = max(1, visible_width(cluster))
            if used + cluster_width > available:
                break
            if index == cursor_index:
                line += CURSOR_ON + cluster + CURSOR_OFF
            elif index < len(clusters):
                line += cluster
            else:
                break
            used += cluster_width

        if not self._value and self.placeholder:
            hint = self.placeholder[: max(0, available - used)]
            line += f"\x1b[2m{hint}\x1b[22m"
            used += visible_width(hint)

        return prompt + line + " " * max(0, available - used)
