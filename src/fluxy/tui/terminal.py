"""Terminal abstraction for raw-mode stdin/stdout interaction.

Provides a ``Terminal`` protocol and a concrete ``ProcessTerminal`` that
manages raw mode, the alternate screen, bracketed paste, SGR mouse
reporting and resize notification via ANSI escape sequences and the
asyncio event loop.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
import termios
import tty
from typing import Callable, Protocol

from fluxy.tui.stdin_buffer import BRACKETED_PASTE_END, BRACKETED_PASTE_START, StdinBuffer

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# ANSI escape constants
# ---------------------------------------------------------------------------

ALT_SCREEN_ENABLE = "\x1b[?1049h"
ALT_SCREEN_DISABLE = "\x1b[?1049l"
BRACKETED_PASTE_ENABLE = "\x1b[?2004h"
BRACKETED_PASTE_DISABLE = "\x1b[?2004l"
# Button press/release reporting with SGR extended coordinates
MOUSE_ENABLE = "\x1b[?1000h\x1b[?1006h"
MOUSE_DISABLE = "\x1b[?1006l\x1b[?1000l"

HIDE_CURSOR = "\x1b[?25l"
SHOW_CURSOR = "\x1b[?25h"
SAVE_CURSOR = "\x1b7"
RESTORE_CURSOR = "\x1b8"
CLEAR_SCREEN = "\x1b[2J\x1b[H"
CLEAR_LINE = "\x1b[2K"

_SET_TITLE_FMT = "\x1b]0;{}\x07"


def move_to(row: int, col: int) -> str:
    """Absolute cursor position for 0-based *row*/*col*."""
    return f"\x1b[{row + 1};{col + 1}H"


# ---------------------------------------------------------------------------
# Terminal protocol
# ---------------------------------------------------------------------------


class Terminal(Protocol):
    """Interface for terminal I/O operations."""

    def start(
        self,
        on_input: Callable[[str], None],
        on_resize: Callable[[], None],
    ) -> None: ...

    def stop(self) -> None: ...

    def write(self, data: str) -> None: ...

    @property
    def columns(self) -> int: ...

    @property
    def rows(self) -> int: ...

    def set_title(self, title: str) -> None: ...


# ---------------------------------------------------------------------------
# ProcessTerminal implementation
# ---------------------------------------------------------------------------


class ProcessTerminal:
    """Concrete terminal backed by ``sys.stdin``/``sys.stdout``.

    Must be started from inside a running event loop: stdin is read with
    ``loop.add_reader`` and SIGWINCH is delivered through
    ``loop.add_signal_handler``, so both callbacks run on the loop thread.
    """

    def __init__(self) -> None:
        self._input_handler: Callable[[str], None] | None = None
        self._resize_handler: Callable[[], None] | None = None
        self._stdin_buffer: StdinBuffer | None = None
        self._original_termios: list | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    # -- properties ---------------------------------------------------------

    @property
    def columns(self) -> int:
        try:
            return os.get_terminal_size(sys.stdout.fileno()).columns
        except (ValueError, OSError):
            return 80

    @property
    def rows(self) -> int:
        try:
            return os.get_terminal_size(sys.stdout.fileno()).lines
        except (ValueError, OSError):
            return 24

    # -- start / stop -------------------------------------------------------

    def start(
        self,
        on_input: Callable[[str], None],
        on_resize: Callable[[], None],
    ) -> None:
        """Enter raw mode and the alternate screen, then begin reading stdin."""
        self._input_handler = on_input
        self._resize_handler = on_resize
        self._loop = asyncio.get_running_loop()

        fd = sys.stdin.fileno()
        self._original_termios = termios.tcgetattr(fd)
        tty.setraw(fd)

        self._raw_write(
            ALT_SCREEN_ENABLE + BRACKETED_PASTE_ENABLE + MOUSE_ENABLE + HIDE_CURSOR
        )

        self._stdin_buffer = StdinBuffer(timeout=0.01)
        self._stdin_buffer.on_data(self._forward_input)
        self._stdin_buffer.on_paste(
            lambda text: self._forward_input(BRACKETED_PASTE_START + text + BRACKETED_PASTE_END)
        )

        self._loop.add_reader(fd, self._on_stdin_readable)
        self._loop.add_signal_handler(signal.SIGWINCH, self._on_sigwinch)

    def stop(self) -> None:
        """Restore terminal state and clean up all handlers."""
        if self._loop is not None:
            try:
                self._loop.remove_reader(sys.stdin.fileno())
                self._loop.remove_signal_handler(signal.SIGWINCH)
            except (RuntimeError, ValueError):
                pass
            self._loop = None

        if self._stdin_buffer is not None:
            self._stdin_buffer.clear()
            self._stdin_buffer = None

        self._raw_write(
            MOUSE_DISABLE + BRACKETED_PASTE_DISABLE + SHOW_CURSOR + ALT_SCREEN_DISABLE
        )

        if self._original_termios is not None:
            termios.tcsetattr(sys.stdin.fileno(), termios.TCSADRAIN, self._original_termios)
            self._original_termios = None

        self._input_handler = None
        self._resize_handler = None

    # -- output -------------------------------------------------------------

    def write(self, data: str) -> None:
        self._raw_write(data)

    def set_title(self, title: str) -> None:
        self._raw_write(_SET_TITLE_FMT.format(title))

    # -- private ------------------------------------------------------------

    def _forward_input(self, data: str) -> None:
        if self._input_handler is not None:
            self._input_handler(data)

    def _on_stdin_readable(self) -> None:
        try:
            raw = os.read(sys.stdin.fileno(), 4096)
        except OSError as exc:
            logger.debug("stdin read failed: %s", exc)
            return
        if not raw:
            return

        data = raw.decode("utf-8", errors="replace")
        if self._stdin_buffer is not None:
            self._stdin_buffer.process(data)
        else:
            self._forward_input(data)

    def _on_sigwinch(self) -> None:
        if self._resize_handler is not None:
            self._resize_handler()

    def _raw_write(self, data: str) -> None:
        try:
            sys.stdout.write(data)
            sys.stdout.flush()
        except OSError:
            pass
