"""Terminal layer: raw input, key parsing, inline images and text measurement."""

from fluxy.tui.keys import MouseEvent, parse_key, parse_mouse
from fluxy.tui.stdin_buffer import StdinBuffer
from fluxy.tui.terminal import ProcessTerminal, Terminal, move_to
from fluxy.tui.terminal_image import (
    DEFAULT_CELL_DIMENSIONS,
    CellDimensions,
    ImageDimensions,
    ImageEncoder,
    ImageProtocol,
    TerminalCapabilities,
    detect_capabilities,
    get_image_dimensions,
)
from fluxy.tui.utils import truncate_to_width, visible_width, wrap_text

__all__ = [
    "DEFAULT_CELL_DIMENSIONS",
    "CellDimensions",
    "ImageDimensions",
    "ImageEncoder",
    "ImageProtocol",
    "MouseEvent",
    "ProcessTerminal",
    "StdinBuffer",
    "Terminal",
    "TerminalCapabilities",
    "detect_capabilities",
    "get_image_dimensions",
    "move_to",
    "parse_key",
    "parse_mouse",
    "truncate_to_width",
    "visible_width",
    "wrap_text",
]
