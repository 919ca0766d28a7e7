"""Reusable terminal UI components."""

from fluxy.tui.components.input import Input
from fluxy.tui.components.loader import FRAME_INTERVAL, FRAMES, spinner_frame

__all__ = [
    "FRAMES",
    "FRAME_INTERVAL",
    "Input",
    "spinner_frame",
]
