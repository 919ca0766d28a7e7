"""Spinner frames for the loading panel.

The spinner advances on UI ticks every ``FRAME_INTERVAL`` seconds; the
current frame is derived from a tick counter so rendering stays a pure
function of session state.
"""

from __future__ import annotations

FRAME_INTERVAL = 0.08

FRAMES = ["⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏"]


def spinner_frame(tick: int) -> str:
    return FRAMES[tick % len(FRAMES)]
