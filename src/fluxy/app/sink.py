"""Output sink: turn a planned frame into terminal writes.

Per frame the emitted order is fixed: image clearing (when the plan asks
for it), text, then the image wrapped in a cursor save/restore pair so
that drawing it never moves the logical cursor.
"""

from __future__ import annotations

import logging

from fluxy.app.planner import DrawnState, FrameSpec
from fluxy.app.session import Session
from fluxy.tui.terminal import (
    CLEAR_LINE,
    CLEAR_SCREEN,
    RESTORE_CURSOR,
    SAVE_CURSOR,
    Terminal,
    move_to,
)
from fluxy.tui.terminal_image import ImageEncoder

logger = logging.getLogger(__name__)


class OutputSink:
    """Writes frames to a terminal and remembers what is on screen."""

    def __init__(self, terminal: Terminal, encoder: ImageEncoder | None) -> None:
        self.terminal = terminal
        self.encoder = encoder
        self.drawn: DrawnState | None = None
        self._text_rows: set[int] = set()
        self.frames_written = 0

    def render(self, frame: FrameSpec, session: Session) -> str:
        """Write *frame* and return the exact bytes sent.

        Raises :class:`~fluxy.errors.ProtocolDecodeError` when the image
        cannot be encoded; nothing is written in that case.
        """
        image_payload = ""
        if frame.image is not None:
            if self.encoder is None or not session.image:
                raise ValueError("frame has an image but there is nothing to draw it with")
            # Encode first so a decode failure leaves the screen untouched
            image_payload = self.encoder.encode(
                session.image,
                columns=frame.image.columns,
                rows=frame.image.rows,
                image_id=frame.image.image_id,
            )

        out: list[str] = []
        new_rows = {block.row for block in frame.text}

        if frame.must_clear_first:
            if self.encoder is not None:
                out.append(self.encoder.clear_all_images())
            out.append(CLEAR_SCREEN)
        else:
            for row in sorted(self._text_rows | new_rows):
                out.append(move_to(row, 0) + CLEAR_LINE)

        for block in frame.text:
            out.append(move_to(block.row, block.col))
            out.append(block.text)

        if frame.image is not None:
            out.append(SAVE_CURSOR)
            out.append(move_to(frame.image.row, frame.image.col))
            out.append(image_payload)
            out.append(RESTORE_CURSOR)

        data = "".join(out)
        self.terminal.write(data)

        self.drawn = frame.drawn_state()
        self._text_rows = new_rows
        self.frames_written += 1
        logger.debug(
            "Frame %d: %s clear=%s image=%s",
            self.frames_written,
            frame.panel.value,
            frame.must_clear_first,
            frame.image_cell_size,
        )
        return data

    def reset(self) -> None:
        """Forget the screen contents so the next frame redraws everything."""
        self.drawn = None
        self._text_rows = set()
