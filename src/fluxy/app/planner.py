"""Render planner: decide what the next frame looks like.

:func:`plan_frame` is a pure function of the session and of what was last
drawn. It never writes to the terminal; the output sink turns the
returned :class:`FrameSpec` into escape sequences.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from fluxy.app.session import Mode, Selection, Session, Viewport
from fluxy.generate.types import Failure
from fluxy.tui.components.loader import spinner_frame
from fluxy.tui.terminal_image import CellDimensions, image_fallback, native_cell_size
from fluxy.tui.utils import strip_ansi, truncate_to_width, visible_width, wrap_text

TITLE_BAND_HEIGHT = 2
CONTROLS_BAND_HEIGHT = 3
IMAGE_TOP_OFFSET = 1
SIDE_MARGIN = 1

PROMPT_PANEL_WIDTH = 60
LOADING_PANEL_WIDTH = 40
ERROR_PANEL_WIDTH = 60

BUTTON_GAP = 4
BUTTON_LABELS = {
    Selection.PRIMARY: "Regenerate",
    Selection.SECONDARY: "Download",
}

REVERSE_ON = "\x1b[7m"
REVERSE_OFF = "\x1b[27m"
BOLD_ON = "\x1b[1m"
BOLD_OFF = "\x1b[22m"
DIM_ON = "\x1b[2m"
DIM_OFF = "\x1b[22m"


class PanelKind(str, enum.Enum):
    INITIALIZING = "initializing"
    PROMPT = "prompt"
    LOADING = "loading"
    IMAGE = "image"
    ERROR = "error"
    DIAGNOSTIC = "diagnostic"


@dataclass(frozen=True)
class TextBlock:
    row: int
    col: int
    text: str


@dataclass(frozen=True)
class ImagePlacement:
    row: int
    col: int
    columns: int
    rows: int
    image_id: int


@dataclass(frozen=True)
class ButtonSpec:
    row: int
    col: int
    width: int
    selection: Selection

    def contains(self, row: int, col: int) -> bool:
        return row == self.row and self.col <= col < self.col + self.width


@dataclass(frozen=True)
class DrawnState:
    """What the sink last put on screen, as far as layout is concerned."""

    epoch: int
    viewport: Viewport
    cell_size: CellDimensions


@dataclass(frozen=True)
class FrameSpec:
    panel: PanelKind
    epoch: int
    viewport: Viewport
    cell_size: CellDimensions
    text: tuple[TextBlock, ...] = ()
    image: ImagePlacement | None = None
    buttons: tuple[ButtonSpec, ...] = ()
    must_clear_first: bool = False

    @property
    def image_cell_size(self) -> tuple[int, int] | None:
        if self.image is None:
            return None
        return self.image.columns, self.image.rows

    def drawn_state(self) -> DrawnState:
        return DrawnState(epoch=self.epoch, viewport=self.viewport, cell_size=self.cell_size)


def fit_image(
    native_columns: int,
    native_rows: int,
    max_columns: int,
    max_rows: int,
) -> tuple[int, int]:
    """Scale an image's cell footprint down to fit, preserving aspect ratio.

    Images that already fit are returned unchanged: never upscaled.
    """
    native_columns = max(1, native_columns)
    native_rows = max(1, native_rows)
    if native_columns <= max_columns and native_rows <= max_rows:
        return native_columns, native_rows

    scale = min(max_columns / native_columns, max_rows / native_rows)
    # Tolerance keeps exact ratios like 80.0 from flooring to 79
    columns = int(native_columns * scale + 1e-9)
    rows = int(native_rows * scale + 1e-9)
    return max(1, min(columns, max_columns)), max(1, min(rows, max_rows))


def image_area(viewport: Viewport) -> tuple[int, int]:
    """Columns and rows left for the image between the title and control bands."""
    width = viewport.width - 2 * SIDE_MARGIN
    height = viewport.height - TITLE_BAND_HEIGHT - IMAGE_TOP_OFFSET - CONTROLS_BAND_HEIGHT
    return max(0, width), max(0, height)


def needs_clear(session: Session, drawn: DrawnState | None) -> bool:
    if drawn is None:
        return True
    return (
        drawn.epoch != session.render_epoch
        or drawn.viewport != session.viewport
        or drawn.cell_size != session.cell_size
    )


def plan_frame(session: Session, drawn: DrawnState | None = None) -> FrameSpec:
    """Compute the frame for *session* given the last drawn state."""
    base = dict(
        epoch=session.render_epoch,
        viewport=session.viewport,
        cell_size=session.cell_size,
        must_clear_first=needs_clear(session, drawn),
    )
    viewport = session.viewport

    if viewport.is_empty:
        return FrameSpec(PanelKind.INITIALIZING, text=(TextBlock(0, 0, "Initializing..."),), **base)

    if session.last_error is not None:
        return FrameSpec(PanelKind.ERROR, text=_error_panel(session, session.last_error), **base)

    if session.mode is Mode.AWAITING_PROMPT:
        return FrameSpec(PanelKind.PROMPT, text=_prompt_panel(session), **base)

    if session.is_busy:
        return FrameSpec(PanelKind.LOADING, text=_loading_panel(session), **base)

    return _image_frame(session, base)


# -- panels -----------------------------------------------------------------


def _box(lines: list[str], inner_width: int) -> list[str]:
    """Surround lines with a rounded border, padding each to *inner_width*."""
    top = "╭" + "─" * (inner_width + 2) + "╮"
    bottom = "╰" + "─" * (inner_width + 2) + "╯"
    body = []
    for line in lines:
        if visible_width(line) > inner_width:
            line = strip_ansi(line)
        body.append("│ " + truncate_to_width(line, inner_width, pad=True) + " │")
    return [top, *body, bottom]


def _centered(lines: list[str], viewport: Viewport) -> tuple[TextBlock, ...]:
    width = max((visible_width(line) for line in lines), default=0)
    top = max(0, (viewport.height - len(lines)) // 2)
    left = max(0, (viewport.width - width) // 2)
    return tuple(
        TextBlock(top + index, left, line)
        for index, line in enumerate(lines)
        if top + index < viewport.height
    )


def _panel_inner_width(preferred: int, viewport: Viewport) -> int:
    # Border and padding take four columns
    return max(1, min(preferred, viewport.width) - 4)


def _prompt_panel(session: Session) -> tuple[TextBlock, ...]:
    inner = _panel_inner_width(PROMPT_PANEL_WIDTH, session.viewport)
    lines = [
        f"{BOLD_ON}Enter a prompt to generate an image{BOLD_OFF}",
        "",
        session.editor.render(inner),
        "",
        f"{DIM_ON}enter: generate  ctrl+c: quit{DIM_OFF}",
    ]
    if session.status:
        lines.append(truncate_to_width(session.status, inner))
    return _centered(_box(lines, inner), session.viewport)


def _loading_panel(session: Session) -> tuple[TextBlock, ...]:
    inner = _panel_inner_width(LOADING_PANEL_WIDTH, session.viewport)
    verb = "Regenerating" if session.mode is Mode.REGENERATING else "Generating"
    message = f"{spinner_frame(session.spinner_tick)} {verb} image..."
    pad = max(0, (inner - visible_width(message)) // 2)
    return _centered(_box([" " * pad + message], inner), session.viewport)


def _error_panel(session: Session, failure: Failure) -> tuple[TextBlock, ...]:
    viewport = session.viewport
    inner = _panel_inner_width(ERROR_PANEL_WIDTH, viewport)

    message = wrap_text(failure.message, inner)
    footer = f"{DIM_ON}enter: try again  q: quit{DIM_OFF}"
    # Title, blank, blank, footer plus the two border rows
    room = max(1, viewport.height - 6)
    lines = [f"{BOLD_ON}Generation failed{BOLD_OFF}", "", *message[:room], "", footer]
    return _centered(_box(lines, inner), viewport)


def _image_frame(session: Session, base: dict) -> FrameSpec:
    viewport = session.viewport
    text = [_title_line(session)]
    buttons = _buttons(session)
    text.extend(TextBlock(b.row, b.col, _button_label(b, session.selection)) for b in buttons)
    text.append(_help_line(session))

    protocol = session.config.display_protocol
    dimensions = session.image_dimensions
    max_columns, max_rows = image_area(viewport)

    reason = None
    if session.decode_error:
        reason = session.decode_error
    elif protocol is None:
        reason = "terminal has no inline image support"
    elif dimensions is None:
        reason = "unrecognised image format"
    elif max_columns < 1 or max_rows < 1:
        reason = "terminal is too small to show the image"

    if reason is not None:
        lines = [
            f"{BOLD_ON}Cannot display the image inline{BOLD_OFF}",
            "",
            image_fallback(protocol, session.config.terminal_program, dimensions),
            reason,
            "",
            "The image can still be downloaded.",
        ]
        inner = _panel_inner_width(ERROR_PANEL_WIDTH, viewport)
        text.extend(_centered(_box(lines, inner), viewport))
        return FrameSpec(PanelKind.DIAGNOSTIC, text=tuple(text), buttons=buttons, **base)

    native_columns, native_rows = native_cell_size(dimensions, session.cell_size)
    columns, rows = fit_image(native_columns, native_rows, max_columns, max_rows)
    placement = ImagePlacement(
        row=TITLE_BAND_HEIGHT + IMAGE_TOP_OFFSET,
        col=max(0, (viewport.width - columns) // 2),
        columns=columns,
        rows=rows,
        image_id=_image_id(session.render_epoch),
    )
    return FrameSpec(
        PanelKind.IMAGE,
        text=tuple(text),
        image=placement,
        buttons=buttons,
        **base,
    )


def _image_id(epoch: int) -> int:
    # Kitty image ids are 32-bit and must be non-zero
    return (epoch % 0xFFFFFFFE) + 1


def _title_line(session: Session) -> TextBlock:
    name = session.config.variant.name
    title = truncate_to_width(f"{name} · {session.prompt}", session.viewport.width - 2 * SIDE_MARGIN)
    if title.startswith(name):
        title = BOLD_ON + name + BOLD_OFF + title[len(name) :]
    return TextBlock(0, SIDE_MARGIN, title)


def _buttons(session: Session) -> tuple[ButtonSpec, ...]:
    viewport = session.viewport
    widths = [len(BUTTON_LABELS[s]) + 4 for s in (Selection.PRIMARY, Selection.SECONDARY)]
    total = sum(widths) + BUTTON_GAP
    row = max(0, viewport.height - 2)
    col = max(0, (viewport.width - total) // 2)
    primary = ButtonSpec(row, col, widths[0], Selection.PRIMARY)
    secondary = ButtonSpec(row, col + widths[0] + BUTTON_GAP, widths[1], Selection.SECONDARY)
    return primary, secondary


def _button_label(button: ButtonSpec, selected: Selection) -> str:
    label = f"[ {BUTTON_LABELS[button.selection]} ]"
    if button.selection is selected:
        return REVERSE_ON + label + REVERSE_OFF
    return label


def _help_line(session: Session) -> TextBlock:
    viewport = session.viewport
    message = session.status or "tab/arrows: select  enter: activate  q: quit"
    message = truncate_to_width(message, viewport.width - 2 * SIDE_MARGIN)
    col = max(0, (viewport.width - visible_width(message)) // 2)
    if not session.status:
        message = DIM_ON + message + DIM_OFF
    return TextBlock(viewport.height - 1, col, message)
