"""Session state: the single mutable model driven by the UI loop.

All transitions happen on the UI loop, one event at a time. Transitions
that start a job return a :class:`JobTicket`; the runtime owns the task
and hands the ticket's token back with the result, which lets
:meth:`Session.complete` discard completions that have gone stale.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path

from fluxy.app.config import AppConfig
from fluxy.generate.types import Failure, GenerationRequest, ImageReady, JobResult
from fluxy.tui.components.input import Input
from fluxy.tui.terminal_image import (
    DEFAULT_CELL_DIMENSIONS,
    CellDimensions,
    ImageDimensions,
    get_image_dimensions,
)

logger = logging.getLogger(__name__)


class Mode(str, enum.Enum):
    AWAITING_PROMPT = "awaiting_prompt"
    GENERATING = "generating"
    DISPLAYING = "displaying"
    REGENERATING = "regenerating"
    FAILED = "failed"


class Selection(str, enum.Enum):
    PRIMARY = "regenerate"
    SECONDARY = "download"

    def toggled(self) -> Selection:
        return Selection.SECONDARY if self is Selection.PRIMARY else Selection.PRIMARY


@dataclass(frozen=True)
class Viewport:
    """Terminal size in character cells."""

    width: int = 0
    height: int = 0

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


@dataclass(frozen=True)
class JobTicket:
    """A dispatched job and the generation token that identifies it."""

    token: int
    request: GenerationRequest


@dataclass(eq=False)
class Session:
    config: AppConfig
    mode: Mode = Mode.AWAITING_PROMPT
    prompt: str = ""
    editor: Input = field(default_factory=lambda: Input(placeholder="Enter prompt"))
    viewport: Viewport = field(default_factory=Viewport)
    cell_size: CellDimensions = DEFAULT_CELL_DIMENSIONS
    image: bytes | None = field(default=None, repr=False)
    image_dimensions: ImageDimensions | None = None
    selection: Selection = Selection.PRIMARY
    render_epoch: int = 0
    last_error: Failure | None = None
    decode_error: str | None = None
    status: str | None = None
    saved_path: Path | None = None
    spinner_tick: int = 0
    _generation: int = 0
    _pending_token: int | None = None

    def __post_init__(self) -> None:
        if self.config.initial_prompt and not self.editor.value:
            self.editor.set_value(self.config.initial_prompt)

    # -- queries ------------------------------------------------------------

    @property
    def is_busy(self) -> bool:
        return self.mode in (Mode.GENERATING, Mode.REGENERATING)

    @property
    def pending_token(self) -> int | None:
        return self._pending_token

    @property
    def has_image(self) -> bool:
        return bool(self.image)

    # -- transitions --------------------------------------------------------

    def submit(self, text: str | None = None) -> JobTicket | None:
        """AwaitingPrompt -> Generating. Ignored for blank text or other modes."""
        if self.mode is not Mode.AWAITING_PROMPT:
            return None
        prompt = (self.editor.value if text is None else text).strip()
        if not prompt:
            return None

        self.prompt = prompt
        self.last_error = None
        self.status = None
        self.mode = Mode.GENERATING
        return self._dispatch()

    def regenerate(self) -> JobTicket | None:
        """Displaying/Regenerating -> Regenerating with the same prompt.

        The image is dropped at once and the epoch advances, so the next
        frame clears the terminal image even if the new bytes are identical.
        Re-issuing while a regeneration is in flight supersedes it.
        """
        if self.mode not in (Mode.DISPLAYING, Mode.REGENERATING):
            return None

        if self.image is not None:
            self.image = None
            self.image_dimensions = None
        self.render_epoch += 1
        self.decode_error = None
        self.status = None
        self.mode = Mode.REGENERATING
        return self._dispatch()

    def complete(self, token: int, result: JobResult) -> bool:
        """Apply a job completion. Returns ``False`` for stale completions."""
        if token != self._pending_token or not self.is_busy:
            logger.info(
                "Discarding stale completion %d (pending=%s, mode=%s)",
                token,
                self._pending_token,
                self.mode.value,
            )
            return False

        self._pending_token = None
        if isinstance(result, ImageReady):
            self.image = result.data
            self.image_dimensions = get_image_dimensions(result.data)
            self.render_epoch += 1
            self.selection = Selection.PRIMARY
            self.decode_error = None
            self.mode = Mode.DISPLAYING
        else:
            self.last_error = result
            self.mode = Mode.FAILED
        logger.debug("Job %d completed -> %s", token, self.mode.value)
        return True

    def navigate(self) -> bool:
        """Toggle the selected control when an image is on display."""
        if self.mode not in (Mode.DISPLAYING, Mode.REGENERATING) or not self.has_image:
            return False
        self.selection = self.selection.toggled()
        return True

    def select(self, selection: Selection) -> bool:
        if self.mode not in (Mode.DISPLAYING, Mode.REGENERATING) or not self.has_image:
            return False
        self.selection = selection
        return True

    def can_download(self) -> bool:
        return self.mode is Mode.DISPLAYING and self.has_image

    def resize(self, width: int, height: int) -> None:
        """Record a new viewport; image identity (and so the epoch) is unchanged."""
        self.viewport = Viewport(width=max(0, width), height=max(0, height))

    def set_cell_size(self, cell_size: CellDimensions) -> None:
        self.cell_size = cell_size

    def restart(self) -> None:
        """Failed -> AwaitingPrompt with the previous prompt ready to edit."""
        if self.mode is not Mode.FAILED:
            return
        self.last_error = None
        self.mode = Mode.AWAITING_PROMPT
        self.editor.set_value(self.prompt)

    def tick(self) -> None:
        self.spinner_tick += 1

    def record_decode_error(self, reason: str) -> None:
        self.decode_error = reason

    def record_saved(self, path: Path) -> None:
        self.saved_path = path
        self.status = f"Saved image to {path}"

    def record_status(self, message: str) -> None:
        self.status = message

    # -- private ------------------------------------------------------------

    def _dispatch(self) -> JobTicket:
        self._generation += 1
        self._pending_token = self._generation
        request = GenerationRequest(
            prompt=self.prompt,
            variant=self.config.variant,
            aspect_ratio=self.config.aspect_ratio,
            output_format=self.config.output_format,
        )
        logger.debug("Dispatching job %d for %r", self._generation, self.prompt)
        return JobTicket(token=self._generation, request=request)
