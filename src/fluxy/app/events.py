"""Events consumed by the UI loop.

Terminal callbacks, the spinner timer and job tasks all communicate with
the loop by posting one of these onto its queue; only the loop touches
the session.
"""

from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel, ConfigDict

from fluxy.generate.types import Failure, ImageReady
from fluxy.tui.terminal_image import CellDimensions


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


class InputEvent(_Event):
    type: Literal["input"] = "input"
    data: str


class ResizeEvent(_Event):
    type: Literal["resize"] = "resize"
    columns: int
    rows: int


class TickEvent(_Event):
    type: Literal["tick"] = "tick"


class CellSizeEvent(_Event):
    type: Literal["cell_size"] = "cell_size"
    cell_size: CellDimensions


class JobCompleted(_Event):
    """A job finished; ``token`` is the generation token it was started with."""

    type: Literal["job_completed"] = "job_completed"
    token: int
    result: Union[ImageReady, Failure]


UIEvent = Union[InputEvent, ResizeEvent, TickEvent, CellSizeEvent, JobCompleted]
