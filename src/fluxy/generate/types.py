"""Value types exchanged between the generation driver and the UI loop."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from fluxy.errors import UnexpectedResponseError
from fluxy.generate.models import ModelVariant


@dataclass(frozen=True)
class GenerationRequest:
    """Everything needed to start one job."""

    prompt: str
    variant: ModelVariant
    aspect_ratio: str = "1:1"
    output_format: str = "png"


@dataclass(frozen=True)
class JobHandle:
    """Identifies one submitted prediction and where to poll it."""

    id: str
    get_url: str


class JobState(str, enum.Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# Replicate statuses that are not yet terminal
_PENDING_STATUSES = {"starting", "processing", "queued"}


class Prediction(BaseModel):
    """The subset of a prediction object this client reads."""

    model_config = ConfigDict(extra="ignore")

    id: str = ""
    status: str
    output: str | list[Any] | None = None
    error: Any = None
    urls: dict[str, str | None] = {}

    @classmethod
    def parse(cls, body: dict[str, Any]) -> Prediction:
        try:
            return cls.model_validate(body)
        except ValidationError as exc:
            raise UnexpectedResponseError(f"malformed prediction: {exc.errors()[0]['msg']}") from exc


@dataclass(frozen=True)
class JobStatus:
    state: JobState
    output_url: str | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state is not JobState.PENDING

    @classmethod
    def from_response(cls, body: dict[str, Any]) -> JobStatus:
        """Interpret a prediction object returned by the service."""
        return cls.from_prediction(Prediction.parse(body))

    @classmethod
    def from_prediction(cls, prediction: Prediction) -> JobStatus:
        status = prediction.status
        if status == "succeeded":
            return cls(JobState.SUCCEEDED, output_url=_first_output_url(prediction.output))
        if status in ("failed", "canceled"):
            return cls(JobState.FAILED, error=str(prediction.error) if prediction.error else status)
        if status in _PENDING_STATUSES:
            return cls(JobState.PENDING)
        raise UnexpectedResponseError(f"unknown prediction status: {status!r}")


def _first_output_url(output: Any) -> str:
    if isinstance(output, str) and output:
        return output
    if isinstance(output, list) and output and isinstance(output[0], str):
        return output[0]
    raise UnexpectedResponseError(f"unexpected output field: {type(output).__name__}")


class FailureKind(str, enum.Enum):
    CONFIGURATION = "configuration"
    TRANSPORT = "transport"
    REMOTE = "remote"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class Failure:
    kind: FailureKind
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class ImageReady:
    data: bytes = field(repr=False)
    url: str = ""


JobResult = Union[ImageReady, Failure]
