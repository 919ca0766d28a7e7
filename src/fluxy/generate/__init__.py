"""Generation job driver for FLUX models on Replicate."""

from fluxy.generate.driver import DEFAULT_POLL_INTERVAL, JobDriver
from fluxy.generate.env import get_api_token
from fluxy.generate.models import (
    ASPECT_RATIOS,
    MODEL_VARIANTS,
    OUTPUT_FORMATS,
    ModelVariant,
    build_request_body,
    get_variant,
)
from fluxy.generate.types import (
    Failure,
    FailureKind,
    GenerationRequest,
    ImageReady,
    JobHandle,
    JobResult,
    JobState,
    JobStatus,
    Prediction,
)

__all__ = [
    "ASPECT_RATIOS",
    "DEFAULT_POLL_INTERVAL",
    "Failure",
    "FailureKind",
    "GenerationRequest",
    "ImageReady",
    "JobDriver",
    "JobHandle",
    "JobResult",
    "JobState",
    "JobStatus",
    "MODEL_VARIANTS",
    "ModelVariant",
    "OUTPUT_FORMATS",
    "Prediction",
    "build_request_body",
    "get_api_token",
    "get_variant",
]
