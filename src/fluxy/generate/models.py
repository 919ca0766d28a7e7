"""FLUX model variants hosted on Replicate, and request body construction."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from fluxy.errors import ConfigurationError

API_BASE_URL = "https://api.replicate.com/v1"

ASPECT_RATIOS: tuple[str, ...] = (
    "1:1",
    "16:9",
    "21:9",
    "2:3",
    "3:2",
    "4:5",
    "5:4",
    "9:16",
    "9:21",
)

OUTPUT_FORMATS: tuple[str, ...] = ("png", "webp", "jpg")

OUTPUT_QUALITY = 100


@dataclass(frozen=True)
class ModelVariant:
    """One FLUX variant with its endpoint and baked-in tuning parameters."""

    name: str
    owner: str
    model: str
    description: str
    defaults: dict[str, Any] = field(default_factory=dict)

    @property
    def predictions_url(self) -> str:
        return f"{API_BASE_URL}/models/{self.owner}/{self.model}/predictions"


SCHNELL = ModelVariant(
    name="schnell",
    owner="black-forest-labs",
    model="flux-schnell",
    description="fastest, safety checker disabled",
    defaults={"disable_safety_checker": True},
)

# flux-pro accepts safety_tolerance 1 (strict) .. 5 (permissive)
PRO = ModelVariant(
    name="pro",
    owner="black-forest-labs",
    model="flux-pro",
    description="highest quality, most permissive safety tolerance",
    defaults={"safety_tolerance": 5},
)

DEV = ModelVariant(
    name="dev",
    owner="black-forest-labs",
    model="flux-dev",
    description="open-weight development model",
)

MODEL_VARIANTS: dict[str, ModelVariant] = {v.name: v for v in (SCHNELL, PRO, DEV)}


def get_variant(name: str) -> ModelVariant:
    try:
        return MODEL_VARIANTS[name]
    except KeyError:
        known = ", ".join(MODEL_VARIANTS)
        raise ConfigurationError(f"Unknown model {name!r} (must be one of: {known})") from None


def build_request_body(
    prompt: str,
    variant: ModelVariant,
    aspect_ratio: str,
    output_format: str,
) -> dict[str, Any]:
    """Build the JSON body for a prediction request."""
    payload: dict[str, Any] = {
        "prompt": prompt,
        "aspect_ratio": aspect_ratio,
        "output_format": output_format,
        "output_quality": OUTPUT_QUALITY,
    }
    payload.update(variant.defaults)
    return {"input": payload}
