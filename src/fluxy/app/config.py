"""Application configuration, built once at startup and passed down."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from fluxy.generate.driver import DEFAULT_POLL_INTERVAL
from fluxy.generate.models import SCHNELL, ModelVariant
from fluxy.tui.terminal_image import ImageProtocol


@dataclass(frozen=True)
class AppConfig:
    """Immutable run configuration."""

    token: str | None = None
    variant: ModelVariant = SCHNELL
    aspect_ratio: str = "1:1"
    output_format: str = "png"
    output_dir: Path = field(default_factory=Path.cwd)
    display_protocol: ImageProtocol | None = "kitty"
    terminal_program: str = "unknown"
    initial_prompt: str = ""
    poll_interval: float = DEFAULT_POLL_INTERVAL
    job_timeout: float | None = None
