"""Saving generated images to disk."""

from __future__ import annotations

import logging
import os
import re
import time
from pathlib import Path

from fluxy.errors import LocalIOError

logger = logging.getLogger(__name__)

MAX_PROMPT_CHARS = 50

_UNSAFE_RE = re.compile(r"[^\w-]")


def sanitize_prompt(prompt: str) -> str:
    """Reduce a prompt to letters, digits, ``-`` and ``_`` for use in a filename."""
    sanitized = _UNSAFE_RE.sub("_", prompt)
    return sanitized[:MAX_PROMPT_CHARS] or "image"


def generate_filename(prompt: str, output_format: str, timestamp: float | None = None) -> str:
    ts = int(time.time() if timestamp is None else timestamp)
    return f"{sanitize_prompt(prompt)}_{ts}.{output_format}"


def save_image(
    image: bytes,
    prompt: str,
    output_dir: Path,
    output_format: str,
    timestamp: float | None = None,
) -> Path:
    """Write *image* under *output_dir* and return the path written.

    Raises :class:`LocalIOError` when the directory or file cannot be written.
    """
    path = Path(output_dir) / generate_filename(prompt, output_format, timestamp)
    try:
        os.makedirs(path.parent, exist_ok=True)
        path.write_bytes(image)
    except OSError as exc:
        raise LocalIOError(f"cannot save image to {path}: {exc.strerror or exc}") from exc
    logger.info("Saved %d bytes to %s", len(image), path)
    return path
