"""Inline image support: capability detection, sizing and protocol encoding.

Two terminal graphics protocols are supported: the Kitty graphics protocol
(also spoken by Ghostty and WezTerm) and the iTerm2 inline-image protocol.
The protocol is resolved once at startup and handed to an
:class:`ImageEncoder`, which turns raw image bytes into the escape sequence
that draws them over a given rectangle of cells.
"""

from __future__ import annotations

import base64
import io
import logging
import os
import re
import struct
from dataclasses import dataclass
from typing import Literal

from PIL import Image, UnidentifiedImageError

from fluxy.errors import ProtocolDecodeError

logger = logging.getLogger(__name__)

ImageProtocol = Literal["kitty", "iterm2"]


@dataclass(frozen=True)
class TerminalCapabilities:
    images: ImageProtocol | None
    program: str


@dataclass(frozen=True)
class CellDimensions:
    width_px: int
    height_px: int


@dataclass(frozen=True)
class ImageDimensions:
    width_px: int
    height_px: int


DEFAULT_CELL_DIMENSIONS = CellDimensions(width_px=9, height_px=18)


def detect_capabilities(environ: dict[str, str] | None = None) -> TerminalCapabilities:
    """Guess the terminal's graphics protocol from its environment."""
    env = os.environ if environ is None else environ
    term_program = env.get("TERM_PROGRAM", "").lower()
    term = env.get("TERM", "").lower()
    program = env.get("TERM_PROGRAM") or env.get("TERM") or "unknown"

    if env.get("KITTY_WINDOW_ID") or term_program == "kitty" or "kitty" in term:
        return TerminalCapabilities(images="kitty", program=program)

    if term_program == "ghostty" or "ghostty" in term or env.get("GHOSTTY_RESOURCES_DIR"):
        return TerminalCapabilities(images="kitty", program=program)

    if env.get("WEZTERM_PANE") or term_program == "wezterm":
        return TerminalCapabilities(images="kitty", program=program)

    if env.get("ITERM_SESSION_ID") or term_program == "iterm.app":
        return TerminalCapabilities(images="iterm2", program=program)

    return TerminalCapabilities(images=None, program=program)


# ---------------------------------------------------------------------------
# Cell size query (CSI 16 t -> CSI 6 ; height ; width t)
# ---------------------------------------------------------------------------

CELL_SIZE_QUERY = "\x1b[16t"
_CELL_SIZE_RESPONSE_RE = re.compile(r"\x1b\[6;(\d+);(\d+)t")


def parse_cell_size_response(data: str) -> tuple[CellDimensions | None, str]:
    """Extract a cell-size reply from *data*.

    Returns the parsed dimensions (``None`` when absent or degenerate) and
    whatever input surrounded the reply.
    """
    match = _CELL_SIZE_RESPONSE_RE.search(data)
    if match is None:
        return None, data

    height_px = int(match.group(1))
    width_px = int(match.group(2))
    remaining = data[: match.start()] + data[match.end():]
    if height_px <= 0 or width_px <= 0:
        return None, remaining
    return CellDimensions(width_px=width_px, height_px=height_px), remaining


# ---------------------------------------------------------------------------
# Header sniffing
# ---------------------------------------------------------------------------


def get_png_dimensions(data: bytes) -> ImageDimensions | None:
    if len(data) < 24 or data[0:4] != b"\x89PNG":
        return None
    width, height = struct.unpack(">II", data[16:24])
    return ImageDimensions(width_px=width, height_px=height)


def get_jpeg_dimensions(data: bytes) -> ImageDimensions | None:
    if len(data) < 2 or data[0:2] != b"\xff\xd8":
        return None
    offset = 2
    while offset < len(data) - 9:
        if data[offset] != 0xFF:
            offset += 1
            continue
        marker = data[offset + 1]
        if 0xC0 <= marker <= 0xC2:
            height, width = struct.unpack(">HH", data[offset + 5 : offset + 9])
            return ImageDimensions(width_px=width, height_px=height)
        (length,) = struct.unpack(">H", data[offset + 2 : offset + 4])
        if length < 2:
            return None
        offset += 2 + length
    return None


def get_webp_dimensions(data: bytes) -> ImageDimensions | None:
    if len(data) < 30 or data[0:4] != b"RIFF" or data[8:12] != b"WEBP":
        return None
    chunk = data[12:16]
    if chunk == b"VP8 ":
        width = struct.unpack("<H", data[26:28])[0] & 0x3FFF
        height = struct.unpack("<H", data[28:30])[0] & 0x3FFF
        return ImageDimensions(width_px=width, height_px=height)
    if chunk == b"VP8L":
        (bits,) = struct.unpack("<I", data[21:25])
        return ImageDimensions(
            width_px=(bits & 0x3FFF) + 1,
            height_px=((bits >> 14) & 0x3FFF) + 1,
        )
    if chunk == b"VP8X":
        width = (data[24] | (data[25] << 8) | (data[26] << 16)) + 1
        height = (data[27] | (data[28] << 8) | (data[29] << 16)) + 1
        return ImageDimensions(width_px=width, height_px=height)
    return None


def get_image_dimensions(data: bytes) -> ImageDimensions | None:
    """Read pixel dimensions from a PNG, JPEG or WebP header."""
    for sniff in (get_png_dimensions, get_jpeg_dimensions, get_webp_dimensions):
        try:
            dims = sniff(data)
        except (struct.error, IndexError):
            dims = None
        if dims is not None and dims.width_px > 0 and dims.height_px > 0:
            return dims
    return None


def native_cell_size(image: ImageDimensions, cell: CellDimensions) -> tuple[int, int]:
    """Convert pixel bounds to (columns, rows), rounding partial cells up."""
    columns = -(-image.width_px // cell.width_px)
    rows = -(-image.height_px // cell.height_px)
    return max(1, columns), max(1, rows)


# ---------------------------------------------------------------------------
# Protocol encoders
# ---------------------------------------------------------------------------

_KITTY_CHUNK_SIZE = 4096


def encode_kitty(
    base64_data: str,
    *,
    columns: int | None = None,
    rows: int | None = None,
    image_id: int | None = None,
) -> str:
    """Transmit-and-display a base64 PNG, chunked as the protocol requires."""
    params: list[str] = ["a=T", "f=100", "q=2", "C=1"]
    if columns:
        params.append(f"c={columns}")
    if rows:
        params.append(f"r={rows}")
    if image_id:
        params.append(f"i={image_id}")
    header = ",".join(params)

    if len(base64_data) <= _KITTY_CHUNK_SIZE:
        return f"\x1b_G{header};{base64_data}\x1b\\"

    chunks: list[str] = []
    for offset in range(0, len(base64_data), _KITTY_CHUNK_SIZE):
        chunk = base64_data[offset : offset + _KITTY_CHUNK_SIZE]
        more = 1 if offset + _KITTY_CHUNK_SIZE < len(base64_data) else 0
        if offset == 0:
            chunks.append(f"\x1b_G{header},m=1;{chunk}\x1b\\")
        else:
            chunks.append(f"\x1b_Gm={more};{chunk}\x1b\\")
    return "".join(chunks)


def delete_all_kitty_images() -> str:
    return "\x1b_Ga=d,d=A,q=2\x1b\\"


def encode_iterm2(
    base64_data: str,
    *,
    size: int,
    width: int | str | None = None,
    height: int | str | None = None,
) -> str:
    params: list[str] = ["inline=1", f"size={size}"]
    if width is not None:
        params.append(f"width={width}")
    if height is not None:
        params.append(f"height={height}")
    return f"\x1b]1337;File={';'.join(params)}:{base64_data}\x07"


def image_fallback(
    protocol: ImageProtocol | None,
    program: str,
    dimensions: ImageDimensions | None = None,
) -> str:
    """One-line description used when an image cannot be drawn inline."""
    parts = [f"terminal={program}", f"protocol={protocol or 'none'}"]
    if dimensions:
        parts.append(f"{dimensions.width_px}x{dimensions.height_px}")
    return f"[Image: {' '.join(parts)}]"


class ImageEncoder:
    """Encode image bytes for one graphics protocol.

    Every payload is fully decoded with Pillow first; one that cannot be
    decoded raises :class:`ProtocolDecodeError` and nothing is emitted.
    Kitty's ``f=100`` transmission only understands PNG, so other formats
    are transcoded; iTerm2 receives the original bytes.
    """

    def __init__(self, protocol: ImageProtocol) -> None:
        self.protocol = protocol
        self._last: tuple[bytes, bytes] | None = None

    def encode(
        self,
        image: bytes,
        columns: int,
        rows: int,
        image_id: int | None = None,
    ) -> str:
        if not image:
            raise ProtocolDecodeError("empty image payload")

        payload = self._checked_payload(image)
        if self.protocol == "kitty":
            return encode_kitty(
                base64.b64encode(payload).decode("ascii"),
                columns=columns,
                rows=rows,
                image_id=image_id,
            )
        return encode_iterm2(
            base64.b64encode(payload).decode("ascii"),
            size=len(payload),
            width=columns,
            height=rows,
        )

    def clear_all_images(self) -> str:
        """Sequence removing every image this protocol may have left behind.

        iTerm2 images live in ordinary cells and vanish when those cells are
        erased, so there is nothing extra to send.
        """
        if self.protocol == "kitty":
            return delete_all_kitty_images()
        return ""

    def _checked_payload(self, image: bytes) -> bytes:
        # The same image is re-sent on every frame showing it
        if self._last is not None and self._last[0] == image:
            return self._last[1]
        payload = _decode(image, to_png=self.protocol == "kitty")
        self._last = (image, payload)
        return payload


def _decode(image: bytes, *, to_png: bool) -> bytes:
    """Decode *image* completely; return it as PNG when *to_png*, else unchanged."""
    try:
        with Image.open(io.BytesIO(image)) as decoded:
            decoded.load()
            if not to_png or decoded.format == "PNG":
                return image
            buffer = io.BytesIO()
            decoded.save(buffer, format="PNG")
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        SyntaxError,
        ValueError,
        struct.error,
    ) as exc:
        raise ProtocolDecodeError(f"cannot decode image: {exc}") from exc
    logger.debug("Transcoded %d bytes to %d byte PNG", len(image), buffer.tell())
    return buffer.getvalue()
