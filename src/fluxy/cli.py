"""Command-line entry point for fluxy."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from fluxy import __version__
from fluxy.app.config import AppConfig
from fluxy.app.runtime import FluxyApp
from fluxy.errors import ConfigurationError
from fluxy.generate.env import get_api_token
from fluxy.generate.models import ASPECT_RATIOS, MODEL_VARIANTS, OUTPUT_FORMATS, get_variant
from fluxy.tui.terminal import ProcessTerminal
from fluxy.tui.terminal_image import detect_capabilities

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_LOG_FILE = Path("~/.fluxy/fluxy.log")


def _positive_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from None
    if number <= 0:
        raise argparse.ArgumentTypeError("must be greater than zero")
    return number


def build_parser() -> argparse.ArgumentParser:
    models = ", ".join(f"{v.name} ({v.description})" for v in MODEL_VARIANTS.values())
    parser = argparse.ArgumentParser(
        prog="fluxy",
        description="Generate images with FLUX models and view them in the terminal",
    )
    parser.add_argument("-p", "--prompt", default="", help="Prompt to generate immediately")
    parser.add_argument("-t", "--token", help="Replicate API token (or set REPLICATE_API_TOKEN)")
    parser.add_argument(
        "-m",
        "--model",
        default="schnell",
        choices=list(MODEL_VARIANTS),
        help=f"Model variant: {models}",
    )
    parser.add_argument(
        "-a", "--aspect", default="1:1", choices=ASPECT_RATIOS, help="Aspect ratio (default: 1:1)"
    )
    parser.add_argument(
        "-f", "--format", default="png", choices=OUTPUT_FORMATS, help="Output format (default: png)"
    )
    parser.add_argument(
        "-o", "--output", default=os.getcwd(), help="Folder downloaded images are saved to"
    )
    parser.add_argument(
        "-d",
        "--display",
        default="auto",
        choices=["auto", "kitty", "iterm2"],
        help="Terminal graphics protocol (default: detect)",
    )
    parser.add_argument(
        "--timeout",
        type=_positive_float,
        help="Give up on a generation after this many seconds",
    )
    parser.add_argument("-V", "--verbose", action="store_true", help="Log debug output")
    parser.add_argument("--log-file", help=f"Log file (default with --verbose: {DEFAULT_LOG_FILE})")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def setup_logging(args: argparse.Namespace) -> Path | None:
    """Configure logging. Returns the log file path, if logging to a file.

    The UI owns the terminal while it runs, so records go to a file or
    nowhere; fatal CLI errors are printed to stderr directly.
    """
    log_file = None
    if args.log_file:
        log_file = Path(args.log_file).expanduser()
    elif args.verbose:
        log_file = DEFAULT_LOG_FILE.expanduser()

    if log_file is None:
        logging.basicConfig(level=logging.ERROR, handlers=[logging.NullHandler()])
        return None

    os.makedirs(log_file.parent, exist_ok=True)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
        filename=str(log_file),
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    return log_file


def build_config(
    args: argparse.Namespace, environ: dict[str, str] | None = None
) -> AppConfig:
    """Resolve flags and environment into an :class:`AppConfig`.

    Raises :class:`ConfigurationError` when no API token can be found.
    """
    token = get_api_token(args.token)
    if not token:
        raise ConfigurationError(
            "no Replicate API token: pass --token or set REPLICATE_API_TOKEN"
        )

    capabilities = detect_capabilities(environ)
    protocol = capabilities.images if args.display == "auto" else args.display

    return AppConfig(
        token=token,
        variant=get_variant(args.model),
        aspect_ratio=args.aspect,
        output_format=args.format,
        output_dir=Path(args.output).expanduser(),
        display_protocol=protocol,
        terminal_program=capabilities.program,
        initial_prompt=args.prompt.strip(),
        job_timeout=args.timeout,
    )


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args)

    try:
        config = build_config(args)
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    if not (sys.stdin.isatty() and sys.stdout.isatty()):
        print("Error: fluxy needs an interactive terminal", file=sys.stderr)
        sys.exit(1)

    logger.info(
        "Starting with model=%s aspect=%s format=%s display=%s",
        config.variant.name,
        config.aspect_ratio,
        config.output_format,
        config.display_protocol,
    )
    app = FluxyApp(config, ProcessTerminal())
    try:
        saved = asyncio.run(app.run())
    except KeyboardInterrupt:
        saved = None

    if saved is not None:
        print(f"Image saved: {saved}")


if __name__ == "__main__":
    main()
