"""Command-line entry point.

Develops one photo end to end: crops it for the requested zoom, runs the
three-stage pipeline with whatever services the environment provides
credentials for, and writes the final image.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from tele.config import get_settings
from tele.credentials import ServiceCredentials
from tele.exceptions.base import TeleError
from tele.logging.config import LoggingConfig
from tele.logging.diagnostics import DiagnosticLog
from tele.logging.logger import setup_logging
from tele.pipeline.capture import build_capture_frame
from tele.pipeline.models import CompletedState, StageState
from tele.pipeline.orchestrator import DevelopOrchestrator
from tele.services.selector import build_services

if TYPE_CHECKING:
    from tele.config import TeleSettings
    from tele.pipeline.models import PipelineState

logger = logging.getLogger(__name__)

_EXIT_OK: int = 0
_EXIT_FAILED: int = 1
_EXIT_USAGE: int = 2
_OUTPUT_SUFFIX: str = "_tele.png"


def build_parser() -> argparse.ArgumentParser:
    """Build the ``tele-develop`` argument parser."""
    parser = argparse.ArgumentParser(
        prog="tele-develop",
        description="Develop a digitally zoomed photo into a simulated telephoto shot.",
    )
    parser.add_argument("image", type=Path, help="full-resolution input image")
    parser.add_argument("--zoom", type=float, default=3.0, help="digital zoom factor (>= 1)")
    parser.add_argument(
        "--center",
        type=float,
        nargs=2,
        default=(0.5, 0.5),
        metavar=("X", "Y"),
        help="normalized crop center",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help=f"output path (default: <image stem>{_OUTPUT_SUFFIX})",
    )
    parser.add_argument(
        "--diagnostics",
        action="store_true",
        help="print the diagnostic report after the run",
    )
    return parser


def _print_state(state: PipelineState) -> None:
    if isinstance(state, StageState):
        print(f"[{state.progress:4.0%}] {state.name}")


async def run_develop(
    args: argparse.Namespace,
    settings: TeleSettings,
    credentials: ServiceCredentials,
    diagnostics: DiagnosticLog,
) -> int:
    """Run one develop and write the result.

    Args:
        args: Parsed command-line arguments.
        settings: Pipeline settings.
        credentials: Resolved API keys.
        diagnostics: Sink shared by every component.

    Returns:
        Process exit code.
    """
    try:
        image_bytes = args.image.read_bytes()
    except OSError as error:
        logger.error("Cannot read %s: %s", args.image, error)
        return _EXIT_USAGE

    try:
        frame, _ = build_capture_frame(
            image_bytes,
            args.zoom,
            tuple(args.center),
            output_max_dimension=settings.output_max_dimension,
            quality=settings.jpeg_quality,
        )
    except TeleError as error:
        logger.error("Cannot crop %s: %s", args.image, error.message)
        return _EXIT_USAGE

    missing = credentials.missing_keys()
    if missing:
        logger.warning("Missing API keys, mocks will be used: %s", ", ".join(missing))
    logger.debug("Credentials: %s", credentials.describe())

    services = build_services(settings, credentials, diagnostics)
    orchestrator = DevelopOrchestrator(services, settings=settings, diagnostics=diagnostics)
    orchestrator.subscribe(_print_state)
    try:
        result = await orchestrator.develop(image_bytes, frame)
    finally:
        await services.aclose()

    if not isinstance(result, CompletedState):
        reason = getattr(result, "reason", "run was superseded")
        print(f"Develop failed: {reason}", file=sys.stderr)
        return _EXIT_FAILED

    output = args.output or args.image.with_name(args.image.stem + _OUTPUT_SUFFIX)
    output.write_bytes(result.image_bytes)
    print(f"Wrote {output}")
    if orchestrator.report is not None:
        for line in orchestrator.report.summary_lines():
            print(line)
    return _EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """CLI entry point: parse arguments, configure logging and run."""
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(LoggingConfig(level=settings.log_level))

    diagnostics = DiagnosticLog(capacity=settings.diagnostic_log_capacity)
    credentials = ServiceCredentials.from_environment()

    logger.info(
        "Starting develop (image=%s, zoom=%.2f, center=%s)",
        args.image,
        args.zoom,
        tuple(args.center),
    )
    exit_code = asyncio.run(run_develop(args, settings, credentials, diagnostics))

    if args.diagnostics:
        print(diagnostics.export_report())
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
