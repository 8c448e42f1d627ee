"""Structured logging for the telephoto develop pipeline.

Usage:
    from tele.logging import get_logger, setup_logging

    setup_logging()
    logger = get_logger(__name__)
    logger.info("Stage finished", extra={"stage": "analyzing_vision", "elapsed_ms": 812})
"""

from tele.logging.config import ColorMode, LoggingConfig, LogLevel, LogStyle
from tele.logging.context import (
    bind_capture,
    bind_stage,
    capture_scope,
    clear_context,
    current_capture_id,
    current_stage,
)
from tele.logging.diagnostics import DiagnosticLog, DiagnosticSink
from tele.logging.formatters import HumanFormatter, JSONFormatter
from tele.logging.logger import get_logger, reset_logging, setup_logging

__all__ = [
    "ColorMode",
    "DiagnosticLog",
    "DiagnosticSink",
    "HumanFormatter",
    "JSONFormatter",
    "LogLevel",
    "LogStyle",
    "LoggingConfig",
    "bind_capture",
    "bind_stage",
    "capture_scope",
    "clear_context",
    "current_capture_id",
    "current_stage",
    "get_logger",
    "reset_logging",
    "setup_logging",
]
