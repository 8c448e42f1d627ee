"""Root logger setup for the CLI and tests."""

import logging
import sys
from typing import TextIO

from tele.logging.config import ColorMode, LoggingConfig, LogStyle, get_logging_config
from tele.logging.formatters import HumanFormatter, JSONFormatter

_HANDLER_NAME: str = "tele"


def _build_formatter(config: LoggingConfig, stream: TextIO) -> logging.Formatter:
    if config.style == LogStyle.JSON:
        return JSONFormatter(app_name=config.app_name, show_location=config.show_location)
    if config.color == ColorMode.AUTO:
        use_colors = stream.isatty()
    else:
        use_colors = config.color == ColorMode.ALWAYS
    return HumanFormatter(use_colors=use_colors, show_location=config.show_location)


def _installed_handler() -> logging.Handler | None:
    for handler in logging.getLogger().handlers:
        if handler.get_name() == _HANDLER_NAME:
            return handler
    return None


def setup_logging(
    config: LoggingConfig | None = None,
    stream: TextIO | None = None,
    *,
    force: bool = False,
) -> None:
    """Install the ``tele`` handler on the root logger.

    Handlers installed by anything else (pytest, an embedding application)
    are left alone. A second call is a no-op unless ``force`` is set, in
    which case the previous ``tele`` handler is replaced.

    Args:
        config: Output settings. Defaults to ``get_logging_config()``.
        stream: Destination. Defaults to ``sys.stderr``.
        force: Replace an already installed handler.
    """
    previous = _installed_handler()
    if previous is not None and not force:
        return

    config = config or get_logging_config()
    output = stream or sys.stderr

    handler = logging.StreamHandler(output)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(_build_formatter(config, output))

    root = logging.getLogger()
    if previous is not None:
        root.removeHandler(previous)
    root.addHandler(handler)
    root.setLevel(config.level.value)

    for name in config.quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return the logger for ``name``, normally a module's ``__name__``."""
    return logging.getLogger(name)


def reset_logging() -> None:
    """Remove the ``tele`` handler and forget the cached config."""
    previous = _installed_handler()
    if previous is not None:
        logging.getLogger().removeHandler(previous)
        previous.close()
    get_logging_config.cache_clear()
