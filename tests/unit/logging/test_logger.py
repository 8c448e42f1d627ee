"""Tests for root logger setup."""

import io
import json
import logging

from tele.logging.config import ColorMode, LoggingConfig, LogLevel, LogStyle
from tele.logging.formatters import HumanFormatter, JSONFormatter
from tele.logging.logger import get_logger, reset_logging, setup_logging


class _TTY(io.StringIO):
    def isatty(self):
        return True


def _tele_handlers():
    return [handler for handler in logging.getLogger().handlers if handler.get_name() == "tele"]


class TestSetupLogging:
    def setup_method(self):
        reset_logging()

    def teardown_method(self):
        reset_logging()

    def test_installs_one_handler(self):
        setup_logging(stream=io.StringIO())
        assert len(_tele_handlers()) == 1

    def test_keeps_foreign_handlers(self):
        foreign = logging.NullHandler()
        root = logging.getLogger()
        root.addHandler(foreign)
        try:
            setup_logging(stream=io.StringIO(), force=True)
            assert foreign in root.handlers
        finally:
            root.removeHandler(foreign)

    def test_human_output(self):
        stream = io.StringIO()
        setup_logging(stream=stream)
        get_logger("tele.test").warning("crop clamped")
        assert "WARNING tele.test: crop clamped" in stream.getvalue()

    def test_json_output(self):
        stream = io.StringIO()
        setup_logging(LoggingConfig(style=LogStyle.JSON), stream=stream)
        get_logger("tele.test").warning("crop clamped")
        assert json.loads(stream.getvalue())["msg"] == "crop clamped"

    def test_second_call_is_noop(self):
        first = io.StringIO()
        setup_logging(stream=first)
        setup_logging(LoggingConfig(style=LogStyle.JSON), stream=io.StringIO())
        assert len(_tele_handlers()) == 1
        assert isinstance(_tele_handlers()[0].formatter, HumanFormatter)

    def test_force_replaces_handler(self):
        setup_logging(stream=io.StringIO())
        setup_logging(LoggingConfig(style=LogStyle.JSON), stream=io.StringIO(), force=True)
        assert len(_tele_handlers()) == 1
        assert isinstance(_tele_handlers()[0].formatter, JSONFormatter)

    def test_sets_root_level(self):
        setup_logging(LoggingConfig(level=LogLevel.ERROR), stream=io.StringIO())
        assert logging.getLogger().level == logging.ERROR

    def test_quiets_third_party_loggers(self):
        setup_logging(LoggingConfig(level=LogLevel.DEBUG), stream=io.StringIO())
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("PIL").level == logging.WARNING

    def test_auto_color_follows_tty(self):
        stream = _TTY()
        setup_logging(stream=stream)
        get_logger("tele.test").error("failed")
        assert stream.getvalue().startswith("\033[31m")

    def test_color_never(self):
        stream = _TTY()
        setup_logging(LoggingConfig(color=ColorMode.NEVER), stream=stream)
        get_logger("tele.test").error("failed")
        assert "\033[" not in stream.getvalue()

    def test_reset_removes_handler(self):
        setup_logging(stream=io.StringIO())
        reset_logging()
        assert _tele_handlers() == []


class TestGetLogger:
    def test_returns_named_logger(self):
        logger = get_logger("tele.pipeline")
        assert logger.name == "tele.pipeline"
