"""Tests for log formatters."""

import json
import logging
import sys

from tele.logging.context import bind_capture, bind_stage
from tele.logging.formatters import HumanFormatter, JSONFormatter, record_fields


def _make_record(message="stage finished", level=logging.INFO, **extra):
    record = logging.LogRecord(
        name="tele.pipeline.orchestrator",
        level=level,
        pathname="orchestrator.py",
        lineno=42,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def _exception_record():
    try:
        raise ValueError("boom")
    except ValueError:
        record = _make_record(level=logging.ERROR)
        record.exc_info = sys.exc_info()
    return record


class TestRecordFields:
    def test_only_extra_fields(self):
        assert record_fields(_make_record()) == {}
        assert record_fields(_make_record(service="vision", attempt=2)) == {"service": "vision", "attempt": 2}

    def test_run_context_first(self):
        bind_capture("capture-3")
        fields = record_fields(_make_record(attempt=1))
        assert list(fields) == ["capture_id", "attempt"]

    def test_extra_overrides_bound_stage(self):
        bind_capture("capture-3")
        bind_stage("analyzing_vision")
        assert record_fields(_make_record(stage="building_prompt"))["stage"] == "building_prompt"


class TestJSONFormatter:
    def test_core_keys(self):
        parsed = json.loads(JSONFormatter().format(_make_record("hello", level=logging.WARNING)))
        assert parsed["msg"] == "hello"
        assert parsed["level"] == "WARNING"
        assert parsed["app"] == "tele-develop"
        assert parsed["logger"] == "tele.pipeline.orchestrator"
        assert parsed["ts"].endswith("+00:00")
        assert "src" not in parsed

    def test_location(self):
        parsed = json.loads(JSONFormatter(show_location=True).format(_make_record()))
        assert parsed["src"].endswith(":42")

    def test_run_context_and_extra(self):
        bind_capture("capture-9")
        bind_stage("enhancing_with_ai")
        record = _make_record(service="openai_images", attempt=2, elapsed_ms=12.5, status_code=429)
        parsed = json.loads(JSONFormatter(app_name="lab").format(record))
        assert parsed["app"] == "lab"
        assert parsed["capture_id"] == "capture-9"
        assert parsed["stage"] == "enhancing_with_ai"
        assert parsed["service"] == "openai_images"
        assert parsed["attempt"] == 2
        assert parsed["elapsed_ms"] == 12.5
        assert parsed["status_code"] == 429

    def test_exception(self):
        parsed = json.loads(JSONFormatter().format(_exception_record()))
        assert "ValueError: boom" in parsed["exc"]

    def test_non_serializable_extra(self):
        parsed = json.loads(JSONFormatter().format(_make_record(payload=object())))
        assert parsed["payload"].startswith("<object")


class TestHumanFormatter:
    def test_line_layout(self):
        output = HumanFormatter().format(_make_record("hello"))
        assert " INFO    tele.pipeline.orchestrator: hello" in output
        assert "\033[" not in output

    def test_fields_appended(self):
        bind_capture("capture-7")
        output = HumanFormatter().format(_make_record(service="vision"))
        assert output.endswith("  capture_id=capture-7 service=vision")

    def test_location(self):
        output = HumanFormatter(show_location=True).format(_make_record())
        assert "(orchestrator:42)" in output

    def test_colors_for_warnings_only_when_enabled(self):
        warning = _make_record(level=logging.WARNING)
        assert HumanFormatter(use_colors=True).format(warning).startswith("\033[33m")
        assert "\033[" not in HumanFormatter(use_colors=True).format(_make_record())

    def test_exception_appended(self):
        output = HumanFormatter().format(_exception_record())
        first_line, _, rest = output.partition("\n")
        assert "ERROR" in first_line
        assert "ValueError: boom" in rest
