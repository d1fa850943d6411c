"""Tests for log rendering."""

from __future__ import annotations

import io
import json
import logging

from mocksandbox.observability import (
    HumanReadableFormatter,
    StructuredFormatter,
    configure_logging,
    get_context,
    log_context,
)


def _record(message: str = "hello", **extra: object) -> logging.LogRecord:
    record = logging.LogRecord("mocksandbox.test", logging.INFO, "/src/mod.py", 10, message, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogContext:
    def test_nested_context(self) -> None:
        with log_context(run_id="abc"):
            with log_context(stage="discover"):
                assert get_context() == {"run_id": "abc", "stage": "discover"}
            assert get_context() == {"run_id": "abc"}
        assert get_context() == {}


class TestStructuredFormatter:
    def test_json_line(self) -> None:
        data = json.loads(StructuredFormatter().format(_record()))
        assert data["msg"] == "hello"
        assert data["level"] == "info"
        assert data["logger"] == "mocksandbox.test"
        assert "where" not in data

    def test_context_at_top_level(self) -> None:
        with log_context(run_id="r1", stage="detect"):
            data = json.loads(StructuredFormatter().format(_record(root="/app")))
        assert data["run_id"] == "r1"
        assert data["stage"] == "detect"
        assert data["data"] == {"root": "/app"}

    def test_location_and_static_fields(self) -> None:
        formatter = StructuredFormatter(include_location=True, static_fields={"service": "cli"})
        data = json.loads(formatter.format(_record()))
        assert data["where"] == "/src/mod.py:10"
        assert data["service"] == "cli"


class TestHumanReadableFormatter:
    def test_plain_line(self) -> None:
        line = HumanReadableFormatter(use_colors=False).format(_record("scan done"))
        assert " I mocksandbox.test: scan done" in line

    def test_run_and_stage_prefix(self) -> None:
        with log_context(run_id="3f2a", stage="run", attempt=2):
            line = HumanReadableFormatter(use_colors=False).format(_record(port=9000))
        assert " 3f2a/run mocksandbox.test: hello" in line
        assert line.endswith("attempt=2 port=9000")


class TestConfigureLogging:
    def test_json_stream(self) -> None:
        stream = io.StringIO()
        logger = configure_logging(level="DEBUG", json_format=True, stream=stream)

        logging.getLogger("mocksandbox.detect").debug("detected")

        assert json.loads(stream.getvalue().strip())["msg"] == "detected"
        assert logger.level == logging.DEBUG

    def test_env_switches_to_json(self, monkeypatch) -> None:
        monkeypatch.setenv("MOCKSANDBOX_JSON_LOGS", "true")
        logger = configure_logging(stream=io.StringIO())
        assert isinstance(logger.handlers[0].formatter, StructuredFormatter)

    def test_replaces_handlers(self) -> None:
        configure_logging(stream=io.StringIO())
        logger = configure_logging(level="nonsense", stream=io.StringIO())
        assert len(logger.handlers) == 1
        assert logger.level == logging.INFO
