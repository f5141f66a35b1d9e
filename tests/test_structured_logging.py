from __future__ import annotations

import io
import json

import pytest

from grr.logging import StructuredLogger, configure_logging, get_logger


def _lines(stream: io.StringIO) -> list[str]:
    return [line for line in stream.getvalue().splitlines() if line]


def test_structured_logger_json_format() -> None:
    stream = io.StringIO()
    logger = StructuredLogger(name="grr.test.json", json_logging=True, level="INFO", stream=stream)
    logger.log_operation("test_operation", param1="value1", param2=42)

    lines = _lines(stream)
    assert len(lines) == 1
    entry = json.loads(lines[0])
    assert entry["operation"] == "test_operation"
    assert entry["param1"] == "value1"
    assert entry["param2"] == 42
    assert entry["level"] == "INFO"


def test_default_level_hides_debug_and_info() -> None:
    stream = io.StringIO()
    logger = StructuredLogger(name="grr.test.quiet", stream=stream)
    logger.debug("hidden")
    logger.log_operation("hidden_too")
    logger.warning("shown", branch="grr-FOO-1")
    lines = _lines(stream)
    assert len(lines) == 1
    assert "shown" in lines[0]
    assert "branch='grr-FOO-1'" in lines[0]
    assert logger.is_debug is False


def test_log_command_redacts_secrets() -> None:
    stream = io.StringIO()
    logger = StructuredLogger(name="grr.test.cmd", json_logging=True, level="DEBUG", stream=stream)
    logger.log_command(["curl", "-H", "Authorization: Bearer s3cret"], 0, "token=abc", "")
    entry = json.loads(_lines(stream)[0])
    assert "s3cret" not in entry["argv"]
    assert "abc" not in entry["stdout"]
    assert entry["exit_code"] == 0


def test_timed_operation_logs_failure_and_reraises() -> None:
    stream = io.StringIO()
    logger = StructuredLogger(name="grr.test.timed", json_logging=True, level="INFO", stream=stream)
    with logger.timed_operation("ok_op"):
        pass
    with pytest.raises(RuntimeError):
        with logger.timed_operation("bad_op"):
            raise RuntimeError("nope")
    entries = [json.loads(line) for line in _lines(stream)]
    assert any(e.get("duration_ms") is not None and e["operation"] == "ok_op" for e in entries)
    assert entries[-1]["operation"] == "bad_op_failed"
    assert entries[-1]["error"] == "nope"


def test_configure_logging_replaces_global_logger() -> None:
    stream = io.StringIO()
    logger = configure_logging(json_logging=True, level="DEBUG", stream=stream)
    assert get_logger() is logger
    assert logger.is_debug
    get_logger().debug("hello", cr="42")
    assert json.loads(_lines(stream)[0])["cr"] == "42"
