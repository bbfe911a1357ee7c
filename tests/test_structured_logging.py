"""Structured log records."""

import json
import logging
import sys

from services.structured_logging import (
    ReloadLogContext,
    StructuredFormatter,
    current_reload_id,
    current_strategy,
    setup_structured_logging,
)


def _record(message="hello", **extra):
    record = logging.LogRecord("engine.manager", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_renders_json_with_reload_context():
    formatter = StructuredFormatter()

    with ReloadLogContext(reload_id="abc123", strategy="WARN"):
        line = formatter.format(_record(files_total=3, groups_loaded=5))

    entry = json.loads(line)
    assert entry["message"] == "hello"
    assert entry["logger"] == "engine.manager"
    assert entry["reload_id"] == "abc123"
    assert entry["strategy"] == "WARN"
    assert entry["files_total"] == 3
    assert entry["groups_loaded"] == 5
    assert "duration_ms" not in entry


def test_context_is_reset_on_exit():
    with ReloadLogContext() as ctx:
        assert current_reload_id.get() == ctx.reload_id
        assert ctx.duration_ms >= 0

    assert current_reload_id.get() is None


def test_formatter_includes_exception_details():
    try:
        raise ValueError("boom")
    except ValueError:
        record = _record(exc_info=sys.exc_info())

    entry = json.loads(StructuredFormatter().format(record))
    assert entry["error_type"] == "ValueError"
    assert entry["error_details"] == "boom"
    assert "Traceback" in entry["stack_trace"]


def test_setup_writes_json_lines_file(tmp_path):
    log_file = tmp_path / "logs" / "ruler.jsonl"
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        setup_structured_logging(log_file=str(log_file), log_level="DEBUG", enable_console=False)
        logging.getLogger("rules.loader").debug("loaded")
        for handler in root.handlers:
            handler.flush()
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)

    (line,) = log_file.read_text(encoding="utf-8").splitlines()
    assert json.loads(line)["message"] == "loaded"


def test_strategy_context_nests_inside_reload_context():
    with ReloadLogContext(reload_id="r1"):
        with ReloadLogContext(reload_id="r1", strategy="ABORT"):
            assert current_strategy.get() == "ABORT"
            assert current_reload_id.get() == "r1"
        assert current_strategy.get() is None
        assert current_reload_id.get() == "r1"
