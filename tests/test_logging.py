"""Tests for structured logging."""

import logging

from app.core.logging import StructuredFormatter, get_logger, run_logger


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("app.test", logging.INFO, __file__, 10, "hello %s", ("world",), None)
    record.__dict__.update(extra)
    return record


class TestStructuredFormatter:
    def test_core_fields(self):
        line = StructuredFormatter().format(_record())

        assert "level=INFO" in line
        assert "message=hello world" in line

    def test_extra_fields_appended(self):
        line = StructuredFormatter().format(_record(run_id="run-1", tier="static"))

        assert "run_id=run-1" in line
        assert "tier=static" in line
        assert "args=" not in line


class TestLoggers:
    def test_get_logger_configures_once(self):
        logger = get_logger("app.test.once")
        get_logger("app.test.once")

        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, StructuredFormatter)

    def test_run_logger_stamps_run_id(self):
        records = []

        class Capture(logging.Handler):
            def emit(self, record):
                records.append(record)

        logger = logging.getLogger("app.test.run")
        logger.addHandler(Capture())
        logger.setLevel(logging.INFO)

        run_logger(logger, "run-42").info("started", extra={"segment": "itsm"})

        assert records[0].run_id == "run-42"
        assert records[0].segment == "itsm"
