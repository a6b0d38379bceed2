"""Tests for logging helpers."""

import logging

import pytest

from cachesweeper.log import (
    CONTEXT_ATTR,
    LOGGER_NAME,
    SweeperFormatter,
    configure_logging,
    log_error,
    log_event,
    set_log_level,
    timed,
)

logger = logging.getLogger(f"{LOGGER_NAME}.tests")


def make_record(level: int, message: str, context=None) -> logging.LogRecord:
    record = logging.LogRecord(LOGGER_NAME, level, __file__, 1, message, None, None)
    if context is not None:
        setattr(record, CONTEXT_ATTR, context)
    return record


class TestSetLogLevel:
    """Tests for set_log_level."""

    @pytest.mark.parametrize(
        ("level", "expected"),
        [("debug", logging.DEBUG), ("info", logging.INFO), ("warn", logging.WARNING), ("error", logging.ERROR)],
    )
    def test_levels(self, level, expected):
        set_log_level(level)
        assert logging.getLogger(LOGGER_NAME).level == expected

    def test_invalid_level(self):
        with pytest.raises(ValueError, match="Invalid log level: trace"):
            set_log_level("trace")


class TestHelpers:
    """Tests for log_event, log_error and timed."""

    def test_log_event_attaches_context(self, caplog):
        with caplog.at_level(logging.INFO, logger=LOGGER_NAME):
            log_event(logger, "info", "Cache deleted", keys=["a"])

        record = caplog.records[-1]
        assert record.getMessage() == "Cache deleted"
        assert getattr(record, CONTEXT_ATTR) == {"keys": ["a"]}

    def test_log_error(self, caplog):
        with caplog.at_level(logging.ERROR, logger=LOGGER_NAME):
            log_error(logger, ValueError("bad key"), error_type="cache_delete_error")

        record = caplog.records[-1]
        assert record.getMessage() == "Error: ValueError: bad key"
        assert getattr(record, CONTEXT_ATTR) == {
            "error_type": "cache_delete_error",
            "error_class": "ValueError",
            "error_message": "bad key",
        }
        assert record.exc_info is not None

    def test_timed(self, caplog):
        with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
            with timed(logger, "flush", scope_id="req-1") as perf:
                perf["keys_count"] = 3

        record = caplog.records[-1]
        context = getattr(record, CONTEXT_ATTR)
        assert record.getMessage().startswith("Performance: flush took ")
        assert context["scope_id"] == "req-1"
        assert context["keys_count"] == 3
        assert context["duration_ms"] >= 0


class TestFormatter:
    """Tests for SweeperFormatter."""

    def test_format(self):
        line = SweeperFormatter().format(make_record(logging.INFO, "Cache deleted", {"keys": ["a"]}))

        assert line.startswith("[CacheSweeper] [")
        assert line.endswith("[INFO] Cache deleted {'keys': ['a']}")

    def test_warning_rendered_as_warn(self):
        line = SweeperFormatter().format(make_record(logging.WARNING, "Slow"))
        assert line.endswith("[WARN] Slow")

    def test_configure_logging_replaces_handler(self):
        package_logger = logging.getLogger(LOGGER_NAME)
        first, second = logging.NullHandler(), logging.NullHandler()
        try:
            configure_logging("debug", first)
            configure_logging("warn", second)

            assert first not in package_logger.handlers
            assert second in package_logger.handlers
            assert isinstance(second.formatter, SweeperFormatter)
            assert package_logger.level == logging.WARNING
        finally:
            package_logger.removeHandler(second)
