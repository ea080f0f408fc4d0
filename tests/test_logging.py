"""Tests for structured logging (observability.logging)."""

import io
import json
import logging
import sys

import pytest

from gphoto2_config.observability import logging as log_module
from gphoto2_config.observability.logging import (
    ROOT_LOGGER_NAME,
    JSONFormatter,
    LogContext,
    StructuredFormatter,
    StructuredLogger,
    _format_value,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture
def restore_logging():
    """Return package logging to its default configuration after the test."""
    yield
    reset_logging()
    configure_logging()


@pytest.fixture
def logger_and_stream():
    """StructuredLogger writing through StructuredFormatter into a StringIO.

    Yields:
        Tuple of (logger, stream). Handlers are removed afterwards.
    """
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())

    logger = StructuredLogger("gphoto2_config_test")
    logger.setLevel(logging.DEBUG)
    logger.addHandler(handler)
    logger.propagate = False

    yield logger, stream

    logger.handlers.clear()


def _record(structured=None, msg="Widget set"):
    record = logging.LogRecord(
        name="gphoto2_config.devices",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    if structured is not None:
        record.structured_data = structured
    return record


class TestStructuredLogger:
    """Tests for keyword data on log calls."""

    def test_kwargs_appended(self, logger_and_stream):
        """Verifies keyword arguments are rendered as key=value pairs.

        Arrangement:
        1. Logger with StructuredFormatter into StringIO.

        Action:
        logger.info("Widget set", key="iso", value="400").

        Assertion Strategy:
        - Message and " | key=iso value=400" both present.
        """
        logger, stream = logger_and_stream

        logger.info("Widget set", key="iso", value="400")

        output = stream.getvalue()
        assert "Widget set" in output
        assert "| key=iso value=400" in output

    def test_context_included(self, logger_and_stream):
        logger, stream = logger_and_stream

        with LogContext(model="Canon EOS 6D"):
            logger.info("Saving")

        assert 'model="Canon EOS 6D"' in stream.getvalue()

    def test_kwargs_override_context(self, logger_and_stream):
        logger, stream = logger_and_stream

        with LogContext(key="iso"):
            logger.info("Refreshing", key="whitebalance")

        assert "key=whitebalance" in stream.getvalue()
        assert "key=iso" not in stream.getvalue()

    def test_percent_args_still_work(self, logger_and_stream):
        logger, stream = logger_and_stream

        logger.warning("Failed %d times", 3, code=-110)

        assert "Failed 3 times | code=-110" in stream.getvalue()

    def test_no_data_no_separator(self, logger_and_stream):
        logger, stream = logger_and_stream

        logger.info("Plain")

        assert "|" not in stream.getvalue()


class TestFormatters:
    """Tests for StructuredFormatter and JSONFormatter."""

    def test_include_structured_false(self):
        formatter = StructuredFormatter(include_structured=False)

        output = formatter.format(_record({"key": "iso"}))

        assert "key=iso" not in output

    def test_custom_format(self):
        formatter = StructuredFormatter(fmt="%(levelname)s %(message)s")

        assert formatter.format(_record({"n": 1})) == "INFO Widget set | n=1"

    def test_json_line(self):
        """Verifies JSONFormatter emits one object with data at top level.

        Assertion Strategy:
        - level, logger, message keys present.
        - structured keys merged into the object.
        - timestamp is ISO 8601 in UTC.
        """
        output = JSONFormatter().format(_record({"key": "iso", "code": -110}))

        data = json.loads(output)
        assert data["level"] == "INFO"
        assert data["logger"] == "gphoto2_config.devices"
        assert data["message"] == "Widget set"
        assert data["key"] == "iso"
        assert data["code"] == -110
        assert data["timestamp"].endswith("+00:00")

    def test_json_non_serializable_falls_back_to_str(self):
        output = JSONFormatter().format(_record({"path": object()}))

        assert "object object at" in json.loads(output)["path"]

    def test_json_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = _record()
            record.exc_info = sys.exc_info()

        data = json.loads(JSONFormatter().format(record))

        assert "RuntimeError: boom" in data["exception"]

    @pytest.mark.parametrize(
        "value, expected",
        [
            (None, "null"),
            ("1/60", "1/60"),
            ("Daylight fluorescent", '"Daylight fluorescent"'),
            (["Auto", "100"], '["Auto", "100"]'),
            ({"min": -3}, '{"min": -3}'),
            (0.5, "0.5"),
        ],
    )
    def test_format_value(self, value, expected):
        assert _format_value(value) == expected


class TestLogContext:
    """Tests for LogContext scoping."""

    def test_nested_and_restored(self):
        with LogContext(model="A"):
            with LogContext(key="iso"):
                assert log_module._log_context.get() == {"model": "A", "key": "iso"}
            assert log_module._log_context.get() == {"model": "A"}
        assert log_module._log_context.get() == {}

    def test_exit_without_enter(self):
        LogContext(model="A").__exit__(None, None, None)

    def test_repr(self):
        assert repr(LogContext(key="iso")) == "LogContext({'key': 'iso'})"


class TestConfigureLogging:
    """Tests for configure_logging(), reset_logging() and get_logger()."""

    def test_configure_to_stream(self, restore_logging):
        """Verifies package loggers write to the configured stream.

        Arrangement:
        1. configure_logging(force=True) with a StringIO and DEBUG level.

        Action:
        Log through a package logger.

        Assertion Strategy:
        - Message and structured data in the stream.
        - Package root does not propagate.
        """
        stream = io.StringIO()
        configure_logging(level="DEBUG", stream=stream, force=True)

        get_logger("gphoto2_config.devices.camera").debug("Loaded", widgets=3)

        assert "Loaded | widgets=3" in stream.getvalue()
        assert logging.getLogger(ROOT_LOGGER_NAME).propagate is False

    def test_json_format(self, restore_logging):
        stream = io.StringIO()
        configure_logging(json_format=True, stream=stream, force=True)

        get_logger("gphoto2_config.cli").info("Done", exit_code=0)

        data = json.loads(stream.getvalue().strip())
        assert data["exit_code"] == 0

    def test_second_configure_ignored(self, restore_logging):
        first = io.StringIO()
        second = io.StringIO()
        configure_logging(stream=first, force=True)

        configure_logging(stream=second)
        get_logger("gphoto2_config.x").warning("hello")

        assert "hello" in first.getvalue()
        assert second.getvalue() == ""

    def test_level_filters(self, restore_logging):
        stream = io.StringIO()
        configure_logging(level=logging.WARNING, stream=stream, force=True)

        get_logger("gphoto2_config.x").info("quiet")

        assert stream.getvalue() == ""

    def test_reset_removes_handlers(self, restore_logging):
        configure_logging(force=True)

        reset_logging()

        assert log_module._configured is False
        assert logging.getLogger(ROOT_LOGGER_NAME).handlers == []

    def test_get_logger_configures_on_first_use(self, restore_logging):
        reset_logging()

        logger = get_logger("gphoto2_config.lazy")

        assert log_module._configured is True
        assert isinstance(logger, StructuredLogger)
        assert len(logging.getLogger(ROOT_LOGGER_NAME).handlers) == 1
