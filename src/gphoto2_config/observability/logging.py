"""Structured logging for gphoto2-config.

Log calls take keyword arguments as structured data, which the formatters
render after the message (text) or as top-level keys (JSON)::

    logger = get_logger(__name__)
    logger.info("Configuration fetched", widgets=42)

    with LogContext(model="Nikon DSC D750", port="usb:001,004"):
        logger.info("Saving configuration")  # carries model and port

Values read back from a camera or typed on the command line go in keyword
arguments, never into the message text, so the formatter quotes them.
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
import threading
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any, TextIO, cast

ROOT_LOGGER_NAME = "gphoto2_config"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_log_context: contextvars.ContextVar[dict[str, Any]] = contextvars.ContextVar(
    "gphoto2_config_log_context", default={}
)


class StructuredLogger(logging.Logger):
    """Logger whose level methods accept keyword data.

    ``logger.warning("Save failed", code=-110)`` stores ``{"code": -110}``
    (merged over the active ``LogContext``) as ``record.structured_data``.
    """

    def _log(  # type: ignore[override]
        self,
        level: int,
        msg: object,
        args: Any,
        exc_info: Any = None,
        extra: Mapping[str, object] | None = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        **data: Any,
    ) -> None:
        # Keywords win over context values of the same name
        record_extra = dict(extra or {})
        record_extra["structured_data"] = {**_log_context.get(), **data}
        super()._log(
            level, msg, args, exc_info, record_extra, stack_info, stacklevel + 1
        )


def _format_value(value: Any) -> str:
    """Render a structured value for text output.

    Example:
        >>> _format_value("Daylight fluorescent")
        '"Daylight fluorescent"'
        >>> _format_value(["Auto", "Daylight"])
        '["Auto", "Daylight"]'
    """
    if value is None:
        return "null"
    if isinstance(value, dict | list):
        return json.dumps(value, default=str)
    text = str(value)
    if isinstance(value, str) and " " in text:
        return f'"{text}"'
    return text


class StructuredFormatter(logging.Formatter):
    """Text lines: ``timestamp - name - level - message | k=v k=v``."""

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        include_structured: bool = True,
    ) -> None:
        super().__init__(fmt or DEFAULT_FORMAT, datefmt)
        self.include_structured = include_structured

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        data = getattr(record, "structured_data", None)
        if not (self.include_structured and data):
            return line
        rendered = " ".join(f"{key}={_format_value(v)}" for key, v in data.items())
        return f"{line} | {rendered}"


class JSONFormatter(logging.Formatter):
    """One JSON object per record.

    Keys are ``timestamp`` (UTC ISO 8601), ``level``, ``logger``,
    ``message``, then every structured key, then ``exception`` when the
    record has exc_info. Values json cannot encode are written with ``str``.
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=UTC)
        entry: dict[str, Any] = dict(
            timestamp=created.isoformat(),
            level=record.levelname,
            logger=record.name,
            message=record.getMessage(),
        )
        entry.update(getattr(record, "structured_data", None) or {})
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class LogContext:
    """Attach key-value pairs to every record logged inside a ``with`` block.

    Contexts nest and inner values win. The values live in a ``ContextVar``,
    so each thread or task sees only its own.
    """

    def __init__(self, **values: Any) -> None:
        self._values = values
        self._token: contextvars.Token[dict[str, Any]] | None = None

    def __enter__(self) -> LogContext:
        merged = {**_log_context.get(), **self._values}
        self._token = _log_context.set(merged)
        return self

    def __exit__(self, *exc: Any) -> None:
        token, self._token = self._token, None
        if token is not None:
            _log_context.reset(token)

    def __repr__(self) -> str:
        return f"LogContext({self._values!r})"


# =============================================================================
# Package handler
# =============================================================================

_configured = False
_config_lock = threading.Lock()


def _install_handler(
    level: int | str, json_format: bool, stream: TextIO | None, include: bool
) -> None:
    """Attach the package handler once; caller holds ``_config_lock``."""
    global _configured
    if _configured:
        return

    logging.setLoggerClass(StructuredLogger)
    handler = logging.StreamHandler(sys.stderr if stream is None else stream)
    formatter: logging.Formatter
    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = StructuredFormatter(include_structured=include)
    handler.setFormatter(formatter)
    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    package_logger.setLevel(level)
    package_logger.addHandler(handler)
    package_logger.propagate = False
    _configured = True


def _remove_handlers() -> None:
    """Detach and close package handlers; caller holds ``_config_lock``."""
    global _configured
    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    _configured = False


def configure_logging(
    level: int | str = logging.INFO,
    json_format: bool = False,
    stream: TextIO | None = None,
    include_structured: bool = True,
    force: bool = False,
) -> None:
    """Send ``gphoto2_config`` log records to ``stream`` (stderr by default).

    Only the first call takes effect. ``force=True`` closes the current
    handler and applies the new settings, as the CLI does with its
    ``--log-level`` option.

    Args:
        level: Minimum level, number or name such as ``"DEBUG"``.
        json_format: JSON lines instead of text.
        stream: Destination stream.
        include_structured: Append keyword data in text mode.
        force: Replace an existing configuration.
    """
    with _config_lock:
        if force:
            _remove_handlers()
        _install_handler(level, json_format, stream, include_structured)


def reset_logging() -> None:
    """Detach the package handler; the next configure call starts over."""
    with _config_lock:
        _remove_handlers()


def get_logger(name: str) -> StructuredLogger:
    """Get a logger accepting keyword data, e.g. ``get_logger(__name__)``.

    The logger class must be installed before a logger is first created,
    so the first call applies the default configuration (INFO, text, stderr).
    """
    with _config_lock:
        _install_handler(logging.INFO, False, None, True)
    return cast(StructuredLogger, logging.getLogger(name))
