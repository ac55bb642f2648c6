"""Structured JSON logging.

All gateway components log through ``get_logger(component)``. Records are JSON
lines written to the console and, unless disabled, to a rotating file under
``~/.commandgate/logs/``.

Environment:
    COMMANDGATE_LOG_LEVEL: DEBUG/INFO/WARN/ERROR (default WARNING)
    COMMANDGATE_LOG_DIR: directory for the log file
    COMMANDGATE_DISABLE_FILE_LOGGING: 1/true/yes to log to the console only
"""

import json
import logging
import os
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

ROOT_LOGGER_NAME = "commandgate"
LOG_FILE_NAME = "commandgate.log"

_configured = False


def configure_logging(
    log_dir: str | None = None,
    level: str | None = None,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
    file_logging: bool | None = None,
) -> Path | None:
    """(Re)configure handlers on the ``commandgate`` logger.

    Args:
        log_dir: Directory for log files (defaults to COMMANDGATE_LOG_DIR or ~/.commandgate/logs/)
        level: Log level, reads COMMANDGATE_LOG_LEVEL if not provided
        max_bytes: Maximum size before rotation
        backup_count: Number of rotated files to keep
        file_logging: Force file logging on/off (None = use environment)

    Returns:
        Path of the log file, or None when file logging is disabled
    """
    global _configured

    if file_logging is None:
        file_logging = os.environ.get("COMMANDGATE_DISABLE_FILE_LOGGING", "").lower() not in (
            "1",
            "true",
            "yes",
        )

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.propagate = False
    for handler in root.handlers[:]:
        handler.close()
        root.removeHandler(handler)

    log_file: Path | None = None
    if file_logging:
        directory = Path(
            log_dir or os.environ.get("COMMANDGATE_LOG_DIR") or "~/.commandgate/logs"
        ).expanduser()
        directory.mkdir(parents=True, exist_ok=True)
        log_file = directory / LOG_FILE_NAME
        file_handler = RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count)
        file_handler.setFormatter(JSONFormatter())
        root.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(JSONFormatter())
    root.addHandler(console_handler)

    set_level(level or os.environ.get("COMMANDGATE_LOG_LEVEL", "WARNING"))
    _configured = True
    return log_file


def set_level(level: str) -> None:
    """Set level on the ``commandgate`` logger. Accepts WARN as WARNING."""
    level_upper = level.upper()
    if level_upper == "WARN":
        level_upper = "WARNING"
    logging.getLogger(ROOT_LOGGER_NAME).setLevel(getattr(logging, level_upper, logging.INFO))


class CommandGateLogger:
    """Key-value logger bound to one component.

    Wraps a child of the ``commandgate`` stdlib logger. Context passed to
    ``bind`` is merged into every record.
    """

    def __init__(self, component: str, **context: Any) -> None:
        self.component = component
        self._logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{component}")
        self._context = context
        self._timers: dict[str, float] = {}

    def bind(self, **context: Any) -> "CommandGateLogger":
        """Return a logger for the same component with extra context."""
        return CommandGateLogger(self.component, **{**self._context, **context})

    def _log(self, level: int, msg: str, kv: dict[str, Any]) -> None:
        if not _configured:
            configure_logging()
        if self._logger.isEnabledFor(level):
            self._logger.log(
                level, msg, extra={"kv": {"component": self.component, **self._context, **kv}}
            )

    def debug(self, msg: str, **kv: Any) -> None:
        self._log(logging.DEBUG, msg, kv)

    def info(self, msg: str, **kv: Any) -> None:
        self._log(logging.INFO, msg, kv)

    def warn(self, msg: str, **kv: Any) -> None:
        self._log(logging.WARNING, msg, kv)

    def error(self, msg: str, **kv: Any) -> None:
        self._log(logging.ERROR, msg, kv)

    @contextmanager
    def operation(self, operation_name: str, **kv: Any) -> Iterator[None]:
        """Log ``<name>_start`` and ``<name>_end`` with the elapsed time.

        Example:
            with logger.operation("validate", command="ls"):
                ...
        """
        start_time = time.monotonic()
        self.debug(f"{operation_name}_start", **kv)
        try:
            yield
        finally:
            duration_ms = (time.monotonic() - start_time) * 1000
            self.debug(f"{operation_name}_end", duration_ms=duration_ms, **kv)

    def start_timer(self, label: str) -> None:
        self._timers[label] = time.monotonic()

    def end_timer(self, label: str, **kv: Any) -> float:
        """Stop a named timer, log it, and return the duration in milliseconds.

        Raises:
            KeyError: If timer was not started
        """
        if label not in self._timers:
            raise KeyError(f"Timer '{label}' not started")

        duration_ms = (time.monotonic() - self._timers.pop(label)) * 1000
        self.debug(f"timer_{label}", duration_ms=duration_ms, **kv)
        return duration_ms


def get_logger(component: str, **context: Any) -> CommandGateLogger:
    """Get a component logger, e.g. ``get_logger("executor")``."""
    return CommandGateLogger(component, **context)


class JSONFormatter(logging.Formatter):
    """Formats log records as JSON lines."""

    def format(self, record: logging.LogRecord) -> str:
        dt = datetime.fromtimestamp(record.created, tz=UTC)
        timestamp = dt.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"

        log_data: dict[str, Any] = {
            "timestamp": timestamp,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "kv") and record.kv:
            log_data.update(record.kv)

        if record.exc_info:
            log_data["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)
