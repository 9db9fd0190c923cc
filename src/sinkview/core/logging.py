"""Structured logging configuration for sinkview."""

import json
import logging
import sys
from enum import Enum
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

# Generated SQL and request bodies can be long; diagnostics keep the head
MAX_CONTEXT_VALUE = 300

DRIVER_LOGGERS = ("sqlalchemy.engine", "pymongo", "httpx", "httpcore")


class LogLevel(str, Enum):
    """Log level enumeration."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


def setup_logging(
    level: LogLevel = LogLevel.WARNING,
    rich_output: bool = True,
) -> logging.Logger:
    """Configure logging for sinkview.

    Driver loggers stay at WARNING unless sinkview runs at DEBUG, in which
    case SQLAlchemy also echoes the statements it sends.

    Args:
        level: The logging level
        rich_output: Whether to use Rich for formatted output

    Returns:
        Configured logger instance
    """
    log_level = getattr(logging, level.value.upper())

    # Remove existing handlers
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if rich_output:
        handler = RichHandler(
            console=Console(stderr=True),
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    logger = logging.getLogger("sinkview")
    logger.setLevel(log_level)

    for name in DRIVER_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    if level == LogLevel.DEBUG:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the ``sinkview`` namespace."""
    if name.startswith("sinkview"):
        return logging.getLogger(name)
    return logging.getLogger(f"sinkview.{name}")


def render_value(value: Any) -> str:
    """Render a context value on a single line.

    Mappings and lists (Mongo filters, search bodies) are dumped as compact
    JSON; whitespace in SQL text is collapsed.
    """
    if isinstance(value, (dict, list, tuple)):
        text = json.dumps(value, default=str, separators=(",", ":"))
    else:
        text = " ".join(str(value).split())
    if len(text) > MAX_CONTEXT_VALUE:
        return text[: MAX_CONTEXT_VALUE - 3] + "..."
    return text


class StructuredLogger:
    """Logger that appends bound context, such as the provider name, to every message."""

    def __init__(self, name: str, **context: Any):
        self._logger = get_logger(name)
        self._context: dict[str, Any] = context

    @property
    def name(self) -> str:
        return self._logger.name

    @property
    def context(self) -> dict[str, Any]:
        return dict(self._context)

    def bind(self, **kwargs: Any) -> "StructuredLogger":
        """Create a new logger with additional context."""
        return StructuredLogger(self._logger.name, **{**self._context, **kwargs})

    def _format_message(self, message: str, **kwargs: Any) -> str:
        context = {**self._context, **kwargs}
        if context:
            context_str = " ".join(f"{k}={render_value(v)}" for k, v in context.items())
            return f"{message} [{context_str}]"
        return message

    def debug(self, message: str, **kwargs: Any) -> None:
        self._logger.debug(self._format_message(message, **kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        self._logger.warning(self._format_message(message, **kwargs))

    def error(self, message: str, **kwargs: Any) -> None:
        self._logger.error(self._format_message(message, **kwargs))
