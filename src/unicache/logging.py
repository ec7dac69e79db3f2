"""
Structured logging for unicache.

Provides:
- Context variables for cache_name and operation (using contextvars)
- JSONFormatter for machine-readable logs to file
- RichHandler for pretty console output
- ContextLogger wrapper that attaches context to all log calls
- CacheLogger binding a logger to one cache's debug flag and callback
- setup_logging() that configures both file and console handlers
- get_logger() factory
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator

import orjson
from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text

ROOT_LOGGER = "unicache"

# Context variables for structured logging
_cache_name_var: ContextVar[str | None] = ContextVar("cache_name", default=None)
_operation_var: ContextVar[str | None] = ContextVar("operation", default=None)


def get_cache_name() -> str | None:
    """Get the current cache name from context."""
    return _cache_name_var.get()


def get_operation() -> str | None:
    """Get the current operation from context."""
    return _operation_var.get()


@contextmanager
def log_context(
    cache_name: str | None = None,
    operation: str | None = None,
) -> Generator[None, None, None]:
    """Context manager for scoped logging context.

    Args:
        cache_name: Cache name to set in context.
        operation: Operation name to set in context.

    Yields:
        None. Context variables are set for the duration of the context.
    """
    cache_token = _cache_name_var.set(cache_name) if cache_name is not None else None
    operation_token = _operation_var.set(operation) if operation is not None else None
    try:
        yield
    finally:
        if operation_token is not None:
            _operation_var.reset(operation_token)
        if cache_token is not None:
            _cache_name_var.reset(cache_token)


class JSONFormatter(logging.Formatter):
    """JSON formatter for machine-readable log files.

    Produces JSON Lines format with structured context.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as JSON."""
        log_obj: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        cache_name = get_cache_name()
        operation = get_operation()
        if cache_name:
            log_obj["cache_name"] = cache_name
        if operation:
            log_obj["operation"] = operation

        if hasattr(record, "extra"):
            log_obj["extra"] = record.extra

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return orjson.dumps(log_obj, default=str).decode("utf-8")


class ContextRichHandler(RichHandler):
    """Rich handler that includes context in console output."""

    def get_level_text(self, record: logging.LogRecord) -> Text:
        """Override to add context prefix."""
        level_text = super().get_level_text(record)

        parts: list[str] = []
        cache_name = get_cache_name()
        operation = get_operation()
        if cache_name:
            parts.append(f"[magenta]{cache_name}[/magenta]")
        if operation:
            parts.append(f"[cyan]{operation}[/cyan]")

        if parts:
            return Text.from_markup(f"{level_text} {' '.join(parts)}")
        return level_text


class ContextLogger:
    """Logger wrapper that automatically attaches context to log calls.

    Keyword arguments other than the standard logging ones are collected
    into the record's ``extra`` mapping.
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    @property
    def name(self) -> str:
        """Get the logger name."""
        return self._logger.name

    def _log(
        self,
        level: int,
        msg: str,
        *args: Any,
        exc_info: bool = False,
        **kwargs: Any,
    ) -> None:
        """Internal logging method that adds context."""
        extra = kwargs.pop("extra", {})

        cache_name = get_cache_name()
        operation = get_operation()
        if cache_name:
            extra.setdefault("cache_name", cache_name)
        if operation:
            extra.setdefault("operation", operation)

        for key in list(kwargs.keys()):
            if key not in ("exc_info", "stack_info", "stacklevel"):
                extra[key] = kwargs.pop(key)

        self._logger.log(level, msg, *args, exc_info=exc_info, extra={"extra": extra})

    def log(self, level: int, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log at an explicit level."""
        self._log(level, msg, *args, **kwargs)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log debug message."""
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log info message."""
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log warning message."""
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args: Any, exc_info: bool = False, **kwargs: Any) -> None:
        """Log error message."""
        self._log(logging.ERROR, msg, *args, exc_info=exc_info, **kwargs)

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self._log(logging.ERROR, msg, *args, exc_info=True, **kwargs)


class CacheLogger:
    """Logger bound to a single cache instance or backend.

    ``verbose`` chatter is logged at INFO when ``debug`` is on and at DEBUG
    otherwise. Warnings and errors always go through. When ``log_function``
    is set it receives every message as ``"<prefix> <message>"``.
    """

    def __init__(
        self,
        logger: ContextLogger,
        cache_name: str,
        *,
        prefix: str = "[UniCache]",
        debug: bool = False,
        log_function: Callable[[str], Any] | None = None,
    ) -> None:
        self._logger = logger
        self.cache_name = cache_name
        self.prefix = prefix
        self.debug = debug
        self.log_function = log_function

    def child(self, logger: ContextLogger, prefix: str) -> CacheLogger:
        """Create a logger for a collaborator sharing this cache's settings."""
        return CacheLogger(
            logger,
            self.cache_name,
            prefix=prefix,
            debug=self.debug,
            log_function=self.log_function,
        )

    def _emit(self, level: int, msg: str, exc_info: bool = False, **context: Any) -> None:
        context.setdefault("cache_name", self.cache_name)
        self._logger.log(level, msg, exc_info=exc_info, **context)
        if self.log_function is not None:
            self.log_function(f"{self.prefix} {msg}")

    def verbose(self, msg: str, **context: Any) -> None:
        """Log routine activity."""
        self._emit(logging.INFO if self.debug else logging.DEBUG, msg, **context)

    def warning(self, msg: str, **context: Any) -> None:
        """Log recoverable problems such as corrupt documents."""
        self._emit(logging.WARNING, msg, **context)

    def error(self, msg: str, exc_info: bool = False, **context: Any) -> None:
        """Log failures."""
        self._emit(logging.ERROR, msg, exc_info=exc_info, **context)


# Global console for rich output
_console: Console | None = None
_setup_done: bool = False


def get_console() -> Console:
    """Get the global rich console."""
    global _console
    if _console is None:
        _console = Console(stderr=True)
    return _console


def setup_logging(
    log_level: str = "INFO",
    log_file: Path | None = None,
    console_output: bool = True,
) -> None:
    """Set up logging with JSON file handler and rich console handler.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Path to log file. If None, only console logging is enabled.
        console_output: Whether to enable console output.
    """
    global _setup_done

    level = getattr(logging, log_level.upper())

    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(JSONFormatter())
        file_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(file_handler)

    if console_output:
        rich_handler = ContextRichHandler(
            console=get_console(),
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            markup=False,
        )
        rich_handler.setLevel(level)
        root_logger.addHandler(rich_handler)

    root_logger.propagate = False
    _setup_done = True


def get_logger(name: str) -> ContextLogger:
    """Get a context-aware logger.

    Args:
        name: Logger name (usually __name__).

    Returns:
        ContextLogger wrapper around the standard logger.
    """
    if not _setup_done:
        setup_logging()

    if not name.startswith(ROOT_LOGGER):
        name = f"{ROOT_LOGGER}.{name}"

    return ContextLogger(logging.getLogger(name))
