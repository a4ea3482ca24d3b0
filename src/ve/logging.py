"""
Structured logging for the valuation engine.

Provides:
- Context variables for valuation_id, company_id, method (using contextvars)
- JSONFormatter for machine-readable logs to file
- RichHandler for pretty console output
- ContextLogger wrapper that attaches context to all log calls
- setup_logging() that configures both file and console handlers
- Context manager log_context() for scoped context
- get_logger() factory
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator

from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text

# Context variables for structured logging
_valuation_id_var: ContextVar[str | None] = ContextVar("valuation_id", default=None)
_company_id_var: ContextVar[int | None] = ContextVar("company_id", default=None)
_method_var: ContextVar[str | None] = ContextVar("method", default=None)


def get_valuation_id() -> str | None:
    """Get the current valuation ID from context."""
    return _valuation_id_var.get()


def get_company_id() -> int | None:
    """Get the current company ID from context."""
    return _company_id_var.get()


def get_method() -> str | None:
    """Get the current valuation method from context."""
    return _method_var.get()


def _current_context() -> dict[str, Any]:
    ctx: dict[str, Any] = {}
    valuation_id = get_valuation_id()
    company_id = get_company_id()
    method = get_method()
    if valuation_id:
        ctx["valuation_id"] = valuation_id
    if company_id is not None:
        ctx["company_id"] = company_id
    if method:
        ctx["method"] = method
    return ctx


@contextmanager
def log_context(
    valuation_id: str | None = None,
    company_id: int | None = None,
    method: str | None = None,
) -> Generator[None, None, None]:
    """Context manager for scoped logging context.

    Args:
        valuation_id: Valuation ID to set in context.
        company_id: Company ID to set in context.
        method: Valuation method to set in context.

    Yields:
        None. Context variables are set for the duration of the context.
    """
    tokens = []
    if valuation_id is not None:
        tokens.append((_valuation_id_var, _valuation_id_var.set(valuation_id)))
    if company_id is not None:
        tokens.append((_company_id_var, _company_id_var.set(company_id)))
    if method is not None:
        tokens.append((_method_var, _method_var.set(method)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


class JSONFormatter(logging.Formatter):
    """JSON formatter for machine-readable log files.

    Produces JSON Lines format with structured context.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as JSON."""
        log_obj: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_obj.update(_current_context())

        if hasattr(record, "extra"):
            log_obj["extra"] = record.extra

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, default=str)


class ContextRichHandler(RichHandler):
    """Rich handler that includes context in console output."""

    def get_level_text(self, record: logging.LogRecord) -> Text:
        """Override to add context prefix."""
        level_text = super().get_level_text(record)

        parts: list[str] = []
        valuation_id = get_valuation_id()
        company_id = get_company_id()
        method = get_method()

        if valuation_id:
            # Last 8 chars of the uuid7 are the random tail
            parts.append(f"[dim]{valuation_id[-8:]}[/dim]")
        if company_id is not None:
            parts.append(f"[cyan]company={company_id}[/cyan]")
        if method:
            parts.append(f"[magenta]{method}[/magenta]")

        if parts:
            prefix = " ".join(parts)
            return Text.from_markup(f"{level_text} {prefix}")

        return level_text


class ContextLogger:
    """Logger wrapper that automatically attaches context to log calls.

    Keyword arguments other than the standard logging ones are collected
    into the record's ``extra`` payload.
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
        **kwargs: Any,
    ) -> None:
        extra = kwargs.pop("extra", {})
        extra.update(_current_context())
        extra.update(kwargs)

        self._logger.log(level, msg, *args, extra={"extra": extra})

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log debug message."""
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log info message."""
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log warning message."""
        self._log(logging.WARNING, msg, *args, **kwargs)


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

    root_logger = logging.getLogger("ve")
    root_logger.setLevel(getattr(logging, log_level.upper()))
    root_logger.handlers.clear()

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(JSONFormatter())
        file_handler.setLevel(logging.DEBUG)  # Log everything to file
        root_logger.addHandler(file_handler)

    if console_output:
        rich_handler = ContextRichHandler(
            console=get_console(),
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            markup=True,
        )
        rich_handler.setLevel(getattr(logging, log_level.upper()))
        root_logger.addHandler(rich_handler)

    root_logger.propagate = False

    for noisy_logger in ["httpx", "httpcore", "uvicorn.access"]:
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

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

    if name != "ve" and not name.startswith("ve."):
        name = f"ve.{name}"

    return ContextLogger(logging.getLogger(name))
