"""Shared logging formatters and context management."""

import json
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict
from contextlib import contextmanager

from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text
from rich.theme import Theme

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RESERVED_RECORD_FIELDS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "message",
        "taskName",
    }
)

TESTBED_THEME = Theme(
    {
        "logging.level.debug": "dim cyan",
        "logging.level.info": "dim blue",
        "logging.level.warning": "yellow",
        "logging.level.error": "red",
        "logging.level.critical": "bold red",
        "pgtestbed.process": "bright_blue",
        "pgtestbed.server": "bright_cyan",
        "pgtestbed.session": "bright_magenta",
        "pgtestbed.bootstrap": "bright_green",
    }
)


class LogContext:
    """Thread-local logging context for structured metadata."""

    def __init__(self) -> None:
        self._local = threading.local()

    def set_context(self, **kwargs: Any) -> None:
        if not hasattr(self._local, "context"):
            self._local.context = {}
        self._local.context.update(kwargs)

    def get_context(self) -> Dict[str, Any]:
        if not hasattr(self._local, "context"):
            return {}
        return self._local.context.copy()

    def clear_context(self) -> None:
        if hasattr(self._local, "context"):
            self._local.context.clear()

    @contextmanager
    def context(self, **kwargs: Any):
        """Context manager for temporary context variables."""
        old_context = self.get_context()
        try:
            self.set_context(**kwargs)
            yield
        finally:
            self.clear_context()
            self.set_context(**old_context)


# Global logging context
_log_context = LogContext()


class StructuredFormatter(logging.Formatter):
    """JSON formatter for the optional log file."""

    def __init__(self, include_context: bool = True) -> None:
        super().__init__()
        self.include_context = include_context

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        extra_fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_RECORD_FIELDS
        }
        if extra_fields:
            log_entry["fields"] = extra_fields

        if self.include_context:
            context = _log_context.get_context()
            if context:
                log_entry["context"] = context

        return json.dumps(log_entry, default=str)


def make_console(stderr: bool = True) -> Console:
    """Create a rich console carrying the pgtestbed theme."""
    return Console(theme=TESTBED_THEME, stderr=stderr)


class TestbedRichHandler(RichHandler):
    """Rich console handler that colors records by their event type."""

    _STYLE_MAP = {
        "process": "pgtestbed.process",
        "server": "pgtestbed.server",
        "session": "pgtestbed.session",
        "bootstrap": "pgtestbed.bootstrap",
    }

    def __init__(self, *args, **kwargs):
        kwargs.setdefault("console", make_console())
        super().__init__(*args, **kwargs)

    def render_message(self, record: logging.LogRecord, message: str) -> Text:
        text = Text(message)
        style = self._STYLE_MAP.get(getattr(record, "event_type", None))
        if style:
            text.stylize(style)
        return text
