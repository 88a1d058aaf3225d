"""Structured logging with JSON file output and rich terminal formatting."""

import logging
import threading
from typing import Any, Dict, Optional, Union, Protocol
from pathlib import Path

from .log_formatters import StructuredFormatter, TestbedRichHandler, _log_context


class Logger(Protocol):
    """Protocol for logger instances to enable dependency injection."""

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log debug message."""

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log info message."""

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log warning message."""

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log error message."""

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log exception with traceback."""


class LogManager:
    """Central logging configuration for the ``pgtestbed`` logger tree.

    Loggers handed out by ``get_logger`` live under the ``pgtestbed``
    namespace and do not propagate to the root logger, so the test suites
    that use the framework keep control of their own logging.
    """

    ROOT_NAME = "pgtestbed"

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._configured = False
        self._root = logging.getLogger(self.ROOT_NAME)
        self._root.propagate = False
        self._root.setLevel(logging.DEBUG)
        self._console_handler: Optional[logging.Handler] = None
        self._json_handler: Optional[logging.Handler] = None

    @property
    def configured(self) -> bool:
        return self._configured

    def configure(
        self,
        level: Union[int, str] = logging.INFO,
        log_file: Optional[Path] = None,
        enable_console: bool = True,
        console_level: Optional[Union[int, str]] = None,
    ) -> None:
        """Attach console and file handlers. Later calls are no-ops."""
        with self._lock:
            if self._configured:
                return

            if enable_console:
                self._console_handler = TestbedRichHandler(
                    show_time=True, show_path=False, markup=False
                )
                self._console_handler.setLevel(console_level or level)
                self._root.addHandler(self._console_handler)

            if log_file:
                self.add_file_logging(log_file, level)

            self._configured = True

    def add_file_logging(
        self, log_file: Path, level: Union[int, str] = logging.DEBUG
    ) -> None:
        """Add a JSON file handler to an already configured tree."""
        with self._lock:
            log_file = Path(log_file)
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(log_file)
            handler.setFormatter(StructuredFormatter(include_context=True))
            handler.setLevel(level)
            if self._json_handler is not None:
                self._root.removeHandler(self._json_handler)
                self._json_handler.close()
            self._json_handler = handler
            self._root.addHandler(handler)

    def get_logger(self, name: str) -> logging.Logger:
        """Get a logger below the ``pgtestbed`` namespace."""
        if name == self.ROOT_NAME or name.startswith(self.ROOT_NAME + "."):
            return logging.getLogger(name)
        return logging.getLogger(f"{self.ROOT_NAME}.{name}")

    def shutdown(self) -> None:
        """Detach and close every handler, allowing reconfiguration."""
        with self._lock:
            for handler in (self._console_handler, self._json_handler):
                if handler is None:
                    continue
                self._root.removeHandler(handler)
                try:
                    handler.close()
                except (OSError, RuntimeError):
                    pass  # Ignore handler close errors
            self._console_handler = None
            self._json_handler = None
            self._configured = False


# Global log manager instance
_log_manager = LogManager()


def configure_logging(**kwargs: Any) -> None:
    """Configure the global logging system."""
    _log_manager.configure(**kwargs)


def add_file_logging(log_file: Path, level: Union[int, str] = logging.DEBUG) -> None:
    """Add JSON file logging to the already configured system."""
    _log_manager.add_file_logging(log_file, level)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return _log_manager.get_logger(name)


def log_process_event(
    logger: Logger, event: str, pid: Optional[int] = None, **kwargs: Any
) -> None:
    """Log a process-related event."""
    extra: Dict[str, Any] = {"event_type": "process", "process_event": event}
    if pid is not None:
        extra["pid"] = pid
    extra.update(kwargs)
    logger.info("Process %s %s", pid if pid is not None else "-", event, extra=extra)


def log_server_event(logger: Logger, event: str, **kwargs: Any) -> None:
    """Log a server lifecycle event."""
    extra: Dict[str, Any] = {"event_type": "server", "server_event": event}
    extra.update(kwargs)
    logger.info("Server %s", event, extra=extra)


def log_session_event(
    logger: Logger, event: str, session_id: Any = None, **kwargs: Any
) -> None:
    """Log a client session event."""
    extra: Dict[str, Any] = {"event_type": "session", "session_event": event}
    if session_id is not None:
        extra["session_id"] = str(session_id)
    extra.update(kwargs)
    logger.info("Session %s %s", session_id, event, extra=extra)


def log_bootstrap_event(logger: Logger, event: str, **kwargs: Any) -> None:
    """Log a bootstrap step."""
    extra: Dict[str, Any] = {"event_type": "bootstrap", "bootstrap_event": event}
    extra.update(kwargs)
    logger.info("Bootstrap %s", event, extra=extra)


# Context management shortcuts
def set_log_context(**kwargs: Any) -> None:
    """Set logging context for current thread."""
    _log_context.set_context(**kwargs)


def get_log_context() -> Dict[str, Any]:
    """Get current logging context."""
    return _log_context.get_context()


def clear_log_context() -> None:
    """Clear current logging context."""
    _log_context.clear_context()


def log_context(**kwargs: Any) -> Any:
    """Context manager for temporary logging context."""
    return _log_context.context(**kwargs)
