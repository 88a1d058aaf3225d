"""Process-exit cleanup hooks run from atexit or on SIGINT/SIGTERM."""

import atexit
import os
import signal
import threading
from typing import Any, Callable, Dict, List

from .log import get_logger

logger = get_logger(__name__)

_HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ShutdownHooks:
    """Callables to run once when the process goes away."""

    def __init__(self) -> None:
        self._hooks: List[Callable[[], None]] = []
        self._lock = threading.Lock()
        self._registered = False
        self._ran = False
        self._previous_handlers: Dict[int, Any] = {}

    def add(self, hook: Callable[[], None]) -> None:
        with self._lock:
            self._hooks.append(hook)

    def register(self) -> None:
        """Install the atexit and signal handlers. Idempotent."""
        with self._lock:
            if self._registered:
                return
            atexit.register(self.run)
            if threading.current_thread() is threading.main_thread():
                for signum in _HANDLED_SIGNALS:
                    self._previous_handlers[signum] = signal.signal(
                        signum, self._on_signal
                    )
            else:
                logger.debug("Not on the main thread; only atexit cleanup installed")
            self._registered = True

    def run(self) -> None:
        """Run every hook once, newest first."""
        with self._lock:
            if self._ran:
                return
            self._ran = True
            hooks = list(reversed(self._hooks))
        for hook in hooks:
            try:
                hook()
            except Exception as e:  # pylint: disable=broad-exception-caught
                # One broken hook must not keep the others from running
                logger.error("Shutdown hook %r failed: %s", hook, e)

    def _on_signal(self, signum: int, frame: Any) -> None:
        self.run()
        previous = self._previous_handlers.get(signum, signal.SIG_DFL)
        if callable(previous):
            previous(signum, frame)
            return
        if previous == signal.SIG_IGN:
            return
        signal.signal(signum, signal.SIG_DFL)
        os.kill(os.getpid(), signum)


_shutdown_hooks = ShutdownHooks()


def register_shutdown_hook() -> None:
    """Make sure registered hooks run on exit or termination signals."""
    _shutdown_hooks.register()


def add_shutdown_hook(hook: Callable[[], None]) -> None:
    """Add a callable to run at process exit."""
    _shutdown_hooks.add(hook)
