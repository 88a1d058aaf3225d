"""Demultiplexing of the server's stderr into per-session log buffers."""

import queue
import threading
from typing import BinaryIO, Callable, Dict, Iterable, List, Optional, Union

from rich.console import Console
from rich.text import Text

from .log import get_logger
from .log_formatters import make_console
from .value_objects import SessionId

logger = get_logger(__name__)

READY_MARKER = "database system is ready to accept connections"
# Lines carrying this tag are echoed even after the server is up.
ECHO_TAG = "TMSG: "


class SessionLogMap:
    """Append-only log lines keyed by session id, shared across threads.

    One lock guards the whole map. Lines of a session keep the order in
    which they were appended and are never removed.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._lines: Dict[str, List[str]] = {}

    def append(self, session_id: Union[SessionId, str], line: str) -> None:
        with self._lock:
            self._lines.setdefault(str(session_id), []).append(line)

    def lines_for(self, session_id: Union[SessionId, str]) -> List[str]:
        """Copy of the lines recorded for ``session_id``."""
        with self._lock:
            return list(self._lines.get(str(session_id), ()))

    def sessions(self) -> List[str]:
        with self._lock:
            return list(self._lines)

    def total_lines(self) -> int:
        with self._lock:
            return sum(len(lines) for lines in self._lines.values())


class StreamClosed:
    """Put on the readiness channel when stderr ends before the server is up."""

    def __repr__(self) -> str:
        return "StreamClosed()"


def make_readiness_channel() -> "queue.Queue[Union[SessionId, StreamClosed]]":
    """One-slot channel carrying the session id of the ready line."""
    return queue.Queue(maxsize=1)


class LogDemultiplexer:
    """Routes server log lines to session buckets and reports readiness."""

    def __init__(
        self,
        log_map: SessionLogMap,
        ready_channel: "queue.Queue[Union[SessionId, StreamClosed]]",
        console: Optional[Console] = None,
        echo: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._log_map = log_map
        self._ready_channel = ready_channel
        self._console = console
        self._echo = echo
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    def feed(self, line: str) -> SessionId:
        """Record one line and return the session it was attributed to."""
        session_id = SessionId.from_log_line(line)
        self._log_map.append(session_id, line)

        if READY_MARKER in line:
            if not self._started:
                self._started = True
                self._ready_channel.put(session_id)
            else:
                # Only the first ready line counts, later ones are just logged
                logger.debug("Ignoring repeated readiness line: %s", line)

        if not self._started or ECHO_TAG in line:
            self._emit(line)
        return session_id

    def consume(self, stream: Union[BinaryIO, Iterable[bytes]]) -> int:
        """Drain ``stream`` until EOF; return the number of lines seen.

        If the stream ends before the server reported readiness, a
        ``StreamClosed`` marker is put on the channel so the waiting thread
        does not block forever on a server that already exited.
        """
        count = 0
        for raw in stream:
            line = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
            self.feed(line.rstrip("\r\n"))
            count += 1
        if not self._started:
            self._ready_channel.put(StreamClosed())
        return count

    def _emit(self, line: str) -> None:
        if self._echo is not None:
            self._echo(line)
            return
        if self._console is None:
            self._console = make_console()
        self._console.print(Text(line, style="cyan"), highlight=False, soft_wrap=True)
