"""Session identity shared by server log lines and client connections.

The server tags every log line with ``%c`` from ``log_line_prefix``: the
backend start time in epoch seconds and the backend pid, both lowercase hex,
joined by a dot. Clients compute the same string for their own backend, so a
failed test can look up exactly the lines its connection produced.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar, Union

# Wire contract with the log demultiplexer: changing one means changing both.
LOG_LINE_PREFIX = "[%m] [%p] [%c]: "
SESSION_TAG_PATTERN = re.compile(r"\[.*?\] \[.*?\] \[(?P<session_id>.*?)\]")

NONE_SESSION = "NONE"


@dataclass(frozen=True)
class SessionId:
    """Correlation key between a client session and server log lines."""

    value: str

    NONE: ClassVar["SessionId"]

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not self.value:
            raise ValueError("SessionId cannot be empty")

    def __str__(self) -> str:
        return self.value

    @property
    def is_none(self) -> bool:
        return self.value == NONE_SESSION

    @classmethod
    def from_backend(
        cls, backend_start: Union[int, float, datetime], pid: int
    ) -> "SessionId":
        """Encode a backend's start time and pid the way the server does."""
        if isinstance(backend_start, datetime):
            backend_start = backend_start.timestamp()
        return cls(f"{int(backend_start):x}.{int(pid):x}")

    @classmethod
    def from_log_line(cls, line: str) -> "SessionId":
        """Extract the session tag of a log line, or ``SessionId.NONE``."""
        match = SESSION_TAG_PATTERN.search(line)
        if match is None or not match.group("session_id"):
            return cls.NONE
        return cls(match.group("session_id"))


SessionId.NONE = SessionId(NONE_SESSION)
