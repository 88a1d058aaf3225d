"""
pgtestbed: PostgreSQL extension test harness

Builds and installs the extension under test, starts one throwaway
PostgreSQL server per test process, and attributes every server log line
to the client session that caused it, so a failing test reports the
server-side story without being re-run.
"""

__version__ = "1.0.0"

from .core.types import ExecutionOutcome, TestbedConfig
from .core.value_objects import SessionId

__all__ = [
    "__version__",
    "ExecutionOutcome",
    "TestbedConfig",
    "SessionId",
]
