"""Pytest integration for extension test suites.

Installed as a ``pytest11`` plugin, so extension tests only need to ask for
the fixtures:

    def test_add(pg_test):
        pg_test(lambda conn: conn.execute("SELECT add(1, 2)"))

    @pytest.mark.postgresql_conf("shared_preload_libraries = 'my_ext'")
    def test_preloaded(pg_test):
        ...

    def test_rejects(pg_test):
        pg_test(lambda conn: conn.execute("SELECT boom()"),
                expected_error="boom")
"""

from typing import Any, Callable, List, Optional

import pytest

from ..core.types import ExecutionOutcome
from .runner import TestRunner, TestWork, get_default_runner

POSTGRESQL_CONF_MARKER = "postgresql_conf"


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        f"{POSTGRESQL_CONF_MARKER}(*settings): extra postgresql.auto.conf lines "
        "applied when the shared server is first started",
    )


def _marker_settings(node: Any) -> List[str]:
    settings: List[str] = []
    for marker in node.iter_markers(POSTGRESQL_CONF_MARKER):
        settings.extend(str(arg) for arg in marker.args)
    return settings


@pytest.fixture(scope="session")
def pg_runner() -> TestRunner:
    """The process-wide runner sharing one server across the whole session."""
    return get_default_runner()


@pytest.fixture
def pg_test(request, pg_runner: TestRunner) -> Callable[..., ExecutionOutcome]:
    """Run a test body against the shared server.

    Settings from ``postgresql_conf`` markers only take effect when this
    test is the one that bootstraps the server.
    """
    postgresql_conf = _marker_settings(request.node)

    def run(work: TestWork, options: Optional[str] = None,
            expected_error: Optional[str] = None) -> ExecutionOutcome:
        return pg_runner.run(work, options, expected_error, postgresql_conf)

    return run
