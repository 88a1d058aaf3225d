"""
Pytest configuration and fixtures for framework unit tests.
No test here talks to a real server or runs a real PostgreSQL tool.
"""

import io
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Callable, Generator, Optional
from unittest.mock import Mock, patch

import psycopg
import pytest
from rich.console import Console

from pgtestbed.core.context import ApplicationContext
from pgtestbed.core.shutdown import ShutdownHooks
from pgtestbed.core.types import TestbedConfig


class FakeDatabaseError(psycopg.Error):
    """psycopg error carrying hand-made server diagnostics."""

    def __init__(self, message: str, diag: Any) -> None:
        super().__init__(message)
        self._fake_diag = diag

    @property
    def diag(self) -> Any:
        return self._fake_diag


@pytest.fixture(autouse=True)
def isolated_shutdown_hooks() -> Generator[ShutdownHooks, None, None]:
    """Keep hooks added by tests away from the real process exit."""
    hooks = ShutdownHooks()
    with (
        patch("pgtestbed.core.shutdown._shutdown_hooks", hooks),
        patch.object(hooks, "register"),
    ):
        yield hooks


@pytest.fixture(autouse=True)
def reset_global_state() -> Generator[None, None, None]:
    """Reset the global configuration and default runner after each test."""
    yield
    from pgtestbed.core import config
    from pgtestbed.testing import runner

    config._config_manager._config = None
    runner.reset_default_runner()


@pytest.fixture
def quiet_console() -> Console:
    """Console writing into a buffer instead of the terminal."""
    return Console(file=io.StringIO(), width=200)


@pytest.fixture
def make_diag() -> Callable[..., SimpleNamespace]:
    """Factory for server diagnostics as exposed by ``psycopg.Error.diag``."""

    def factory(
        message: str = "syntax error at or near \"SELEC\"",
        sqlstate: Optional[str] = "42601",
        severity: str = "ERROR",
        **fields: Any,
    ) -> SimpleNamespace:
        values = {
            "severity": severity,
            "sqlstate": sqlstate,
            "message_primary": message,
            "message_detail": None,
            "message_hint": None,
            "schema_name": None,
            "table_name": None,
            "context": None,
            "source_file": None,
            "source_line": None,
            "source_function": None,
        }
        values.update(fields)
        return SimpleNamespace(**values)

    return factory


@pytest.fixture
def make_db_error(make_diag) -> Callable[..., FakeDatabaseError]:
    """Factory for psycopg errors with the given diagnostics."""

    def factory(message: str = "syntax error at or near \"SELEC\"", **fields: Any):
        return FakeDatabaseError(message, make_diag(message=message, **fields))

    return factory


@pytest.fixture
def mock_pg_config() -> Mock:
    """Installation of PostgreSQL 16 under /opt/pg/bin."""
    pg_config = Mock()
    pg_config.path = Path("/opt/pg/bin/pg_config")
    pg_config.host = "localhost"
    pg_config.test_port = 32216
    pg_config.version = "16.2"
    pg_config.major_version = 16
    pg_config.bin_dir = Path("/opt/pg/bin")
    pg_config.initdb_path.return_value = Path("/opt/pg/bin/initdb")
    pg_config.postmaster_path.return_value = Path("/opt/pg/bin/postgres")
    pg_config.dropdb_path.return_value = Path("/opt/pg/bin/dropdb")
    pg_config.createdb_path.return_value = Path("/opt/pg/bin/createdb")
    return pg_config


@pytest.fixture
def test_config(tmp_path: Path) -> TestbedConfig:
    """Configuration rooted in a temporary directory."""
    return TestbedConfig(
        home_dir=tmp_path / "home",
        target_dir=tmp_path / "target",
        extension_name="my_ext",
        superuser="postgres",
        failure_flush_delay=0.0,
        pidfile_retry_interval=0.0,
    )


@pytest.fixture
def app_context(test_config: TestbedConfig, mock_pg_config: Mock) -> ApplicationContext:
    """Context whose executor and supervisor are mocks."""
    return ApplicationContext.for_testing(
        config=test_config,
        pg_config=mock_pg_config,
        executor=Mock(),
        supervisor=Mock(),
    )
