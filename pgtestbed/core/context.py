"""Application context for explicit dependency management.

The ApplicationContext is the single immutable container handed to every
component that needs framework services: configuration, logging, the
PostgreSQL installation, and the process helpers.

Usage:
    config = load_config()
    app_context = ApplicationContext.create(config)
    bootstrapper = Bootstrapper(app_context, BootstrapState())

    # For testing
    test_context = ApplicationContext.for_testing(executor=mock_executor)
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .types import TestbedConfig
from .log import Logger
from .pg_config import PgConfig
from .process import ProcessExecutor, ServerSupervisor


@dataclass(frozen=True)
class ApplicationContext:
    """Immutable application-wide context containing all dependencies.

    Attributes:
        config: Framework configuration
        logger: Logging instance
        pg_config: The PostgreSQL installation tests run against
        executor: Runs one-shot external commands
        supervisor: Starts and monitors the shared server
    """

    config: TestbedConfig
    logger: Logger
    pg_config: PgConfig
    executor: ProcessExecutor
    supervisor: ServerSupervisor

    @classmethod
    def create(
        cls,
        config: TestbedConfig,
        *,
        logger: Optional[Logger] = None,
        pg_config: Optional[PgConfig] = None,
        executor: Optional[ProcessExecutor] = None,
        supervisor: Optional[ServerSupervisor] = None,
    ) -> "ApplicationContext":
        """Create a context, filling in default implementations.

        Logging is configured from ``config`` unless a logger is given.
        """
        from .log import configure_logging, get_logger

        if logger is None:
            configure_logging(level=config.log_level, log_file=config.log_file)
            logger = get_logger("pgtestbed")

        if pg_config is None:
            pg_config = PgConfig(config.pg_config, host=config.host, port=config.port)

        return cls(
            config=config,
            logger=logger,
            pg_config=pg_config,
            executor=executor or ProcessExecutor(),
            supervisor=supervisor or ServerSupervisor(),
        )

    @classmethod
    def for_testing(
        cls,
        config: Optional[TestbedConfig] = None,
        **overrides,
    ) -> "ApplicationContext":
        """Create a context for unit tests.

        Nothing is looked up on the host: ``pg_config`` defaults to a path
        that is never executed unless a test asks for it, and no console
        handler is installed.

        Example:
            >>> ctx = ApplicationContext.for_testing(executor=Mock())
        """
        from .log import get_logger

        if config is None:
            config = TestbedConfig(
                home_dir=Path("/tmp/pgtestbed-test/home"),
                target_dir=Path("/tmp/pgtestbed-test/target"),
                failure_flush_delay=0.0,
                pidfile_retry_interval=0.0,
            )
        overrides.setdefault("logger", get_logger("pgtestbed.testing"))
        overrides.setdefault(
            "pg_config",
            PgConfig(Path("pg_config"), host=config.host, port=config.port),
        )
        return cls.create(config, **overrides)
