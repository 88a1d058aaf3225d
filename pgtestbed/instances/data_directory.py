"""Data directory initialization and test database reset."""

from pathlib import Path
from typing import Sequence

from ..core.context import ApplicationContext
from ..core.errors import SubprocessFailedError
from ..core.log import get_logger, log_bootstrap_event
from ..core.value_objects import LOG_LINE_PREFIX
from ..utils.filesystem import AUTO_CONF_NAME, atomic_write, ensure_dir, home_dir
from .command_builder import CLIENT_ENV_VARS, PostgresCommandBuilder

logger = get_logger(__name__)


def render_auto_conf(settings: Sequence[str], socket_dir: Path) -> str:
    """Contents of ``postgresql.auto.conf`` for a test server.

    The fixed log prefix comes first and the socket directory last, with
    the caller's ``settings`` in between.
    """
    lines = [f"log_line_prefix='{LOG_LINE_PREFIX}'"]
    lines.extend(settings)
    lines.append(f"unix_socket_directories = '{socket_dir}'")
    return "\n".join(lines)


class DataDirectory:
    """The on-disk cluster the shared server runs from."""

    def __init__(self, app_context: ApplicationContext,
                 builder: PostgresCommandBuilder) -> None:
        self._app_context = app_context
        self._builder = builder

    @property
    def path(self) -> Path:
        return self._builder.data_dir

    def ensure_initialized(self, postgresql_conf: Sequence[str] = ()) -> Path:
        """Run initdb if the directory is absent, then rewrite the auto config.

        The auto config is rewritten on every call, so settings from a
        previous run never leak into this one.
        """
        data_dir = self.path
        if not data_dir.is_dir():
            log_bootstrap_event(logger, "initdb", data_dir=str(data_dir))
            self._app_context.executor.run_checked(
                self._builder.initdb_command(),
                "initializing database",
                capture_stdout=False,
                capture_stderr=False,
            )
        else:
            logger.debug("Reusing data directory %s", data_dir)

        self.write_auto_conf(postgresql_conf)
        return data_dir

    def write_auto_conf(self, postgresql_conf: Sequence[str] = ()) -> Path:
        conf_file = self.path / AUTO_CONF_NAME
        socket_dir = ensure_dir(home_dir(self._app_context.config))
        atomic_write(conf_file, render_auto_conf(postgresql_conf, socket_dir))
        return conf_file

    def reset_database(self) -> None:
        """Drop the test database if present and create it again."""
        self.drop_database()
        self.create_database()

    def drop_database(self) -> None:
        dbname = self._app_context.config.dbname
        result = self._app_context.executor.run(
            self._builder.dropdb_command(), env_remove=CLIENT_ENV_VARS
        )
        if result.succeeded:
            return
        if f'database "{dbname}" does not exist' in result.stderr:
            logger.debug("Test database %s did not exist", dbname)
            return
        raise SubprocessFailedError(
            f"Failed to drop test database using command: {' '.join(result.command)}\n\n"
            f"{result.stdout}{result.stderr}",
            command=result.command,
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )

    def create_database(self) -> None:
        log_bootstrap_event(logger, "createdb", dbname=self._app_context.config.dbname)
        self._app_context.executor.run_checked(
            self._builder.createdb_command(),
            "creating test database",
            env_remove=CLIENT_ENV_VARS,
        )
