"""PostgreSQL tool command line builder."""

import shutil
from pathlib import Path
from typing import List, Optional

from ..core.log import Logger
from ..core.pg_config import PgConfig, get_c_locale_flags
from ..core.types import TestbedConfig
from ..utils import filesystem

VALGRIND_ARGS = [
    "--leak-check=no",
    "--gen-suppressions=all",
    "--time-stamp=yes",
    "--error-markers=VALGRINDERROR-BEGIN,VALGRINDERROR-END",
    "--trace-children=yes",
]

# Redirecting logs to files can hang the monitor, so logs always go to stderr
SERVER_LOG_ARGS = ["-c", "log_destination=stderr", "-c", "logging_collector=off"]

# Connection settings that would override the explicit -h/-p/dbname arguments
CLIENT_ENV_VARS = ("PGDATABASE", "PGHOST", "PGPORT", "PGUSER")


class PostgresCommandBuilder:
    """Builds the command lines of the server and its client tools."""

    def __init__(self, config: TestbedConfig, pg_config: PgConfig, logger: Logger) -> None:
        self._config = config
        self._pg_config = pg_config
        self._logger = logger

    @property
    def data_dir(self) -> Path:
        return filesystem.data_dir(self._config, self._pg_config.major_version)

    @property
    def pid_file(self) -> Path:
        return filesystem.pid_file(self._config, self._pg_config.major_version)

    def _connection_args(self) -> List[str]:
        return ["-h", self._pg_config.host, "-p", str(self._pg_config.test_port)]

    def postmaster_command(self) -> List[str]:
        """Server command, wrapped in valgrind when configured."""
        command: List[str] = []
        if self._config.use_valgrind:
            command.append(shutil.which("valgrind") or "valgrind")
            command.extend(VALGRIND_ARGS)
            suppressions = self._valgrind_suppressions()
            if suppressions is not None:
                command.append(f"--suppressions={suppressions}")

        command.append(str(self._pg_config.postmaster_path()))
        command.extend(["-D", str(self.data_dir)])
        command.extend(self._connection_args())
        command.extend(SERVER_LOG_ARGS)

        self._logger.debug("Command: %s", " ".join(command))
        return command

    def _valgrind_suppressions(self) -> Optional[Path]:
        path = filesystem.valgrind_suppressions(self._config, self._pg_config.version)
        if path.exists():
            return path
        self._logger.debug("No valgrind suppressions at %s", path)
        return None

    def initdb_command(self) -> List[str]:
        return [
            str(self._pg_config.initdb_path()),
            *get_c_locale_flags(),
            "-D",
            str(self.data_dir),
        ]

    def dropdb_command(self) -> List[str]:
        return [
            str(self._pg_config.dropdb_path()),
            "--if-exists",
            *self._connection_args(),
            self._config.dbname,
        ]

    def createdb_command(self) -> List[str]:
        """``createdb``, run through ``sudo -u <role>`` when a run-as role is set."""
        command = [
            str(self._pg_config.createdb_path()),
            *self._connection_args(),
            self._config.dbname,
        ]
        if self._config.runas:
            return ["sudo", "-u", self._config.runas, *command]
        return command
