"""One-time preparation of the shared test server.

The first test that needs the server builds and installs the extension,
initializes the data directory, starts the server, recreates the test
database and creates the extension. Every later test finds the state
installed and reuses the running server and its log buffers.
"""

import threading
from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

import psycopg

from ..core.context import ApplicationContext
from ..core.errors import (
    BootstrapError,
    BootstrapLockPoisonedError,
    QueryError,
    TestbedError,
)
from ..core.log import get_logger, log_bootstrap_event
from ..core.log_demux import SessionLogMap
from ..core.shutdown import register_shutdown_hook
from ..core.value_objects import SessionId
from ..testing.query import query_wrapper
from ..testing.session import SessionFactory
from .command_builder import PostgresCommandBuilder
from .data_directory import DataDirectory
from .extension import ExtensionInstaller

logger = get_logger(__name__)

# Failures that leave the state uninstalled so the next caller retries
RECOVERABLE_ERRORS = (TestbedError, OSError, psycopg.Error)


@dataclass
class BootstrapState:
    """Process-wide bootstrap state, guarded by ``lock``.

    ``installed`` flips to ``True`` exactly once. ``poisoned`` is set when
    an unexpected exception escaped while the lock was held; the state is
    unusable afterwards.
    """

    installed: bool = False
    log_map: SessionLogMap = field(default_factory=SessionLogMap)
    system_session_id: SessionId = SessionId.NONE
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    poisoned: bool = False


class Bootstrapper:
    """Runs the bootstrap sequence at most once per ``BootstrapState``."""

    def __init__(
        self,
        app_context: ApplicationContext,
        state: BootstrapState,
        *,
        installer: Optional[ExtensionInstaller] = None,
        command_builder: Optional[PostgresCommandBuilder] = None,
        data_directory: Optional[DataDirectory] = None,
        session_factory: Optional[SessionFactory] = None,
    ) -> None:
        self._app_context = app_context
        self._state = state
        self._installer = installer or ExtensionInstaller(app_context)
        self._builder = command_builder or PostgresCommandBuilder(
            app_context.config, app_context.pg_config, app_context.logger
        )
        self._data_directory = data_directory or DataDirectory(app_context, self._builder)
        self._session_factory = session_factory or SessionFactory(app_context)

    @property
    def state(self) -> BootstrapState:
        return self._state

    def ensure_ready(
        self, postgresql_conf: Sequence[str] = ()
    ) -> Tuple[SessionLogMap, SessionId]:
        """Bootstrap if needed; return the shared log map and system session id.

        The lock is held for the whole check-and-install sequence, so
        concurrent callers block until the first one is done.
        """
        with self._state.lock:
            if self._state.poisoned:
                raise BootstrapLockPoisonedError(
                    "Could not obtain test mutex. A previous test may have "
                    "hard-aborted while holding it."
                )
            if not self._state.installed:
                try:
                    self._bootstrap(postgresql_conf)
                except RECOVERABLE_ERRORS:
                    log_bootstrap_event(logger, "failed")
                    raise
                except BaseException:
                    self._state.poisoned = True
                    raise
            return self._state.log_map, self._state.system_session_id

    def _bootstrap(self, postgresql_conf: Sequence[str]) -> None:
        config = self._app_context.config
        log_bootstrap_event(logger, "begin")

        register_shutdown_hook()
        self._installer.install()
        self._data_directory.ensure_initialized(postgresql_conf)

        system_session_id = self._app_context.supervisor.start(
            self._builder.postmaster_command(),
            self._builder.pid_file,
            self._state.log_map,
            pidfile_retries=config.pidfile_retries,
            pidfile_retry_interval=config.pidfile_retry_interval,
        )

        self._data_directory.reset_database()
        self._create_extension()

        self._state.installed = True
        self._state.system_session_id = system_session_id
        log_bootstrap_event(logger, "complete", session_id=str(system_session_id))

    def _create_extension(self) -> None:
        name = self._installer.extension_name()
        statement = self._installer.create_statement()
        connection, _ = self._session_factory.open()
        try:
            query_wrapper(
                statement,
                None,
                lambda query, _params: connection.execute(query),
                verbose=self._app_context.config.verbose_diagnostics,
            )
        except QueryError as e:
            raise BootstrapError(
                f"There was an issue creating the extension '{name}' in Postgres: {e}"
            ) from e
        finally:
            connection.close()
