"""Process execution and supervision of the shared PostgreSQL server."""

import os
import signal
import subprocess
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Dict, List, Sequence, Callable, Union

from rich.console import Console

from .errors import ProcessError, ProcessStartupError, ServerStartupError, SubprocessFailedError
from .log import get_logger, log_process_event, log_server_event
from .log_demux import LogDemultiplexer, SessionLogMap, StreamClosed, make_readiness_channel
from .log_formatters import make_console
from .shutdown import add_shutdown_hook
from .value_objects import SessionId

logger = get_logger(__name__)


@dataclass
class ProcessResult:
    """Result of process execution."""

    command: List[str]
    returncode: int
    stdout: str
    stderr: str
    duration: float

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0


def _child_env(env: Optional[Dict[str, str]], env_remove: Sequence[str]) -> Optional[Dict[str, str]]:
    if env is None and not env_remove:
        return None
    merged = dict(os.environ)
    for name in env_remove:
        merged.pop(name, None)
    if env:
        merged.update(env)
    return merged


class ProcessExecutor:
    """Runs the one-shot external tools: build, initdb, dropdb, createdb."""

    def run(
        self,
        command: Sequence[str],
        env: Optional[Dict[str, str]] = None,
        env_remove: Sequence[str] = (),
        capture_stdout: bool = True,
        capture_stderr: bool = True,
    ) -> ProcessResult:
        """Run ``command`` to completion.

        Streams that are not captured are inherited from this process.
        """
        command = [str(part) for part in command]
        start_time = time.time()
        log_process_event(logger, "exec.start", command=command)
        logger.debug("Command: %s", " ".join(command))
        try:
            completed = subprocess.run(
                command,
                env=_child_env(env, env_remove),
                stdout=subprocess.PIPE if capture_stdout else None,
                stderr=subprocess.PIPE if capture_stderr else None,
                text=True,
                errors="replace",
                check=False,
            )
        except (OSError, subprocess.SubprocessError, ValueError) as e:
            log_process_event(logger, "exec.error", command=command, error=str(e))
            raise ProcessError(
                f"Failed to spawn process using command: '{' '.join(command)}': {e}"
            ) from e

        duration = time.time() - start_time
        result = ProcessResult(
            command=command,
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            duration=duration,
        )
        if result.succeeded:
            log_process_event(logger, "exec.ok", duration=duration)
        else:
            log_process_event(
                logger, "exec.failed", return_code=result.returncode, duration=duration
            )
        return result

    def run_checked(self, command: Sequence[str], action: str, **kwargs) -> ProcessResult:
        """Run ``command`` and raise with its output verbatim on failure.

        ``action`` completes the sentence "Failure <action> using command".
        """
        result = self.run(command, **kwargs)
        if not result.succeeded:
            command_str = " ".join(result.command)
            raise SubprocessFailedError(
                f"Failure {action} using command: {command_str}\n\n"
                f"{result.stdout}{result.stderr}",
                command=result.command,
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        return result


def wait_for_pidfile(
    pid_file: Path,
    retries: int = 10,
    interval: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Wait for a stale server pid file to disappear.

    Returns ``True`` when the file is gone. After ``retries`` waits the
    function gives up and returns ``False``; the caller starts the server
    anyway and lets it report what is wrong.
    """
    attempts = 0
    while pid_file.exists():
        if attempts > retries:
            logger.warning(
                "`%s` has existed for ~%.0fs. There might be a problem with the "
                "test PostgreSQL instance",
                pid_file,
                attempts * interval,
            )
            return False
        logger.info("`%s` still exists. Waiting...", pid_file)
        sleep(interval)
        attempts += 1
    return True


@dataclass
class SupervisedServer:
    """Handle on the running server and its stderr monitor thread."""

    process: subprocess.Popen
    command: List[str]
    monitor: threading.Thread
    session_id: SessionId = field(default=SessionId.NONE)

    @property
    def pid(self) -> int:
        return self.process.pid


class ServerSupervisor:
    """Starts the server and keeps draining its log output.

    The monitor thread runs for the rest of the process lifetime and is
    never joined; the server is stopped by a shutdown hook.
    """

    def __init__(self, console: Optional[Console] = None) -> None:
        self._console = console
        self.server: Optional[SupervisedServer] = None

    def start(
        self,
        command: Sequence[str],
        pid_file: Path,
        log_map: SessionLogMap,
        pidfile_retries: int = 10,
        pidfile_retry_interval: float = 1.0,
    ) -> SessionId:
        """Spawn the server and block until it accepts connections.

        Returns the session id of the line announcing readiness. There is
        no timeout: a server that never gets ready blocks the caller.
        """
        wait_for_pidfile(pid_file, pidfile_retries, pidfile_retry_interval)

        command = [str(part) for part in command]
        command_str = " ".join(command)
        log_server_event(logger, "starting", command=command)
        try:
            process = subprocess.Popen(
                command,
                stdout=None,
                stderr=subprocess.PIPE,
            )
        except (OSError, subprocess.SubprocessError, ValueError) as e:
            log_server_event(logger, "start_failed", error=str(e))
            raise ProcessStartupError(
                f"Failed to spawn server using command: '{command_str}': {e}"
            ) from e

        pid = process.pid
        add_shutdown_hook(lambda: self._terminate(pid))

        console = self._console or make_console()
        console.print(f"[bold blue]{command_str}[/bold blue]\npid=[yellow]{pid}[/yellow]",
                      highlight=False)

        ready_channel = make_readiness_channel()
        demux = LogDemultiplexer(log_map, ready_channel, console=console)
        monitor = threading.Thread(
            target=self._monitor,
            args=(process, demux),
            name=f"ServerMonitor-{pid}",
            daemon=True,
        )
        self.server = SupervisedServer(process=process, command=command, monitor=monitor)
        monitor.start()

        signal_value: Union[SessionId, StreamClosed] = ready_channel.get()
        if isinstance(signal_value, StreamClosed):
            exit_code = process.wait()
            log_server_event(logger, "exited_before_ready", pid=pid, exit_code=exit_code)
            raise ServerStartupError(
                f"PostgreSQL failed to start (exit code {exit_code}) using command: "
                f"'{command_str}'",
                exit_code=exit_code,
            )

        self.server.session_id = signal_value
        log_server_event(logger, "ready", pid=pid, session_id=str(signal_value))
        return signal_value

    @staticmethod
    def _monitor(process: subprocess.Popen, demux: LogDemultiplexer) -> None:
        lines = demux.consume(process.stderr)
        exit_code = process.poll()
        log_process_event(
            logger, "monitor.stream_closed", pid=process.pid, lines=lines, exit_code=exit_code
        )

    @staticmethod
    def _terminate(pid: int) -> None:
        try:
            os.kill(pid, signal.SIGTERM)
        except OSError as e:
            logger.debug("Could not send SIGTERM to %s: %s", pid, e)
            return
        print(f"stopping postgres (pid={pid})", flush=True)
