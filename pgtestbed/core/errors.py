"""Error hierarchy for the pgtestbed framework."""

from typing import Optional, Dict, Any, List, Sequence


class TestbedError(Exception):
    """Base exception for all pgtestbed framework errors."""

    __test__ = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


# Configuration and Environment Errors
class ConfigurationError(TestbedError):
    """Error in framework configuration."""


class TestbedEnvironmentError(TestbedError):
    """Required environment variable or tool is missing."""


class ManifestError(ConfigurationError):
    """Extension manifest is missing or unparsable."""


# Filesystem Errors
class FilesystemError(TestbedError):
    """Filesystem operation error."""


class PathError(FilesystemError):
    """Path resolution or validation error."""


# Process Errors
class ProcessError(TestbedError):
    """Base class for process-related errors."""


class ProcessStartupError(ProcessError):
    """A process could not be spawned."""


class SubprocessFailedError(ProcessError):
    """An external tool exited with a non-zero status."""

    def __init__(self, message: str, command: Sequence[str], returncode: int,
                 stdout: str = "", stderr: str = "",
                 details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details)
        self.command: List[str] = list(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


# Server Errors
class ServerError(TestbedError):
    """Base class for PostgreSQL server errors."""


class ServerStartupError(ServerError):
    """The server exited before reporting it was ready."""

    def __init__(self, message: str, exit_code: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details)
        self.exit_code = exit_code


# Bootstrap Errors
class BootstrapError(TestbedError):
    """Error while preparing the shared server."""


class BootstrapLockPoisonedError(BootstrapError):
    """A previous holder of the bootstrap lock died while holding it."""


# Client Errors
class SessionError(TestbedError):
    """A client session could not be opened or configured."""


class QueryError(TestbedError):
    """A wrapped query failed.

    ``info`` holds the server's structured diagnostics, or ``None`` when the
    failure did not come from the server.
    """

    def __init__(self, message: str, query: Optional[str] = None,
                 params: Optional[Sequence[Any]] = None, info: Any = None,
                 details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details)
        self.query = query
        self.params = params
        self.info = info


# Test Execution Errors
class ExecutionError(TestbedError):
    """Error during test execution."""


class ExpectedErrorNotRaised(ExecutionError):
    """The test declared an expected error but the work succeeded."""

    def __init__(self, expected: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(f"Expected error: {expected}", details)
        self.expected = expected


class TestFailure(ExecutionError):
    """Unexpected failure, escalated with the captured server logs."""

    def __init__(self, message: str, *, system_lines: List[str],
                 session_lines: List[str], client_message: str,
                 server_location: str, server_context: str,
                 client_location: str,
                 details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details)
        self.system_lines = system_lines
        self.session_lines = session_lines
        self.client_message = client_message
        self.server_location = server_location
        self.server_context = server_context
        self.client_location = client_location
