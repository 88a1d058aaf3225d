"""Core type definitions for the pgtestbed framework."""

import re
from enum import Enum
from typing import List, Optional, Any
from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator


class ExecutionOutcome(Enum):
    """Outcome of one test invocation."""

    PASSED = "passed"
    SKIPPED = "skipped"
    EXPECTED_ERROR = "expected_error"


class BuildFeatures(BaseModel):
    """Feature selection taken from a build tool command line."""

    features: List[str] = Field(default_factory=list)
    no_default_features: bool = False
    all_features: bool = False


def _split_words(value: Any) -> Any:
    """Accept "a b", "a,b" or a list and normalize to a list of words."""
    if value is None:
        return []
    if isinstance(value, str):
        return [part for part in re.split(r"[\s,]+", value) if part]
    if isinstance(value, (list, tuple, set)):
        words: List[str] = []
        for item in value:
            words.extend(_split_words(str(item)))
        return words
    return value


class TestbedConfig(BaseModel):
    """Main framework configuration.

    Every field can be set from a ``PGTESTBED_<FIELD>`` environment variable
    or from the YAML configuration file.
    """

    __test__ = False

    # Test invocation
    skip: bool = False
    verbose_diagnostics: bool = False
    failure_flush_delay: float = 1.0

    # Extension build/install
    build_profile: str = "debug"
    features: List[str] = Field(default_factory=list)
    no_default_features: bool = False
    all_features: bool = False
    no_schema: bool = False
    manifest_path: Optional[Path] = None
    install_command: Optional[List[str]] = None
    log_passthrough_vars: List[str] = Field(default_factory=lambda: ["RUST_LOG"])
    extension_name: Optional[str] = None

    # Server installation
    pg_config: Optional[Path] = None
    home_dir: Optional[Path] = None
    target_dir: Optional[Path] = None
    host: str = "localhost"
    port: Optional[int] = None
    use_valgrind: bool = False
    runas: Optional[str] = None

    # Database objects
    dbname: str = "pgtestbed_tests"
    superuser: Optional[str] = None
    test_role: str = "pgtestbed"
    granted_schemas: List[str] = Field(default_factory=lambda: ["public"])

    # Supervisor
    pidfile_retries: int = 10
    pidfile_retry_interval: float = 1.0

    # Framework logging
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    @field_validator("features", "granted_schemas", "log_passthrough_vars", mode="before")
    @classmethod
    def _normalize_word_lists(cls, value: Any) -> Any:
        return _split_words(value)

    @field_validator("install_command", mode="before")
    @classmethod
    def _normalize_install_command(cls, value: Any) -> Any:
        if value is None or value == []:
            return None
        if isinstance(value, str):
            return value.split()
        return value

    @field_validator(
        "skip",
        "use_valgrind",
        "verbose_diagnostics",
        "no_default_features",
        "all_features",
        "no_schema",
        mode="before",
    )
    @classmethod
    def _flag_from_env(cls, value: Any) -> Any:
        # A set flag is any non-empty value other than an explicit "false".
        if value is None:
            return False
        if isinstance(value, str):
            return value.strip().lower() not in ("", "0", "false", "no", "off")
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return value != 0
        return value

    @field_validator("build_profile", mode="before")
    @classmethod
    def _stringify_profile(cls, value: Any) -> Any:
        if value is None:
            return ""
        return str(value)

    @model_validator(mode="after")
    def validate_config(self) -> "TestbedConfig":
        """Pure validation, no filesystem access."""
        from .errors import ConfigurationError

        if self.pidfile_retries < 0:
            raise ConfigurationError("pidfile_retries must not be negative")
        if self.pidfile_retry_interval < 0:
            raise ConfigurationError("pidfile_retry_interval must not be negative")
        if self.failure_flush_delay < 0:
            raise ConfigurationError("failure_flush_delay must not be negative")
        if self.port is not None and not 0 < self.port < 65536:
            raise ConfigurationError(f"Invalid port: {self.port}")
        if not self.test_role:
            raise ConfigurationError("test_role must not be empty")
        return self


class DatabaseErrorInfo(BaseModel):
    """Structured diagnostics reported by the server for a failed statement."""

    severity: str = "ERROR"
    sqlstate: str
    message: str
    detail: Optional[str] = None
    hint: Optional[str] = None
    schema_name: Optional[str] = None
    table_name: Optional[str] = None
    context: Optional[str] = None
    source_file: Optional[str] = None
    source_line: Optional[str] = None
    source_function: Optional[str] = None

    @classmethod
    def from_diagnostic(cls, diag: Any) -> Optional["DatabaseErrorInfo"]:
        """Build from a ``psycopg.errors.Diagnostic``; ``None`` without a SQLSTATE."""
        sqlstate = getattr(diag, "sqlstate", None)
        if not sqlstate:
            return None
        return cls(
            severity=getattr(diag, "severity", None) or "ERROR",
            sqlstate=sqlstate,
            message=getattr(diag, "message_primary", None) or "",
            detail=getattr(diag, "message_detail", None),
            hint=getattr(diag, "message_hint", None),
            schema_name=getattr(diag, "schema_name", None),
            table_name=getattr(diag, "table_name", None),
            context=getattr(diag, "context", None),
            source_file=getattr(diag, "source_file", None),
            source_line=getattr(diag, "source_line", None),
            source_function=getattr(diag, "source_function", None),
        )

    def server_location(self) -> str:
        """``file:line function`` inside the server, or ``<unknown>``."""
        if not self.source_file:
            return "<unknown>"
        location = self.source_file
        if self.source_line:
            location = f"{location}:{self.source_line}"
        if self.source_function:
            location = f"{location} {self.source_function}"
        return location
