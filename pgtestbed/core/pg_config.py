"""Access to an installed PostgreSQL through its ``pg_config`` binary."""

import platform
import re
import shutil
import subprocess
from functools import cached_property
from pathlib import Path
from typing import List, Optional

from .errors import TestbedEnvironmentError, PathError
from .log import get_logger

logger = get_logger(__name__)

# Test servers listen on 32200 + major version unless a port is configured.
BASE_TEST_PORT = 32200

_VERSION_PATTERN = re.compile(r"(\d+)(?:\.(\d+))?")


class PgConfig:
    """Paths and version of one PostgreSQL installation."""

    def __init__(self, path: Optional[Path] = None, host: str = "localhost",
                 port: Optional[int] = None) -> None:
        self._path = Path(path) if path is not None else None
        self.host = host
        self._port = port

    @property
    def path(self) -> Path:
        """The ``pg_config`` binary; looked up on ``PATH`` when not configured."""
        if self._path is None:
            found = shutil.which("pg_config")
            if found is None:
                raise TestbedEnvironmentError(
                    "pg_config not found on PATH; set PGTESTBED_PG_CONFIG"
                )
            self._path = Path(found)
        return self._path

    def _query(self, flag: str) -> str:
        try:
            result = subprocess.run(
                [str(self.path), flag],
                capture_output=True,
                text=True,
                check=True,
            )
        except FileNotFoundError as e:
            raise PathError(f"pg_config not found at {self.path}") from e
        except subprocess.CalledProcessError as e:
            raise TestbedEnvironmentError(
                f"`{self.path} {flag}` failed: {e.stderr.strip()}"
            ) from e
        return result.stdout.strip()

    @cached_property
    def bin_dir(self) -> Path:
        return Path(self._query("--bindir"))

    @cached_property
    def version(self) -> str:
        """Version string such as ``16.2``."""
        raw = self._query("--version")
        match = _VERSION_PATTERN.search(raw)
        if match is None:
            raise TestbedEnvironmentError(f"Unrecognized pg_config version: {raw!r}")
        return match.group(0)

    @property
    def major_version(self) -> int:
        return int(self.version.split(".")[0])

    @property
    def test_port(self) -> int:
        if self._port is not None:
            return self._port
        return BASE_TEST_PORT + self.major_version

    def _tool(self, name: str) -> Path:
        tool = self.bin_dir / name
        if not tool.exists():
            raise PathError(f"{name} not found in {self.bin_dir}")
        return tool

    def initdb_path(self) -> Path:
        return self._tool("initdb")

    def postmaster_path(self) -> Path:
        return self._tool("postgres")

    def dropdb_path(self) -> Path:
        return self._tool("dropdb")

    def createdb_path(self) -> Path:
        return self._tool("createdb")


def get_c_locale_flags() -> List[str]:
    """initdb flags selecting the C locale with UTF-8 where the OS offers it."""
    if platform.system() == "Darwin":
        return ["--locale=C", "--lc-ctype=UTF-8"]
    try:
        output = subprocess.run(
            ["locale", "-a"], capture_output=True, text=True, check=False
        ).stdout
    except OSError as e:
        logger.debug("Could not list locales: %s", e)
        return ["--locale=C"]
    available = {line.strip().lower() for line in output.splitlines()}
    if "c.utf-8" in available or "c.utf8" in available:
        return ["--locale=C.UTF-8"]
    return ["--locale=C"]
