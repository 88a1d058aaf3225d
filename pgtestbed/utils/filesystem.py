"""Filesystem helpers and the on-disk layout of the test installation."""

import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from ..core.errors import FilesystemError, PathError
from ..core.log import get_logger
from ..core.types import TestbedConfig

logger = get_logger(__name__)

DEFAULT_HOME_NAME = ".pgtestbed"
DATA_DIR_PREFIX = "pgtestbed-test-data"
PID_FILE_NAME = "postmaster.pid"
AUTO_CONF_NAME = "postgresql.auto.conf"


# =============================================================================
# Pure Utility Functions
# =============================================================================


def atomic_write(path: Path, data: Union[str, bytes], mode: str = "w") -> None:
    """Atomically write data to a file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    is_binary = isinstance(data, bytes) or "b" in mode
    write_mode = mode if is_binary else mode.replace("b", "")
    tmp_path: Optional[Path] = None
    try:
        with tempfile.NamedTemporaryFile(
            mode=write_mode,
            dir=path.parent,
            delete=False,
            prefix=f".{path.name}.tmp",
        ) as tmp_file:
            tmp_path = Path(tmp_file.name)
            tmp_file.write(data)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
        tmp_path.replace(path)
        logger.debug("Atomically wrote %s to %s", len(data), path)
    except OSError as e:
        if tmp_path is not None and tmp_path.exists():
            try:
                tmp_path.unlink()
            except OSError:
                pass
        raise FilesystemError(f"Failed to atomically write to {path}: {e}") from e


def ensure_dir(path: Path) -> Path:
    """Ensure directory exists and return it."""
    try:
        path = Path(path)
        path.mkdir(parents=True, exist_ok=True)
        return path
    except PermissionError as e:
        raise FilesystemError(f"Permission denied creating directory {path}") from e
    except OSError as e:
        raise FilesystemError(f"Error creating directory {path}: {e}") from e


# =============================================================================
# Installation layout
# =============================================================================


def home_dir(config: TestbedConfig) -> Path:
    """Framework home: configured, else ``~/.pgtestbed``."""
    if config.home_dir is not None:
        return Path(config.home_dir)
    try:
        return Path.home() / DEFAULT_HOME_NAME
    except RuntimeError as e:
        raise PathError("Cannot determine home directory; set PGTESTBED_HOME_DIR") from e


def target_dir(config: TestbedConfig) -> Path:
    """Build output directory shared with the extension build."""
    if config.target_dir is not None:
        return Path(config.target_dir)
    env_target = os.environ.get("CARGO_TARGET_DIR")
    if env_target:
        return Path(env_target)
    if config.manifest_path is not None:
        return Path(config.manifest_path).parent / "target"
    return Path.cwd() / "target"


def data_dir(config: TestbedConfig, major_version: int) -> Path:
    return target_dir(config) / f"{DATA_DIR_PREFIX}-{major_version}"


def pid_file(config: TestbedConfig, major_version: int) -> Path:
    return data_dir(config, major_version) / PID_FILE_NAME


def valgrind_suppressions(config: TestbedConfig, version: str) -> Path:
    """Suppressions file shipped with a source-built server."""
    return home_dir(config) / version / "src" / "tools" / "valgrind.supp"
