"""Discovery of the build flags the user gave to the parent build command."""

import os
import re
from typing import List, Optional, Sequence

import psutil

from .errors import ConfigurationError
from .log import get_logger
from .types import BuildFeatures

logger = get_logger(__name__)


def _matches(process: psutil.Process, exe_name: str, required_arg: str,
             excluded_arg: Optional[str]) -> Optional[List[str]]:
    """Return the command line of ``process`` when it is the build invocation."""
    try:
        exe = process.exe()
        cmdline = process.cmdline()
    except (psutil.AccessDenied, psutil.ZombieProcess) as e:
        logger.debug("Skipping process %s: %s", process.pid, e)
        return None
    if not exe or not exe.endswith(exe_name):
        return None
    if required_arg not in cmdline:
        return None
    if excluded_arg is not None and excluded_arg in cmdline:
        return None
    return list(cmdline)


def discover_parent_build_args(
    exe_name: str = "cargo",
    required_arg: str = "test",
    excluded_arg: Optional[str] = "pgrx",
    start_pid: Optional[int] = None,
) -> List[str]:
    """Find the arguments of the nearest ancestor build command.

    Starting with the current process, parent links are followed until a
    process whose executable ends with ``exe_name`` is found that was given
    ``required_arg`` but not ``excluded_arg``. An empty list means no such
    ancestor exists.
    """
    pid = start_pid if start_pid is not None else os.getpid()
    try:
        process: Optional[psutil.Process] = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return []

    while process is not None:
        args = _matches(process, exe_name, required_arg, excluded_arg)
        if args is not None:
            logger.debug("Build args from pid %s: %s", process.pid, args)
            return args
        try:
            process = process.parent()
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            break

    return []


def parse_feature_args(args: Sequence[str]) -> BuildFeatures:
    """Extract feature selection flags from a build tool command line."""
    features = BuildFeatures()
    iterator = iter(args)
    for part in iterator:
        if part == "--no-default-features":
            features.no_default_features = True
        elif part == "--all-features":
            features.all_features = True
        elif part == "--features":
            value = next(iterator, None)
            if value is None:
                raise ConfigurationError(
                    f"no `--features` specified in the argument list: {list(args)}"
                )
            features.features = [f for f in re.split(r"[\s,]+", value) if f]
    return features


def detect_build_features() -> BuildFeatures:
    """Features of the parent build invocation, if there is one."""
    return parse_feature_args(discover_parent_build_args())
