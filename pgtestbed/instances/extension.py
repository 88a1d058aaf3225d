"""Building and installing the extension under test."""

import os
import shutil
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..core.context import ApplicationContext
from ..core.build_detection import detect_build_features
from ..core.log import get_logger, log_bootstrap_event
from ..core.manifest import read_extension_name
from ..core.types import BuildFeatures
from ..utils.filesystem import target_dir

logger = get_logger(__name__)

# Always enabled so the extension compiles its in-database test functions
TEST_FEATURE = "pg_test"

# Profiles that are the build tool's default and need no flag
_DEFAULT_PROFILES = ("debug", "dev", "")


def resolve_installer() -> List[str]:
    """The build tool invocation, up to and including its ``pgrx`` subcommand.

    Lookup order: ``$CARGO_PGRX``, ``cargo-pgrx`` on ``PATH``, ``$CARGO``,
    then plain ``cargo``.
    """
    executable = (
        os.environ.get("CARGO_PGRX")
        or shutil.which("cargo-pgrx")
        or os.environ.get("CARGO")
        or "cargo"
    )
    return [executable, "pgrx"]


def profile_args(profile: str) -> List[str]:
    profile = profile.strip()
    if profile in _DEFAULT_PROFILES:
        return []
    if profile == "release":
        return ["--release"]
    return ["--profile", profile]


class ExtensionInstaller:
    """Builds the extension with test features and installs it into the server."""

    def __init__(
        self,
        app_context: ApplicationContext,
        feature_detector: Callable[[], BuildFeatures] = detect_build_features,
    ) -> None:
        self._app_context = app_context
        self._feature_detector = feature_detector

    @property
    def _config(self):
        return self._app_context.config

    def install_command(self, detected: Optional[BuildFeatures] = None) -> List[str]:
        """Full install command line.

        ``detected`` holds the flags of the parent build invocation; they are
        looked up when not given.
        """
        if detected is None:
            detected = self._feature_detector()
        logger.info("Detected build args: %s", detected.model_dump())

        command = list(self._config.install_command or resolve_installer())
        command.extend(
            ["install", "--test", "--pg-config", str(self._app_context.pg_config.path)]
        )

        if self._config.manifest_path is not None:
            command.extend(["--manifest-path", str(self._config.manifest_path)])

        features = {TEST_FEATURE, *self._config.features, *detected.features}
        features.discard("")
        command.extend(["--features", " ".join(sorted(features))])

        if self._config.no_default_features or detected.no_default_features:
            command.append("--no-default-features")
        if self._config.all_features or detected.all_features:
            command.append("--all-features")

        command.extend(profile_args(self._config.build_profile))

        if self._config.no_schema:
            command.append("--no-schema")
        return command

    def install_env(self) -> Dict[str, str]:
        env = {"CARGO_TARGET_DIR": str(target_dir(self._config))}
        for name in self._config.log_passthrough_vars:
            value = os.environ.get(name)
            if value is not None:
                env[name] = value
        return env

    def install(self) -> None:
        """Build and install; output of a failed build is raised verbatim."""
        command = self.install_command()
        log_bootstrap_event(logger, "install_extension", command=command)
        self._app_context.executor.run_checked(
            command,
            "installing extension",
            env=self.install_env(),
            capture_stdout=False,
        )

    def manifest_dir(self) -> Path:
        if self._config.manifest_path is not None:
            return Path(self._config.manifest_path).parent
        env_dir = os.environ.get("CARGO_MANIFEST_DIR")
        if env_dir:
            return Path(env_dir)
        return Path.cwd()

    def extension_name(self) -> str:
        if self._config.extension_name:
            return self._config.extension_name
        return read_extension_name(self.manifest_dir() / "Cargo.toml")

    def create_statement(self) -> str:
        return f"CREATE EXTENSION {self.extension_name()} CASCADE;"
