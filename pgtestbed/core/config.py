"""Configuration management with environment variable integration and validation."""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional

from .types import TestbedConfig
from .errors import ConfigurationError

ENV_PREFIX = "PGTESTBED_"
CONFIG_FILE_VAR = f"{ENV_PREFIX}CONFIG_FILE"


def load_env_overrides(prefix: str = ENV_PREFIX) -> Dict[str, Any]:
    """Load environment variables with the given prefix and convert to appropriate types."""
    overrides: Dict[str, Any] = {}

    for key, value in os.environ.items():
        if not key.startswith(prefix) or key == CONFIG_FILE_VAR:
            continue
        field_name = key[len(prefix) :].lower()
        if field_name not in TestbedConfig.model_fields:
            continue
        overrides[field_name] = _convert_env_value(value)

    return overrides


def _convert_env_value(value: str) -> Any:
    """Convert string environment value to appropriate Python type."""
    if not value:
        return None

    # Try to convert to int first (before boolean check)
    try:
        return int(value)
    except ValueError:
        pass

    try:
        return float(value)
    except ValueError:
        pass

    if value.lower() in ("true", "yes", "on"):
        return True
    elif value.lower() in ("false", "no", "off"):
        return False

    if "," in value:
        return [item.strip() for item in value.split(",")]

    return value


class ConfigManager:
    """Central configuration management."""

    def __init__(self) -> None:
        self._config: Optional[TestbedConfig] = None

    def load_config(
        self, config_file: Optional[Path] = None, **overrides: Any
    ) -> TestbedConfig:
        """Load configuration from file and environment with explicit overrides."""

        # Precedence, lowest first: model defaults, config file,
        # environment variables, explicit overrides.
        config_data: Dict[str, Any] = {}

        if config_file is None and os.environ.get(CONFIG_FILE_VAR):
            config_file = Path(os.environ[CONFIG_FILE_VAR])

        if config_file is not None:
            if not config_file.exists():
                raise ConfigurationError(f"Config file not found: {config_file}")
            config_data.update(self._load_from_file(config_file))

        env_overrides = {
            key: value
            for key, value in load_env_overrides().items()
            if value is not None
        }
        config_data.update(env_overrides)

        config_data.update(overrides)

        self._config = TestbedConfig(**config_data)
        return self._config

    def get_config(self) -> TestbedConfig:
        """Get current configuration."""
        if self._config is None:
            self._config = self.load_config()
        return self._config

    def _load_from_file(self, config_file: Path) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        if config_file.suffix.lower() not in (".yml", ".yaml"):
            raise ConfigurationError(
                f"Unsupported config file format: {config_file.suffix}"
            )
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(
                f"Failed to load config file {config_file}: {e}"
            ) from e
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Config file {config_file} must contain a mapping"
            )
        return data


# Global config manager instance
_config_manager = ConfigManager()


def load_config(**kwargs: Any) -> TestbedConfig:
    """Load global configuration."""
    return _config_manager.load_config(**kwargs)


def get_config() -> TestbedConfig:
    """Get current global configuration."""
    return _config_manager.get_config()
