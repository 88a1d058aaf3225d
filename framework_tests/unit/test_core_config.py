"""Tests for configuration management."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from pgtestbed.core.config import (
    ConfigManager,
    load_config,
    get_config,
    load_env_overrides,
    _convert_env_value,
)
from pgtestbed.core.errors import ConfigurationError
from pgtestbed.core.types import TestbedConfig


class TestEnvironmentLoading:
    """Test environment variable loading functions."""

    @patch.dict(
        os.environ,
        {
            "PGTESTBED_BUILD_PROFILE": "release",
            "PGTESTBED_PORT": "5433",
            "PGTESTBED_SKIP": "1",
            "PGTESTBED_NOT_A_FIELD": "ignored",
            "PGTESTBED_CONFIG_FILE": "/nope.yaml",
            "OTHER_PORT": "1",
        },
        clear=True,
    )
    def test_load_env_overrides(self) -> None:
        """Test only known fields with the prefix are picked up."""
        overrides = load_env_overrides()

        assert overrides == {"build_profile": "release", "port": 5433, "skip": 1}

    def test_convert_env_value_boolean(self) -> None:
        """Test boolean conversion from environment values."""
        assert _convert_env_value("true") is True
        assert _convert_env_value("false") is False
        assert _convert_env_value("yes") is True
        assert _convert_env_value("off") is False

    def test_convert_env_value_numeric(self) -> None:
        """Test numeric conversion from environment values."""
        assert _convert_env_value("42") == 42
        assert _convert_env_value("0.5") == 0.5

    def test_convert_env_value_list(self) -> None:
        """Test list conversion from environment values."""
        assert _convert_env_value("a,b,c") == ["a", "b", "c"]

    def test_convert_env_value_empty(self) -> None:
        """Test an empty value counts as unset."""
        assert _convert_env_value("") is None

    def test_convert_env_value_string(self) -> None:
        """Test string values are returned as-is."""
        assert _convert_env_value("postgres") == "postgres"


class TestConfigModel:
    """Test TestbedConfig validation."""

    def test_defaults(self) -> None:
        """Test default values."""
        config = TestbedConfig()
        assert config.skip is False
        assert config.build_profile == "debug"
        assert config.dbname == "pgtestbed_tests"
        assert config.test_role == "pgtestbed"
        assert config.granted_schemas == ["public"]
        assert config.log_passthrough_vars == ["RUST_LOG"]
        assert config.pidfile_retries == 10
        assert config.failure_flush_delay == 1.0

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("1", True),
            ("yes", True),
            ("anything", True),
            (2, True),
            ("", False),
            ("0", False),
            ("false", False),
            (0, False),
            (None, False),
        ],
    )
    def test_flag_values(self, value, expected) -> None:
        """Test a flag is set by any value other than an explicit false."""
        assert TestbedConfig(skip=value).skip is expected

    def test_features_are_split(self) -> None:
        """Test features accept whitespace or comma separated strings."""
        assert TestbedConfig(features="a b,c").features == ["a", "b", "c"]
        assert TestbedConfig(features=["a b", "c"]).features == ["a", "b", "c"]

    def test_install_command_from_string(self) -> None:
        """Test the install command is split into words."""
        config = TestbedConfig(install_command="/usr/bin/cargo pgrx")
        assert config.install_command == ["/usr/bin/cargo", "pgrx"]

    def test_numeric_profile(self) -> None:
        """Test a profile name that looks like a number stays a string."""
        assert TestbedConfig(build_profile=2).build_profile == "2"

    def test_invalid_port(self) -> None:
        """Test an out of range port is rejected."""
        with pytest.raises(ConfigurationError):
            TestbedConfig(port=70000)

    def test_negative_retries(self) -> None:
        """Test negative retry counts are rejected."""
        with pytest.raises(ConfigurationError):
            TestbedConfig(pidfile_retries=-1)


class TestConfigManager:
    """Test ConfigManager class."""

    def test_config_manager_creation(self) -> None:
        """Test ConfigManager creation."""
        manager = ConfigManager()
        assert manager._config is None

    @patch.dict(os.environ, {}, clear=True)
    def test_load_defaults(self) -> None:
        """Test loading without file or environment."""
        config = ConfigManager().load_config()
        assert config == TestbedConfig()

    @patch.dict(os.environ, {"PGTESTBED_DBNAME": "from_env"}, clear=True)
    def test_precedence(self, tmp_path: Path) -> None:
        """Test file < environment < explicit overrides."""
        config_file = tmp_path / "pgtestbed.yaml"
        config_file.write_text("dbname: from_file\ntest_role: file_role\nport: 6000\n")

        config = ConfigManager().load_config(config_file=config_file, port=7000)

        assert config.dbname == "from_env"
        assert config.test_role == "file_role"
        assert config.port == 7000

    def test_config_file_from_environment(self, tmp_path: Path) -> None:
        """Test the config file can be named by an environment variable."""
        config_file = tmp_path / "conf.yml"
        config_file.write_text("features: [foo, bar]\n")
        with patch.dict(os.environ, {"PGTESTBED_CONFIG_FILE": str(config_file)}, clear=True):
            config = ConfigManager().load_config()
        assert config.features == ["foo", "bar"]

    @patch.dict(os.environ, {}, clear=True)
    def test_missing_config_file(self, tmp_path: Path) -> None:
        """Test a missing config file is an error."""
        with pytest.raises(ConfigurationError, match="not found"):
            ConfigManager().load_config(config_file=tmp_path / "missing.yaml")

    @patch.dict(os.environ, {}, clear=True)
    def test_unsupported_format(self, tmp_path: Path) -> None:
        """Test non-YAML files are rejected."""
        config_file = tmp_path / "conf.toml"
        config_file.write_text("dbname = 'x'\n")
        with pytest.raises(ConfigurationError, match="Unsupported"):
            ConfigManager().load_config(config_file=config_file)

    @patch.dict(os.environ, {}, clear=True)
    def test_non_mapping_file(self, tmp_path: Path) -> None:
        """Test a YAML file must hold a mapping."""
        config_file = tmp_path / "conf.yaml"
        config_file.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            ConfigManager().load_config(config_file=config_file)

    @patch.dict(os.environ, {"PGTESTBED_SKIP": "yes"}, clear=True)
    def test_global_config(self) -> None:
        """Test the global accessors share one configuration."""
        config = load_config()
        assert config.skip is True
        assert get_config() is config
