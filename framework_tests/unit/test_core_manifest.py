"""Tests for reading the extension name from its manifest."""

from pathlib import Path

import pytest

from pgtestbed.core.errors import ManifestError
from pgtestbed.core.manifest import read_extension_name


class TestReadExtensionName:
    """Test manifest parsing."""

    def test_lib_name_preferred(self, tmp_path: Path) -> None:
        """Test [lib] name wins over the package name."""
        manifest = tmp_path / "Cargo.toml"
        manifest.write_text('[package]\nname = "my-crate"\n\n[lib]\nname = "my-lib"\n')
        assert read_extension_name(manifest) == "my_lib"

    def test_package_name(self, tmp_path: Path) -> None:
        """Test the package name with dashes turned into underscores."""
        manifest = tmp_path / "Cargo.toml"
        manifest.write_text('[package]\nname = "my-crate"\nversion = "0.1.0"\n')
        assert read_extension_name(manifest) == "my_crate"

    def test_missing_manifest(self, tmp_path: Path) -> None:
        """Test a missing manifest."""
        with pytest.raises(ManifestError, match="not found"):
            read_extension_name(tmp_path / "Cargo.toml")

    def test_invalid_manifest(self, tmp_path: Path) -> None:
        """Test an unparsable manifest."""
        manifest = tmp_path / "Cargo.toml"
        manifest.write_text("[package\n")
        with pytest.raises(ManifestError, match="Could not parse"):
            read_extension_name(manifest)

    def test_nameless_manifest(self, tmp_path: Path) -> None:
        """Test a manifest without any name."""
        manifest = tmp_path / "Cargo.toml"
        manifest.write_text("[workspace]\nmembers = []\n")
        with pytest.raises(ManifestError, match="no \\[lib\\] or \\[package\\] name"):
            read_extension_name(manifest)
