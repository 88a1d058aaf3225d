"""Reading the extension name out of a Cargo manifest."""

import tomllib
from pathlib import Path

from .errors import ManifestError


def read_extension_name(manifest: Path) -> str:
    """Library name from ``[lib] name`` or ``[package] name``, ``-`` as ``_``."""
    try:
        with open(manifest, "rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError as e:
        raise ManifestError(f"Manifest not found: {manifest}") from e
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ManifestError(f"Could not parse manifest {manifest}: {e}") from e

    name = data.get("lib", {}).get("name") or data.get("package", {}).get("name")
    if not name:
        raise ManifestError(f"Manifest {manifest} has no [lib] or [package] name")
    return name.replace("-", "_")
