"""Shared server preparation.

API:
    - Bootstrapper, BootstrapState: one-time bootstrap of the shared server
    - PostgresCommandBuilder: command lines of the server and its tools
    - DataDirectory: initdb, auto config and test database reset
    - ExtensionInstaller: build and install of the extension under test
"""

from .bootstrap import Bootstrapper, BootstrapState
from .command_builder import PostgresCommandBuilder
from .data_directory import DataDirectory
from .extension import ExtensionInstaller

__all__ = [
    "Bootstrapper",
    "BootstrapState",
    "PostgresCommandBuilder",
    "DataDirectory",
    "ExtensionInstaller",
]
