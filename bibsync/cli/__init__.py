"""Command-line interface for the bibsync tool.

This package provides the `bibsync` command: YAML configuration and session
state, Rich terminal output, and the commands that drive the sync engine.
"""

from .sync_command import SyncCommand
from .init_command import InitCommand
from .models import ExitCode
from .errors import (
    CLIError,
    ConfigError,
    ConfigNotFoundError,
    FilesystemError,
    InitError,
    StateError,
)

__all__ = [
    'SyncCommand',
    'InitCommand',
    'ExitCode',
    'CLIError',
    'ConfigError',
    'ConfigNotFoundError',
    'FilesystemError',
    'InitError',
    'StateError',
]
