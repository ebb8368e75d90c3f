"""Typed exception hierarchy for CLI-related errors.

All exceptions inherit from CLIError so the command layer can translate them
into exit codes in one place.
"""

from typing import Optional

from bibsync.bibsonomy_client.errors import SyncError


class CLIError(SyncError):
    """Base exception for all CLI-related errors."""
    kind = "cli_error"


class ConfigNotFoundError(CLIError):
    """Raised when the configuration file does not exist."""
    kind = "config_not_found"

    def __init__(self, config_path: str):
        super().__init__(
            f"Configuration file not found at {config_path}. Run 'bibsync init <library>' first."
        )
        self.config_path = config_path


class ConfigError(CLIError):
    """Raised when configuration validation fails."""
    kind = "config_error"

    def __init__(self, message: str, config_field: Optional[str] = None):
        if config_field:
            full_message = f"Configuration error in field '{config_field}': {message}"
        else:
            full_message = f"Configuration error: {message}"
        super().__init__(full_message)
        self.config_field = config_field
        self.original_message = message


class FilesystemError(CLIError):
    """Raised when config or state files cannot be read or written."""
    kind = "filesystem_error"

    def __init__(self, file_path: str, operation: str, reason: Optional[str] = None):
        message = f"Filesystem operation '{operation}' failed for {file_path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.file_path = file_path
        self.operation = operation
        self.reason = reason


class StateError(CLIError):
    """Raised when the session state file is malformed."""
    kind = "state_error"

    def __init__(self, message: str, state_field: Optional[str] = None):
        if state_field:
            full_message = f"State error in field '{state_field}': {message}"
        else:
            full_message = f"State error: {message}"
        super().__init__(full_message)
        self.state_field = state_field
        self.original_message = message


class InitError(CLIError):
    """Raised when 'bibsync init' cannot set up the configuration."""
    kind = "init_error"
