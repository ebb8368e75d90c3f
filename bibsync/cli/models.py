"""Data models for CLI operations."""

from enum import IntEnum


class ExitCode(IntEnum):
    """Exit codes of the bibsync command.

    - SUCCESS (0): Operation completed successfully
    - GENERAL_ERROR (1): Config issues, rejected payloads, failed records
    - CONFLICTS (2): Record changed locally and on BibSonomy
    - AUTH_ERROR (3): Missing or rejected credentials
    - NETWORK_ERROR (4): BibSonomy unreachable or unavailable

    Example:
        >>> raise typer.Exit(ExitCode.CONFLICTS)
    """
    SUCCESS = 0
    GENERAL_ERROR = 1
    CONFLICTS = 2
    AUTH_ERROR = 3
    NETWORK_ERROR = 4
