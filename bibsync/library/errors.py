"""Typed exceptions for the local library host."""

from bibsync.bibsonomy_client.errors import SyncError


class LibraryError(SyncError):
    """Base exception for library host failures."""
    kind = "library_error"


class RecordNotFoundError(LibraryError):
    """Raised when a record id is unknown to the library host.

    Attributes:
        record_id: The id that could not be resolved
    """
    kind = "record_not_found"

    def __init__(self, record_id: str):
        super().__init__(f"Record not found: {record_id}")
        self.record_id = record_id


class LibraryFileError(LibraryError):
    """Raised when the library file or an attachment cannot be read or written.

    Attributes:
        path: File path that failed
        operation: 'read' or 'write'
        reason: Error description
    """
    kind = "library_file_error"

    def __init__(self, path: str, operation: str, reason: str):
        super().__init__(f"Failed to {operation} {path}: {reason}")
        self.path = path
        self.operation = operation
        self.reason = reason
