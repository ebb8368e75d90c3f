"""Typed exceptions raised by the sync engine."""

from typing import Optional

from bibsync.bibsonomy_client.errors import SyncError


class ConflictResolutionError(SyncError):
    """Raised when a record changed both locally and remotely since the last sync.

    Conflicts are never resolved automatically; nothing is written when this
    is raised.

    Attributes:
        record_id: Local record id
        intrahash: Hash of the remote post
    """
    kind = "conflict"

    def __init__(self, record_id: str, intrahash: str):
        super().__init__(
            f"Record {record_id} was modified locally and on BibSonomy "
            f"(post {intrahash}) since the last sync"
        )
        self.record_id = record_id
        self.intrahash = intrahash


class MetadataError(SyncError):
    """Raised when a record's sync metadata is missing or unreadable.

    Attributes:
        record_id: Local record id (None when parsing detached content)
    """
    kind = "metadata_error"

    def __init__(self, message: str, record_id: Optional[str] = None):
        if record_id:
            message = f"Sync metadata error for record {record_id}: {message}"
        super().__init__(message)
        self.record_id = record_id
