"""Abstract interface of the local library host.

The sync engine never talks to a storage backend directly. It looks records
up, reads attachment bytes, writes metadata notes and tags, and subscribes to
change notifications through this interface.
"""

from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from bibsync.library.models import (
    AttachmentRecord,
    ChangeEvent,
    NoteRecord,
    Record,
    RegularRecord,
)

ChangeListener = Callable[[ChangeEvent], None]


class LibraryHost(ABC):
    """Collaborator exposing the local library to the sync engine.

    Implementations must be safe to call from worker threads: the bulk sync
    driver reconciles several records concurrently.
    """

    @abstractmethod
    def get_record(self, record_id: str) -> Record:
        """Look up a record of any variant.

        Raises:
            RecordNotFoundError: If the id is unknown
        """

    @abstractmethod
    def list_records(self) -> List[Record]:
        """All records of every variant, in insertion order."""

    @abstractmethod
    def get_attachments(self, record_id: str) -> List[AttachmentRecord]:
        """Attachments of a regular record."""

    @abstractmethod
    def get_notes(self, record_id: str) -> List[NoteRecord]:
        """Notes of a regular record."""

    @abstractmethod
    def save_note(self, parent_id: str, content: str, note_id: Optional[str] = None) -> NoteRecord:
        """Create a note under parent_id, or overwrite note_id if given."""

    @abstractmethod
    def add_tag(self, record_id: str, tag: str) -> None:
        """Add a tag to a regular record (no-op if already present)."""

    @abstractmethod
    def read_attachment(self, attachment: AttachmentRecord) -> bytes:
        """Read the attachment file contents."""

    @abstractmethod
    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a change listener.

        Returns:
            A callable that removes the listener again
        """

    def get_regular_record(self, record_id: str) -> RegularRecord:
        """Look up a record that must be a regular record.

        Raises:
            RecordNotFoundError: If the id is unknown
            TypeError: If the record is an attachment or a note
        """
        record = self.get_record(record_id)
        if not isinstance(record, RegularRecord):
            raise TypeError(f"Record {record_id} is not a regular record")
        return record
