"""In-memory library host.

Thread-safe storage of records with synchronous change notifications. Used
directly in tests and as the base of the YAML-backed host used by the CLI.
"""

import logging
import threading
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, List, Optional

from bibsync.library.errors import LibraryFileError, RecordNotFoundError
from bibsync.library.host import ChangeListener, LibraryHost
from bibsync.library.models import (
    AttachmentRecord,
    ChangeEvent,
    EventKind,
    NoteRecord,
    Record,
    RegularRecord,
)
from bibsync.timestamps import utc_now

logger = logging.getLogger(__name__)


class MemoryLibrary(LibraryHost):
    """Library host keeping every record in a dict.

    All state changes happen under an RLock. Listeners are called after the
    lock is released, on the thread that made the change, so a listener may
    call back into the library.

    Example:
        >>> library = MemoryLibrary()
        >>> library.add_record(RegularRecord(record_id="r1", fields={"title": "Dune"}))
        >>> library.add_tag("r1", "scifi")
    """

    def __init__(self):
        self._records: Dict[str, Record] = {}
        self._trashed: set = set()
        self._listeners: List[ChangeListener] = []
        self._lock = threading.RLock()

    # Listener plumbing

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, kind: EventKind, record_ids: List[str]) -> None:
        with self._lock:
            listeners = list(self._listeners)
        event = ChangeEvent(kind=kind, record_ids=list(record_ids))
        logger.debug(f"Library event {kind.value}: {record_ids}")
        for listener in listeners:
            listener(event)

    def _changed(self) -> None:
        """Hook called after every mutation while the lock is held."""

    # Lookup

    def get_record(self, record_id: str) -> Record:
        with self._lock:
            record = self._records.get(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)
        return record

    def list_records(self) -> List[Record]:
        with self._lock:
            return [r for rid, r in self._records.items() if rid not in self._trashed]

    def get_attachments(self, record_id: str) -> List[AttachmentRecord]:
        parent = self.get_regular_record(record_id)
        with self._lock:
            return [
                self._records[aid] for aid in parent.attachment_ids
                if isinstance(self._records.get(aid), AttachmentRecord) and aid not in self._trashed
            ]

    def get_notes(self, record_id: str) -> List[NoteRecord]:
        parent = self.get_regular_record(record_id)
        with self._lock:
            return [
                self._records[nid] for nid in parent.note_ids
                if isinstance(self._records.get(nid), NoteRecord)
            ]

    def is_trashed(self, record_id: str) -> bool:
        with self._lock:
            return record_id in self._trashed

    # Mutation

    def add_record(self, record: Record) -> Record:
        """Insert a record of any variant and emit an ADD event.

        Attachments and notes are linked to their parent, which must exist.
        """
        with self._lock:
            if record.record_id in self._records:
                raise ValueError(f"Record {record.record_id} already exists")
            if isinstance(record, (AttachmentRecord, NoteRecord)):
                parent = self.get_regular_record(record.parent_id)
                ids = parent.attachment_ids if isinstance(record, AttachmentRecord) else parent.note_ids
                if record.record_id not in ids:
                    ids.append(record.record_id)
            self._records[record.record_id] = record
            self._changed()
        self._emit(EventKind.ADD, [record.record_id])
        return record

    def add_attachment(
        self,
        parent_id: str,
        filename: str,
        path: str = "",
        date_modified: Optional[datetime] = None,
        record_id: Optional[str] = None,
    ) -> AttachmentRecord:
        """Attach a file to a regular record."""
        attachment = AttachmentRecord(
            record_id=record_id or uuid.uuid4().hex[:8].upper(),
            parent_id=parent_id,
            filename=filename,
            path=path,
            date_modified=date_modified or utc_now(),
        )
        self.add_record(attachment)
        return attachment

    def update_fields(self, record_id: str, **fields: str) -> RegularRecord:
        """Set bibliographic fields, bump the modification time, emit MODIFY."""
        with self._lock:
            record = self.get_regular_record(record_id)
            record.fields.update({k: str(v) for k, v in fields.items()})
            record.date_modified = utc_now()
            self._changed()
        self._emit(EventKind.MODIFY, [record_id])
        return record

    def touch(self, record_id: str, when: Optional[datetime] = None) -> None:
        """Mark any record as modified (e.g. an attachment file was replaced)."""
        with self._lock:
            record = self.get_record(record_id)
            record.date_modified = when or utc_now()
            self._changed()
        self._emit(EventKind.MODIFY, [record_id])

    def add_tag(self, record_id: str, tag: str) -> None:
        with self._lock:
            record = self.get_regular_record(record_id)
            if tag in record.tags:
                return
            record.tags.add(tag)
            record.date_modified = utc_now()
            self._changed()
        self._emit(EventKind.MODIFY, [record_id])

    def save_note(self, parent_id: str, content: str, note_id: Optional[str] = None) -> NoteRecord:
        with self._lock:
            parent = self.get_regular_record(parent_id)
            if note_id is not None:
                existing = self.get_record(note_id)
                if not isinstance(existing, NoteRecord):
                    raise TypeError(f"Record {note_id} is not a note")
                note = replace(existing, content=content, date_modified=utc_now())
                self._records[note_id] = note
                kind = EventKind.MODIFY
            else:
                note = NoteRecord(
                    record_id=uuid.uuid4().hex[:8].upper(),
                    parent_id=parent_id,
                    content=content,
                )
                self._records[note.record_id] = note
                parent.note_ids.append(note.record_id)
                kind = EventKind.ADD
            self._changed()
        self._emit(kind, [note.record_id])
        return note

    def trash(self, record_id: str) -> None:
        """Move a record to the trash. It stays resolvable by id."""
        with self._lock:
            self.get_record(record_id)
            self._trashed.add(record_id)
            self._changed()
        self._emit(EventKind.TRASH, [record_id])

    def delete(self, record_id: str) -> None:
        """Permanently delete a record and its children.

        Listeners are notified before the record is dropped so they can still
        resolve it (and its sync metadata). Attachments and notes are unlinked
        from their parent first, so the parent no longer lists them by then.
        """
        record = self.get_record(record_id)
        if isinstance(record, (AttachmentRecord, NoteRecord)):
            with self._lock:
                parent = self._records.get(record.parent_id)
                if isinstance(parent, RegularRecord):
                    for ids in (parent.attachment_ids, parent.note_ids):
                        if record_id in ids:
                            ids.remove(record_id)
        self._emit(EventKind.DELETE, [record_id])
        with self._lock:
            self._records.pop(record_id, None)
            self._trashed.discard(record_id)
            if isinstance(record, RegularRecord):
                for child_id in record.attachment_ids + record.note_ids:
                    self._records.pop(child_id, None)
            self._changed()

    def read_attachment(self, attachment: AttachmentRecord) -> bytes:
        try:
            with open(attachment.path, 'rb') as f:
                return f.read()
        except OSError as e:
            raise LibraryFileError(attachment.path, 'read', str(e)) from e
