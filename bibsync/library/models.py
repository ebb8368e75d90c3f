"""Data models for the local bibliographic library.

Records come in three explicit variants: regular bibliographic entries,
attachments (files hanging off a regular record) and notes. The sync engine
only ever posts regular records; attachments are mirrored as BibSonomy
documents when their file type is eligible.
"""

import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Union

from bibsync.timestamps import utc_now


def is_eligible_attachment(filename: str, extensions: Iterable[str]) -> bool:
    """Return True if the file extension is one of the eligible extensions.

    Comparison is case-insensitive and ignores a leading dot in the configured
    extensions.

    Example:
        >>> is_eligible_attachment("Paper.PDF", ["pdf"])
        True
        >>> is_eligible_attachment("notes.txt", ["pdf"])
        False
    """
    ext = os.path.splitext(filename or "")[1].lower().lstrip('.')
    if not ext:
        return False
    allowed = {e.lower().lstrip('.') for e in extensions}
    return ext in allowed


@dataclass
class Creator:
    """An author or editor of a record."""
    last_name: str
    first_name: str = ""
    creator_type: str = "author"

    @property
    def display_name(self) -> str:
        """Name in BibTeX order ("Last, First")."""
        if self.first_name:
            return f"{self.last_name}, {self.first_name}"
        return self.last_name


@dataclass
class RegularRecord:
    """A local bibliographic entry.

    Attributes:
        record_id: Unique local identifier
        entry_type: BibTeX entry type (article, book, inproceedings, ...)
        fields: Bibliographic fields keyed by BibTeX field name (title, year, ...)
        creators: Authors and editors in order
        tags: Tag names
        date_modified: Last modification time (aware UTC)
        attachment_ids: Ids of attachment records belonging to this record
        note_ids: Ids of note records belonging to this record
        citation_key: Explicit BibTeX key, if the user set one
    """
    record_id: str
    entry_type: str = "misc"
    fields: Dict[str, str] = field(default_factory=dict)
    creators: List[Creator] = field(default_factory=list)
    tags: Set[str] = field(default_factory=set)
    date_modified: datetime = field(default_factory=utc_now)
    attachment_ids: List[str] = field(default_factory=list)
    note_ids: List[str] = field(default_factory=list)
    citation_key: Optional[str] = None

    @property
    def title(self) -> str:
        return self.fields.get("title", "")

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags


@dataclass
class AttachmentRecord:
    """A file attached to a regular record.

    Attributes:
        record_id: Unique local identifier
        parent_id: Id of the owning regular record
        filename: File name (used to match remote documents)
        path: Absolute path of the file on disk
        date_modified: Last modification time of the file (aware UTC)
    """
    record_id: str
    parent_id: str
    filename: str
    path: str = ""
    date_modified: datetime = field(default_factory=utc_now)

    def is_eligible(self, extensions: Iterable[str]) -> bool:
        """Whether this attachment should be mirrored remotely."""
        return is_eligible_attachment(self.filename, extensions)


@dataclass
class NoteRecord:
    """A note attached to a regular record (HTML content)."""
    record_id: str
    parent_id: str
    content: str = ""
    date_modified: datetime = field(default_factory=utc_now)


Record = Union[RegularRecord, AttachmentRecord, NoteRecord]


class EventKind(Enum):
    """Kinds of library change notifications."""
    ADD = "add"
    MODIFY = "modify"
    TRASH = "trash"
    DELETE = "delete"


@dataclass
class ChangeEvent:
    """A change notification emitted by a library host.

    Attributes:
        kind: What happened
        record_ids: Ids of the affected records (any variant)
    """
    kind: EventKind
    record_ids: List[str] = field(default_factory=list)
