"""Local library model and hosts.

This package defines the record variants the sync engine works with, the
LibraryHost interface, and two hosts: an in-memory one and a YAML-file-backed
one used by the command line tool.
"""

from .errors import LibraryError, LibraryFileError, RecordNotFoundError
from .models import (
    AttachmentRecord,
    ChangeEvent,
    Creator,
    EventKind,
    NoteRecord,
    Record,
    RegularRecord,
    is_eligible_attachment,
)
from .host import LibraryHost
from .memory_library import MemoryLibrary
from .yaml_library import YamlLibrary

__all__ = [
    'LibraryError',
    'LibraryFileError',
    'RecordNotFoundError',
    'AttachmentRecord',
    'ChangeEvent',
    'Creator',
    'EventKind',
    'NoteRecord',
    'Record',
    'RegularRecord',
    'is_eligible_attachment',
    'LibraryHost',
    'MemoryLibrary',
    'YamlLibrary',
]
