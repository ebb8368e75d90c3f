"""YAML-file-backed library host.

A library directory holds a ``library.yaml`` file listing every record and
the attachment files it references. Attachment paths are stored relative to
the library directory. Every mutation rewrites the file.

File structure:
    records:
      - id: "R1"
        type: regular
        entry_type: article
        citation_key: null
        fields: {title: "Dune", year: "1965"}
        creators: [{last_name: "Herbert", first_name: "Frank"}]
        tags: ["scifi"]
        date_modified: "2024-01-15T10:30:00Z"
      - id: "A1"
        type: attachment
        parent: "R1"
        filename: "dune.pdf"
        path: "files/dune.pdf"
      - id: "N1"
        type: note
        parent: "R1"
        content: "<p>...</p>"
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List

import yaml

from bibsync.library.errors import LibraryError, LibraryFileError
from bibsync.library.memory_library import MemoryLibrary
from bibsync.library.models import (
    AttachmentRecord,
    Creator,
    NoteRecord,
    Record,
    RegularRecord,
)
from bibsync.timestamps import format_timestamp, parse_timestamp, to_utc, utc_now

logger = logging.getLogger(__name__)

LIBRARY_FILE = 'library.yaml'


class YamlLibrary(MemoryLibrary):
    """MemoryLibrary that loads from and persists to a library directory.

    Example:
        >>> library = YamlLibrary.open("./my-library")
        >>> record = library.get_regular_record("R1")
    """

    def __init__(self, library_dir: str):
        super().__init__()
        self.library_dir = os.path.abspath(library_dir)
        self.library_path = os.path.join(self.library_dir, LIBRARY_FILE)

    @classmethod
    def open(cls, library_dir: str) -> "YamlLibrary":
        """Open a library directory, starting empty if it has no library file.

        Raises:
            LibraryFileError: If the library file cannot be read
            LibraryError: If the library file is malformed
        """
        library = cls(library_dir)
        library.load()
        return library

    def load(self) -> None:
        """(Re)load all records from library.yaml without emitting events."""
        try:
            with open(self.library_path, 'r', encoding='utf-8') as f:
                content = f.read()
        except FileNotFoundError:
            logger.info(f"No library file at {self.library_path}, starting empty")
            return
        except OSError as e:
            raise LibraryFileError(self.library_path, 'read', str(e)) from e

        try:
            data = yaml.safe_load(content) or {}
        except yaml.YAMLError as e:
            raise LibraryError(f"Invalid YAML in {self.library_path}: {e}") from e

        if not isinstance(data, dict):
            raise LibraryError(
                f"Library file must be a YAML dictionary, got {type(data).__name__}"
            )
        entries = data.get('records') or []
        if not isinstance(entries, list):
            raise LibraryError("Field 'records' must be a list")

        with self._lock:
            self._records.clear()
            self._trashed.clear()
            # Parents first so children can link to them
            ordered = sorted(
                entries,
                key=lambda e: 0 if not isinstance(e, dict) or e.get('type', 'regular') == 'regular' else 1,
            )
            for entry in ordered:
                record = self._parse_entry(entry)
                self._records[record.record_id] = record
                if entry.get('trashed'):
                    self._trashed.add(record.record_id)
                if isinstance(record, (AttachmentRecord, NoteRecord)):
                    parent = self._records.get(record.parent_id)
                    if not isinstance(parent, RegularRecord):
                        raise LibraryError(
                            f"Record {record.record_id} references unknown parent {record.parent_id}"
                        )
                    ids = parent.attachment_ids if isinstance(record, AttachmentRecord) else parent.note_ids
                    if record.record_id not in ids:
                        ids.append(record.record_id)
        logger.debug(f"Loaded {len(entries)} records from {self.library_path}")

    def _parse_date(self, value: Any, fallback: datetime) -> datetime:
        if value is None or value == "":
            return fallback
        if isinstance(value, datetime):
            return to_utc(value)
        try:
            return parse_timestamp(str(value))
        except ValueError as e:
            raise LibraryError(f"Invalid date_modified value: {value}") from e

    def _parse_entry(self, entry: Dict[str, Any]) -> Record:
        if not isinstance(entry, dict) or not entry.get('id'):
            raise LibraryError(f"Library entry must be a dictionary with an 'id': {entry!r}")

        record_id = str(entry['id'])
        kind = entry.get('type', 'regular')

        if kind == 'regular':
            return RegularRecord(
                record_id=record_id,
                entry_type=str(entry.get('entry_type', 'misc')),
                fields={str(k): str(v) for k, v in (entry.get('fields') or {}).items()},
                creators=[
                    Creator(
                        last_name=str(c.get('last_name', '')),
                        first_name=str(c.get('first_name', '')),
                        creator_type=str(c.get('creator_type', 'author')),
                    )
                    for c in (entry.get('creators') or [])
                ],
                tags={str(t) for t in (entry.get('tags') or [])},
                date_modified=self._parse_date(entry.get('date_modified'), utc_now()),
                citation_key=entry.get('citation_key'),
            )

        if kind == 'attachment':
            rel_path = str(entry.get('path') or entry.get('filename', ''))
            path = os.path.join(self.library_dir, rel_path)
            fallback = utc_now()
            if os.path.exists(path):
                fallback = datetime.fromtimestamp(os.path.getmtime(path), timezone.utc)
            return AttachmentRecord(
                record_id=record_id,
                parent_id=str(entry.get('parent', '')),
                filename=str(entry.get('filename') or os.path.basename(rel_path)),
                path=path,
                date_modified=self._parse_date(entry.get('date_modified'), fallback),
            )

        if kind == 'note':
            return NoteRecord(
                record_id=record_id,
                parent_id=str(entry.get('parent', '')),
                content=str(entry.get('content', '')),
                date_modified=self._parse_date(entry.get('date_modified'), utc_now()),
            )

        raise LibraryError(f"Unknown record type '{kind}' for record {record_id}")

    def _serialize(self, record: Record) -> Dict[str, Any]:
        if isinstance(record, RegularRecord):
            entry: Dict[str, Any] = {
                'id': record.record_id,
                'type': 'regular',
                'entry_type': record.entry_type,
                'citation_key': record.citation_key,
                'fields': dict(record.fields),
                'creators': [
                    {'last_name': c.last_name, 'first_name': c.first_name, 'creator_type': c.creator_type}
                    for c in record.creators
                ],
                'tags': sorted(record.tags),
            }
        elif isinstance(record, AttachmentRecord):
            entry = {
                'id': record.record_id,
                'type': 'attachment',
                'parent': record.parent_id,
                'filename': record.filename,
                'path': os.path.relpath(record.path, self.library_dir) if record.path else record.filename,
            }
        else:
            entry = {
                'id': record.record_id,
                'type': 'note',
                'parent': record.parent_id,
                'content': record.content,
            }
        entry['date_modified'] = format_timestamp(record.date_modified)
        if record.record_id in self._trashed:
            entry['trashed'] = True
        return entry

    def save(self) -> None:
        """Write all records to library.yaml.

        Raises:
            LibraryFileError: If the file cannot be written
        """
        with self._lock:
            entries: List[Dict[str, Any]] = [self._serialize(r) for r in self._records.values()]

        yaml_str = yaml.safe_dump(
            {'records': entries},
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=False
        )

        try:
            os.makedirs(self.library_dir, exist_ok=True)
            with open(self.library_path, 'w', encoding='utf-8') as f:
                f.write(yaml_str)
        except OSError as e:
            raise LibraryFileError(self.library_path, 'write', str(e)) from e

    def _changed(self) -> None:
        self.save()
