"""Per-record sync metadata kept in an HTML note attached to the record.

The note is the host's native note format, so the metadata travels with the
record through exports and backups. Current notes carry an explicit schema
version on their root element and one table row per key:

    <div data-bibsync-metadata="2">
      <h2>BibSonomy Metadata</h2>
      <p><strong>Warning:</strong> Do not change or delete this note!</p>
      <table>
        <tr data-key="interhash"><th>interhash</th><td>...</td></tr>
        <tr data-key="intrahash"><th>intrahash</th><td>...</td></tr>
        <tr data-key="syncdate"><th>syncdate</th><td>...</td></tr>
        <tr data-key="attachmentsSyncdate"><th>attachmentsSyncdate</th><td>...</td></tr>
      </table>
    </div>

Notes written by the first version of the plugin (``<strong>key:</strong>
value`` paragraphs under a "BibSonomy Metadata" heading) are still read.
"""

import logging
import threading
from typing import Dict, Optional, Tuple

from bs4 import BeautifulSoup

from bibsync.library.host import LibraryHost
from bibsync.library.models import NoteRecord, RegularRecord
from bibsync.sync.errors import MetadataError
from bibsync.sync.models import METADATA_SCHEMA_VERSION, NOT_APPLICABLE, SyncMetadata
from bibsync.timestamps import format_timestamp, utc_now

logger = logging.getLogger(__name__)

PARSER = "html.parser"
ROOT_ATTRIBUTE = "data-bibsync-metadata"
LEGACY_MARKER = "BibSonomy Metadata"

# Serialized key -> SyncMetadata attribute
KEYS = {
    "interhash": "interhash",
    "intrahash": "intrahash",
    "syncdate": "syncdate",
    "attachmentsSyncdate": "attachments_syncdate",
}

LEGACY_KEYS = {
    "interhash": "interhash",
    "intrahash": "intrahash",
    "syncdate": "syncdate",
    "attachments-syncdate": "attachments_syncdate",
}


class MetadataStore:
    """Reads and writes SyncMetadata through the library host's notes.

    Writes are full rewrites of the note and are serialized by an internal
    lock, so a background attachment writer never interleaves with a
    foreground rewrite of the same note.

    Example:
        >>> store = MetadataStore(library)
        >>> meta = store.read(record)
        >>> if not meta.is_online:
        ...     print("never posted")
    """

    def __init__(self, host: LibraryHost):
        self._host = host
        self._lock = threading.RLock()

    @staticmethod
    def render(metadata: SyncMetadata) -> str:
        """Render metadata as a current-version HTML note."""
        soup = BeautifulSoup("", PARSER)
        root = soup.new_tag("div", attrs={ROOT_ATTRIBUTE: str(METADATA_SCHEMA_VERSION)})
        soup.append(root)

        heading = soup.new_tag("h2")
        heading.string = LEGACY_MARKER
        root.append(heading)

        warning = soup.new_tag("p")
        strong = soup.new_tag("strong")
        strong.string = "Warning:"
        warning.append(strong)
        warning.append(" Do not change or delete this note!")
        root.append(warning)

        table = soup.new_tag("table")
        for key, attr in KEYS.items():
            row = soup.new_tag("tr", attrs={"data-key": key})
            th = soup.new_tag("th")
            th.string = key
            td = soup.new_tag("td")
            td.string = getattr(metadata, attr)
            row.append(th)
            row.append(td)
            table.append(row)
        root.append(table)

        return str(soup)

    @staticmethod
    def parse(content: str) -> Optional[SyncMetadata]:
        """Parse a note into SyncMetadata.

        Args:
            content: HTML note content

        Returns:
            SyncMetadata, or None if the note is not a metadata note

        Raises:
            MetadataError: If the note declares an unknown schema version
        """
        if not content:
            return None

        soup = BeautifulSoup(content, PARSER)
        root = soup.find(attrs={ROOT_ATTRIBUTE: True})
        if root is not None:
            version_str = root.get(ROOT_ATTRIBUTE, "")
            try:
                version = int(version_str)
            except ValueError:
                raise MetadataError(f"Invalid metadata schema version: {version_str!r}")
            if version > METADATA_SCHEMA_VERSION or version < 2:
                raise MetadataError(f"Unsupported metadata schema version: {version}")

            values: Dict[str, str] = {}
            for row in root.find_all("tr", attrs={"data-key": True}):
                attr = KEYS.get(row["data-key"])
                cell = row.find("td")
                if attr and cell is not None:
                    values[attr] = cell.get_text()
            return SyncMetadata(schema_version=version, **values)

        if LEGACY_MARKER in content:
            return MetadataStore._parse_legacy(soup)

        return None

    @staticmethod
    def _parse_legacy(soup: BeautifulSoup) -> SyncMetadata:
        """Parse the version 1 layout: ``<p><strong>key:</strong> value</p>``."""
        values: Dict[str, str] = {}
        for strong in soup.find_all("strong"):
            label = strong.get_text().strip().rstrip(":")
            attr = LEGACY_KEYS.get(label)
            if attr is None:
                continue
            parts = []
            for sibling in strong.next_siblings:
                if getattr(sibling, "name", None) is not None:
                    break
                parts.append(str(sibling))
            values[attr] = "".join(parts).strip()
        return SyncMetadata(schema_version=1, **values)

    def _find_note(self, record: RegularRecord) -> Tuple[Optional[NoteRecord], Optional[SyncMetadata]]:
        for note in self._host.get_notes(record.record_id):
            try:
                metadata = self.parse(note.content)
            except MetadataError as e:
                raise MetadataError(str(e), record.record_id) from e
            if metadata is not None:
                return note, metadata
        return None, None

    def read(self, record: RegularRecord) -> SyncMetadata:
        """Read a record's metadata; all fields empty if it has no metadata note."""
        with self._lock:
            _, metadata = self._find_note(record)
        return metadata or SyncMetadata()

    def write(
        self,
        record: RegularRecord,
        interhash: str,
        intrahash: str,
        syncdate: Optional[str] = None,
        attachments_syncdate: Optional[str] = None,
    ) -> SyncMetadata:
        """Fully rewrite the metadata note of a record.

        Args:
            record: The record to write metadata for
            interhash: Remote interhash
            intrahash: Remote intrahash
            syncdate: Watermark to store (defaults to now)
            attachments_syncdate: Attachment watermark; None keeps the stored
                value, or "na" when there is none

        Returns:
            The metadata that was written
        """
        with self._lock:
            note, existing = self._find_note(record)
            if attachments_syncdate is None:
                attachments_syncdate = (existing.attachments_syncdate if existing else "") or NOT_APPLICABLE

            metadata = SyncMetadata(
                interhash=interhash,
                intrahash=intrahash,
                syncdate=syncdate or format_timestamp(utc_now()),
                attachments_syncdate=attachments_syncdate,
            )
            self._host.save_note(
                record.record_id,
                self.render(metadata),
                note_id=note.record_id if note else None,
            )
        logger.debug(f"Wrote sync metadata for {record.record_id}: {metadata}")
        return metadata

    def mark_attachments_synced(self, record: RegularRecord, timestamp: str) -> None:
        """Set attachmentsSyncdate, leaving the other fields untouched.

        Logs a warning and does nothing when the record has no metadata note.
        """
        with self._lock:
            note, existing = self._find_note(record)
            if note is None or existing is None:
                logger.warning(
                    f"No sync metadata note on record {record.record_id}; "
                    f"cannot store attachments sync date"
                )
                return
            existing.attachments_syncdate = timestamp
            existing.schema_version = METADATA_SCHEMA_VERSION
            self._host.save_note(record.record_id, self.render(existing), note_id=note.record_id)
        logger.debug(f"Marked attachments of {record.record_id} synced at {timestamp}")
