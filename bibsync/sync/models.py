"""Data models for the sync engine.

This module defines the sync metadata stored next to each record, the
settings and session state the engine runs with, and the result types of
attachment planning and bulk synchronization.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from bibsync.library.models import AttachmentRecord, RegularRecord

# Sentinel stored in attachmentsSyncdate until the first attachment upload finished
NOT_APPLICABLE = "na"

METADATA_SCHEMA_VERSION = 2


@dataclass
class SyncMetadata:
    """Sync state of one record, persisted in its metadata note.

    A record is online iff both hashes are non-empty. A record without a
    metadata note has every field empty.

    Attributes:
        interhash: Content-derived identity hash assigned by BibSonomy
        intrahash: Identifier of the user's post (primary key for remote calls)
        syncdate: ISO 8601 timestamp of the last successful reconciliation
        attachments_syncdate: ISO 8601 timestamp of the last attachment sync, or "na"
        schema_version: Version of the note layout the values were read from
    """
    interhash: str = ""
    intrahash: str = ""
    syncdate: str = ""
    attachments_syncdate: str = ""
    schema_version: int = METADATA_SCHEMA_VERSION

    @property
    def is_online(self) -> bool:
        return bool(self.intrahash) and bool(self.interhash)


class AutomationLevel(Enum):
    """How much the change-event router does without being asked.

    Levels are ordered: manual < semi-auto < auto.
    """
    MANUAL = "manual"
    SEMI_AUTO = "semi-auto"
    AUTO = "auto"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self)

    def allows(self, required: "AutomationLevel") -> bool:
        """True if this level is at least the required level."""
        return self.rank >= required.rank


_LEVEL_ORDER = [AutomationLevel.MANUAL, AutomationLevel.SEMI_AUTO, AutomationLevel.AUTO]


class UploadPolicy(Enum):
    """Whether attachment uploads of a newly posted record are awaited."""
    FOREGROUND = "foreground"  # wait for uploads before returning
    BACKGROUND = "background"  # return right after posting, upload on a worker


@dataclass
class SyncSettings:
    """Settings the engine, the bulk driver and the router run with.

    Attributes:
        library_path: Directory of the local library
        default_group: BibSonomy visibility group for new posts
        automation_level: Automation level for change events and bulk selection
        post_tag: Tag added to every record once it is posted
        skip_tag: Tag excluding a record from bulk synchronization
        attachment_extensions: File extensions of attachments that are mirrored
        max_concurrency: Width of the bulk sync window
        tolerance_seconds: Clock skew tolerance for watermark comparisons
    """
    library_path: str = "."
    default_group: str = "public"
    automation_level: AutomationLevel = AutomationLevel.SEMI_AUTO
    post_tag: str = "bibsync"
    skip_tag: str = "bibsync:skip"
    attachment_extensions: List[str] = field(default_factory=lambda: ["pdf"])
    max_concurrency: int = 5
    tolerance_seconds: int = 10


@dataclass
class SessionState:
    """Persisted session flags.

    Attributes:
        authenticated: Whether the credentials were last seen valid
        initial_sync_done: Whether a full library sync has completed once
        last_library_sync: ISO 8601 timestamp of the last full library sync
    """
    authenticated: bool = False
    initial_sync_done: bool = False
    last_library_sync: Optional[str] = None


class AttachmentCase(Enum):
    """Shape of the local/remote attachment filename sets."""
    MATCHED = "matched"  # same filenames on both sides
    DISJOINT = "disjoint"  # no filename in common
    REPLACE_ALL = "replace_all"  # partial overlap, replace everything


@dataclass
class AttachmentPlan:
    """Remote document deletions and local uploads for one update.

    Deletions run before uploads.

    Attributes:
        case: Which reconciliation case applied
        deletions: Remote document hrefs to delete
        uploads: Local attachments to upload
    """
    case: AttachmentCase
    deletions: List[str] = field(default_factory=list)
    uploads: List[AttachmentRecord] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.deletions and not self.uploads


@dataclass
class SyncFailure:
    """A record that failed during bulk synchronization.

    Attributes:
        record: The record that failed
        error: The raised exception (kept for help lookup by error kind)
    """
    record: RegularRecord
    error: Exception

    @property
    def kind(self) -> str:
        return getattr(self.error, 'kind', type(self.error).__name__)


@dataclass
class BulkSyncReport:
    """Counts of one bulk synchronization run."""
    total: int = 0
    synced: int = 0
    skipped: int = 0
    failed: int = 0
    cancelled: bool = False

    @property
    def completed(self) -> int:
        return self.synced + self.skipped + self.failed
