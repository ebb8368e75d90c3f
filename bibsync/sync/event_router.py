"""Translate library change notifications into sync and delete calls.

The router is gated by the session's authentication flag and the configured
automation level:

- add: requires the automatic level
- modify: requires semi-automatic or higher; at semi-automatic only records
  that are already online are synchronized
- trash/delete: local bookkeeping at every level; the remote post is only
  deleted at the automatic level, or after the user confirms

Attachments resolve to their parent record and are handled as a modification
of the parent. Notes are ignored.
"""

import logging
from typing import Callable, Iterable, Optional

from bibsync.library.errors import RecordNotFoundError
from bibsync.library.host import LibraryHost
from bibsync.library.models import (
    AttachmentRecord,
    ChangeEvent,
    EventKind,
    Record,
    RegularRecord,
)
from bibsync.sync.error_policy import apply_error_policy
from bibsync.sync.locks import LockRegistry
from bibsync.sync.models import AutomationLevel, SessionState, SyncSettings, UploadPolicy
from bibsync.sync.reconciler import Reconciler

logger = logging.getLogger(__name__)

ConfirmDelete = Callable[[RegularRecord], bool]
ErrorListener = Callable[[RegularRecord, Exception, Optional[str]], None]


class ChangeEventRouter:
    """Listener routing library events to the reconciliation engine.

    Example:
        >>> router = ChangeEventRouter(reconciler, library, locks, settings, session,
        ...                            confirm_delete=lambda record: ask_user(record.title))
        >>> router.attach()
        >>> library.update_fields("R1", title="New title")  # synchronized if online
        >>> router.detach()
    """

    def __init__(
        self,
        reconciler: Reconciler,
        host: LibraryHost,
        locks: LockRegistry,
        settings: SyncSettings,
        session: SessionState,
        confirm_delete: Optional[ConfirmDelete] = None,
        on_error: Optional[ErrorListener] = None,
    ):
        """Initialize the router.

        Args:
            reconciler: Reconciliation engine
            host: Library host emitting the events
            locks: Lock registry shared with the bulk driver
            settings: Sync settings (automation level)
            session: Session state (authentication flag)
            confirm_delete: Blocking yes/no prompt for online deletion below
                the automatic level; deletion is declined when not set
            on_error: Called with (record, error, user message) when a
                dispatched sync or delete fails
        """
        self.reconciler = reconciler
        self.host = host
        self.locks = locks
        self.settings = settings
        self.session = session
        self.confirm_delete = confirm_delete
        self.on_error = on_error
        self._unsubscribe: Optional[Callable[[], None]] = None

    def attach(self) -> None:
        """Subscribe to the library host's change events."""
        if self._unsubscribe is None:
            self._unsubscribe = self.host.subscribe(self.handle)
            logger.debug("Change event router attached")

    def detach(self) -> None:
        """Unsubscribe from the library host."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
            logger.debug("Change event router detached")

    def handle(self, event: ChangeEvent) -> None:
        """Dispatch an event by kind."""
        if event.kind is EventKind.ADD:
            self.on_added(event.record_ids)
        elif event.kind is EventKind.MODIFY:
            self.on_modified(event.record_ids)
        else:
            self.on_deleted(event.record_ids)

    # Gating

    def _allowed(self, required: AutomationLevel) -> bool:
        if not self.session.authenticated:
            logger.info("Not authenticated, ignoring library event")
            return False
        if not self.settings.automation_level.allows(required):
            logger.debug(f"{required.value} sync or higher is not enabled, ignoring library event")
            return False
        return True

    def _lookup(self, record_id: str) -> Optional[Record]:
        try:
            return self.host.get_record(record_id)
        except RecordNotFoundError:
            logger.warning(f"Record {record_id} vanished before its event was handled")
            return None

    def _parent_of(self, attachment: AttachmentRecord) -> Optional[str]:
        if not attachment.parent_id:
            logger.info(f"Attachment {attachment.record_id} has no parent, skipping")
            return None
        return attachment.parent_id

    def _report(
        self, record: RegularRecord, error: Exception, operation: str, notify_duplicate: bool = True
    ) -> None:
        message = apply_error_policy(error, self.session, operation, notify_duplicate=notify_duplicate)
        if self.on_error is not None:
            self.on_error(record, error, message)

    # Handlers

    def on_added(self, record_ids: Iterable[str]) -> None:
        """Post newly added records (automatic level only)."""
        if not self._allowed(AutomationLevel.AUTO):
            return

        for record_id in record_ids:
            record = self._lookup(record_id)
            if isinstance(record, AttachmentRecord):
                parent_id = self._parent_of(record)
                if parent_id:
                    self.on_modified([parent_id])
            elif isinstance(record, RegularRecord):
                with self.locks.hold(record_id) as acquired:
                    if not acquired:
                        logger.info(f"Record {record_id} is already being processed, skipping")
                        continue
                    self._sync(record, force_update=False, notify_duplicate=True)

    def on_modified(self, record_ids: Iterable[str]) -> None:
        """Push modified records (semi-automatic or higher)."""
        if not self._allowed(AutomationLevel.SEMI_AUTO):
            return

        for record_id in record_ids:
            with self.locks.hold(record_id) as acquired:
                if not acquired:
                    logger.info(f"Record {record_id} is already being processed, skipping")
                    continue

                record = self._lookup(record_id)
                if isinstance(record, AttachmentRecord):
                    parent_id = self._parent_of(record)
                    if parent_id:
                        self.on_modified([parent_id])
                elif isinstance(record, RegularRecord):
                    if (self.settings.automation_level is AutomationLevel.AUTO
                            or self.reconciler.metadata_store.read(record).is_online):
                        self._sync(record, force_update=True, notify_duplicate=False)
                    else:
                        logger.info(f"Record {record_id} is not online, skipping sync")

    def on_deleted(self, record_ids: Iterable[str]) -> None:
        """Delete remote posts of trashed or deleted records."""
        if not self._allowed(AutomationLevel.MANUAL):
            return

        for record_id in record_ids:
            record = self._lookup(record_id)
            if isinstance(record, AttachmentRecord):
                if self.settings.automation_level.allows(AutomationLevel.SEMI_AUTO):
                    parent_id = self._parent_of(record)
                    if parent_id:
                        self.on_modified([parent_id])
                continue
            if not isinstance(record, RegularRecord):
                continue

            if not self.should_delete_online(record):
                continue

            try:
                self.reconciler.delete_online(record)
            except Exception as e:
                logger.error(f"Failed to delete record {record_id} online: {e}")
                self._report(record, e, "delete")

    def should_delete_online(self, record: RegularRecord) -> bool:
        """Whether the remote post of a removed record should be deleted."""
        if not self.reconciler.metadata_store.read(record).is_online:
            return False
        if self.settings.automation_level is AutomationLevel.AUTO:
            return True
        if self.confirm_delete is None:
            logger.info(f"No confirmation available, keeping post of record {record.record_id}")
            return False
        return bool(self.confirm_delete(record))

    def _sync(self, record: RegularRecord, force_update: bool, notify_duplicate: bool) -> None:
        try:
            self.reconciler.synchronize(
                record, force_update=force_update, upload_policy=UploadPolicy.BACKGROUND
            )
        except Exception as e:
            logger.error(f"Error while syncing record {record.record_id}: {e}")
            self._report(record, e, "sync", notify_duplicate=notify_duplicate)
