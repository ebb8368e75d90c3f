"""Reconciliation engine for one record.

This module decides, for a single local record, whether it must be posted,
pushed as an update, or left alone, and converges attachments and sync
metadata accordingly. Remote writes always happen before the metadata write
that reflects them; a failure anywhere leaves the previous metadata intact.

Decision table for records that are already online:

    updated remotely | updated locally | action
    -----------------+-----------------+------------------------------------
    yes              | yes             | ConflictResolutionError
    yes              | no              | nothing (local copy stays stale)
    no               | yes (or force)  | push update, reconcile attachments
    no               | no              | nothing
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable, List, Optional, Set

from bibsync.bibsonomy_client.errors import UnsupportedMediaTypeError
from bibsync.bibsonomy_client.models import RemotePost
from bibsync.library.host import LibraryHost
from bibsync.library.models import AttachmentRecord, RegularRecord
from bibsync.sync.attachment_reconciler import plan_attachment_sync
from bibsync.sync.errors import ConflictResolutionError, MetadataError
from bibsync.sync.locks import LockRegistry
from bibsync.sync.metadata_store import MetadataStore
from bibsync.sync.models import (
    NOT_APPLICABLE,
    AttachmentPlan,
    SyncMetadata,
    SyncSettings,
    UploadPolicy,
)
from bibsync.sync.payload_builder import build_post_payload
from bibsync.timestamps import format_timestamp, parse_timestamp, utc_now

if TYPE_CHECKING:
    from bibsync.bibsonomy_client.api_wrapper import APIWrapper

logger = logging.getLogger(__name__)

# Worker threads for background attachment uploads
UPLOAD_WORKERS = 2


class Reconciler:
    """Synchronizes single records with their BibSonomy posts.

    Credentials are bound to the injected API wrapper. The reconciler itself
    does not take the lock registry in ``synchronize``; callers reachable from
    change events hold it, and ``try_synchronize`` takes it for the bulk
    driver. Background uploads of a new post keep the record locked until
    they finish.

    Example:
        >>> reconciler = Reconciler(api, library, MetadataStore(library), LockRegistry(), settings)
        >>> post = reconciler.synchronize(record, upload_policy=UploadPolicy.FOREGROUND)
        >>> print(post.intrahash)
    """

    def __init__(
        self,
        client: "APIWrapper",
        host: LibraryHost,
        metadata_store: MetadataStore,
        locks: LockRegistry,
        settings: SyncSettings,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the reconciler.

        Args:
            client: BibSonomy API wrapper (bound to the user's credentials)
            host: Local library host
            metadata_store: Store for per-record sync metadata
            locks: Lock registry shared with the router and bulk driver
            settings: Sync settings (group, tags, eligible extensions, tolerance)
            clock: Source of the current time, used for watermarks
        """
        self.client = client
        self.host = host
        self.metadata_store = metadata_store
        self.locks = locks
        self.settings = settings
        self._clock = clock
        self._executor: Optional[ThreadPoolExecutor] = None
        self._pending: Set[Future] = set()
        self._pending_lock = threading.Lock()

    @property
    def tolerance(self) -> timedelta:
        return timedelta(seconds=self.settings.tolerance_seconds)

    def _now_iso(self) -> str:
        return format_timestamp(self._clock())

    # Entry points

    def synchronize(
        self,
        record: RegularRecord,
        force_update: bool = False,
        upload_policy: UploadPolicy = UploadPolicy.BACKGROUND,
    ) -> RemotePost:
        """Reconcile one record with BibSonomy.

        Args:
            record: The local record
            force_update: Push local state even if nothing changed locally
            upload_policy: Whether attachment uploads of a new post are awaited

        Returns:
            The remote post after reconciliation

        Raises:
            ConflictResolutionError: If the record changed on both sides
            MetadataError: If the record is online but has no syncdate
            BibSonomyError: Any remote failure (nothing is written locally)
        """
        metadata = self.metadata_store.read(record)

        if not metadata.is_online:
            logger.info(f"Record {record.record_id} is not online, posting it")
            return self._post(record, upload_policy)

        post = self.client.get_post(metadata.intrahash)
        remote_changed = self.updated_remotely(record, post, metadata)
        local_changed = self.updated_locally(record, metadata)

        if remote_changed and local_changed:
            logger.warning(f"Conflict on record {record.record_id} (post {metadata.intrahash})")
            raise ConflictResolutionError(record.record_id, metadata.intrahash)

        if remote_changed:
            logger.info(
                f"Record {record.record_id} changed on BibSonomy only; "
                f"leaving local copy as is"
            )
            return post

        if local_changed or force_update:
            logger.info(f"Pushing local changes of record {record.record_id}")
            return self._update(record, metadata)

        logger.debug(f"No changes for record {record.record_id}, skipping")
        return post

    def try_synchronize(
        self,
        record: RegularRecord,
        force_update: bool = False,
        upload_policy: UploadPolicy = UploadPolicy.BACKGROUND,
    ) -> Optional[RemotePost]:
        """Synchronize under the record's lock.

        Returns:
            The remote post, or None if the record is locked by another operation
        """
        with self.locks.hold(record.record_id) as acquired:
            if not acquired:
                logger.info(f"Record {record.record_id} is already being synchronized, skipping")
                return None
            return self.synchronize(record, force_update=force_update, upload_policy=upload_policy)

    def delete_online(self, record: RegularRecord) -> bool:
        """Delete the remote post of a record.

        Returns:
            True if a remote post was deleted, False if the record was never posted
        """
        metadata = self.metadata_store.read(record)
        if not metadata.intrahash:
            logger.info(f"Record {record.record_id} has no intrahash, skipping online deletion")
            return False

        self.client.delete_post(metadata.intrahash)
        logger.info(f"Deleted post {metadata.intrahash} of record {record.record_id}")
        return True

    # Watermark checks

    def _syncdate(self, record: RegularRecord, metadata: SyncMetadata) -> datetime:
        if not metadata.syncdate:
            raise MetadataError("record is online but has no syncdate", record.record_id)
        try:
            return parse_timestamp(metadata.syncdate)
        except ValueError as e:
            raise MetadataError(f"invalid syncdate {metadata.syncdate!r}", record.record_id) from e

    def updated_remotely(self, record: RegularRecord, post: RemotePost, metadata: SyncMetadata) -> bool:
        """True if the post changed more than the tolerance after the syncdate."""
        syncdate = self._syncdate(record, metadata)
        if not post.changedate:
            logger.warning(f"Post {post.intrahash} has no changedate, assuming unchanged")
            return False
        try:
            changed = parse_timestamp(post.changedate)
        except ValueError:
            logger.warning(f"Post {post.intrahash} has invalid changedate {post.changedate!r}")
            return False
        return changed > syncdate + self.tolerance

    def updated_locally(self, record: RegularRecord, metadata: SyncMetadata) -> bool:
        """True if the record's modification time plus the tolerance passes the syncdate.

        This is deliberately permissive: a record modified up to the tolerance
        before the syncdate counts as changed.
        """
        syncdate = self._syncdate(record, metadata)
        return record.date_modified + self.tolerance > syncdate

    def eligible_attachments(self, record: RegularRecord) -> List[AttachmentRecord]:
        return [
            a for a in self.host.get_attachments(record.record_id)
            if a.is_eligible(self.settings.attachment_extensions)
        ]

    def changed_attachments(self, record: RegularRecord, metadata: SyncMetadata) -> List[AttachmentRecord]:
        """Eligible attachments modified since the last attachment sync.

        Attachment times are compared against attachmentsSyncdate only; the
        parent's own modification time plays no part, since replacing a file
        does not touch the parent. All eligible attachments count as changed
        when attachments were never synced ("na" or empty watermark).
        """
        eligible = self.eligible_attachments(record)
        watermark = metadata.attachments_syncdate
        if not watermark or watermark == NOT_APPLICABLE:
            return eligible

        try:
            synced_at = parse_timestamp(watermark)
        except ValueError:
            logger.warning(
                f"Invalid attachmentsSyncdate {watermark!r} on record {record.record_id}, "
                f"treating all attachments as changed"
            )
            return eligible

        return [a for a in eligible if a.date_modified + self.tolerance > synced_at]

    # Post path

    def _post(self, record: RegularRecord, upload_policy: UploadPolicy) -> RemotePost:
        payload = build_post_payload(
            record, self.client.user, self.settings.default_group, self.settings.post_tag
        )
        response = self.client.create_post(payload)
        intrahash = response.resourcehash
        post = self.client.get_post(intrahash)

        self._finalize(record, post, attachments_syncdate=NOT_APPLICABLE)

        attachments = self.eligible_attachments(record)
        if upload_policy is UploadPolicy.FOREGROUND or not attachments:
            self._upload_all(record, intrahash, attachments)
            if attachments:
                post = self.client.get_post(intrahash)
            return post

        self._submit_upload(record, intrahash, attachments)
        return post

    def _upload_one(self, intrahash: str, attachment: AttachmentRecord) -> bool:
        data = self.host.read_attachment(attachment)
        try:
            self.client.upload_attachment(intrahash, data, attachment.filename)
        except UnsupportedMediaTypeError as e:
            logger.warning(f"Skipping attachment {attachment.filename}: {e}")
            return False
        return True

    def _upload_all(self, record: RegularRecord, intrahash: str, attachments: List[AttachmentRecord]) -> None:
        uploaded = sum(1 for a in attachments if self._upload_one(intrahash, a))
        logger.info(f"Uploaded {uploaded}/{len(attachments)} attachments of record {record.record_id}")
        self.metadata_store.mark_attachments_synced(record, self._now_iso())

    def _submit_upload(self, record: RegularRecord, intrahash: str, attachments: List[AttachmentRecord]) -> None:
        with self._pending_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=UPLOAD_WORKERS, thread_name_prefix="bibsync-upload"
                )
            # The record stays locked until its uploads are done
            self.locks.retain(record.record_id)
            try:
                future = self._executor.submit(self._background_upload, record, intrahash, attachments)
            except RuntimeError:
                self.locks.release(record.record_id)
                raise
            self._pending.add(future)
        future.add_done_callback(self._upload_done)

    def _background_upload(
        self, record: RegularRecord, intrahash: str, attachments: List[AttachmentRecord]
    ) -> None:
        try:
            self._upload_all(record, intrahash, attachments)
        finally:
            self.locks.release(record.record_id)

    def _upload_done(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)
        error = future.exception()
        if error is not None:
            logger.error(f"Background attachment upload failed: {error}")

    def wait_for_uploads(self, timeout: Optional[float] = None) -> bool:
        """Block until background uploads finish.

        Returns:
            True if nothing is pending anymore
        """
        with self._pending_lock:
            pending = set(self._pending)
        if pending:
            _, not_done = wait(pending, timeout=timeout)
            return not not_done
        return True

    def shutdown(self, wait_for_uploads: bool = True) -> None:
        """Stop the background upload pool."""
        with self._pending_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait_for_uploads)

    # Update path

    def _update(self, record: RegularRecord, metadata: SyncMetadata) -> RemotePost:
        changed = self.changed_attachments(record, metadata)
        payload = build_post_payload(
            record, self.client.user, self.settings.default_group, self.settings.post_tag
        )
        response = self.client.update_post(metadata.intrahash, payload)
        # BibSonomy derives the intrahash from the content, so it may change here
        intrahash = response.resourcehash
        if intrahash != metadata.intrahash:
            logger.info(f"Post of record {record.record_id} moved from {metadata.intrahash} to {intrahash}")

        current = self.client.get_post(intrahash)
        plan = plan_attachment_sync(current.documents, self.eligible_attachments(record), changed)
        self._execute_plan(intrahash, plan)

        refreshed = self.client.get_post(intrahash)
        self._finalize(record, refreshed, attachments_syncdate=self._now_iso())
        return refreshed

    def _execute_plan(self, intrahash: str, plan: AttachmentPlan) -> None:
        for href in plan.deletions:
            self.client.delete_attachment(href)
        for attachment in plan.uploads:
            self._upload_one(intrahash, attachment)

    def _finalize(self, record: RegularRecord, post: RemotePost, attachments_syncdate: Optional[str]) -> None:
        """Tag the record as posted and rewrite its sync metadata."""
        if not record.has_tag(self.settings.post_tag):
            self.host.add_tag(record.record_id, self.settings.post_tag)
        self.metadata_store.write(
            record,
            interhash=post.interhash,
            intrahash=post.intrahash,
            syncdate=self._now_iso(),
            attachments_syncdate=attachments_syncdate,
        )
