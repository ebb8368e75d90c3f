"""Library-wide synchronization with a bounded concurrency window.

The driver keeps at most ``max_concurrency`` reconciliations in flight. When
the window is full it waits for the first one to finish before admitting the
next record, and drains whatever is left at the end. Every failure is isolated
to its record: it is collected, reported through the error callback and never
stops the run.
"""

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Callable, Dict, List, Optional

from bibsync.library.host import LibraryHost
from bibsync.library.models import RegularRecord
from bibsync.sync.models import (
    AutomationLevel,
    BulkSyncReport,
    SyncFailure,
    SyncSettings,
    UploadPolicy,
)
from bibsync.sync.reconciler import Reconciler

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, str], None]
ErrorCallback = Callable[[SyncFailure], None]

DEFAULT_MAX_CONCURRENCY = 5


class BulkSyncDriver:
    """Runs the reconciliation engine over every eligible record.

    Example:
        >>> driver = BulkSyncDriver(reconciler, library, settings)
        >>> failures = driver.sync_library(
        ...     progress_cb=lambda fraction, msg: print(f"{fraction:.0%} {msg}"),
        ...     error_cb=lambda failure: print(failure.record.title, failure.error),
        ... )
    """

    def __init__(
        self,
        reconciler: Reconciler,
        host: LibraryHost,
        settings: SyncSettings,
        max_concurrency: Optional[int] = None,
    ):
        self.reconciler = reconciler
        self.host = host
        self.settings = settings
        self.max_concurrency = max(1, max_concurrency or settings.max_concurrency or DEFAULT_MAX_CONCURRENCY)
        self._cancelled = threading.Event()
        self.last_run: Optional[BulkSyncReport] = None

    def select_records(self) -> List[RegularRecord]:
        """Regular records eligible for a library-wide sync.

        Records carrying the skip tag are excluded. Below the automatic level
        only records that were already posted are included, i.e. records
        carrying the post tag or holding an intrahash in their metadata.
        """
        selected = []
        for record in self.host.list_records():
            if not isinstance(record, RegularRecord):
                continue
            if record.has_tag(self.settings.skip_tag):
                continue
            if (self.settings.automation_level is not AutomationLevel.AUTO
                    and not self._is_posted(record)):
                continue
            selected.append(record)
        return selected

    def _is_posted(self, record: RegularRecord) -> bool:
        if record.has_tag(self.settings.post_tag):
            return True
        return self.reconciler.metadata_store.read(record).is_online

    def cancel(self) -> None:
        """Request cooperative cancellation.

        No further records are admitted; in-flight reconciliations finish but
        their results are no longer reported.
        """
        logger.info("Bulk sync cancellation requested")
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def _run_one(self, record: RegularRecord) -> bool:
        """Reconcile one record; False means it was skipped because it is locked."""
        post = self.reconciler.try_synchronize(record, upload_policy=UploadPolicy.FOREGROUND)
        return post is not None

    def sync_library(
        self,
        progress_cb: Optional[ProgressCallback] = None,
        error_cb: Optional[ErrorCallback] = None,
    ) -> List[SyncFailure]:
        """Synchronize all eligible records.

        Args:
            progress_cb: Called after each completed record with (fraction, message)
            error_cb: Called with a SyncFailure for each failed record

        Returns:
            List of failures, one per failed record
        """
        self._cancelled.clear()
        records = self.select_records()
        report = BulkSyncReport(total=len(records))
        self.last_run = report
        failures: List[SyncFailure] = []

        logger.info(
            f"Starting library sync of {len(records)} records "
            f"(window {self.max_concurrency})"
        )

        if not records:
            if progress_cb:
                progress_cb(1.0, "Nothing to synchronize")
            return failures

        in_flight: Dict[Future, RegularRecord] = {}

        def collect(done) -> None:
            for future in done:
                record = in_flight.pop(future)
                error = future.exception()
                if error is not None:
                    report.failed += 1
                    failure = SyncFailure(record=record, error=error)
                    failures.append(failure)
                    logger.error(f"Failed to sync record {record.record_id}: {error}")
                    if error_cb and not self.cancelled:
                        error_cb(failure)
                elif future.result():
                    report.synced += 1
                else:
                    report.skipped += 1

                if progress_cb and not self.cancelled:
                    progress_cb(
                        report.completed / report.total,
                        f"Synchronized {report.completed} of {report.total} records",
                    )

        with ThreadPoolExecutor(
            max_workers=self.max_concurrency, thread_name_prefix="bibsync-bulk"
        ) as executor:
            for record in records:
                if self.cancelled:
                    break
                if len(in_flight) >= self.max_concurrency:
                    done, _ = wait(list(in_flight), return_when=FIRST_COMPLETED)
                    collect(done)
                    if self.cancelled:
                        break
                in_flight[executor.submit(self._run_one, record)] = record

            # Drain
            if in_flight:
                done, _ = wait(list(in_flight))
                collect(done)

        report.cancelled = self.cancelled
        logger.info(
            f"Library sync finished: {report.synced} synced, {report.skipped} skipped, "
            f"{report.failed} failed{' (cancelled)' if report.cancelled else ''}"
        )
        return failures
