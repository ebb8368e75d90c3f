"""Per-record mutual exclusion for reconciliations."""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator

logger = logging.getLogger(__name__)


class LockRegistry:
    """Record ids currently being reconciled.

    ``acquire`` is a non-blocking try-lock: False means another operation
    owns the record and the caller must skip it. There is no timeout and no
    re-entrancy; a second acquire of a held id fails even from the same
    caller.

    ``retain`` adds a hold to a record so that work continuing after the
    owner's block (background attachment uploads) keeps the record locked
    until it calls ``release`` itself.

    Example:
        >>> locks = LockRegistry()
        >>> with locks.hold("R1") as acquired:
        ...     if acquired:
        ...         reconcile()
    """

    def __init__(self):
        self._holds: Dict[str, int] = {}
        self._guard = threading.Lock()

    def acquire(self, record_id: str) -> bool:
        """Try to take the lock for record_id.

        Returns:
            True if this call took the lock, False if it was already held
        """
        with self._guard:
            if self._holds.get(record_id):
                logger.debug(f"Lock for {record_id} already held")
                return False
            self._holds[record_id] = 1
            return True

    def retain(self, record_id: str) -> None:
        """Add a hold to record_id, taking it if it is free."""
        with self._guard:
            self._holds[record_id] = self._holds.get(record_id, 0) + 1

    def release(self, record_id: str) -> None:
        """Drop one hold of record_id. Releasing a free id is a no-op."""
        with self._guard:
            remaining = self._holds.get(record_id, 0) - 1
            if remaining > 0:
                self._holds[record_id] = remaining
            else:
                self._holds.pop(record_id, None)

    def is_locked(self, record_id: str) -> bool:
        with self._guard:
            return self._holds.get(record_id, 0) > 0

    @contextmanager
    def hold(self, record_id: str) -> Iterator[bool]:
        """Context manager around acquire/release.

        Yields the acquire result and releases on every exit path, but only
        if this block took the lock.
        """
        acquired = self.acquire(record_id)
        try:
            yield acquired
        finally:
            if acquired:
                self.release(record_id)
