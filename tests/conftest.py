"""Root pytest configuration for all tests.

This conftest applies to all test types (unit, integration) and provides
the fixtures shared across packages.
"""

import logging
from datetime import timedelta

import pytest

from bibsync.library.memory_library import MemoryLibrary
from bibsync.library.models import Creator, RegularRecord
from bibsync.sync.locks import LockRegistry
from bibsync.sync.metadata_store import MetadataStore
from bibsync.sync.models import AutomationLevel, SessionState, SyncSettings
from bibsync.sync.reconciler import Reconciler
from bibsync.timestamps import utc_now
from tests.helpers.fake_bibsonomy import FakeBibSonomy

# urllib3 logs every retry at WARNING; tests only care about bibsync's own logs
logging.getLogger("urllib3").setLevel(logging.ERROR)


@pytest.fixture
def settings() -> SyncSettings:
    return SyncSettings(automation_level=AutomationLevel.AUTO)


@pytest.fixture
def library() -> MemoryLibrary:
    return MemoryLibrary()


@pytest.fixture
def fake_api() -> FakeBibSonomy:
    return FakeBibSonomy()


@pytest.fixture
def locks() -> LockRegistry:
    return LockRegistry()


@pytest.fixture
def store(library) -> MetadataStore:
    return MetadataStore(library)


@pytest.fixture
def reconciler(fake_api, library, store, locks, settings):
    engine = Reconciler(fake_api, library, store, locks, settings)
    yield engine
    engine.shutdown(wait_for_uploads=True)


@pytest.fixture
def session() -> SessionState:
    return SessionState(authenticated=True)


@pytest.fixture
def make_record(library):
    """Factory adding a regular record that was last modified an hour ago."""
    def _make(record_id: str = "R1", title: str = "Dune", tags=None, **fields) -> RegularRecord:
        record = RegularRecord(
            record_id=record_id,
            entry_type="book",
            fields={"title": title, "year": "1965", **fields},
            creators=[Creator("Herbert", "Frank")],
            tags=set(tags or ()),
            date_modified=utc_now() - timedelta(hours=1),
        )
        library.add_record(record)
        return record
    return _make
