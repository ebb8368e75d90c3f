"""Two-way synchronization engine.

This package holds the reconciliation engine and everything around it: the
metadata store, the lock registry, attachment planning, the bulk sync driver,
the change-event router and the error policy.
"""

from bibsync.sync.bulk_sync import BulkSyncDriver
from bibsync.sync.errors import ConflictResolutionError, MetadataError
from bibsync.sync.event_router import ChangeEventRouter
from bibsync.sync.locks import LockRegistry
from bibsync.sync.metadata_store import MetadataStore
from bibsync.sync.models import (
    NOT_APPLICABLE,
    AttachmentCase,
    AttachmentPlan,
    AutomationLevel,
    BulkSyncReport,
    SessionState,
    SyncFailure,
    SyncMetadata,
    SyncSettings,
    UploadPolicy,
)
from bibsync.sync.reconciler import Reconciler

__all__ = [
    'BulkSyncDriver',
    'ConflictResolutionError',
    'MetadataError',
    'ChangeEventRouter',
    'LockRegistry',
    'MetadataStore',
    'NOT_APPLICABLE',
    'AttachmentCase',
    'AttachmentPlan',
    'AutomationLevel',
    'BulkSyncReport',
    'SessionState',
    'SyncFailure',
    'SyncMetadata',
    'SyncSettings',
    'UploadPolicy',
    'Reconciler',
]
