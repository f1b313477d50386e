"""
Core models and interfaces for the page synchronizer.
"""

from .connector import Connector, ConnectorResponse, NameRecord
from .errors import (
    ConfigFetchError,
    ConnectorError,
    PageFetchError,
    PageSyncError,
    ResolutionError,
    ResolutionFailure,
    StorageError,
    SynchronizationError,
)
from .models import (
    METADATA_KEY,
    DatabaseMetadata,
    Manifest,
    ReferenceKind,
    SnapshotReference,
    SyncReport,
)
from .page_store import PageStore
from .state_store import SyncStateStore

__all__ = [
    "Connector",
    "ConnectorResponse",
    "NameRecord",
    "ConfigFetchError",
    "ConnectorError",
    "PageFetchError",
    "PageSyncError",
    "ResolutionError",
    "ResolutionFailure",
    "StorageError",
    "SynchronizationError",
    "METADATA_KEY",
    "DatabaseMetadata",
    "Manifest",
    "ReferenceKind",
    "SnapshotReference",
    "SyncReport",
    "PageStore",
    "SyncStateStore",
]
