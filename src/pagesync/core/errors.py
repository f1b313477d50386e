"""
Exception hierarchy for the page synchronizer.
"""

from enum import Enum
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .models import SyncReport


class PageSyncError(Exception):
    """Base class for all synchronizer errors."""


class ResolutionFailure(str, Enum):
    """Why a reference could not be resolved."""
    MALFORMED = "malformed"
    UNAVAILABLE = "unavailable"


class ResolutionError(PageSyncError):
    """
    A reference could not be turned into a snapshot id.

    MALFORMED references are fatal; UNAVAILABLE means the naming service did
    not answer in time and the lookup may be retried.
    """

    def __init__(self, message: str, reason: ResolutionFailure):
        super().__init__(message)
        self.reason = reason

    @property
    def transient(self) -> bool:
        return self.reason == ResolutionFailure.UNAVAILABLE


class ConfigFetchError(PageSyncError):
    """The version index or manifest object could not be fetched or parsed."""

    def __init__(self, message: str, snapshot_id: Optional[str] = None, stage: str = "version_index"):
        super().__init__(message)
        self.snapshot_id = snapshot_id
        self.stage = stage


class PageFetchError(PageSyncError):
    """A single page could not be fetched."""

    def __init__(self, message: str, page_number: int, fingerprint: str):
        super().__init__(message)
        self.page_number = page_number
        self.fingerprint = fingerprint


class StorageError(PageSyncError):
    """A local write or read failed."""

    def __init__(self, message: str, key: Optional[object] = None):
        super().__init__(message)
        self.key = key


class SynchronizationError(PageSyncError):
    """One or more pages failed during a run. Committed pages are kept."""

    def __init__(self, message: str, report: "SyncReport"):
        super().__init__(message)
        self.report = report


class ConnectorError(PageSyncError):
    """A request to the content network failed."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: int = 0):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
