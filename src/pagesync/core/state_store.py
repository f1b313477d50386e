"""
Sync state interface for tracking the fingerprint applied to each page.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional


class SyncStateStore(ABC):
    """
    Abstract base class for sync state stores.

    Maps page number to the fingerprint last written for that page. Entries
    are written one page at a time, right after the page bytes are stored,
    so the state never claims a page that was not durably written.
    """

    namespace: str

    @abstractmethod
    def get(self, page_number: int) -> Optional[str]:
        """
        Get the fingerprint last applied to a page.

        Returns:
            The fingerprint, or None if the page was never applied
        """
        pass

    @abstractmethod
    def set(self, page_number: int, fingerprint: str) -> None:
        """
        Record the fingerprint applied to a page.

        Raises:
            StorageError if the write fails
        """
        pass

    @abstractmethod
    def all(self) -> Dict[int, str]:
        """Return the full page number to fingerprint mapping."""
        pass

    def count(self) -> int:
        """Number of pages with a recorded fingerprint."""
        return len(self.all())

    def close(self) -> None:
        """Close any open resources. Optional."""
        pass
