"""
Page store interface for persisting page bytes locally.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from .models import DatabaseMetadata, METADATA_KEY


logger = logging.getLogger(__name__)


class PageStore(ABC):
    """
    Abstract base class for page stores.

    A page store is a namespaced keyed byte store. Keys are page numbers;
    ``METADATA_KEY`` holds the serialized ``DatabaseMetadata`` record.
    """

    namespace: str

    @abstractmethod
    def put(self, key: int, data: bytes) -> None:
        """
        Durably store bytes under a key.

        Raises:
            StorageError if the write fails
        """
        pass

    @abstractmethod
    def get(self, key: int) -> Optional[bytes]:
        """
        Read bytes stored under a key.

        Returns:
            The stored bytes, or None if nothing is stored
        """
        pass

    def put_metadata(self, metadata: DatabaseMetadata) -> None:
        """Store the database metadata record."""
        self.put(METADATA_KEY, metadata.to_bytes())

    def get_metadata(self) -> Optional[DatabaseMetadata]:
        """
        Read the database metadata record, if present.

        An unreadable record is treated as missing; it is derived from page 0
        and gets rewritten on the next synchronization.
        """
        data = self.get(METADATA_KEY)
        if data is None:
            return None
        try:
            return DatabaseMetadata.from_bytes(data)
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable metadata record in {self.namespace}: {e}")
            return None

    def close(self) -> None:
        """Close any open resources. Optional."""
        pass
