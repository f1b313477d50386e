"""
Registry of per-database page store and sync state namespaces.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from ..core.page_store import PageStore
from ..core.state_store import SyncStateStore


logger = logging.getLogger(__name__)


PageStoreFactory = Callable[[str], PageStore]
SyncStateFactory = Callable[[str], SyncStateStore]


def page_namespace(database_name: str) -> str:
    """Namespace holding a database's pages."""
    return f"{database_name}.sqlite3"


def state_namespace(database_name: str) -> str:
    """Namespace holding a database's sync state."""
    return f"{database_name}.sqlite3-metadata"


@dataclass
class DatabaseStores:
    """Page store and sync state for one database."""
    name: str
    pages: PageStore
    state: SyncStateStore


class NamespaceRegistry:
    """
    Lazily provisions stores per database name.

    ``open()`` is idempotent: the first call for a name builds the stores
    through the factories, later calls return the same instances.
    """

    def __init__(
        self,
        page_store_factory: PageStoreFactory,
        sync_state_factory: SyncStateFactory,
    ):
        self.page_store_factory = page_store_factory
        self.sync_state_factory = sync_state_factory
        self._stores: Dict[str, DatabaseStores] = {}
        self._lock = threading.Lock()

    def open(self, database_name: str) -> DatabaseStores:
        """Return the stores for a database, provisioning them on first use."""
        with self._lock:
            stores = self._stores.get(database_name)
            if stores is None:
                logger.info(f"Provisioning local namespaces for database: {database_name}")
                stores = DatabaseStores(
                    name=database_name,
                    pages=self.page_store_factory(page_namespace(database_name)),
                    state=self.sync_state_factory(state_namespace(database_name)),
                )
                self._stores[database_name] = stores
            return stores

    def get(self, database_name: str) -> Optional[DatabaseStores]:
        """Return already provisioned stores, or None."""
        with self._lock:
            return self._stores.get(database_name)

    def close(self) -> None:
        """Close every provisioned store."""
        with self._lock:
            for stores in self._stores.values():
                stores.pages.close()
                stores.state.close()
            self._stores.clear()
