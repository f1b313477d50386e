"""
SQLite-based sync state store.

Records, per database namespace, the fingerprint last applied to each page.
"""

import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from ..core.errors import StorageError
from ..core.state_store import SyncStateStore


logger = logging.getLogger(__name__)


class SqliteSyncStateStore(SyncStateStore):
    """
    SQLite-based implementation of the sync state store.

    Several namespaces may share one database file; rows are keyed by
    ``(namespace, page_number)``. The connection is shared between worker
    threads and guarded by a lock. Every ``set`` commits immediately.
    """

    def __init__(self, db_path: Path, namespace: str, auto_init: bool = True):
        """
        Initialize the SQLite sync state store.

        Args:
            db_path: Path to the SQLite database file (``:memory:`` allowed)
            namespace: Namespace for this database's state
            auto_init: Whether to create tables automatically
        """
        self.db_path = db_path
        self.namespace = namespace
        self.conn = None
        self._lock = threading.Lock()
        self._connect()

        if auto_init:
            self._init_schema()

    def _connect(self) -> None:
        """Establish database connection."""
        if str(self.db_path) != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(
            str(self.db_path),
            check_same_thread=False
        )
        self.conn.row_factory = sqlite3.Row
        logger.debug(f"Connected to SQLite sync state: {self.db_path} [{self.namespace}]")

    def _init_schema(self) -> None:
        """Initialize database schema."""
        with self._lock:
            cursor = self.conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS page_state (
                    namespace TEXT NOT NULL,
                    page_number INTEGER NOT NULL,
                    fingerprint TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (namespace, page_number)
                )
            """)

            self.conn.commit()
        logger.debug("Initialized sync state schema")

    def get(self, page_number: int) -> Optional[str]:
        try:
            with self._lock:
                cursor = self.conn.cursor()
                cursor.execute("""
                    SELECT fingerprint FROM page_state
                    WHERE namespace = ? AND page_number = ?
                """, (self.namespace, page_number))
                row = cursor.fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read state for page {page_number}: {e}", key=page_number) from e

        return row["fingerprint"] if row else None

    def set(self, page_number: int, fingerprint: str) -> None:
        try:
            with self._lock:
                cursor = self.conn.cursor()
                cursor.execute("""
                    INSERT INTO page_state (namespace, page_number, fingerprint, updated_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT (namespace, page_number)
                    DO UPDATE SET fingerprint = excluded.fingerprint,
                                  updated_at = excluded.updated_at
                """, (
                    self.namespace,
                    page_number,
                    fingerprint,
                    datetime.now(timezone.utc).isoformat(),
                ))
                self.conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Failed to record state for page {page_number}: {e}")
            raise StorageError(f"Failed to record state for page {page_number}: {e}", key=page_number) from e

        logger.debug(f"Page {page_number} of {self.namespace} now at {fingerprint}")

    def all(self) -> Dict[int, str]:
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute("""
                SELECT page_number, fingerprint FROM page_state
                WHERE namespace = ?
                ORDER BY page_number
            """, (self.namespace,))
            rows = cursor.fetchall()

        return {row["page_number"]: row["fingerprint"] for row in rows}

    def count(self) -> int:
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute("""
                SELECT COUNT(*) AS count FROM page_state WHERE namespace = ?
            """, (self.namespace,))
            return cursor.fetchone()["count"]

    def close(self) -> None:
        """Close the database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.debug("Closed SQLite sync state connection")
