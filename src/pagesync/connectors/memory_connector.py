"""
In-memory connector for tests and offline runs.

Provides a deterministic connector that serves names, objects and blocks
from dictionaries without any network access. Every call is recorded so
tests can assert exactly what was fetched and in which order.
"""

import hashlib
import json
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from ..core.connector import Connector, NameRecord
from ..core.errors import ConnectorError

logger = logging.getLogger(__name__)


def content_id(data: bytes) -> str:
    """Fingerprint used for content published through this connector."""
    return "sha256-" + hashlib.sha256(data).hexdigest()


class InMemoryConnector(Connector):
    """
    Connector backed by in-memory dictionaries.

    Attributes:
        names: name -> resolved path (``/ipfs/<cid>``)
        objects: cid -> JSON object
        blocks: fingerprint -> bytes
        failing_blocks: fingerprints whose fetch raises ConnectorError
        block_delay: seconds each block fetch sleeps, to expose concurrency
    """

    def __init__(self, name: str = "memory", block_delay: float = 0.0):
        self.name = name
        self.block_delay = block_delay

        self.names: Dict[str, str] = {}
        self.objects: Dict[str, Dict[str, Any]] = {}
        self.blocks: Dict[str, bytes] = {}

        self.failing_names: Set[str] = set()
        self.failing_objects: Set[str] = set()
        self.failing_blocks: Set[str] = set()

        self._lock = threading.Lock()
        self.resolve_calls: List[str] = []
        self.object_calls: List[str] = []
        self.block_calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    # ------------------------------------------------------------------
    # Publishing helpers
    # ------------------------------------------------------------------

    def add_block(self, data: bytes, fingerprint: Optional[str] = None) -> str:
        """Store a block and return its fingerprint."""
        fingerprint = fingerprint or content_id(data)
        self.blocks[fingerprint] = data
        return fingerprint

    def add_object(self, obj: Dict[str, Any], cid: Optional[str] = None) -> str:
        """Store a JSON object and return its content id."""
        cid = cid or content_id(json.dumps(obj, sort_keys=True).encode("utf-8"))
        self.objects[cid] = obj
        return cid

    def publish(
        self,
        database_name: str,
        pages: Iterable[Tuple[str, bytes]],
        snapshot_id: Optional[str] = None,
    ) -> str:
        """
        Publish a snapshot of ``(fingerprint, bytes)`` pages.

        Builds the manifest object and the version index pointing at it.

        Returns:
            The snapshot id (content id of the version index)
        """
        links = []
        for fingerprint, data in pages:
            self.add_block(data, fingerprint)
            links.append({"Cid": {"/": fingerprint}})

        manifest_cid = self.add_object({"Name": database_name, "Links": links})
        return self.add_object(
            {"Name": database_name, "Versions": {"Current": {"/": manifest_cid}}},
            cid=snapshot_id,
        )

    def point_name(self, name: str, snapshot_id: str) -> None:
        """Point a mutable name at a snapshot."""
        self.names[name] = f"/ipfs/{snapshot_id}"

    # ------------------------------------------------------------------
    # Connector interface
    # ------------------------------------------------------------------

    def resolve_name(self, name: str, cache_bust: Optional[int] = None) -> NameRecord:
        with self._lock:
            self.resolve_calls.append(name)
        if name in self.failing_names or name not in self.names:
            raise ConnectorError(f"Could not resolve name: {name}")
        return NameRecord(path=self.names[name], as_of=datetime.now(timezone.utc))

    def get_object(self, cid: str) -> Dict[str, Any]:
        with self._lock:
            self.object_calls.append(cid)
        if cid in self.failing_objects or cid not in self.objects:
            raise ConnectorError(f"Object not found: {cid}")
        return json.loads(json.dumps(self.objects[cid]))

    def get_block(self, fingerprint: str) -> bytes:
        with self._lock:
            self.block_calls.append(fingerprint)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.block_delay:
                time.sleep(self.block_delay)
            if fingerprint in self.failing_blocks or fingerprint not in self.blocks:
                raise ConnectorError(f"Block not available: {fingerprint}")
            return self.blocks[fingerprint]
        finally:
            with self._lock:
                self.in_flight -= 1

    def reset_calls(self) -> None:
        """Forget recorded calls."""
        with self._lock:
            self.resolve_calls.clear()
            self.object_calls.clear()
            self.block_calls.clear()
            self.max_in_flight = 0

    def get_name(self) -> str:
        return self.name
