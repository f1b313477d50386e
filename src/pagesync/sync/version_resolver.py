"""
Resolves snapshot references to immutable snapshot ids.
"""

import logging
import math
import threading
import time
from typing import Callable, Dict, Optional, Tuple, Union

from ..core.connector import Connector
from ..core.errors import ConnectorError, ResolutionError, ResolutionFailure
from ..core.models import ReferenceKind, SnapshotReference


logger = logging.getLogger(__name__)


DEFAULT_CACHE_SECONDS = 15


class VersionResolver:
    """
    Turns a SnapshotReference into a snapshot id.

    Immutable references are returned as-is. Mutable references are looked
    up through the connector's naming service. Lookups are cached in time
    buckets of ``cache_seconds``: within one bucket the same name is looked
    up at most once. The bucket number also goes to the naming service as a
    cache-bust value.
    """

    def __init__(
        self,
        connector: Connector,
        cache_seconds: float = DEFAULT_CACHE_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the resolver.

        Args:
            connector: Connector providing name resolution
            cache_seconds: Width of a cache bucket in seconds (0 disables caching)
            clock: Returns the current time in seconds
        """
        self.connector = connector
        self.cache_seconds = cache_seconds
        self.clock = clock
        # name -> (bucket, snapshot id)
        self._cache: Dict[str, Tuple[int, str]] = {}
        self._lock = threading.Lock()

    def resolve(self, reference: Union[SnapshotReference, str]) -> str:
        """
        Resolve a reference to a snapshot id.

        Raises:
            ResolutionError: MALFORMED for a bad reference or resolved path,
                UNAVAILABLE when the naming service cannot be reached
        """
        if not isinstance(reference, SnapshotReference):
            reference = SnapshotReference.parse(reference)

        if reference.kind == ReferenceKind.IMMUTABLE:
            return reference.key

        bucket = self._bucket()
        if bucket is not None:
            with self._lock:
                cached = self._cache.get(reference.key)
            if cached and cached[0] == bucket:
                logger.debug(f"Using cached resolution for {reference}: {cached[1]}")
                return cached[1]

        try:
            record = self.connector.resolve_name(reference.key, cache_bust=bucket)
        except ConnectorError as e:
            raise ResolutionError(
                f"Name resolution failed for {reference}: {e}",
                reason=ResolutionFailure.UNAVAILABLE,
            ) from e

        snapshot_id = self._snapshot_id_from_path(record.path)
        logger.debug(f"Resolved {reference} -> {snapshot_id}")

        if bucket is not None:
            with self._lock:
                self._cache[reference.key] = (bucket, snapshot_id)

        return snapshot_id

    def _bucket(self) -> Optional[int]:
        if self.cache_seconds <= 0:
            return None
        return math.floor(self.clock() / self.cache_seconds)

    def _snapshot_id_from_path(self, path: str) -> str:
        """Extract the snapshot id from a resolved ``/ipfs/<cid>`` path."""
        try:
            resolved = SnapshotReference.parse(path)
        except ResolutionError as e:
            raise ResolutionError(
                f"Naming service returned an invalid path: {path!r}",
                reason=ResolutionFailure.MALFORMED,
            ) from e

        if resolved.kind != ReferenceKind.IMMUTABLE:
            raise ResolutionError(
                f"Naming service returned a mutable path: {path!r}",
                reason=ResolutionFailure.MALFORMED,
            )
        return resolved.key
