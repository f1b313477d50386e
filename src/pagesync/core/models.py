"""
Core data models for the page synchronizer.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import ResolutionError, ResolutionFailure


METADATA_KEY = -1


class ReferenceKind(str, Enum):
    """Kind of snapshot reference."""
    MUTABLE = "ipns"
    IMMUTABLE = "ipfs"


@dataclass(frozen=True)
class SnapshotReference:
    """
    Reference to a snapshot on the content network.

    Attributes:
        kind: MUTABLE for a name pointer, IMMUTABLE for a snapshot id
        key: The name (MUTABLE) or snapshot id (IMMUTABLE)
    """
    kind: ReferenceKind
    key: str

    @classmethod
    def parse(cls, path: str) -> "SnapshotReference":
        """
        Parse a path such as ``/ipns/<name>`` or ``/ipfs/<cid>``.

        Raises:
            ResolutionError: If the path is not a recognised reference
        """
        if not isinstance(path, str):
            raise ResolutionError(
                f"Reference must be a string, got {type(path).__name__}",
                reason=ResolutionFailure.MALFORMED,
            )

        parts = path.strip().split("/")
        if len(parts) < 3 or parts[0] != "":
            raise ResolutionError(
                f"Invalid reference: {path!r}",
                reason=ResolutionFailure.MALFORMED,
            )

        protocol, key = parts[1], parts[2]
        try:
            kind = ReferenceKind(protocol)
        except ValueError:
            raise ResolutionError(
                f"Invalid protocol: {protocol}",
                reason=ResolutionFailure.MALFORMED,
            ) from None

        if not key:
            raise ResolutionError(
                f"Reference has no key: {path!r}",
                reason=ResolutionFailure.MALFORMED,
            )

        return cls(kind=kind, key=key)

    @property
    def is_mutable(self) -> bool:
        return self.kind == ReferenceKind.MUTABLE

    def __str__(self) -> str:
        return f"/{self.kind.value}/{self.key}"


@dataclass(frozen=True)
class Manifest:
    """
    Ordered list of page fingerprints describing one snapshot.

    The index of a fingerprint in ``page_fingerprints`` is its page number.

    Attributes:
        name: Database name, used to derive local namespaces
        total_pages: Number of pages in the logical file
        page_fingerprints: One content fingerprint per page
        snapshot_id: Id of the version-index object the manifest came from
    """
    name: str
    total_pages: int
    page_fingerprints: List[str]
    snapshot_id: Optional[str] = None

    def __post_init__(self):
        if self.total_pages < 0:
            raise ValueError(f"total_pages must be non-negative: {self.total_pages}")
        if len(self.page_fingerprints) != self.total_pages:
            raise ValueError(
                f"Manifest {self.name!r} declares {self.total_pages} pages "
                f"but carries {len(self.page_fingerprints)} fingerprints"
            )
        for page_number, fingerprint in enumerate(self.page_fingerprints):
            if not fingerprint:
                raise ValueError(
                    f"Manifest {self.name!r} has no fingerprint for page {page_number}"
                )

    @classmethod
    def from_fingerprints(
        cls,
        name: str,
        fingerprints: List[str],
        snapshot_id: Optional[str] = None,
    ) -> "Manifest":
        """Build a manifest whose page count is the number of fingerprints."""
        return cls(
            name=name,
            total_pages=len(fingerprints),
            page_fingerprints=list(fingerprints),
            snapshot_id=snapshot_id,
        )


@dataclass
class DatabaseMetadata:
    """
    Record derived from page 0, stored under ``METADATA_KEY``.

    Attributes:
        size: Logical file size (length of page 0 times total pages)
        total_pages: Page count the size was computed from
        snapshot_id: Snapshot the record was written for
    """
    size: int
    total_pages: int
    snapshot_id: Optional[str] = None

    @classmethod
    def for_page_zero(
        cls,
        page_size: int,
        total_pages: int,
        snapshot_id: Optional[str],
    ) -> "DatabaseMetadata":
        return cls(
            size=page_size * total_pages,
            total_pages=total_pages,
            snapshot_id=snapshot_id,
        )

    def to_bytes(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps(
            {"size": self.size, "total_pages": self.total_pages, "cid": self.snapshot_id},
            sort_keys=True,
        ).encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> "DatabaseMetadata":
        """Deserialize from JSON bytes."""
        raw = json.loads(data.decode("utf-8"))
        return cls(
            size=int(raw["size"]),
            total_pages=int(raw.get("total_pages", 0)),
            snapshot_id=raw.get("cid"),
        )

    def matches(self, manifest: Manifest) -> bool:
        """Whether this record already describes the given manifest."""
        return (
            self.total_pages == manifest.total_pages
            and self.snapshot_id == manifest.snapshot_id
        )


@dataclass
class SyncReport:
    """Report of a synchronization run."""
    database: str
    snapshot_id: Optional[str]
    started_at: datetime
    completed_at: Optional[datetime] = None

    pages_total: int = 0
    pages_skipped: int = 0
    pages_fetched: int = 0
    bytes_written: int = 0
    metadata_written: bool = False

    # page number -> error message
    failed_pages: Dict[int, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return not self.failed_pages

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "database": self.database,
            "snapshot_id": self.snapshot_id,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "pages": {
                "total": self.pages_total,
                "skipped": self.pages_skipped,
                "fetched": self.pages_fetched,
                "failed": len(self.failed_pages),
            },
            "bytes_written": self.bytes_written,
            "metadata_written": self.metadata_written,
            "failed_pages": {str(k): v for k, v in sorted(self.failed_pages.items())},
        }

    def summary(self) -> str:
        """Get a human-readable summary."""
        lines = [
            f"Sync Report ({self.database} @ {self.snapshot_id})",
            f"  Duration: {(self.completed_at - self.started_at).total_seconds():.1f}s" if self.completed_at else "",
            f"  Pages: {self.pages_total}",
            f"    Fetched: {self.pages_fetched}",
            f"    Skipped: {self.pages_skipped}",
            f"    Failed: {len(self.failed_pages)}",
            f"  Bytes written: {self.bytes_written}",
        ]
        return "\n".join(lines)

    def finish(self) -> "SyncReport":
        self.completed_at = datetime.now(timezone.utc)
        return self
