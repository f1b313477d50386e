"""
Unit tests for core data models.
"""

from datetime import datetime, timezone

import pytest

from pagesync.core.errors import ResolutionError, ResolutionFailure
from pagesync.core.models import (
    DatabaseMetadata,
    Manifest,
    ReferenceKind,
    SnapshotReference,
    SyncReport,
)


class TestSnapshotReference:

    def test_parse_mutable(self):
        reference = SnapshotReference.parse("/ipns/k2k4r8key")

        assert reference.kind == ReferenceKind.MUTABLE
        assert reference.key == "k2k4r8key"
        assert reference.is_mutable
        assert str(reference) == "/ipns/k2k4r8key"

    def test_parse_immutable_ignores_subpath(self):
        reference = SnapshotReference.parse("/ipfs/bafyabc/extra")

        assert reference.kind == ReferenceKind.IMMUTABLE
        assert reference.key == "bafyabc"
        assert not reference.is_mutable

    def test_parse_rejects_non_strings(self):
        with pytest.raises(ResolutionError) as exc_info:
            SnapshotReference.parse(None)

        assert exc_info.value.reason == ResolutionFailure.MALFORMED


class TestManifest:

    def test_page_count_must_match(self):
        with pytest.raises(ValueError):
            Manifest(name="db", total_pages=3, page_fingerprints=["a", "b"])

    def test_no_gaps_allowed(self):
        with pytest.raises(ValueError):
            Manifest(name="db", total_pages=3, page_fingerprints=["a", "", "c"])

    def test_negative_page_count(self):
        with pytest.raises(ValueError):
            Manifest(name="db", total_pages=-1, page_fingerprints=[])

    def test_from_fingerprints(self):
        manifest = Manifest.from_fingerprints("db", ("a", "b"), snapshot_id="snap")

        assert manifest.total_pages == 2
        assert manifest.page_fingerprints == ["a", "b"]
        assert manifest.snapshot_id == "snap"


class TestDatabaseMetadata:

    def test_size_is_page_zero_length_times_pages(self):
        metadata = DatabaseMetadata.for_page_zero(4096, 25, "snap")

        assert metadata.size == 102400

    def test_matches_manifest(self):
        metadata = DatabaseMetadata.for_page_zero(4096, 2, "snap")

        assert metadata.matches(Manifest.from_fingerprints("db", ["a", "b"], "snap"))
        assert not metadata.matches(Manifest.from_fingerprints("db", ["a", "b", "c"], "snap"))
        assert not metadata.matches(Manifest.from_fingerprints("db", ["a", "b"], "other"))

    def test_serialized_record_keeps_cid_field(self):
        data = DatabaseMetadata(size=10, total_pages=1, snapshot_id="snap").to_bytes()

        assert b'"cid": "snap"' in data
        assert DatabaseMetadata.from_bytes(data).snapshot_id == "snap"


class TestSyncReport:

    def test_to_dict_and_summary(self):
        report = SyncReport(
            database="db",
            snapshot_id="snap",
            started_at=datetime.now(timezone.utc),
            pages_total=4,
            pages_fetched=3,
            pages_skipped=0,
        )
        report.failed_pages[2] = "timed out"
        report.finish()

        as_dict = report.to_dict()

        assert not report.succeeded
        assert as_dict["pages"] == {"total": 4, "skipped": 0, "fetched": 3, "failed": 1}
        assert as_dict["failed_pages"] == {"2": "timed out"}
        assert "Failed: 1" in report.summary()
