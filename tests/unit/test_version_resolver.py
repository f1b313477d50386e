"""
Unit tests for the version resolver.
"""

from unittest.mock import Mock

import pytest

from pagesync.core.connector import NameRecord
from pagesync.core.errors import ConnectorError, ResolutionError, ResolutionFailure
from pagesync.core.models import SnapshotReference
from pagesync.sync.version_resolver import VersionResolver


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def naming_connector():
    connector = Mock()
    connector.resolve_name.return_value = NameRecord(path="/ipfs/snapA")
    return connector


class TestImmutableReferences:

    def test_returns_cid_without_lookup(self, naming_connector):
        resolver = VersionResolver(naming_connector)

        assert resolver.resolve("/ipfs/bafyabc") == "bafyabc"
        naming_connector.resolve_name.assert_not_called()

    def test_accepts_parsed_reference(self, naming_connector):
        resolver = VersionResolver(naming_connector)
        reference = SnapshotReference.parse("/ipfs/bafyabc")

        assert resolver.resolve(reference) == "bafyabc"


class TestMutableReferences:

    def test_resolves_through_naming_service(self, naming_connector):
        resolver = VersionResolver(naming_connector, clock=FakeClock(100.0))

        assert resolver.resolve("/ipns/mykey") == "snapA"
        naming_connector.resolve_name.assert_called_once_with("mykey", cache_bust=6)

    def test_lookups_cached_within_bucket(self, naming_connector):
        clock = FakeClock(90.0)
        resolver = VersionResolver(naming_connector, cache_seconds=15, clock=clock)

        resolver.resolve("/ipns/mykey")
        clock.now = 104.9
        resolver.resolve("/ipns/mykey")
        assert naming_connector.resolve_name.call_count == 1

        clock.now = 105.0
        naming_connector.resolve_name.return_value = NameRecord(path="/ipfs/snapB")
        assert resolver.resolve("/ipns/mykey") == "snapB"
        assert naming_connector.resolve_name.call_count == 2

    def test_caching_disabled(self, naming_connector):
        resolver = VersionResolver(naming_connector, cache_seconds=0)

        resolver.resolve("/ipns/mykey")
        resolver.resolve("/ipns/mykey")

        assert naming_connector.resolve_name.call_count == 2
        naming_connector.resolve_name.assert_called_with("mykey", cache_bust=None)

    def test_unavailable_is_transient(self, naming_connector):
        naming_connector.resolve_name.side_effect = ConnectorError("timed out")
        resolver = VersionResolver(naming_connector)

        with pytest.raises(ResolutionError) as exc_info:
            resolver.resolve("/ipns/mykey")

        assert exc_info.value.reason == ResolutionFailure.UNAVAILABLE
        assert exc_info.value.transient

    def test_failures_are_not_cached(self, naming_connector):
        clock = FakeClock(100.0)
        naming_connector.resolve_name.side_effect = [ConnectorError("timed out"), NameRecord("/ipfs/snapA")]
        resolver = VersionResolver(naming_connector, clock=clock)

        with pytest.raises(ResolutionError):
            resolver.resolve("/ipns/mykey")
        assert resolver.resolve("/ipns/mykey") == "snapA"

    @pytest.mark.parametrize("path", ["", "garbage", "/ipns/other", "/ipfs/"])
    def test_bad_resolved_path_is_malformed(self, naming_connector, path):
        naming_connector.resolve_name.return_value = NameRecord(path=path)
        resolver = VersionResolver(naming_connector)

        with pytest.raises(ResolutionError) as exc_info:
            resolver.resolve("/ipns/mykey")

        assert exc_info.value.reason == ResolutionFailure.MALFORMED
        assert not exc_info.value.transient


class TestMalformedReferences:

    @pytest.mark.parametrize("reference", ["", "ipfs/abc", "/http/abc", "/ipns/", "/ipfs"])
    def test_malformed_reference_fails_fast(self, naming_connector, reference):
        resolver = VersionResolver(naming_connector)

        with pytest.raises(ResolutionError) as exc_info:
            resolver.resolve(reference)

        assert exc_info.value.reason == ResolutionFailure.MALFORMED
        naming_connector.resolve_name.assert_not_called()
