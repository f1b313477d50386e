"""
Shared test fixtures and configuration for pytest.
"""

import logging
import sys
from pathlib import Path
from typing import Callable, List, Tuple

import pytest

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from pagesync.connectors import InMemoryConnector
from pagesync.core.models import Manifest
from pagesync.runner import FetchScheduler
from pagesync.state import SqliteSyncStateStore
from pagesync.storage import FilePageStore, NamespaceRegistry
from pagesync.sync import PageSynchronizer


logger = logging.getLogger(__name__)


PAGE_SIZE = 64


# ============================================================================
# Pytest hooks
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "slow: Tests that take a long time to run")


# ============================================================================
# Helpers
# ============================================================================

def page_bytes(fingerprint: str) -> bytes:
    """Deterministic fixed-size page content for a fingerprint."""
    return fingerprint.encode("utf-8").ljust(PAGE_SIZE, b"\0")


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def connector() -> InMemoryConnector:
    """In-memory connector with no published content."""
    return InMemoryConnector()


@pytest.fixture
def registry(tmp_path):
    """Registry backed by file pages and SQLite state under tmp_path."""
    reg = NamespaceRegistry(
        page_store_factory=lambda ns: FilePageStore(tmp_path / "pages", ns, fsync=False),
        sync_state_factory=lambda ns: SqliteSyncStateStore(tmp_path / "state" / "sync_state.db", ns),
    )
    yield reg
    reg.close()


@pytest.fixture
def scheduler():
    """Fetch scheduler with a small concurrency limit."""
    sched = FetchScheduler(max_concurrent=4)
    yield sched
    sched.close()


@pytest.fixture
def synchronizer(connector, registry, scheduler) -> PageSynchronizer:
    return PageSynchronizer(connector, registry, scheduler)


@pytest.fixture
def make_manifest(connector) -> Callable[..., Manifest]:
    """
    Build a manifest from fingerprints and make every page fetchable.

    Page content is derived from the fingerprint, so equal fingerprints
    always mean equal bytes.
    """
    def _make(fingerprints: List[str], name: str = "testdb", snapshot_id: str = "snap-1") -> Manifest:
        for fingerprint in fingerprints:
            connector.add_block(page_bytes(fingerprint), fingerprint)
        return Manifest.from_fingerprints(name, fingerprints, snapshot_id=snapshot_id)

    return _make


@pytest.fixture
def publish(connector) -> Callable[..., str]:
    """Publish a snapshot through the in-memory connector; returns its id."""
    def _publish(fingerprints: List[str], name: str = "testdb") -> str:
        pages: List[Tuple[str, bytes]] = [(fp, page_bytes(fp)) for fp in fingerprints]
        return connector.publish(name, pages)

    return _publish
