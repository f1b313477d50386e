"""
Page synchronizer: converges local pages to a manifest.

For every page whose recorded fingerprint differs from the manifest, the
page is fetched by fingerprint, written to the page store, and only then
recorded in the sync state. Page 0 is handled in-line before any other
page is scheduled because it also yields the database size record.
"""

import logging
from concurrent.futures import CancelledError, Future
from datetime import datetime, timezone
from typing import Dict

from ..core.connector import Connector
from ..core.errors import ConnectorError, PageFetchError, PageSyncError, SynchronizationError
from ..core.models import DatabaseMetadata, Manifest, SyncReport
from ..runner.fetch_scheduler import FetchScheduler
from ..storage.registry import DatabaseStores, NamespaceRegistry


logger = logging.getLogger(__name__)


class PageSynchronizer:
    """
    Applies manifests to the local stores of their database.

    ``synchronize()`` is idempotent: pages whose recorded fingerprint
    already matches are neither fetched nor written. A failed run keeps the
    pages it committed; the next run fetches only what is still stale.
    """

    def __init__(
        self,
        connector: Connector,
        registry: NamespaceRegistry,
        scheduler: FetchScheduler,
    ):
        """
        Initialize the synchronizer.

        Args:
            connector: Connector used to fetch page bytes by fingerprint
            registry: Registry providing the stores for each database
            scheduler: Shared scheduler bounding concurrent page fetches
        """
        self.connector = connector
        self.registry = registry
        self.scheduler = scheduler

    def synchronize(self, manifest: Manifest) -> SyncReport:
        """
        Converge the local copy of ``manifest.name`` to the manifest.

        Returns:
            SyncReport for the run

        Raises:
            SynchronizationError if any page failed; the report lists them
        """
        stores = self.registry.open(manifest.name)
        report = SyncReport(
            database=manifest.name,
            snapshot_id=manifest.snapshot_id,
            started_at=datetime.now(timezone.utc),
            pages_total=manifest.total_pages,
        )

        logger.info(
            f"Starting restore of {manifest.name} "
            f"({manifest.total_pages} pages, snapshot {manifest.snapshot_id})"
        )

        if manifest.total_pages > 0:
            try:
                self._sync_page_zero(stores, manifest, report)
            except PageSyncError as e:
                report.failed_pages[0] = str(e)
                report.finish()
                logger.error(f"Page 0 of {manifest.name} failed, aborting run: {e}")
                raise SynchronizationError(
                    f"Restore of {manifest.name} failed at page 0: {e}", report
                ) from e

        in_progress: Dict[int, Future] = {}
        for page_number in range(1, manifest.total_pages):
            fingerprint = manifest.page_fingerprints[page_number]
            if stores.state.get(page_number) == fingerprint:
                report.pages_skipped += 1
                continue
            try:
                in_progress[page_number] = self.scheduler.schedule(
                    lambda n=page_number, fp=fingerprint: self._sync_page(stores, n, fp)
                )
            except RuntimeError as e:
                report.failed_pages[page_number] = str(e)

        for page_number, future in in_progress.items():
            try:
                report.bytes_written += future.result()
                report.pages_fetched += 1
            except CancelledError:
                report.failed_pages[page_number] = "cancelled before start"
            except Exception as e:
                report.failed_pages[page_number] = str(e)
                logger.warning(f"Page {page_number} of {manifest.name} failed: {e}")

        report.finish()
        if report.failed_pages:
            logger.error(
                f"Restore of {manifest.name} incomplete: "
                f"{len(report.failed_pages)} of {manifest.total_pages} pages failed"
            )
            raise SynchronizationError(
                f"{len(report.failed_pages)} pages of {manifest.name} failed", report
            )

        logger.info(
            f"Completed restore of {manifest.name}: fetched {report.pages_fetched}, "
            f"skipped {report.pages_skipped}"
        )
        return report

    def _sync_page_zero(self, stores: DatabaseStores, manifest: Manifest, report: SyncReport) -> None:
        """
        Bring page 0 and the size record up to date.

        The size record is written before page 0 and before any other page
        is scheduled.
        """
        fingerprint = manifest.page_fingerprints[0]

        if stores.state.get(0) == fingerprint:
            metadata = stores.pages.get_metadata()
            if metadata is not None and metadata.matches(manifest):
                report.pages_skipped += 1
                return

            stored = stores.pages.get(0)
            if stored is not None:
                stores.pages.put_metadata(
                    DatabaseMetadata.for_page_zero(len(stored), manifest.total_pages, manifest.snapshot_id)
                )
                report.metadata_written = True
                report.pages_skipped += 1
                return

            logger.warning(f"Page 0 of {manifest.name} is recorded but missing locally; refetching")

        data = self._fetch_page(0, fingerprint)
        stores.pages.put_metadata(
            DatabaseMetadata.for_page_zero(len(data), manifest.total_pages, manifest.snapshot_id)
        )
        report.metadata_written = True
        self._commit(stores, 0, fingerprint, data)
        report.pages_fetched += 1
        report.bytes_written += len(data)

    def _sync_page(self, stores: DatabaseStores, page_number: int, fingerprint: str) -> int:
        data = self._fetch_page(page_number, fingerprint)
        self._commit(stores, page_number, fingerprint, data)
        return len(data)

    def _fetch_page(self, page_number: int, fingerprint: str) -> bytes:
        try:
            return self.connector.get_block(fingerprint)
        except ConnectorError as e:
            raise PageFetchError(
                f"Failed to fetch page {page_number} ({fingerprint}): {e}",
                page_number=page_number,
                fingerprint=fingerprint,
            ) from e

    def _commit(self, stores: DatabaseStores, page_number: int, fingerprint: str, data: bytes) -> None:
        # Bytes first: a crash between the two leaves the state stale, never ahead
        stores.pages.put(page_number, data)
        stores.state.set(page_number, fingerprint)
        logger.debug(f"Page Number {page_number} saved ({len(data)} bytes)")
