#!/usr/bin/env python3
"""
CLI entry point for the page synchronizer.

Usage:
    pagesync watch --config config/pagesync.yaml
    pagesync sync --ref /ipns/<key>
    pagesync status --database mydb
    pagesync assemble --database mydb --output local/mydb.sqlite3
"""

import argparse
import json
import logging
import signal
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from pagesync.config import SyncConfig
from pagesync.connectors import IpfsHttpConnector
from pagesync.core.errors import PageSyncError
from pagesync.core.models import SnapshotReference
from pagesync.runner import ChangeWatcher, FetchScheduler, RetryPolicy
from pagesync.state import SqliteSyncStateStore
from pagesync.storage import FilePageStore, NamespaceRegistry
from pagesync.sync import ConfigurationLoader, PageSynchronizer, VersionResolver


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    log_level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@dataclass
class Components:
    """Wired-up collaborators for one process."""
    connector: IpfsHttpConnector
    registry: NamespaceRegistry
    scheduler: FetchScheduler
    resolver: VersionResolver
    loader: ConfigurationLoader
    synchronizer: PageSynchronizer

    def close(self) -> None:
        self.scheduler.close()
        self.registry.close()
        self.connector.close()


def build_connector(config: SyncConfig) -> IpfsHttpConnector:
    """Build the content network connector from configuration."""
    network = config.get_network_config()
    return IpfsHttpConnector(
        api_url=network.get("api_url", "http://localhost:8080"),
        gateway_url=network.get("gateway_url", "http://{cid}.ipfs.localhost:8080/"),
        resolve_timeout=network.get("resolve_timeout", 1.0),
        object_timeout=network.get("object_timeout", 5.0),
        block_timeout=network.get("block_timeout", 1.0),
        max_retries=network.get("max_retries", 1),
    )


def build_registry(config: SyncConfig) -> NamespaceRegistry:
    """Build the namespace registry from configuration."""
    storage_config = config.get_storage_config()
    base_dir = Path(storage_config.get("base_dir", "local/pages"))
    fsync = storage_config.get("fsync", True)
    db_path = Path(config.get_state_config().get("db_path", "local/state/sync_state.db"))

    return NamespaceRegistry(
        page_store_factory=lambda namespace: FilePageStore(base_dir, namespace, fsync=fsync),
        sync_state_factory=lambda namespace: SqliteSyncStateStore(db_path, namespace),
    )


def build_components(config: SyncConfig) -> Components:
    """Build every collaborator from configuration."""
    connector = build_connector(config)
    registry = build_registry(config)
    scheduler = FetchScheduler(
        max_concurrent=config.get_scheduler_config().get("max_concurrent", 100)
    )
    return Components(
        connector=connector,
        registry=registry,
        scheduler=scheduler,
        resolver=VersionResolver(
            connector,
            cache_seconds=config.get_network_config().get("resolve_cache_seconds", 15),
        ),
        loader=ConfigurationLoader(connector, registry),
        synchronizer=PageSynchronizer(connector, registry, scheduler),
    )


def build_retry_policy(config: SyncConfig) -> RetryPolicy:
    """Build the watcher retry policy from configuration."""
    watcher = config.get_watcher_config()
    return RetryPolicy(
        interval_seconds=watcher.get("interval_seconds", 5.0),
        backoff_factor=watcher.get("backoff_factor", 1.0),
        max_interval_seconds=watcher.get("max_interval_seconds", 60.0),
        escalate_after=watcher.get("escalate_after", 10),
    )


def make_shutdown_handler(watcher: ChangeWatcher, scheduler: FetchScheduler):
    """
    Build a signal handler that stops the watch loop.

    The scheduler is cancelled too, so queued page fetches of the current
    tick do not start; fetches already in flight finish.
    """
    logger = logging.getLogger(__name__)

    def _handle_shutdown_signal(signum, frame):
        logger.info(f"Received signal {signum}, initiating shutdown...")
        watcher.stop()
        scheduler.cancel()

    return _handle_shutdown_signal


def cmd_watch(config: SyncConfig, reference: str, args) -> int:
    logger = logging.getLogger(__name__)
    components = build_components(config)
    watcher = ChangeWatcher(
        resolver=components.resolver,
        loader=components.loader,
        synchronizer=components.synchronizer,
        reference=reference,
        policy=build_retry_policy(config),
    )

    # Install signal handlers for graceful shutdown (Ctrl+C / SIGTERM)
    original_sigint = signal.getsignal(signal.SIGINT)
    original_sigterm = signal.getsignal(signal.SIGTERM)

    handler = make_shutdown_handler(watcher, components.scheduler)
    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)

    try:
        context = watcher.run(max_ticks=args.max_ticks)
        logger.info(f"Running version: {context.running_version}")
        return 0
    finally:
        signal.signal(signal.SIGINT, original_sigint)
        signal.signal(signal.SIGTERM, original_sigterm)
        components.close()


def cmd_sync(config: SyncConfig, reference: str, args) -> int:
    logger = logging.getLogger(__name__)
    components = build_components(config)
    try:
        snapshot_id = components.resolver.resolve(reference)
        manifest = components.loader.load(snapshot_id)
        report = components.synchronizer.synchronize(manifest)
        logger.info(report.summary())
        if args.json:
            print(json.dumps(report.to_dict(), indent=2))
        return 0
    except PageSyncError as e:
        logger.error(f"Synchronization failed: {e}")
        report = getattr(e, "report", None)
        if report is not None and args.json:
            print(json.dumps(report.to_dict(), indent=2))
        return 1
    finally:
        components.close()


def cmd_status(config: SyncConfig, database: str, args) -> int:
    registry = build_registry(config)
    try:
        stores = registry.open(database)
        metadata = stores.pages.get_metadata()
        status = {
            "database": database,
            "pages_recorded": stores.state.count(),
            "size": metadata.size if metadata else None,
            "total_pages": metadata.total_pages if metadata else None,
            "snapshot_id": metadata.snapshot_id if metadata else None,
        }
        print(json.dumps(status, indent=2))
        return 0
    finally:
        registry.close()


def cmd_assemble(config: SyncConfig, database: str, args) -> int:
    logger = logging.getLogger(__name__)
    registry = build_registry(config)
    try:
        stores = registry.open(database)
        written = stores.pages.assemble(args.output)
        logger.info(f"Wrote {written} bytes to {args.output}")
        return 0
    except PageSyncError as e:
        logger.error(f"Assemble failed: {e}")
        return 1
    finally:
        registry.close()


def parse_args(argv: Optional[list] = None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Incremental page synchronizer for content-addressed database snapshots",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Path to configuration YAML file",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose/debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    watch = subparsers.add_parser("watch", help="Poll the reference and synchronize on change")
    watch.add_argument("--ref", help="Reference to watch (/ipns/<key> or /ipfs/<cid>)")
    watch.add_argument("--max-ticks", type=int, help="Stop after this many polls")

    sync = subparsers.add_parser("sync", help="Synchronize once and exit")
    sync.add_argument("--ref", help="Reference to synchronize (/ipns/<key> or /ipfs/<cid>)")
    sync.add_argument("--json", action="store_true", help="Print the sync report as JSON")

    status = subparsers.add_parser("status", help="Show local state for a database")
    status.add_argument("--database", required=True, help="Database name")

    assemble = subparsers.add_parser("assemble", help="Write local pages out as one database file")
    assemble.add_argument("--database", required=True, help="Database name")
    assemble.add_argument("--output", type=Path, required=True, help="Target file")

    return parser.parse_args(argv)


def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    load_dotenv()
    args = parse_args(argv)

    setup_logging(verbose=args.verbose)
    logger = logging.getLogger(__name__)

    config = SyncConfig(config_path=args.config)
    logger.debug("Configuration loaded")

    try:
        if args.command in ("watch", "sync"):
            reference = args.ref or config.get_reference()
            if not reference:
                logger.error("No reference given (use --ref or set 'reference' in config)")
                return 2
            try:
                SnapshotReference.parse(reference)
            except PageSyncError as e:
                logger.error(str(e))
                return 2
            if args.command == "watch":
                return cmd_watch(config, reference, args)
            return cmd_sync(config, reference, args)

        if args.command == "status":
            return cmd_status(config, args.database, args)
        return cmd_assemble(config, args.database, args)

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 1
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
