"""
Change watcher: polls a snapshot reference and re-synchronizes on change.

Each tick resolves the reference; when the snapshot id differs from the
version last converged on, the manifest is loaded and applied. Ticks run
strictly one after another, so two runs never write the same stores at
the same time. Errors raised inside a tick are logged and counted, never
propagated out of the loop.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Union, TYPE_CHECKING

from ..core.errors import PageSyncError, SynchronizationError
from ..core.models import SnapshotReference, SyncReport

if TYPE_CHECKING:
    from ..sync.configuration_loader import ConfigurationLoader
    from ..sync.page_synchronizer import PageSynchronizer
    from ..sync.version_resolver import VersionResolver


logger = logging.getLogger(__name__)


class WatcherState(str, Enum):
    """Where the watcher is within a tick."""
    IDLE = "idle"
    RESOLVING = "resolving"
    SYNCHRONIZING = "synchronizing"


class TickOutcome(str, Enum):
    """Result of a single tick."""
    UNCHANGED = "unchanged"
    SYNCHRONIZED = "synchronized"
    FAILED = "failed"


@dataclass
class RetryPolicy:
    """
    Polling and escalation policy.

    Attributes:
        interval_seconds: Delay between ticks while healthy
        backoff_factor: Multiplier applied per consecutive failure (1.0 = fixed interval)
        max_interval_seconds: Upper bound on the delay after failures
        escalate_after: Consecutive failed ticks before escalating (0 = never)
    """
    interval_seconds: float = 5.0
    backoff_factor: float = 1.0
    max_interval_seconds: float = 60.0
    escalate_after: int = 10

    def next_delay(self, consecutive_failures: int) -> float:
        """Seconds to wait before the next tick."""
        if consecutive_failures <= 0:
            return self.interval_seconds
        delay = self.interval_seconds * (self.backoff_factor ** consecutive_failures)
        return min(delay, max(self.max_interval_seconds, self.interval_seconds))


@dataclass
class WatchContext:
    """Mutable state carried from tick to tick."""
    reference: SnapshotReference
    running_version: Optional[str] = None
    state: WatcherState = WatcherState.IDLE
    ticks: int = 0
    synchronizations: int = 0
    consecutive_failures: int = 0
    total_failures: int = 0
    escalated: bool = False
    last_error: Optional[str] = None
    last_report: Optional[SyncReport] = None
    last_tick_at: Optional[datetime] = None


class ChangeWatcher:
    """
    Drives resolve -> load -> synchronize on a timer.

    ``running_version`` only moves after a fully successful synchronize, so
    a failed target is retried on the next tick.
    """

    def __init__(
        self,
        resolver: "VersionResolver",
        loader: "ConfigurationLoader",
        synchronizer: "PageSynchronizer",
        reference: Union[SnapshotReference, str],
        policy: Optional[RetryPolicy] = None,
        on_report: Optional[Callable[[SyncReport], None]] = None,
        on_escalation: Optional[Callable[[WatchContext], None]] = None,
    ):
        """
        Initialize the watcher.

        Args:
            resolver: Resolves the reference each tick
            loader: Loads the manifest of a new snapshot
            synchronizer: Applies the manifest
            reference: Reference to watch; parsed eagerly so a malformed one fails fast
            policy: Polling/escalation policy (defaults if not provided)
            on_report: Called with the report of every successful run
            on_escalation: Called once per failure streak reaching ``escalate_after``
        """
        if not isinstance(reference, SnapshotReference):
            reference = SnapshotReference.parse(reference)

        self.resolver = resolver
        self.loader = loader
        self.synchronizer = synchronizer
        self.policy = policy or RetryPolicy()
        self.on_report = on_report
        self.on_escalation = on_escalation
        self.context = WatchContext(reference=reference)
        self._stop_event = threading.Event()

    @property
    def running_version(self) -> Optional[str]:
        return self.context.running_version

    def tick(self) -> TickOutcome:
        """Run one resolve/compare/synchronize pass."""
        ctx = self.context
        ctx.ticks += 1
        ctx.last_tick_at = datetime.now(timezone.utc)

        try:
            ctx.state = WatcherState.RESOLVING
            logger.debug(f"Checking for changes in {ctx.reference}")
            snapshot_id = self.resolver.resolve(ctx.reference)

            if snapshot_id == ctx.running_version:
                self._record_success()
                return TickOutcome.UNCHANGED

            logger.info(f"New version found: {snapshot_id} (running: {ctx.running_version})")
            ctx.state = WatcherState.SYNCHRONIZING
            manifest = self.loader.load(snapshot_id)
            report = self.synchronizer.synchronize(manifest)

            ctx.running_version = snapshot_id
            ctx.synchronizations += 1
            ctx.last_report = report
            self._record_success()
            logger.info(f"Now running {snapshot_id}\n{report.summary()}")
            self._notify_report(report)
            return TickOutcome.SYNCHRONIZED

        except SynchronizationError as e:
            ctx.last_report = e.report
            self._record_failure(e)
            return TickOutcome.FAILED
        except PageSyncError as e:
            self._record_failure(e)
            return TickOutcome.FAILED
        except Exception as e:
            logger.exception(f"Unexpected error during tick {ctx.ticks}")
            self._record_failure(e)
            return TickOutcome.FAILED
        finally:
            ctx.state = WatcherState.IDLE

    def run(
        self,
        stop_event: Optional[threading.Event] = None,
        max_ticks: Optional[int] = None,
    ) -> WatchContext:
        """
        Tick until stopped.

        Args:
            stop_event: Event that ends the loop when set (``stop()`` sets it too)
            max_ticks: Stop after this many ticks (None = run forever)

        Returns:
            The final WatchContext
        """
        if stop_event is not None:
            self._stop_event = stop_event

        logger.info(
            f"Watching {self.context.reference} every {self.policy.interval_seconds}s"
        )

        while not self._stop_event.is_set():
            self.tick()
            if max_ticks is not None and self.context.ticks >= max_ticks:
                break
            self._stop_event.wait(self.policy.next_delay(self.context.consecutive_failures))

        logger.info(
            f"Watcher stopped after {self.context.ticks} ticks, "
            f"{self.context.synchronizations} synchronizations"
        )
        return self.context

    def stop(self) -> None:
        """Ask the loop to exit after the current tick."""
        logger.info("Stopping watcher...")
        self._stop_event.set()

    def _record_success(self) -> None:
        ctx = self.context
        if ctx.consecutive_failures:
            logger.info(f"Recovered after {ctx.consecutive_failures} failed ticks")
        ctx.consecutive_failures = 0
        ctx.escalated = False
        ctx.last_error = None

    def _record_failure(self, error: Exception) -> None:
        ctx = self.context
        ctx.consecutive_failures += 1
        ctx.total_failures += 1
        ctx.last_error = str(error)
        logger.error(f"Tick {ctx.ticks} failed ({type(error).__name__}): {error}")

        threshold = self.policy.escalate_after
        if threshold and ctx.consecutive_failures >= threshold and not ctx.escalated:
            ctx.escalated = True
            logger.critical(
                f"{ctx.consecutive_failures} consecutive failed ticks for "
                f"{ctx.reference}; last error: {error}"
            )
            if self.on_escalation:
                try:
                    self.on_escalation(ctx)
                except Exception:
                    logger.exception("Escalation hook failed")

    def _notify_report(self, report: SyncReport) -> None:
        if self.on_report:
            try:
                self.on_report(report)
            except Exception:
                logger.exception("Report hook failed")
