"""
Runner module for scheduling fetches and driving the watch loop.
"""

from .fetch_scheduler import FetchScheduler
from .change_watcher import ChangeWatcher, RetryPolicy, TickOutcome, WatchContext, WatcherState

__all__ = [
    "FetchScheduler",
    "ChangeWatcher",
    "RetryPolicy",
    "TickOutcome",
    "WatchContext",
    "WatcherState",
]
