"""
Sync state store implementations.
"""

from .sqlite_store import SqliteSyncStateStore

__all__ = ["SqliteSyncStateStore"]
