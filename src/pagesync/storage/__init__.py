"""
Storage implementations for persisting pages locally.
"""

from .file_page_store import FilePageStore
from .registry import DatabaseStores, NamespaceRegistry, page_namespace, state_namespace

__all__ = [
    "FilePageStore",
    "DatabaseStores",
    "NamespaceRegistry",
    "page_namespace",
    "state_namespace",
]
