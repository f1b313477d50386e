"""
Synchronization pipeline: resolve a reference, load its manifest, apply it.
"""

from .configuration_loader import ConfigurationLoader, LinkEncoding, PageLink
from .page_synchronizer import PageSynchronizer
from .version_resolver import VersionResolver

__all__ = [
    "ConfigurationLoader",
    "LinkEncoding",
    "PageLink",
    "PageSynchronizer",
    "VersionResolver",
]
