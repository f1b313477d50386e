"""
Connectors package for the content network.
"""

from .http import IpfsHttpConnector
from .memory_connector import InMemoryConnector, content_id

__all__ = [
    "IpfsHttpConnector",
    "InMemoryConnector",
    "content_id",
]
