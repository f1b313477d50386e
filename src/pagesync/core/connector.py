"""
Connector interface for talking to the content network.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass
class NameRecord:
    """
    Result of resolving a mutable name.

    Attributes:
        path: Resolved path, e.g. ``/ipfs/<cid>``
        as_of: When the naming service answered
    """
    path: str
    as_of: Optional[datetime] = None


@dataclass
class ConnectorResponse:
    """
    Raw response from a connector request.

    Attributes:
        status_code: HTTP status code (0 when no response was received)
        content: Response body
        headers: Response headers
        duration_ms: Time taken for the request in milliseconds
    """
    status_code: int
    content: bytes = b""
    headers: Optional[Dict[str, str]] = None
    duration_ms: Optional[int] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class Connector(ABC):
    """
    Abstract base class for content network connectors.

    Every call is bounded by a timeout owned by the connector. Failures are
    raised as ``ConnectorError``; callers translate them into the error of
    their own stage.
    """

    @abstractmethod
    def resolve_name(self, name: str, cache_bust: Optional[int] = None) -> NameRecord:
        """
        Resolve a mutable name to its current path.

        Args:
            name: The name key (without the ``/ipns/`` prefix)
            cache_bust: Optional value appended to defeat intermediate caches

        Returns:
            NameRecord with the resolved path

        Raises:
            ConnectorError if the lookup fails or times out
        """
        pass

    @abstractmethod
    def get_object(self, cid: str) -> Dict[str, Any]:
        """
        Fetch a structured (JSON) object by content id.

        Raises:
            ConnectorError if the fetch fails or times out
        """
        pass

    @abstractmethod
    def get_block(self, fingerprint: str) -> bytes:
        """
        Fetch raw bytes addressed by fingerprint.

        Raises:
            ConnectorError if the fetch fails or times out
        """
        pass

    @abstractmethod
    def get_name(self) -> str:
        """Return the connector name/identifier."""
        pass

    def close(self) -> None:
        """Close any open resources. Optional."""
        pass
