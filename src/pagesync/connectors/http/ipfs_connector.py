"""
HTTP connector for an IPFS node's API and gateway.
"""

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from ...core.connector import Connector, ConnectorResponse, NameRecord
from ...core.errors import ConnectorError


logger = logging.getLogger(__name__)


class IpfsHttpConnector(Connector):
    """
    Connector for a local IPFS node.

    Uses three endpoints:
    - ``{api_url}/api/v0/name/resolve/<name>`` for name resolution
    - ``{api_url}/api/v0/dag/get?arg=<cid>`` for structured objects
    - ``gateway_url`` (with ``{cid}`` substituted) for raw page bytes

    Each kind of call has its own timeout. Failed calls are retried with
    exponential backoff up to ``max_retries`` attempts in total.
    """

    def __init__(
        self,
        name: str = "ipfs",
        api_url: str = "http://localhost:8080",
        gateway_url: str = "http://{cid}.ipfs.localhost:8080/",
        resolve_timeout: float = 1.0,
        object_timeout: float = 5.0,
        block_timeout: float = 1.0,
        max_retries: int = 1,
        user_agent: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the IPFS connector.

        Args:
            name: Connector name
            api_url: Base URL of the node's HTTP API
            gateway_url: URL template for raw content, containing ``{cid}``
            resolve_timeout: Timeout in seconds for name resolution
            object_timeout: Timeout in seconds for object fetches
            block_timeout: Timeout in seconds for page fetches
            max_retries: Total attempts per request
            user_agent: Custom User-Agent header
            session: Optional pre-built requests session
        """
        if "{cid}" not in gateway_url:
            raise ValueError(f"gateway_url must contain '{{cid}}': {gateway_url}")

        self.name = name
        self.api_url = api_url.rstrip("/")
        self.gateway_url = gateway_url
        self.resolve_timeout = resolve_timeout
        self.object_timeout = object_timeout
        self.block_timeout = block_timeout
        self.max_retries = max(1, max_retries)
        self.user_agent = user_agent or "pagesync/0.1"
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", self.user_agent)

    def resolve_name(self, name: str, cache_bust: Optional[int] = None) -> NameRecord:
        url = f"{self.api_url}/api/v0/name/resolve/{quote(name, safe='')}"
        params = {"cacheBust": cache_bust} if cache_bust is not None else None

        response = self._get(url, timeout=self.resolve_timeout, params=params)
        payload = self._parse_json(url, response)

        path = payload.get("Path")
        if not path:
            raise ConnectorError(
                f"Name resolution for {name} returned no Path", url=url,
                status_code=response.status_code,
            )
        return NameRecord(path=path, as_of=datetime.now(timezone.utc))

    def get_object(self, cid: str) -> Dict[str, Any]:
        url = f"{self.api_url}/api/v0/dag/get"
        response = self._get(url, timeout=self.object_timeout, params={"arg": cid})
        return self._parse_json(url, response)

    def get_block(self, fingerprint: str) -> bytes:
        url = self.gateway_url.format(cid=fingerprint)
        response = self._get(url, timeout=self.block_timeout)
        return response.content

    def _get(
        self,
        url: str,
        timeout: float,
        params: Optional[Dict[str, Any]] = None,
    ) -> ConnectorResponse:
        """
        Issue a GET with retries.

        Raises:
            ConnectorError if every attempt fails or the status is not 2xx
        """
        last_error = None
        for attempt in range(self.max_retries):
            try:
                start_time = time.time()
                response = self.session.get(url, params=params, timeout=timeout)
                duration_ms = int((time.time() - start_time) * 1000)

                result = ConnectorResponse(
                    status_code=response.status_code,
                    content=response.content,
                    headers=dict(response.headers),
                    duration_ms=duration_ms,
                )
                if result.ok:
                    logger.debug(f"GET {url} -> {response.status_code} ({duration_ms}ms)")
                    return result

                last_error = f"HTTP {response.status_code}"
                # Client errors will not improve on retry
                if response.status_code < 500:
                    raise ConnectorError(
                        f"GET {url} failed: {last_error}", url=url,
                        status_code=response.status_code,
                    )

            except requests.exceptions.RequestException as e:
                last_error = str(e)

            logger.warning(
                f"Request failed (attempt {attempt + 1}/{self.max_retries}): "
                f"{url}: {last_error}"
            )
            if attempt < self.max_retries - 1:
                time.sleep(0.1 * (2 ** attempt))

        raise ConnectorError(
            f"GET {url} failed after {self.max_retries} attempts: {last_error}",
            url=url,
        )

    def _parse_json(self, url: str, response: ConnectorResponse) -> Dict[str, Any]:
        try:
            payload = json.loads(response.content.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ConnectorError(
                f"Invalid JSON from {url}: {e}", url=url,
                status_code=response.status_code,
            ) from e
        if not isinstance(payload, dict):
            raise ConnectorError(
                f"Expected a JSON object from {url}, got {type(payload).__name__}",
                url=url, status_code=response.status_code,
            )
        return payload

    def get_name(self) -> str:
        """Return the connector name."""
        return self.name

    def close(self) -> None:
        """Close the session."""
        if self.session:
            self.session.close()
