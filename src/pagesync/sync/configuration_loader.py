"""
Loads the Manifest for a snapshot from the content network.

A snapshot id names a version-index object::

    {"Name": "<database>", "Versions": {"Current": {"/": "<manifest cid>"}}}

whose ``Current`` link points at the manifest object::

    {"Name": "<database>", "Links": [<page link>, ...]}

Page links come in several encodings; they are normalized here so the rest
of the system only ever sees a list of fingerprints.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from ..core.connector import Connector
from ..core.errors import ConfigFetchError, ConnectorError
from ..core.models import Manifest
from ..storage.registry import NamespaceRegistry


logger = logging.getLogger(__name__)


class LinkEncoding(str, Enum):
    """Ways a link to another object can be encoded."""
    CID = "cid"          # {"Cid": {"/": fp}} or {"Cid": fp}
    HASH = "hash"        # {"Hash": fp}
    DAG_LINK = "dag"     # {"/": fp}
    BARE = "bare"        # "fp"


@dataclass(frozen=True)
class PageLink:
    """A link normalized to its fingerprint, remembering how it was encoded."""
    encoding: LinkEncoding
    fingerprint: str

    @classmethod
    def from_raw(cls, raw: Any) -> "PageLink":
        """
        Normalize a raw link.

        Raises:
            ValueError if the link shape is not recognised
        """
        if isinstance(raw, str) and raw:
            return cls(LinkEncoding.BARE, raw)

        if isinstance(raw, dict):
            cid = raw.get("Cid")
            if isinstance(cid, dict) and isinstance(cid.get("/"), str) and cid["/"]:
                return cls(LinkEncoding.CID, cid["/"])
            if isinstance(cid, str) and cid:
                return cls(LinkEncoding.CID, cid)

            hash_value = raw.get("Hash")
            if isinstance(hash_value, dict) and isinstance(hash_value.get("/"), str) and hash_value["/"]:
                return cls(LinkEncoding.HASH, hash_value["/"])
            if isinstance(hash_value, str) and hash_value:
                return cls(LinkEncoding.HASH, hash_value)

            slash = raw.get("/")
            if isinstance(slash, str) and slash:
                return cls(LinkEncoding.DAG_LINK, slash)

        raise ValueError(f"Unrecognised link: {raw!r}")


class ConfigurationLoader:
    """
    Fetches and parses the version index and manifest for a snapshot.

    Every failure is reported as ``ConfigFetchError`` so the caller can
    retry on its next poll. On the first successful load for a database
    name, the registry provisions that database's local namespaces.
    """

    def __init__(self, connector: Connector, registry: Optional[NamespaceRegistry] = None):
        """
        Initialize the loader.

        Args:
            connector: Connector used for object fetches (bounded by its object timeout)
            registry: Registry provisioning local stores per database name
        """
        self.connector = connector
        self.registry = registry
        self.error_count = 0

    def load(self, snapshot_id: str) -> Manifest:
        """
        Load the manifest published under a snapshot id.

        Raises:
            ConfigFetchError if either object is missing, times out or is malformed
        """
        logger.info(f"Refreshing configuration from snapshot: {snapshot_id}")

        version_index = self._fetch(snapshot_id, snapshot_id, stage="version_index")
        manifest_cid = self._current_version(snapshot_id, version_index)

        logger.info(f"Getting manifest from: {manifest_cid}")
        manifest_object = self._fetch(manifest_cid, snapshot_id, stage="manifest")

        manifest = self._build_manifest(snapshot_id, version_index, manifest_object)

        if self.registry is not None:
            self.registry.open(manifest.name)

        logger.info(
            f"Loaded manifest for {manifest.name}: {manifest.total_pages} pages "
            f"(snapshot {snapshot_id})"
        )
        return manifest

    def _fetch(self, cid: str, snapshot_id: str, stage: str) -> Dict[str, Any]:
        try:
            return self.connector.get_object(cid)
        except ConnectorError as e:
            self.error_count += 1
            raise ConfigFetchError(
                f"Failed to fetch {stage} {cid}: {e}",
                snapshot_id=snapshot_id,
                stage=stage,
            ) from e

    def _current_version(self, snapshot_id: str, version_index: Dict[str, Any]) -> str:
        versions = version_index.get("Versions")
        if not isinstance(versions, dict) or "Current" not in versions:
            raise ConfigFetchError(
                f"Version index {snapshot_id} has no Versions.Current",
                snapshot_id=snapshot_id,
                stage="version_index",
            )
        try:
            return PageLink.from_raw(versions["Current"]).fingerprint
        except ValueError as e:
            raise ConfigFetchError(
                f"Version index {snapshot_id}: {e}",
                snapshot_id=snapshot_id,
                stage="version_index",
            ) from e

    def _build_manifest(
        self,
        snapshot_id: str,
        version_index: Dict[str, Any],
        manifest_object: Dict[str, Any],
    ) -> Manifest:
        name = version_index.get("Name") or manifest_object.get("Name")
        if not isinstance(name, str) or not name:
            raise ConfigFetchError(
                f"Snapshot {snapshot_id} does not name its database",
                snapshot_id=snapshot_id,
                stage="manifest",
            )

        raw_links = manifest_object.get("Links")
        if raw_links is None:
            raw_links = manifest_object.get("links")
        if not isinstance(raw_links, list):
            raise ConfigFetchError(
                f"Manifest for {snapshot_id} has no Links list",
                snapshot_id=snapshot_id,
                stage="manifest",
            )

        fingerprints: List[str] = []
        for page_number, raw in enumerate(raw_links):
            try:
                fingerprints.append(PageLink.from_raw(raw).fingerprint)
            except ValueError as e:
                raise ConfigFetchError(
                    f"Manifest for {snapshot_id}, page {page_number}: {e}",
                    snapshot_id=snapshot_id,
                    stage="manifest",
                ) from e

        return Manifest.from_fingerprints(name, fingerprints, snapshot_id=snapshot_id)
