"""
File-based page store.
"""

import hashlib
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from ..core.errors import StorageError
from ..core.models import METADATA_KEY
from ..core.page_store import PageStore


logger = logging.getLogger(__name__)


class FilePageStore(PageStore):
    """
    Stores each page as its own file under a namespace directory.

    Layout: ``{base_dir}/{namespace}/{page_number:010d}.page`` (see
    ``_sanitize_filename`` for unsafe namespaces); the metadata
    record lives in ``{base_dir}/{namespace}/metadata.json``.

    Writes go to a temporary file that is fsynced and then renamed over the
    target, so a page file is either the old or the new content.
    """

    METADATA_FILENAME = "metadata.json"

    def __init__(
        self,
        base_dir: Path,
        namespace: str,
        create_dirs: bool = True,
        fsync: bool = True,
    ):
        """
        Initialize the file page store.

        Args:
            base_dir: Base directory holding all namespaces
            namespace: Namespace for this database
            create_dirs: Whether to create directories automatically
            fsync: Whether to fsync each write before renaming it into place
        """
        self.base_dir = Path(base_dir)
        self.namespace = namespace
        self.fsync = fsync
        self.dir_path = self.base_dir / self._sanitize_filename(namespace)

        if create_dirs:
            self.dir_path.mkdir(parents=True, exist_ok=True)

    def put(self, key: int, data: bytes) -> None:
        file_path = self._path_for(key)
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.dir_path, suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                    if self.fsync:
                        f.flush()
                        os.fsync(f.fileno())
                os.replace(tmp_name, file_path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            logger.error(f"Failed to write {self.namespace}[{key}]: {e}")
            raise StorageError(f"Failed to write key {key}: {e}", key=key) from e

        logger.debug(f"Wrote {len(data)} bytes to {file_path}")

    def get(self, key: int) -> Optional[bytes]:
        file_path = self._path_for(key)
        try:
            return file_path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to read key {key}: {e}", key=key) from e

    def _path_for(self, key: int) -> Path:
        if key == METADATA_KEY:
            return self.dir_path / self.METADATA_FILENAME
        if key < 0:
            raise StorageError(f"Invalid page key: {key}", key=key)
        return self.dir_path / f"{key:010d}.page"

    def _sanitize_filename(self, name: str) -> str:
        """
        Sanitize a string for use as a directory name.

        Names that are already safe are used as-is. Any other name gets a
        ``~`` plus a digest of the raw name appended, so two different
        namespaces never share a directory.
        """
        safe = name.replace("/", "_").replace("\\", "_").replace(":", "_")
        if safe == name and "~" not in name and len(name) <= 100 and name not in ("", ".", ".."):
            return safe
        digest = hashlib.sha256(name.encode("utf-8")).hexdigest()[:16]
        return f"{safe[:100]}~{digest}"

    def assemble(self, target: Path) -> int:
        """
        Concatenate all pages into a single database file.

        Pages are written in page-number order up to the page count in the
        metadata record.

        Returns:
            Number of bytes written

        Raises:
            StorageError if the metadata record or any page is missing
        """
        metadata = self.get_metadata()
        if metadata is None:
            raise StorageError(f"No metadata record in {self.namespace}", key=METADATA_KEY)

        written = 0
        target = Path(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "wb") as out:
            for page_number in range(metadata.total_pages):
                data = self.get(page_number)
                if data is None:
                    raise StorageError(
                        f"Page {page_number} missing from {self.namespace}",
                        key=page_number,
                    )
                out.write(data)
                written += len(data)

        logger.info(f"Assembled {metadata.total_pages} pages ({written} bytes) into {target}")
        return written

    def get_name(self) -> str:
        """Return the page store name."""
        return "file_pages"
