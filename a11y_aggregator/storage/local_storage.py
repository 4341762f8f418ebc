"""
Local Storage Manager

File-system object store that mimics S3 listing semantics.
"""

import hashlib
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any, List
import logging

from .storage_interface import (
    ObjectStore,
    StorageBackend,
    StorageMetadata
)


class LocalStorageManager(ObjectStore):
    """
    Local filesystem object store.

    Used for development runs, the CLI's local backend and the test suite.
    Listing behaves like S3 ListObjectsV2: keys come back in lexicographic
    order and "folders" are derived from the delimiter.

    Directory Structure:
        base_path/
            {bucket_name}/
                {key}           # One file per object
    """

    def __init__(
        self,
        base_path: str,
        bucket_name: str = "default"
    ):
        """
        Initialize local storage manager.

        Args:
            base_path: Root directory for storage
            bucket_name: Bucket directory below the root
        """
        self.base_path = Path(base_path)
        self.bucket_name = bucket_name
        self.logger = logging.getLogger(__name__)

        self.bucket_dir = self.base_path / bucket_name
        self.bucket_dir.mkdir(parents=True, exist_ok=True)

        self.logger.info(f"Local storage initialized: {self.bucket_dir}")

    def _get_object_path(self, key: str) -> Path:
        """Get path for object file."""
        return self.bucket_dir / key

    def _compute_etag(self, data: bytes) -> str:
        """Compute ETag (MD5 hash) for data."""
        return hashlib.md5(data).hexdigest()

    def _all_keys(self) -> List[str]:
        """Every key in the bucket, sorted like S3 returns them."""
        return sorted(
            path.relative_to(self.bucket_dir).as_posix()
            for path in self.bucket_dir.rglob("*")
            if path.is_file()
        )

    def list_common_prefixes(
        self,
        prefix: str,
        delimiter: str = "/",
        max_keys: int = 1000
    ) -> List[str]:
        """List common prefixes below a prefix."""
        prefixes = []

        for key in self._all_keys():
            if not key.startswith(prefix):
                continue
            remainder = key[len(prefix):]
            if delimiter not in remainder:
                continue
            common_prefix = prefix + remainder.split(delimiter, 1)[0] + delimiter
            if common_prefix not in prefixes:
                prefixes.append(common_prefix)

        return prefixes

    def list_keys(
        self,
        prefix: str = "",
        max_keys: int = 1000,
        suffix: Optional[str] = None
    ) -> List[str]:
        """List object keys in local storage."""
        return [
            key for key in self._all_keys()
            if key.startswith(prefix) and (not suffix or key.endswith(suffix))
        ]

    def get_object(self, key: str) -> bytes:
        """Retrieve an object from local filesystem."""
        object_path = self._get_object_path(key)
        if not object_path.is_file():
            raise FileNotFoundError(f"Object not found: {key}")
        return object_path.read_bytes()

    def put_object(
        self,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream"
    ) -> StorageMetadata:
        """Store an object to local filesystem."""
        object_path = self._get_object_path(key)
        object_path.parent.mkdir(parents=True, exist_ok=True)
        object_path.write_bytes(data)

        return StorageMetadata(
            key=key,
            size=len(data),
            content_type=content_type,
            etag=self._compute_etag(data),
            last_modified=datetime.now()
        )

    def delete_object(self, key: str) -> bool:
        """Delete an object from local filesystem."""
        object_path = self._get_object_path(key)
        try:
            # S3 deletes are idempotent, so a missing key still counts as deleted
            if object_path.exists():
                object_path.unlink()
            self._remove_empty_parents(object_path.parent)
            return True
        except OSError as e:
            self.logger.error(f"Failed to delete {key}: {e}")
            return False

    def delete_objects(self, keys: List[str]) -> int:
        """Delete several objects from local filesystem."""
        return sum(1 for key in keys if self.delete_object(key))

    def _remove_empty_parents(self, directory: Path):
        """Drop directories left empty, so deleted folders vanish like S3 prefixes."""
        while directory != self.bucket_dir and directory.is_dir() and not any(directory.iterdir()):
            directory.rmdir()
            directory = directory.parent

    def get_storage_info(self) -> Dict[str, Any]:
        """Get local storage information."""
        total_size = 0
        object_count = 0

        for object_path in self.bucket_dir.rglob("*"):
            if object_path.is_file():
                total_size += object_path.stat().st_size
                object_count += 1

        return {
            'backend': StorageBackend.LOCAL.value,
            'base_path': str(self.base_path),
            'bucket': self.bucket_name,
            'object_count': object_count,
            'total_size': total_size
        }
