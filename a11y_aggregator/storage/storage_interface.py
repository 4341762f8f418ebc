"""
Storage Interface

Abstract object-store interface used by the aggregation pipeline.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, List


class StorageBackend(Enum):
    """Supported storage backend types."""
    LOCAL = "local"
    S3 = "s3"


@dataclass
class StorageMetadata:
    """Metadata for stored objects."""
    key: str
    size: int
    content_type: str
    etag: str
    last_modified: datetime
    version_id: Optional[str] = None


class ObjectStore(ABC):
    """
    Abstract interface for a bucket-scoped object store.
    
    Keys are flat strings; "folders" only exist as common prefixes,
    exactly as in S3.
    """
    
    bucket_name: Optional[str] = None
    
    @abstractmethod
    def list_common_prefixes(
        self,
        prefix: str,
        delimiter: str = "/",
        max_keys: int = 1000
    ) -> List[str]:
        """
        List the common prefixes directly below a prefix.
        
        Args:
            prefix: Key prefix (usually ending with the delimiter)
            delimiter: Grouping delimiter
            max_keys: Page size for the listing calls
            
        Returns:
            Common prefixes in lexicographic order, each ending with the delimiter
        """
        pass
    
    @abstractmethod
    def list_keys(
        self,
        prefix: str = "",
        max_keys: int = 1000,
        suffix: Optional[str] = None
    ) -> List[str]:
        """
        List object keys under a prefix.
        
        Args:
            prefix: Key prefix filter
            max_keys: Page size for the listing calls
            suffix: Only return keys ending with this suffix
            
        Returns:
            Matching keys in lexicographic order
        """
        pass
    
    @abstractmethod
    def get_object(self, key: str) -> bytes:
        """
        Retrieve an object.
        
        Args:
            key: Object key
            
        Returns:
            Object data
            
        Raises:
            FileNotFoundError: Object not found
        """
        pass
    
    @abstractmethod
    def put_object(
        self,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream"
    ) -> StorageMetadata:
        """
        Store an object.
        
        Args:
            key: Object key
            data: Object data
            content_type: MIME type
            
        Returns:
            StorageMetadata of the written object
        """
        pass
    
    @abstractmethod
    def delete_object(self, key: str) -> bool:
        """
        Delete a single object.
        
        Returns:
            True if the delete call succeeded
        """
        pass
    
    @abstractmethod
    def delete_objects(self, keys: List[str]) -> int:
        """
        Delete several objects in as few calls as possible.
        
        Returns:
            Number of objects deleted
        """
        pass
    
    @abstractmethod
    def get_storage_info(self) -> Dict[str, Any]:
        """Get storage backend information."""
        pass
