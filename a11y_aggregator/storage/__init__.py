"""
Storage Layer

Object-store backends (S3-compatible and local filesystem) and the key
conventions shared by the aggregation pipeline.
"""

from .storage_interface import ObjectStore, StorageBackend, StorageMetadata
from .s3_storage import S3StorageManager
from .local_storage import LocalStorageManager

__all__ = [
    'ObjectStore',
    'StorageBackend',
    'StorageMetadata',
    'S3StorageManager',
    'LocalStorageManager'
]
