"""
S3-Compatible Storage Manager

Object store backed by AWS S3 or any S3-compatible service (MinIO, Wasabi, ...).
"""

from datetime import datetime
from typing import Optional, Dict, Any, List
import logging

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .storage_interface import (
    ObjectStore,
    StorageBackend,
    StorageMetadata
)

# DeleteObjects accepts at most this many keys per request
DELETE_BATCH_SIZE = 1000


class S3StorageManager(ObjectStore):
    """
    S3-compatible object store for a single bucket.

    boto3 clients are thread-safe, so one manager can serve the
    concurrent fetch stage directly.

    Configuration:
        AWS S3:
            endpoint_url=None (uses AWS defaults)
        MinIO:
            endpoint_url="http://localhost:9000"
    """

    def __init__(
        self,
        bucket_name: str,
        region: str = "us-east-1",
        endpoint_url: Optional[str] = None,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        max_pool_connections: int = 50,
        client: Any = None
    ):
        """
        Initialize S3 storage manager.

        Args:
            bucket_name: S3 bucket name
            region: AWS region (e.g., us-east-1)
            endpoint_url: Custom S3 endpoint (None = AWS S3)
            aws_access_key_id: AWS access key
            aws_secret_access_key: AWS secret key
            max_pool_connections: Connection pool size shared by concurrent fetches
            client: Pre-built S3 client (skips client creation)
        """
        self.bucket_name = bucket_name
        self.region = region
        self.endpoint_url = endpoint_url
        self.logger = logging.getLogger(__name__)

        if client is not None:
            self.s3_client = client
        else:
            config = Config(
                region_name=region,
                signature_version='s3v4',
                retries={'max_attempts': 3, 'mode': 'standard'},
                max_pool_connections=max_pool_connections
            )
            self.s3_client = boto3.client(
                's3',
                endpoint_url=endpoint_url,
                aws_access_key_id=aws_access_key_id,
                aws_secret_access_key=aws_secret_access_key,
                config=config
            )

    def list_common_prefixes(
        self,
        prefix: str,
        delimiter: str = "/",
        max_keys: int = 1000
    ) -> List[str]:
        """List common prefixes below a prefix in S3."""
        try:
            paginator = self.s3_client.get_paginator('list_objects_v2')
            pages = paginator.paginate(
                Bucket=self.bucket_name,
                Prefix=prefix,
                Delimiter=delimiter,
                PaginationConfig={'PageSize': max_keys}
            )

            prefixes = []
            for page in pages:
                for common_prefix in page.get('CommonPrefixes', []):
                    prefixes.append(common_prefix['Prefix'])

            return prefixes
        except (ClientError, BotoCoreError) as e:
            self.logger.error(f"Failed to list prefixes under {prefix}: {e}")
            raise

    def list_keys(
        self,
        prefix: str = "",
        max_keys: int = 1000,
        suffix: Optional[str] = None
    ) -> List[str]:
        """List object keys in S3, following continuation tokens."""
        try:
            paginator = self.s3_client.get_paginator('list_objects_v2')
            pages = paginator.paginate(
                Bucket=self.bucket_name,
                Prefix=prefix,
                PaginationConfig={'PageSize': max_keys}
            )

            keys = []
            for page in pages:
                for obj in page.get('Contents', []):
                    key = obj['Key']
                    if suffix and not key.endswith(suffix):
                        continue
                    keys.append(key)

            return keys
        except (ClientError, BotoCoreError) as e:
            self.logger.error(f"Failed to list objects under {prefix}: {e}")
            raise

    def get_object(self, key: str) -> bytes:
        """Retrieve an object from S3."""
        try:
            response = self.s3_client.get_object(Bucket=self.bucket_name, Key=key)
            return response['Body'].read()
        except ClientError as e:
            if e.response['Error']['Code'] in ('NoSuchKey', '404'):
                raise FileNotFoundError(f"Object not found: {key}")
            self.logger.error(f"Failed to get object {key}: {e}")
            raise

    def put_object(
        self,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream"
    ) -> StorageMetadata:
        """Store an object in S3."""
        try:
            response = self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type
            )

            return StorageMetadata(
                key=key,
                size=len(data),
                content_type=content_type,
                etag=response.get('ETag', '').strip('"'),
                last_modified=datetime.now(),
                version_id=response.get('VersionId')
            )
        except ClientError as e:
            self.logger.error(f"Failed to put object {key}: {e}")
            raise

    def delete_object(self, key: str) -> bool:
        """Delete a single object from S3."""
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=key)
            return True
        except ClientError as e:
            self.logger.error(f"Failed to delete object {key}: {e}")
            return False

    def delete_objects(self, keys: List[str]) -> int:
        """Delete objects with DeleteObjects, in batches of 1000 keys."""
        deleted = 0

        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start:start + DELETE_BATCH_SIZE]
            try:
                response = self.s3_client.delete_objects(
                    Bucket=self.bucket_name,
                    Delete={
                        'Objects': [{'Key': key} for key in batch],
                        'Quiet': True
                    }
                )
            except ClientError as e:
                self.logger.error(f"Failed to delete {len(batch)} objects: {e}")
                continue

            errors = response.get('Errors', [])
            for error in errors:
                self.logger.error(f"Failed to delete object {error.get('Key')}: {error.get('Message')}")
            deleted += len(batch) - len(errors)

        return deleted

    def get_storage_info(self) -> Dict[str, Any]:
        """Get S3 storage information."""
        return {
            'backend': StorageBackend.S3.value,
            'bucket': self.bucket_name,
            'region': self.region,
            'endpoint': self.endpoint_url or 'AWS S3'
        }
