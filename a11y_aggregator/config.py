"""
Aggregator Configuration

Settings come from defaults, then an optional JSON file, then environment
variables, each layer overriding the previous one.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .aggregation.pipeline import DEFAULT_MAX_RETRIES
from .aggregation.retention import DEFAULT_RETENTION_COUNT
from .storage import LocalStorageManager, ObjectStore, S3StorageManager, StorageBackend

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/aggregator.json")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# environment variable -> (field, converter)
ENV_VARS = {
    "S3_SCRAPER_BUCKET_NAME": ("bucket_name", str),
    "S3_ENDPOINT": ("endpoint_url", str),
    "S3_ACCESS_KEY": ("access_key", str),
    "S3_SECRET_KEY": ("secret_key", str),
    "AWS_REGION": ("region", str),
    "A11Y_STORAGE_BACKEND": ("storage_backend", str),
    "A11Y_STORAGE_PATH": ("storage_path", str),
    "A11Y_MAX_RETRIES": ("max_retries", int),
    "A11Y_RETENTION_COUNT": ("retention_count", int),
    "A11Y_MAX_CONCURRENCY": ("max_concurrency", int),
    "A11Y_LOG_LEVEL": ("log_level", str),
    "AGGREGATOR_API_KEY": ("api_key", str),
}


@dataclass
class AggregatorConfig:
    """Runtime settings of the aggregator."""
    storage_backend: str = StorageBackend.S3.value
    bucket_name: Optional[str] = None
    region: str = "us-east-1"
    endpoint_url: Optional[str] = None
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    storage_path: str = "data/storage"
    max_retries: int = DEFAULT_MAX_RETRIES
    retention_count: int = DEFAULT_RETENTION_COUNT
    max_concurrency: Optional[int] = 16
    log_level: str = "INFO"
    api_key: Optional[str] = None

    @classmethod
    def load(
        cls,
        config_path: Optional[Union[str, Path]] = None,
        environ: Optional[Dict[str, str]] = None
    ) -> 'AggregatorConfig':
        """
        Build a config from the JSON file and the environment.

        Args:
            config_path: JSON file (defaults to config/aggregator.json if present)
            environ: Environment mapping (defaults to os.environ)

        Raises:
            FileNotFoundError: an explicit config_path does not exist
            ValueError: a value fails validation
        """
        config = cls()

        path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
        if config_path or path.exists():
            config.update(cls._read_file(path))
            logger.debug(f"Loaded configuration from {path}")

        environ = os.environ if environ is None else environ
        overrides: Dict[str, Any] = {}
        for var, (name, convert) in ENV_VARS.items():
            value = environ.get(var)
            if value in (None, ""):
                continue
            try:
                overrides[name] = convert(value)
            except ValueError:
                raise ValueError(f"Invalid value for {var}: {value!r}") from None
        config.update(overrides)

        config.validate()
        return config

    @staticmethod
    def _read_file(path: Path) -> Dict[str, Any]:
        with open(path, 'r') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file {path} must contain a JSON object")
        return data

    def update(self, values: Dict[str, Any]):
        known = {f.name for f in fields(self)}
        for name, value in values.items():
            if name not in known:
                logger.warning(f"Ignoring unknown configuration key: {name}")
                continue
            setattr(self, name, value)

    def validate(self):
        """
        Check value ranges.

        Raises:
            ValueError: first invalid setting found
        """
        backends = {backend.value for backend in StorageBackend}
        if self.storage_backend not in backends:
            raise ValueError(f"Unknown storage backend: {self.storage_backend}")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.retention_count < 1:
            raise ValueError("retention_count must be >= 1")
        if self.max_concurrency is not None and self.max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")

    def create_storage(self) -> ObjectStore:
        """Build the configured object store."""
        if self.storage_backend == StorageBackend.LOCAL.value:
            return LocalStorageManager(
                base_path=self.storage_path,
                bucket_name=self.bucket_name or "default"
            )

        if not self.bucket_name:
            raise ValueError("bucket_name is required for the s3 backend (S3_SCRAPER_BUCKET_NAME)")
        return S3StorageManager(
            bucket_name=self.bucket_name,
            region=self.region,
            endpoint_url=self.endpoint_url,
            aws_access_key_id=self.access_key,
            aws_secret_access_key=self.secret_key
        )

    def to_dict(self, redact: bool = True) -> Dict[str, Any]:
        data = asdict(self)
        if redact:
            for secret in ('access_key', 'secret_key', 'api_key'):
                if data[secret]:
                    data[secret] = "***"
        return data


def configure_logging(level: str = "INFO"):
    """Root handler for entry points; a no-op if one is already installed."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
