import json
import logging

import pytest

from a11y_aggregator.config import LOG_FORMAT, AggregatorConfig, configure_logging
from a11y_aggregator.storage import LocalStorageManager, S3StorageManager


def test_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    config = AggregatorConfig.load(environ={})

    assert config.storage_backend == "s3"
    assert config.max_retries == 2
    assert config.retention_count == 2


def test_file_then_environment(tmp_path):
    config_file = tmp_path / "aggregator.json"
    config_file.write_text(json.dumps({
        "storage_backend": "local",
        "storage_path": str(tmp_path / "data"),
        "max_retries": 4,
        "retention_count": 3
    }))

    config = AggregatorConfig.load(config_file, environ={
        "A11Y_MAX_RETRIES": "1",
        "S3_SCRAPER_BUCKET_NAME": "scraper-bucket"
    })

    assert config.storage_backend == "local"
    assert config.retention_count == 3
    assert config.max_retries == 1
    assert config.bucket_name == "scraper-bucket"


def test_explicit_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        AggregatorConfig.load(tmp_path / "missing.json", environ={})


def test_invalid_environment_value():
    with pytest.raises(ValueError, match="A11Y_RETENTION_COUNT"):
        AggregatorConfig.load(environ={"A11Y_RETENTION_COUNT": "two"})


@pytest.mark.parametrize("field, value", [
    ("storage_backend", "gcs"),
    ("max_retries", -1),
    ("retention_count", 0),
    ("max_concurrency", 0),
])
def test_validate_rejects(field, value):
    config = AggregatorConfig()
    setattr(config, field, value)

    with pytest.raises(ValueError):
        config.validate()


def test_create_local_storage(tmp_path):
    config = AggregatorConfig(storage_backend="local", storage_path=str(tmp_path), bucket_name="scraper-bucket")

    storage = config.create_storage()

    assert isinstance(storage, LocalStorageManager)
    assert storage.bucket_name == "scraper-bucket"


def test_create_s3_storage_requires_bucket():
    with pytest.raises(ValueError, match="bucket_name"):
        AggregatorConfig(storage_backend="s3").create_storage()


def test_create_s3_storage():
    config = AggregatorConfig(
        bucket_name="scraper-bucket",
        endpoint_url="http://localhost:9000",
        access_key="minio",
        secret_key="minio123"
    )

    storage = config.create_storage()

    assert isinstance(storage, S3StorageManager)
    assert storage.get_storage_info()["endpoint"] == "http://localhost:9000"


def test_to_dict_redacts_secrets():
    config = AggregatorConfig(secret_key="hunter2", api_key="key")

    data = config.to_dict()

    assert data["secret_key"] == "***"
    assert data["api_key"] == "***"
    assert data["access_key"] is None


def test_configure_logging_uses_the_shared_format(monkeypatch):
    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

    configure_logging("debug")

    assert calls == [{"level": "DEBUG", "format": LOG_FORMAT}]
