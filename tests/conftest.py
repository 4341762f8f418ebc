import logging

import pytest

from a11y_aggregator.storage import LocalStorageManager
from helpers import BUCKET


@pytest.fixture
def storage(tmp_path):
    """Filesystem object store with S3 listing semantics."""
    return LocalStorageManager(base_path=str(tmp_path / "storage"), bucket_name=BUCKET)


@pytest.fixture
def log():
    return logging.getLogger("tests.a11y")
