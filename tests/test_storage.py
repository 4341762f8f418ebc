import io
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from a11y_aggregator.storage import S3StorageManager
from a11y_aggregator.storage.keys import (
    site_prefix,
    snapshot_date,
    snapshot_key,
    subfolder_timestamp,
    timestamp_to_date,
)
from helpers import BUCKET, millis, put_json


def client_error(code, operation="GetObject"):
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


@pytest.fixture
def s3_client():
    return MagicMock()


@pytest.fixture
def s3_storage(s3_client):
    return S3StorageManager(bucket_name=BUCKET, client=s3_client)


# Key conventions

def test_snapshot_key_layout():
    assert snapshot_key("accessibility", "site-1", "2024-01-15") == \
        "accessibility/site-1/2024-01-15-final-result.json"
    assert site_prefix("forms-accessibility", "site-1") == "forms-accessibility/site-1/"


def test_snapshot_date_from_key():
    assert snapshot_date("accessibility/site-1/2024-01-08-final-result.json") == "2024-01-08"


def test_subfolder_timestamp_ignores_trailing_delimiter():
    assert subfolder_timestamp("accessibility/site-1/1705320000000/") == "1705320000000"


def test_timestamp_to_date_is_utc():
    # 2024-01-15 23:30 UTC stays on the 15th whatever the local timezone is
    assert timestamp_to_date(millis("2024-01-15", hour=23)) == "2024-01-15"
    assert timestamp_to_date("1705276800000") == "2024-01-15"


def test_timestamp_to_date_rejects_non_numeric():
    assert timestamp_to_date("2024-01-15-final-result.json") is None
    assert timestamp_to_date("") is None


# Local storage

def test_local_common_prefixes_skip_top_level_objects(storage):
    put_json(storage, "accessibility/site-1/100/a.json", {})
    put_json(storage, "accessibility/site-1/100/b.json", {})
    put_json(storage, "accessibility/site-1/200/c.json", {})
    put_json(storage, "accessibility/site-1/2024-01-08-final-result.json", {})

    prefixes = storage.list_common_prefixes("accessibility/site-1/", delimiter="/")

    assert prefixes == ["accessibility/site-1/100/", "accessibility/site-1/200/"]


def test_local_list_keys_with_suffix(storage):
    put_json(storage, "accessibility/site-1/100/a.json", {})
    storage.put_object("accessibility/site-1/100/notes.txt", b"text")

    assert storage.list_keys("accessibility/site-1/100/", suffix=".json") == [
        "accessibility/site-1/100/a.json"
    ]


def test_local_get_missing_object_raises(storage):
    with pytest.raises(FileNotFoundError):
        storage.get_object("accessibility/site-1/missing.json")


def test_local_delete_removes_empty_folders(storage):
    put_json(storage, "accessibility/site-1/100/a.json", {})
    put_json(storage, "accessibility/site-1/2024-01-08-final-result.json", {})

    assert storage.delete_objects(["accessibility/site-1/100/a.json"]) == 1

    assert storage.list_common_prefixes("accessibility/site-1/") == []
    assert storage.list_keys("accessibility/site-1/") == [
        "accessibility/site-1/2024-01-08-final-result.json"
    ]


def test_local_delete_is_idempotent(storage):
    assert storage.delete_object("accessibility/site-1/never-written.json") is True


def test_local_storage_info(storage):
    put_json(storage, "accessibility/site-1/100/a.json", {"url": "https://example.com"})
    info = storage.get_storage_info()

    assert info["backend"] == "local"
    assert info["bucket"] == BUCKET
    assert info["object_count"] == 1


# S3 storage

def test_s3_list_common_prefixes_paginates(s3_storage, s3_client):
    paginator = s3_client.get_paginator.return_value
    paginator.paginate.return_value = [
        {"CommonPrefixes": [{"Prefix": "accessibility/site-1/100/"}]},
        {"CommonPrefixes": [{"Prefix": "accessibility/site-1/200/"}]},
        {},
    ]

    prefixes = s3_storage.list_common_prefixes("accessibility/site-1/", delimiter="/", max_keys=10)

    assert prefixes == ["accessibility/site-1/100/", "accessibility/site-1/200/"]
    s3_client.get_paginator.assert_called_with("list_objects_v2")
    paginator.paginate.assert_called_once_with(
        Bucket=BUCKET,
        Prefix="accessibility/site-1/",
        Delimiter="/",
        PaginationConfig={"PageSize": 10}
    )


def test_s3_list_keys_filters_suffix(s3_storage, s3_client):
    s3_client.get_paginator.return_value.paginate.return_value = [
        {"Contents": [
            {"Key": "accessibility/site-1/100/"},
            {"Key": "accessibility/site-1/100/a.json"},
        ]},
        {"Contents": [{"Key": "accessibility/site-1/100/b.json"}]},
    ]

    keys = s3_storage.list_keys("accessibility/site-1/100/", suffix=".json")

    assert keys == ["accessibility/site-1/100/a.json", "accessibility/site-1/100/b.json"]


def test_s3_list_errors_propagate(s3_storage, s3_client):
    s3_client.get_paginator.return_value.paginate.side_effect = client_error("AccessDenied", "ListObjectsV2")

    with pytest.raises(ClientError):
        s3_storage.list_common_prefixes("accessibility/site-1/")


def test_s3_get_object_reads_body(s3_storage, s3_client):
    s3_client.get_object.return_value = {"Body": io.BytesIO(b'{"url": "https://example.com"}')}

    assert s3_storage.get_object("k.json") == b'{"url": "https://example.com"}'
    s3_client.get_object.assert_called_once_with(Bucket=BUCKET, Key="k.json")


def test_s3_missing_key_maps_to_file_not_found(s3_storage, s3_client):
    s3_client.get_object.side_effect = client_error("NoSuchKey")

    with pytest.raises(FileNotFoundError):
        s3_storage.get_object("missing.json")


def test_s3_other_get_errors_propagate(s3_storage, s3_client):
    s3_client.get_object.side_effect = client_error("SlowDown")

    with pytest.raises(ClientError):
        s3_storage.get_object("k.json")


def test_s3_put_object(s3_storage, s3_client):
    s3_client.put_object.return_value = {"ETag": '"abc123"'}

    metadata = s3_storage.put_object("out.json", b"{}", content_type="application/json")

    assert metadata.etag == "abc123"
    assert metadata.size == 2
    s3_client.put_object.assert_called_once_with(
        Bucket=BUCKET, Key="out.json", Body=b"{}", ContentType="application/json"
    )


def test_s3_delete_object_failure_returns_false(s3_storage, s3_client):
    s3_client.delete_object.side_effect = client_error("AccessDenied", "DeleteObject")

    assert s3_storage.delete_object("k.json") is False


def test_s3_delete_objects_batches_and_counts_errors(s3_storage, s3_client):
    keys = [f"accessibility/site-1/100/{i}.json" for i in range(1001)]
    s3_client.delete_objects.side_effect = [
        {"Errors": [{"Key": keys[0], "Message": "denied"}]},
        {},
    ]

    deleted = s3_storage.delete_objects(keys)

    assert deleted == 1000
    assert s3_client.delete_objects.call_count == 2
    first_batch = s3_client.delete_objects.call_args_list[0].kwargs["Delete"]
    assert len(first_batch["Objects"]) == 1000
    assert first_batch["Quiet"] is True
