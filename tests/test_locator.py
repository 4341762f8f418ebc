import logging
from unittest.mock import MagicMock

import pytest

from a11y_aggregator.aggregation.collector import (
    collect_object_keys,
    get_object_keys_from_subfolders,
)
from a11y_aggregator.aggregation.exceptions import InvalidParametersError
from a11y_aggregator.aggregation.locator import (
    filter_subfolders_by_date,
    get_subfolders_using_prefix_and_delimiter,
    locate_subfolders,
)
from a11y_aggregator.aggregation.models import FailureReason
from helpers import BUCKET, SITE_ID, millis, put_json, raw_key


@pytest.mark.parametrize("storage_arg, prefix, delimiter", [
    (None, "accessibility/site-1/", "/"),
    ("storage", None, "/"),
    ("storage", "accessibility/site-1/", None),
    ("storage", "", "/"),
])
def test_invalid_parameters_raise_before_listing(storage_arg, prefix, delimiter):
    store = MagicMock(bucket_name=BUCKET) if storage_arg else None

    with pytest.raises(InvalidParametersError):
        get_subfolders_using_prefix_and_delimiter(store, prefix, delimiter)

    if store is not None:
        store.list_common_prefixes.assert_not_called()


def test_missing_bucket_name_is_invalid():
    store = MagicMock(bucket_name=None)

    with pytest.raises(InvalidParametersError):
        get_subfolders_using_prefix_and_delimiter(store, "accessibility/site-1/", "/")
    store.list_common_prefixes.assert_not_called()


def test_listing_errors_are_logged_and_reraised(caplog):
    store = MagicMock(bucket_name=BUCKET)
    store.list_common_prefixes.side_effect = RuntimeError("connection reset")

    with caplog.at_level(logging.ERROR):
        with pytest.raises(RuntimeError):
            get_subfolders_using_prefix_and_delimiter(store, "accessibility/site-1/", "/")

    assert "connection reset" in caplog.text


def test_filter_matches_exact_calendar_date():
    subfolders = [
        f"accessibility/site-1/{millis('2024-01-14', hour=23)}/",
        f"accessibility/site-1/{millis('2024-01-15', hour=0)}/",
        f"accessibility/site-1/{millis('2024-01-15', hour=23)}/",
        f"accessibility/site-1/{millis('2024-01-16', hour=0)}/",
        "accessibility/site-1/not-a-timestamp/",
    ]

    assert filter_subfolders_by_date(subfolders, "2024-01-15") == subfolders[1:3]


def test_locate_no_data_for_site(storage):
    result = locate_subfolders(storage, "accessibility", SITE_ID, "2024-01-15")

    assert result.success is False
    assert result.reason == FailureReason.NO_DATA_FOR_SITE
    assert result.message == (
        f"No accessibility data found in bucket {BUCKET} at prefix accessibility/{SITE_ID}/ "
        f"for site {SITE_ID} with delimiter /"
    )


def test_locate_no_data_for_date(storage):
    put_json(storage, raw_key("2024-01-14", "file1.json"), {"url": "https://example.com"})

    result = locate_subfolders(storage, "accessibility", SITE_ID, "2024-01-15")

    assert result.success is False
    assert result.reason == FailureReason.NO_DATA_FOR_DATE
    assert result.message.startswith("No accessibility data found for date 2024-01-15")


def test_locate_ignores_folders_of_other_sites(storage):
    put_json(storage, raw_key("2024-01-15", "file1.json", site_id="site-10"), {"url": "https://other.com"})

    result = locate_subfolders(storage, "accessibility", SITE_ID, "2024-01-15")

    assert result.reason == FailureReason.NO_DATA_FOR_SITE


def test_collect_keeps_subfolder_order(storage):
    early = f"accessibility/{SITE_ID}/{millis('2024-01-15', hour=1)}/"
    late = f"accessibility/{SITE_ID}/{millis('2024-01-15', hour=9)}/"
    put_json(storage, late + "a.json", {})
    put_json(storage, early + "b.json", {})
    put_json(storage, early + "c.json", {})

    keys = collect_object_keys(storage, [late, early])

    assert keys == [late + "a.json", early + "b.json", early + "c.json"]


def test_collect_only_json_files(storage):
    folder = f"accessibility/{SITE_ID}/{millis('2024-01-15')}/"
    put_json(storage, folder + "a.json", {})
    storage.put_object(folder + "scan.log", b"log line")

    assert collect_object_keys(storage, [folder]) == [folder + "a.json"]


def test_get_object_keys_no_files_in_subfolders(storage):
    folder = f"accessibility/{SITE_ID}/{millis('2024-01-15')}/"
    storage.put_object(folder + "scan.log", b"log line")

    result = get_object_keys_from_subfolders(storage, "accessibility", SITE_ID, "2024-01-15")

    assert result.success is False
    assert result.reason == FailureReason.NO_FILES_IN_SUBFOLDERS
    assert result.message == (
        f"No accessibility data found in bucket {BUCKET} at prefix accessibility/{SITE_ID}/ for site {SITE_ID}"
    )


def test_get_object_keys_success(storage):
    key = raw_key("2024-01-15", "file1.json")
    put_json(storage, key, {"url": "https://example.com"})

    result = get_object_keys_from_subfolders(storage, "accessibility", SITE_ID, "2024-01-15")

    assert result.success is True
    assert result.keys == [key]
