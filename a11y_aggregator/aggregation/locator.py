"""
Subfolder Locator

Finds the timestamped result folders of a site that belong to the target
calendar date.
"""

import logging
from typing import List, Optional

from ..storage.keys import DELIMITER, site_prefix, subfolder_timestamp, timestamp_to_date
from ..storage.storage_interface import ObjectStore
from .exceptions import InvalidParametersError
from .models import FailureReason, LocatorResult

logger = logging.getLogger(__name__)


def get_subfolders_using_prefix_and_delimiter(
    storage: Optional[ObjectStore],
    prefix: Optional[str],
    delimiter: Optional[str],
    log=None,
    max_keys: int = 1000
) -> List[str]:
    """
    List the common prefixes below a prefix.

    Args:
        storage: Object store bound to a bucket
        prefix: Key prefix to list under
        delimiter: Grouping delimiter
        log: Logger (defaults to the module logger)
        max_keys: Page size for the listing calls

    Returns:
        Subfolder prefixes

    Raises:
        InvalidParametersError: storage, bucket, prefix or delimiter missing
    """
    log = log or logger
    bucket_name = getattr(storage, 'bucket_name', None)

    if not storage or not bucket_name or not prefix or not delimiter:
        log.error(
            f"Invalid input parameters in get_subfolders_using_prefix_and_delimiter: "
            f"ensure storage, delimiter:{delimiter}, bucket_name:{bucket_name}, and prefix:{prefix} are provided."
        )
        raise InvalidParametersError(
            "Invalid input parameters in get_subfolders_using_prefix_and_delimiter: "
            "ensure storage, delimiter, bucket_name, and prefix are provided."
        )

    try:
        subfolders = storage.list_common_prefixes(prefix, delimiter=delimiter, max_keys=max_keys)
    except Exception as e:
        log.error(
            f"Error while fetching object keys using bucket {bucket_name} "
            f"and prefix {prefix} with delimiter {delimiter}: {e}"
        )
        raise

    log.info(
        f"Fetched {len(subfolders)} keys from storage for bucket {bucket_name} "
        f"and prefix {prefix} with delimiter {delimiter}"
    )
    return subfolders


def filter_subfolders_by_date(subfolders: List[str], version: str, log=None) -> List[str]:
    """Keep the subfolders whose millisecond timestamp falls on `version` (UTC)."""
    log = log or logger
    matching = []

    for subfolder in subfolders:
        timestamp = subfolder_timestamp(subfolder)
        folder_date = timestamp_to_date(timestamp)
        if folder_date is None:
            log.debug(f"Ignoring subfolder without a millisecond timestamp: {subfolder}")
            continue
        if folder_date == version:
            matching.append(subfolder)

    return matching


def locate_subfolders(
    storage: ObjectStore,
    storage_prefix: str,
    site_id: str,
    version: str,
    log=None,
    max_keys: int = 1000
) -> LocatorResult:
    """
    Find the result folders of a site for one calendar date.

    Args:
        storage: Object store bound to a bucket
        storage_prefix: Audit-type storage prefix
        site_id: Site identifier
        version: Target date (YYYY-MM-DD)
        log: Logger (defaults to the module logger)
        max_keys: Page size for the listing calls

    Returns:
        LocatorResult whose keys are the matching subfolders
    """
    log = log or logger
    prefix = site_prefix(storage_prefix, site_id)
    bucket_name = storage.bucket_name
    log.info(f"Fetching accessibility data for site {site_id} from bucket {bucket_name}")

    subfolders = get_subfolders_using_prefix_and_delimiter(
        storage, prefix, DELIMITER, log=log, max_keys=max_keys
    )
    if not subfolders:
        message = (
            f"No accessibility data found in bucket {bucket_name} at prefix {prefix} "
            f"for site {site_id} with delimiter {DELIMITER}"
        )
        log.info(message)
        return LocatorResult(False, [], message, FailureReason.NO_DATA_FOR_SITE)

    log.info(f"Found {len(subfolders)} subfolders for site {site_id} in bucket {bucket_name}: {subfolders}")

    # leftover folders from earlier runs that failed to be cleaned up are skipped here
    current = filter_subfolders_by_date(subfolders, version, log=log)
    if not current:
        message = (
            f"No accessibility data found for date {version} in bucket {bucket_name} "
            f"at prefix {prefix} for site {site_id} with delimiter {DELIMITER}"
        )
        log.info(message)
        return LocatorResult(False, [], message, FailureReason.NO_DATA_FOR_DATE)

    return LocatorResult(True, current, f"Found {len(current)} subfolders for {version}")
