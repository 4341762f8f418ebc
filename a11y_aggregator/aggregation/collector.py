"""
Object Collector

Expands the located subfolders into the flat list of raw result keys.
"""

import logging
from typing import List

from ..storage.keys import RAW_RESULT_SUFFIX, site_prefix
from ..storage.storage_interface import ObjectStore
from .locator import locate_subfolders
from .models import FailureReason, LocatorResult

logger = logging.getLogger(__name__)


def collect_object_keys(
    storage: ObjectStore,
    subfolders: List[str],
    log=None,
    max_keys: int = 1000
) -> List[str]:
    """
    List the raw result files of each subfolder.

    Keys keep subfolder order first, then the listing order inside a folder.
    """
    log = log or logger
    object_keys: List[str] = []

    for subfolder in subfolders:
        log.info(f"Subfolder: {subfolder}")
        keys = storage.list_keys(subfolder, max_keys=max_keys, suffix=RAW_RESULT_SUFFIX)
        log.debug(f"Object keys in {subfolder}: {keys}")
        object_keys.extend(keys)

    return object_keys


def get_object_keys_from_subfolders(
    storage: ObjectStore,
    storage_prefix: str,
    site_id: str,
    version: str,
    log=None,
    max_keys: int = 1000
) -> LocatorResult:
    """
    Locate the date's subfolders and collect their raw result keys.

    Returns:
        LocatorResult whose keys are the raw result object keys
    """
    log = log or logger

    located = locate_subfolders(storage, storage_prefix, site_id, version, log=log, max_keys=max_keys)
    if not located.success:
        return located

    object_keys = collect_object_keys(storage, located.keys, log=log, max_keys=max_keys)
    if not object_keys:
        prefix = site_prefix(storage_prefix, site_id)
        message = (
            f"No accessibility data found in bucket {storage.bucket_name} "
            f"at prefix {prefix} for site {site_id}"
        )
        log.info(message)
        return LocatorResult(False, [], message, FailureReason.NO_FILES_IN_SUBFOLDERS)

    log.info(f"Found {len(object_keys)} data files for site {site_id}")
    return LocatorResult(True, object_keys, f"Found {len(object_keys)} data files")
