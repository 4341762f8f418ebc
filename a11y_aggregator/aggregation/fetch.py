"""
Resilient Fetch-Parse Stage

Fetches and parses every raw result file concurrently. Each file is
retried on its own; a file that keeps failing is dropped without
affecting the rest of the batch.
"""

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

from ..storage.storage_interface import ObjectStore
from .models import FetchedFile

logger = logging.getLogger(__name__)


def get_object_from_key(storage: ObjectStore, key: str, log=None) -> Optional[Dict[str, Any]]:
    """
    Fetch one object and parse it as JSON.

    Returns:
        Parsed object, or None when the object is missing, empty or not JSON

    Raises:
        Any store or transport error, so the caller can retry
    """
    log = log or logger

    try:
        body = storage.get_object(key)
    except FileNotFoundError:
        log.info(f"Object {key} does not exist")
        return None

    if not body:
        return None

    try:
        return json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        log.error(f"Unable to parse content for key {key}: {e}")
        return None


def _process_file_with_retry(
    storage: ObjectStore,
    key: str,
    log,
    max_retries: int
) -> Optional[FetchedFile]:
    """Fetch one key, retrying immediately on errors up to max_retries times."""
    attempt = 0
    while True:
        try:
            data = get_object_from_key(storage, key, log)
        except Exception as e:
            if attempt < max_retries:
                attempt += 1
                log.warning(f"Retrying file {key} (attempt {attempt}/{max_retries}): {e}")
                continue
            log.error(f"Failed to process file {key} after {max_retries} retries: {e}")
            return None

        if data is None:
            log.warning(f"Failed to get data from {key}, skipping")
            return None

        return FetchedFile(key=key, data=data)


def process_files_with_retry(
    storage: ObjectStore,
    object_keys: List[str],
    log=None,
    max_retries: int = 1,
    max_concurrency: Optional[int] = None
) -> List[FetchedFile]:
    """
    Fetch and parse every key concurrently.

    Args:
        storage: Object store bound to a bucket
        object_keys: Raw result keys
        log: Logger (defaults to the module logger)
        max_retries: Extra attempts per key after the first failure
        max_concurrency: Worker cap (None = one worker per key)

    Returns:
        Successfully parsed files, in the order of object_keys
    """
    log = log or logger

    if not object_keys:
        return []

    workers = len(object_keys) if max_concurrency is None else max(1, min(max_concurrency, len(object_keys)))

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="a11y-fetch") as executor:
        futures = [
            executor.submit(_process_file_with_retry, storage, key, log, max_retries)
            for key in object_keys
        ]
        settled = [future.result() for future in futures]

    results = [result for result in settled if result is not None]
    failed_count = len(object_keys) - len(results)

    if failed_count > 0:
        log.warning(
            f"{failed_count} out of {len(object_keys)} files failed to process, "
            f"continuing with {len(results)} successful files"
        )

    log.info(
        f"File processing completed: {len(results)} successful, "
        f"{failed_count} failed out of {len(object_keys)} total files"
    )
    return results
