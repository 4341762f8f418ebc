"""
Object Key Conventions

Raw results:  <storage_prefix>/<site_id>/<epoch_millis>/<file>.json
Snapshots:    <storage_prefix>/<site_id>/<YYYY-MM-DD>-final-result.json
"""

from datetime import datetime, timezone
from typing import Optional

DELIMITER = "/"
RAW_RESULT_SUFFIX = ".json"
SNAPSHOT_SUFFIX = "-final-result.json"


def site_prefix(storage_prefix: str, site_id: str) -> str:
    """Prefix holding every raw folder and snapshot of a site."""
    return f"{storage_prefix}/{site_id}/"


def snapshot_key(storage_prefix: str, site_id: str, version: str) -> str:
    """Canonical key of the snapshot for a calendar date."""
    return f"{storage_prefix}/{site_id}/{version}{SNAPSHOT_SUFFIX}"


def snapshot_date(key: str) -> str:
    """Date string embedded in a snapshot key."""
    return key.split(DELIMITER)[-1].replace(SNAPSHOT_SUFFIX, "")


def subfolder_timestamp(subfolder: str) -> str:
    """Last non-empty segment of a subfolder prefix."""
    segments = [segment for segment in subfolder.split(DELIMITER) if segment]
    return segments[-1] if segments else ""


def timestamp_to_date(timestamp: str) -> Optional[str]:
    """
    Convert an epoch-milliseconds string to a UTC calendar date.

    Returns:
        YYYY-MM-DD, or None if the segment is not a millisecond timestamp
    """
    try:
        millis = int(timestamp)
        moment = datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        return None
    return moment.date().isoformat()
