"""
URLs for the next audit

Reads the newest snapshot of a site and lists its scanned pages so the
next scan can be scheduled for them.
"""

import logging
from typing import Any, Dict, List

from ..storage.storage_interface import ObjectStore
from .audit_types import audit_logger, get_audit_type
from .exceptions import UnsupportedAuditTypeError
from .fetch import get_object_from_key
from .models import OVERALL_KEY
from .retention import SnapshotRetentionManager

logger = logging.getLogger(__name__)

URL_SCHEME = "https://"


def get_urls_for_audit(
    storage: ObjectStore,
    site_id: str,
    audit_type: str = "accessibility"
) -> List[Dict[str, Any]]:
    """
    List the pages of the newest snapshot of a site.

    Returns:
        [{'url', 'urlId', 'traffic'}] for every https page key; empty on any failure
    """
    try:
        audit = get_audit_type(audit_type)
    except UnsupportedAuditTypeError as e:
        logger.error(f"Cannot list URLs for {site_id}: {e}")
        return []

    log = audit_logger(audit, logger)
    retention = SnapshotRetentionManager(storage, site_id, audit, log=log)

    try:
        snapshot_keys = retention.list_snapshot_keys()
    except Exception as e:
        log.error(f"Error getting final result files for {site_id}: {e}")
        return []

    if not snapshot_keys:
        log.error(f"No final result files found for {site_id}")
        return []

    latest_key = snapshot_keys[-1]
    try:
        latest = get_object_from_key(storage, latest_key, log)
    except Exception as e:
        log.error(f"Error getting latest final result file for {site_id}: {e}")
        return []

    if not latest:
        log.error(f"No latest final result file found for {site_id}")
        return []

    urls = [
        {
            'url': page_key,
            'urlId': page_key.replace(URL_SCHEME, ''),
            'traffic': value.get('traffic') if isinstance(value, dict) else None
        }
        for page_key, value in latest.items()
        if page_key != OVERALL_KEY and URL_SCHEME in page_key
    ]

    if not urls:
        log.error(f"No URLs found for {site_id}")
    return urls
