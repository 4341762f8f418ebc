"""
Snapshot Retention Manager

Persists the aggregate snapshot of a run and keeps the history of a site
bounded: loads the comparison snapshot, deletes the consumed raw inputs and
prunes the oldest dated snapshot.
"""

import logging
from typing import Any, Dict, List, Optional

from ..storage.keys import SNAPSHOT_SUFFIX, site_prefix, snapshot_date, snapshot_key
from ..storage.storage_interface import ObjectStore
from .audit_types import ACCESSIBILITY, AuditType
from .exceptions import PersistenceError
from .fetch import get_object_from_key
from .models import AggregateSnapshot

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_COUNT = 2


class SnapshotRetentionManager:
    """
    Manages the dated snapshots of one site.

    Only the write of the new snapshot may fail a run. Listing, comparison
    loading, raw-input deletion and pruning log their errors and degrade.
    """

    def __init__(
        self,
        storage: ObjectStore,
        site_id: str,
        audit_type: AuditType = ACCESSIBILITY,
        retention_count: int = DEFAULT_RETENTION_COUNT,
        log=None,
        max_keys: int = 1000
    ):
        """
        Initialize retention manager.

        Args:
            storage: Object store bound to a bucket
            site_id: Site identifier
            audit_type: Audit type owning the snapshots
            retention_count: Dated snapshots to keep per site
            log: Logger (defaults to the module logger)
            max_keys: Page size for the listing calls
        """
        self.storage = storage
        self.site_id = site_id
        self.audit_type = audit_type
        self.retention_count = retention_count
        self.max_keys = max_keys
        self.log = log or logger

    def snapshot_key(self, version: str) -> str:
        return snapshot_key(self.audit_type.storage_prefix, self.site_id, version)

    def save_snapshot(self, snapshot: AggregateSnapshot, output_key: str):
        """
        Write the snapshot as pretty-printed JSON.

        Raises:
            PersistenceError: the write failed
        """
        try:
            self.storage.put_object(
                output_key,
                snapshot.to_json().encode('utf-8'),
                content_type='application/json'
            )
        except Exception as e:
            self.log.error(f"Failed to save aggregated data to {output_key}: {e}")
            raise PersistenceError(str(e)) from e

        self.log.info(f"Saved aggregated accessibility data to {output_key}")

    def list_snapshot_keys(self) -> List[str]:
        """Snapshot keys of the site, oldest date first."""
        keys = self.storage.list_keys(
            site_prefix(self.audit_type.storage_prefix, self.site_id),
            max_keys=self.max_keys,
            suffix=SNAPSHOT_SUFFIX
        )
        return sorted(keys, key=snapshot_date)

    def load_comparison_snapshot(self, snapshot_keys: List[str]) -> Optional[Dict[str, Any]]:
        """
        Load the snapshot preceding the newest one.

        Returns:
            The snapshot at index len-2, or None with fewer than two snapshots
        """
        if len(snapshot_keys) < 2:
            return None

        comparison_key = snapshot_keys[-2]
        try:
            comparison = get_object_from_key(self.storage, comparison_key, self.log)
        except Exception as e:
            self.log.error(f"Error loading last week file {comparison_key}: {e}")
            return None

        if comparison is not None:
            self.log.info(f"Last week file key: {comparison_key}")
        return comparison

    def delete_original_files(self, object_keys: List[str]) -> int:
        """
        Delete the raw result files consumed by the run.

        Returns:
            Number of deleted files (0 on error)
        """
        if not object_keys:
            return 0

        try:
            if len(object_keys) > 1:
                deleted_count = self.storage.delete_objects(object_keys)
            else:
                deleted_count = 1 if self.storage.delete_object(object_keys[0]) else 0
        except Exception as e:
            self.log.error(f"Error deleting original files: {e}")
            return 0

        self.log.info(f"Deleted {deleted_count} original files after aggregation")
        return deleted_count

    def prune_oldest_snapshot(self, snapshot_keys: List[str]) -> Optional[str]:
        """
        Delete the single oldest snapshot when more than retention_count exist.

        Returns:
            The deleted key, or None when nothing was pruned
        """
        if len(snapshot_keys) <= self.retention_count:
            return None

        oldest_key = sorted(snapshot_keys, key=snapshot_date)[0]
        try:
            deleted = self.storage.delete_object(oldest_key)
        except Exception as e:
            self.log.error(f"Error deleting oldest final result file {oldest_key}: {e}")
            return None

        if not deleted:
            return None

        self.log.info(f"Deleted oldest final result file: {oldest_key}")
        return oldest_key
