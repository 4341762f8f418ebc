"""
Aggregation Pipeline

Runs one aggregation for a site and date:
Validating -> Locating -> Collecting -> Fetching -> Merging -> Persisting -> Done,
with an early exit to Failed from every stage. Once the snapshot is
written the run is Done, whatever happens during cleanup.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from ..integration.hooks import HookEvent, IntegrationHookManager
from ..storage.keys import snapshot_key
from ..storage.storage_interface import ObjectStore
from .audit_types import audit_logger, get_audit_type
from .collector import get_object_keys_from_subfolders
from .exceptions import UnsupportedAuditTypeError
from .fetch import process_files_with_retry
from .merger import AggregationMerger
from .models import (
    DEFAULT_SEVERITIES,
    AggregationResult,
    FailureReason,
    RunStage,
)
from .retention import DEFAULT_RETENTION_COUNT, SnapshotRetentionManager

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 2


def today() -> str:
    """Current UTC calendar date, the default run version."""
    return datetime.now(timezone.utc).date().isoformat()


class AggregationPipeline:
    """
    Aggregates the raw scan results of a site into one snapshot.

    One pipeline can serve many runs; every run builds its own accumulator.
    """

    def __init__(
        self,
        storage: Optional[ObjectStore],
        audit_type: str = "accessibility",
        max_retries: int = DEFAULT_MAX_RETRIES,
        retention_count: int = DEFAULT_RETENTION_COUNT,
        max_concurrency: Optional[int] = None,
        max_keys: int = 1000,
        severities: Tuple[str, ...] = DEFAULT_SEVERITIES,
        hook_manager: Optional[IntegrationHookManager] = None
    ):
        """
        Initialize pipeline.

        Args:
            storage: Object store bound to the scraper bucket
            audit_type: Registered audit type name
            max_retries: Extra fetch attempts per raw file
            retention_count: Dated snapshots kept per site
            max_concurrency: Fetch worker cap (None = one worker per file)
            max_keys: Page size for listing calls
            severities: Severities rolled up into the overall violations
            hook_manager: Receives completion and failure events
        """
        self.storage = storage
        self.audit_type_name = audit_type
        self.max_retries = max_retries
        self.retention_count = retention_count
        self.max_concurrency = max_concurrency
        self.max_keys = max_keys
        self.severities = severities
        self.hook_manager = hook_manager

    def run(
        self,
        site_id: Optional[str],
        version: Optional[str] = None,
        output_key: Optional[str] = None
    ) -> AggregationResult:
        """
        Run one aggregation.

        Args:
            site_id: Site identifier
            version: Target date (YYYY-MM-DD, defaults to today in UTC)
            output_key: Snapshot key override

        Returns:
            AggregationResult; never raises
        """
        if not self.storage or not getattr(self.storage, 'bucket_name', None) \
                or not site_id or not self.audit_type_name:
            message = "Missing required parameters for aggregate_accessibility_data"
            logger.error(message)
            return self._failed(RunStage.VALIDATING, FailureReason.INVALID_PARAMETERS, message, site_id)

        try:
            audit_type = get_audit_type(self.audit_type_name)
        except UnsupportedAuditTypeError as e:
            logger.error(str(e))
            return self._failed(RunStage.VALIDATING, FailureReason.UNSUPPORTED_AUDIT_TYPE, str(e), site_id)

        log = audit_logger(audit_type, logger)
        version = version or today()
        output_key = output_key or snapshot_key(audit_type.storage_prefix, site_id, version)

        stage = RunStage.LOCATING
        try:
            located = get_object_keys_from_subfolders(
                self.storage, audit_type.storage_prefix, site_id, version,
                log=log, max_keys=self.max_keys
            )
            if not located.success:
                if located.reason == FailureReason.NO_FILES_IN_SUBFOLDERS:
                    stage = RunStage.COLLECTING
                return self._failed(stage, located.reason, located.message, site_id)
            object_keys = located.keys

            stage = RunStage.FETCHING
            results = process_files_with_retry(
                self.storage, object_keys, log=log,
                max_retries=self.max_retries,
                max_concurrency=self.max_concurrency
            )
            if not results:
                message = f"No files could be processed successfully for site {site_id}"
                log.error(message)
                return self._failed(stage, FailureReason.NO_FILES_PROCESSED, message, site_id,
                                    failed_count=len(object_keys))

            stage = RunStage.MERGING
            merger = AggregationMerger(audit_type=audit_type, severities=self.severities, log=log)
            snapshot = merger.add_all(results)

            stage = RunStage.PERSISTING
            retention = SnapshotRetentionManager(
                self.storage, site_id, audit_type,
                retention_count=self.retention_count, log=log, max_keys=self.max_keys
            )
            retention.save_snapshot(snapshot, output_key)
        except Exception as e:
            log.error(f"Error aggregating accessibility data for site {site_id}: {e}")
            return self._failed(stage, FailureReason.ERROR, f"Error: {e}", site_id)

        last_week, pruned_key = self._cleanup(retention, object_keys, log)

        result = AggregationResult(
            success=True,
            message=f"Successfully aggregated {len(object_keys)} files into {output_key}",
            stage=RunStage.DONE,
            current=snapshot,
            last_week=last_week,
            output_key=output_key,
            processed_count=len(results),
            failed_count=len(object_keys) - len(results)
        )
        self._fire(HookEvent.AGGREGATION_COMPLETED, {
            'site_id': site_id,
            'audit_type': audit_type.name,
            'version': version,
            'output_key': output_key,
            'processed_count': result.processed_count,
            'failed_count': result.failed_count,
            'total_violations': snapshot.overall.total
        })
        if pruned_key:
            self._fire(HookEvent.SNAPSHOT_PRUNED, {'site_id': site_id, 'key': pruned_key})
        return result

    def _cleanup(self, retention: SnapshotRetentionManager, object_keys: List[str], log):
        """Steps after the write; every failure here is logged, never raised."""
        try:
            snapshot_keys = retention.list_snapshot_keys()
            log.info(f"Found {len(snapshot_keys)} final-result files for site {retention.site_id}: {snapshot_keys}")
        except Exception as e:
            log.error(f"Error listing final result files for site {retention.site_id}: {e}")
            snapshot_keys = []

        last_week = retention.load_comparison_snapshot(snapshot_keys)
        retention.delete_original_files(object_keys)
        pruned_key = retention.prune_oldest_snapshot(snapshot_keys)
        return last_week, pruned_key

    def _failed(
        self,
        stage: RunStage,
        reason: Optional[FailureReason],
        message: str,
        site_id: Optional[str],
        failed_count: int = 0
    ) -> AggregationResult:
        self._fire(HookEvent.AGGREGATION_FAILED, {
            'site_id': site_id,
            'audit_type': self.audit_type_name,
            'stage': stage.value,
            'reason': reason.value if reason else None,
            'message': message
        })
        return AggregationResult(
            success=False,
            message=message,
            stage=stage,
            reason=reason,
            failed_count=failed_count
        )

    def _fire(self, event: HookEvent, data: dict):
        if self.hook_manager is None:
            return
        try:
            self.hook_manager.fire_event(event, data)
        except Exception as e:
            logger.error(f"Failed to fire {event.value} event: {e}")


def aggregate_accessibility_data(
    storage: Optional[ObjectStore],
    site_id: Optional[str],
    output_key: Optional[str] = None,
    version: Optional[str] = None,
    audit_type: str = "accessibility",
    max_retries: int = DEFAULT_MAX_RETRIES,
    retention_count: int = DEFAULT_RETENTION_COUNT,
    max_concurrency: Optional[int] = None
) -> AggregationResult:
    """Run one aggregation with a throwaway pipeline."""
    pipeline = AggregationPipeline(
        storage,
        audit_type=audit_type,
        max_retries=max_retries,
        retention_count=retention_count,
        max_concurrency=max_concurrency
    )
    return pipeline.run(site_id, version=version, output_key=output_key)
