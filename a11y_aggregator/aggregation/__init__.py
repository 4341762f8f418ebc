"""
Aggregation Pipeline

Locates a site's raw scan results for a date, fetches and merges them into
one snapshot, and keeps the site's snapshot history bounded.
"""

from .audit_types import ACCESSIBILITY, FORMS_OPPORTUNITIES, AuditType, get_audit_type
from .exceptions import (
    AggregationError,
    InvalidParametersError,
    PersistenceError,
    UnsupportedAuditTypeError,
)
from .models import (
    AggregateSnapshot,
    AggregationResult,
    FailureReason,
    RunStage,
    ViolationSet,
)
from .pipeline import AggregationPipeline, aggregate_accessibility_data
from .retention import SnapshotRetentionManager
from .urls import get_urls_for_audit

__all__ = [
    'ACCESSIBILITY',
    'FORMS_OPPORTUNITIES',
    'AuditType',
    'get_audit_type',
    'AggregationError',
    'InvalidParametersError',
    'PersistenceError',
    'UnsupportedAuditTypeError',
    'AggregateSnapshot',
    'AggregationResult',
    'FailureReason',
    'RunStage',
    'ViolationSet',
    'AggregationPipeline',
    'aggregate_accessibility_data',
    'SnapshotRetentionManager',
    'get_urls_for_audit'
]
