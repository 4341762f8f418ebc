"""
Aggregation Merger

Folds parsed per-page records into one AggregateSnapshot. The merge runs
after every fetch has been joined, so the accumulator has a single owner.
"""

import logging
from typing import Any, Iterable, Optional, Tuple

from .audit_types import ACCESSIBILITY, AuditType
from .models import (
    DEFAULT_SEVERITIES,
    AggregateSnapshot,
    FetchedFile,
    PageEntry,
    RawPageRecord,
    ViolationSet,
)

logger = logging.getLogger(__name__)


class AggregationMerger:
    """
    Accumulates page records into an AggregateSnapshot.

    Page entries are keyed by URL (or url?source=<selector> for form
    audits); a repeated key keeps the last record. Severity and rule
    counts are always added, never overwritten.
    """

    def __init__(
        self,
        audit_type: AuditType = ACCESSIBILITY,
        severities: Tuple[str, ...] = DEFAULT_SEVERITIES,
        log=None
    ):
        self.audit_type = audit_type
        self.log = log or logger
        self.snapshot = AggregateSnapshot(overall=ViolationSet.empty(severities))
        self.merged_count = 0

    def add(self, data: Any, key: Optional[str] = None) -> bool:
        """
        Merge one parsed record.

        Returns:
            False if the record was malformed or had no URL and was skipped
        """
        source = f" from {key}" if key else ""
        if not isinstance(data, dict) or not isinstance(data.get('violations') or {}, dict):
            self.log.warning(f"Skipping malformed record{source}")
            return False

        record = RawPageRecord.from_dict(data)
        page_key = record.page_key(self.audit_type.uses_form_source)
        if not page_key:
            self.log.warning(f"Skipping record without url{source}")
            return False

        self.snapshot.pages[page_key] = PageEntry(
            violations=record.violations,
            traffic=record.traffic
        )
        self.snapshot.overall.merge(record.violations)
        self.merged_count += 1
        return True

    def add_all(self, files: Iterable[FetchedFile]) -> AggregateSnapshot:
        for fetched in files:
            self.add(fetched.data, key=fetched.key)
        return self.snapshot


def merge_records(
    files: Iterable[FetchedFile],
    audit_type: AuditType = ACCESSIBILITY,
    severities: Tuple[str, ...] = DEFAULT_SEVERITIES,
    log=None
) -> AggregateSnapshot:
    """Merge fetched files into a fresh snapshot."""
    merger = AggregationMerger(audit_type=audit_type, severities=severities, log=log)
    return merger.add_all(files)
