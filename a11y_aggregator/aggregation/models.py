"""
Aggregation Models

Violation counters, per-page records, the aggregate snapshot and the
structured result returned by a pipeline run.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any, List, Tuple

DEFAULT_SEVERITIES: Tuple[str, ...] = ("critical", "serious")

OVERALL_KEY = "overall"


def count_value(value: Any) -> int:
    """Integer count of a raw field; anything else counts as 0."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return 0


class RunStage(Enum):
    """Stages of a single aggregation run."""
    VALIDATING = "validating"
    LOCATING = "locating"
    COLLECTING = "collecting"
    FETCHING = "fetching"
    MERGING = "merging"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


class FailureReason(Enum):
    """Why a run ended in the failed state."""
    INVALID_PARAMETERS = "invalid_parameters"
    UNSUPPORTED_AUDIT_TYPE = "unsupported_audit_type"
    NO_DATA_FOR_SITE = "no_data_for_site"
    NO_DATA_FOR_DATE = "no_data_for_date"
    NO_FILES_IN_SUBFOLDERS = "no_files_in_subfolders"
    NO_FILES_PROCESSED = "no_files_processed"
    ERROR = "error"


@dataclass
class RuleItem:
    """Aggregated count and descriptive metadata of one accessibility rule."""
    count: int = 0
    description: Optional[str] = None
    level: Optional[str] = None
    understanding_url: Optional[str] = None
    success_criteria_number: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'count': self.count,
            'description': self.description,
            'level': self.level,
            'understandingUrl': self.understanding_url,
            'successCriteriaNumber': self.success_criteria_number
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RuleItem':
        return cls(
            count=count_value(data.get('count')),
            description=data.get('description'),
            level=data.get('level'),
            understanding_url=data.get('understandingUrl'),
            success_criteria_number=data.get('successCriteriaNumber')
        )


@dataclass
class ViolationCategory:
    """One severity bucket: a count plus rule id -> RuleItem."""
    count: int = 0
    items: Dict[str, RuleItem] = field(default_factory=dict)

    def add_item(self, rule_id: str, item: Dict[str, Any]):
        """Insert a rule, or add its count to the rule already present."""
        if not isinstance(item, dict):
            return
        existing = self.items.get(rule_id)
        if existing is None:
            self.items[rule_id] = RuleItem.from_dict(item)
        else:
            existing.count += count_value(item.get('count'))

    def merge(self, other: Dict[str, Any]):
        """Fold a raw category mapping into this one."""
        self.count += count_value(other.get('count'))
        items = other.get('items')
        if not isinstance(items, dict):
            return
        for rule_id, item in items.items():
            self.add_item(rule_id, item)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'count': self.count,
            'items': {rule_id: item.to_dict() for rule_id, item in self.items.items()}
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ViolationCategory':
        category = cls()
        category.merge(data)
        return category


@dataclass
class ViolationSet:
    """Site-wide total plus one ViolationCategory per rolled-up severity."""
    total: int = 0
    categories: Dict[str, ViolationCategory] = field(default_factory=dict)

    @classmethod
    def empty(cls, severities: Tuple[str, ...] = DEFAULT_SEVERITIES) -> 'ViolationSet':
        return cls(total=0, categories={level: ViolationCategory() for level in severities})

    def merge(self, violations: Dict[str, Any]):
        """
        Fold one page's raw violations into the rollup.

        Only severities tracked by this set are merged. A missing total
        contributes nothing, even when the severity counts are present.
        Non-integer counts and totals are ignored.
        """
        for level, category in self.categories.items():
            raw_category = violations.get(level)
            if isinstance(raw_category, dict):
                category.merge(raw_category)

        self.total += count_value(violations.get('total'))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'total': self.total}
        for level, category in self.categories.items():
            data[level] = category.to_dict()
        return data

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        severities: Tuple[str, ...] = DEFAULT_SEVERITIES
    ) -> 'ViolationSet':
        violation_set = cls.empty(severities)
        violation_set.merge(data)
        return violation_set


@dataclass
class PageEntry:
    """Per-page data stored in the snapshot, violations kept as read."""
    violations: Dict[str, Any]
    traffic: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {'violations': self.violations, 'traffic': self.traffic}


@dataclass
class RawPageRecord:
    """One scanned page as produced by the upstream scanner."""
    url: Optional[str]
    violations: Dict[str, Any]
    traffic: Any = None
    source: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RawPageRecord':
        return cls(
            url=data.get('url'),
            violations=data.get('violations') or {},
            traffic=data.get('traffic'),
            source=data.get('source')
        )

    def page_key(self, use_form_source: bool = False) -> Optional[str]:
        """Plain URL, or url?source=<selector> for form-scoped audits."""
        if use_form_source and self.source and self.url:
            return f"{self.url}?source={self.source}"
        return self.url


@dataclass
class AggregateSnapshot:
    """
    The per-site accumulator and persisted artifact.

    Serialized as {"overall": {"violations": ...}, "<pageKey>": {...}, ...}.
    """
    overall: ViolationSet = field(default_factory=ViolationSet.empty)
    pages: Dict[str, PageEntry] = field(default_factory=dict)

    def combine(self, other: 'AggregateSnapshot') -> 'AggregateSnapshot':
        """Merge another snapshot into a new one; pages from `other` win on key clashes."""
        combined = AggregateSnapshot.from_dict(self.to_dict(), tuple(self.overall.categories))
        combined.overall.merge(other.overall.to_dict())
        for page_key, entry in other.pages.items():
            combined.pages[page_key] = PageEntry(entry.violations, entry.traffic)
        return combined

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {OVERALL_KEY: {'violations': self.overall.to_dict()}}
        for page_key, entry in self.pages.items():
            data[page_key] = entry.to_dict()
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        severities: Tuple[str, ...] = DEFAULT_SEVERITIES
    ) -> 'AggregateSnapshot':
        overall_violations = (data.get(OVERALL_KEY) or {}).get('violations') or {}
        snapshot = cls(overall=ViolationSet.from_dict(overall_violations, severities))
        for page_key, value in data.items():
            if page_key == OVERALL_KEY or not isinstance(value, dict):
                continue
            snapshot.pages[page_key] = PageEntry(
                violations=value.get('violations') or {},
                traffic=value.get('traffic')
            )
        return snapshot


@dataclass
class FetchedFile:
    """A raw result file that was fetched and parsed."""
    key: str
    data: Dict[str, Any]


@dataclass
class LocatorResult:
    """Outcome of locating folders or collecting keys."""
    success: bool
    keys: List[str]
    message: str
    reason: Optional[FailureReason] = None


@dataclass
class AggregationResult:
    """Structured result of one aggregation run."""
    success: bool
    message: str
    stage: RunStage
    reason: Optional[FailureReason] = None
    current: Optional[AggregateSnapshot] = None
    last_week: Optional[Dict[str, Any]] = None
    output_key: Optional[str] = None
    processed_count: int = 0
    failed_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'message': self.message,
            'stage': self.stage.value,
            'reason': self.reason.value if self.reason else None,
            'output_key': self.output_key,
            'processed_count': self.processed_count,
            'failed_count': self.failed_count,
            'final_result_files': {
                'current': self.current.to_dict() if self.current else None,
                'last_week': self.last_week
            }
        }
