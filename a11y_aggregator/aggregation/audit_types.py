"""
Audit Types

Each audit type owns a storage prefix and the identifier that prefixes
every log line of a run.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from .exceptions import UnsupportedAuditTypeError


@dataclass(frozen=True)
class AuditType:
    """Storage and logging settings for one audit type."""
    name: str
    storage_prefix: str
    log_identifier: str
    uses_form_source: bool = False


ACCESSIBILITY = AuditType(
    name="accessibility",
    storage_prefix="accessibility",
    log_identifier="A11yAudit"
)

FORMS_OPPORTUNITIES = AuditType(
    name="forms-opportunities",
    storage_prefix="forms-accessibility",
    log_identifier="FormsA11yAudit",
    uses_form_source=True
)

AUDIT_TYPES: Dict[str, AuditType] = {
    ACCESSIBILITY.name: ACCESSIBILITY,
    FORMS_OPPORTUNITIES.name: FORMS_OPPORTUNITIES,
}


def get_audit_type(name: str) -> AuditType:
    """
    Look up a registered audit type.

    Raises:
        UnsupportedAuditTypeError: name is not registered
    """
    try:
        return AUDIT_TYPES[name]
    except KeyError:
        raise UnsupportedAuditTypeError(name) from None


class AuditLogAdapter(logging.LoggerAdapter):
    """Prefixes every message with the audit type's log identifier."""

    def process(self, msg, kwargs):
        return f"[{self.extra['log_identifier']}] {msg}", kwargs


def audit_logger(
    audit_type: AuditType,
    logger: Optional[logging.Logger] = None
) -> AuditLogAdapter:
    """Wrap a logger so its lines carry the audit type's identifier."""
    base = logger or logging.getLogger("a11y_aggregator")
    return AuditLogAdapter(base, {'log_identifier': audit_type.log_identifier})
