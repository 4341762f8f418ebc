"""
Aggregation Errors

Conditions that abort a call. No-data outcomes are not exceptions; they
come back as unsuccessful results carrying a FailureReason.
"""


class AggregationError(Exception):
    """Base class for aggregation pipeline errors."""


class InvalidParametersError(AggregationError):
    """A required client, bucket, prefix or delimiter was not provided."""


class UnsupportedAuditTypeError(AggregationError):
    """The audit type has no storage prefix registered."""

    def __init__(self, audit_type: str):
        super().__init__(f"Unsupported audit type: {audit_type}")
        self.audit_type = audit_type


class PersistenceError(AggregationError):
    """The aggregated snapshot could not be written."""
