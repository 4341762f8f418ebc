"""
Accessibility snapshot aggregator.

Rolls per-page accessibility scan results up into one snapshot per site
and date, stored next to the raw results in an S3-compatible bucket.
"""

__version__ = "1.0.0"
