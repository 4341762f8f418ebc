"""Builders for raw scan records and stored objects."""

import json
from datetime import datetime, timezone

BUCKET = "scraper-bucket"
SITE_ID = "site-1"


def millis(day: str, hour: int = 12) -> str:
    """Epoch milliseconds of `hour` o'clock UTC on a YYYY-MM-DD day."""
    moment = datetime.strptime(day, "%Y-%m-%d").replace(hour=hour, tzinfo=timezone.utc)
    return str(int(moment.timestamp() * 1000))


def page_record(url, total=None, critical=None, serious=None, traffic=None, source=None):
    """Build a raw scan record the way the scanner writes it."""
    violations = {}
    if total is not None:
        violations["total"] = total
    if critical is not None:
        violations["critical"] = critical
    if serious is not None:
        violations["serious"] = serious
    record = {"url": url, "violations": violations, "traffic": traffic}
    if source is not None:
        record["source"] = source
    return record


def category(count, **items):
    """Severity bucket with rule id -> count items."""
    return {
        "count": count,
        "items": {
            rule_id: {
                "count": rule_count,
                "description": f"{rule_id} description",
                "level": "A",
                "understandingUrl": f"https://www.w3.org/WAI/WCAG21/Understanding/{rule_id}",
                "successCriteriaNumber": "111"
            }
            for rule_id, rule_count in items.items()
        }
    }


def put_json(storage, key, data):
    storage.put_object(key, json.dumps(data).encode("utf-8"), content_type="application/json")


def raw_key(day, name, site_id=SITE_ID, prefix="accessibility", hour=12):
    return f"{prefix}/{site_id}/{millis(day, hour)}/{name}"


def snapshot_key(day, site_id=SITE_ID, prefix="accessibility"):
    return f"{prefix}/{site_id}/{day}-final-result.json"
