"""Billing math for completed usage.

``compute_cost_snapshot`` is the only place billable hours and cost are
derived; the completion flow and the backfill job both go through it.
"""

import math
from datetime import datetime, timedelta, timezone as dt_timezone

from django.utils import timezone

from ..models import CategoryRate
from ..timeutils import parse_timestamp

MS_PER_HOUR = 60 * 60 * 1000
SNAPSHOT_FIELDS = [
    "hourly_rate_cents_snapshot",
    "billable_hours_snapshot",
    "cost_cents_snapshot",
    "snapshot_at",
    "snapshot_source",
]

_EPOCH = datetime(1970, 1, 1, tzinfo=dt_timezone.utc)


def _epoch_ms(value):
    return (value - _EPOCH) // timedelta(milliseconds=1)


def normalize_rate(hourly_rate_cents) -> int:
    """Clamp a rate to a non-negative whole number of cents.

    Halves round up. Anything that isn't a finite number becomes 0.
    """
    if isinstance(hourly_rate_cents, int):
        return max(0, hourly_rate_cents)
    try:
        rate = float(hourly_rate_cents)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(rate):
        return 0
    return max(0, math.floor(rate + 0.5))


def compute_cost_snapshot(start, end, hourly_rate_cents):
    """Return ``{"billable_hours", "cost_cents"}`` for a usage interval.

    ``start`` and ``end`` may be datetimes or ISO-8601 strings. Returns None
    if either can't be parsed, and zeros for an empty or inverted range.
    Any part of an hour bills as a whole hour.
    """
    start_at = parse_timestamp(start)
    end_at = parse_timestamp(end)
    if start_at is None or end_at is None:
        return None

    duration_ms = _epoch_ms(end_at) - _epoch_ms(start_at)
    if duration_ms <= 0:
        return {"billable_hours": 0, "cost_cents": 0}

    billable_hours = -(-duration_ms // MS_PER_HOUR)
    rate = normalize_rate(hourly_rate_cents)
    return {
        "billable_hours": billable_hours,
        "cost_cents": billable_hours * rate,
    }


def category_rate_map(categories):
    """Map each category in ``categories`` to its override rate."""
    categories = {c for c in categories if c and c.strip()}
    if not categories:
        return {}
    return dict(
        CategoryRate.objects.filter(category__in=categories).values_list(
            "category", "hourly_rate_cents"
        )
    )


def effective_hourly_rate(asset, category_rates=None) -> int:
    """Rate used for billing: category override, then the asset's own rate.

    ``category_rates`` may be a preloaded map from ``category_rate_map``.
    """
    category = asset.category or ""
    if category.strip():
        if category_rates is None:
            category_rates = category_rate_map([category])
        rate = category_rates.get(category)
        if rate is not None:
            return rate
    return asset.hourly_rate_cents or 0


def snapshot_usage_log(log, hourly_rate_cents=None, source="completion"):
    """Freeze billing values on a completed log that has none yet.

    Returns the snapshot dict, or None if the log isn't eligible or its
    times can't be read. Existing snapshots are never overwritten.
    """
    if log.status != "completed" or log.end_time is None:
        return None
    if log.has_snapshot:
        return None

    if hourly_rate_cents is None:
        hourly_rate_cents = effective_hourly_rate(log.asset)
    snapshot = compute_cost_snapshot(
        log.start_time, log.end_time, hourly_rate_cents
    )
    if snapshot is None:
        return None

    log.hourly_rate_cents_snapshot = normalize_rate(hourly_rate_cents)
    log.billable_hours_snapshot = snapshot["billable_hours"]
    log.cost_cents_snapshot = snapshot["cost_cents"]
    log.snapshot_at = timezone.now()
    log.snapshot_source = source
    log.save(update_fields=SNAPSHOT_FIELDS)
    return snapshot
