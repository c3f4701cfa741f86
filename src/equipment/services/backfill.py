"""Batch backfill of cost snapshots on historical usage logs."""

import logging

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from ..models import UsageLog
from .costs import (
    SNAPSHOT_FIELDS,
    category_rate_map,
    compute_cost_snapshot,
    effective_hourly_rate,
    normalize_rate,
)

logger = logging.getLogger(__name__)


def resolve_limit(limit=None) -> int:
    """Clamp a requested batch size to the configured default and cap.

    The cap bounds how long one run holds the write lock.
    """
    default = getattr(settings, "EQUIPMENT_BACKFILL_DEFAULT_LIMIT", 2000)
    cap = getattr(settings, "EQUIPMENT_BACKFILL_MAX_LIMIT", 5000)
    if limit is None:
        return min(cap, default)
    try:
        limit = int(limit)
    except (TypeError, ValueError, OverflowError):
        return min(cap, default)
    if limit <= 0:
        return min(cap, default)
    return min(cap, limit)


def pending_snapshot_logs():
    """Completed logs with an end time but no full cost snapshot."""
    return (
        UsageLog.objects.filter(status="completed", end_time__isnull=False)
        .filter(
            Q(hourly_rate_cents_snapshot__isnull=True)
            | Q(billable_hours_snapshot__isnull=True)
            | Q(cost_cents_snapshot__isnull=True)
        )
        .select_related("asset")
        .order_by("start_time", "pk")
    )


def backfill_cost_snapshots(limit=None) -> dict:
    """Fill missing cost snapshots, oldest usage first.

    The whole batch is written in one transaction, so an interrupted run
    leaves nothing behind and can simply be repeated. Rows already carrying
    a snapshot are never selected, which makes repeat runs no-ops.

    Returns ``{"scanned": int, "updated": int}``; rows whose times can't be
    read are skipped and only show up as ``scanned - updated``.
    """
    batch_size = resolve_limit(limit)

    with transaction.atomic():
        rows = list(pending_snapshot_logs()[:batch_size])
        rates = category_rate_map({row.asset.category for row in rows})
        now = timezone.now()
        changed = []

        for row in rows:
            rate = effective_hourly_rate(row.asset, rates)
            snapshot = compute_cost_snapshot(row.start_time, row.end_time, rate)
            if snapshot is None:
                logger.warning(
                    "Skipping cost snapshot for usage log %s: bad times",
                    row.pk,
                )
                continue
            row.hourly_rate_cents_snapshot = normalize_rate(rate)
            row.billable_hours_snapshot = snapshot["billable_hours"]
            row.cost_cents_snapshot = snapshot["cost_cents"]
            row.snapshot_at = now
            row.snapshot_source = "backfill"
            changed.append(row)

        if changed:
            UsageLog.objects.bulk_update(
                changed, SNAPSHOT_FIELDS, batch_size=500
            )

    logger.info(
        "Cost snapshot backfill: scanned=%d updated=%d",
        len(rows),
        len(changed),
    )
    return {"scanned": len(rows), "updated": len(changed)}
