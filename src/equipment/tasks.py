"""Celery tasks for the equipment app."""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def backfill_cost_snapshots(limit=None):
    """Fill missing cost snapshots on completed usage logs."""
    from .services.backfill import backfill_cost_snapshots as run_backfill

    result = run_backfill(limit=limit)
    skipped = result["scanned"] - result["updated"]
    if skipped:
        logger.warning(
            "Cost snapshot backfill skipped %d unreadable usage logs", skipped
        )
    return result


@shared_task
def reconcile_asset_statuses():
    """Periodic task: re-derive status for every tracked asset."""
    from .services.status import reconcile_all

    return reconcile_all()
