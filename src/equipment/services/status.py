"""Asset status resolution.

Two flows write ``Asset.status``: usage log changes (via
``recompute_status``) and the repair ticket service. Both derive the value
from ``resolve_asset_status`` so they cannot drift apart.
"""

import logging
from collections.abc import Mapping

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from ..events import asset_status_changed, publish_on_commit
from ..models import Asset, RepairTicket, UsageLog
from ..timeutils import parse_timestamp

logger = logging.getLogger(__name__)


def _log_fields(log):
    if isinstance(log, Mapping):
        return log.get("status"), log.get("start_time"), log.get("end_time")
    return log.status, log.start_time, log.end_time


def log_occupies(log, now) -> bool:
    """True if the usage log holds the asset at ``now``.

    Completed logs and logs starting in the future never occupy. An
    unreadable end time counts as open-ended.
    """
    status, start, end = _log_fields(log)
    if status == "completed":
        return False
    start_at = parse_timestamp(start)
    if start_at is None or start_at > now:
        return False
    end_at = parse_timestamp(end)
    if end_at is not None and end_at <= now:
        return False
    return True


def resolve_asset_status(ticket_statuses, usage_logs, now=None) -> str:
    """Derive an asset's status from its tickets and usage logs.

    Any ticket that is not completed puts the asset in maintenance,
    regardless of occupancy.
    """
    if any(status != "completed" for status in ticket_statuses):
        return "maintenance"
    if now is None:
        now = timezone.now()
    if any(log_occupies(log, now) for log in usage_logs):
        return "in-use"
    return "available"


def tracked_asset_types():
    return getattr(settings, "EQUIPMENT_TRACKED_ASSET_TYPES", ["chamber"])


def open_ticket_statuses(asset_id, exclude_id=None):
    qs = RepairTicket.objects.filter(asset_id=asset_id).exclude(
        status="completed"
    )
    if exclude_id is not None:
        qs = qs.exclude(pk=exclude_id)
    return list(qs.values_list("status", flat=True))


def occupying_usage_logs(asset_id, now):
    """Usage logs that hold the asset at ``now``, newest first."""
    return (
        UsageLog.objects.filter(asset_id=asset_id, start_time__lte=now)
        .exclude(status="completed")
        .filter(Q(end_time__isnull=True) | Q(end_time__gt=now))
        .order_by("-created_at")
    )


def apply_asset_status(asset, target, now, broadcaster=None, force=False):
    """Persist ``target`` on the locked asset and queue the change event.

    Without ``force`` an unchanged status is neither written nor published.
    Returns True if a write happened.
    """
    if asset.status == target and not force:
        return False
    previous = asset.status
    asset.status = target
    asset.updated_at = now
    asset.save(update_fields=["status", "updated_at"])
    publish_on_commit(
        asset_status_changed(asset.pk, target, now), broadcaster
    )
    if previous != target:
        logger.info(
            "Asset %s status changed: %s -> %s", asset.pk, previous, target
        )
    return True


def recompute_status(asset_id, broadcaster=None) -> dict:
    """Re-derive a tracked asset's status from its active usage logs.

    Call after any usage log create, edit, completion or delete. Returns
    ``{"updated": bool, "target_status": str | None}``; ``target_status``
    is None when the asset is missing or not occupancy-tracked.
    Maintenance is left alone here, only the repair ticket service clears
    it.
    """
    with transaction.atomic():
        asset = Asset.objects.select_for_update().filter(pk=asset_id).first()
        if asset is None or asset.asset_type not in tracked_asset_types():
            return {"updated": False, "target_status": None}
        if asset.status == "maintenance":
            return {"updated": False, "target_status": "maintenance"}

        now = timezone.now()
        target = resolve_asset_status(
            open_ticket_statuses(asset.pk),
            occupying_usage_logs(asset.pk, now),
            now,
        )
        updated = apply_asset_status(asset, target, now, broadcaster)
    return {"updated": updated, "target_status": target}


def reconcile_all(broadcaster=None) -> dict:
    """Recompute every tracked asset. Returns scanned/updated counts."""
    asset_ids = list(
        Asset.objects.filter(asset_type__in=tracked_asset_types())
        .order_by("pk")
        .values_list("pk", flat=True)
    )
    updated = 0
    for asset_id in asset_ids:
        if recompute_status(asset_id, broadcaster)["updated"]:
            updated += 1
    logger.info(
        "Asset status reconcile: scanned=%d updated=%d",
        len(asset_ids),
        updated,
    )
    return {"scanned": len(asset_ids), "updated": updated}
