"""Usage log mutations that keep asset status in sync.

Every change that can affect occupancy ends with ``recompute_status`` for
each asset involved, inside the same transaction as the change, and
publishes ``usage_log_changed`` once it commits.
"""

import logging
from datetime import timedelta

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from ..events import publish_on_commit, usage_log_changed
from ..exceptions import NotFound
from ..models import Asset, UsageLog
from ..timeutils import parse_timestamp
from .costs import snapshot_usage_log
from .status import recompute_status

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("asset_id", "user", "status", "start_time", "end_time", "notes")


def _clock_skew_allowance():
    return timedelta(
        seconds=getattr(settings, "EQUIPMENT_CLOCK_SKEW_ALLOWANCE_SECONDS", 120)
    )


def _normalize_in_progress(status, start_at, end_at, now):
    """Start an in-progress log now if it claims a future start."""
    if status == "in-progress" and start_at - now > _clock_skew_allowance():
        return now, None
    return start_at, end_at


def _require_timestamp(value, field):
    parsed = parse_timestamp(value)
    if parsed is None:
        raise ValidationError({field: f"'{value}' is not a valid timestamp."})
    return parsed


def _validate_status(status):
    if status not in dict(UsageLog.STATUS_CHOICES):
        raise ValidationError(f"'{status}' is not a valid usage log status.")


def _lock_log(log_id):
    log = UsageLog.objects.select_for_update().filter(pk=log_id).first()
    if log is None:
        raise NotFound(f"Usage log {log_id} not found.")
    return log


def _publish_changed(log_id, asset_id, broadcaster):
    publish_on_commit(
        usage_log_changed(log_id, asset_id, timezone.now()), broadcaster
    )


def create_usage_log(
    asset_id,
    user: str,
    status: str,
    start_time,
    end_time=None,
    notes: str = "",
    broadcaster=None,
) -> UsageLog:
    """Record occupancy of an asset and refresh its status."""
    _validate_status(status)
    if not Asset.objects.filter(pk=asset_id).exists():
        raise NotFound(f"Asset {asset_id} not found.")

    now = timezone.now()
    start_at = _require_timestamp(start_time, "start_time")
    end_at = (
        _require_timestamp(end_time, "end_time")
        if end_time is not None
        else None
    )
    start_at, end_at = _normalize_in_progress(status, start_at, end_at, now)

    with transaction.atomic():
        log = UsageLog.objects.create(
            asset_id=asset_id,
            user=user,
            status=status,
            start_time=start_at,
            end_time=end_at,
            notes=notes,
            created_at=now,
        )
        if status == "completed":
            snapshot_usage_log(log)
        recompute_status(asset_id, broadcaster)
        _publish_changed(log.pk, asset_id, broadcaster)
    return log


def update_usage_log(log_id, broadcaster=None, **changes) -> UsageLog:
    """Edit a usage log; recomputes both assets when the log moves."""
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValueError(
            f"Cannot edit usage log field(s): {', '.join(sorted(unknown))}"
        )
    if "status" in changes:
        _validate_status(changes["status"])

    with transaction.atomic():
        log = _lock_log(log_id)
        previous_asset_id = log.asset_id

        if "asset_id" in changes and not Asset.objects.filter(
            pk=changes["asset_id"]
        ).exists():
            raise NotFound(f"Asset {changes['asset_id']} not found.")
        for field, value in changes.items():
            if field == "start_time":
                value = _require_timestamp(value, field)
            elif field == "end_time" and value is not None:
                value = _require_timestamp(value, field)
            setattr(log, field, value)

        if "start_time" in changes:
            log.start_time, log.end_time = _normalize_in_progress(
                log.status, log.start_time, log.end_time, timezone.now()
            )
        log.save()

        if log.status == "completed":
            snapshot_usage_log(log)
        recompute_status(log.asset_id, broadcaster)
        if previous_asset_id != log.asset_id:
            recompute_status(previous_asset_id, broadcaster)
        _publish_changed(log.pk, log.asset_id, broadcaster)
    return log


def complete_usage_log(log_id, end_time=None, broadcaster=None) -> UsageLog:
    """Mark a log completed, freeze its cost, and release the asset."""
    with transaction.atomic():
        log = _lock_log(log_id)
        if log.status != "completed":
            if end_time is not None:
                log.end_time = _require_timestamp(end_time, "end_time")
            elif log.end_time is None:
                log.end_time = timezone.now()
            log.status = "completed"
            log.save(update_fields=["status", "end_time"])
        snapshot_usage_log(log)
        recompute_status(log.asset_id, broadcaster)
        _publish_changed(log.pk, log.asset_id, broadcaster)
    logger.info("Usage log %s completed", log.pk)
    return log


def delete_usage_log(log_id, broadcaster=None) -> None:
    """Delete a usage log. Missing logs are ignored."""
    with transaction.atomic():
        log = UsageLog.objects.select_for_update().filter(pk=log_id).first()
        if log is None:
            return
        log_pk, asset_id = log.pk, log.asset_id
        log.delete()
        recompute_status(asset_id, broadcaster)
        _publish_changed(log_pk, asset_id, broadcaster)
