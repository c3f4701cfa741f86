"""Repair ticket lifecycle and its effect on asset status.

quote-pending -> repair-pending -> completed. While any ticket for an
asset is open the asset stays in maintenance; the asset lock taken at the
start of every operation serialises ticket changes per asset.
"""

import logging
from decimal import Decimal, InvalidOperation

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from ..events import publish_on_commit, repair_ticket_changed
from ..exceptions import (
    AssetBusy,
    InvalidTransition,
    NotFound,
    OpenTicketExists,
)
from ..models import Asset, RepairTicket
from ..timeutils import parse_timestamp
from .status import (
    apply_asset_status,
    open_ticket_statuses,
    resolve_asset_status,
)

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "problem_desc",
    "vendor_name",
    "quote_amount",
    "expected_return_at",
)


def _timeline_entry(at, to, from_status=None, note=None):
    entry = {"at": at.isoformat()}
    if from_status is not None:
        entry["from"] = from_status
    entry["to"] = to
    if note:
        entry["note"] = note
    return entry


def _to_decimal(value):
    if value is None or isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"'{value}' is not a valid quote amount.")


def _lock_asset(asset_id):
    asset = Asset.objects.select_for_update().filter(pk=asset_id).first()
    if asset is None:
        raise NotFound(f"Asset {asset_id} not found.")
    return asset


def _settle_asset(asset, now, broadcaster):
    """Re-derive the asset's status after a ticket change and publish it.

    Only open tickets count here: the asset ends up ``maintenance`` or
    ``available``. Occupancy is picked up by the next ``recompute_status``.
    """
    target = resolve_asset_status(open_ticket_statuses(asset.pk), (), now)
    apply_asset_status(asset, target, now, broadcaster, force=True)
    return target


def any_other_open(asset_id, exclude_id=None) -> bool:
    """True if another ticket for the asset is not completed."""
    qs = RepairTicket.objects.filter(asset_id=asset_id).exclude(
        status="completed"
    )
    if exclude_id is not None:
        qs = qs.exclude(pk=exclude_id)
    return qs.exists()


def create_repair_ticket(
    asset_id,
    problem_desc: str,
    started_at=None,
    expected_return_at=None,
    broadcaster=None,
) -> RepairTicket:
    """Open a repair ticket and put the asset into maintenance.

    Raises NotFound, AssetBusy (asset in use) or OpenTicketExists.
    """
    with transaction.atomic():
        asset = _lock_asset(asset_id)
        if asset.status == "in-use":
            raise AssetBusy()
        if any_other_open(asset.pk):
            raise OpenTicketExists()

        now = timezone.now()
        opened_at = parse_timestamp(started_at) or now
        try:
            with transaction.atomic():
                ticket = RepairTicket.objects.create(
                    asset=asset,
                    status="quote-pending",
                    problem_desc=problem_desc,
                    expected_return_at=parse_timestamp(expected_return_at),
                    created_at=now,
                    updated_at=now,
                    timeline=[_timeline_entry(opened_at, "quote-pending")],
                )
        except IntegrityError:
            raise OpenTicketExists()

        apply_asset_status(asset, "maintenance", now, broadcaster, force=True)
        publish_on_commit(
            repair_ticket_changed(ticket.pk, asset.pk, now), broadcaster
        )

    logger.info("Repair ticket %s opened for asset %s", ticket.pk, asset.pk)
    return ticket


def transition_repair_ticket(
    ticket_id,
    to: str,
    note=None,
    vendor_name=None,
    quote_amount=None,
    broadcaster=None,
) -> RepairTicket:
    """Move a ticket to ``to`` and settle the asset's status.

    Raises NotFound or InvalidTransition.
    """
    if to not in dict(RepairTicket.STATUS_CHOICES):
        raise InvalidTransition(f"'{to}' is not a valid repair ticket status.")

    asset_id = (
        RepairTicket.objects.filter(pk=ticket_id)
        .values_list("asset_id", flat=True)
        .first()
    )
    if asset_id is None:
        raise NotFound(f"Repair ticket {ticket_id} not found.")

    with transaction.atomic():
        asset = _lock_asset(asset_id)
        ticket = (
            RepairTicket.objects.select_for_update()
            .filter(pk=ticket_id)
            .first()
        )
        if ticket is None:
            raise NotFound(f"Repair ticket {ticket_id} not found.")

        if not ticket.can_transition_to(to):
            allowed = RepairTicket.VALID_TRANSITIONS.get(ticket.status, [])
            raise InvalidTransition(
                f"Cannot transition from '{ticket.status}' to '{to}'. "
                f"Allowed transitions: {', '.join(allowed) or 'none'}."
            )

        now = timezone.now()
        from_status = ticket.status
        ticket.timeline = list(ticket.timeline or []) + [
            _timeline_entry(now, to, from_status, note)
        ]
        ticket.status = to
        ticket.updated_at = now
        fields = ["status", "updated_at", "timeline"]

        if to == "repair-pending" and from_status == "quote-pending":
            ticket.quote_at = now
            fields.append("quote_at")
            if vendor_name is not None:
                ticket.vendor_name = vendor_name
                fields.append("vendor_name")
            if quote_amount is not None:
                ticket.quote_amount = _to_decimal(quote_amount)
                fields.append("quote_amount")

        if to == "completed":
            ticket.completed_at = now
            fields.append("completed_at")

        ticket.save(update_fields=fields)
        target = _settle_asset(asset, now, broadcaster)
        publish_on_commit(
            repair_ticket_changed(ticket.pk, asset.pk, now), broadcaster
        )

    logger.info(
        "Repair ticket %s: %s -> %s (asset %s now %s)",
        ticket.pk,
        from_status,
        to,
        asset.pk,
        target,
    )
    return ticket


def update_repair_ticket(ticket_id, broadcaster=None, **changes):
    """Edit descriptive ticket fields without touching status or timeline."""
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValueError(
            f"Cannot edit repair ticket field(s): {', '.join(sorted(unknown))}"
        )
    if "problem_desc" in changes and not (
        changes["problem_desc"] or ""
    ).strip():
        raise ValidationError(
            "Problem description cannot be empty.", code="invalid_body"
        )

    with transaction.atomic():
        ticket = (
            RepairTicket.objects.select_for_update()
            .filter(pk=ticket_id)
            .first()
        )
        if ticket is None:
            raise NotFound(f"Repair ticket {ticket_id} not found.")

        for field, value in changes.items():
            if field == "quote_amount":
                value = _to_decimal(value)
            elif field == "expected_return_at":
                value = parse_timestamp(value)
            setattr(ticket, field, value)
        ticket.updated_at = timezone.now()
        ticket.save(update_fields=[*changes, "updated_at"])
        publish_on_commit(
            repair_ticket_changed(
                ticket.pk, ticket.asset_id, ticket.updated_at
            ),
            broadcaster,
        )
    return ticket


def delete_repair_ticket(ticket_id, broadcaster=None) -> None:
    """Delete a ticket and release the asset if nothing else holds it.

    Deleting a missing ticket is a no-op.
    """
    asset_id = (
        RepairTicket.objects.filter(pk=ticket_id)
        .values_list("asset_id", flat=True)
        .first()
    )
    if asset_id is None:
        return

    with transaction.atomic():
        asset = Asset.objects.select_for_update().filter(pk=asset_id).first()
        deleted, _ = RepairTicket.objects.filter(pk=ticket_id).delete()
        if not deleted or asset is None:
            return
        now = timezone.now()
        target = _settle_asset(asset, now, broadcaster)
        publish_on_commit(
            repair_ticket_changed(int(ticket_id), asset.pk, now), broadcaster
        )

    logger.info(
        "Repair ticket %s deleted (asset %s now %s)",
        ticket_id,
        asset_id,
        target,
    )
