"""Live fan-out of equipment events over the Channels layer.

Every process (Daphne, Celery workers, management commands) publishes
through an ``EventBroadcaster`` onto one channel layer group; websocket
consumers join that group. Delivery is best-effort: no persistence, no
replay. A consumer that goes away leaves the group on disconnect, and the
layer expires channels that stop reading, so other subscribers are never
affected.
"""

import logging
from datetime import datetime
from functools import partial

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from django.apps import apps
from django.conf import settings
from django.db import transaction

logger = logging.getLogger(__name__)

EVENTS_GROUP = "equipment_events"
# Channel layer message type; consumers handle it as ``equipment_event``.
MESSAGE_TYPE = "equipment.event"

ASSET_STATUS_CHANGED = "asset_status_changed"
REPAIR_TICKET_CHANGED = "repair_ticket_changed"
USAGE_LOG_CHANGED = "usage_log_changed"
KEEPALIVE = "ping"


def _isoformat(value):
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def asset_status_changed(asset_id, status, updated_at):
    return {
        "type": ASSET_STATUS_CHANGED,
        "assetId": asset_id,
        "status": status,
        "updatedAt": _isoformat(updated_at),
    }


def repair_ticket_changed(ticket_id, asset_id, updated_at):
    return {
        "type": REPAIR_TICKET_CHANGED,
        "ticketId": ticket_id,
        "assetId": asset_id,
        "updatedAt": _isoformat(updated_at),
    }


def usage_log_changed(log_id, asset_id, updated_at):
    return {
        "type": USAGE_LOG_CHANGED,
        "logId": log_id,
        "chamberId": asset_id,
        "updatedAt": _isoformat(updated_at),
    }


class EventBroadcaster:
    """Publishes events to a channel layer group.

    Subscribers are channel names (one per websocket consumer). The layer
    defaults to the project's ``CHANNEL_LAYERS["default"]``, looked up on
    use. ``keepalive_seconds`` is how often consumers send a ``ping``
    frame; 0 disables it.
    """

    def __init__(self, group=EVENTS_GROUP, channel_layer=None, keepalive_seconds=None):
        if keepalive_seconds is None:
            keepalive_seconds = getattr(
                settings, "EQUIPMENT_EVENTS_KEEPALIVE_SECONDS", 25
            )
        self.group = group
        self.keepalive_seconds = keepalive_seconds
        self._channel_layer = channel_layer

    @property
    def channel_layer(self):
        if self._channel_layer is not None:
            return self._channel_layer
        return get_channel_layer()

    async def subscribe(self, channel_name: str) -> str:
        await self.channel_layer.group_add(self.group, channel_name)
        logger.debug("Event subscriber %s joined %s", channel_name, self.group)
        return channel_name

    async def unsubscribe(self, channel_name: str) -> None:
        await self.channel_layer.group_discard(self.group, channel_name)
        logger.debug("Event subscriber %s left %s", channel_name, self.group)

    def publish(self, event: dict) -> None:
        """Send ``event`` to every subscriber of the group.

        Send failures are logged; they never propagate to the caller.
        """
        channel_layer = self.channel_layer
        if channel_layer is None:
            logger.warning(
                "No channel layer configured, dropping %s event",
                event.get("type"),
            )
            return
        try:
            async_to_sync(channel_layer.group_send)(
                self.group, {"type": MESSAGE_TYPE, "event": event}
            )
        except Exception:
            logger.exception("Failed to broadcast %s event", event.get("type"))


def get_broadcaster() -> EventBroadcaster:
    """Return the broadcaster owned by the equipment app."""
    return apps.get_app_config("equipment").broadcaster


def publish_on_commit(event, broadcaster=None):
    """Publish ``event`` once the current transaction commits.

    Outside a transaction the event is published immediately. A rollback
    discards it.
    """
    if broadcaster is None:
        broadcaster = get_broadcaster()
    transaction.on_commit(partial(broadcaster.publish, event))
