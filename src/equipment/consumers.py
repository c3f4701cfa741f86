"""WebSocket consumer streaming live equipment events."""

import asyncio
import logging

from channels.generic.websocket import AsyncJsonWebsocketConsumer

from django.conf import settings

from equipment.events import KEEPALIVE, get_broadcaster

logger = logging.getLogger(__name__)


class EquipmentEventsConsumer(AsyncJsonWebsocketConsumer):
    """Forwards broadcaster events to one WebSocket client.

    Each connection joins the broadcaster's group for its lifetime. Events
    arrive as JSON objects tagged by ``type``; ``ping`` frames are
    keep-alives and carry nothing else.
    """

    broadcaster = None

    def __init__(self, *args, broadcaster=None, **kwargs):
        super().__init__(*args, **kwargs)
        if broadcaster is not None:
            self.broadcaster = broadcaster

    async def connect(self):
        self.subscribed = False
        self._keepalive_task = None

        user = self.scope.get("user")
        allow_anonymous = getattr(
            settings, "EQUIPMENT_EVENTS_ALLOW_ANONYMOUS", False
        )
        if not allow_anonymous and (
            user is None or not user.is_authenticated
        ):
            await self.close()
            return

        await self.accept()
        await self.send_json({"type": "ready", "ok": True})

        if self.broadcaster is None:
            self.broadcaster = get_broadcaster()
        await self.broadcaster.subscribe(self.channel_name)
        self.subscribed = True

        interval = self.broadcaster.keepalive_seconds
        if interval and interval > 0:
            self._keepalive_task = asyncio.create_task(
                self._keepalive(interval)
            )

    async def disconnect(self, close_code):
        if self._keepalive_task is not None:
            self._keepalive_task.cancel()
            self._keepalive_task = None
        if self.subscribed:
            await self.broadcaster.unsubscribe(self.channel_name)
            self.subscribed = False

    async def receive_json(self, content, **kwargs):
        if content.get("type") == "ping":
            await self.send_json({"type": "pong"})
            return
        await self.send_json(
            {
                "type": "error",
                "code": "invalid_message",
                "message": "This stream is read-only.",
            }
        )

    async def equipment_event(self, event):
        """Handle ``equipment.event`` messages from the channel layer."""
        await self.send_json(event["event"])

    async def _keepalive(self, interval):
        while True:
            await asyncio.sleep(interval)
            await self.send_json({"type": KEEPALIVE})
