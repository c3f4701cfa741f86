"""WebSocket URL routing for the equipment app."""

from django.urls import path

from equipment.consumers import EquipmentEventsConsumer

websocket_urlpatterns = [
    path(
        "ws/equipment/events/",
        EquipmentEventsConsumer.as_asgi(),
    ),
]
