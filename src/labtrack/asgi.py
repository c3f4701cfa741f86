"""
ASGI config for the labtrack project.

Configures Django Channels routing for HTTP and WebSocket support.
WebSocket endpoint: /ws/equipment/events/ (EquipmentEventsConsumer)
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "labtrack.settings")

# Initialize Django ASGI application early to populate AppRegistry.
django_asgi_app = get_asgi_application()

from channels.auth import AuthMiddlewareStack  # noqa: E402
from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402

from equipment.routing import websocket_urlpatterns  # noqa: E402

application = ProtocolTypeRouter(
    {
        "http": django_asgi_app,
        "websocket": AuthMiddlewareStack(URLRouter(websocket_urlpatterns)),
    }
)
