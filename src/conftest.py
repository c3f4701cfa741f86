"""Shared pytest fixtures for LabTrack tests."""

import pytest

from django.conf import settings

# Run Celery tasks synchronously in tests
settings.CELERY_TASK_ALWAYS_EAGER = True
settings.CELERY_TASK_EAGER_PROPAGATES = True

# Use in-memory cache for tests (avoids Redis connection errors)
settings.CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

# Use in-memory channel layer for tests (avoids Redis for WS tests)
settings.CHANNEL_LAYERS = {
    "default": {
        "BACKEND": "channels.layers.InMemoryChannelLayer",
    }
}


@pytest.fixture(autouse=True)
def _clear_cache():
    """Clear the in-memory cache before each test."""
    from django.core.cache import cache

    cache.clear()


from equipment.factories import (  # noqa: E402
    AssetFactory,
    CategoryRateFactory,
    UserFactory,
)

# --- User fixtures ---


@pytest.fixture
def password():
    return "testpass123!"


@pytest.fixture
def user(db, password):
    return UserFactory(
        username="researcher",
        email="researcher@example.com",
        password=password,
    )


@pytest.fixture
def admin_user(db, password):
    return UserFactory(
        username="admin",
        email="admin@example.com",
        password=password,
        is_staff=True,
        is_superuser=True,
    )


@pytest.fixture
def client_logged_in(client, user, password):
    client.login(username=user.username, password=password)
    return client


@pytest.fixture
def admin_client(client, admin_user, password):
    client.login(username=admin_user.username, password=password)
    return client


# --- Event fixtures ---


@pytest.fixture
def channel_layer():
    """Private in-memory channel layer for one test."""
    from channels.layers import InMemoryChannelLayer

    return InMemoryChannelLayer()


@pytest.fixture
def broadcaster(channel_layer):
    """Broadcaster on ``channel_layer`` with keep-alive frames disabled."""
    from equipment.events import EventBroadcaster

    return EventBroadcaster(channel_layer=channel_layer, keepalive_seconds=0)


@pytest.fixture
def received(channel_layer):
    """Events sent to the group on ``channel_layer``, in publish order."""
    events = []
    group_send = channel_layer.group_send

    async def recording_group_send(group, message):
        events.append(message["event"])
        await group_send(group, message)

    channel_layer.group_send = recording_group_send
    return events


# --- Core model fixtures ---


@pytest.fixture
def chamber(db):
    return AssetFactory(name="Thermal Chamber A", hourly_rate_cents=1000)


@pytest.fixture
def instrument(db):
    return AssetFactory(
        name="Oscilloscope", asset_type="instrument", hourly_rate_cents=500
    )


@pytest.fixture
def category_rate(db):
    return CategoryRateFactory(category="thermal", hourly_rate_cents=1500)
