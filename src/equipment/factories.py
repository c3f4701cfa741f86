"""Factory Boy factories for LabTrack test data generation."""

from datetime import timedelta

import factory
from factory.django import DjangoModelFactory

from django.utils import timezone


class UserFactory(DjangoModelFactory):
    """Factory for the auth User model."""

    class Meta:
        model = "auth.User"
        skip_postgeneration_save = True

    username = factory.Sequence(lambda n: f"user{n}")
    email = factory.LazyAttribute(lambda o: f"{o.username}@example.com")
    is_active = True

    @factory.post_generation
    def password(self, create, extracted, **kwargs):
        pwd = extracted or "testpass123!"
        self.set_password(pwd)
        if create:
            self.save(update_fields=["password"])


class CategoryRateFactory(DjangoModelFactory):
    """Factory for CategoryRate model."""

    class Meta:
        model = "equipment.CategoryRate"
        django_get_or_create = ("category",)

    category = factory.Sequence(lambda n: f"category-{n}")
    hourly_rate_cents = 1000


class AssetFactory(DjangoModelFactory):
    """Factory for Asset model."""

    class Meta:
        model = "equipment.Asset"

    name = factory.Sequence(lambda n: f"Chamber {n}")
    asset_type = "chamber"
    status = "available"
    category = ""
    hourly_rate_cents = 1000


class UsageLogFactory(DjangoModelFactory):
    """Factory for UsageLog model. Defaults to an open, started log."""

    class Meta:
        model = "equipment.UsageLog"

    asset = factory.SubFactory(AssetFactory)
    user = factory.Sequence(lambda n: f"researcher{n}")
    status = "in-progress"
    start_time = factory.LazyFunction(
        lambda: timezone.now() - timedelta(hours=1)
    )
    end_time = None


class RepairTicketFactory(DjangoModelFactory):
    """Factory for RepairTicket model.

    Writes the row directly; use the repair service to exercise the
    asset status side effects.
    """

    class Meta:
        model = "equipment.RepairTicket"

    asset = factory.SubFactory(AssetFactory, status="maintenance")
    status = "quote-pending"
    problem_desc = factory.Faker("sentence")
    timeline = factory.LazyAttribute(
        lambda o: [{"at": timezone.now().isoformat(), "to": o.status}]
    )
