import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Asset",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("name", models.CharField(max_length=200)),
                (
                    "asset_type",
                    models.CharField(
                        choices=[
                            ("chamber", "Chamber"),
                            ("instrument", "Instrument"),
                            ("fixture", "Fixture"),
                        ],
                        default="chamber",
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("available", "Available"),
                            ("in-use", "In Use"),
                            ("maintenance", "Maintenance"),
                        ],
                        default="available",
                        max_length=20,
                    ),
                ),
                ("category", models.CharField(blank=True, max_length=100)),
                ("hourly_rate_cents", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "updated_at",
                    models.DateTimeField(default=django.utils.timezone.now),
                ),
            ],
            options={
                "ordering": ["name"],
                "indexes": [
                    models.Index(fields=["status"], name="idx_asset_status"),
                    models.Index(
                        fields=["asset_type"], name="idx_asset_type"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="CategoryRate",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("category", models.CharField(max_length=100, unique=True)),
                ("hourly_rate_cents", models.PositiveIntegerField(default=0)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["category"],
            },
        ),
        migrations.CreateModel(
            name="RepairTicket",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("quote-pending", "Quote Pending"),
                            ("repair-pending", "Repair Pending"),
                            ("completed", "Completed"),
                        ],
                        default="quote-pending",
                        max_length=20,
                    ),
                ),
                ("problem_desc", models.TextField()),
                (
                    "vendor_name",
                    models.CharField(blank=True, max_length=200, null=True),
                ),
                (
                    "quote_amount",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=12,
                        null=True,
                        validators=[
                            django.core.validators.MinValueValidator(0)
                        ],
                    ),
                ),
                ("quote_at", models.DateTimeField(blank=True, null=True)),
                (
                    "expected_return_at",
                    models.DateTimeField(blank=True, null=True),
                ),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "created_at",
                    models.DateTimeField(default=django.utils.timezone.now),
                ),
                (
                    "updated_at",
                    models.DateTimeField(default=django.utils.timezone.now),
                ),
                ("timeline", models.JSONField(default=list)),
                (
                    "asset",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="repair_tickets",
                        to="equipment.asset",
                    ),
                ),
            ],
            options={
                "ordering": ["-updated_at"],
                "indexes": [
                    models.Index(
                        fields=["asset", "status"],
                        name="idx_repair_asset_status",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(
                            ("status", "completed"), _negated=True
                        ),
                        fields=("asset",),
                        name="unique_open_repair_ticket_per_asset",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="UsageLog",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("user", models.CharField(max_length=150)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("not-started", "Not Started"),
                            ("in-progress", "In Progress"),
                            ("completed", "Completed"),
                        ],
                        default="not-started",
                        max_length=20,
                    ),
                ),
                ("start_time", models.DateTimeField()),
                ("end_time", models.DateTimeField(blank=True, null=True)),
                ("notes", models.TextField(blank=True)),
                (
                    "created_at",
                    models.DateTimeField(default=django.utils.timezone.now),
                ),
                (
                    "hourly_rate_cents_snapshot",
                    models.PositiveIntegerField(blank=True, null=True),
                ),
                (
                    "billable_hours_snapshot",
                    models.PositiveIntegerField(blank=True, null=True),
                ),
                (
                    "cost_cents_snapshot",
                    models.PositiveIntegerField(blank=True, null=True),
                ),
                ("snapshot_at", models.DateTimeField(blank=True, null=True)),
                (
                    "snapshot_source",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("backfill", "Backfill"),
                            ("completion", "Completion"),
                        ],
                        default="",
                        max_length=20,
                    ),
                ),
                (
                    "asset",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="usage_logs",
                        to="equipment.asset",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["asset", "status"],
                        name="idx_usagelog_asset_status",
                    ),
                    models.Index(
                        fields=["status", "start_time"],
                        name="idx_usagelog_status_start",
                    ),
                ],
            },
        ),
    ]
