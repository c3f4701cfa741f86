"""Models for LabTrack equipment status and billing."""

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone


class CategoryRate(models.Model):
    """Hourly billing rate shared by every asset in a category.

    Overrides the asset's own ``hourly_rate_cents`` when snapshotting cost.
    """

    category = models.CharField(max_length=100, unique=True)
    hourly_rate_cents = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["category"]

    def __str__(self):
        return f"{self.category} ({self.hourly_rate_cents}c/h)"


class Asset(models.Model):
    """Shared lab equipment with one derived availability status.

    ``status`` is written only by the status resolution service and the
    repair ticket service, never by general edits.
    """

    TYPE_CHOICES = [
        ("chamber", "Chamber"),
        ("instrument", "Instrument"),
        ("fixture", "Fixture"),
    ]

    STATUS_CHOICES = [
        ("available", "Available"),
        ("in-use", "In Use"),
        ("maintenance", "Maintenance"),
    ]

    name = models.CharField(max_length=200)
    asset_type = models.CharField(
        max_length=20, choices=TYPE_CHOICES, default="chamber"
    )
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default="available"
    )
    category = models.CharField(max_length=100, blank=True)
    hourly_rate_cents = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["status"], name="idx_asset_status"),
            models.Index(fields=["asset_type"], name="idx_asset_type"),
        ]

    def __str__(self):
        return f"{self.name} ({self.get_status_display()})"


class UsageLog(models.Model):
    """Occupancy of an asset over a (possibly open-ended) interval."""

    STATUS_CHOICES = [
        ("not-started", "Not Started"),
        ("in-progress", "In Progress"),
        ("completed", "Completed"),
    ]

    SNAPSHOT_SOURCE_CHOICES = [
        ("backfill", "Backfill"),
        ("completion", "Completion"),
    ]

    asset = models.ForeignKey(
        Asset,
        on_delete=models.CASCADE,
        related_name="usage_logs",
    )
    user = models.CharField(max_length=150)
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default="not-started"
    )
    start_time = models.DateTimeField()
    end_time = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    # Billing snapshot, frozen once written
    hourly_rate_cents_snapshot = models.PositiveIntegerField(
        null=True, blank=True
    )
    billable_hours_snapshot = models.PositiveIntegerField(
        null=True, blank=True
    )
    cost_cents_snapshot = models.PositiveIntegerField(null=True, blank=True)
    snapshot_at = models.DateTimeField(null=True, blank=True)
    snapshot_source = models.CharField(
        max_length=20,
        choices=SNAPSHOT_SOURCE_CHOICES,
        blank=True,
        default="",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["asset", "status"],
                name="idx_usagelog_asset_status",
            ),
            models.Index(
                fields=["status", "start_time"],
                name="idx_usagelog_status_start",
            ),
        ]

    def __str__(self):
        return f"UsageLog {self.pk} on {self.asset_id} ({self.status})"

    @property
    def has_snapshot(self):
        return (
            self.hourly_rate_cents_snapshot is not None
            and self.billable_hours_snapshot is not None
            and self.cost_cents_snapshot is not None
        )


class RepairTicket(models.Model):
    """Repair workflow for an asset taken out of service."""

    STATUS_CHOICES = [
        ("quote-pending", "Quote Pending"),
        ("repair-pending", "Repair Pending"),
        ("completed", "Completed"),
    ]

    # Valid state transitions: from_status -> [to_statuses]
    # Self-edges on open states append a note without changing status.
    VALID_TRANSITIONS = {
        "quote-pending": ["quote-pending", "repair-pending", "completed"],
        "repair-pending": ["repair-pending", "completed"],
        "completed": [],
    }

    asset = models.ForeignKey(
        Asset,
        on_delete=models.CASCADE,
        related_name="repair_tickets",
    )
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default="quote-pending"
    )
    problem_desc = models.TextField()
    vendor_name = models.CharField(max_length=200, blank=True, null=True)
    quote_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
    )
    quote_at = models.DateTimeField(null=True, blank=True)
    expected_return_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)
    timeline = models.JSONField(default=list)

    class Meta:
        ordering = ["-updated_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["asset"],
                condition=~models.Q(status="completed"),
                name="unique_open_repair_ticket_per_asset",
            ),
        ]
        indexes = [
            models.Index(
                fields=["asset", "status"],
                name="idx_repair_asset_status",
            ),
        ]

    def __str__(self):
        return f"RepairTicket {self.pk} ({self.get_status_display()})"

    @property
    def is_open(self):
        return self.status != "completed"

    def can_transition_to(self, new_status):
        """Check if the status transition is valid."""
        return new_status in self.VALID_TRANSITIONS.get(self.status, [])
