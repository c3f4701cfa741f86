"""Tests for the cost snapshot backfill job."""

from datetime import datetime, timedelta, timezone as dt_timezone

import pytest

from django.test.utils import override_settings

from equipment.factories import AssetFactory, CategoryRateFactory, UsageLogFactory
from equipment.services.backfill import (
    backfill_cost_snapshots,
    pending_snapshot_logs,
    resolve_limit,
)

START = datetime(2026, 1, 1, tzinfo=dt_timezone.utc)


def _completed_log(asset, start=START, minutes=60, **kwargs):
    return UsageLogFactory(
        asset=asset,
        status="completed",
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
        **kwargs,
    )


@pytest.mark.django_db
class TestBackfillCostSnapshots:
    def test_category_rate_takes_precedence(self):
        CategoryRateFactory(category="A", hourly_rate_cents=200)
        asset = AssetFactory(category="A", hourly_rate_cents=999)
        log = UsageLogFactory(
            asset=asset,
            status="completed",
            start_time=START,
            end_time=START + timedelta(hours=1, seconds=1),
        )

        result = backfill_cost_snapshots(limit=100)

        assert result == {"scanned": 1, "updated": 1}
        log.refresh_from_db()
        assert log.hourly_rate_cents_snapshot == 200
        assert log.billable_hours_snapshot == 2
        assert log.cost_cents_snapshot == 400
        assert log.snapshot_source == "backfill"
        assert log.snapshot_at is not None

    def test_asset_rate_without_category_rate(self, chamber):
        log = _completed_log(chamber, minutes=30)

        backfill_cost_snapshots()

        log.refresh_from_db()
        assert log.hourly_rate_cents_snapshot == 1000
        assert log.cost_cents_snapshot == 1000

    def test_second_run_is_a_noop(self, chamber):
        _completed_log(chamber)
        _completed_log(chamber, start=START + timedelta(days=1))

        assert backfill_cost_snapshots() == {"scanned": 2, "updated": 2}
        assert backfill_cost_snapshots() == {"scanned": 0, "updated": 0}

    def test_existing_snapshots_are_not_repriced(self, chamber):
        log = _completed_log(
            chamber,
            hourly_rate_cents_snapshot=50,
            billable_hours_snapshot=1,
            cost_cents_snapshot=50,
        )
        chamber.hourly_rate_cents = 5000
        chamber.save()

        assert backfill_cost_snapshots()["scanned"] == 0
        log.refresh_from_db()
        assert log.cost_cents_snapshot == 50

    def test_partial_snapshot_is_completed(self, chamber):
        log = _completed_log(chamber, hourly_rate_cents_snapshot=1000)

        assert backfill_cost_snapshots()["updated"] == 1
        log.refresh_from_db()
        assert log.has_snapshot

    def test_skips_ineligible_logs(self, chamber):
        UsageLogFactory(asset=chamber)
        UsageLogFactory(asset=chamber, status="completed", end_time=None)

        assert backfill_cost_snapshots() == {"scanned": 0, "updated": 0}

    def test_oldest_usage_first(self, chamber):
        newer = _completed_log(chamber, start=START + timedelta(days=2))
        older = _completed_log(chamber, start=START)

        backfill_cost_snapshots(limit=1)

        older.refresh_from_db()
        newer.refresh_from_db()
        assert older.has_snapshot
        assert not newer.has_snapshot

    def test_inverted_interval_snapshots_zero(self, chamber):
        log = _completed_log(chamber, minutes=-10)

        assert backfill_cost_snapshots()["updated"] == 1
        log.refresh_from_db()
        assert log.billable_hours_snapshot == 0
        assert log.cost_cents_snapshot == 0

    def test_rollback_leaves_nothing(self, chamber):
        from django.db import transaction

        log = _completed_log(chamber)

        with pytest.raises(RuntimeError):
            with transaction.atomic():
                backfill_cost_snapshots()
                raise RuntimeError("interrupted")

        log.refresh_from_db()
        assert not log.has_snapshot
        assert pending_snapshot_logs().count() == 1


class TestResolveLimit:
    @override_settings(
        EQUIPMENT_BACKFILL_DEFAULT_LIMIT=2000,
        EQUIPMENT_BACKFILL_MAX_LIMIT=5000,
    )
    @pytest.mark.parametrize(
        "requested,expected",
        [
            (None, 2000),
            (0, 2000),
            (-3, 2000),
            ("abc", 2000),
            (10, 10),
            ("25", 25),
            (5000, 5000),
            (999999, 5000),
        ],
    )
    def test_resolve_limit(self, requested, expected):
        assert resolve_limit(requested) == expected

    @override_settings(
        EQUIPMENT_BACKFILL_DEFAULT_LIMIT=2000,
        EQUIPMENT_BACKFILL_MAX_LIMIT=500,
    )
    def test_default_never_exceeds_cap(self):
        assert resolve_limit() == 500

    @override_settings(EQUIPMENT_BACKFILL_MAX_LIMIT=2)
    @pytest.mark.django_db
    def test_batch_is_capped(self, chamber):
        for day in range(3):
            _completed_log(chamber, start=START + timedelta(days=day))

        assert backfill_cost_snapshots(limit=100) == {
            "scanned": 2,
            "updated": 2,
        }
