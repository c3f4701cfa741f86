"""Tests for the equipment JSON endpoints."""

import json
from datetime import datetime, timedelta, timezone as dt_timezone

import pytest

from django.urls import reverse

from equipment.factories import (
    AssetFactory,
    CategoryRateFactory,
    RepairTicketFactory,
    UsageLogFactory,
)
from equipment.models import RepairTicket

pytestmark = pytest.mark.django_db


def _post(client, url, payload=None):
    return client.post(
        url, data=json.dumps(payload or {}), content_type="application/json"
    )


def _patch(client, url, payload):
    return client.patch(
        url, data=json.dumps(payload), content_type="application/json"
    )


class TestApiAuth:
    def test_anonymous_gets_401(self, client):
        response = client.get(reverse("equipment:repair_ticket_list"))

        assert response.status_code == 401
        assert response.json() == {"error": "unauthorized"}

    def test_non_staff_can_read(self, client_logged_in):
        response = client_logged_in.get(reverse("equipment:repair_ticket_list"))

        assert response.status_code == 200

    def test_non_staff_cannot_create(self, client_logged_in, chamber):
        response = _post(
            client_logged_in,
            reverse("equipment:repair_ticket_list"),
            {"asset_id": chamber.pk, "problem_desc": "Broken"},
        )

        assert response.status_code == 403
        assert not RepairTicket.objects.exists()

    def test_non_staff_cannot_reconcile(self, client_logged_in):
        response = _post(
            client_logged_in, reverse("equipment:reconcile_asset_status")
        )

        assert response.status_code == 403


class TestRepairTicketCreate:
    def test_create(self, admin_client, chamber):
        response = _post(
            admin_client,
            reverse("equipment:repair_ticket_list"),
            {"asset_id": chamber.pk, "problem_desc": "Compressor failure"},
        )

        assert response.status_code == 201
        ticket = RepairTicket.objects.get(pk=response.json()["id"])
        assert ticket.status == "quote-pending"
        chamber.refresh_from_db()
        assert chamber.status == "maintenance"

    def test_missing_asset_is_404(self, admin_client):
        response = _post(
            admin_client,
            reverse("equipment:repair_ticket_list"),
            {"asset_id": 999999, "problem_desc": "Broken"},
        )

        assert response.status_code == 404
        assert response.json() == {"error": "not_found"}

    def test_busy_asset_is_400(self, admin_client):
        asset = AssetFactory(status="in-use")

        response = _post(
            admin_client,
            reverse("equipment:repair_ticket_list"),
            {"asset_id": asset.pk, "problem_desc": "Broken"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "asset_in_use"

    def test_second_open_ticket_is_400(self, admin_client, chamber):
        RepairTicketFactory(asset=chamber, status="repair-pending")

        response = _post(
            admin_client,
            reverse("equipment:repair_ticket_list"),
            {"asset_id": chamber.pk, "problem_desc": "Again"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "open_ticket_exists"

    def test_invalid_body(self, admin_client):
        response = _post(
            admin_client,
            reverse("equipment:repair_ticket_list"),
            {"problem_desc": ""},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "invalid_body"
        assert "asset_id" in body["fields"]

    def test_malformed_json(self, admin_client):
        response = admin_client.post(
            reverse("equipment:repair_ticket_list"),
            data="{not json",
            content_type="application/json",
        )

        assert response.status_code == 400
        assert response.json() == {"error": "invalid_body"}


class TestRepairTicketRead:
    def test_list_filters(self, admin_client):
        open_ticket = RepairTicketFactory()
        RepairTicketFactory(status="completed")

        response = admin_client.get(
            reverse("equipment:repair_ticket_list"),
            {"status": "quote-pending"},
        )

        items = response.json()["items"]
        assert [item["id"] for item in items] == [open_ticket.pk]
        assert items[0]["assetId"] == open_ticket.asset_id
        assert items[0]["timeline"] == open_ticket.timeline

    def test_list_by_asset(self, admin_client):
        ticket = RepairTicketFactory()
        RepairTicketFactory()

        response = admin_client.get(
            reverse("equipment:repair_ticket_list"),
            {"assetId": str(ticket.asset_id)},
        )

        assert [item["id"] for item in response.json()["items"]] == [ticket.pk]

    def test_detail(self, admin_client):
        ticket = RepairTicketFactory(vendor_name="Acme", quote_amount="12.50")

        response = admin_client.get(
            reverse("equipment:repair_ticket_detail", args=[ticket.pk])
        )

        item = response.json()["item"]
        assert item["vendorName"] == "Acme"
        assert item["quoteAmount"] == 12.5
        assert item["status"] == "quote-pending"

    def test_detail_missing(self, admin_client):
        response = admin_client.get(
            reverse("equipment:repair_ticket_detail", args=[999999])
        )

        assert response.status_code == 404


class TestRepairTicketChange:
    def test_patch_updates_fields(self, admin_client):
        ticket = RepairTicketFactory()

        response = _patch(
            admin_client,
            reverse("equipment:repair_ticket_detail", args=[ticket.pk]),
            {"vendor_name": "Acme", "quote_amount": 99.5},
        )

        assert response.status_code == 200
        ticket.refresh_from_db()
        assert ticket.vendor_name == "Acme"
        assert str(ticket.quote_amount) == "99.50"
        assert ticket.problem_desc

    @pytest.mark.parametrize("problem_desc", ["", "   ", None])
    def test_patch_rejects_empty_problem_desc(self, admin_client, problem_desc):
        ticket = RepairTicketFactory(problem_desc="Door seal")

        response = _patch(
            admin_client,
            reverse("equipment:repair_ticket_detail", args=[ticket.pk]),
            {"problem_desc": problem_desc},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "invalid_body"
        assert "problem_desc" in body["fields"]
        ticket.refresh_from_db()
        assert ticket.problem_desc == "Door seal"

    def test_transition(self, admin_client, chamber):
        ticket = RepairTicketFactory(asset=chamber)

        response = _post(
            admin_client,
            reverse("equipment:repair_ticket_transition", args=[ticket.pk]),
            {"to": "completed", "note": "Fixed on site"},
        )

        assert response.status_code == 200
        ticket.refresh_from_db()
        assert ticket.status == "completed"
        assert ticket.timeline[-1]["note"] == "Fixed on site"
        chamber.refresh_from_db()
        assert chamber.status == "available"

    def test_invalid_transition_is_400(self, admin_client):
        ticket = RepairTicketFactory(status="completed")

        response = _post(
            admin_client,
            reverse("equipment:repair_ticket_transition", args=[ticket.pk]),
            {"to": "repair-pending"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_transition"

    def test_unknown_target_status(self, admin_client):
        ticket = RepairTicketFactory()

        response = _post(
            admin_client,
            reverse("equipment:repair_ticket_transition", args=[ticket.pk]),
            {"to": "archived"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_body"

    def test_transition_missing_ticket(self, admin_client):
        response = _post(
            admin_client,
            reverse("equipment:repair_ticket_transition", args=[999999]),
            {"to": "completed"},
        )

        assert response.status_code == 404

    def test_delete(self, admin_client, chamber):
        ticket = RepairTicketFactory(asset=chamber)
        url = reverse("equipment:repair_ticket_detail", args=[ticket.pk])

        response = admin_client.delete(url)

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        chamber.refresh_from_db()
        assert chamber.status == "available"

    def test_delete_missing_is_ok(self, admin_client):
        response = admin_client.delete(
            reverse("equipment:repair_ticket_detail", args=[999999])
        )

        assert response.status_code == 200
        assert response.json() == {"ok": True}


class TestMaintenanceEndpoints:
    def test_recompute_single_asset(self, admin_client, chamber):
        UsageLogFactory(asset=chamber)

        response = _post(
            admin_client,
            reverse("equipment:asset_recompute_status", args=[chamber.pk]),
        )

        assert response.json() == {
            "ok": True,
            "updated": True,
            "status": "in-use",
        }

    def test_recompute_untracked_asset_is_404(self, admin_client, instrument):
        response = _post(
            admin_client,
            reverse("equipment:asset_recompute_status", args=[instrument.pk]),
        )

        assert response.status_code == 404

    def test_reconcile(self, admin_client):
        UsageLogFactory(asset=AssetFactory())
        AssetFactory()

        response = _post(admin_client, reverse("equipment:reconcile_asset_status"))

        assert response.status_code == 200
        assert response.json() == {"ok": True, "scanned": 2, "updated": 1}

    def test_backfill(self, admin_client):
        CategoryRateFactory(category="A", hourly_rate_cents=200)
        start = datetime(2026, 1, 1, tzinfo=dt_timezone.utc)
        UsageLogFactory(
            asset=AssetFactory(category="A", hourly_rate_cents=999),
            status="completed",
            start_time=start,
            end_time=start + timedelta(hours=1, seconds=1),
        )

        response = _post(
            admin_client,
            reverse("equipment:backfill_cost_snapshots"),
            {"limit": 100},
        )

        assert response.json() == {"ok": True, "scanned": 1, "updated": 1}

    def test_backfill_rejects_get(self, admin_client):
        response = admin_client.get(reverse("equipment:backfill_cost_snapshots"))

        assert response.status_code == 405
