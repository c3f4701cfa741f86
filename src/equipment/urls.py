from django.urls import path

from . import views

app_name = "equipment"

urlpatterns = [
    path(
        "repair-tickets/",
        views.repair_ticket_collection,
        name="repair_ticket_list",
    ),
    path(
        "repair-tickets/<int:pk>/",
        views.repair_ticket_detail,
        name="repair_ticket_detail",
    ),
    path(
        "repair-tickets/<int:pk>/transition/",
        views.repair_ticket_transition,
        name="repair_ticket_transition",
    ),
    path(
        "assets/<int:pk>/recompute-status/",
        views.asset_recompute_status,
        name="asset_recompute_status",
    ),
    path(
        "admin/reconcile/asset-status/",
        views.reconcile_asset_status,
        name="reconcile_asset_status",
    ),
    path(
        "admin/backfill/cost-snapshots/",
        views.backfill_cost_snapshots_view,
        name="backfill_cost_snapshots",
    ),
]
