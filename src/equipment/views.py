"""JSON endpoints for repair tickets and status maintenance jobs."""

import json
import logging
from functools import wraps

from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.views.decorators.http import require_http_methods, require_POST

from .exceptions import NotFound
from .forms import (
    BackfillForm,
    RepairTicketCreateForm,
    RepairTicketTransitionForm,
    RepairTicketUpdateForm,
)
from .models import RepairTicket
from .services.backfill import backfill_cost_snapshots
from .services.repairs import (
    create_repair_ticket,
    delete_repair_ticket,
    transition_repair_ticket,
    update_repair_ticket,
)
from .services.status import reconcile_all, recompute_status

audit_logger = logging.getLogger("equipment.audit")


def api_login_required(staff=False):
    """Reject anonymous (401) and, with ``staff``, non-staff (403) users."""

    def decorator(view):
        @wraps(view)
        def wrapped(request, *args, **kwargs):
            if not request.user.is_authenticated:
                return JsonResponse({"error": "unauthorized"}, status=401)
            if staff and not request.user.is_staff:
                return JsonResponse({"error": "forbidden"}, status=403)
            return view(request, *args, **kwargs)

        return wrapped

    return decorator


def _read_json(request):
    if not request.body:
        return {}
    try:
        payload = json.loads(request.body)
    except (ValueError, UnicodeDecodeError):
        return None
    return payload if isinstance(payload, dict) else None


def _invalid_body(form=None):
    body = {"error": "invalid_body"}
    if form is not None:
        body["fields"] = form.errors.get_json_data()
    return JsonResponse(body, status=400)


def _error_response(exc):
    if isinstance(exc, NotFound):
        return JsonResponse({"error": "not_found"}, status=404)
    return JsonResponse(
        {"error": exc.code or "invalid", "message": " ".join(exc.messages)},
        status=400,
    )


def _audit(request, action, entity_type, entity_id, before=None, after=None):
    audit_logger.info(
        "%s %s %s",
        action,
        entity_type,
        entity_id,
        extra={
            "actor_id": request.user.pk,
            "actor_username": request.user.get_username(),
            "before": before,
            "after": after,
            "ip": request.META.get("REMOTE_ADDR"),
            "user_agent": request.META.get("HTTP_USER_AGENT", ""),
            "request_id": request.META.get("HTTP_X_REQUEST_ID", ""),
        },
    )


def _iso(value):
    return value.isoformat() if value else None


def ticket_to_dict(ticket):
    return {
        "id": ticket.pk,
        "assetId": ticket.asset_id,
        "status": ticket.status,
        "problemDesc": ticket.problem_desc,
        "vendorName": ticket.vendor_name,
        "quoteAmount": (
            float(ticket.quote_amount)
            if ticket.quote_amount is not None
            else None
        ),
        "quoteAt": _iso(ticket.quote_at),
        "expectedReturnAt": _iso(ticket.expected_return_at),
        "completedAt": _iso(ticket.completed_at),
        "createdAt": _iso(ticket.created_at),
        "updatedAt": _iso(ticket.updated_at),
        "timeline": ticket.timeline,
    }


# --- Repair tickets ---


@require_http_methods(["GET", "POST"])
@api_login_required()
def repair_ticket_collection(request):
    if request.method == "POST":
        return _create_ticket(request)

    tickets = RepairTicket.objects.all()
    status = request.GET.get("status", "")
    if status:
        tickets = tickets.filter(status=status)
    asset_id = request.GET.get("assetId", "")
    if asset_id:
        if not asset_id.isdigit():
            return JsonResponse({"items": []})
        tickets = tickets.filter(asset_id=int(asset_id))
    return JsonResponse(
        {"items": [ticket_to_dict(t) for t in tickets.order_by("-updated_at")]}
    )


@api_login_required(staff=True)
def _create_ticket(request):
    payload = _read_json(request)
    if payload is None:
        return _invalid_body()
    form = RepairTicketCreateForm(payload)
    if not form.is_valid():
        return _invalid_body(form)

    data = form.cleaned_data
    try:
        ticket = create_repair_ticket(
            data["asset_id"],
            data["problem_desc"],
            started_at=data.get("started_at"),
            expected_return_at=data.get("expected_return_at"),
        )
    except (NotFound, ValidationError) as exc:
        return _error_response(exc)

    _audit(
        request, "repair_ticket.create", "repair_ticket", ticket.pk,
        after=ticket_to_dict(ticket),
    )
    return JsonResponse({"id": ticket.pk}, status=201)


@require_http_methods(["GET", "PATCH", "DELETE"])
@api_login_required()
def repair_ticket_detail(request, pk):
    if request.method == "PATCH":
        return _update_ticket(request, pk)
    if request.method == "DELETE":
        return _delete_ticket(request, pk)

    ticket = RepairTicket.objects.filter(pk=pk).first()
    if ticket is None:
        return JsonResponse({"error": "not_found"}, status=404)
    return JsonResponse({"item": ticket_to_dict(ticket)})


@api_login_required(staff=True)
def _update_ticket(request, pk):
    payload = _read_json(request)
    if payload is None:
        return _invalid_body()
    form = RepairTicketUpdateForm(payload)
    if not form.is_valid():
        return _invalid_body(form)

    before = RepairTicket.objects.filter(pk=pk).first()
    try:
        ticket = update_repair_ticket(pk, **form.changed_fields(payload))
    except (NotFound, ValidationError) as exc:
        return _error_response(exc)

    _audit(
        request, "repair_ticket.update", "repair_ticket", pk,
        before=ticket_to_dict(before) if before else None,
        after=ticket_to_dict(ticket),
    )
    return JsonResponse({"ok": True})


@api_login_required(staff=True)
def _delete_ticket(request, pk):
    before = RepairTicket.objects.filter(pk=pk).first()
    delete_repair_ticket(pk)
    if before is not None:
        _audit(
            request, "repair_ticket.delete", "repair_ticket", pk,
            before=ticket_to_dict(before),
        )
    return JsonResponse({"ok": True})


@require_POST
@api_login_required(staff=True)
def repair_ticket_transition(request, pk):
    payload = _read_json(request)
    if payload is None:
        return _invalid_body()
    form = RepairTicketTransitionForm(payload)
    if not form.is_valid():
        return _invalid_body(form)

    data = form.cleaned_data
    try:
        ticket = transition_repair_ticket(
            pk,
            data["to"],
            note=data.get("note"),
            vendor_name=data.get("vendor_name"),
            quote_amount=data.get("quote_amount"),
        )
    except (NotFound, ValidationError) as exc:
        return _error_response(exc)

    _audit(
        request, "repair_ticket.transition", "repair_ticket", pk,
        after=ticket_to_dict(ticket),
    )
    return JsonResponse({"ok": True})


# --- Maintenance jobs ---


@require_POST
@api_login_required(staff=True)
def asset_recompute_status(request, pk):
    result = recompute_status(pk)
    if result["target_status"] is None:
        return JsonResponse({"error": "not_found"}, status=404)
    return JsonResponse(
        {
            "ok": True,
            "updated": result["updated"],
            "status": result["target_status"],
        }
    )


@require_POST
@api_login_required(staff=True)
def reconcile_asset_status(request):
    result = reconcile_all()
    _audit(request, "asset_status.reconcile", "asset", "*", after=result)
    return JsonResponse({"ok": True, **result})


@require_POST
@api_login_required(staff=True)
def backfill_cost_snapshots_view(request):
    payload = _read_json(request)
    if payload is None:
        return _invalid_body()
    form = BackfillForm(payload)
    if not form.is_valid():
        return _invalid_body(form)

    result = backfill_cost_snapshots(limit=form.cleaned_data.get("limit"))
    _audit(
        request, "usage_log.backfill_cost_snapshots", "usage_log", "*",
        after=result,
    )
    return JsonResponse({"ok": True, **result})
