"""Utility functions for views."""

import functools
import json

from django.core.exceptions import ValidationError
from django.forms.models import model_to_dict
from django.http import JsonResponse, QueryDict
from django_htmx.http import trigger_client_event

from ..exceptions import LifecycleError


def get_payload(request):
    """Return submitted data from a form post or a JSON body."""
    if request.content_type == "application/json":
        try:
            body = json.loads(request.body or b"{}")
        except ValueError:
            return None
        if not isinstance(body, dict):
            return None
        data = QueryDict(mutable=True)
        for key, value in body.items():
            # Form fields expect strings; JSON fields get re-encoded.
            if isinstance(value, (list, dict)):
                data[key] = json.dumps(value)
            elif value is None:
                continue
            else:
                data[key] = str(value)
        return data
    return request.POST


def json_response(request, payload, status=200, event=None):
    """JsonResponse that also fires an htmx client event on success.

    For htmx requests, *event* is sent as ``HX-Trigger`` so listening
    fragments (asset cards, request lists) can refresh themselves.
    """
    response = JsonResponse(payload, status=status)
    if event and request.htmx:
        trigger_client_event(response, event, payload)
    return response


def error_response(exc):
    """Translate a ``LifecycleError`` into its JSON representation."""
    return JsonResponse(exc.as_dict(), status=exc.http_status, json_dumps_params={"default": str})


def invalid_body_response():
    return JsonResponse(
        {"error": "invalid_input", "message": "Request body must be a JSON object."},
        status=400,
    )


def form_error_response(form):
    return JsonResponse(
        {
            "error": "invalid_input",
            "message": "Please correct the highlighted fields.",
            "fields": form.errors.get_json_data(),
        },
        status=400,
    )


def staff_required(view):
    """Resolve ``request.staff`` and its organization, or answer 403.

    Engine errors raised by the view are mapped to their JSON form here so
    individual views only handle the success path.
    """

    @functools.wraps(view)
    def wrapper(request, *args, **kwargs):
        staff = getattr(request, "staff", None)
        if staff is None:
            return JsonResponse(
                {
                    "error": "no_staff_profile",
                    "message": "Your account is not linked to a staff profile.",
                },
                status=403,
            )
        try:
            return view(request, *args, **kwargs)
        except LifecycleError as exc:
            return error_response(exc)
        except ValidationError as exc:
            return JsonResponse(
                {"error": "invalid_input", "message": " ".join(exc.messages)},
                status=400,
            )

    return wrapper


def role_required(permission):
    """Answer 403 unless ``request.staff`` has *permission* (a ``Staff`` role check).

    Apply beneath ``staff_required``, which guarantees ``request.staff``.
    """

    def decorator(view):
        @functools.wraps(view)
        def wrapper(request, *args, **kwargs):
            if not getattr(request.staff, permission):
                return JsonResponse(
                    {
                        "error": "not_permitted",
                        "message": "Your role does not allow this action.",
                    },
                    status=403,
                )
            return view(request, *args, **kwargs)

        return wrapper

    return decorator


# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------


def serialize_asset(asset):
    data = model_to_dict(
        asset,
        fields=[
            "id",
            "asset_tag",
            "name",
            "category",
            "item_type",
            "available_status",
            "current_condition",
            "custodian",
            "location",
            "current_stock",
            "minimum_stock",
            "unit",
            "status",
        ],
    )
    if asset.is_consumable:
        data.pop("available_status")
    else:
        for key in ("current_stock", "minimum_stock", "unit", "status"):
            data.pop(key)
    return data


def serialize_request(asset_request):
    data = model_to_dict(
        asset_request,
        fields=[
            "id",
            "requester",
            "requested_items",
            "status",
            "purpose",
            "decision_notes",
            "decided_by",
            "original_request",
            "resubmission_reason",
        ],
    )
    for field in ("issue_date", "expected_return_date", "decided_at"):
        value = getattr(asset_request, field)
        data[field] = value.isoformat() if value else None
    return data


def serialize_event(event):
    return {
        "id": event.pk,
        "asset": event.asset_id,
        "event_type": event.event_type,
        "from_value": event.from_value,
        "to_value": event.to_value,
        "actor": event.actor_id,
        "at": event.at.isoformat(),
        "note": event.note,
    }
