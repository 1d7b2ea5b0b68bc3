"""Asset lifecycle endpoints: create, status, stock, issuance, returns."""

from django.views.decorators.http import require_GET, require_POST

from ..activity import asset_history
from ..forms import (
    AssetForm,
    ConditionForm,
    IssueForm,
    ReturnForm,
    StatusTransitionForm,
    StockAdjustmentForm,
)
from ..lifecycle import AssetLifecycle, allowed_transitions
from .utils import (
    form_error_response,
    get_payload,
    invalid_body_response,
    json_response,
    role_required,
    serialize_asset,
    serialize_event,
    staff_required,
)


def _lifecycle(request):
    return AssetLifecycle(request.staff.organization)


@require_POST
@staff_required
@role_required("can_manage_assets")
def asset_create(request):
    data = get_payload(request)
    if data is None:
        return invalid_body_response()
    form = AssetForm(data)
    if not form.is_valid():
        return form_error_response(form)

    asset = _lifecycle(request).create_asset(form.cleaned_data, request.staff.pk)
    return json_response(
        request, {"asset": serialize_asset(asset)}, status=201, event="assetChanged"
    )


@require_GET
@staff_required
def asset_details(request, asset_id):
    asset = _lifecycle(request).store.get("assets", asset_id)
    payload = {"asset": serialize_asset(asset)}
    if not asset.is_consumable:
        payload["allowed_transitions"] = sorted(allowed_transitions(asset.available_status))
    return json_response(request, payload)


@require_POST
@staff_required
@role_required("can_manage_assets")
def asset_change_status(request, asset_id):
    data = get_payload(request)
    if data is None:
        return invalid_body_response()
    form = StatusTransitionForm(data)
    if not form.is_valid():
        return form_error_response(form)

    asset = _lifecycle(request).transition_status(
        asset_id,
        form.cleaned_data["status"],
        request.staff.pk,
        note=form.cleaned_data["note"] or None,
    )
    return json_response(request, {"asset": serialize_asset(asset)}, event="assetChanged")


@require_POST
@staff_required
@role_required("can_adjust_stock")
def asset_adjust_stock(request, asset_id):
    data = get_payload(request)
    if data is None:
        return invalid_body_response()
    form = StockAdjustmentForm(data)
    if not form.is_valid():
        return form_error_response(form)

    try:
        asset = _lifecycle(request).adjust_stock(
            asset_id,
            form.cleaned_data["delta"],
            request.staff.pk,
            note=form.cleaned_data["note"] or None,
            allow_zero=form.cleaned_data["audit_only"],
        )
    except ValueError as exc:
        return json_response(
            request, {"error": "invalid_input", "message": str(exc)}, status=400
        )
    return json_response(request, {"asset": serialize_asset(asset)}, event="stockChanged")


@require_GET
@staff_required
def asset_issuable(request, asset_id):
    """Answer ``{"issuable": true}`` or the ``not_issuable`` error."""
    _lifecycle(request).can_issue_asset(
        asset_id, custodian_id=request.GET.get("custodian") or None
    )
    return json_response(request, {"issuable": True})


@require_POST
@staff_required
@role_required("can_issue_assets")
def asset_issue(request, asset_id):
    data = get_payload(request)
    if data is None:
        return invalid_body_response()
    form = IssueForm(data)
    if not form.is_valid():
        return form_error_response(form)

    asset = _lifecycle(request).issue(
        asset_id,
        form.cleaned_data["custodian"],
        request.staff.pk,
        note=form.cleaned_data["note"] or None,
    )
    return json_response(request, {"asset": serialize_asset(asset)}, event="assetChanged")


@require_POST
@staff_required
@role_required("can_manage_assets")
def asset_change_condition(request, asset_id):
    data = get_payload(request)
    if data is None:
        return invalid_body_response()
    form = ConditionForm(data)
    if not form.is_valid():
        return form_error_response(form)

    asset = _lifecycle(request).change_condition(
        asset_id,
        form.cleaned_data["condition"],
        request.staff.pk,
        note=form.cleaned_data["note"] or None,
    )
    return json_response(request, {"asset": serialize_asset(asset)}, event="assetChanged")


@require_POST
@staff_required
@role_required("can_manage_assets")
def asset_transfer_location(request, asset_id):
    data = get_payload(request)
    if data is None:
        return invalid_body_response()
    asset = _lifecycle(request).move(
        asset_id,
        (data.get("location") or "").strip(),
        request.staff.pk,
        note=data.get("note") or None,
    )
    return json_response(request, {"asset": serialize_asset(asset)}, event="assetChanged")


@require_POST
@staff_required
@role_required("can_issue_assets")
def issue_return(request, issue_id):
    data = get_payload(request)
    if data is None:
        return invalid_body_response()
    form = ReturnForm(data)
    if not form.is_valid():
        return form_error_response(form)

    lifecycle = _lifecycle(request)
    asset_return = lifecycle.record_return(
        issue_id,
        request.staff.pk,
        form.cleaned_data["return_condition"],
        return_delta=form.cleaned_data["return_delta"],
        note=form.cleaned_data["note"] or None,
    )
    asset = lifecycle.store.get("assets", asset_return.asset_id)
    return json_response(
        request,
        {"return_id": asset_return.pk, "asset": serialize_asset(asset)},
        status=201,
        event="assetChanged",
    )


@require_GET
@staff_required
def asset_events(request, asset_id):
    lifecycle = _lifecycle(request)
    # 404 for unknown assets rather than an empty history.
    lifecycle.store.get("assets", asset_id)
    try:
        limit = int(request.GET.get("limit", 50))
    except ValueError:
        limit = 50
    events = asset_history(lifecycle.store, asset_id, limit=max(1, min(limit, 500)))
    return json_response(request, {"events": [serialize_event(e) for e in events]})
