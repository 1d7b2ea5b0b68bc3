"""Request workflow endpoints: submit, decide, issue, cancel, resubmit."""

from django.views.decorators.http import require_GET, require_POST

from ..forms import (
    AssetRequestForm,
    CancelForm,
    DecisionForm,
    IssueAssetsForm,
    ResubmitForm,
)
from ..workflow import RequestWorkflow
from .utils import (
    form_error_response,
    get_payload,
    invalid_body_response,
    json_response,
    role_required,
    serialize_request,
    staff_required,
)


def _workflow(request):
    return RequestWorkflow(request.staff.organization)


@require_POST
@staff_required
def request_submit(request):
    data = get_payload(request)
    if data is None:
        return invalid_body_response()
    form = AssetRequestForm(data)
    if not form.is_valid():
        return form_error_response(form)

    asset_request = _workflow(request).submit(
        request.staff.pk,
        form.cleaned_data["requested_items"],
        form.cleaned_data["purpose"],
        form.cleaned_data["issue_date"],
        form.cleaned_data["expected_return_date"],
    )
    return json_response(
        request,
        {"request": serialize_request(asset_request)},
        status=201,
        event="requestChanged",
    )


@require_GET
@staff_required
def request_details(request, request_id):
    asset_request = _workflow(request).store.get("requests", request_id)
    return json_response(request, {"request": serialize_request(asset_request)})


@require_POST
@staff_required
@role_required("can_approve_requests")
def request_decide(request, request_id):
    data = get_payload(request)
    if data is None:
        return invalid_body_response()
    form = DecisionForm(data)
    if not form.is_valid():
        return form_error_response(form)

    asset_request = _workflow(request).decide(
        request_id,
        form.cleaned_data["decision"],
        request.staff.pk,
        reason=form.cleaned_data["reason"],
    )
    return json_response(
        request, {"request": serialize_request(asset_request)}, event="requestChanged"
    )


@require_POST
@staff_required
@role_required("can_issue_assets")
def request_issue(request, request_id):
    data = get_payload(request)
    if data is None:
        return invalid_body_response()
    form = IssueAssetsForm(data)
    if not form.is_valid():
        return form_error_response(form)

    workflow = _workflow(request)
    result = workflow.issue_assets(
        request_id,
        request.staff.pk,
        per_asset_notes=form.cleaned_data["per_asset_notes"],
    )
    asset_request = workflow.store.get("requests", request_id)
    return json_response(
        request,
        {"request": serialize_request(asset_request), **result},
        event="requestChanged",
    )


@require_POST
@staff_required
def request_cancel(request, request_id):
    data = get_payload(request)
    if data is None:
        return invalid_body_response()
    form = CancelForm(data)
    if not form.is_valid():
        return form_error_response(form)

    asset_request = _workflow(request).cancel(
        request_id, request.staff.pk, form.cleaned_data["reason"]
    )
    return json_response(
        request, {"request": serialize_request(asset_request)}, event="requestChanged"
    )


@require_POST
@staff_required
def request_resubmit(request, request_id):
    data = get_payload(request)
    if data is None:
        return invalid_body_response()
    form = ResubmitForm(data)
    if not form.is_valid():
        return form_error_response(form)

    asset_request = _workflow(request).resubmit(
        request_id,
        request.staff.pk,
        reason=form.cleaned_data["reason"] or None,
        issue_date=form.cleaned_data["issue_date"],
        expected_return_date=form.cleaned_data["expected_return_date"],
    )
    return json_response(
        request,
        {"request": serialize_request(asset_request)},
        status=201,
        event="requestChanged",
    )


@require_POST
@staff_required
def issue_acknowledge(request, issue_id):
    issue = _workflow(request).acknowledge_issue(issue_id, request.staff.pk)
    return json_response(
        request,
        {"issue_id": issue.pk, "acknowledged": issue.acknowledged_by_requester},
        event="requestChanged",
    )
