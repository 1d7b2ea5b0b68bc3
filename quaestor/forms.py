from django import forms

from .models import Asset, AssetRequest, AssetReturn


class BaseForm(forms.ModelForm):
    """Base form that applies consistent styling to all form widgets."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        for field in self.fields.values():
            widget = field.widget
            existing_attrs = widget.attrs or {}

            if isinstance(widget, forms.Select):
                existing_attrs.setdefault("class", "form-select")
            elif isinstance(widget, forms.Textarea):
                existing_attrs.setdefault("class", "form-textarea")
                existing_attrs.setdefault("rows", 3)
            else:
                existing_attrs.setdefault("class", "form-input")

            if field.required:
                existing_attrs["required"] = "required"

            widget.attrs = existing_attrs


class AssetForm(BaseForm):
    """Create form for assets and consumables.

    ``status`` is never offered: consumable status is derived from stock.
    """

    class Meta:
        model = Asset
        fields = [
            "name",
            "category",
            "item_type",
            "available_status",
            "current_condition",
            "location",
            "current_stock",
            "minimum_stock",
            "unit",
            "notes",
        ]

    OPTIONAL_DEFAULTS = {
        "current_condition": "NEW",
        "current_stock": 0,
        "minimum_stock": 0,
        "unit": "PIECE",
    }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        for name in self.OPTIONAL_DEFAULTS:
            self.fields[name].required = False
            self.fields[name].widget.attrs.pop("required", None)

    def clean(self):
        cleaned_data = super().clean()
        for name, default in self.OPTIONAL_DEFAULTS.items():
            if cleaned_data.get(name) in (None, ""):
                cleaned_data[name] = default
        if cleaned_data.get("item_type") == "CONSUMABLE":
            cleaned_data["available_status"] = None
        return cleaned_data


class AssetRequestForm(BaseForm):
    class Meta:
        model = AssetRequest
        fields = ["requested_items", "purpose", "issue_date", "expected_return_date"]

    def clean_requested_items(self):
        items = self.cleaned_data.get("requested_items")
        if not isinstance(items, list) or not items:
            raise forms.ValidationError("Select at least one item.")
        try:
            return [int(item) for item in items]
        except (TypeError, ValueError):
            raise forms.ValidationError("Item ids must be integers.") from None


class StatusTransitionForm(forms.Form):
    status = forms.ChoiceField(choices=Asset.AVAILABLE_STATUS_CHOICES)
    note = forms.CharField(required=False, widget=forms.Textarea)


class ConditionForm(forms.Form):
    condition = forms.ChoiceField(choices=Asset.CONDITION_CHOICES)
    note = forms.CharField(required=False, widget=forms.Textarea)


class StockAdjustmentForm(forms.Form):
    delta = forms.IntegerField(help_text="Positive to restock, negative to consume.")
    note = forms.CharField(required=False, widget=forms.Textarea)
    audit_only = forms.BooleanField(
        required=False, help_text="Allow a zero adjustment to record a stock check."
    )


class IssueForm(forms.Form):
    custodian = forms.IntegerField(required=False)
    note = forms.CharField(required=False, widget=forms.Textarea)


class DecisionForm(forms.Form):
    DECISION_CHOICES = [("APPROVE", "Approve"), ("DENY", "Deny")]

    decision = forms.ChoiceField(choices=DECISION_CHOICES)
    # Emptiness is checked by the workflow so a missing denial reason
    # surfaces as its own error.
    reason = forms.CharField(required=False, widget=forms.Textarea)


class IssueAssetsForm(forms.Form):
    per_asset_notes = forms.JSONField(required=False)

    def clean_per_asset_notes(self):
        notes = self.cleaned_data.get("per_asset_notes") or {}
        if not isinstance(notes, dict):
            raise forms.ValidationError("Expected an object keyed by asset id.")
        return notes


class CancelForm(forms.Form):
    reason = forms.CharField(required=False, widget=forms.Textarea)


class ResubmitForm(forms.Form):
    reason = forms.CharField(required=False, widget=forms.Textarea)
    issue_date = forms.DateTimeField(required=False)
    expected_return_date = forms.DateTimeField(required=False)


class ReturnForm(forms.Form):
    return_condition = forms.ChoiceField(choices=Asset.CONDITION_CHOICES)
    return_delta = forms.ChoiceField(
        choices=AssetReturn.RETURN_DELTA_CHOICES, initial="GOOD"
    )
    note = forms.CharField(required=False, widget=forms.Textarea)
