from django.contrib.auth.models import User as DjangoUser
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone

# ============================================================================
# CORE MODELS
# ============================================================================


class Organization(models.Model):
    """Tenant boundary; every other row belongs to exactly one organization."""

    name = models.CharField(max_length=255, unique=True)
    code = models.CharField(
        max_length=20,
        unique=True,
        help_text="Short code used as the asset tag prefix, e.g. 'RETC'.",
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "organizations"
        ordering = ["name"]

    def __str__(self):
        return self.name


class Staff(models.Model):
    """Staff members who request, approve, issue and hold assets."""

    ROLE_CHOICES = [
        ("SYSTEM_ADMIN", "System Admin"),
        ("ASSET_ADMIN", "Asset Admin"),
        ("SENIOR_MANAGER", "Senior Manager"),
        ("STAFF", "Staff"),
        ("CONSUMABLE_ADMIN", "Consumable Admin"),
    ]

    MANAGER_ROLES = ("SYSTEM_ADMIN", "ASSET_ADMIN")
    APPROVER_ROLES = ("SYSTEM_ADMIN", "ASSET_ADMIN", "SENIOR_MANAGER")
    ISSUER_ROLES = ("SYSTEM_ADMIN", "ASSET_ADMIN")
    STOCK_ROLES = ("SYSTEM_ADMIN", "ASSET_ADMIN", "CONSUMABLE_ADMIN")

    organization = models.ForeignKey(
        Organization, on_delete=models.CASCADE, related_name="staff"
    )
    name = models.CharField(max_length=255)
    email = models.EmailField(null=True, blank=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default="STAFF")
    is_active = models.BooleanField(default=True)
    django_user = models.OneToOneField(
        DjangoUser,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="staff",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "staff"
        verbose_name_plural = "Staff"
        ordering = ["name"]

    def __str__(self):
        return self.name

    # Role checks used by the views. Any active staff member may raise requests.

    @property
    def can_manage_assets(self):
        return self.role in self.MANAGER_ROLES

    @property
    def can_approve_requests(self):
        return self.role in self.APPROVER_ROLES

    @property
    def can_issue_assets(self):
        return self.role in self.ISSUER_ROLES

    @property
    def can_adjust_stock(self):
        return self.role in self.STOCK_ROLES


# ============================================================================
# ASSET MODELS
# ============================================================================


def derive_stock_status(stock, minimum):
    """Stock status of a consumable from its level and reorder threshold."""
    if stock <= 0:
        return "OUT_OF_STOCK"
    if stock <= minimum:
        return "LOW_STOCK"
    return "IN_STOCK"


class Asset(models.Model):
    """Physical assets and stock-tracked consumables.

    ``item_type`` is fixed when the row is created.  For consumables the
    ``status`` column is a denormalised copy of ``derive_stock_status`` and
    is rewritten on every save; nothing else may set it.
    """

    ITEM_TYPE_CHOICES = [
        ("ASSET", "Asset"),
        ("CONSUMABLE", "Consumable"),
    ]

    AVAILABLE_STATUS_CHOICES = [
        ("AVAILABLE", "Available"),
        ("RESERVED", "Reserved"),
        ("IN_USE", "In Use"),
        ("AWAITING_DEPLOY", "Awaiting Deploy"),
        ("MAINTENANCE", "Maintenance"),
        ("REPAIR_REQUIRED", "Repair Required"),
        ("OUT_FOR_SERVICE", "Out for Service"),
        ("AWAITING_RETURN", "Awaiting Return"),
        ("RETIRED", "Retired"),
        ("DISPOSED", "Disposed"),
    ]

    CONDITION_CHOICES = [
        ("NEW", "New"),
        ("LIKE_NEW", "Like New"),
        ("GOOD", "Good"),
        ("FAIR", "Fair"),
        ("POOR", "Poor"),
        ("DAMAGED", "Damaged"),
        ("SCRAP", "Scrap"),
    ]

    STOCK_STATUS_CHOICES = [
        ("IN_STOCK", "In Stock"),
        ("LOW_STOCK", "Low Stock"),
        ("OUT_OF_STOCK", "Out of Stock"),
    ]

    # Core Identification
    organization = models.ForeignKey(
        Organization, on_delete=models.CASCADE, related_name="assets"
    )
    asset_tag = models.CharField(
        max_length=100,
        unique=True,
        blank=True,
        help_text="Unique identifier for this asset (auto-generated if left blank).",
    )
    name = models.CharField(max_length=255)
    category = models.CharField(max_length=50, default="", blank=True)
    item_type = models.CharField(
        max_length=20, choices=ITEM_TYPE_CHOICES, default="ASSET"
    )

    # Physical asset lifecycle
    available_status = models.CharField(
        max_length=20,
        choices=AVAILABLE_STATUS_CHOICES,
        null=True,
        blank=True,
    )
    current_condition = models.CharField(
        max_length=20, choices=CONDITION_CHOICES, default="NEW"
    )
    custodian = models.ForeignKey(
        Staff,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="custody_assets",
    )
    location = models.CharField(max_length=255, default="", blank=True)

    # Consumable stock
    current_stock = models.IntegerField(default=0, validators=[MinValueValidator(0)])
    minimum_stock = models.IntegerField(
        default=0, validators=[MinValueValidator(0)], help_text="Reorder threshold"
    )
    unit = models.CharField(max_length=20, default="PIECE", blank=True)
    status = models.CharField(
        max_length=20, choices=STOCK_STATUS_CHOICES, null=True, blank=True
    )

    # Bumped on every stock write; conditional updates key on it.
    version = models.PositiveIntegerField(default=0)

    notes = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "assets"
        ordering = ["asset_tag"]
        indexes = [
            models.Index(fields=["organization", "item_type"], name="assets_organiz_4f1c2a_idx"),
            models.Index(fields=["available_status"], name="assets_availab_9d3e71_idx"),
            models.Index(fields=["status"], name="assets_status_6b0a58_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(current_stock__gte=0),
                name="asset_stock_not_negative",
            ),
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._original_item_type = self.item_type if self.pk else None

    def __str__(self):
        return f"{self.asset_tag} - {self.name}"

    @property
    def is_consumable(self):
        return self.item_type == "CONSUMABLE"

    @property
    def stock_status(self):
        """Always computed; ``status`` is only its persisted copy."""
        if not self.is_consumable:
            return None
        return derive_stock_status(self.current_stock, self.minimum_stock)

    def clean(self):
        if self._original_item_type and self.item_type != self._original_item_type:
            raise ValidationError(
                {"item_type": "Item type cannot be changed after creation."}
            )
        if self.is_consumable and self.available_status:
            raise ValidationError(
                {"available_status": "Consumables do not have an availability status."}
            )

    def save(self, *args, **kwargs):
        if self._original_item_type and self.item_type != self._original_item_type:
            raise ValidationError(
                {"item_type": "Item type cannot be changed after creation."}
            )

        if self.is_consumable:
            self.status = self.stock_status
            self.available_status = None
            update_fields = kwargs.get("update_fields")
            if update_fields is not None and "status" not in update_fields:
                kwargs["update_fields"] = [*update_fields, "status"]
        else:
            self.status = None
            if not self.available_status:
                self.available_status = "AWAITING_DEPLOY"

        if not self.asset_tag:
            from quaestor.tagging import generate_asset_tag_for_instance

            self.asset_tag = generate_asset_tag_for_instance(self)

        super().save(*args, **kwargs)
        self._original_item_type = self.item_type


# ============================================================================
# REQUEST MODELS
# ============================================================================


class AssetRequest(models.Model):
    """A staff request for one or more assets and/or consumables.

    ``requested_items`` is an ordered list of Asset ids; a consumable id
    repeated N times asks for N units.
    """

    STATUS_CHOICES = [
        ("PENDING", "Pending"),
        ("APPROVED", "Approved"),
        ("DENIED", "Denied"),
        ("CANCELLED", "Cancelled"),
        ("FULFILLED", "Fulfilled"),
    ]

    organization = models.ForeignKey(
        Organization, on_delete=models.CASCADE, related_name="requests"
    )
    requester = models.ForeignKey(
        Staff, on_delete=models.PROTECT, related_name="requests"
    )
    requested_items = models.JSONField(default=list)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="PENDING")
    issue_date = models.DateTimeField()
    expected_return_date = models.DateTimeField()
    purpose = models.TextField(default="", blank=True)

    # Decision
    decision_notes = models.TextField(null=True, blank=True)
    decided_by = models.ForeignKey(
        Staff,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="decided_requests",
    )
    decided_at = models.DateTimeField(null=True, blank=True)

    # Resubmission
    original_request = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="resubmissions",
    )
    resubmission_reason = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "asset_requests"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["organization", "status"], name="asset_reque_organiz_2c8e4d_idx"),
            models.Index(fields=["requester"], name="asset_reque_request_71a9b0_idx"),
        ]

    def __str__(self):
        return f"REQ-{self.pk} ({self.status})"

    def item_quantities(self):
        """Return ``{asset_id: quantity}`` preserving first-seen order."""
        quantities = {}
        for item_id in self.requested_items:
            quantities[item_id] = quantities.get(item_id, 0) + 1
        return quantities


class AssetIssue(models.Model):
    """Record of one physical hand-off; only the acknowledgement may change."""

    organization = models.ForeignKey(
        Organization, on_delete=models.CASCADE, related_name="issues"
    )
    request = models.ForeignKey(
        AssetRequest, on_delete=models.PROTECT, related_name="issues"
    )
    asset = models.ForeignKey(Asset, on_delete=models.PROTECT, related_name="issues")
    issued_by = models.ForeignKey(
        Staff,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="issued_assets",
    )
    pre_condition = models.CharField(
        max_length=20, choices=Asset.CONDITION_CHOICES, default="GOOD"
    )
    accessories = models.JSONField(default=list, blank=True)
    issued_at = models.DateTimeField(default=timezone.now)
    due_at = models.DateTimeField(null=True, blank=True)
    handover_note = models.TextField(null=True, blank=True)
    acknowledged_by_requester = models.BooleanField(default=False)

    class Meta:
        db_table = "asset_issues"
        ordering = ["-issued_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["request", "asset"], name="one_issue_per_asset_per_request"
            ),
        ]

    def __str__(self):
        return f"{self.asset.asset_tag} issued for {self.request}"

    def save(self, *args, **kwargs):
        if self.pk:
            update_fields = kwargs.get("update_fields")
            if update_fields is None or set(update_fields) != {
                "acknowledged_by_requester"
            }:
                raise ValidationError(
                    "Issue records are immutable except for the acknowledgement flag."
                )
        super().save(*args, **kwargs)


class AssetReturn(models.Model):
    """Hand-back of an issued asset."""

    RETURN_DELTA_CHOICES = [
        ("GOOD", "Good"),
        ("OK", "OK"),
        ("DAMAGED", "Damaged"),
    ]

    organization = models.ForeignKey(
        Organization, on_delete=models.CASCADE, related_name="returns"
    )
    issue = models.OneToOneField(
        AssetIssue, on_delete=models.PROTECT, related_name="asset_return"
    )
    asset = models.ForeignKey(Asset, on_delete=models.PROTECT, related_name="returns")
    received_by = models.ForeignKey(
        Staff,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="received_returns",
    )
    returned_at = models.DateTimeField(default=timezone.now)
    return_condition = models.CharField(max_length=20, choices=Asset.CONDITION_CHOICES)
    return_delta = models.CharField(max_length=20, choices=RETURN_DELTA_CHOICES)
    note = models.TextField(null=True, blank=True)

    class Meta:
        db_table = "asset_returns"
        ordering = ["-returned_at"]

    def __str__(self):
        return f"{self.asset.asset_tag} returned ({self.return_delta})"


# ============================================================================
# AUDIT LOG
# ============================================================================


class AssetEvent(models.Model):
    """
    Append-only audit trail of asset state changes.

    Rows are never updated or deleted; ``save()`` on an existing row and
    ``delete()`` both raise.
    """

    EVENT_TYPE_CHOICES = [
        ("CREATED", "Created"),
        ("STATUS_CHANGED", "Status Changed"),
        ("CONDITION_CHANGED", "Condition Changed"),
        ("ASSIGNED", "Assigned"),
        ("RETURNED", "Returned"),
        ("LOCATION_CHANGED", "Location Changed"),
        ("RETIRED", "Retired"),
        ("DISPOSED", "Disposed"),
        ("STOCK_ADJUSTED", "Stock Adjusted"),
    ]

    organization = models.ForeignKey(
        Organization, on_delete=models.CASCADE, related_name="asset_events"
    )
    asset = models.ForeignKey(Asset, on_delete=models.PROTECT, related_name="events")
    event_type = models.CharField(
        max_length=30, choices=EVENT_TYPE_CHOICES, db_index=True
    )
    from_value = models.CharField(max_length=255, null=True, blank=True)
    to_value = models.CharField(max_length=255, null=True, blank=True)
    actor = models.ForeignKey(
        Staff,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="asset_events",
    )
    at = models.DateTimeField(default=timezone.now, db_index=True)
    note = models.TextField(null=True, blank=True)

    class Meta:
        db_table = "asset_events"
        ordering = ["-at", "-id"]
        indexes = [
            models.Index(fields=["asset", "-at"], name="asset_event_asset_i_8e2f13_idx"),
        ]

    def __str__(self):
        return f"[{self.at:%Y-%m-%d %H:%M}] {self.event_type}: {self.from_value} -> {self.to_value}"

    def save(self, *args, **kwargs):
        if self.pk:
            raise ValidationError("Asset events are append-only.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Asset events are append-only.")
