from django.contrib import admin
from django.utils.html import format_html

from .models import (
    Asset,
    AssetEvent,
    AssetIssue,
    AssetRequest,
    AssetReturn,
    Organization,
    Staff,
)

# ============================================================================
# CORE ADMIN
# ============================================================================


@admin.register(Organization)
class OrganizationAdmin(admin.ModelAdmin):
    list_display = ["name", "code", "is_active", "asset_count"]
    list_filter = ["is_active"]
    search_fields = ["name", "code"]
    readonly_fields = ["created_at", "updated_at"]

    def asset_count(self, obj):
        return obj.assets.count()

    asset_count.short_description = "Assets"


@admin.register(Staff)
class StaffAdmin(admin.ModelAdmin):
    list_display = ["name", "organization", "role", "email", "is_active"]
    list_filter = ["organization", "role", "is_active"]
    search_fields = ["name", "email"]
    readonly_fields = ["created_at", "updated_at"]
    raw_id_fields = ["django_user"]


# ============================================================================
# ASSET ADMIN
# ============================================================================


@admin.register(Asset)
class AssetAdmin(admin.ModelAdmin):
    list_display = [
        "asset_tag",
        "name",
        "organization",
        "item_type",
        "available_status",
        "custodian",
        "current_stock",
        "stock_badge",
    ]
    list_filter = ["organization", "item_type", "available_status", "status"]
    search_fields = ["asset_tag", "name", "category", "location"]
    # Status and stock only change through the lifecycle engine so every
    # change leaves an event behind.
    readonly_fields = [
        "available_status",
        "current_stock",
        "status",
        "version",
        "created_at",
        "updated_at",
    ]

    fieldsets = (
        (
            "Basic Information",
            {"fields": ("organization", "asset_tag", "name", "category", "item_type")},
        ),
        (
            "Lifecycle",
            {"fields": ("available_status", "current_condition", "custodian", "location")},
        ),
        ("Stock", {"fields": ("current_stock", "minimum_stock", "unit", "status")}),
        ("Additional Information", {"fields": ("notes",), "classes": ("collapse",)}),
        (
            "Metadata",
            {"fields": ("version", "created_at", "updated_at"), "classes": ("collapse",)},
        ),
    )

    def stock_badge(self, obj):
        """Show stock status with color coding"""
        if not obj.is_consumable:
            return "-"
        colors = {"OUT_OF_STOCK": "red", "LOW_STOCK": "orange", "IN_STOCK": "green"}
        return format_html(
            '<span style="color: {};">{}</span>',
            colors.get(obj.status, "inherit"),
            obj.get_status_display() or "-",
        )

    stock_badge.short_description = "Stock"


# ============================================================================
# REQUEST ADMIN
# ============================================================================


class AssetIssueInline(admin.TabularInline):
    model = AssetIssue
    extra = 0
    can_delete = False
    fields = ["asset", "issued_by", "issued_at", "due_at", "acknowledged_by_requester"]
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(AssetRequest)
class AssetRequestAdmin(admin.ModelAdmin):
    list_display = ["__str__", "organization", "requester", "status", "issue_date", "decided_by"]
    list_filter = ["organization", "status"]
    search_fields = ["purpose", "requester__name"]
    readonly_fields = ["status", "decided_by", "decided_at", "created_at", "updated_at"]
    inlines = [AssetIssueInline]


@admin.register(AssetReturn)
class AssetReturnAdmin(admin.ModelAdmin):
    list_display = ["asset", "issue", "received_by", "returned_at", "return_delta"]
    list_filter = ["return_delta"]
    readonly_fields = ["returned_at"]

    def has_change_permission(self, request, obj=None):
        return False


# ============================================================================
# AUDIT LOG
# ============================================================================


@admin.register(AssetEvent)
class AssetEventAdmin(admin.ModelAdmin):
    list_display = ("at", "asset", "event_type", "from_value", "to_value", "actor")
    list_filter = ("event_type", "at")
    search_fields = ("asset__asset_tag", "note", "from_value", "to_value")
    readonly_fields = (
        "organization",
        "asset",
        "event_type",
        "from_value",
        "to_value",
        "actor",
        "at",
        "note",
    )
    date_hierarchy = "at"
    ordering = ("-at",)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# ============================================================================
# ADMIN SITE CUSTOMIZATION
# ============================================================================

admin.site.site_header = "quaestor"
admin.site.site_title = "quaestor"
admin.site.index_title = "Asset lifecycle"
