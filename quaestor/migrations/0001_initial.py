import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

CONDITION_CHOICES = [
    ("NEW", "New"),
    ("LIKE_NEW", "Like New"),
    ("GOOD", "Good"),
    ("FAIR", "Fair"),
    ("POOR", "Poor"),
    ("DAMAGED", "Damaged"),
    ("SCRAP", "Scrap"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Organization",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255, unique=True)),
                (
                    "code",
                    models.CharField(
                        help_text="Short code used as the asset tag prefix, e.g. 'RETC'.",
                        max_length=20,
                        unique=True,
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "organizations",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Staff",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("email", models.EmailField(blank=True, max_length=254, null=True)),
                (
                    "role",
                    models.CharField(
                        choices=[
                            ("SYSTEM_ADMIN", "System Admin"),
                            ("ASSET_ADMIN", "Asset Admin"),
                            ("SENIOR_MANAGER", "Senior Manager"),
                            ("STAFF", "Staff"),
                            ("CONSUMABLE_ADMIN", "Consumable Admin"),
                        ],
                        default="STAFF",
                        max_length=20,
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "django_user",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="staff",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="staff",
                        to="quaestor.organization",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "Staff",
                "db_table": "staff",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Asset",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "asset_tag",
                    models.CharField(
                        blank=True,
                        help_text="Unique identifier for this asset (auto-generated if left blank).",
                        max_length=100,
                        unique=True,
                    ),
                ),
                ("name", models.CharField(max_length=255)),
                ("category", models.CharField(blank=True, default="", max_length=50)),
                (
                    "item_type",
                    models.CharField(
                        choices=[("ASSET", "Asset"), ("CONSUMABLE", "Consumable")],
                        default="ASSET",
                        max_length=20,
                    ),
                ),
                (
                    "available_status",
                    models.CharField(
                        blank=True,
                        choices=[
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
                        ],
                        max_length=20,
                        null=True,
                    ),
                ),
                (
                    "current_condition",
                    models.CharField(choices=CONDITION_CHOICES, default="NEW", max_length=20),
                ),
                ("location", models.CharField(blank=True, default="", max_length=255)),
                (
                    "current_stock",
                    models.IntegerField(
                        default=0, validators=[django.core.validators.MinValueValidator(0)]
                    ),
                ),
                (
                    "minimum_stock",
                    models.IntegerField(
                        default=0,
                        help_text="Reorder threshold",
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                ("unit", models.CharField(blank=True, default="PIECE", max_length=20)),
                (
                    "status",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("IN_STOCK", "In Stock"),
                            ("LOW_STOCK", "Low Stock"),
                            ("OUT_OF_STOCK", "Out of Stock"),
                        ],
                        max_length=20,
                        null=True,
                    ),
                ),
                ("version", models.PositiveIntegerField(default=0)),
                ("notes", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "custodian",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="custody_assets",
                        to="quaestor.staff",
                    ),
                ),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="assets",
                        to="quaestor.organization",
                    ),
                ),
            ],
            options={
                "db_table": "assets",
                "ordering": ["asset_tag"],
                "indexes": [
                    models.Index(fields=["organization", "item_type"], name="assets_organiz_4f1c2a_idx"),
                    models.Index(fields=["available_status"], name="assets_availab_9d3e71_idx"),
                    models.Index(fields=["status"], name="assets_status_6b0a58_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("current_stock__gte", 0)),
                        name="asset_stock_not_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="AssetRequest",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("requested_items", models.JSONField(default=list)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("PENDING", "Pending"),
                            ("APPROVED", "Approved"),
                            ("DENIED", "Denied"),
                            ("CANCELLED", "Cancelled"),
                            ("FULFILLED", "Fulfilled"),
                        ],
                        default="PENDING",
                        max_length=20,
                    ),
                ),
                ("issue_date", models.DateTimeField()),
                ("expected_return_date", models.DateTimeField()),
                ("purpose", models.TextField(blank=True, default="")),
                ("decision_notes", models.TextField(blank=True, null=True)),
                ("decided_at", models.DateTimeField(blank=True, null=True)),
                ("resubmission_reason", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "decided_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="decided_requests",
                        to="quaestor.staff",
                    ),
                ),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="requests",
                        to="quaestor.organization",
                    ),
                ),
                (
                    "original_request",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="resubmissions",
                        to="quaestor.assetrequest",
                    ),
                ),
                (
                    "requester",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="requests",
                        to="quaestor.staff",
                    ),
                ),
            ],
            options={
                "db_table": "asset_requests",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["organization", "status"], name="asset_reque_organiz_2c8e4d_idx"),
                    models.Index(fields=["requester"], name="asset_reque_request_71a9b0_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="AssetIssue",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "pre_condition",
                    models.CharField(choices=CONDITION_CHOICES, default="GOOD", max_length=20),
                ),
                ("accessories", models.JSONField(blank=True, default=list)),
                ("issued_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("due_at", models.DateTimeField(blank=True, null=True)),
                ("handover_note", models.TextField(blank=True, null=True)),
                ("acknowledged_by_requester", models.BooleanField(default=False)),
                (
                    "asset",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="issues",
                        to="quaestor.asset",
                    ),
                ),
                (
                    "issued_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="issued_assets",
                        to="quaestor.staff",
                    ),
                ),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="issues",
                        to="quaestor.organization",
                    ),
                ),
                (
                    "request",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="issues",
                        to="quaestor.assetrequest",
                    ),
                ),
            ],
            options={
                "db_table": "asset_issues",
                "ordering": ["-issued_at"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("request", "asset"), name="one_issue_per_asset_per_request"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="AssetReturn",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("returned_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("return_condition", models.CharField(choices=CONDITION_CHOICES, max_length=20)),
                (
                    "return_delta",
                    models.CharField(
                        choices=[("GOOD", "Good"), ("OK", "OK"), ("DAMAGED", "Damaged")],
                        max_length=20,
                    ),
                ),
                ("note", models.TextField(blank=True, null=True)),
                (
                    "asset",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="returns",
                        to="quaestor.asset",
                    ),
                ),
                (
                    "issue",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="asset_return",
                        to="quaestor.assetissue",
                    ),
                ),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="returns",
                        to="quaestor.organization",
                    ),
                ),
                (
                    "received_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="received_returns",
                        to="quaestor.staff",
                    ),
                ),
            ],
            options={
                "db_table": "asset_returns",
                "ordering": ["-returned_at"],
            },
        ),
        migrations.CreateModel(
            name="AssetEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "event_type",
                    models.CharField(
                        choices=[
                            ("CREATED", "Created"),
                            ("STATUS_CHANGED", "Status Changed"),
                            ("CONDITION_CHANGED", "Condition Changed"),
                            ("ASSIGNED", "Assigned"),
                            ("RETURNED", "Returned"),
                            ("LOCATION_CHANGED", "Location Changed"),
                            ("RETIRED", "Retired"),
                            ("DISPOSED", "Disposed"),
                            ("STOCK_ADJUSTED", "Stock Adjusted"),
                        ],
                        db_index=True,
                        max_length=30,
                    ),
                ),
                ("from_value", models.CharField(blank=True, max_length=255, null=True)),
                ("to_value", models.CharField(blank=True, max_length=255, null=True)),
                ("at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("note", models.TextField(blank=True, null=True)),
                (
                    "actor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="asset_events",
                        to="quaestor.staff",
                    ),
                ),
                (
                    "asset",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="events",
                        to="quaestor.asset",
                    ),
                ),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="asset_events",
                        to="quaestor.organization",
                    ),
                ),
            ],
            options={
                "db_table": "asset_events",
                "ordering": ["-at", "-id"],
                "indexes": [
                    models.Index(fields=["asset", "-at"], name="asset_event_asset_i_8e2f13_idx"),
                ],
            },
        ),
    ]
