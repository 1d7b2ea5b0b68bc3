"""
Management command to recompute the stored stock status of consumables.

``Asset.status`` is a persisted copy of ``derive_stock_status()``.  Rows
written outside the ORM (bulk imports, raw SQL) can drift; this command
puts them back in line with their stock level.
"""

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from quaestor.models import Asset, Organization, derive_stock_status


class Command(BaseCommand):
    help = "Recompute the derived stock status of every consumable from its stock level"

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be fixed without making changes",
        )
        parser.add_argument(
            "--organization",
            metavar="CODE",
            help="Only check consumables of the organization with this code",
        )

    def handle(self, *args, **options):
        dry_run = options["dry_run"]

        if dry_run:
            self.stdout.write(
                self.style.WARNING("DRY RUN MODE - No changes will be made")
            )

        consumables = Asset.objects.filter(item_type="CONSUMABLE")
        if options["organization"]:
            try:
                organization = Organization.objects.get(code=options["organization"])
            except Organization.DoesNotExist:
                raise CommandError(
                    f"No organization with code {options['organization']!r}"
                ) from None
            consumables = consumables.filter(organization=organization)

        total_fixed = 0

        with transaction.atomic():
            for asset in consumables.order_by("pk"):
                expected = derive_stock_status(asset.current_stock, asset.minimum_stock)
                if asset.status == expected:
                    continue

                self.stdout.write(
                    f"{asset.asset_tag}: {asset.status} -> {expected} "
                    f"(stock {asset.current_stock}, minimum {asset.minimum_stock})"
                )
                if not dry_run:
                    # Queryset update: leaves version and updated_at alone.
                    Asset.objects.filter(pk=asset.pk).update(status=expected)
                total_fixed += 1

        if dry_run:
            self.stdout.write(
                self.style.WARNING(
                    f"\nDRY RUN COMPLETE - Would have fixed {total_fixed} consumable(s)"
                )
            )
        else:
            self.stdout.write(
                self.style.SUCCESS(f"\nFixed {total_fixed} consumable(s)")
            )
