"""
Management command listing issued assets that are past their due date.

Read-only: it reports issues whose ``due_at`` (plus the grace period) has
passed with no return recorded.  Intended for a daily scheduled job.
"""

from datetime import timedelta

from django.core.management.base import BaseCommand
from django.utils import timezone

from quaestor.conf import get_setting
from quaestor.models import AssetIssue


def overdue_issues(now=None, grace_days=None):
    """Return unreturned issues more than *grace_days* past ``due_at``."""
    now = now or timezone.now()
    if grace_days is None:
        grace_days = get_setting("OVERDUE_GRACE_DAYS")
    cutoff = now - timedelta(days=grace_days)
    return (
        AssetIssue.objects.filter(
            due_at__lt=cutoff,
            asset_return__isnull=True,
            asset__available_status__in=["IN_USE", "AWAITING_RETURN"],
        )
        .select_related("asset", "request__requester", "organization")
        .order_by("due_at")
    )


class Command(BaseCommand):
    help = "List issued assets that have not been returned by their due date"

    def add_arguments(self, parser):
        parser.add_argument(
            "--days",
            type=int,
            default=None,
            help="Grace period in days (defaults to QUAESTOR['OVERDUE_GRACE_DAYS'])",
        )

    def handle(self, *args, **options):
        now = timezone.now()
        issues = list(overdue_issues(now=now, grace_days=options["days"]))

        if not issues:
            self.stdout.write(self.style.SUCCESS("No overdue issues"))
            return

        for issue in issues:
            days_late = (now - issue.due_at).days
            self.stdout.write(
                f"[{issue.organization.code}] {issue.asset.asset_tag} held by "
                f"{issue.request.requester.name}: due {issue.due_at:%Y-%m-%d}, "
                f"{days_late} day(s) late"
            )

        self.stdout.write(
            self.style.WARNING(f"\n{len(issues)} overdue issue(s)")
        )
