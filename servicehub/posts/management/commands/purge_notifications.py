from django.conf import settings
from django.core.management.base import BaseCommand

from accounts.models import Notification
from servicehub.persistence import build_store


class Command(BaseCommand):
    help = "Delete notifications older than the retention window."

    def add_arguments(self, parser):
        parser.add_argument(
            "--days",
            type=int,
            default=None,
            help="Retention in days (defaults to MARKETPLACE_NOTIFICATION_TTL_DAYS).",
        )
        parser.add_argument("--dry-run", action="store_true")

    def handle(self, *args, **opts):
        days = opts["days"] if opts["days"] is not None else getattr(settings, "MARKETPLACE_NOTIFICATION_TTL_DAYS", 90)
        days = max(0, int(days))
        qs = build_store().query(Notification).expired(days)

        if opts["dry_run"]:
            self.stdout.write(f"{qs.count()} notifications older than {days} days would be deleted.")
            return

        deleted, _ = qs.delete()
        self.stdout.write(self.style.SUCCESS(f"Deleted {deleted} notifications older than {days} days."))
