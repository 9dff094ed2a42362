# ledger/management/commands/sweep_overdue.py

from __future__ import annotations

from datetime import datetime, time

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from ledger.services.overdue_sweeper import sweep_overdue


def _parse_date(s: str | None):
    if not s:
        return None
    try:
        return datetime.strptime(s, "%Y-%m-%d").date()
    except ValueError:
        return None


class Command(BaseCommand):
    help = "Promote pending/partial obligations past their due date to overdue."

    def add_arguments(self, parser):
        parser.add_argument(
            "--as-of",
            dest="as_of",
            help="Treat this date (YYYY-MM-DD) as today (optional)",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="List obligations that would be promoted without writing to DB",
        )

    def handle(self, *args, **options):
        as_of = _parse_date(options.get("as_of"))
        dry_run = bool(options.get("dry_run"))

        if options.get("as_of") and not as_of:
            raise CommandError("Invalid --as-of date. Use YYYY-MM-DD")

        now = None
        if as_of:
            now = timezone.make_aware(
                datetime.combine(as_of, time(12, 0)),
                timezone.get_current_timezone(),
            )

        result = sweep_overdue(now=now, dry_run=dry_run)

        label = "Would promote" if dry_run else "Promoted"
        for number in result.transitioned:
            self.stdout.write(f"{label}: {number}")

        for failure in result.failures:
            self.stderr.write(
                self.style.ERROR(f"Failed: {failure.number} ({failure.error})")
            )

        summary = f"{label} {result.count} obligation(s) as of {result.as_of}"
        if result.failures:
            self.stdout.write(
                self.style.WARNING(f"{summary}; {len(result.failures)} failure(s)")
            )
        else:
            self.stdout.write(self.style.SUCCESS(summary))
