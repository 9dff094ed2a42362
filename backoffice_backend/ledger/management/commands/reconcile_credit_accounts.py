# ledger/management/commands/reconcile_credit_accounts.py

from __future__ import annotations

import uuid

from django.core.management.base import BaseCommand, CommandError

from ledger.models import CreditAccount
from ledger.services.credit_account_service import reconcile_balance


def _parse_uuid(s: str | None):
    if not s:
        return None
    try:
        return uuid.UUID(str(s).strip())
    except ValueError:
        return None


class Command(BaseCommand):
    help = (
        "Recompute credit account balances from open obligations "
        "and fix any drift."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--account",
            dest="account_id",
            help="Only reconcile this account id (optional)",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Report drift without writing to DB",
        )

    def handle(self, *args, **options):
        dry_run = bool(options.get("dry_run"))
        raw_account = options.get("account_id")
        account_id = _parse_uuid(raw_account)
        if raw_account and account_id is None:
            raise CommandError("Invalid --account. Expected a credit account UUID.")

        qs = CreditAccount.objects.order_by("display_name")
        if account_id:
            qs = qs.filter(id=account_id)
            if not qs.exists():
                raise CommandError(f"Credit account {account_id} not found.")

        checked = drifted = fixed = blocked = 0
        for account_pk in qs.values_list("id", flat=True):
            result = reconcile_balance(account_id=account_pk, dry_run=dry_run)
            checked += 1

            if not result.drift:
                continue

            drifted += 1
            line = (
                f"{result.account_id}: stored={result.stored_balance} "
                f"computed={result.computed_balance} drift={result.drift}"
            )
            if not result.within_limit:
                blocked += 1
                self.stderr.write(self.style.ERROR(f"{line} (exceeds limit, left unchanged)"))
            elif result.applied:
                fixed += 1
                self.stdout.write(self.style.WARNING(f"{line} (fixed)"))
            else:
                self.stdout.write(f"{line} (dry run)")

        self.stdout.write(
            self.style.SUCCESS(
                f"Checked {checked} account(s): {drifted} drifted, "
                f"{fixed} fixed, {blocked} over limit"
            )
        )
