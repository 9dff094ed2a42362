# ledger/services/overdue_sweeper.py

"""
OVERDUE SWEEPER (BATCH)

Promotes open obligations past their due date to overdue.

RULES:
- Candidates: status in {pending, partial} AND due_date < today (local date of `now`)
- Each row is handled in its own transaction (lock -> re-check -> write)
- A failure on one row is logged + collected; the sweep continues
- Idempotent: a second run with no intervening writes transitions nothing
- Never touches settled / cancelled / already-overdue rows
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.utils import timezone

from ledger.models import Obligation
from ledger.services.exceptions import LedgerServiceError
from ledger.services.notifications import EVENT_OVERDUE, notify_on_commit
from ledger.services.obligation_lifecycle import SWEEPABLE_STATES, validate_transition

logger = logging.getLogger("ledger.sweeper")


@dataclass
class SweepFailure:
    obligation_id: str
    number: str
    error: str


@dataclass
class SweepResult:
    as_of: str
    dry_run: bool = False
    transitioned: list[str] = field(default_factory=list)
    failures: list[SweepFailure] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.transitioned)

    def as_dict(self) -> dict:
        return {
            "as_of": self.as_of,
            "dry_run": self.dry_run,
            "count": self.count,
            "transitioned": list(self.transitioned),
            "failures": [
                {"obligation_id": f.obligation_id, "number": f.number, "error": f.error}
                for f in self.failures
            ],
        }


def _candidates(today):
    return (
        Obligation.objects.filter(status__in=SWEEPABLE_STATES, due_date__lt=today)
        .order_by("due_date", "number")
        .values_list("id", "number")
    )


def _promote(*, obligation_id, today) -> bool:
    with transaction.atomic():
        obligation = Obligation.objects.select_for_update().get(id=obligation_id)

        # Re-check under lock: a settlement may have landed since the scan.
        if obligation.status not in SWEEPABLE_STATES:
            return False
        if not obligation.due_date or obligation.due_date >= today:
            return False

        validate_transition(obligation=obligation, target_status=Obligation.STATUS_OVERDUE)

        obligation.status = Obligation.STATUS_OVERDUE
        obligation.save(update_fields=["status", "updated_at"])
        notify_on_commit(event=EVENT_OVERDUE, obligation=obligation)
        return True


def sweep_overdue(*, now: datetime | None = None, dry_run: bool = False) -> SweepResult:
    today = timezone.localdate(now)
    result = SweepResult(as_of=today.isoformat(), dry_run=dry_run)

    for obligation_id, number in list(_candidates(today)):
        if dry_run:
            result.transitioned.append(number)
            continue

        try:
            if _promote(obligation_id=obligation_id, today=today):
                result.transitioned.append(number)
        except (
            DatabaseError,
            LedgerServiceError,
            ValidationError,
            Obligation.DoesNotExist,
        ) as exc:
            logger.exception(
                "Overdue sweep failed for obligation",
                extra={"obligation_id": str(obligation_id), "obligation_number": number},
            )
            result.failures.append(
                SweepFailure(obligation_id=str(obligation_id), number=number, error=str(exc))
            )

    logger.info(
        "Overdue sweep finished",
        extra={
            "as_of": result.as_of,
            "count": result.count,
            "failures": len(result.failures),
            "dry_run": dry_run,
        },
    )
    return result
