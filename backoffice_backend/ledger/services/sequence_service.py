# ledger/services/sequence_service.py

"""
SEQUENCE SERVICE (ATOMIC NUMBERING)

Produces human-readable obligation numbers:

    {PREFIX}-{PERIOD}-{ZERO PADDED SEQUENCE}
    INV-202610-00001   (invoices, monthly scope)
    DBT-2026-00001     (customer debts, yearly scope)
    TRD-2026-00001     (trader charges, yearly scope)

GUARANTEES:
- One counter row per (kind, period)
- Increment is a single UPDATE ... SET last_value = last_value + 1
  (the row stays locked until the surrounding transaction ends)
- No two callers ever receive the same number
- Called inside the caller's transaction: a rolled-back creation rolls back
  its number too, so sequential use leaves no gaps
- Overflowing the padded width raises SequenceExhausted and rolls back
"""

from __future__ import annotations

import logging
from datetime import datetime

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from ledger.conf import ledger_setting
from ledger.kinds import get_policy, is_known_kind, period_key_for
from ledger.models import NumberSequence
from ledger.services.exceptions import LedgerValidationError, SequenceExhausted

logger = logging.getLogger(__name__)


def _bump(*, key: str, period: str) -> int:
    return NumberSequence.objects.filter(key=key, period=period).update(
        last_value=F("last_value") + 1,
        updated_at=timezone.now(),
    )


def next_sequence_value(*, key: str, period: str) -> int:
    """
    Atomically increment and return the counter for (key, period).
    First call for a new period returns 1.
    """
    with transaction.atomic():
        if not _bump(key=key, period=period):
            try:
                with transaction.atomic():
                    NumberSequence.objects.create(key=key, period=period, last_value=1)
                return 1
            except IntegrityError:
                # Another caller created the row first; its insert is now visible.
                _bump(key=key, period=period)

        return (
            NumberSequence.objects.filter(key=key, period=period)
            .values_list("last_value", flat=True)
            .get()
        )


def next_number(*, kind: str, period_key: str | None = None, now: datetime | None = None) -> str:
    if not is_known_kind(kind):
        raise LedgerValidationError(f"Unknown obligation kind: {kind}")

    policy = get_policy(kind)
    period = period_key or period_key_for(kind, timezone.localdate(now))
    width = int(ledger_setting("NUMBER_WIDTH"))

    with transaction.atomic():
        value = next_sequence_value(key=kind, period=period)

        if value >= 10**width:
            logger.error(
                "Numbering sequence exhausted",
                extra={"kind": kind, "period": period, "value": value, "width": width},
            )
            raise SequenceExhausted(
                f"Sequence {policy.prefix}-{period} exceeded {width} digits."
            )

    return f"{policy.prefix}-{period}-{value:0{width}d}"
