# ledger/services/settlement_service.py

"""
SETTLEMENT SERVICE (DOMAIN-CONTROLLED)

Purpose:
- Record a payment/credit against exactly one obligation
- Drive the obligation status machine
- Release the matching balance from the credit account (if any)

GUARANTEES:
- ONE transaction: settlement insert + aggregate recompute + status
  + account release commit together or not at all
- Obligation row locked before reading remaining_amount, so two concurrent
  settlements can never both spend the same remainder
- amount <= remaining_amount (oversettlement is rejected, never clamped)
- amount_settled is recomputed from the settlement rows, not incremented
- settled_at is stamped once, on transition to settled

FLOW:
1. Validate amount + method
2. Lock obligation
3. Reject cancelled / oversettled
4. Insert Settlement
5. Recompute amount_settled, status, settled_at
6. Release credit account balance
7. Queue "settled" notification (on commit)
"""

from __future__ import annotations

import logging
from datetime import datetime

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from ledger.models import Obligation, Settlement
from ledger.services import credit_account_service
from ledger.services.exceptions import (
    InvalidStatusTransition,
    LedgerValidationError,
    NotFound,
    OversettlementRejected,
)
from ledger.services.money import ZERO, require_positive_amount, to_money
from ledger.services.notifications import EVENT_SETTLED, notify_on_commit
from ledger.services.obligation_lifecycle import (
    status_after_settlement,
    validate_transition,
)

logger = logging.getLogger("ledger")


def _lock_obligation(obligation_id) -> Obligation:
    try:
        return Obligation.objects.select_for_update().get(id=obligation_id)
    except (Obligation.DoesNotExist, ValidationError, ValueError) as exc:
        logger.error(
            "Obligation not found during settlement",
            extra={"obligation_id": str(obligation_id)},
        )
        raise NotFound(f"Obligation {obligation_id} not found") from exc


@transaction.atomic
def record_settlement(
    *,
    obligation_id,
    amount,
    method: str = Settlement.METHOD_CASH,
    recorded_by=None,
    reference_number: str = "",
    notes: str = "",
    settled_at: datetime | None = None,
) -> Settlement:
    amt = require_positive_amount(amount)

    method = (method or "").strip().lower()
    if method not in Settlement.METHODS:
        raise LedgerValidationError(f"Unknown settlement method: {method or '(empty)'}")

    obligation = _lock_obligation(obligation_id)

    if obligation.status == Obligation.STATUS_CANCELLED:
        logger.warning(
            "Settlement rejected: obligation cancelled",
            extra={"obligation_number": obligation.number, "amount": str(amt)},
        )
        raise InvalidStatusTransition(
            f"Obligation {obligation.number} is cancelled and cannot be settled"
        )

    remaining = obligation.remaining_amount
    if amt > remaining:
        logger.warning(
            "Settlement rejected: exceeds remaining amount",
            extra={
                "obligation_number": obligation.number,
                "amount": str(amt),
                "remaining": str(remaining),
            },
        )
        raise OversettlementRejected(
            f"Settlement of {amt} exceeds remaining amount {remaining} "
            f"on {obligation.number}"
        )

    stamp = settled_at or timezone.now()

    settlement = Settlement.objects.create(
        obligation=obligation,
        amount=amt,
        method=method,
        recorded_by=recorded_by,
        reference_number=(reference_number or "").strip(),
        notes=notes or "",
        settled_at=stamp,
    )

    settled_total = to_money(
        obligation.settlements.aggregate(total=Sum("amount"))["total"] or ZERO
    )
    obligation.amount_settled = settled_total

    target = status_after_settlement(
        current_status=obligation.status,
        remaining=obligation.remaining_amount,
    )
    fields = ["amount_settled", "updated_at"]
    if target != obligation.status:
        validate_transition(obligation=obligation, target_status=target)
        obligation.status = target
        fields.append("status")
    if target == Obligation.STATUS_SETTLED and not obligation.settled_at:
        obligation.settled_at = stamp
        fields.append("settled_at")

    obligation.save(update_fields=fields)

    if obligation.credit_account_id:
        credit_account_service.release(
            account_id=obligation.credit_account_id,
            amount=amt,
        )

    logger.info(
        "Settlement recorded",
        extra={
            "settlement_id": str(settlement.id),
            "obligation_number": obligation.number,
            "amount": str(amt),
            "method": method,
            "status": obligation.status,
            "remaining": str(obligation.remaining_amount),
        },
    )

    if obligation.status == Obligation.STATUS_SETTLED:
        notify_on_commit(event=EVENT_SETTLED, obligation=obligation)

    return settlement
