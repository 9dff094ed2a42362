# ledger/services/obligation_service.py

"""
OBLIGATION SERVICE (DOMAIN-CONTROLLED)

Purpose:
- Create obligations (invoice / customer debt / trader charge)
- Edit line items before the first settlement
- Cancel obligations without settlement history
- Read-only lookups + document snapshot

GUARANTEES:
- Every write runs in ONE transaction
- The obligation row is locked (select_for_update) before mutation
- Account-backed obligations charge the credit account BEFORE numbering;
  a rejected charge leaves nothing behind (no row, no number, no balance)
- Lock order: obligation -> credit account -> number sequence

FLOW (create):
1. Validate kind, counterparty, amounts, account compatibility
2. Charge credit account (if any)
3. Assign number (atomic sequence)
4. Insert obligation + line items
5. Queue "created" notification (on commit)
"""

from __future__ import annotations

import logging
from datetime import date, datetime

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Q, QuerySet
from django.utils import timezone

from ledger.conf import ledger_setting
from ledger.kinds import get_policy, is_known_kind
from ledger.models import Obligation, ObligationLineItem, Settlement
from ledger.services import credit_account_service
from ledger.services.directory import REF_ACCOUNT, get_directory
from ledger.services.exceptions import (
    CounterpartyNotFound,
    HasSettlements,
    InvalidAmount,
    LedgerValidationError,
    NotFound,
    ObligationLocked,
)
from ledger.services.money import ZERO, to_money
from ledger.services.notifications import EVENT_CREATED, notify_on_commit
from ledger.services.obligation_lifecycle import validate_transition
from ledger.services.sequence_service import next_number

logger = logging.getLogger("ledger")

_UNSET = object()

EDITABLE_DETAIL_STATES = {
    Obligation.STATUS_PENDING,
    Obligation.STATUS_PARTIAL,
}


# ============================================================
# HELPERS
# ============================================================


def _get(obligation_id, *, lock: bool = False) -> Obligation:
    qs = Obligation.objects.select_for_update() if lock else Obligation.objects
    try:
        return qs.get(id=obligation_id)
    except (Obligation.DoesNotExist, ValidationError, ValueError) as exc:
        logger.error("Obligation not found", extra={"obligation_id": str(obligation_id)})
        raise NotFound(f"Obligation {obligation_id} not found") from exc


def _normalize_items(items) -> list[dict]:
    if not items:
        raise LedgerValidationError("At least one line item is required")

    normalized = []
    for idx, raw in enumerate(items, start=1):
        description = (raw.get("description") or "").strip()
        if not description:
            raise LedgerValidationError(f"Line {idx}: description is required")

        try:
            quantity = int(raw.get("quantity", 1))
        except (TypeError, ValueError) as exc:
            raise InvalidAmount(f"Line {idx}: quantity must be a whole number") from exc
        if quantity <= 0:
            raise InvalidAmount(f"Line {idx}: quantity must be > 0")

        unit_price = to_money(raw.get("unit_price"))
        discount_amount = to_money(raw.get("discount_amount"))
        tax_amount = to_money(raw.get("tax_amount"))

        if unit_price < ZERO or discount_amount < ZERO or tax_amount < ZERO:
            raise InvalidAmount(f"Line {idx}: amounts cannot be negative")

        line_total = to_money(quantity * unit_price - discount_amount + tax_amount)
        if line_total < ZERO:
            raise InvalidAmount(f"Line {idx}: discount exceeds the line amount")

        normalized.append(
            {
                "description": description,
                "product_ref": (raw.get("product_ref") or "").strip(),
                "quantity": quantity,
                "unit_price": unit_price,
                "discount_amount": discount_amount,
                "tax_amount": tax_amount,
                "line_total": line_total,
            }
        )
    return normalized


def _items_total(normalized: list[dict]):
    return to_money(sum((line["line_total"] for line in normalized), ZERO))


def _write_items(obligation: Obligation, normalized: list[dict]) -> None:
    for position, line in enumerate(normalized):
        ObligationLineItem.objects.create(
            obligation=obligation,
            position=position,
            description=line["description"],
            product_ref=line["product_ref"],
            quantity=line["quantity"],
            unit_price=line["unit_price"],
            discount_amount=line["discount_amount"],
            tax_amount=line["tax_amount"],
        )


def _resolve_currency(currency) -> str:
    code = (currency or ledger_setting("DEFAULT_CURRENCY") or "").strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise LedgerValidationError(f"Invalid currency code: {currency!r}")
    return code


# ============================================================
# CREATE
# ============================================================


@transaction.atomic
def create_obligation(
    *,
    kind: str,
    counterparty_ref: str = "",
    total_amount=None,
    due_date: date | None = None,
    account_id=None,
    items=None,
    currency: str | None = None,
    counterparty_name: str = "",
    counterparty_phone: str = "",
    billing_address: str = "",
    notes: str = "",
    created_by=None,
    now: datetime | None = None,
) -> Obligation:
    if not is_known_kind(kind):
        raise LedgerValidationError(f"Unknown obligation kind: {kind}")
    policy = get_policy(kind)

    ref = (counterparty_ref or "").strip()
    if not ref and account_id:
        ref = f"{REF_ACCOUNT}:{account_id}"

    if not ref or not get_directory().exists(ref):
        logger.error(
            "Counterparty not found during obligation creation",
            extra={"kind": kind, "counterparty_ref": ref},
        )
        raise CounterpartyNotFound(f"Counterparty {ref or '(empty)'} not found")

    normalized = _normalize_items(items) if items else []
    if normalized:
        total = _items_total(normalized)
        if total_amount is not None and to_money(total_amount) != total:
            raise LedgerValidationError(
                f"total_amount {to_money(total_amount)} does not match line items ({total})"
            )
    else:
        if total_amount is None:
            raise InvalidAmount("total_amount is required when no line items are given")
        total = to_money(total_amount)

    if total <= ZERO:
        raise InvalidAmount("Obligation total must be > 0")

    if billing_address and not policy.allows_billing_address:
        raise LedgerValidationError(f"billing_address does not apply to {kind}")

    code = _resolve_currency(currency)
    created_at = now or timezone.now()

    account = None
    if account_id:
        account = credit_account_service.get_account(account_id)
        if account.holder_kind not in policy.account_holders:
            raise LedgerValidationError(
                f"{kind} cannot be charged to a {account.holder_kind} account"
            )
        account = credit_account_service.charge(account_id=account.id, amount=total)

    number = next_number(kind=kind, now=created_at)

    obligation = Obligation.objects.create(
        number=number,
        kind=kind,
        counterparty_ref=ref,
        counterparty_name=(counterparty_name or "").strip(),
        counterparty_phone=(counterparty_phone or "").strip(),
        billing_address=billing_address or "",
        notes=notes or "",
        credit_account=account,
        total_amount=total,
        amount_settled=ZERO,
        currency=code,
        status=Obligation.STATUS_PENDING,
        due_date=due_date,
        created_by=created_by,
        created_at=created_at,
    )
    if normalized:
        _write_items(obligation, normalized)

    logger.info(
        "Obligation created",
        extra={
            "obligation_id": str(obligation.id),
            "obligation_number": number,
            "kind": kind,
            "total": str(total),
            "account_id": str(account.id) if account else None,
        },
    )

    notify_on_commit(event=EVENT_CREATED, obligation=obligation)
    return obligation


# ============================================================
# EDIT
# ============================================================


@transaction.atomic
def update_line_items(*, obligation_id, items) -> Obligation:
    """
    Replace all line items and re-derive total_amount.

    Allowed only while pending with nothing settled.
    Account-backed obligations charge the increase / release the decrease.
    """
    obligation = _get(obligation_id, lock=True)

    if (
        obligation.status != Obligation.STATUS_PENDING
        or obligation.amount_settled != ZERO
        or obligation.settlements.exists()
    ):
        logger.warning(
            "Line item edit rejected: obligation locked",
            extra={"obligation_number": obligation.number, "status": obligation.status},
        )
        raise ObligationLocked(
            f"Obligation {obligation.number} can no longer be edited "
            f"(status={obligation.status})"
        )

    normalized = _normalize_items(items)
    new_total = _items_total(normalized)
    if new_total <= ZERO:
        raise InvalidAmount("Obligation total must be > 0")

    delta = new_total - obligation.total_amount
    if obligation.credit_account_id:
        if delta > ZERO:
            credit_account_service.charge(account_id=obligation.credit_account_id, amount=delta)
        elif delta < ZERO:
            credit_account_service.release(account_id=obligation.credit_account_id, amount=-delta)

    obligation.items.all().delete()
    _write_items(obligation, normalized)

    obligation.total_amount = new_total
    obligation.save(update_fields=["total_amount", "updated_at"])

    logger.info(
        "Obligation line items updated",
        extra={
            "obligation_number": obligation.number,
            "total": str(new_total),
            "delta": str(delta),
        },
    )
    return obligation


@transaction.atomic
def update_obligation_details(
    *,
    obligation_id,
    due_date=_UNSET,
    notes=_UNSET,
) -> Obligation:
    obligation = _get(obligation_id, lock=True)

    if obligation.status not in EDITABLE_DETAIL_STATES:
        raise ObligationLocked(
            f"Obligation {obligation.number} details are locked (status={obligation.status})"
        )

    fields = []
    if due_date is not _UNSET:
        obligation.due_date = due_date
        fields.append("due_date")
    if notes is not _UNSET:
        obligation.notes = notes or ""
        fields.append("notes")

    if fields:
        obligation.save(update_fields=[*fields, "updated_at"])
        logger.info(
            "Obligation details updated",
            extra={"obligation_number": obligation.number, "fields": fields},
        )
    return obligation


# ============================================================
# CANCEL
# ============================================================


@transaction.atomic
def cancel_obligation(*, obligation_id, now: datetime | None = None) -> Obligation:
    obligation = _get(obligation_id, lock=True)

    if obligation.settlements.exists():
        logger.warning(
            "Cancel rejected: obligation has settlements",
            extra={"obligation_number": obligation.number},
        )
        raise HasSettlements(
            f"Obligation {obligation.number} has settlements and cannot be cancelled"
        )

    validate_transition(obligation=obligation, target_status=Obligation.STATUS_CANCELLED)

    remaining = obligation.remaining_amount
    if obligation.credit_account_id and remaining > ZERO:
        credit_account_service.release(
            account_id=obligation.credit_account_id,
            amount=remaining,
        )

    obligation.status = Obligation.STATUS_CANCELLED
    obligation.cancelled_at = now or timezone.now()
    obligation.save(update_fields=["status", "cancelled_at", "updated_at"])

    logger.info(
        "Obligation cancelled",
        extra={"obligation_number": obligation.number, "released": str(remaining)},
    )
    return obligation


# ============================================================
# READS
# ============================================================


def get_obligation(*, obligation_id) -> Obligation:
    return _get(obligation_id)


def list_by_counterparty(
    *,
    counterparty_ref: str,
    status: str | None = None,
    kind: str | None = None,
) -> QuerySet:
    qs = Obligation.objects.filter(counterparty_ref=(counterparty_ref or "").strip())
    if status:
        qs = qs.filter(status=status)
    if kind:
        qs = qs.filter(kind=kind)
    return qs.select_related("credit_account").order_by("-created_at")


def list_overdue(*, now: datetime | None = None, kind: str | None = None) -> QuerySet:
    """
    Already-overdue rows plus open rows past due that the sweep
    has not promoted yet.
    """
    today = timezone.localdate(now)
    qs = Obligation.objects.filter(
        Q(status=Obligation.STATUS_OVERDUE)
        | Q(
            status__in=[Obligation.STATUS_PENDING, Obligation.STATUS_PARTIAL],
            due_date__lt=today,
        )
    )
    if kind:
        qs = qs.filter(kind=kind)
    return qs.select_related("credit_account").order_by("due_date", "number")


def list_settlements(*, obligation_id) -> QuerySet:
    obligation = _get(obligation_id)
    return Settlement.objects.filter(obligation=obligation).order_by(
        "settled_at", "created_at"
    )


def build_document_snapshot(*, obligation_id) -> dict:
    """
    Read-only snapshot consumed by document rendering (PDF etc.).
    """
    obligation = _get(obligation_id)
    info = get_directory().get_display_info(obligation.counterparty_ref)

    return {
        "id": str(obligation.id),
        "number": obligation.number,
        "kind": obligation.kind,
        "kind_label": obligation.get_kind_display(),
        "status": obligation.status,
        "currency": obligation.currency,
        "counterparty": {
            "ref": obligation.counterparty_ref,
            "name": obligation.counterparty_name or info.get("name", ""),
            "phone": obligation.counterparty_phone or info.get("phone", ""),
            "email": info.get("email", ""),
            "billing_address": obligation.billing_address,
        },
        "created_at": obligation.created_at.isoformat(),
        "due_date": obligation.due_date.isoformat() if obligation.due_date else None,
        "settled_at": obligation.settled_at.isoformat() if obligation.settled_at else None,
        "items": [
            {
                "description": it.description,
                "product_ref": it.product_ref,
                "quantity": it.quantity,
                "unit_price": str(it.unit_price),
                "discount_amount": str(it.discount_amount),
                "tax_amount": str(it.tax_amount),
                "line_total": str(it.line_total),
            }
            for it in obligation.items.all()
        ],
        "settlements": [
            {
                "amount": str(s.amount),
                "method": s.method,
                "reference_number": s.reference_number,
                "settled_at": s.settled_at.isoformat(),
            }
            for s in obligation.settlements.order_by("settled_at", "created_at")
        ],
        "totals": {
            "total_amount": str(obligation.total_amount),
            "amount_settled": str(obligation.amount_settled),
            "remaining_amount": str(obligation.remaining_amount),
        },
        "notes": obligation.notes,
    }
