# ledger/services/credit_account_service.py

"""
CREDIT ACCOUNT SERVICE (DOMAIN-CONTROLLED)

Purpose:
- Authorize and apply charges against a credit limit
- Release charged balance as obligations are settled or cancelled
- Expose standing (balance / limit / available)
- Reconcile the stored balance against open obligations

GUARANTEES:
- The account row is locked (select_for_update) for every write
- Balance moves via single-statement conditional UPDATEs:
    charge:  WHERE current_balance <= credit_limit - amount
    release: WHERE current_balance >= amount
- A rejected charge never mutates state
- A release never drives the balance negative (clamped to 0 and logged)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import DecimalField, F, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from ledger.kinds import HOLDER_CHOICES, HOLDER_CUSTOMER
from ledger.models import CreditAccount, Obligation
from ledger.services.exceptions import (
    AccountInactive,
    CreditLimitExceeded,
    InvalidAmount,
    LedgerValidationError,
    NotFound,
)
from ledger.services.money import ZERO, require_positive_amount, to_money

logger = logging.getLogger("ledger")

HOLDER_KINDS = {value for value, _ in HOLDER_CHOICES}
ACCOUNT_STATUSES = {value for value, _ in CreditAccount.STATUS_CHOICES}


@dataclass(frozen=True)
class AccountStanding:
    account_id: str
    balance: Decimal
    limit: Decimal
    available: Decimal
    status: str


@dataclass(frozen=True)
class ReconcileResult:
    account_id: str
    stored_balance: Decimal
    computed_balance: Decimal
    applied: bool
    within_limit: bool

    @property
    def drift(self) -> Decimal:
        return self.computed_balance - self.stored_balance


# ============================================================
# LOOKUPS
# ============================================================


def get_account(account_id, *, lock: bool = False) -> CreditAccount:
    qs = CreditAccount.objects.select_for_update() if lock else CreditAccount.objects
    try:
        return qs.get(id=account_id)
    except (CreditAccount.DoesNotExist, ValidationError, ValueError) as exc:
        logger.error("Credit account not found", extra={"account_id": str(account_id)})
        raise NotFound(f"Credit account {account_id} not found") from exc


def _standing(account: CreditAccount) -> AccountStanding:
    return AccountStanding(
        account_id=str(account.id),
        balance=account.current_balance,
        limit=account.credit_limit,
        available=account.available_credit,
        status=account.status,
    )


# ============================================================
# CHARGE / RELEASE
# ============================================================


@transaction.atomic
def charge(*, account_id, amount) -> CreditAccount:
    amt = require_positive_amount(amount)
    account = get_account(account_id, lock=True)

    if not account.is_active:
        logger.warning(
            "Charge rejected: account inactive",
            extra={"account_id": str(account.id), "amount": str(amt)},
        )
        raise AccountInactive(f"Credit account {account.display_name} is inactive")

    updated = CreditAccount.objects.filter(
        pk=account.pk,
        current_balance__lte=F("credit_limit") - amt,
    ).update(
        current_balance=F("current_balance") + amt,
        updated_at=timezone.now(),
    )

    if not updated:
        logger.warning(
            "Charge rejected: credit limit exceeded",
            extra={
                "account_id": str(account.id),
                "amount": str(amt),
                "balance": str(account.current_balance),
                "limit": str(account.credit_limit),
            },
        )
        raise CreditLimitExceeded(
            f"Charge of {amt} exceeds available credit "
            f"{account.available_credit} on account {account.display_name}"
        )

    account.refresh_from_db()
    logger.info(
        "Credit account charged",
        extra={
            "account_id": str(account.id),
            "amount": str(amt),
            "balance": str(account.current_balance),
        },
    )
    return account


@transaction.atomic
def release(*, account_id, amount) -> CreditAccount:
    amt = require_positive_amount(amount)
    account = get_account(account_id, lock=True)
    now = timezone.now()

    updated = CreditAccount.objects.filter(
        pk=account.pk,
        current_balance__gte=amt,
    ).update(
        current_balance=F("current_balance") - amt,
        updated_at=now,
    )

    if not updated:
        logger.warning(
            "Release exceeds balance; clamping to zero",
            extra={
                "account_id": str(account.id),
                "amount": str(amt),
                "balance": str(account.current_balance),
            },
        )
        CreditAccount.objects.filter(pk=account.pk).update(
            current_balance=ZERO,
            updated_at=now,
        )

    account.refresh_from_db()
    logger.info(
        "Credit account released",
        extra={
            "account_id": str(account.id),
            "amount": str(amt),
            "balance": str(account.current_balance),
        },
    )
    return account


def get_standing(*, account_id) -> AccountStanding:
    return _standing(get_account(account_id))


# ============================================================
# ADMINISTRATION
# ============================================================


def open_credit_account(
    *,
    display_name: str,
    credit_limit,
    holder_kind: str = HOLDER_CUSTOMER,
    holder_ref: str = "",
    contact_phone: str = "",
    contact_email: str = "",
    notes: str = "",
) -> CreditAccount:
    limit = to_money(credit_limit)
    if limit < ZERO:
        raise InvalidAmount("Credit limit cannot be negative")

    if holder_kind not in HOLDER_KINDS:
        raise LedgerValidationError(f"Unknown holder kind: {holder_kind}")

    if not (display_name or "").strip():
        raise LedgerValidationError("display_name is required")

    try:
        account = CreditAccount.objects.create(
            display_name=display_name,
            credit_limit=limit,
            holder_kind=holder_kind,
            holder_ref=(holder_ref or "").strip(),
            contact_phone=contact_phone or "",
            contact_email=contact_email or "",
            notes=notes or "",
        )
    except ValidationError as exc:
        raise LedgerValidationError("; ".join(exc.messages)) from exc

    logger.info(
        "Credit account opened",
        extra={"account_id": str(account.id), "limit": str(limit)},
    )
    return account


@transaction.atomic
def update_credit_limit(*, account_id, credit_limit) -> CreditAccount:
    limit = to_money(credit_limit)
    if limit < ZERO:
        raise InvalidAmount("Credit limit cannot be negative")

    account = get_account(account_id, lock=True)

    if limit < account.current_balance:
        logger.warning(
            "Credit limit change rejected: below balance",
            extra={
                "account_id": str(account.id),
                "limit": str(limit),
                "balance": str(account.current_balance),
            },
        )
        raise CreditLimitExceeded(
            f"New limit {limit} is below the current balance {account.current_balance}"
        )

    account.credit_limit = limit
    account.save(update_fields=["credit_limit", "updated_at"])

    logger.info(
        "Credit limit updated",
        extra={"account_id": str(account.id), "limit": str(limit)},
    )
    return account


@transaction.atomic
def set_account_status(*, account_id, status: str) -> CreditAccount:
    if status not in ACCOUNT_STATUSES:
        raise LedgerValidationError(f"Unknown account status: {status}")

    account = get_account(account_id, lock=True)
    if account.status != status:
        account.status = status
        account.save(update_fields=["status", "updated_at"])
        logger.info(
            "Credit account status changed",
            extra={"account_id": str(account.id), "status": status},
        )
    return account


# ============================================================
# RECONCILIATION
# ============================================================


def _open_remainder_total(account: CreditAccount) -> Decimal:
    money_field = DecimalField(max_digits=14, decimal_places=2)
    agg = Obligation.objects.filter(
        credit_account_id=account.pk,
        status__in=Obligation.OPEN_STATUSES,
    ).aggregate(
        total=Coalesce(
            Sum(F("total_amount") - F("amount_settled"), output_field=money_field),
            Value(ZERO),
            output_field=money_field,
        )
    )
    return to_money(agg["total"])


@transaction.atomic
def reconcile_balance(*, account_id, dry_run: bool = False) -> ReconcileResult:
    """
    Recompute current_balance as the sum of remaining amounts of the
    account's open obligations. Writes only when it differs, fits the
    limit and dry_run is off.
    """
    account = get_account(account_id, lock=True)
    stored = to_money(account.current_balance)
    computed = _open_remainder_total(account)
    within_limit = computed <= account.credit_limit

    applied = False
    if computed != stored:
        logger.warning(
            "Credit account balance drift detected",
            extra={
                "account_id": str(account.id),
                "stored": str(stored),
                "computed": str(computed),
                "dry_run": dry_run,
            },
        )

        if not within_limit:
            logger.error(
                "Reconciled balance exceeds credit limit; left unchanged",
                extra={
                    "account_id": str(account.id),
                    "computed": str(computed),
                    "limit": str(account.credit_limit),
                },
            )
        elif not dry_run:
            CreditAccount.objects.filter(pk=account.pk).update(
                current_balance=computed,
                updated_at=timezone.now(),
            )
            applied = True

    return ReconcileResult(
        account_id=str(account.id),
        stored_balance=stored,
        computed_balance=computed,
        applied=applied,
        within_limit=within_limit,
    )
