# ledger/services/reporting_service.py

"""
LEDGER REPORTING SERVICE

Read-only aggregation over obligations, settlements and credit accounts.

RULES:
- READ-ONLY: no writes, ever
- Money is returned as JSON-safe strings with 2 decimal places
- Remaining amounts are computed in SQL (total_amount - amount_settled),
  never read from a stored column

ISOLATION:
- Runs under the database default (READ COMMITTED on Postgres).
- Each figure block comes from ONE aggregate statement, so it is internally
  consistent. Separate blocks in one report (e.g. summary vs. by-status)
  may observe writes committed between statements: eventual consistency,
  not a point-in-time snapshot.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from django.db.models import Count, DecimalField, F, Max, Q, Sum, Value
from django.db.models.functions import (
    Coalesce,
    TruncDay,
    TruncMonth,
    TruncWeek,
    TruncYear,
)
from django.utils import timezone

from ledger.models import CreditAccount, Obligation, Settlement
from ledger.services.directory import get_directory
from ledger.services.exceptions import LedgerValidationError

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")

MONEY = DecimalField(max_digits=16, decimal_places=2)

REMAINING = F("total_amount") - F("amount_settled")

GROUPINGS = {
    "day": TruncDay,
    "week": TruncWeek,
    "month": TruncMonth,
    "year": TruncYear,
}

AGING_BUCKETS = ("current", "1_30", "31_60", "61_90", "90_plus")


def _q2(v) -> str:
    return str(Decimal(str(v or "0.00")).quantize(TWOPLACES, rounding=ROUND_HALF_UP))


def _sum(expr, *, filter=None):
    return Coalesce(
        Sum(expr, filter=filter, output_field=MONEY),
        Value(ZERO),
        output_field=MONEY,
    )


def _overdue_q(today: date) -> Q:
    return Q(status=Obligation.STATUS_OVERDUE) | Q(
        status__in=[Obligation.STATUS_PENDING, Obligation.STATUS_PARTIAL],
        due_date__lt=today,
    )


def _open_q() -> Q:
    return Q(status__in=Obligation.OPEN_STATUSES)


def _obligations(*, kind=None, date_from=None, date_to=None):
    qs = Obligation.objects.all()
    if kind:
        qs = qs.filter(kind=kind)
    if date_from:
        qs = qs.filter(created_at__date__gte=date_from)
    if date_to:
        qs = qs.filter(created_at__date__lte=date_to)
    return qs


# ============================================================
# STATISTICS
# ============================================================


def get_ledger_statistics(
    *,
    kind: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    now: datetime | None = None,
) -> dict:
    today = timezone.localdate(now)
    qs = _obligations(kind=kind, date_from=date_from, date_to=date_to)

    not_cancelled = ~Q(status=Obligation.STATUS_CANCELLED)
    aggregates = {
        "total_count": Count("id"),
        "invoiced": _sum("total_amount", filter=not_cancelled),
        "collected": _sum("amount_settled"),
        "outstanding": _sum(REMAINING, filter=_open_q()),
        "overdue_count": Count("id", filter=_overdue_q(today)),
        "overdue_amount": _sum(REMAINING, filter=_overdue_q(today)),
    }
    for status, _ in Obligation.STATUS_CHOICES:
        aggregates[f"status_{status}_count"] = Count("id", filter=Q(status=status))
        aggregates[f"status_{status}_amount"] = _sum("total_amount", filter=Q(status=status))

    agg = qs.aggregate(**aggregates)

    return {
        "as_of": today.isoformat(),
        "kind": kind,
        "total_count": agg["total_count"],
        "total_invoiced": _q2(agg["invoiced"]),
        "total_collected": _q2(agg["collected"]),
        "total_outstanding": _q2(agg["outstanding"]),
        "overdue_count": agg["overdue_count"],
        "overdue_amount": _q2(agg["overdue_amount"]),
        "by_status": {
            status: {
                "count": agg[f"status_{status}_count"],
                "total_amount": _q2(agg[f"status_{status}_amount"]),
            }
            for status, _ in Obligation.STATUS_CHOICES
        },
    }


# ============================================================
# AGING
# ============================================================


def get_aging_report(*, as_of: date | None = None, kind: str | None = None) -> dict:
    """
    Open obligations bucketed by days past due as of `as_of`.

    current: no due date, or not yet past due
    1_30 / 31_60 / 61_90 / 90_plus: days past due
    """
    as_of = as_of or timezone.localdate()
    qs = _obligations(kind=kind).filter(_open_q())

    d30 = as_of - timedelta(days=30)
    d60 = as_of - timedelta(days=60)
    d90 = as_of - timedelta(days=90)

    buckets = {
        "current": Q(due_date__isnull=True) | Q(due_date__gte=as_of),
        "1_30": Q(due_date__lt=as_of, due_date__gte=d30),
        "31_60": Q(due_date__lt=d30, due_date__gte=d60),
        "61_90": Q(due_date__lt=d60, due_date__gte=d90),
        "90_plus": Q(due_date__lt=d90),
    }

    aggregates = {"total_count": Count("id"), "total_remaining": _sum(REMAINING)}
    for name, condition in buckets.items():
        aggregates[f"{name}_count"] = Count("id", filter=condition)
        aggregates[f"{name}_remaining"] = _sum(REMAINING, filter=condition)

    agg = qs.aggregate(**aggregates)

    return {
        "as_of": as_of.isoformat(),
        "kind": kind,
        "total_count": agg["total_count"],
        "total_remaining": _q2(agg["total_remaining"]),
        "buckets": [
            {
                "bucket": name,
                "count": agg[f"{name}_count"],
                "remaining": _q2(agg[f"{name}_remaining"]),
            }
            for name in AGING_BUCKETS
        ],
    }


# ============================================================
# REVENUE (COLLECTED SETTLEMENTS)
# ============================================================


def get_revenue_by_period(
    *,
    group_by: str = "month",
    date_from: date | None = None,
    date_to: date | None = None,
    kind: str | None = None,
) -> dict:
    trunc = GROUPINGS.get((group_by or "").lower())
    if trunc is None:
        raise LedgerValidationError(
            f"Invalid group_by: {group_by!r}. Use one of: {', '.join(GROUPINGS)}"
        )

    qs = Settlement.objects.all()
    if kind:
        qs = qs.filter(obligation__kind=kind)
    if date_from:
        qs = qs.filter(settled_at__date__gte=date_from)
    if date_to:
        qs = qs.filter(settled_at__date__lte=date_to)

    rows = (
        qs.annotate(period=trunc("settled_at"))
        .values("period")
        .annotate(total=_sum("amount"), count=Count("id"))
        .order_by("period")
    )

    periods = []
    grand_total = ZERO
    for row in rows:
        period = row["period"]
        if isinstance(period, datetime):
            period = timezone.localtime(period).date() if timezone.is_aware(period) else period.date()
        periods.append(
            {
                "period": period.isoformat(),
                "total": _q2(row["total"]),
                "count": row["count"],
            }
        )
        grand_total += Decimal(str(row["total"] or "0.00"))

    return {
        "group_by": group_by.lower(),
        "kind": kind,
        "date_from": date_from.isoformat() if date_from else None,
        "date_to": date_to.isoformat() if date_to else None,
        "total": _q2(grand_total),
        "periods": periods,
    }


# ============================================================
# ACCOUNT STANDINGS
# ============================================================


def get_account_standings(
    *,
    holder_kind: str | None = None,
    status: str | None = None,
) -> list[dict]:
    qs = CreditAccount.objects.annotate(
        open_obligations=Count(
            "obligations",
            filter=Q(obligations__status__in=Obligation.OPEN_STATUSES),
        )
    )
    if holder_kind:
        qs = qs.filter(holder_kind=holder_kind)
    if status:
        qs = qs.filter(status=status)

    return [
        {
            "account_id": str(acc.id),
            "display_name": acc.display_name,
            "holder_kind": acc.holder_kind,
            "status": acc.status,
            "balance": _q2(acc.current_balance),
            "limit": _q2(acc.credit_limit),
            "available": _q2(acc.available_credit),
            "open_obligations": acc.open_obligations,
        }
        for acc in qs.order_by("display_name")
    ]


# ============================================================
# COUNTERPARTY SUMMARY
# ============================================================


def get_counterparty_summary(*, counterparty_ref: str, now: datetime | None = None) -> dict:
    ref = (counterparty_ref or "").strip()
    today = timezone.localdate(now)
    qs = Obligation.objects.filter(counterparty_ref=ref)

    agg = qs.aggregate(
        obligation_count=Count("id"),
        open_count=Count("id", filter=_open_q()),
        settled_count=Count("id", filter=Q(status=Obligation.STATUS_SETTLED)),
        total_sum=_sum("total_amount", filter=~Q(status=Obligation.STATUS_CANCELLED)),
        settled_sum=_sum("amount_settled"),
        outstanding=_sum(REMAINING, filter=_open_q()),
        overdue_count=Count("id", filter=_overdue_q(today)),
    )
    last_settlement = Settlement.objects.filter(
        obligation__counterparty_ref=ref
    ).aggregate(last=Max("settled_at"))["last"]

    return {
        "counterparty": get_directory().get_display_info(ref),
        "obligation_count": agg["obligation_count"],
        "open_count": agg["open_count"],
        "settled_count": agg["settled_count"],
        "overdue_count": agg["overdue_count"],
        "total_amount": _q2(agg["total_sum"]),
        "amount_settled": _q2(agg["settled_sum"]),
        "outstanding": _q2(agg["outstanding"]),
        "last_settlement_at": last_settlement.isoformat() if last_settlement else None,
    }
