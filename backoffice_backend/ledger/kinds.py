# ledger/kinds.py

"""
OBLIGATION KINDS (CLOSED VARIANT)

Every Obligation shares one shape. The kind selects:
- numbering scope (prefix + period granularity)
- which credit account holders it may be charged to
- which kind-specific extension fields are meaningful

RULES:
- The set of kinds is closed. Adding a kind means adding a policy here.
- No database access in this module.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

# ============================================================
# KINDS
# ============================================================

KIND_INVOICE = "invoice"
KIND_CUSTOMER_DEBT = "customer_debt"
KIND_TRADER_CHARGE = "trader_charge"

KIND_CHOICES = [
    (KIND_INVOICE, "Invoice"),
    (KIND_CUSTOMER_DEBT, "Customer debt"),
    (KIND_TRADER_CHARGE, "Trader charge"),
]

# ============================================================
# CREDIT ACCOUNT HOLDERS
# ============================================================

HOLDER_CUSTOMER = "customer"
HOLDER_TRADER = "trader"

HOLDER_CHOICES = [
    (HOLDER_CUSTOMER, "Customer"),
    (HOLDER_TRADER, "Trader"),
]

# ============================================================
# NUMBERING PERIODS
# ============================================================

PERIOD_YEAR = "year"
PERIOD_MONTH = "month"


@dataclass(frozen=True)
class KindPolicy:
    kind: str
    prefix: str
    period: str
    account_holders: frozenset
    allows_billing_address: bool = False


POLICIES = {
    KIND_INVOICE: KindPolicy(
        kind=KIND_INVOICE,
        prefix="INV",
        period=PERIOD_MONTH,
        account_holders=frozenset({HOLDER_CUSTOMER, HOLDER_TRADER}),
        allows_billing_address=True,
    ),
    KIND_CUSTOMER_DEBT: KindPolicy(
        kind=KIND_CUSTOMER_DEBT,
        prefix="DBT",
        period=PERIOD_YEAR,
        account_holders=frozenset({HOLDER_CUSTOMER}),
    ),
    KIND_TRADER_CHARGE: KindPolicy(
        kind=KIND_TRADER_CHARGE,
        prefix="TRD",
        period=PERIOD_YEAR,
        account_holders=frozenset({HOLDER_TRADER}),
    ),
}


def is_known_kind(kind) -> bool:
    return kind in POLICIES


def get_policy(kind: str) -> KindPolicy:
    try:
        return POLICIES[kind]
    except KeyError:
        raise KeyError(f"Unknown obligation kind: {kind!r}") from None


def period_key_for(kind: str, on: date) -> str:
    """
    "2026" for yearly scopes, "202610" for monthly scopes.
    """
    policy = get_policy(kind)
    if policy.period == PERIOD_MONTH:
        return f"{on.year:04d}{on.month:02d}"
    return f"{on.year:04d}"
