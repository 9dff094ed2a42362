"""
OBLIGATION LIFECYCLE DOMAIN RULES

This module defines the ONLY allowed status transitions
for Obligation entities.

DESIGN PRINCIPLES:
- No database writes
- No side effects
- Single source of truth

GRAPH:
    pending -> partial | settled | overdue | cancelled
    partial -> settled | overdue | cancelled
    overdue -> settled | overdue   (partial payment while overdue)

settled and cancelled are terminal.
"""

from decimal import Decimal

from ledger.models import Obligation
from ledger.services.exceptions import InvalidStatusTransition

# ============================================================
# STATE DEFINITIONS
# ============================================================

TERMINAL_STATES = {
    Obligation.STATUS_SETTLED,
    Obligation.STATUS_CANCELLED,
}

ALLOWED_TRANSITIONS = {
    Obligation.STATUS_PENDING: {
        Obligation.STATUS_PARTIAL,
        Obligation.STATUS_SETTLED,
        Obligation.STATUS_OVERDUE,
        Obligation.STATUS_CANCELLED,
    },
    Obligation.STATUS_PARTIAL: {
        Obligation.STATUS_SETTLED,
        Obligation.STATUS_OVERDUE,
        Obligation.STATUS_CANCELLED,
    },
    Obligation.STATUS_OVERDUE: {
        Obligation.STATUS_SETTLED,
        Obligation.STATUS_OVERDUE,
    },
}

# Statuses the overdue sweep may promote.
SWEEPABLE_STATES = {
    Obligation.STATUS_PENDING,
    Obligation.STATUS_PARTIAL,
}


# ============================================================
# DOMAIN RULES
# ============================================================


def can_transition(*, from_status: str, to_status: str) -> bool:
    if from_status in TERMINAL_STATES:
        return False

    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


def validate_transition(*, obligation: Obligation, target_status: str):
    if not can_transition(
        from_status=obligation.status,
        to_status=target_status,
    ):
        raise InvalidStatusTransition(
            f"Obligation {obligation.number} cannot transition from "
            f"'{obligation.status}' to '{target_status}'"
        )


def status_after_settlement(*, current_status: str, remaining: Decimal) -> str:
    """
    Target status once a settlement has been applied.

    - remaining reaches 0 -> settled
    - overdue stays overdue on partial payment
    - otherwise partial
    """
    if remaining <= Decimal("0.00"):
        return Obligation.STATUS_SETTLED
    if current_status == Obligation.STATUS_OVERDUE:
        return Obligation.STATUS_OVERDUE
    return Obligation.STATUS_PARTIAL
