from decimal import Decimal

from django.test import SimpleTestCase

from ledger.models import Obligation
from ledger.services.exceptions import InvalidStatusTransition
from ledger.services.obligation_lifecycle import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATES,
    can_transition,
    status_after_settlement,
    validate_transition,
)

PENDING = Obligation.STATUS_PENDING
PARTIAL = Obligation.STATUS_PARTIAL
SETTLED = Obligation.STATUS_SETTLED
OVERDUE = Obligation.STATUS_OVERDUE
CANCELLED = Obligation.STATUS_CANCELLED

ALL_STATUSES = [value for value, _ in Obligation.STATUS_CHOICES]

EXPECTED = {
    (PENDING, PARTIAL),
    (PENDING, SETTLED),
    (PENDING, OVERDUE),
    (PENDING, CANCELLED),
    (PARTIAL, SETTLED),
    (PARTIAL, OVERDUE),
    (PARTIAL, CANCELLED),
    (OVERDUE, SETTLED),
    (OVERDUE, OVERDUE),
}


class ObligationLifecycleTests(SimpleTestCase):
    """
    Status graph tests.

    GUARANTEES:
    - Only the listed edges are allowed
    - settled / cancelled are terminal
    - overdue can never be cancelled or go back to pending / partial
    """

    def test_transition_matrix(self):
        for from_status in ALL_STATUSES:
            for to_status in ALL_STATUSES:
                with self.subTest(from_status=from_status, to_status=to_status):
                    self.assertEqual(
                        can_transition(from_status=from_status, to_status=to_status),
                        (from_status, to_status) in EXPECTED,
                    )

    def test_terminal_states_have_no_outgoing_edges(self):
        self.assertEqual(TERMINAL_STATES, {SETTLED, CANCELLED})
        for status in TERMINAL_STATES:
            self.assertNotIn(status, ALLOWED_TRANSITIONS)

    def test_validate_transition_raises_with_numbers_in_message(self):
        obligation = Obligation(number="INV-202610-00001", status=OVERDUE)
        with self.assertRaisesMessage(InvalidStatusTransition, "INV-202610-00001"):
            validate_transition(obligation=obligation, target_status=CANCELLED)

    def test_validate_transition_accepts_allowed_edge(self):
        obligation = Obligation(number="DBT-2026-00001", status=PENDING)
        validate_transition(obligation=obligation, target_status=PARTIAL)


class StatusAfterSettlementTests(SimpleTestCase):
    def test_zero_remaining_settles(self):
        for current in (PENDING, PARTIAL, OVERDUE):
            with self.subTest(current=current):
                self.assertEqual(
                    status_after_settlement(current_status=current, remaining=Decimal("0.00")),
                    SETTLED,
                )

    def test_partial_payment_on_open_obligation(self):
        self.assertEqual(
            status_after_settlement(current_status=PENDING, remaining=Decimal("10.00")),
            PARTIAL,
        )
        self.assertEqual(
            status_after_settlement(current_status=PARTIAL, remaining=Decimal("10.00")),
            PARTIAL,
        )

    def test_partial_payment_keeps_overdue(self):
        self.assertEqual(
            status_after_settlement(current_status=OVERDUE, remaining=Decimal("0.01")),
            OVERDUE,
        )
