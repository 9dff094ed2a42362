# ledger/tests/test_sequences.py

from __future__ import annotations

import threading
from datetime import datetime

from django.db import connection
from django.test import TestCase, TransactionTestCase, override_settings, skipUnlessDBFeature
from django.utils import timezone

from ledger.kinds import KIND_CUSTOMER_DEBT, KIND_INVOICE, KIND_TRADER_CHARGE, period_key_for
from ledger.models import NumberSequence
from ledger.services.exceptions import LedgerValidationError, SequenceExhausted
from ledger.services.sequence_service import next_number, next_sequence_value


def _at(year, month, day):
    return timezone.make_aware(datetime(year, month, day, 12, 0))


class PeriodKeyTests(TestCase):
    def test_invoices_are_scoped_monthly(self):
        self.assertEqual(period_key_for(KIND_INVOICE, _at(2026, 3, 9).date()), "202603")

    def test_debts_and_trader_charges_are_scoped_yearly(self):
        on = _at(2026, 3, 9).date()
        self.assertEqual(period_key_for(KIND_CUSTOMER_DEBT, on), "2026")
        self.assertEqual(period_key_for(KIND_TRADER_CHARGE, on), "2026")


class NextNumberTests(TestCase):
    """
    Numbering tests.

    GUARANTEES:
    - {PREFIX}-{PERIOD}-{SEQ} format, zero padded
    - Each (kind, period) counts independently from 1
    - Overflow raises and does not consume a value
    """

    def test_first_invoice_of_a_month(self):
        number = next_number(kind=KIND_INVOICE, now=_at(2026, 10, 5))
        self.assertEqual(number, "INV-202610-00001")

    def test_numbers_increase_without_gaps(self):
        now = _at(2026, 10, 5)
        numbers = [next_number(kind=KIND_INVOICE, now=now) for _ in range(3)]
        self.assertEqual(
            numbers,
            ["INV-202610-00001", "INV-202610-00002", "INV-202610-00003"],
        )

    def test_each_kind_has_its_own_counter(self):
        now = _at(2026, 10, 5)
        next_number(kind=KIND_INVOICE, now=now)
        next_number(kind=KIND_INVOICE, now=now)

        self.assertEqual(next_number(kind=KIND_CUSTOMER_DEBT, now=now), "DBT-2026-00001")
        self.assertEqual(next_number(kind=KIND_TRADER_CHARGE, now=now), "TRD-2026-00001")

    def test_new_period_restarts_at_one(self):
        next_number(kind=KIND_INVOICE, now=_at(2026, 10, 5))
        next_number(kind=KIND_INVOICE, now=_at(2026, 10, 6))

        self.assertEqual(next_number(kind=KIND_INVOICE, now=_at(2026, 11, 1)), "INV-202611-00001")
        self.assertEqual(
            NumberSequence.objects.get(key=KIND_INVOICE, period="202610").last_value, 2
        )

    def test_explicit_period_key(self):
        self.assertEqual(
            next_number(kind=KIND_CUSTOMER_DEBT, period_key="2030"),
            "DBT-2030-00001",
        )

    def test_unknown_kind_is_rejected(self):
        with self.assertRaises(LedgerValidationError):
            next_number(kind="receipt")
        self.assertFalse(NumberSequence.objects.exists())

    @override_settings(LEDGER={"NUMBER_WIDTH": 1})
    def test_overflow_raises_and_leaves_counter_untouched(self):
        now = _at(2026, 1, 1)
        for expected in range(1, 10):
            self.assertEqual(next_number(kind=KIND_CUSTOMER_DEBT, now=now), f"DBT-2026-{expected}")

        with self.assertRaises(SequenceExhausted):
            next_number(kind=KIND_CUSTOMER_DEBT, now=now)

        self.assertEqual(
            NumberSequence.objects.get(key=KIND_CUSTOMER_DEBT, period="2026").last_value, 9
        )

    def test_next_sequence_value_creates_row_on_first_use(self):
        self.assertEqual(next_sequence_value(key="custom", period="2026"), 1)
        self.assertEqual(next_sequence_value(key="custom", period="2026"), 2)
        self.assertEqual(NumberSequence.objects.filter(key="custom").count(), 1)


@skipUnlessDBFeature("has_select_for_update")
class ConcurrentNumberingTests(TransactionTestCase):
    """
    Parallel callers never receive the same number.
    Needs a database with real row locking (Postgres).
    """

    WORKERS = 8
    PER_WORKER = 5

    def test_parallel_callers_get_distinct_contiguous_numbers(self):
        now = _at(2026, 10, 5)
        results = []
        errors = []
        lock = threading.Lock()

        def worker():
            try:
                for _ in range(self.PER_WORKER):
                    number = next_number(kind=KIND_INVOICE, now=now)
                    with lock:
                        results.append(number)
            except Exception as exc:  # noqa: BLE001
                with lock:
                    errors.append(exc)
            finally:
                connection.close()

        threads = [threading.Thread(target=worker) for _ in range(self.WORKERS)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(errors, [])
        total = self.WORKERS * self.PER_WORKER
        self.assertEqual(len(results), total)
        self.assertEqual(len(set(results)), total)
        self.assertEqual(
            sorted(results),
            [f"INV-202610-{i:05d}" for i in range(1, total + 1)],
        )
