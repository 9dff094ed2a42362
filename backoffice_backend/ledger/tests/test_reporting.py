# ledger/tests/test_reporting.py

from __future__ import annotations

from datetime import date, datetime, timedelta

from django.test import TestCase
from django.utils import timezone

from ledger.kinds import HOLDER_TRADER, KIND_CUSTOMER_DEBT, KIND_INVOICE, KIND_TRADER_CHARGE
from ledger.services.credit_account_service import open_credit_account
from ledger.services.exceptions import LedgerValidationError
from ledger.services.obligation_service import cancel_obligation, create_obligation
from ledger.services.overdue_sweeper import sweep_overdue
from ledger.services.reporting_service import (
    get_account_standings,
    get_aging_report,
    get_counterparty_summary,
    get_ledger_statistics,
    get_revenue_by_period,
)
from ledger.services.settlement_service import record_settlement

GUEST = "guest:walk-in"


def _at(d: date, hour=12):
    return timezone.make_aware(datetime(d.year, d.month, d.day, hour, 0))


class LedgerStatisticsTests(TestCase):
    """
    Statistics tests.

    GUARANTEES:
    - Totals exclude cancelled obligations
    - Outstanding = open remaining amounts only
    - Money returned as 2dp strings
    """

    def setUp(self):
        self.today = timezone.localdate()

        self.settled = create_obligation(
            kind=KIND_INVOICE,
            counterparty_ref=GUEST,
            total_amount="100.00",
            now=_at(date(2026, 9, 1)),
        )
        record_settlement(obligation_id=self.settled.id, amount="100.00")

        self.partial = create_obligation(
            kind=KIND_INVOICE,
            counterparty_ref=GUEST,
            total_amount="50.00",
            due_date=self.today - timedelta(days=2),
            now=_at(date(2026, 10, 1)),
        )
        record_settlement(obligation_id=self.partial.id, amount="20.00")

        self.pending = create_obligation(
            kind=KIND_CUSTOMER_DEBT,
            counterparty_ref=GUEST,
            total_amount="30.00",
            due_date=self.today + timedelta(days=10),
            now=_at(date(2026, 10, 2)),
        )

        self.cancelled = create_obligation(
            kind=KIND_INVOICE,
            counterparty_ref=GUEST,
            total_amount="40.00",
            now=_at(date(2026, 10, 3)),
        )
        cancel_obligation(obligation_id=self.cancelled.id)

    def test_totals(self):
        stats = get_ledger_statistics()

        self.assertEqual(stats["total_count"], 4)
        self.assertEqual(stats["total_invoiced"], "180.00")
        self.assertEqual(stats["total_collected"], "120.00")
        self.assertEqual(stats["total_outstanding"], "60.00")
        self.assertEqual(stats["overdue_count"], 1)
        self.assertEqual(stats["overdue_amount"], "30.00")

    def test_by_status(self):
        by_status = get_ledger_statistics()["by_status"]

        self.assertEqual(by_status["settled"], {"count": 1, "total_amount": "100.00"})
        self.assertEqual(by_status["partial"], {"count": 1, "total_amount": "50.00"})
        self.assertEqual(by_status["pending"], {"count": 1, "total_amount": "30.00"})
        self.assertEqual(by_status["cancelled"], {"count": 1, "total_amount": "40.00"})
        self.assertEqual(by_status["overdue"], {"count": 0, "total_amount": "0.00"})

    def test_kind_filter(self):
        stats = get_ledger_statistics(kind=KIND_CUSTOMER_DEBT)
        self.assertEqual(stats["total_count"], 1)
        self.assertEqual(stats["total_outstanding"], "30.00")

    def test_date_filter(self):
        stats = get_ledger_statistics(date_from=date(2026, 10, 1), date_to=date(2026, 10, 2))
        self.assertEqual(stats["total_count"], 2)
        self.assertEqual(stats["total_invoiced"], "80.00")

    def test_empty_ledger(self):
        stats = get_ledger_statistics(kind=KIND_TRADER_CHARGE)
        self.assertEqual(stats["total_count"], 0)
        self.assertEqual(stats["total_invoiced"], "0.00")
        self.assertEqual(stats["overdue_amount"], "0.00")


class OverdueFiguresTests(TestCase):
    def setUp(self):
        today = timezone.localdate()
        partial = create_obligation(
            kind=KIND_INVOICE,
            counterparty_ref=GUEST,
            total_amount="100.00",
            due_date=today - timedelta(days=3),
        )
        record_settlement(obligation_id=partial.id, amount="60.00")
        create_obligation(
            kind=KIND_INVOICE,
            counterparty_ref=GUEST,
            total_amount="50.00",
            due_date=today - timedelta(days=1),
        )

    def test_past_due_rows_count_before_the_sweep(self):
        stats = get_ledger_statistics()
        self.assertEqual(stats["overdue_count"], 2)
        self.assertEqual(stats["overdue_amount"], "90.00")
        self.assertEqual(stats["by_status"]["overdue"]["count"], 0)

    def test_overdue_amount_is_remaining_after_the_sweep(self):
        sweep_overdue()

        stats = get_ledger_statistics()
        self.assertEqual(stats["overdue_count"], 2)
        self.assertEqual(stats["overdue_amount"], "90.00")
        self.assertEqual(stats["by_status"]["overdue"], {"count": 2, "total_amount": "150.00"})


class AgingReportTests(TestCase):
    def setUp(self):
        self.as_of = date(2026, 10, 19)
        self.due = {
            "no_due": None,
            "future": self.as_of + timedelta(days=5),
            "d10": self.as_of - timedelta(days=10),
            "d45": self.as_of - timedelta(days=45),
            "d75": self.as_of - timedelta(days=75),
            "d100": self.as_of - timedelta(days=100),
        }
        for amount, due_date in zip(("1", "2", "3", "4", "5", "6"), self.due.values()):
            create_obligation(
                kind=KIND_INVOICE,
                counterparty_ref=GUEST,
                total_amount=amount,
                due_date=due_date,
            )

        settled = create_obligation(
            kind=KIND_INVOICE,
            counterparty_ref=GUEST,
            total_amount="100",
            due_date=self.as_of - timedelta(days=10),
        )
        record_settlement(obligation_id=settled.id, amount="100")

    def test_buckets(self):
        report = get_aging_report(as_of=self.as_of)
        buckets = {b["bucket"]: b for b in report["buckets"]}

        self.assertEqual([b["bucket"] for b in report["buckets"]], ["current", "1_30", "31_60", "61_90", "90_plus"])
        self.assertEqual(buckets["current"], {"bucket": "current", "count": 2, "remaining": "3.00"})
        self.assertEqual(buckets["1_30"]["remaining"], "3.00")
        self.assertEqual(buckets["31_60"]["remaining"], "4.00")
        self.assertEqual(buckets["61_90"]["remaining"], "5.00")
        self.assertEqual(buckets["90_plus"]["remaining"], "6.00")
        self.assertEqual(report["total_count"], 6)
        self.assertEqual(report["total_remaining"], "21.00")

    def test_kind_filter(self):
        report = get_aging_report(as_of=self.as_of, kind=KIND_CUSTOMER_DEBT)
        self.assertEqual(report["total_count"], 0)


class RevenueReportTests(TestCase):
    def setUp(self):
        invoice = create_obligation(kind=KIND_INVOICE, counterparty_ref=GUEST, total_amount="500")
        debt = create_obligation(kind=KIND_CUSTOMER_DEBT, counterparty_ref=GUEST, total_amount="500")

        record_settlement(obligation_id=invoice.id, amount="100", settled_at=_at(date(2026, 9, 10)))
        record_settlement(obligation_id=invoice.id, amount="50", settled_at=_at(date(2026, 9, 20)))
        record_settlement(obligation_id=debt.id, amount="25", settled_at=_at(date(2026, 10, 5)))

    def test_monthly(self):
        report = get_revenue_by_period(group_by="month")

        self.assertEqual(report["total"], "175.00")
        self.assertEqual(
            report["periods"],
            [
                {"period": "2026-09-01", "total": "150.00", "count": 2},
                {"period": "2026-10-01", "total": "25.00", "count": 1},
            ],
        )

    def test_daily_with_range_and_kind(self):
        report = get_revenue_by_period(
            group_by="day",
            date_from=date(2026, 9, 15),
            date_to=date(2026, 10, 31),
            kind=KIND_INVOICE,
        )
        self.assertEqual(report["periods"], [{"period": "2026-09-20", "total": "50.00", "count": 1}])
        self.assertEqual(report["date_from"], "2026-09-15")

    def test_invalid_grouping(self):
        with self.assertRaises(LedgerValidationError):
            get_revenue_by_period(group_by="quarter")


class AccountStandingsTests(TestCase):
    def test_standings(self):
        customer = open_credit_account(display_name="Amsalem", credit_limit="300")
        trader = open_credit_account(display_name="Zur Trading", credit_limit="900", holder_kind=HOLDER_TRADER)
        create_obligation(kind=KIND_CUSTOMER_DEBT, account_id=customer.id, total_amount="120")
        create_obligation(kind=KIND_TRADER_CHARGE, account_id=trader.id, total_amount="400")

        rows = get_account_standings()
        self.assertEqual([r["display_name"] for r in rows], ["Amsalem", "Zur Trading"])
        self.assertEqual(rows[0]["balance"], "120.00")
        self.assertEqual(rows[0]["available"], "180.00")
        self.assertEqual(rows[0]["open_obligations"], 1)

        traders = get_account_standings(holder_kind=HOLDER_TRADER)
        self.assertEqual(len(traders), 1)
        self.assertEqual(traders[0]["limit"], "900.00")


class CounterpartySummaryTests(TestCase):
    def test_summary(self):
        first = create_obligation(kind=KIND_INVOICE, counterparty_ref=GUEST, total_amount="80")
        create_obligation(
            kind=KIND_CUSTOMER_DEBT,
            counterparty_ref=GUEST,
            total_amount="20",
            due_date=timezone.localdate() - timedelta(days=1),
        )
        create_obligation(kind=KIND_INVOICE, counterparty_ref="guest:someone-else", total_amount="999")
        record_settlement(obligation_id=first.id, amount="80")

        summary = get_counterparty_summary(counterparty_ref=GUEST)

        self.assertEqual(summary["counterparty"]["name"], "walk-in")
        self.assertEqual(summary["obligation_count"], 2)
        self.assertEqual(summary["open_count"], 1)
        self.assertEqual(summary["settled_count"], 1)
        self.assertEqual(summary["overdue_count"], 1)
        self.assertEqual(summary["total_amount"], "100.00")
        self.assertEqual(summary["amount_settled"], "80.00")
        self.assertEqual(summary["outstanding"], "20.00")
        self.assertIsNotNone(summary["last_settlement_at"])

    def test_summary_for_unknown_counterparty_is_empty(self):
        summary = get_counterparty_summary(counterparty_ref="guest:nobody")

        self.assertEqual(summary["obligation_count"], 0)
        self.assertEqual(summary["total_amount"], "0.00")
        self.assertEqual(summary["amount_settled"], "0.00")
        self.assertIsNone(summary["last_settlement_at"])
