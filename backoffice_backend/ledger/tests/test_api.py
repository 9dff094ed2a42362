# ledger/tests/test_api.py

from __future__ import annotations

import uuid
from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.management import CommandError, call_command
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from ledger.kinds import KIND_CUSTOMER_DEBT, KIND_INVOICE
from ledger.models import CreditAccount, Obligation, Settlement
from ledger.services.credit_account_service import open_credit_account
from ledger.services.exceptions import LedgerValidationError
from ledger.services.obligation_service import create_obligation
from ledger.services.settlement_service import record_settlement

User = get_user_model()

GUEST = "guest:walk-in"


class LedgerAPITests(TestCase):
    """
    Ledger HTTP API tests.

    GUARANTEES:
    - Authentication is required
    - Service errors map to {"code", "detail"} with a stable status
    - Writes go through the services (numbers, balances, statuses)
    """

    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(username="clerk", password="pass")
        self.client.force_authenticate(user=self.user)

    # ----------------------------------
    # Auth
    # ----------------------------------
    def test_anonymous_is_rejected(self):
        anon = APIClient()
        res = anon.get(reverse("ledger-obligations"))
        self.assertEqual(res.status_code, status.HTTP_401_UNAUTHORIZED)

    # ----------------------------------
    # Obligations
    # ----------------------------------
    def test_create_invoice_with_items(self):
        payload = {
            "kind": KIND_INVOICE,
            "counterparty_ref": GUEST,
            "billing_address": "3 Allenby St",
            "items": [
                {"description": "Amoxicillin", "quantity": 2, "unit_price": "35.00"},
                {"description": "Syringe", "unit_price": "2.50", "tax_amount": "0.50"},
            ],
        }
        res = self.client.post(reverse("ledger-obligations"), payload, format="json")

        self.assertEqual(res.status_code, status.HTTP_201_CREATED, res.data)
        self.assertTrue(res.data["number"].startswith("INV-"))
        self.assertEqual(res.data["status"], Obligation.STATUS_PENDING)
        self.assertEqual(res.data["total_amount"], "73.00")
        self.assertEqual(res.data["remaining_amount"], "73.00")
        self.assertEqual(len(res.data["items"]), 2)
        self.assertEqual(res.data["created_by"], self.user.pk)

    def test_create_requires_amount_or_items(self):
        res = self.client.post(
            reverse("ledger-obligations"),
            {"kind": KIND_INVOICE, "counterparty_ref": GUEST},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_unknown_counterparty_is_404(self):
        res = self.client.post(
            reverse("ledger-obligations"),
            {"kind": KIND_INVOICE, "counterparty_ref": "user:424242", "total_amount": "10.00"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(res.data["code"], "counterparty_not_found")

    def test_create_over_credit_limit_is_409(self):
        account = open_credit_account(display_name="Sasson", credit_limit="50.00")
        res = self.client.post(
            reverse("ledger-obligations"),
            {"kind": KIND_CUSTOMER_DEBT, "account_id": str(account.id), "total_amount": "60.00"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(res.data["code"], "credit_limit_exceeded")
        self.assertFalse(Obligation.objects.exists())

    def test_list_is_paginated_and_filterable(self):
        create_obligation(kind=KIND_INVOICE, counterparty_ref=GUEST, total_amount="10")
        create_obligation(kind=KIND_CUSTOMER_DEBT, counterparty_ref=GUEST, total_amount="20")

        res = self.client.get(reverse("ledger-obligations"))
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["count"], 2)

        res = self.client.get(reverse("ledger-obligations"), {"kind": KIND_CUSTOMER_DEBT})
        self.assertEqual(res.data["count"], 1)
        self.assertEqual(res.data["results"][0]["kind"], KIND_CUSTOMER_DEBT)

    def test_detail_and_patch(self):
        obligation = create_obligation(kind=KIND_INVOICE, counterparty_ref=GUEST, total_amount="10")
        url = reverse("ledger-obligation-detail", args=[obligation.id])

        res = self.client.get(url)
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["number"], obligation.number)

        due = (timezone.localdate() + timedelta(days=14)).isoformat()
        res = self.client.patch(url, {"due_date": due, "notes": "net 14"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK, res.data)
        self.assertEqual(res.data["due_date"], due)
        self.assertEqual(res.data["notes"], "net 14")

    def test_detail_unknown_is_404(self):
        res = self.client.get(reverse("ledger-obligation-detail", args=[uuid.uuid4()]))
        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(res.data["code"], "not_found")

    def test_replace_items(self):
        obligation = create_obligation(
            kind=KIND_INVOICE,
            counterparty_ref=GUEST,
            items=[{"description": "Old", "unit_price": "10.00"}],
        )
        res = self.client.put(
            reverse("ledger-obligation-items", args=[obligation.id]),
            {"items": [{"description": "New", "quantity": 4, "unit_price": "3.00"}]},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_200_OK, res.data)
        self.assertEqual(res.data["total_amount"], "12.00")
        self.assertEqual([i["description"] for i in res.data["items"]], ["New"])

    def test_settle_then_edit_items_is_locked(self):
        obligation = create_obligation(kind=KIND_INVOICE, counterparty_ref=GUEST, total_amount="10")
        record_settlement(obligation_id=obligation.id, amount="1.00")

        res = self.client.put(
            reverse("ledger-obligation-items", args=[obligation.id]),
            {"items": [{"description": "New", "unit_price": "3.00"}]},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(res.data["code"], "obligation_locked")

    def test_cancel(self):
        obligation = create_obligation(kind=KIND_INVOICE, counterparty_ref=GUEST, total_amount="10")
        url = reverse("ledger-obligation-cancel", args=[obligation.id])

        res = self.client.post(url)
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["status"], Obligation.STATUS_CANCELLED)

        res = self.client.post(url)
        self.assertEqual(res.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(res.data["code"], "invalid_status_transition")

    # ----------------------------------
    # Settlements
    # ----------------------------------
    def test_record_and_list_settlements(self):
        obligation = create_obligation(kind=KIND_INVOICE, counterparty_ref=GUEST, total_amount="100")
        url = reverse("ledger-obligation-settlements", args=[obligation.id])

        res = self.client.post(url, {"amount": "40.00", "method": "card"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_201_CREATED, res.data)
        self.assertEqual(res.data["obligation_number"], obligation.number)
        self.assertEqual(res.data["recorded_by"], self.user.pk)

        res = self.client.post(url, {"amount": "60.01"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(res.data["code"], "oversettlement_rejected")

        res = self.client.post(url, {"amount": "0"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(res.data["code"], "invalid_amount")

        res = self.client.get(url)
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual([s["amount"] for s in res.data], ["40.00"])

        obligation.refresh_from_db()
        self.assertEqual(obligation.status, Obligation.STATUS_PARTIAL)
        self.assertEqual(Settlement.objects.count(), 1)

    def test_document(self):
        obligation = create_obligation(kind=KIND_INVOICE, counterparty_ref=GUEST, total_amount="10")
        res = self.client.get(reverse("ledger-obligation-document", args=[obligation.id]))
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["number"], obligation.number)
        self.assertEqual(res.data["counterparty"]["name"], "walk-in")

    def test_overdue_list_and_sweep(self):
        obligation = create_obligation(
            kind=KIND_INVOICE,
            counterparty_ref=GUEST,
            total_amount="10",
            due_date=timezone.localdate() - timedelta(days=1),
        )

        res = self.client.get(reverse("ledger-obligations-overdue"))
        self.assertEqual(res.data["count"], 1)
        self.assertTrue(res.data["results"][0]["is_overdue"])

        res = self.client.post(
            reverse("ledger-obligations-sweep-overdue"), {"dry_run": True}, format="json"
        )
        self.assertEqual(res.data["transitioned"], [obligation.number])
        obligation.refresh_from_db()
        self.assertEqual(obligation.status, Obligation.STATUS_PENDING)

        res = self.client.post(reverse("ledger-obligations-sweep-overdue"), {}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["count"], 1)
        obligation.refresh_from_db()
        self.assertEqual(obligation.status, Obligation.STATUS_OVERDUE)

    # ----------------------------------
    # Counterparties
    # ----------------------------------
    def test_counterparty_views(self):
        create_obligation(kind=KIND_INVOICE, counterparty_ref=GUEST, total_amount="10")
        create_obligation(kind=KIND_INVOICE, counterparty_ref="guest:other", total_amount="10")

        res = self.client.get(reverse("ledger-counterparty-obligations", args=[GUEST]))
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["count"], 1)

        res = self.client.get(reverse("ledger-counterparty-summary", args=[GUEST]))
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["outstanding"], "10.00")

    # ----------------------------------
    # Credit accounts
    # ----------------------------------
    def test_account_lifecycle(self):
        res = self.client.post(
            reverse("ledger-accounts"),
            {"display_name": "Ohana", "credit_limit": "250.00", "contact_email": "o@example.com"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_201_CREATED, res.data)
        account_id = res.data["id"]

        create_obligation(kind=KIND_CUSTOMER_DEBT, account_id=account_id, total_amount="100")

        url = reverse("ledger-account-detail", args=[account_id])
        res = self.client.get(url)
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(
            res.data["standing"],
            {"balance": "100.00", "limit": "250.00", "available": "150.00"},
        )

        res = self.client.patch(url, {"credit_limit": "99.00"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_409_CONFLICT)

        res = self.client.patch(url, {"credit_limit": "400.00", "status": "inactive"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK, res.data)
        self.assertEqual(res.data["standing"]["available"], "300.00")
        self.assertEqual(res.data["status"], CreditAccount.STATUS_INACTIVE)

        res = self.client.get(reverse("ledger-accounts"), {"status": "inactive"})
        self.assertEqual(len(res.data), 1)

    def test_account_patch_is_all_or_nothing(self):
        account = open_credit_account(display_name="Ohana", credit_limit="250")
        url = reverse("ledger-account-detail", args=[account.id])

        with mock.patch(
            "ledger.services.credit_account_service.set_account_status",
            side_effect=LedgerValidationError("status change refused"),
        ):
            res = self.client.patch(url, {"credit_limit": "400.00", "status": "inactive"}, format="json")

        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(res.data["code"], "validation_error")
        account.refresh_from_db()
        self.assertEqual(account.credit_limit, Decimal("250.00"))
        self.assertEqual(account.status, CreditAccount.STATUS_ACTIVE)

    def test_reconcile(self):
        account = open_credit_account(display_name="Dahan", credit_limit="500")
        create_obligation(kind=KIND_CUSTOMER_DEBT, account_id=account.id, total_amount="80")
        CreditAccount.objects.filter(pk=account.pk).update(current_balance=Decimal("95.00"))

        url = reverse("ledger-account-reconcile", args=[account.id])
        res = self.client.post(f"{url}?dry_run=1")
        self.assertEqual(res.data["drift"], "-15.00")
        self.assertFalse(res.data["applied"])

        res = self.client.post(url)
        self.assertTrue(res.data["applied"])
        account.refresh_from_db()
        self.assertEqual(account.current_balance, Decimal("80.00"))

    # ----------------------------------
    # Reports
    # ----------------------------------
    def test_reports(self):
        obligation = create_obligation(kind=KIND_INVOICE, counterparty_ref=GUEST, total_amount="10")
        record_settlement(obligation_id=obligation.id, amount="4.00")

        res = self.client.get(reverse("ledger-report-statistics"))
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["total_outstanding"], "6.00")

        res = self.client.get(reverse("ledger-report-aging"))
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["total_remaining"], "6.00")

        res = self.client.get(reverse("ledger-report-revenue"), {"group_by": "year"})
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["total"], "4.00")

        res = self.client.get(reverse("ledger-report-revenue"), {"group_by": "fortnight"})
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(res.data["code"], "validation_error")

        res = self.client.get(reverse("ledger-report-statistics"), {"date_from": "yesterday"})
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

        res = self.client.get(reverse("ledger-report-accounts"))
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["accounts"], [])


class ReconcileCommandTests(TestCase):
    def test_command_fixes_drift(self):
        account = open_credit_account(display_name="Elbaz", credit_limit="500")
        create_obligation(kind=KIND_CUSTOMER_DEBT, account_id=account.id, total_amount="80")
        CreditAccount.objects.filter(pk=account.pk).update(current_balance=Decimal("10.00"))

        out = StringIO()
        call_command("reconcile_credit_accounts", stdout=out)

        self.assertIn("(fixed)", out.getvalue())
        self.assertIn("Checked 1 account(s): 1 drifted, 1 fixed", out.getvalue())
        account.refresh_from_db()
        self.assertEqual(account.current_balance, Decimal("80.00"))

    def test_command_dry_run(self):
        account = open_credit_account(display_name="Elbaz", credit_limit="500")
        create_obligation(kind=KIND_CUSTOMER_DEBT, account_id=account.id, total_amount="80")
        CreditAccount.objects.filter(pk=account.pk).update(current_balance=Decimal("10.00"))

        out = StringIO()
        call_command("reconcile_credit_accounts", "--dry-run", "--account", str(account.id), stdout=out)

        self.assertIn("(dry run)", out.getvalue())
        account.refresh_from_db()
        self.assertEqual(account.current_balance, Decimal("10.00"))

    def test_command_rejects_malformed_account(self):
        with self.assertRaises(CommandError):
            call_command("reconcile_credit_accounts", "--account", "not-a-uuid", stdout=StringIO())

    def test_command_rejects_unknown_account(self):
        with self.assertRaises(CommandError):
            call_command("reconcile_credit_accounts", "--account", str(uuid.uuid4()), stdout=StringIO())
