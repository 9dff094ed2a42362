"""
======================================================
PATH: ledger/migrations/0001_initial.py
======================================================
MIGRATION: CREATE LEDGER TABLES

Purpose:
- NumberSequence (atomic numbering counters)
- CreditAccount (limit + running balance, DB-enforced balance <= limit)
- Obligation + ObligationLineItem (shared shape for all kinds)
- Settlement (append-only)
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="NumberSequence",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("key", models.CharField(max_length=50)),
                ("period", models.CharField(max_length=10)),
                ("last_value", models.PositiveBigIntegerField(default=0)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["key", "period"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("key", "period"),
                        name="uniq_number_sequence_key_period",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="CreditAccount",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "holder_kind",
                    models.CharField(
                        choices=[("customer", "Customer"), ("trader", "Trader")],
                        default="customer",
                        max_length=20,
                    ),
                ),
                (
                    "holder_ref",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Opaque directory reference of the holder (optional).",
                        max_length=120,
                    ),
                ),
                ("display_name", models.CharField(max_length=200)),
                ("contact_phone", models.CharField(blank=True, default="", max_length=50)),
                ("contact_email", models.EmailField(blank=True, default="", max_length=254)),
                ("notes", models.TextField(blank=True, default="")),
                (
                    "credit_limit",
                    models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14),
                ),
                (
                    "current_balance",
                    models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("inactive", "Inactive")],
                        default="active",
                        max_length=10,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["display_name"],
                "indexes": [
                    models.Index(
                        fields=["holder_kind", "status"],
                        name="ledger_acct_holder_status_idx",
                    ),
                    models.Index(fields=["holder_ref"], name="ledger_acct_holder_ref_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(credit_limit__gte=Decimal("0.00")),
                        name="credit_account_limit_nonnegative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(current_balance__gte=Decimal("0.00")),
                        name="credit_account_balance_nonnegative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(current_balance__lte=models.F("credit_limit")),
                        name="credit_account_balance_within_limit",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Obligation",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("number", models.CharField(editable=False, max_length=40, unique=True)),
                (
                    "kind",
                    models.CharField(
                        choices=[
                            ("invoice", "Invoice"),
                            ("customer_debt", "Customer debt"),
                            ("trader_charge", "Trader charge"),
                        ],
                        max_length=20,
                    ),
                ),
                ("counterparty_ref", models.CharField(max_length=120)),
                ("counterparty_name", models.CharField(blank=True, default="", max_length=200)),
                ("counterparty_phone", models.CharField(blank=True, default="", max_length=50)),
                ("billing_address", models.TextField(blank=True, default="")),
                ("notes", models.TextField(blank=True, default="")),
                ("total_amount", models.DecimalField(decimal_places=2, max_digits=14)),
                (
                    "amount_settled",
                    models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14),
                ),
                ("currency", models.CharField(max_length=3)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("partial", "Partially settled"),
                            ("settled", "Settled"),
                            ("overdue", "Overdue"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("due_date", models.DateField(blank=True, null=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("settled_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                (
                    "credit_account",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="obligations",
                        to="ledger.creditaccount",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="obligations_created",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["kind", "status"], name="ledger_obl_kind_status_idx"),
                    models.Index(
                        fields=["counterparty_ref", "created_at"],
                        name="ledger_obl_cpty_created_idx",
                    ),
                    models.Index(fields=["status", "due_date"], name="ledger_obl_status_due_idx"),
                    models.Index(
                        fields=["credit_account", "status"],
                        name="ledger_obl_account_status_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(total_amount__gt=Decimal("0.00")),
                        name="obligation_total_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(amount_settled__gte=Decimal("0.00")),
                        name="obligation_settled_nonnegative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(amount_settled__lte=models.F("total_amount")),
                        name="obligation_settled_within_total",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(("status", "settled"), _negated=True),
                            ("amount_settled", models.F("total_amount")),
                            _connector="OR",
                        ),
                        name="obligation_settled_status_fully_paid",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ObligationLineItem",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("position", models.PositiveIntegerField(default=0)),
                ("description", models.CharField(max_length=255)),
                ("product_ref", models.CharField(blank=True, default="", max_length=120)),
                ("quantity", models.PositiveIntegerField(default=1)),
                (
                    "unit_price",
                    models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14),
                ),
                (
                    "discount_amount",
                    models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14),
                ),
                (
                    "tax_amount",
                    models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14),
                ),
                (
                    "obligation",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="ledger.obligation",
                    ),
                ),
            ],
            options={
                "ordering": ["position"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(quantity__gt=0),
                        name="obligation_item_quantity_gt_zero",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(unit_price__gte=Decimal("0.00")),
                        name="obligation_item_unit_price_nonnegative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(discount_amount__gte=Decimal("0.00")),
                        name="obligation_item_discount_nonnegative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(tax_amount__gte=Decimal("0.00")),
                        name="obligation_item_tax_nonnegative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Settlement",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("amount", models.DecimalField(decimal_places=2, max_digits=14)),
                (
                    "method",
                    models.CharField(
                        choices=[
                            ("cash", "Cash"),
                            ("bank_transfer", "Bank transfer"),
                            ("card", "Card"),
                            ("cheque", "Cheque"),
                            ("credit", "Credit"),
                            ("other", "Other"),
                        ],
                        default="cash",
                        max_length=20,
                    ),
                ),
                (
                    "reference_number",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Free-text external reference (receipt, transfer id, cheque no).",
                        max_length=100,
                    ),
                ),
                ("notes", models.TextField(blank=True, default="")),
                ("settled_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "obligation",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="settlements",
                        to="ledger.obligation",
                    ),
                ),
                (
                    "recorded_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="settlements_recorded",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["settled_at", "created_at"],
                "indexes": [
                    models.Index(
                        fields=["obligation", "settled_at"],
                        name="ledger_stl_obl_settled_idx",
                    ),
                    models.Index(fields=["settled_at"], name="ledger_stl_settled_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(amount__gt=Decimal("0.00")),
                        name="settlement_amount_positive",
                    )
                ],
            },
        ),
    ]
