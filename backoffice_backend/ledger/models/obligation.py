# ledger/models/obligation.py

"""
OBLIGATION (SHARED SHAPE FOR ALL KINDS)

A monetary claim awaiting settlement: invoice, customer debt or trader charge.

INVARIANTS (DB-enforced):
- number is unique and never changes after creation
- total_amount > 0
- 0 <= amount_settled <= total_amount
- status == settled  =>  amount_settled == total_amount

Derived values (remaining_amount, is_overdue, days_overdue) are computed
at read time and never stored.

Writes go through ledger.services (obligation_service / settlement_service /
overdue_sweeper). Do not mutate status or amounts directly.
"""

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from ledger.kinds import KIND_CHOICES, get_policy, is_known_kind

from .credit_account import CreditAccount

TWOPLACES = Decimal("0.01")


def _money(v) -> Decimal:
    return Decimal(str(v or "0.00")).quantize(TWOPLACES)


User = settings.AUTH_USER_MODEL


class Obligation(models.Model):
    STATUS_PENDING = "pending"
    STATUS_PARTIAL = "partial"
    STATUS_SETTLED = "settled"
    STATUS_OVERDUE = "overdue"
    STATUS_CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_PARTIAL, "Partially settled"),
        (STATUS_SETTLED, "Settled"),
        (STATUS_OVERDUE, "Overdue"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    OPEN_STATUSES = (STATUS_PENDING, STATUS_PARTIAL, STATUS_OVERDUE)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    number = models.CharField(max_length=40, unique=True, editable=False)
    kind = models.CharField(max_length=20, choices=KIND_CHOICES)

    counterparty_ref = models.CharField(max_length=120)

    # Kind-specific extensions (optional)
    counterparty_name = models.CharField(max_length=200, blank=True, default="")
    counterparty_phone = models.CharField(max_length=50, blank=True, default="")
    billing_address = models.TextField(blank=True, default="")
    notes = models.TextField(blank=True, default="")

    credit_account = models.ForeignKey(
        CreditAccount,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="obligations",
    )

    total_amount = models.DecimalField(max_digits=14, decimal_places=2)
    amount_settled = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )
    currency = models.CharField(max_length=3)

    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING,
    )

    due_date = models.DateField(null=True, blank=True)

    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="obligations_created",
    )

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)
    settled_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(total_amount__gt=Decimal("0.00")),
                name="obligation_total_positive",
            ),
            models.CheckConstraint(
                condition=Q(amount_settled__gte=Decimal("0.00")),
                name="obligation_settled_nonnegative",
            ),
            models.CheckConstraint(
                condition=Q(amount_settled__lte=F("total_amount")),
                name="obligation_settled_within_total",
            ),
            models.CheckConstraint(
                condition=~Q(status="settled") | Q(amount_settled=F("total_amount")),
                name="obligation_settled_status_fully_paid",
            ),
        ]
        indexes = [
            models.Index(fields=["kind", "status"], name="ledger_obl_kind_status_idx"),
            models.Index(
                fields=["counterparty_ref", "created_at"], name="ledger_obl_cpty_created_idx"
            ),
            models.Index(fields=["status", "due_date"], name="ledger_obl_status_due_idx"),
            models.Index(
                fields=["credit_account", "status"], name="ledger_obl_account_status_idx"
            ),
        ]

    def __str__(self):
        return f"{self.number} ({self.kind}, {self.status})"

    # ----------------------------
    # Read-time projections
    # ----------------------------
    @property
    def remaining_amount(self) -> Decimal:
        return _money(self.total_amount) - _money(self.amount_settled)

    @property
    def is_open(self) -> bool:
        return self.status in self.OPEN_STATUSES

    @property
    def is_overdue(self) -> bool:
        if self.status == self.STATUS_OVERDUE:
            return True
        if self.status not in (self.STATUS_PENDING, self.STATUS_PARTIAL):
            return False
        return bool(self.due_date and self.due_date < timezone.localdate())

    @property
    def days_overdue(self) -> int:
        if not self.due_date or not self.is_overdue:
            return 0
        return max((timezone.localdate() - self.due_date).days, 0)

    # ----------------------------
    # Validation
    # ----------------------------
    def clean(self):
        if not is_known_kind(self.kind):
            raise ValidationError({"kind": f"Unknown obligation kind: {self.kind}"})

        if not (self.counterparty_ref or "").strip():
            raise ValidationError({"counterparty_ref": "counterparty_ref is required"})

        if self.total_amount is not None and self.total_amount <= Decimal("0.00"):
            raise ValidationError({"total_amount": "total_amount must be > 0"})

        if self.billing_address and not get_policy(self.kind).allows_billing_address:
            raise ValidationError(
                {"billing_address": "billing_address only applies to invoices"}
            )

        if self.status == self.STATUS_SETTLED and not self.settled_at:
            raise ValidationError(
                {"settled_at": "settled_at is required when status is settled"}
            )

        if self.status == self.STATUS_CANCELLED and not self.cancelled_at:
            raise ValidationError(
                {"cancelled_at": "cancelled_at is required when status is cancelled"}
            )

    def save(self, *args, **kwargs):
        if self.counterparty_ref is not None:
            self.counterparty_ref = self.counterparty_ref.strip()
        if self.currency:
            self.currency = self.currency.strip().upper()

        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        if self.settlements.exists():
            raise RuntimeError("Obligations with settlements cannot be deleted.")
        return super().delete(*args, **kwargs)


class ObligationLineItem(models.Model):
    """
    Obligation line.

    line_total = quantity * unit_price - discount_amount + tax_amount
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    obligation = models.ForeignKey(
        Obligation,
        on_delete=models.CASCADE,
        related_name="items",
    )

    position = models.PositiveIntegerField(default=0)
    description = models.CharField(max_length=255)
    product_ref = models.CharField(max_length=120, blank=True, default="")

    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )
    discount_amount = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )
    tax_amount = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )

    class Meta:
        ordering = ["position"]
        constraints = [
            models.CheckConstraint(
                condition=Q(quantity__gt=0),
                name="obligation_item_quantity_gt_zero",
            ),
            models.CheckConstraint(
                condition=Q(unit_price__gte=Decimal("0.00")),
                name="obligation_item_unit_price_nonnegative",
            ),
            models.CheckConstraint(
                condition=Q(discount_amount__gte=Decimal("0.00")),
                name="obligation_item_discount_nonnegative",
            ),
            models.CheckConstraint(
                condition=Q(tax_amount__gte=Decimal("0.00")),
                name="obligation_item_tax_nonnegative",
            ),
        ]

    @property
    def line_total(self) -> Decimal:
        gross = Decimal(str(self.quantity)) * Decimal(str(self.unit_price))
        return _money(gross - _money(self.discount_amount) + _money(self.tax_amount))

    def clean(self):
        if not (self.description or "").strip():
            raise ValidationError({"description": "description is required"})

        if self.line_total < Decimal("0.00"):
            raise ValidationError(
                {"discount_amount": "discount cannot exceed the line amount"}
            )

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.description} x {self.quantity}"
