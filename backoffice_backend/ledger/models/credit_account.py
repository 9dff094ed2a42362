# ledger/models/credit_account.py

"""
CREDIT ACCOUNT

A running balance holder for a customer (debt book) or a trader (wholesale).

INVARIANTS (DB-enforced):
- credit_limit >= 0
- 0 <= current_balance <= credit_limit

current_balance only moves through
ledger.services.credit_account_service (charge / release / reconcile).
"""

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q

from ledger.kinds import HOLDER_CHOICES, HOLDER_CUSTOMER


class CreditAccount(models.Model):
    STATUS_ACTIVE = "active"
    STATUS_INACTIVE = "inactive"

    STATUS_CHOICES = [
        (STATUS_ACTIVE, "Active"),
        (STATUS_INACTIVE, "Inactive"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    holder_kind = models.CharField(
        max_length=20,
        choices=HOLDER_CHOICES,
        default=HOLDER_CUSTOMER,
    )
    holder_ref = models.CharField(
        max_length=120,
        blank=True,
        default="",
        help_text="Opaque directory reference of the holder (optional).",
    )

    display_name = models.CharField(max_length=200)
    contact_phone = models.CharField(max_length=50, blank=True, default="")
    contact_email = models.EmailField(blank=True, default="")
    notes = models.TextField(blank=True, default="")

    credit_limit = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )
    current_balance = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )

    status = models.CharField(
        max_length=10,
        choices=STATUS_CHOICES,
        default=STATUS_ACTIVE,
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["display_name"]
        constraints = [
            models.CheckConstraint(
                condition=Q(credit_limit__gte=Decimal("0.00")),
                name="credit_account_limit_nonnegative",
            ),
            models.CheckConstraint(
                condition=Q(current_balance__gte=Decimal("0.00")),
                name="credit_account_balance_nonnegative",
            ),
            models.CheckConstraint(
                condition=Q(current_balance__lte=F("credit_limit")),
                name="credit_account_balance_within_limit",
            ),
        ]
        indexes = [
            models.Index(fields=["holder_kind", "status"], name="ledger_acct_holder_status_idx"),
            models.Index(fields=["holder_ref"], name="ledger_acct_holder_ref_idx"),
        ]

    def __str__(self):
        return f"{self.display_name} ({self.holder_kind})"

    @property
    def available_credit(self) -> Decimal:
        return self.credit_limit - self.current_balance

    @property
    def is_active(self) -> bool:
        return self.status == self.STATUS_ACTIVE

    def clean(self):
        if self.credit_limit is not None and self.credit_limit < 0:
            raise ValidationError({"credit_limit": "Credit limit cannot be negative."})
        if (
            self.current_balance is not None
            and self.credit_limit is not None
            and self.current_balance > self.credit_limit
        ):
            raise ValidationError(
                {"credit_limit": "Credit limit cannot be below the current balance."}
            )

    def save(self, *args, **kwargs):
        if self.display_name is not None:
            self.display_name = self.display_name.strip()
        self.full_clean()
        return super().save(*args, **kwargs)
