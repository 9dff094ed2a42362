# ledger/models/settlement.py

"""
SETTLEMENT (IMMUTABLE)

A payment/credit event against exactly one Obligation.
Created once by ledger.services.settlement_service.record_settlement.
Never updated. Never deleted.

Corrections are made by recording an offsetting entry, not by editing history.
"""

import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from .obligation import Obligation

User = settings.AUTH_USER_MODEL


class Settlement(models.Model):
    METHOD_CASH = "cash"
    METHOD_BANK_TRANSFER = "bank_transfer"
    METHOD_CARD = "card"
    METHOD_CHEQUE = "cheque"
    METHOD_CREDIT = "credit"
    METHOD_OTHER = "other"

    METHOD_CHOICES = [
        (METHOD_CASH, "Cash"),
        (METHOD_BANK_TRANSFER, "Bank transfer"),
        (METHOD_CARD, "Card"),
        (METHOD_CHEQUE, "Cheque"),
        (METHOD_CREDIT, "Credit"),
        (METHOD_OTHER, "Other"),
    ]

    METHODS = {value for value, _ in METHOD_CHOICES}

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    obligation = models.ForeignKey(
        Obligation,
        on_delete=models.PROTECT,
        related_name="settlements",
    )

    amount = models.DecimalField(max_digits=14, decimal_places=2)
    method = models.CharField(
        max_length=20,
        choices=METHOD_CHOICES,
        default=METHOD_CASH,
    )

    recorded_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="settlements_recorded",
    )

    reference_number = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Free-text external reference (receipt, transfer id, cheque no).",
    )
    notes = models.TextField(blank=True, default="")

    settled_at = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["settled_at", "created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=Decimal("0.00")),
                name="settlement_amount_positive",
            ),
        ]
        indexes = [
            models.Index(fields=["obligation", "settled_at"], name="ledger_stl_obl_settled_idx"),
            models.Index(fields=["settled_at"], name="ledger_stl_settled_idx"),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise RuntimeError("Settlement records are immutable")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise RuntimeError("Settlement records cannot be deleted")

    def __str__(self):
        number = getattr(self.obligation, "number", None) or str(self.obligation_id)
        return f"Settlement | {number} | {self.amount}"
