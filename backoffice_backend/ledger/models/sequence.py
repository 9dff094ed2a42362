# ledger/models/sequence.py

from django.db import models


class NumberSequence(models.Model):
    """
    One counter row per (key, period).

    Only ledger.services.sequence_service touches last_value,
    always through a single-statement increment.
    """

    key = models.CharField(max_length=50)
    period = models.CharField(max_length=10)
    last_value = models.PositiveBigIntegerField(default=0)

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["key", "period"]
        constraints = [
            models.UniqueConstraint(
                fields=["key", "period"],
                name="uniq_number_sequence_key_period",
            ),
        ]

    def __str__(self):
        return f"{self.key}/{self.period} @ {self.last_value}"
