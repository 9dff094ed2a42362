# ledger/apps.py

"""
LEDGER APP CONFIG

Obligation & Settlement Ledger:
- Obligations (invoices, customer debts, trader charges)
- Settlements (immutable payment events)
- Credit accounts (limit + running balance)
- Numbering sequences, overdue sweep, read-only reporting
"""

from django.apps import AppConfig


class LedgerConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "ledger"
    verbose_name = "Obligation & Settlement Ledger"
