# ledger/conf.py

"""
LEDGER SETTINGS ACCESS

Reads the LEDGER dict from Django settings at call time
(so override_settings works in tests) and falls back to defaults.
"""

from __future__ import annotations

from django.conf import settings

DEFAULTS = {
    "DEFAULT_CURRENCY": "ILS",
    "NUMBER_WIDTH": 5,
    "DIRECTORY_BACKEND": "ledger.services.directory.DefaultCounterpartyDirectory",
    "NOTIFIER_BACKEND": "ledger.services.notifications.EmailNotifier",
    "NOTIFICATIONS_ENABLED": True,
    "NOTIFICATION_FROM_EMAIL": None,
}


def ledger_setting(name: str):
    if name not in DEFAULTS:
        raise KeyError(f"Unknown LEDGER setting: {name}")

    overrides = getattr(settings, "LEDGER", None) or {}
    return overrides.get(name, DEFAULTS[name])
