# ledger/services/notifications.py

"""
LEDGER NOTIFICATIONS (FIRE-AND-FORGET)

Events:
- created   (obligation created)
- overdue   (sweep promoted an obligation)
- settled   (final settlement recorded)

RULES:
- Scheduled with transaction.on_commit: a rolled-back ledger operation
  never notifies
- Delivery failures are logged, never raised back into the ledger
- Backend is pluggable via LEDGER["NOTIFIER_BACKEND"]
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.core.mail import send_mail
from django.db import transaction
from django.utils.module_loading import import_string

from ledger.conf import ledger_setting
from ledger.models import Obligation
from ledger.services.directory import get_directory

logger = logging.getLogger("ledger.notifications")

EVENT_CREATED = "created"
EVENT_OVERDUE = "overdue"
EVENT_SETTLED = "settled"

EVENTS = {EVENT_CREATED, EVENT_OVERDUE, EVENT_SETTLED}

_SUBJECTS = {
    EVENT_CREATED: "New {kind_label} {number}",
    EVENT_OVERDUE: "{kind_label} {number} is overdue",
    EVENT_SETTLED: "{kind_label} {number} has been settled",
}


class EmailNotifier:
    """
    Emails the counterparty when the directory knows an address.
    """

    def _message(self, *, event: str, obligation: Obligation, info: dict) -> tuple[str, str]:
        kind_label = obligation.get_kind_display()
        subject = _SUBJECTS[event].format(kind_label=kind_label, number=obligation.number)

        greeting = f"Hello {info.get('name')}," if info.get("name") else "Hello,"
        lines = [
            greeting,
            "",
            f"{kind_label}: {obligation.number}",
            f"Total: {obligation.total_amount} {obligation.currency}",
            f"Settled: {obligation.amount_settled} {obligation.currency}",
            f"Remaining: {obligation.remaining_amount} {obligation.currency}",
        ]
        if obligation.due_date:
            lines.append(f"Due date: {obligation.due_date.isoformat()}")
        lines.append(f"Status: {obligation.get_status_display()}")
        return subject, "\n".join(lines)

    def send(self, *, event: str, obligation: Obligation) -> bool:
        info = get_directory().get_display_info(obligation.counterparty_ref)
        recipient = (info.get("email") or "").strip()
        if not recipient:
            logger.info(
                "No email address for counterparty; notification skipped",
                extra={"event": event, "obligation_number": obligation.number},
            )
            return False

        subject, body = self._message(event=event, obligation=obligation, info=info)
        from_email = ledger_setting("NOTIFICATION_FROM_EMAIL") or settings.DEFAULT_FROM_EMAIL
        send_mail(subject, body, from_email, [recipient], fail_silently=False)
        return True


def _deliver(*, event: str, obligation_id) -> None:
    try:
        obligation = Obligation.objects.get(id=obligation_id)
        notifier = import_string(ledger_setting("NOTIFIER_BACKEND"))()
        notifier.send(event=event, obligation=obligation)
    except Exception:
        logger.exception(
            "Ledger notification failed",
            extra={"event": event, "obligation_id": str(obligation_id)},
        )


def notify_on_commit(*, event: str, obligation: Obligation) -> None:
    if event not in EVENTS:
        raise ValueError(f"Unknown ledger event: {event}")

    if not ledger_setting("NOTIFICATIONS_ENABLED"):
        return

    obligation_id = obligation.id
    transaction.on_commit(lambda: _deliver(event=event, obligation_id=obligation_id))
