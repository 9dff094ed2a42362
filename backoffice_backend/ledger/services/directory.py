# ledger/services/directory.py

"""
COUNTERPARTY DIRECTORY (COLLABORATOR BOUNDARY)

The ledger stores counterparties as opaque references:

    user:<pk>        registered user (auth user model)
    account:<uuid>   credit account holder
    guest:<token>    walk-in / unregistered party

The directory answers two questions and nothing else:
- exists(ref)            -> bool
- get_display_info(ref)  -> {"ref", "type", "name", "email", "phone"}

Swap the backend with LEDGER["DIRECTORY_BACKEND"] (dotted path).
"""

from __future__ import annotations

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.utils.module_loading import import_string

from ledger.conf import ledger_setting
from ledger.models import CreditAccount

REF_USER = "user"
REF_ACCOUNT = "account"
REF_GUEST = "guest"


def split_ref(ref) -> tuple[str, str]:
    raw = (ref or "").strip()
    ref_type, sep, ident = raw.partition(":")
    if not sep or not ident.strip():
        return "", ""
    return ref_type.strip().lower(), ident.strip()


class DefaultCounterpartyDirectory:
    def _lookup_user(self, ident):
        User = get_user_model()
        try:
            return User.objects.filter(pk=ident).first()
        except (ValidationError, ValueError):
            return None

    def _lookup_account(self, ident):
        try:
            return CreditAccount.objects.filter(pk=ident).first()
        except (ValidationError, ValueError):
            return None

    def exists(self, ref) -> bool:
        ref_type, ident = split_ref(ref)
        if ref_type == REF_GUEST:
            return True
        if ref_type == REF_USER:
            return self._lookup_user(ident) is not None
        if ref_type == REF_ACCOUNT:
            return self._lookup_account(ident) is not None
        return False

    def get_display_info(self, ref) -> dict:
        ref_type, ident = split_ref(ref)
        info = {"ref": ref, "type": ref_type or None, "name": "", "email": "", "phone": ""}

        if ref_type == REF_GUEST:
            info["name"] = ident
        elif ref_type == REF_USER:
            user = self._lookup_user(ident)
            if user is not None:
                full_name = ""
                if hasattr(user, "get_full_name"):
                    full_name = (user.get_full_name() or "").strip()
                info["name"] = full_name or user.get_username()
                info["email"] = getattr(user, "email", "") or ""
        elif ref_type == REF_ACCOUNT:
            account = self._lookup_account(ident)
            if account is not None:
                info["name"] = account.display_name
                info["email"] = account.contact_email
                info["phone"] = account.contact_phone

        return info


def get_directory():
    backend_path = ledger_setting("DIRECTORY_BACKEND")
    return import_string(backend_path)()
