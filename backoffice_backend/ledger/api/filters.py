# ledger/api/filters.py

import django_filters

from ledger.kinds import KIND_CHOICES
from ledger.models import Obligation


class ObligationFilter(django_filters.FilterSet):
    kind = django_filters.ChoiceFilter(choices=KIND_CHOICES)
    status = django_filters.ChoiceFilter(choices=Obligation.STATUS_CHOICES)
    counterparty_ref = django_filters.CharFilter(field_name="counterparty_ref")
    number = django_filters.CharFilter(field_name="number", lookup_expr="icontains")
    account = django_filters.UUIDFilter(field_name="credit_account_id")
    due_before = django_filters.DateFilter(field_name="due_date", lookup_expr="lt")
    due_after = django_filters.DateFilter(field_name="due_date", lookup_expr="gte")

    class Meta:
        model = Obligation
        fields = [
            "kind",
            "status",
            "counterparty_ref",
            "number",
            "account",
            "due_before",
            "due_after",
        ]
