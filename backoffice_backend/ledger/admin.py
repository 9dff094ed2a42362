# ledger/admin.py

from django.contrib import admin

from ledger.models import (
    CreditAccount,
    NumberSequence,
    Obligation,
    ObligationLineItem,
    Settlement,
)
from ledger.services.obligation_service import EDITABLE_DETAIL_STATES

# ============================================================
# OBLIGATION
# ============================================================


class ObligationLineItemInline(admin.TabularInline):
    model = ObligationLineItem
    extra = 0
    fields = (
        "position",
        "description",
        "product_ref",
        "quantity",
        "unit_price",
        "discount_amount",
        "tax_amount",
    )
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class SettlementInline(admin.TabularInline):
    model = Settlement
    extra = 0
    fields = ("amount", "method", "reference_number", "recorded_by", "settled_at")
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Obligation)
class ObligationAdmin(admin.ModelAdmin):
    list_display = (
        "number",
        "kind",
        "counterparty_ref",
        "status",
        "total_amount",
        "amount_settled",
        "due_date",
        "created_at",
    )
    list_filter = ("kind", "status", "currency")
    search_fields = ("number", "counterparty_ref", "counterparty_name")
    ordering = ("-created_at",)
    inlines = [ObligationLineItemInline, SettlementInline]

    # Amounts and status move only through ledger services.
    readonly_fields = (
        "number",
        "kind",
        "counterparty_ref",
        "credit_account",
        "total_amount",
        "amount_settled",
        "currency",
        "status",
        "created_by",
        "created_at",
        "updated_at",
        "settled_at",
        "cancelled_at",
    )

    # Editable only while details are editable through the service.
    detail_fields = (
        "counterparty_name",
        "counterparty_phone",
        "billing_address",
        "notes",
        "due_date",
    )

    def get_readonly_fields(self, request, obj=None):
        fields = super().get_readonly_fields(request, obj)
        if obj is not None and obj.status not in EDITABLE_DETAIL_STATES:
            return (*fields, *self.detail_fields)
        return fields

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# ============================================================
# SETTLEMENT (IMMUTABLE)
# ============================================================


@admin.register(Settlement)
class SettlementAdmin(admin.ModelAdmin):
    list_display = ("obligation", "amount", "method", "reference_number", "settled_at")
    list_filter = ("method",)
    search_fields = ("obligation__number", "reference_number")
    ordering = ("-settled_at",)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# ============================================================
# CREDIT ACCOUNT
# ============================================================


@admin.register(CreditAccount)
class CreditAccountAdmin(admin.ModelAdmin):
    list_display = (
        "display_name",
        "holder_kind",
        "status",
        "credit_limit",
        "current_balance",
        "updated_at",
    )
    list_filter = ("holder_kind", "status")
    search_fields = ("display_name", "holder_ref", "contact_phone", "contact_email")
    ordering = ("display_name",)
    readonly_fields = ("current_balance", "created_at", "updated_at")


# ============================================================
# NUMBER SEQUENCE
# ============================================================


@admin.register(NumberSequence)
class NumberSequenceAdmin(admin.ModelAdmin):
    list_display = ("key", "period", "last_value", "updated_at")
    list_filter = ("key",)
    ordering = ("key", "period")
    readonly_fields = ("key", "period", "last_value", "updated_at")

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
