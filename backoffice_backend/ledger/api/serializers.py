# ledger/api/serializers.py

from rest_framework import serializers

from ledger.kinds import HOLDER_CHOICES, HOLDER_CUSTOMER, KIND_CHOICES
from ledger.models import CreditAccount, Obligation, ObligationLineItem, Settlement


# ============================================================
# LINE ITEMS
# ============================================================


class LineItemInputSerializer(serializers.Serializer):
    description = serializers.CharField(max_length=255)
    product_ref = serializers.CharField(max_length=120, required=False, allow_blank=True)
    quantity = serializers.IntegerField(min_value=1, default=1)
    unit_price = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0)
    discount_amount = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=0, required=False, default=0
    )
    tax_amount = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=0, required=False, default=0
    )


class LineItemSerializer(serializers.ModelSerializer):
    line_total = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = ObligationLineItem
        fields = [
            "id",
            "position",
            "description",
            "product_ref",
            "quantity",
            "unit_price",
            "discount_amount",
            "tax_amount",
            "line_total",
        ]


class LineItemsUpdateSerializer(serializers.Serializer):
    items = LineItemInputSerializer(many=True, allow_empty=False)


# ============================================================
# OBLIGATIONS
# ============================================================


class ObligationCreateSerializer(serializers.Serializer):
    kind = serializers.ChoiceField(choices=KIND_CHOICES)
    counterparty_ref = serializers.CharField(max_length=120, required=False, allow_blank=True)
    total_amount = serializers.DecimalField(
        max_digits=14, decimal_places=2, required=False, allow_null=True
    )
    due_date = serializers.DateField(required=False, allow_null=True)
    account_id = serializers.UUIDField(required=False, allow_null=True)
    currency = serializers.CharField(max_length=3, required=False, allow_blank=True)
    counterparty_name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    counterparty_phone = serializers.CharField(max_length=50, required=False, allow_blank=True)
    billing_address = serializers.CharField(required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    items = LineItemInputSerializer(many=True, required=False)

    def validate(self, attrs):
        if attrs.get("total_amount") is None and not attrs.get("items"):
            raise serializers.ValidationError(
                "Provide total_amount or at least one line item."
            )
        if not attrs.get("counterparty_ref") and not attrs.get("account_id"):
            raise serializers.ValidationError(
                "Provide counterparty_ref or account_id."
            )
        return attrs


class ObligationDetailsUpdateSerializer(serializers.Serializer):
    due_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class ObligationSerializer(serializers.ModelSerializer):
    remaining_amount = serializers.DecimalField(
        max_digits=14, decimal_places=2, read_only=True
    )
    is_overdue = serializers.BooleanField(read_only=True)
    days_overdue = serializers.IntegerField(read_only=True)
    items = LineItemSerializer(many=True, read_only=True)

    class Meta:
        model = Obligation
        fields = [
            "id",
            "number",
            "kind",
            "status",
            "counterparty_ref",
            "counterparty_name",
            "counterparty_phone",
            "billing_address",
            "credit_account",
            "currency",
            "total_amount",
            "amount_settled",
            "remaining_amount",
            "due_date",
            "is_overdue",
            "days_overdue",
            "notes",
            "created_by",
            "created_at",
            "updated_at",
            "settled_at",
            "cancelled_at",
            "items",
        ]
        read_only_fields = fields


# ============================================================
# SETTLEMENTS
# ============================================================


class SettlementCreateSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    method = serializers.ChoiceField(choices=Settlement.METHOD_CHOICES, default=Settlement.METHOD_CASH)
    reference_number = serializers.CharField(max_length=100, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    settled_at = serializers.DateTimeField(required=False)


class SettlementSerializer(serializers.ModelSerializer):
    obligation_number = serializers.CharField(source="obligation.number", read_only=True)

    class Meta:
        model = Settlement
        fields = [
            "id",
            "obligation",
            "obligation_number",
            "amount",
            "method",
            "recorded_by",
            "reference_number",
            "notes",
            "settled_at",
            "created_at",
        ]
        read_only_fields = fields


# ============================================================
# CREDIT ACCOUNTS
# ============================================================


class CreditAccountCreateSerializer(serializers.Serializer):
    display_name = serializers.CharField(max_length=200)
    credit_limit = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0)
    holder_kind = serializers.ChoiceField(choices=HOLDER_CHOICES, default=HOLDER_CUSTOMER)
    holder_ref = serializers.CharField(max_length=120, required=False, allow_blank=True)
    contact_phone = serializers.CharField(max_length=50, required=False, allow_blank=True)
    contact_email = serializers.EmailField(required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class CreditAccountUpdateSerializer(serializers.Serializer):
    credit_limit = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=0, required=False
    )
    status = serializers.ChoiceField(choices=CreditAccount.STATUS_CHOICES, required=False)


class CreditAccountSerializer(serializers.ModelSerializer):
    available_credit = serializers.DecimalField(
        max_digits=14, decimal_places=2, read_only=True
    )

    class Meta:
        model = CreditAccount
        fields = [
            "id",
            "display_name",
            "holder_kind",
            "holder_ref",
            "contact_phone",
            "contact_email",
            "notes",
            "credit_limit",
            "current_balance",
            "available_credit",
            "status",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields
