# ledger/api/views.py

"""
LEDGER API

Thin HTTP layer over ledger.services.

Errors:
- Service errors -> {"code": <stable code>, "detail": <message>} + mapped status
- Serializer errors -> DRF standard 400
"""

from __future__ import annotations

from datetime import date, datetime, time

from django.db import transaction
from django.utils import timezone
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema
from rest_framework import serializers, status
from rest_framework.generics import GenericAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ledger.api.filters import ObligationFilter
from ledger.api.serializers import (
    CreditAccountCreateSerializer,
    CreditAccountSerializer,
    CreditAccountUpdateSerializer,
    LineItemsUpdateSerializer,
    ObligationCreateSerializer,
    ObligationDetailsUpdateSerializer,
    ObligationSerializer,
    SettlementCreateSerializer,
    SettlementSerializer,
)
from ledger.models import CreditAccount, Obligation
from ledger.services import credit_account_service, obligation_service, reporting_service
from ledger.services.exceptions import LedgerServiceError, LedgerValidationError
from ledger.services.overdue_sweeper import sweep_overdue
from ledger.services.settlement_service import record_settlement


def _error(exc: LedgerServiceError) -> Response:
    return Response({"code": exc.code, "detail": str(exc)}, status=exc.http_status)


def _query_date(request, name: str) -> date | None:
    raw = (request.query_params.get(name) or "").strip()
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise LedgerValidationError(f"Invalid {name} format (YYYY-MM-DD)")


def _end_of_day(d: date) -> datetime:
    return timezone.make_aware(datetime.combine(d, time.max), timezone.get_current_timezone())


def _obligation_data(obligation_id) -> dict:
    obligation = (
        Obligation.objects.select_related("credit_account")
        .prefetch_related("items")
        .get(id=obligation_id)
    )
    return ObligationSerializer(obligation).data


# ============================================================
# OBLIGATIONS
# ============================================================


class ObligationListCreateView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = ObligationSerializer
    filterset_class = ObligationFilter
    queryset = Obligation.objects.select_related("credit_account").prefetch_related("items")

    @extend_schema(tags=["ledger"], responses=ObligationSerializer(many=True))
    def get(self, request):
        qs = self.filter_queryset(self.get_queryset()).order_by("-created_at")
        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(ObligationSerializer(page, many=True).data)
        return Response(ObligationSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["ledger"],
        request=ObligationCreateSerializer,
        responses={201: ObligationSerializer},
    )
    def post(self, request):
        s = ObligationCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        try:
            obligation = obligation_service.create_obligation(
                kind=data["kind"],
                counterparty_ref=data.get("counterparty_ref", ""),
                total_amount=data.get("total_amount"),
                due_date=data.get("due_date"),
                account_id=data.get("account_id"),
                items=data.get("items"),
                currency=data.get("currency") or None,
                counterparty_name=data.get("counterparty_name", ""),
                counterparty_phone=data.get("counterparty_phone", ""),
                billing_address=data.get("billing_address", ""),
                notes=data.get("notes", ""),
                created_by=request.user,
            )
        except LedgerServiceError as exc:
            return _error(exc)

        return Response(_obligation_data(obligation.id), status=status.HTTP_201_CREATED)


class ObligationDetailView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = ObligationSerializer

    @extend_schema(tags=["ledger"], responses=ObligationSerializer)
    def get(self, request, obligation_id):
        try:
            obligation = obligation_service.get_obligation(obligation_id=obligation_id)
        except LedgerServiceError as exc:
            return _error(exc)
        return Response(_obligation_data(obligation.id), status=status.HTTP_200_OK)

    @extend_schema(
        tags=["ledger"],
        request=ObligationDetailsUpdateSerializer,
        responses=ObligationSerializer,
    )
    def patch(self, request, obligation_id):
        s = ObligationDetailsUpdateSerializer(data=request.data, partial=True)
        s.is_valid(raise_exception=True)

        try:
            obligation = obligation_service.update_obligation_details(
                obligation_id=obligation_id,
                **s.validated_data,
            )
        except LedgerServiceError as exc:
            return _error(exc)
        return Response(_obligation_data(obligation.id), status=status.HTTP_200_OK)


class ObligationLineItemsView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = LineItemsUpdateSerializer

    @extend_schema(
        tags=["ledger"],
        request=LineItemsUpdateSerializer,
        responses=ObligationSerializer,
    )
    def put(self, request, obligation_id):
        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)

        try:
            obligation = obligation_service.update_line_items(
                obligation_id=obligation_id,
                items=s.validated_data["items"],
            )
        except LedgerServiceError as exc:
            return _error(exc)
        return Response(_obligation_data(obligation.id), status=status.HTTP_200_OK)


class ObligationCancelView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = ObligationSerializer

    @extend_schema(tags=["ledger"], request=None, responses=ObligationSerializer)
    def post(self, request, obligation_id):
        try:
            obligation = obligation_service.cancel_obligation(obligation_id=obligation_id)
        except LedgerServiceError as exc:
            return _error(exc)
        return Response(_obligation_data(obligation.id), status=status.HTTP_200_OK)


class ObligationSettlementsView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = SettlementSerializer

    @extend_schema(tags=["ledger"], responses=SettlementSerializer(many=True))
    def get(self, request, obligation_id):
        try:
            qs = obligation_service.list_settlements(obligation_id=obligation_id)
        except LedgerServiceError as exc:
            return _error(exc)
        return Response(
            SettlementSerializer(qs.select_related("obligation"), many=True).data,
            status=status.HTTP_200_OK,
        )

    @extend_schema(
        tags=["ledger"],
        request=SettlementCreateSerializer,
        responses={201: SettlementSerializer},
    )
    def post(self, request, obligation_id):
        s = SettlementCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        try:
            settlement = record_settlement(
                obligation_id=obligation_id,
                amount=data["amount"],
                method=data["method"],
                recorded_by=request.user,
                reference_number=data.get("reference_number", ""),
                notes=data.get("notes", ""),
                settled_at=data.get("settled_at"),
            )
        except LedgerServiceError as exc:
            return _error(exc)

        return Response(SettlementSerializer(settlement).data, status=status.HTTP_201_CREATED)


class ObligationDocumentView(GenericAPIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["ledger"], responses={200: OpenApiTypes.OBJECT})
    def get(self, request, obligation_id):
        try:
            snapshot = obligation_service.build_document_snapshot(obligation_id=obligation_id)
        except LedgerServiceError as exc:
            return _error(exc)
        return Response(snapshot, status=status.HTTP_200_OK)


class OverdueObligationListView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = ObligationSerializer

    @extend_schema(tags=["ledger"], responses=ObligationSerializer(many=True))
    def get(self, request):
        kind = (request.query_params.get("kind") or "").strip() or None
        qs = obligation_service.list_overdue(kind=kind).prefetch_related("items")
        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(ObligationSerializer(page, many=True).data)
        return Response(ObligationSerializer(qs, many=True).data, status=status.HTTP_200_OK)


class SweepOverdueSerializer(serializers.Serializer):
    as_of = serializers.DateField(required=False)
    dry_run = serializers.BooleanField(required=False, default=False)


class SweepOverdueView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = SweepOverdueSerializer

    @extend_schema(tags=["ledger"], request=SweepOverdueSerializer, responses={200: OpenApiTypes.OBJECT})
    def post(self, request):
        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        as_of = data.get("as_of")
        now = _end_of_day(as_of) if as_of else None
        result = sweep_overdue(now=now, dry_run=data["dry_run"])
        return Response(result.as_dict(), status=status.HTTP_200_OK)


# ============================================================
# COUNTERPARTIES
# ============================================================


class CounterpartyObligationsView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = ObligationSerializer

    @extend_schema(tags=["ledger"], responses=ObligationSerializer(many=True))
    def get(self, request, counterparty_ref):
        qs = obligation_service.list_by_counterparty(
            counterparty_ref=counterparty_ref,
            status=(request.query_params.get("status") or "").strip() or None,
            kind=(request.query_params.get("kind") or "").strip() or None,
        ).prefetch_related("items")
        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(ObligationSerializer(page, many=True).data)
        return Response(ObligationSerializer(qs, many=True).data, status=status.HTTP_200_OK)


class CounterpartySummaryView(GenericAPIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["ledger"], responses={200: OpenApiTypes.OBJECT})
    def get(self, request, counterparty_ref):
        return Response(
            reporting_service.get_counterparty_summary(counterparty_ref=counterparty_ref),
            status=status.HTTP_200_OK,
        )


# ============================================================
# CREDIT ACCOUNTS
# ============================================================


def _account_payload(account: CreditAccount) -> dict:
    standing = credit_account_service.get_standing(account_id=account.id)
    data = dict(CreditAccountSerializer(account).data)
    data["standing"] = {
        "balance": str(standing.balance),
        "limit": str(standing.limit),
        "available": str(standing.available),
    }
    return data


class CreditAccountListCreateView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = CreditAccountSerializer

    @extend_schema(tags=["ledger"], responses=CreditAccountSerializer(many=True))
    def get(self, request):
        qs = CreditAccount.objects.all().order_by("display_name")
        holder_kind = (request.query_params.get("holder_kind") or "").strip()
        account_status = (request.query_params.get("status") or "").strip()
        if holder_kind:
            qs = qs.filter(holder_kind=holder_kind)
        if account_status:
            qs = qs.filter(status=account_status)
        return Response(CreditAccountSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["ledger"],
        request=CreditAccountCreateSerializer,
        responses={201: CreditAccountSerializer},
    )
    def post(self, request):
        s = CreditAccountCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        try:
            account = credit_account_service.open_credit_account(**s.validated_data)
        except LedgerServiceError as exc:
            return _error(exc)
        return Response(CreditAccountSerializer(account).data, status=status.HTTP_201_CREATED)


class CreditAccountDetailView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = CreditAccountSerializer

    @extend_schema(tags=["ledger"], responses={200: OpenApiTypes.OBJECT})
    def get(self, request, account_id):
        try:
            account = credit_account_service.get_account(account_id)
        except LedgerServiceError as exc:
            return _error(exc)
        return Response(_account_payload(account), status=status.HTTP_200_OK)

    @extend_schema(tags=["ledger"], request=CreditAccountUpdateSerializer, responses={200: OpenApiTypes.OBJECT})
    def patch(self, request, account_id):
        s = CreditAccountUpdateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        try:
            with transaction.atomic():
                account = credit_account_service.get_account(account_id)
                if "credit_limit" in data:
                    account = credit_account_service.update_credit_limit(
                        account_id=account.id,
                        credit_limit=data["credit_limit"],
                    )
                if "status" in data:
                    account = credit_account_service.set_account_status(
                        account_id=account.id,
                        status=data["status"],
                    )
        except LedgerServiceError as exc:
            return _error(exc)
        return Response(_account_payload(account), status=status.HTTP_200_OK)


class CreditAccountReconcileView(GenericAPIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["ledger"], request=None, responses={200: OpenApiTypes.OBJECT})
    def post(self, request, account_id):
        dry_run = str(request.query_params.get("dry_run", "")).lower() in ("1", "true", "yes")
        try:
            result = credit_account_service.reconcile_balance(
                account_id=account_id,
                dry_run=dry_run,
            )
        except LedgerServiceError as exc:
            return _error(exc)

        return Response(
            {
                "account_id": result.account_id,
                "stored_balance": str(result.stored_balance),
                "computed_balance": str(result.computed_balance),
                "drift": str(result.drift),
                "applied": result.applied,
                "within_limit": result.within_limit,
                "dry_run": dry_run,
            },
            status=status.HTTP_200_OK,
        )


# ============================================================
# REPORTS (READ-ONLY)
# ============================================================


class LedgerStatisticsView(GenericAPIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["ledger-reports"], responses={200: OpenApiTypes.OBJECT})
    def get(self, request):
        try:
            data = reporting_service.get_ledger_statistics(
                kind=(request.query_params.get("kind") or "").strip() or None,
                date_from=_query_date(request, "date_from"),
                date_to=_query_date(request, "date_to"),
            )
        except LedgerServiceError as exc:
            return _error(exc)
        return Response(data, status=status.HTTP_200_OK)


class AgingReportView(GenericAPIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["ledger-reports"], responses={200: OpenApiTypes.OBJECT})
    def get(self, request):
        try:
            data = reporting_service.get_aging_report(
                as_of=_query_date(request, "as_of"),
                kind=(request.query_params.get("kind") or "").strip() or None,
            )
        except LedgerServiceError as exc:
            return _error(exc)
        return Response(data, status=status.HTTP_200_OK)


class RevenueReportView(GenericAPIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["ledger-reports"], responses={200: OpenApiTypes.OBJECT})
    def get(self, request):
        try:
            data = reporting_service.get_revenue_by_period(
                group_by=(request.query_params.get("group_by") or "month").strip(),
                date_from=_query_date(request, "date_from"),
                date_to=_query_date(request, "date_to"),
                kind=(request.query_params.get("kind") or "").strip() or None,
            )
        except LedgerServiceError as exc:
            return _error(exc)
        return Response(data, status=status.HTTP_200_OK)


class AccountStandingsReportView(GenericAPIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["ledger-reports"], responses={200: OpenApiTypes.OBJECT})
    def get(self, request):
        data = reporting_service.get_account_standings(
            holder_kind=(request.query_params.get("holder_kind") or "").strip() or None,
            status=(request.query_params.get("status") or "").strip() or None,
        )
        return Response({"accounts": data}, status=status.HTTP_200_OK)
