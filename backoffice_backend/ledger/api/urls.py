# ledger/api/urls.py

from django.urls import path

from ledger.api.views import (
    AccountStandingsReportView,
    AgingReportView,
    CounterpartyObligationsView,
    CounterpartySummaryView,
    CreditAccountDetailView,
    CreditAccountListCreateView,
    CreditAccountReconcileView,
    LedgerStatisticsView,
    ObligationCancelView,
    ObligationDetailView,
    ObligationDocumentView,
    ObligationLineItemsView,
    ObligationListCreateView,
    ObligationSettlementsView,
    OverdueObligationListView,
    RevenueReportView,
    SweepOverdueView,
)

urlpatterns = [
    # Obligations
    path("obligations/", ObligationListCreateView.as_view(), name="ledger-obligations"),
    path(
        "obligations/overdue/",
        OverdueObligationListView.as_view(),
        name="ledger-obligations-overdue",
    ),
    path(
        "obligations/sweep-overdue/",
        SweepOverdueView.as_view(),
        name="ledger-obligations-sweep-overdue",
    ),
    path(
        "obligations/<uuid:obligation_id>/",
        ObligationDetailView.as_view(),
        name="ledger-obligation-detail",
    ),
    path(
        "obligations/<uuid:obligation_id>/items/",
        ObligationLineItemsView.as_view(),
        name="ledger-obligation-items",
    ),
    path(
        "obligations/<uuid:obligation_id>/cancel/",
        ObligationCancelView.as_view(),
        name="ledger-obligation-cancel",
    ),
    path(
        "obligations/<uuid:obligation_id>/settlements/",
        ObligationSettlementsView.as_view(),
        name="ledger-obligation-settlements",
    ),
    path(
        "obligations/<uuid:obligation_id>/document/",
        ObligationDocumentView.as_view(),
        name="ledger-obligation-document",
    ),
    # Counterparties
    path(
        "counterparties/<str:counterparty_ref>/obligations/",
        CounterpartyObligationsView.as_view(),
        name="ledger-counterparty-obligations",
    ),
    path(
        "counterparties/<str:counterparty_ref>/summary/",
        CounterpartySummaryView.as_view(),
        name="ledger-counterparty-summary",
    ),
    # Credit accounts
    path("accounts/", CreditAccountListCreateView.as_view(), name="ledger-accounts"),
    path(
        "accounts/<uuid:account_id>/",
        CreditAccountDetailView.as_view(),
        name="ledger-account-detail",
    ),
    path(
        "accounts/<uuid:account_id>/reconcile/",
        CreditAccountReconcileView.as_view(),
        name="ledger-account-reconcile",
    ),
    # Reports
    path(
        "reports/statistics/",
        LedgerStatisticsView.as_view(),
        name="ledger-report-statistics",
    ),
    path("reports/aging/", AgingReportView.as_view(), name="ledger-report-aging"),
    path("reports/revenue/", RevenueReportView.as_view(), name="ledger-report-revenue"),
    path(
        "reports/accounts/",
        AccountStandingsReportView.as_view(),
        name="ledger-report-accounts",
    ),
]
