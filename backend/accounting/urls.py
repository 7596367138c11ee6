# accounting/urls.py
"""
URL configuration for accounting API.

Endpoints:
- /accounts/ - Chart of accounts, balances, statements, ledger pages
- /journal-entries/ - Journal entries with post/reverse/void actions
- /fiscal-years/, /fiscal-periods/ - Fiscal calendar and closing
- /reports/ - Trial balance, activity summary, P&L, balance sheet, period balances
"""

from django.urls import path

from .views import (
    # Account views
    AccountListCreateView,
    AccountImportView,
    AccountDetailView,
    AccountBalanceView,
    AccountStatementView,
    AccountLedgerView,
    # Journal entry views
    JournalEntryListCreateView,
    JournalEntryDetailView,
    JournalEntryPostView,
    JournalEntryReverseView,
    JournalEntryVoidView,
    JournalEntryValidateView,
    # Fiscal calendar views
    FiscalYearListCreateView,
    FiscalYearDetailView,
    FiscalYearCloseView,
    FiscalPeriodListView,
    CurrentFiscalPeriodView,
    FiscalPeriodCloseView,
    FiscalPeriodReopenView,
    # Reports
    TrialBalanceView,
    ActivitySummaryView,
    ProfitAndLossView,
    BalanceSheetView,
    PeriodBalancesView,
)

app_name = "accounting"

urlpatterns = [
    # ==========================================================================
    # Accounts (Chart of Accounts)
    # ==========================================================================
    path("accounts/", AccountListCreateView.as_view(), name="account-list-create"),
    path("accounts/import/", AccountImportView.as_view(), name="account-import"),
    path("accounts/<int:pk>/", AccountDetailView.as_view(), name="account-detail"),
    path("accounts/<int:pk>/balance/", AccountBalanceView.as_view(), name="account-balance"),
    path("accounts/<int:pk>/statement/", AccountStatementView.as_view(), name="account-statement"),
    path("accounts/<int:pk>/ledger/", AccountLedgerView.as_view(), name="account-ledger"),

    # ==========================================================================
    # Journal Entries
    # ==========================================================================
    path("journal-entries/", JournalEntryListCreateView.as_view(), name="journal-entry-list-create"),
    path("journal-entries/<int:pk>/", JournalEntryDetailView.as_view(), name="journal-entry-detail"),
    path("journal-entries/<int:pk>/post/", JournalEntryPostView.as_view(), name="journal-entry-post"),
    path("journal-entries/<int:pk>/reverse/", JournalEntryReverseView.as_view(), name="journal-entry-reverse"),
    path("journal-entries/<int:pk>/void/", JournalEntryVoidView.as_view(), name="journal-entry-void"),
    path("journal-entries/<int:pk>/validate/", JournalEntryValidateView.as_view(), name="journal-entry-validate"),

    # ==========================================================================
    # Fiscal Calendar
    # ==========================================================================
    path("fiscal-years/", FiscalYearListCreateView.as_view(), name="fiscal-year-list-create"),
    path("fiscal-years/<int:pk>/", FiscalYearDetailView.as_view(), name="fiscal-year-detail"),
    path("fiscal-years/<int:pk>/close/", FiscalYearCloseView.as_view(), name="fiscal-year-close"),
    path("fiscal-periods/", FiscalPeriodListView.as_view(), name="fiscal-period-list"),
    path("fiscal-periods/current/", CurrentFiscalPeriodView.as_view(), name="fiscal-period-current"),
    path("fiscal-periods/<int:pk>/close/", FiscalPeriodCloseView.as_view(), name="fiscal-period-close"),
    path("fiscal-periods/<int:pk>/reopen/", FiscalPeriodReopenView.as_view(), name="fiscal-period-reopen"),

    # ==========================================================================
    # Reports
    # ==========================================================================
    path("reports/trial-balance/", TrialBalanceView.as_view(), name="trial-balance"),
    path("reports/activity-summary/", ActivitySummaryView.as_view(), name="activity-summary"),
    path("reports/profit-and-loss/", ProfitAndLossView.as_view(), name="profit-and-loss"),
    path("reports/balance-sheet/", BalanceSheetView.as_view(), name="balance-sheet"),
    path("reports/period-balances/", PeriodBalancesView.as_view(), name="period-balances"),
]
