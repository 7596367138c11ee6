# accounting/views.py
"""
Thin views that delegate to the commands layer.

Views handle: HTTP parsing, tenant resolution, response formatting.
Commands handle: business logic, validation, events.

All mutations go through commands; views never call .save() on models.
Failed commands are rendered as {"error": {"kind", "message", "details"}}
with the command's status code.
"""

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from tenant.resolution import resolve_tenant
from . import commands
from .serializers import (
    AccountCreateSerializer,
    AccountImportSerializer,
    AccountSerializer,
    AccountTreeNodeSerializer,
    AccountUpdateSerializer,
    FiscalPeriodSerializer,
    FiscalYearCloseSerializer,
    FiscalYearCreateSerializer,
    FiscalYearSerializer,
    FiscalYearUpdateSerializer,
    JournalEntryCreateSerializer,
    JournalEntryReverseSerializer,
    JournalEntrySerializer,
    JournalEntryUpdateSerializer,
    LedgerEntrySerializer,
    PeriodCloseSerializer,
)


def _error_response(result) -> Response:
    return Response(result.to_error_dict(), status=result.status_code)


def _respond(result, serializer_class=None, many: bool = False) -> Response:
    if not result.success:
        return _error_response(result)
    data = result.data
    if serializer_class is not None:
        data = serializer_class(data, many=many).data
    return Response(data, status=result.status_code)


def _flag(request, name: str) -> bool:
    return request.query_params.get(name, "").lower() in ("1", "true", "yes")


# =============================================================================
# Account Views
# =============================================================================

class AccountListCreateView(APIView):
    """
    GET /api/accounting/accounts/ -> list accounts (?category=, ?active_only=, ?tree=)
    POST /api/accounting/accounts/ -> create account
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        tenant = resolve_tenant(request)
        tree = _flag(request, "tree")
        result = commands.query_accounts(
            tenant,
            category=request.query_params.get("category") or None,
            active_only=_flag(request, "active_only"),
            tree=tree,
        )
        return _respond(result, AccountTreeNodeSerializer if tree else AccountSerializer, many=True)

    def post(self, request):
        tenant = resolve_tenant(request)
        input_serializer = AccountCreateSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)

        result = commands.create_account(tenant, **input_serializer.validated_data)
        return _respond(result, AccountSerializer)


class AccountImportView(APIView):
    """POST /api/accounting/accounts/import/ -> create many accounts atomically"""
    permission_classes = [IsAuthenticated]

    def post(self, request):
        tenant = resolve_tenant(request)
        input_serializer = AccountImportSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)

        result = commands.import_accounts(tenant, rows=input_serializer.validated_data["accounts"])
        return _respond(result, AccountSerializer, many=True)


class AccountDetailView(APIView):
    """
    GET /api/accounting/accounts/<id>/ -> retrieve account
    PATCH /api/accounting/accounts/<id>/ -> update account
    DELETE /api/accounting/accounts/<id>/ -> deactivate account
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        tenant = resolve_tenant(request)
        return _respond(commands.query_account(tenant, account_id=pk), AccountSerializer)

    def patch(self, request, pk):
        tenant = resolve_tenant(request)
        input_serializer = AccountUpdateSerializer(data=request.data, partial=True)
        input_serializer.is_valid(raise_exception=True)

        result = commands.update_account(tenant, pk, **input_serializer.validated_data)
        return _respond(result, AccountSerializer)

    def delete(self, request, pk):
        tenant = resolve_tenant(request)
        return _respond(commands.delete_account(tenant, pk), AccountSerializer)


class AccountBalanceView(APIView):
    """GET /api/accounting/accounts/<id>/balance/?as_of=YYYY-MM-DD"""
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        tenant = resolve_tenant(request)
        result = commands.query_balance(tenant, account_id=pk, as_of=request.query_params.get("as_of"))
        return _respond(result)


class AccountStatementView(APIView):
    """GET /api/accounting/accounts/<id>/statement/?from_date=&to_date="""
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        tenant = resolve_tenant(request)
        result = commands.query_statement(
            tenant,
            account_id=pk,
            from_date=request.query_params.get("from_date"),
            to_date=request.query_params.get("to_date"),
        )
        return _respond(result)


class AccountLedgerView(APIView):
    """GET /api/accounting/accounts/<id>/ledger/?from_date=&to_date=&limit=&offset="""
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        tenant = resolve_tenant(request)
        params = request.query_params
        result = commands.query_ledger_entries(
            tenant,
            account_id=pk,
            from_date=params.get("from_date"),
            to_date=params.get("to_date"),
            limit=params.get("limit"),
            offset=params.get("offset"),
        )
        return _respond(result, LedgerEntrySerializer, many=True)


# =============================================================================
# Journal Entry Views
# =============================================================================

class JournalEntryListCreateView(APIView):
    """
    GET /api/accounting/journal-entries/ -> list entries (?status=, ?from_date=, ?to_date=)
    POST /api/accounting/journal-entries/ -> create a draft entry
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        tenant = resolve_tenant(request)
        params = request.query_params
        result = commands.query_journal_entries(
            tenant,
            status=params.get("status") or None,
            from_date=params.get("from_date"),
            to_date=params.get("to_date"),
            source_type=params.get("source_type") or None,
            limit=params.get("limit"),
            offset=params.get("offset"),
        )
        return _respond(result, JournalEntrySerializer, many=True)

    def post(self, request):
        tenant = resolve_tenant(request)
        input_serializer = JournalEntryCreateSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)

        result = commands.create_journal_entry(tenant, **input_serializer.validated_data)
        return _respond(result, JournalEntrySerializer)


class JournalEntryDetailView(APIView):
    """
    GET /api/accounting/journal-entries/<id>/ -> retrieve entry with lines
    PATCH /api/accounting/journal-entries/<id>/ -> edit a draft
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        tenant = resolve_tenant(request)
        return _respond(commands.query_journal_entry(tenant, entry_id=pk), JournalEntrySerializer)

    def patch(self, request, pk):
        tenant = resolve_tenant(request)
        input_serializer = JournalEntryUpdateSerializer(data=request.data, partial=True)
        input_serializer.is_valid(raise_exception=True)

        result = commands.update_journal_entry(tenant, pk, **input_serializer.validated_data)
        return _respond(result, JournalEntrySerializer)


class JournalEntryPostView(APIView):
    """POST /api/accounting/journal-entries/<id>/post/"""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        tenant = resolve_tenant(request)
        return _respond(commands.post_journal_entry(tenant, pk), JournalEntrySerializer)


class JournalEntryReverseView(APIView):
    """POST /api/accounting/journal-entries/<id>/reverse/ -> draft reversal"""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        tenant = resolve_tenant(request)
        input_serializer = JournalEntryReverseSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)

        result = commands.reverse_journal_entry(tenant, pk, **input_serializer.validated_data)
        if not result.success:
            return _error_response(result)
        return Response(
            {
                "original": JournalEntrySerializer(result.data["original"]).data,
                "reversal": JournalEntrySerializer(result.data["reversal"]).data,
            },
            status=status.HTTP_201_CREATED,
        )


class JournalEntryVoidView(APIView):
    """POST /api/accounting/journal-entries/<id>/void/"""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        tenant = resolve_tenant(request)
        return _respond(commands.void_journal_entry(tenant, pk), JournalEntrySerializer)


class JournalEntryValidateView(APIView):
    """GET /api/accounting/journal-entries/<id>/validate/ -> dry-run posting checks"""
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        tenant = resolve_tenant(request)
        return _respond(commands.validate_journal_entry(tenant, pk))


# =============================================================================
# Fiscal Calendar Views
# =============================================================================

class FiscalYearListCreateView(APIView):
    """
    GET /api/accounting/fiscal-years/ -> years with their periods
    POST /api/accounting/fiscal-years/ -> create a year (monthly periods by default)
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        tenant = resolve_tenant(request)
        return _respond(commands.query_fiscal_years(tenant), FiscalYearSerializer, many=True)

    def post(self, request):
        tenant = resolve_tenant(request)
        input_serializer = FiscalYearCreateSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)

        result = commands.create_fiscal_year(tenant, **input_serializer.validated_data)
        return _respond(result, FiscalYearSerializer)


class FiscalYearDetailView(APIView):
    """PATCH /api/accounting/fiscal-years/<id>/ -> partial update (dates only while the year has no periods)"""
    permission_classes = [IsAuthenticated]

    def patch(self, request, pk):
        tenant = resolve_tenant(request)
        input_serializer = FiscalYearUpdateSerializer(data=request.data, partial=True)
        input_serializer.is_valid(raise_exception=True)

        result = commands.update_fiscal_year(tenant, pk, **input_serializer.validated_data)
        return _respond(result, FiscalYearSerializer)


class FiscalYearCloseView(APIView):
    """POST /api/accounting/fiscal-years/<id>/close/"""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        tenant = resolve_tenant(request)
        input_serializer = FiscalYearCloseSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)

        result = commands.close_fiscal_year(tenant, pk, **input_serializer.validated_data)
        return _respond(result, FiscalYearSerializer)


class FiscalPeriodListView(APIView):
    """GET /api/accounting/fiscal-periods/?fiscal_year_id=&status= -> periods, newest first"""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        tenant = resolve_tenant(request)
        result = commands.query_periods(
            tenant,
            fiscal_year_id=request.query_params.get("fiscal_year_id") or None,
            status=request.query_params.get("status") or None,
        )
        return _respond(result, FiscalPeriodSerializer, many=True)


class CurrentFiscalPeriodView(APIView):
    """GET /api/accounting/fiscal-periods/current/ -> the open period covering today"""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        tenant = resolve_tenant(request)
        return _respond(commands.query_current_period(tenant), FiscalPeriodSerializer)


class FiscalPeriodCloseView(APIView):
    """POST /api/accounting/fiscal-periods/<id>/close/ {"force": false}"""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        tenant = resolve_tenant(request)
        input_serializer = PeriodCloseSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)

        result = commands.close_period(tenant, pk, **input_serializer.validated_data)
        return _respond(result, FiscalPeriodSerializer)


class FiscalPeriodReopenView(APIView):
    """POST /api/accounting/fiscal-periods/<id>/reopen/"""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        tenant = resolve_tenant(request)
        return _respond(commands.reopen_period(tenant, pk), FiscalPeriodSerializer)


# =============================================================================
# Report Views
# =============================================================================

class TrialBalanceView(APIView):
    """GET /api/accounting/reports/trial-balance/?as_of_date=&hide_zero="""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        tenant = resolve_tenant(request)
        result = commands.query_trial_balance(
            tenant,
            as_of_date=request.query_params.get("as_of_date"),
            hide_zero=_flag(request, "hide_zero"),
        )
        return _respond(result)


class ActivitySummaryView(APIView):
    """GET /api/accounting/reports/activity-summary/?from_date=&to_date="""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        tenant = resolve_tenant(request)
        result = commands.query_activity_summary(
            tenant,
            from_date=request.query_params.get("from_date"),
            to_date=request.query_params.get("to_date"),
        )
        return _respond(result)


class ProfitAndLossView(APIView):
    """GET /api/accounting/reports/profit-and-loss/?from_date=&to_date= (both required)"""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        tenant = resolve_tenant(request)
        result = commands.query_profit_and_loss(
            tenant,
            from_date=request.query_params.get("from_date"),
            to_date=request.query_params.get("to_date"),
        )
        return _respond(result)


class BalanceSheetView(APIView):
    """GET /api/accounting/reports/balance-sheet/?as_of= (defaults to today)"""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        tenant = resolve_tenant(request)
        return _respond(commands.query_balance_sheet(tenant, as_of=request.query_params.get("as_of")))


class PeriodBalancesView(APIView):
    """GET /api/accounting/reports/period-balances/?fiscal_period_id=&as_of_date=&category="""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        tenant = resolve_tenant(request)
        params = request.query_params
        result = commands.query_period_balances(
            tenant,
            fiscal_period_id=params.get("fiscal_period_id") or None,
            as_of_date=params.get("as_of_date"),
            category=params.get("category") or None,
        )
        return _respond(result)
