# tests/test_reports.py
"""
Tests for the trial balance, activity reports and financial statements.
"""

from datetime import date
from decimal import Decimal

import pytest

from accounting import commands, journal, periods, registry, reports
from accounting.exceptions import NotFoundError, ValidationError
from accounting.models import AccountType


def row_for(trial_balance, code):
    return next(row for row in trial_balance["accounts"] if row["account_code"] == code)


@pytest.fixture
def month_of_trading(fiscal_year, cash_account, payable_account, revenue_account, expense_account, make_entry):
    make_entry(cash_account, revenue_account, "1000.00", entry_date=date(2024, 1, 10))
    make_entry(revenue_account, cash_account, "200.00", entry_date=date(2024, 1, 12))
    make_entry(expense_account, payable_account, "450.00", entry_date=date(2024, 1, 20))
    make_entry(cash_account, revenue_account, "75.00", entry_date=date(2024, 2, 3))


# =============================================================================
# Trial Balance
# =============================================================================

@pytest.mark.django_db
class TestTrialBalance:
    """Debits equal credits after any sequence of posts."""

    def test_balances(self, tenant, month_of_trading):
        tb = reports.get_trial_balance(tenant)

        assert tb["is_balanced"] is True
        assert tb["total_debit"] == tb["total_credit"] == Decimal("1325.00")
        assert tb["difference"] == Decimal("0.00")

    def test_credit_normal_row(self, tenant, month_of_trading):
        tb = reports.get_trial_balance(tenant, as_of_date=date(2024, 1, 31))

        revenue = row_for(tb, "4000")
        assert revenue["balance"] == Decimal("800.00")
        assert revenue["credit_balance"] == Decimal("800.00")
        assert revenue["debit_balance"] == Decimal("0.00")

    def test_as_of_date_excludes_later_postings(self, tenant, month_of_trading):
        january = reports.get_trial_balance(tenant, as_of_date=date(2024, 1, 31))
        full = reports.get_trial_balance(tenant)

        assert row_for(january, "1000")["debit_balance"] == Decimal("800.00")
        assert row_for(full, "1000")["debit_balance"] == Decimal("875.00")
        assert january["is_balanced"] is True

    def test_negative_balance_moves_to_other_column(self, tenant, fiscal_year, cash_account, payable_account, make_entry):
        make_entry(payable_account, cash_account, "60.00")
        tb = reports.get_trial_balance(tenant)

        cash = row_for(tb, "1000")
        assert cash["balance"] == Decimal("-60.00")
        assert cash["credit_balance"] == Decimal("60.00")
        assert cash["debit_balance"] == Decimal("0.00")
        assert row_for(tb, "3000")["debit_balance"] == Decimal("60.00")

    def test_excludes_headers_and_includes_zero_rows(self, tenant, month_of_trading, header_account, bank_account):
        tb = reports.get_trial_balance(tenant)
        codes = [row["account_code"] for row in tb["accounts"]]

        assert "1900" not in codes
        assert "1100" in codes
        assert codes == sorted(codes)

    def test_hide_zero(self, tenant, month_of_trading, bank_account):
        tb = reports.get_trial_balance(tenant, hide_zero=True)
        assert "1100" not in [row["account_code"] for row in tb["accounts"]]
        assert tb["is_balanced"] is True

    def test_reversed_entry_nets_out(self, tenant, fiscal_year, cash_account, revenue_account, make_entry):
        entry = make_entry(cash_account, revenue_account, "90.00")
        reversal = journal.reverse_entry(tenant, entry.id, reversal_date=date(2024, 1, 16))["reversal"]
        journal.post_entry(tenant, reversal.id)

        tb = reports.get_trial_balance(tenant)
        assert row_for(tb, "1000")["balance"] == Decimal("0.00")
        assert tb["is_balanced"] is True

    def test_tenants_are_isolated(self, second_tenant, month_of_trading):
        registry.ensure_default_account_types(second_tenant)
        tb = reports.get_trial_balance(second_tenant)
        assert tb["accounts"] == []
        assert tb["total_debit"] == Decimal("0.00")


# =============================================================================
# Account Balance and Activity
# =============================================================================

@pytest.mark.django_db
class TestBalanceReports:
    def test_account_balance_totals(self, month_of_trading, revenue_account):
        report = reports.get_account_balance(revenue_account)

        assert report["total_debits"] == Decimal("200.00")
        assert report["total_credits"] == Decimal("1075.00")
        assert report["balance"] == Decimal("875.00")

    def test_account_balance_matches_cached_balance(self, month_of_trading, cash_account):
        cash_account.refresh_from_db()
        report = reports.get_account_balance(cash_account)
        assert report["balance"] == report["current_balance"] == Decimal("875.00")

    def test_activity_summary(self, tenant, month_of_trading):
        summary = {row["category"]: row for row in reports.get_activity_summary(tenant)}

        assert set(summary) == set(AccountType.Category.values)
        assert summary["revenue"]["total_credits"] == Decimal("1075.00")
        assert summary["revenue"]["transaction_count"] == 3
        assert summary["expense"]["total_debits"] == Decimal("450.00")
        assert summary["equity"]["account_count"] == 0

    def test_activity_summary_date_range(self, tenant, month_of_trading):
        summary = {
            row["category"]: row
            for row in reports.get_activity_summary(tenant, from_date=date(2024, 2, 1))
        }
        assert summary["asset"]["total_debits"] == Decimal("75.00")
        assert summary["expense"]["transaction_count"] == 0


# =============================================================================
# Financial Statements
# =============================================================================

def close_year(tenant, fiscal_year, retained_earnings):
    for period in fiscal_year.periods.order_by("period_number"):
        periods.close_period(tenant, period.id)
    return periods.close_fiscal_year(
        tenant, fiscal_year.id, retained_earnings_account_id=retained_earnings.id,
    )


@pytest.mark.django_db
class TestProfitAndLoss:
    def test_january(self, tenant, month_of_trading):
        pnl = reports.get_profit_and_loss(tenant, date(2024, 1, 1), date(2024, 1, 31))

        assert pnl["total_revenue"] == Decimal("800.00")
        assert pnl["total_expenses"] == Decimal("450.00")
        assert pnl["net_income"] == Decimal("350.00")
        assert [row["account_code"] for row in pnl["revenue"]] == ["4000"]
        assert pnl["expenses"][0]["balance"] == Decimal("450.00")

    def test_quiet_range_lists_nothing(self, tenant, month_of_trading):
        pnl = reports.get_profit_and_loss(tenant, date(2024, 3, 1), date(2024, 3, 31))

        assert pnl["revenue"] == []
        assert pnl["expenses"] == []
        assert pnl["net_income"] == Decimal("0.00")

    def test_closed_year_keeps_its_result(self, tenant, fiscal_year, month_of_trading, retained_earnings):
        close_year(tenant, fiscal_year, retained_earnings)

        pnl = reports.get_profit_and_loss(tenant, date(2024, 1, 1), date(2024, 12, 31))
        assert pnl["net_income"] == Decimal("425.00")

    def test_command_requires_both_dates(self, tenant):
        result = commands.query_profit_and_loss(tenant, from_date="2024-01-01")
        assert result.success is False
        assert result.status_code == 400

    def test_command_rejects_inverted_range(self, tenant):
        result = commands.query_profit_and_loss(tenant, from_date="2024-02-01", to_date="2024-01-01")
        assert result.status_code == 400


@pytest.mark.django_db
class TestBalanceSheet:
    def test_open_year_balances_through_unclosed_earnings(self, tenant, month_of_trading, retained_earnings):
        sheet = reports.get_balance_sheet(tenant, date(2024, 12, 31))

        assert sheet["total_assets"] == Decimal("875.00")
        assert sheet["total_liabilities"] == Decimal("450.00")
        assert sheet["retained_earnings"] == Decimal("425.00")
        assert sheet["total_equity"] == Decimal("425.00")
        assert sheet["is_balanced"] is True
        # Equity accounts are listed even at zero.
        assert [row["account_code"] for row in sheet["equity"]] == ["5100"]
        assert sheet["equity"][0]["balance"] == Decimal("0.00")

    def test_as_of_excludes_later_postings(self, tenant, month_of_trading):
        sheet = reports.get_balance_sheet(tenant, date(2024, 1, 31))

        assert sheet["total_assets"] == Decimal("800.00")
        assert sheet["retained_earnings"] == Decimal("350.00")
        assert sheet["is_balanced"] is True

    def test_closed_year_moves_earnings_into_equity(self, tenant, fiscal_year, month_of_trading, retained_earnings):
        close_year(tenant, fiscal_year, retained_earnings)

        sheet = reports.get_balance_sheet(tenant, date(2024, 12, 31))
        assert sheet["retained_earnings"] == Decimal("0.00")
        assert sheet["equity"][0]["balance"] == Decimal("425.00")
        assert sheet["total_equity"] == Decimal("425.00")
        assert sheet["is_balanced"] is True

    def test_zero_asset_rows_dropped(self, tenant, month_of_trading, bank_account):
        sheet = reports.get_balance_sheet(tenant, date(2024, 12, 31))
        assert [row["account_code"] for row in sheet["assets"]] == ["1000"]


@pytest.mark.django_db
class TestPeriodBalances:
    def test_by_period(self, tenant, fiscal_year, month_of_trading):
        february = fiscal_year.periods.get(period_number=2)
        rows = {row["account_code"]: row for row in reports.get_period_balances(tenant, fiscal_period_id=february.id)}

        assert rows["1000"]["period_debits"] == Decimal("75.00")
        assert rows["1000"]["period_credits"] == Decimal("0.00")
        assert rows["8000"]["period_debits"] == Decimal("0.00")

    def test_as_of_date(self, tenant, month_of_trading):
        rows = {
            row["account_code"]: row
            for row in reports.get_period_balances(tenant, as_of_date=date(2024, 1, 31))
        }

        assert rows["1000"]["period_debits"] == Decimal("1000.00")
        assert rows["1000"]["period_credits"] == Decimal("200.00")
        assert rows["1000"]["closing_balance"] == Decimal("800.00")
        assert rows["4000"]["closing_balance"] == Decimal("800.00")

    def test_category_filter(self, tenant, month_of_trading):
        rows = reports.get_period_balances(tenant, category="expense")
        assert [row["account_code"] for row in rows] == ["8000"]

    def test_bad_filters(self, tenant, month_of_trading):
        with pytest.raises(ValidationError):
            reports.get_period_balances(tenant, category="assets")
        with pytest.raises(NotFoundError):
            reports.get_period_balances(tenant, fiscal_period_id=999999)
