# tests/test_closing.py
"""
Tests for year-end closing.

A year closes only after every period is closed. The closing entry zeroes
revenue and expense accounts for the year and moves net income into the
chosen retained earnings account.
"""

from datetime import date
from decimal import Decimal

import pytest

from accounting import closing, journal, periods, registry
from accounting.exceptions import InvalidStateError, NotFoundError, PeriodClosedError, ValidationError
from accounting.models import FiscalPeriod, FiscalYear, JournalEntry


def close_all_periods(tenant, fiscal_year):
    for period in fiscal_year.periods.order_by("period_number"):
        periods.close_period(tenant, period.id)


@pytest.fixture
def trading_year(tenant, fiscal_year, cash_account, revenue_account, expense_account, retained_earnings, make_entry):
    """FY 2024 with 1000 of sales and 300 of rent, all periods closed."""
    make_entry(cash_account, revenue_account, "1000.00", entry_date=date(2024, 3, 1))
    make_entry(expense_account, cash_account, "300.00", entry_date=date(2024, 6, 1))
    close_all_periods(tenant, fiscal_year)
    return fiscal_year


# =============================================================================
# Net Income
# =============================================================================

@pytest.mark.django_db
class TestNetIncome:
    def test_compute_net_income(self, trading_year):
        assert closing.compute_net_income(trading_year) == Decimal("700.00")

    def test_activity_outside_year_is_ignored(self, tenant, trading_year, cash_account, revenue_account, make_entry):
        make_entry(cash_account, revenue_account, "50.00", entry_date=date(2025, 1, 3))
        assert closing.compute_net_income(trading_year) == Decimal("700.00")

    def test_closing_entry_number(self, fiscal_year):
        assert closing.closing_entry_number(fiscal_year) == f"JE-CLOSE-{fiscal_year.id:06d}"


# =============================================================================
# Close Fiscal Year
# =============================================================================

@pytest.mark.django_db
class TestCloseFiscalYear:
    """Closing zeroes the income statement into retained earnings."""

    def test_close_moves_net_income(
        self, tenant, trading_year, revenue_account, expense_account, retained_earnings,
    ):
        fy = periods.close_fiscal_year(
            tenant, trading_year.id, retained_earnings_account_id=retained_earnings.id,
        )

        assert fy.is_closed is True
        assert fy.net_income == Decimal("700.00")
        assert fy.retained_earnings_account == retained_earnings

        entry = fy.closing_entry
        assert entry.entry_number == f"JE-CLOSE-{trading_year.id:06d}"
        assert entry.entry_type == JournalEntry.EntryType.CLOSING
        assert entry.status == JournalEntry.Status.POSTED
        assert entry.entry_date == date(2024, 12, 31)
        assert entry.total_debit == entry.total_credit == Decimal("1000.00")

        for account in (revenue_account, expense_account, retained_earnings):
            account.refresh_from_db()
        assert revenue_account.current_balance == Decimal("0.00")
        assert expense_account.current_balance == Decimal("0.00")
        assert retained_earnings.current_balance == Decimal("700.00")
        assert registry.compute_balance(revenue_account, as_of=date(2024, 12, 31)) == Decimal("0.00")

    def test_net_loss_debits_retained_earnings(
        self, tenant, fiscal_year, cash_account, revenue_account, expense_account, retained_earnings, make_entry,
    ):
        make_entry(cash_account, revenue_account, "100.00", entry_date=date(2024, 2, 1))
        make_entry(expense_account, cash_account, "400.00", entry_date=date(2024, 2, 2))
        close_all_periods(tenant, fiscal_year)

        fy = periods.close_fiscal_year(
            tenant, fiscal_year.id, retained_earnings_account_id=retained_earnings.id,
        )

        assert fy.net_income == Decimal("-300.00")
        retained_earnings.refresh_from_db()
        assert retained_earnings.current_balance == Decimal("-300.00")
        re_line = fy.closing_entry.lines.get(account=retained_earnings)
        assert re_line.debit_amount == Decimal("300.00")

    def test_no_activity_closes_without_entry(self, tenant, fiscal_year, retained_earnings):
        close_all_periods(tenant, fiscal_year)

        fy = periods.close_fiscal_year(
            tenant, fiscal_year.id, retained_earnings_account_id=retained_earnings.id,
        )

        assert fy.is_closed is True
        assert fy.net_income == Decimal("0.00")
        assert fy.closing_entry is None
        assert not JournalEntry.objects.filter(entry_type=JournalEntry.EntryType.CLOSING).exists()

    def test_open_period_blocks_close(self, tenant, fiscal_year, retained_earnings):
        with pytest.raises(InvalidStateError):
            periods.close_fiscal_year(
                tenant, fiscal_year.id, retained_earnings_account_id=retained_earnings.id,
            )
        fiscal_year.refresh_from_db()
        assert fiscal_year.is_closed is False

    def test_retained_earnings_must_be_equity(self, tenant, trading_year, cash_account):
        with pytest.raises(ValidationError):
            periods.close_fiscal_year(
                tenant, trading_year.id, retained_earnings_account_id=cash_account.id,
            )

    def test_retained_earnings_required(self, tenant, trading_year):
        with pytest.raises(ValidationError):
            periods.close_fiscal_year(tenant, trading_year.id, retained_earnings_account_id=None)

    def test_unknown_fiscal_year(self, tenant, retained_earnings):
        with pytest.raises(NotFoundError):
            periods.close_fiscal_year(tenant, 98765, retained_earnings_account_id=retained_earnings.id)

    def test_closed_year_is_terminal(self, tenant, trading_year, retained_earnings):
        periods.close_fiscal_year(
            tenant, trading_year.id, retained_earnings_account_id=retained_earnings.id,
        )

        with pytest.raises(InvalidStateError):
            periods.close_fiscal_year(
                tenant, trading_year.id, retained_earnings_account_id=retained_earnings.id,
            )

        december = trading_year.periods.get(period_number=12)
        with pytest.raises(InvalidStateError):
            periods.reopen_period(tenant, december.id)
        december.refresh_from_db()
        assert december.status == FiscalPeriod.Status.CLOSED

    def test_next_year_starts_clean(
        self, tenant, trading_year, cash_account, revenue_account, retained_earnings, make_entry,
    ):
        periods.close_fiscal_year(
            tenant, trading_year.id, retained_earnings_account_id=retained_earnings.id,
        )
        next_year = periods.create_fiscal_year(tenant, start_date="2025-01-01", end_date="2025-12-31")
        make_entry(cash_account, revenue_account, "40.00", entry_date=date(2025, 1, 10))

        assert closing.compute_net_income(next_year) == Decimal("40.00")


# =============================================================================
# After the Close
# =============================================================================

@pytest.mark.django_db
class TestClosedYearGuards:
    """Nothing moves a closed year's books after the closing entry."""

    def test_year_without_periods_rejects_late_postings(
        self, tenant, cash_account, revenue_account, retained_earnings, make_entry,
    ):
        fy = periods.create_fiscal_year(
            tenant, start_date="2024-01-01", end_date="2024-12-31", generate_periods=False,
        )
        make_entry(cash_account, revenue_account, "1000.00", entry_date=date(2024, 3, 1))
        periods.close_fiscal_year(tenant, fy.id, retained_earnings_account_id=retained_earnings.id)

        late = make_entry(cash_account, revenue_account, "500.00", post=False, entry_date=date(2024, 6, 1))
        with pytest.raises(PeriodClosedError) as exc_info:
            journal.post_entry(tenant, late.id)
        assert exc_info.value.details["fiscal_year_id"] == fy.id

        late.refresh_from_db()
        assert late.status == JournalEntry.Status.DRAFT
        assert late.fiscal_period is None

        report = journal.validate_entry(tenant, late.id)
        assert report["valid"] is False
        assert any("is closed" in error for error in report["errors"])

        revenue_account.refresh_from_db()
        assert revenue_account.current_balance == Decimal("0.00")

    def test_closing_entry_cannot_be_reversed(self, tenant, trading_year, retained_earnings):
        fy = periods.close_fiscal_year(
            tenant, trading_year.id, retained_earnings_account_id=retained_earnings.id,
        )

        with pytest.raises(InvalidStateError):
            journal.reverse_entry(tenant, fy.closing_entry_id, reversal_date="2025-01-05")

        fy.closing_entry.refresh_from_db()
        assert fy.closing_entry.status == JournalEntry.Status.POSTED
        assert not JournalEntry.objects.filter(entry_type=JournalEntry.EntryType.REVERSING).exists()

    def test_reopen_reads_year_state_under_lock(self, tenant, trading_year):
        # Another transaction closed the year after this period was loaded.
        december = trading_year.periods.get(period_number=12)
        FiscalYear.objects.filter(pk=trading_year.pk).update(is_closed=True)

        with pytest.raises(InvalidStateError):
            periods.reopen_period(tenant, december.id)
        december.refresh_from_db()
        assert december.status == FiscalPeriod.Status.CLOSED

    def test_long_year_name_closes(
        self, tenant, cash_account, revenue_account, retained_earnings, make_entry,
    ):
        name = "Financial Year " + "X" * 35
        fy = periods.create_fiscal_year(tenant, start_date="2024-01-01", end_date="2024-12-31", name=name)
        make_entry(cash_account, revenue_account, "80.00", entry_date=date(2024, 2, 1))
        close_all_periods(tenant, fy)

        fy = periods.close_fiscal_year(tenant, fy.id, retained_earnings_account_id=retained_earnings.id)

        assert len(fy.name) == 50
        entry_number = fy.closing_entry.entry_number
        assert len(entry_number) <= 50
        assert {ledger_row.reference for ledger_row in fy.closing_entry.ledger_entries.all()} == {entry_number}
