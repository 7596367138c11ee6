# tests/test_journal.py
"""
Tests for the journal engine.

Tests cover:
- Draft creation and line validation
- Draft editing and voiding
- Posting: balance check, period gate, account checks, atomicity
- Reversal workflow and its effect on balances
- Numbering and dry-run validation
"""

from datetime import date
from decimal import Decimal

import pytest

from accounting import journal, periods, registry
from accounting.exceptions import (
    InvalidStateError,
    NotFoundError,
    PeriodClosedError,
    UnbalancedEntryError,
    ValidationError,
)
from accounting.models import JournalEntry, LedgerEntry
from tests.conftest import lines_for


# =============================================================================
# Draft Creation
# =============================================================================

@pytest.mark.django_db
class TestCreateEntry:
    """Drafts accept unbalanced lines but validate their shape."""

    def test_create_draft(self, tenant, cash_account, revenue_account):
        entry = journal.create_entry(
            tenant,
            entry_date="2024-01-15",
            description="Cash sale",
            lines=lines_for(cash_account, revenue_account, "99.999"),
        )

        assert entry.status == JournalEntry.Status.DRAFT
        assert entry.entry_number == "JE-000001"
        assert entry.total_debit == Decimal("100.00")
        assert entry.total_credit == Decimal("100.00")
        assert entry.lines.count() == 2
        assert not LedgerEntry.objects.exists()

    def test_numbers_increase_per_tenant(self, tenant, second_tenant, cash_account, revenue_account):
        first = journal.create_entry(
            tenant, entry_date=date(2024, 1, 1), description="One",
            lines=lines_for(cash_account, revenue_account, 10),
        )
        second = journal.create_entry(
            tenant, entry_date=date(2024, 1, 1), description="Two",
            lines=lines_for(cash_account, revenue_account, 10),
        )
        assert (first.entry_number, second.entry_number) == ("JE-000001", "JE-000002")
        assert journal.next_entry_number(second_tenant) == "JE-000001"

    def test_unbalanced_draft_is_allowed(self, tenant, unbalanced_lines):
        entry = journal.create_entry(
            tenant, entry_date=date(2024, 1, 5), description="WIP", lines=unbalanced_lines,
        )
        assert entry.is_balanced is False

    def test_lines_by_account_code(self, tenant, cash_account, revenue_account):
        entry = journal.create_entry(
            tenant,
            entry_date=date(2024, 1, 5),
            description="By code",
            lines=[
                {"account": "1000", "debit_amount": 5},
                {"account": "4000", "credit_amount": 5},
            ],
        )
        assert {line.account_id for line in entry.lines.all()} == {cash_account.id, revenue_account.id}

    @pytest.mark.parametrize("bad_line", [
        {"debit_amount": 10, "credit_amount": 10},
        {"debit_amount": 0, "credit_amount": 0},
        {"debit_amount": -5},
        {"debit_amount": "abc"},
    ])
    def test_line_must_have_exactly_one_positive_side(self, tenant, cash_account, revenue_account, bad_line):
        lines = [
            {"account": cash_account.id, **bad_line},
            {"account": revenue_account.id, "credit_amount": 10},
        ]
        with pytest.raises(ValidationError):
            journal.create_entry(tenant, entry_date=date(2024, 1, 5), description="Bad", lines=lines)

    def test_requires_two_lines(self, tenant, cash_account):
        with pytest.raises(ValidationError):
            journal.create_entry(
                tenant,
                entry_date=date(2024, 1, 5),
                description="One line",
                lines=[{"account": cash_account.id, "debit_amount": 10}],
            )

    def test_requires_description(self, tenant, cash_account, revenue_account):
        with pytest.raises(ValidationError):
            journal.create_entry(
                tenant, entry_date=date(2024, 1, 5), description="  ",
                lines=lines_for(cash_account, revenue_account, 10),
            )

    def test_unknown_account(self, tenant, cash_account):
        with pytest.raises(ValidationError):
            journal.create_entry(
                tenant,
                entry_date=date(2024, 1, 5),
                description="Ghost",
                lines=[
                    {"account": cash_account.id, "debit_amount": 10},
                    {"account": "7777", "credit_amount": 10},
                ],
            )

    def test_header_account_rejected(self, tenant, cash_account, header_account):
        with pytest.raises(ValidationError):
            journal.create_entry(
                tenant, entry_date=date(2024, 1, 5), description="Header",
                lines=lines_for(header_account, cash_account, 10),
            )

    def test_other_tenant_account_rejected(self, second_tenant, cash_account, revenue_account):
        with pytest.raises(ValidationError):
            journal.create_entry(
                second_tenant, entry_date=date(2024, 1, 5), description="Cross tenant",
                lines=lines_for(cash_account, revenue_account, 10),
            )


# =============================================================================
# Draft Editing and Voiding
# =============================================================================

@pytest.mark.django_db
class TestUpdateAndVoid:
    """Only drafts can change."""

    def test_update_replaces_lines_and_totals(self, tenant, draft_entry, cash_account, expense_account):
        entry = journal.update_entry(
            tenant,
            draft_entry.id,
            description="Corrected",
            lines=lines_for(expense_account, cash_account, "75.00"),
        )
        assert entry.description == "Corrected"
        assert entry.total_debit == Decimal("75.00")
        assert [line.account_id for line in entry.lines.order_by("line_number")] == [
            expense_account.id, cash_account.id,
        ]

    def test_update_posted_entry_fails(self, tenant, posted_entry):
        with pytest.raises(InvalidStateError):
            journal.update_entry(tenant, posted_entry.id, description="Too late")

    def test_void_draft(self, tenant, draft_entry):
        entry = journal.void_entry(tenant, draft_entry.id)
        assert entry.status == JournalEntry.Status.VOIDED
        assert entry.voided_at is not None

    def test_void_posted_entry_fails(self, tenant, posted_entry):
        with pytest.raises(InvalidStateError):
            journal.void_entry(tenant, posted_entry.id)

    def test_voided_entry_cannot_be_posted(self, tenant, draft_entry):
        journal.void_entry(tenant, draft_entry.id)
        with pytest.raises(InvalidStateError):
            journal.post_entry(tenant, draft_entry.id)


# =============================================================================
# Posting
# =============================================================================

@pytest.mark.django_db
class TestPostEntry:
    """Posting writes the ledger and moves balances."""

    def test_post_updates_ledger_and_balances(self, tenant, draft_entry, cash_account, revenue_account, january):
        entry = journal.post_entry(tenant, draft_entry.id)

        assert entry.status == JournalEntry.Status.POSTED
        assert entry.posted_at is not None
        assert entry.fiscal_period == january

        rows = LedgerEntry.objects.filter(journal_entry=entry)
        assert rows.count() == 2
        assert all(row.fiscal_period_id == january.id for row in rows)
        assert all(row.reference == entry.entry_number for row in rows)

        cash_account.refresh_from_db()
        revenue_account.refresh_from_db()
        assert cash_account.current_balance == Decimal("250.00")
        assert revenue_account.current_balance == Decimal("250.00")

    def test_double_post_fails(self, tenant, posted_entry):
        with pytest.raises(InvalidStateError):
            journal.post_entry(tenant, posted_entry.id)
        assert LedgerEntry.objects.filter(journal_entry=posted_entry).count() == 2

    def test_unbalanced_entry_rejected(self, tenant, fiscal_year, unbalanced_lines):
        entry = journal.create_entry(
            tenant, entry_date=date(2024, 1, 5), description="Off by ten", lines=unbalanced_lines,
        )
        with pytest.raises(UnbalancedEntryError):
            journal.post_entry(tenant, entry.id)

        entry.refresh_from_db()
        assert entry.status == JournalEntry.Status.DRAFT

    def test_within_tolerance_posts(self, tenant, fiscal_year, cash_account, revenue_account):
        entry = journal.create_entry(
            tenant,
            entry_date=date(2024, 1, 5),
            description="Rounding",
            lines=[
                {"account": cash_account.id, "debit_amount": "100.01"},
                {"account": revenue_account.id, "credit_amount": "100.00"},
            ],
        )
        entry = journal.post_entry(tenant, entry.id)
        assert entry.status == JournalEntry.Status.POSTED

    def test_closed_period_rejected(self, tenant, draft_entry, january):
        journal.void_entry(tenant, draft_entry.id)
        periods.close_period(tenant, january.id)
        entry = journal.create_entry(
            tenant, entry_date=date(2024, 1, 20), description="Late",
            lines=[
                {"account": "1000", "debit_amount": 5},
                {"account": "4000", "credit_amount": 5},
            ],
        )
        with pytest.raises(PeriodClosedError):
            journal.post_entry(tenant, entry.id)

    def test_no_period_posts_without_period(self, tenant, cash_account, revenue_account, make_entry):
        # No fiscal year configured.
        entry = make_entry(cash_account, revenue_account, 10)
        assert entry.fiscal_period is None

    def test_no_period_rejected_when_required(self, tenant, cash_account, revenue_account, make_entry, settings):
        settings.ACCOUNTING_REQUIRE_FISCAL_PERIOD = True
        entry = make_entry(cash_account, revenue_account, 10, post=False)
        with pytest.raises(ValidationError):
            journal.post_entry(tenant, entry.id)

    def test_account_deactivated_after_draft(self, tenant, fiscal_year, bank_account, revenue_account, make_entry):
        entry = make_entry(bank_account, revenue_account, 10, post=False)
        registry.delete_account(tenant, bank_account.id)

        with pytest.raises(ValidationError):
            journal.post_entry(tenant, entry.id)

    def test_posting_is_atomic(self, tenant, draft_entry, cash_account, revenue_account, monkeypatch):
        from accounting import ledger

        real_apply = ledger.apply_posting
        calls = []

        def failing_apply(**kwargs):
            calls.append(kwargs["line"].line_number)
            if len(calls) == 2:
                raise RuntimeError("disk full")
            return real_apply(**kwargs)

        monkeypatch.setattr(ledger, "apply_posting", failing_apply)

        with pytest.raises(RuntimeError):
            journal.post_entry(tenant, draft_entry.id)

        assert calls == [1, 2]
        assert not LedgerEntry.objects.exists()
        cash_account.refresh_from_db()
        revenue_account.refresh_from_db()
        assert cash_account.current_balance == Decimal("0.00")
        assert revenue_account.current_balance == Decimal("0.00")
        draft_entry.refresh_from_db()
        assert draft_entry.status == JournalEntry.Status.DRAFT

    def test_missing_entry(self, tenant):
        with pytest.raises(NotFoundError):
            journal.post_entry(tenant, 424242)


# =============================================================================
# Reversal
# =============================================================================

@pytest.mark.django_db
class TestReverseEntry:
    """Reversal creates an offsetting draft; history is never edited."""

    def test_reverse_creates_swapped_draft(self, tenant, posted_entry):
        result = journal.reverse_entry(tenant, posted_entry.id, reversal_date="2024-02-01")
        original, reversal = result["original"], result["reversal"]

        assert original.status == JournalEntry.Status.REVERSED
        assert original.reversal_date == date(2024, 2, 1)
        assert reversal.status == JournalEntry.Status.DRAFT
        assert reversal.entry_number == "REV-000001"
        assert reversal.entry_type == JournalEntry.EntryType.REVERSING
        assert reversal.is_reversing is True
        assert reversal.reversed_entry == original
        assert reversal.description == f"Reversal of {original.entry_number}"

        original_lines = list(original.lines.order_by("line_number"))
        reversal_lines = list(reversal.lines.order_by("line_number"))
        for before, after in zip(original_lines, reversal_lines):
            assert after.account_id == before.account_id
            assert after.debit_amount == before.credit_amount
            assert after.credit_amount == before.debit_amount
            assert after.description.startswith("Reversal")

    def test_posting_reversal_restores_balances(self, tenant, posted_entry, cash_account, revenue_account):
        reversal = journal.reverse_entry(tenant, posted_entry.id, reversal_date=date(2024, 2, 1))["reversal"]
        journal.post_entry(tenant, reversal.id)

        cash_account.refresh_from_db()
        revenue_account.refresh_from_db()
        assert cash_account.current_balance == Decimal("0.00")
        assert revenue_account.current_balance == Decimal("0.00")
        # Both the original and the reversal stay in the ledger.
        assert LedgerEntry.objects.filter(account=cash_account).count() == 2

    def test_reversal_line_description_fits_column(self, tenant, fiscal_year, cash_account, revenue_account):
        lines = lines_for(cash_account, revenue_account, "20.00")
        lines[0]["description"] = "d" * 500
        lines[1]["description"] = "Short"
        entry = journal.create_entry(tenant, entry_date=date(2024, 1, 8), description="Long memo", lines=lines)
        journal.post_entry(tenant, entry.id)

        reversal = journal.reverse_entry(tenant, entry.id, reversal_date="2024-01-09")["reversal"]
        first, second = reversal.lines.order_by("line_number")

        assert len(first.description) == 500
        assert first.description.startswith("Reversal: ddd")
        assert second.description == "Reversal: Short"

    def test_reverse_twice_fails(self, tenant, posted_entry):
        journal.reverse_entry(tenant, posted_entry.id)
        with pytest.raises(InvalidStateError):
            journal.reverse_entry(tenant, posted_entry.id)

    def test_reverse_draft_fails(self, tenant, draft_entry):
        with pytest.raises(InvalidStateError):
            journal.reverse_entry(tenant, draft_entry.id)

    def test_voiding_reversal_restores_original(self, tenant, posted_entry):
        reversal = journal.reverse_entry(tenant, posted_entry.id)["reversal"]
        journal.void_entry(tenant, reversal.id)

        posted_entry.refresh_from_db()
        assert posted_entry.status == JournalEntry.Status.POSTED
        assert posted_entry.reversal_date is None

        # The original may be reversed again.
        again = journal.reverse_entry(tenant, posted_entry.id)["reversal"]
        assert again.entry_number == "REV-000002"


# =============================================================================
# Queries
# =============================================================================

@pytest.mark.django_db
class TestQueries:
    """Listing and dry-run validation."""

    def test_list_filters(self, tenant, posted_entry, draft_entry):
        posted = journal.list_entries(tenant, status=JournalEntry.Status.POSTED)
        assert [e.id for e in posted] == [posted_entry.id]
        assert len(journal.list_entries(tenant)) == 2
        assert journal.list_entries(tenant, from_date="2024-02-01") == []

    def test_list_invalid_status(self, tenant):
        with pytest.raises(ValidationError):
            journal.list_entries(tenant, status="pending")

    def test_validate_reports_errors_without_writing(self, tenant, fiscal_year, unbalanced_lines):
        entry = journal.create_entry(
            tenant, entry_date=date(2024, 1, 5), description="Check me", lines=unbalanced_lines,
        )
        report = journal.validate_entry(tenant, entry.id)

        assert report["valid"] is False
        assert any("not balanced" in error for error in report["errors"])
        entry.refresh_from_db()
        assert entry.status == JournalEntry.Status.DRAFT

    def test_validate_warns_when_no_period(self, tenant, cash_account, revenue_account, make_entry):
        entry = make_entry(cash_account, revenue_account, 10, post=False)
        report = journal.validate_entry(tenant, entry.id)
        assert report["valid"] is True
        assert report["warnings"]
