# accounting/policies.py
"""
Business policy functions for ledger operations.

Policies answer: "Is this action allowed given the current state?"
They do NOT perform the action; that's the service's job.

Usage:
    from accounting.policies import can_post_entry, assert_can_post_entry

    # Option 1: Check and get boolean + reason
    allowed, reason = can_post_entry(entry)
    if not allowed:
        ...

    # Option 2: Assert and raise the matching AccountingError
    assert_can_post_entry(entry)

Design Principles:
1. Policies are pure functions (no side effects, no writes)
2. Policies return (bool, str) tuples for clear error messages
3. Policies check ONE thing conceptually
4. Services compose policies as needed
"""

from decimal import Decimal

from accounting.exceptions import (
    ConflictError,
    InvalidStateError,
    OpenEntriesError,
    PeriodClosedError,
    UnbalancedEntryError,
    ValidationError,
)
from accounting.models import (
    BALANCE_TOLERANCE,
    AccountType,
    FiscalPeriod,
    JournalEntry,
)


def _enforce(check: tuple[bool, str], error_cls, **details) -> None:
    allowed, reason = check
    if not allowed:
        raise error_cls(reason, **details)


# =============================================================================
# Account Policies
# =============================================================================

def can_delete_account(account) -> tuple[bool, str]:
    """
    Accounts are never hard-deleted; "delete" deactivates.

    Rules:
    - Cannot delete an account with ledger postings
    - Cannot delete an account with child accounts
    - Cannot delete an account twice
    """
    if not account.is_active:
        return False, f"Account {account.code} is already inactive."

    if account.ledger_entries.exists():
        return False, f"Cannot delete account {account.code}: it has ledger postings. Deactivate it instead."

    if account.children.exists():
        return False, f"Cannot delete account {account.code}: it has child accounts."

    return True, ""


def can_change_posting_structure(account) -> tuple[bool, str]:
    """Code, type and header flag are frozen once postings exist."""
    if account.ledger_entries.exists():
        return False, f"Account {account.code} has ledger postings; its code, type and header flag are fixed."
    return True, ""


def can_deactivate_account(account) -> tuple[bool, str]:
    if account.current_balance != 0:
        return False, (
            f"Cannot deactivate account {account.code} with a non-zero balance "
            f"({account.current_balance})."
        )
    return True, ""


def can_set_parent(account, parent) -> tuple[bool, str]:
    """
    Rules:
    - Parent must be a header account
    - No cycles: parent cannot be the account or one of its descendants
    """
    if parent is None:
        return True, ""

    if not parent.is_header:
        return False, f"Parent account {parent.code} must be a header account."

    if account is not None and account.pk:
        if parent.pk == account.pk:
            return False, "An account cannot be its own parent."
        if any(node.pk == account.pk for node in parent.get_ancestors()):
            return False, f"Account {parent.code} is a descendant of {account.code}."

    return True, ""


def can_post_to_account(account) -> tuple[bool, str]:
    """
    Check if journal lines can be posted to this account.

    Rules:
    - Cannot post to header accounts
    - Cannot post to inactive accounts
    """
    if account.is_header:
        return False, f"Cannot post to header account: {account.code}"

    if not account.is_active:
        return False, f"Cannot post to inactive account: {account.code}"

    return True, ""


def can_receive_retained_earnings(account) -> tuple[bool, str]:
    if account.account_type.category != AccountType.Category.EQUITY:
        return False, f"Retained earnings account {account.code} must be an equity account."
    return can_post_to_account(account)


# =============================================================================
# Journal Entry Policies
# =============================================================================

def is_balanced(total_debit: Decimal, total_credit: Decimal) -> tuple[bool, str]:
    difference = abs(total_debit - total_credit)
    if difference > BALANCE_TOLERANCE:
        return False, (
            f"Entry is not balanced: debits {total_debit} != credits {total_credit} "
            f"(difference {difference})."
        )
    return True, ""


def can_edit_entry(entry) -> tuple[bool, str]:
    if entry.status != JournalEntry.Status.DRAFT:
        return False, f"Only draft entries can be edited; {entry.entry_number} is {entry.status}."
    return True, ""


def can_void_entry(entry) -> tuple[bool, str]:
    if entry.status != JournalEntry.Status.DRAFT:
        return False, f"Only draft entries can be voided; {entry.entry_number} is {entry.status}."
    return True, ""


def can_post_entry(entry) -> tuple[bool, str]:
    if entry.status != JournalEntry.Status.DRAFT:
        return False, f"Only draft entries can be posted; {entry.entry_number} is {entry.status}."
    return True, ""


def can_reverse_entry(entry) -> tuple[bool, str]:
    """
    Rules:
    - Only POSTED entries can be reversed, and only once
    - Closing entries belong to a closed year and are never reversed
    """
    if entry.entry_type == JournalEntry.EntryType.CLOSING:
        return False, f"Closing entry {entry.entry_number} cannot be reversed."
    if entry.status == JournalEntry.Status.REVERSED:
        return False, f"Entry {entry.entry_number} has already been reversed."
    if entry.status != JournalEntry.Status.POSTED:
        return False, f"Only posted entries can be reversed; {entry.entry_number} is {entry.status}."
    return True, ""


# =============================================================================
# Period Policies
# =============================================================================

def can_post_to_period(period, allow_closed_period: bool = False) -> tuple[bool, str]:
    """
    A posting date inside a closed period is rejected unless the caller is
    the year-end closing path. ``period`` of None means no period covers
    the date; that case is decided by the journal engine.
    """
    if period is None or allow_closed_period:
        return True, ""

    if period.status != FiscalPeriod.Status.OPEN:
        return False, f"Fiscal period {period.name} is closed."

    return True, ""


def can_post_to_fiscal_year(fiscal_year, allow_closed_period: bool = False) -> tuple[bool, str]:
    """
    Dates covered by a closed year are rejected even when the year has
    no periods.
    """
    if fiscal_year is None or allow_closed_period:
        return True, ""

    if fiscal_year.is_closed:
        return False, f"Fiscal year {fiscal_year.name} is closed."

    return True, ""


def can_close_period(period) -> tuple[bool, str]:
    if period.status == FiscalPeriod.Status.CLOSED:
        return False, f"Fiscal period {period.name} is already closed."
    return True, ""


def has_no_open_entries(period, draft_count: int, force: bool = False) -> tuple[bool, str]:
    if draft_count and not force:
        return False, (
            f"Fiscal period {period.name} has {draft_count} unposted draft "
            f"entr{'y' if draft_count == 1 else 'ies'}. Post or void them, or close with force."
        )
    return True, ""


def can_reopen_period(period) -> tuple[bool, str]:
    if period.status != FiscalPeriod.Status.CLOSED:
        return False, f"Fiscal period {period.name} is not closed."
    if period.fiscal_year.is_closed:
        return False, f"Fiscal year {period.fiscal_year.name} is closed; its periods cannot be reopened."
    return True, ""


def can_change_fiscal_year_dates(fiscal_year) -> tuple[bool, str]:
    """Dates are fixed once the year is closed or has been sliced into periods."""
    if fiscal_year.is_closed:
        return False, f"Fiscal year {fiscal_year.name} is closed; its dates are fixed."
    if fiscal_year.periods.exists():
        return False, f"Fiscal year {fiscal_year.name} has periods; its dates are fixed."
    return True, ""


def can_activate_fiscal_year(fiscal_year) -> tuple[bool, str]:
    if fiscal_year.is_closed:
        return False, f"Fiscal year {fiscal_year.name} is closed and cannot be reactivated."
    return True, ""


def can_close_fiscal_year(fiscal_year) -> tuple[bool, str]:
    if fiscal_year.is_closed:
        return False, f"Fiscal year {fiscal_year.name} is already closed."

    open_count = fiscal_year.periods.filter(status=FiscalPeriod.Status.OPEN).count()
    if open_count:
        return False, (
            f"Fiscal year {fiscal_year.name} has {open_count} open period"
            f"{'' if open_count == 1 else 's'}; close them first."
        )

    return True, ""


# =============================================================================
# Assert Helpers (raise on violation)
# =============================================================================

def assert_can_delete_account(account) -> None:
    error_cls = ConflictError if account.is_active else InvalidStateError
    _enforce(can_delete_account(account), error_cls, account_code=account.code)


def assert_can_change_posting_structure(account) -> None:
    _enforce(can_change_posting_structure(account), ConflictError, account_code=account.code)


def assert_can_deactivate_account(account) -> None:
    _enforce(can_deactivate_account(account), ConflictError, account_code=account.code)


def assert_can_set_parent(account, parent) -> None:
    _enforce(can_set_parent(account, parent), ValidationError)


def assert_can_post_to_account(account) -> None:
    _enforce(can_post_to_account(account), ValidationError, account_code=account.code)


def assert_can_receive_retained_earnings(account) -> None:
    _enforce(can_receive_retained_earnings(account), ValidationError, account_code=account.code)


def assert_balanced(entry, total_debit: Decimal, total_credit: Decimal) -> None:
    _enforce(
        is_balanced(total_debit, total_credit),
        UnbalancedEntryError,
        entry_number=entry.entry_number,
        total_debit=str(total_debit),
        total_credit=str(total_credit),
    )


def assert_can_edit_entry(entry) -> None:
    _enforce(can_edit_entry(entry), InvalidStateError, status=entry.status)


def assert_can_void_entry(entry) -> None:
    _enforce(can_void_entry(entry), InvalidStateError, status=entry.status)


def assert_can_post_entry(entry) -> None:
    _enforce(can_post_entry(entry), InvalidStateError, status=entry.status)


def assert_can_reverse_entry(entry) -> None:
    _enforce(can_reverse_entry(entry), InvalidStateError, status=entry.status)


def assert_can_post_to_period(period, allow_closed_period: bool = False) -> None:
    _enforce(
        can_post_to_period(period, allow_closed_period),
        PeriodClosedError,
        period_id=getattr(period, "id", None),
    )


def assert_can_post_to_fiscal_year(fiscal_year, allow_closed_period: bool = False) -> None:
    _enforce(
        can_post_to_fiscal_year(fiscal_year, allow_closed_period),
        PeriodClosedError,
        fiscal_year_id=getattr(fiscal_year, "id", None),
    )


def assert_can_close_period(period, draft_count: int, force: bool = False) -> None:
    _enforce(can_close_period(period), InvalidStateError, period_id=period.id)
    _enforce(
        has_no_open_entries(period, draft_count, force),
        OpenEntriesError,
        period_id=period.id,
        draft_entries=draft_count,
    )


def assert_can_reopen_period(period) -> None:
    _enforce(can_reopen_period(period), InvalidStateError, period_id=period.id)


def assert_can_change_fiscal_year_dates(fiscal_year) -> None:
    _enforce(can_change_fiscal_year_dates(fiscal_year), InvalidStateError, fiscal_year_id=fiscal_year.id)


def assert_can_activate_fiscal_year(fiscal_year) -> None:
    _enforce(can_activate_fiscal_year(fiscal_year), InvalidStateError, fiscal_year_id=fiscal_year.id)


def assert_can_close_fiscal_year(fiscal_year) -> None:
    _enforce(can_close_fiscal_year(fiscal_year), InvalidStateError, fiscal_year_id=fiscal_year.id)
