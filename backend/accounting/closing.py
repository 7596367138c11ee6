# accounting/closing.py
"""
Year-end closing.

Zeroes every revenue and expense account for the fiscal year's activity
and moves the difference (net income) into a retained earnings account,
through a single CLOSING journal entry posted on the year's last day.
"""

import logging
from decimal import Decimal
from typing import Optional

from django.db.models import Sum

from accounting import journal
from accounting.models import AccountType, JournalEntry, LedgerEntry

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

INCOME_STATEMENT_CATEGORIES = (
    AccountType.Category.REVENUE,
    AccountType.Category.EXPENSE,
)


def closing_entry_number(fiscal_year) -> str:
    """Derived from the year id so it always fits the entry number column."""
    return f"JE-CLOSE-{fiscal_year.id:06d}"


def _year_activity(fiscal_year) -> list:
    """
    Per-account debit/credit totals for revenue and expense accounts
    inside the fiscal year, ordered by account code.
    """
    return list(
        LedgerEntry.objects.filter(
            tenant_id=fiscal_year.tenant_id,
            entry_date__gte=fiscal_year.start_date,
            entry_date__lte=fiscal_year.end_date,
            account__account_type__category__in=INCOME_STATEMENT_CATEGORIES,
        )
        .values("account_id", "account__code", "account__account_type__category")
        .annotate(debits=Sum("debit_amount"), credits=Sum("credit_amount"))
        .order_by("account__code")
    )


def compute_net_income(fiscal_year) -> Decimal:
    """Revenue (credit - debit) less expense (debit - credit) for the year."""
    net_income = ZERO
    for row in _year_activity(fiscal_year):
        debits = row["debits"] or ZERO
        credits = row["credits"] or ZERO
        if row["account__account_type__category"] == AccountType.Category.REVENUE:
            net_income += credits - debits
        else:
            net_income -= debits - credits
    return net_income


def build_closing_entry(fiscal_year, retained_earnings) -> Optional[JournalEntry]:
    """
    Draft the closing entry, or return None when the year had no
    revenue or expense activity.
    """
    lines = []
    net_income = ZERO

    for row in _year_activity(fiscal_year):
        debits = row["debits"] or ZERO
        credits = row["credits"] or ZERO
        if row["account__account_type__category"] == AccountType.Category.REVENUE:
            net_income += credits - debits
        else:
            net_income -= debits - credits

        net = debits - credits
        if net == 0:
            continue
        # Post the opposite side so the account nets to zero for the year.
        lines.append({
            "account": row["account_id"],
            "debit_amount": -net if net < 0 else ZERO,
            "credit_amount": net if net > 0 else ZERO,
            "description": f"Close {row['account__code']}",
        })

    if not lines:
        return None

    if net_income > 0:
        lines.append({
            "account": retained_earnings,
            "debit_amount": ZERO,
            "credit_amount": net_income,
            "description": "Net income to retained earnings",
        })
    elif net_income < 0:
        lines.append({
            "account": retained_earnings,
            "debit_amount": -net_income,
            "credit_amount": ZERO,
            "description": "Net loss to retained earnings",
        })

    return journal.create_entry(
        fiscal_year.tenant,
        entry_date=fiscal_year.end_date,
        description=f"Closing entry for {fiscal_year.name}",
        lines=lines,
        reference=fiscal_year.name,
        source_type="fiscal_year",
        source_id=str(fiscal_year.id),
        entry_type=JournalEntry.EntryType.CLOSING,
        entry_number=closing_entry_number(fiscal_year),
        require_postable=False,
    )


def close_year_books(tenant, fiscal_year, retained_earnings) -> tuple[Decimal, Optional[JournalEntry]]:
    """
    Build and post the closing entry for a fiscal year.

    Must run inside the caller's transaction (periods.close_fiscal_year).

    Returns:
        (net_income, posted closing entry or None)
    """
    net_income = compute_net_income(fiscal_year)
    entry = build_closing_entry(fiscal_year, retained_earnings)
    if entry is None:
        logger.info(
            "No income statement activity to close",
            extra={"tenant": tenant.slug, "fiscal_year": fiscal_year.name},
        )
        return net_income, None

    entry = journal.post_entry(tenant, entry.id, allow_closed_period=True)
    logger.info(
        "Closing entry posted",
        extra={
            "tenant": tenant.slug,
            "fiscal_year": fiscal_year.name,
            "entry_number": entry.entry_number,
            "net_income": str(net_income),
        },
    )
    return net_income, entry
