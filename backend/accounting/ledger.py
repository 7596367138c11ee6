# accounting/ledger.py
"""
Ledger: append-only postings per account.

apply_posting() is the only writer and is called only by the journal
engine while it holds the entry and account row locks. Everything else
here is read-side: paged entries and running-balance statements.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.db.models import Sum

from accounting.models import Account, LedgerEntry

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def sum_postings(queryset) -> tuple[Decimal, Decimal]:
    """Total debits and credits of a LedgerEntry queryset."""
    totals = queryset.aggregate(
        debits=Sum("debit_amount"),
        credits=Sum("credit_amount"),
    )
    return totals["debits"] or ZERO, totals["credits"] or ZERO


def apply_posting(*, entry, line, account: Account, period=None) -> LedgerEntry:
    """
    Append the ledger row for one journal line and move the account balance.

    ``account`` must be the row locked by the caller (select_for_update);
    both writes land in the caller's transaction.
    """
    ledger_entry = LedgerEntry.objects.create(
        tenant_id=entry.tenant_id,
        account=account,
        journal_entry=entry,
        journal_line=line,
        fiscal_period=period,
        entry_date=entry.entry_date,
        debit_amount=line.debit_amount,
        credit_amount=line.credit_amount,
        description=line.description or entry.description,
        reference=entry.entry_number,
        source_type=entry.source_type,
        source_id=entry.source_id,
    )

    delta = account.signed_amount(line.debit_amount, line.credit_amount)
    account.current_balance = account.current_balance + delta
    account.save(update_fields=["current_balance", "updated_at"])

    logger.debug(
        "Applied posting",
        extra={
            "entry_number": entry.entry_number,
            "account_code": account.code,
            "delta": str(delta),
        },
    )
    return ledger_entry


def _entries_in_range(account: Account, from_date: Optional[date], to_date: Optional[date]):
    qs = LedgerEntry.objects.filter(tenant_id=account.tenant_id, account=account)
    if from_date:
        qs = qs.filter(entry_date__gte=from_date)
    if to_date:
        qs = qs.filter(entry_date__lte=to_date)
    return qs


def get_entries(
    account: Account,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> list:
    """Chronological postings for an account, one page at a time."""
    limit = limit or settings.ACCOUNTING_DEFAULT_PAGE_SIZE
    qs = (
        _entries_in_range(account, from_date, to_date)
        .select_related("journal_entry")
        .order_by("entry_date", "created_at", "id")
    )
    return list(qs[offset:offset + limit])


def get_statement(
    account: Account,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
) -> dict:
    """
    Account statement with a running balance.

    The opening balance is the account's opening_balance plus every posting
    dated before ``from_date``; each posting in range is then applied in
    (entry_date, creation order). The closing balance therefore equals the
    point-in-time balance at ``to_date``.
    """
    opening = account.opening_balance
    if from_date:
        prior = LedgerEntry.objects.filter(
            tenant_id=account.tenant_id,
            account=account,
            entry_date__lt=from_date,
        )
        opening += account.signed_amount(*sum_postings(prior))

    running = opening
    total_debits = ZERO
    total_credits = ZERO
    lines = []

    qs = (
        _entries_in_range(account, from_date, to_date)
        .select_related("journal_entry")
        .order_by("entry_date", "created_at", "id")
    )
    for posting in qs:
        running += account.signed_amount(posting.debit_amount, posting.credit_amount)
        total_debits += posting.debit_amount
        total_credits += posting.credit_amount
        lines.append({
            "ledger_entry_id": posting.id,
            "entry_date": posting.entry_date,
            "entry_number": posting.reference,
            "description": posting.description,
            "debit_amount": posting.debit_amount,
            "credit_amount": posting.credit_amount,
            "balance": running,
        })

    return {
        "account_id": account.id,
        "account_code": account.code,
        "account_name": account.name,
        "normal_balance": account.normal_balance,
        "from_date": from_date,
        "to_date": to_date,
        "opening_balance": opening,
        "total_debits": total_debits,
        "total_credits": total_credits,
        "closing_balance": running,
        "entries": lines,
    }
