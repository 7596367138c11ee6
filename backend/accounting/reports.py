# accounting/reports.py
"""
Read-side reports derived from the ledger.

All balances here are computed from LedgerEntry rows, never from the
cached Account.current_balance, so a report for a past date is exact.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from django.db.models import Count, DecimalField, Q, Sum, Value
from django.db.models.functions import Coalesce

from accounting import ledger
from accounting.exceptions import ValidationError
from accounting.models import BALANCE_TOLERANCE, Account, AccountType, JournalEntry, LedgerEntry
from accounting.periods import get_period

ZERO = Decimal("0.00")


def _money_sum(field: str, condition: Optional[Q] = None):
    if condition is None:
        aggregate = Sum(field)
    else:
        aggregate = Sum(field, filter=condition)
    return Coalesce(
        aggregate,
        Value(ZERO),
        output_field=DecimalField(max_digits=18, decimal_places=2),
    )


def get_trial_balance(tenant, as_of_date: Optional[date] = None, hide_zero: bool = False) -> dict:
    """
    Trial balance as of a date (inclusive), or over all postings.

    Rows cover every active postable account plus deactivated accounts that
    still carry postings, so the two columns always foot. A positive balance
    lands in the account's normal column, a negative one in the other.
    """
    date_filter = Q(ledger_entries__entry_date__lte=as_of_date) if as_of_date else None

    accounts = (
        Account.objects.filter(tenant=tenant, is_header=False)
        .select_related("account_type")
        .annotate(
            period_debits=_money_sum("ledger_entries__debit_amount", date_filter),
            period_credits=_money_sum("ledger_entries__credit_amount", date_filter),
            posting_count=Count("ledger_entries"),
        )
        .filter(Q(is_active=True) | Q(posting_count__gt=0))
        .order_by("code")
    )

    rows = []
    total_debit = ZERO
    total_credit = ZERO

    for account in accounts:
        balance = account.opening_balance + account.signed_amount(
            account.period_debits, account.period_credits
        )
        if hide_zero and balance == 0:
            continue

        debit_balance = ZERO
        credit_balance = ZERO
        on_normal_side = balance >= 0
        debit_normal = account.normal_balance == AccountType.NormalBalance.DEBIT
        if debit_normal == on_normal_side:
            debit_balance = abs(balance)
        else:
            credit_balance = abs(balance)

        total_debit += debit_balance
        total_credit += credit_balance
        rows.append({
            "account_id": account.id,
            "account_code": account.code,
            "account_name": account.name,
            "category": account.category,
            "normal_balance": account.normal_balance,
            "is_active": account.is_active,
            "balance": balance,
            "debit_balance": debit_balance,
            "credit_balance": credit_balance,
        })

    return {
        "as_of_date": as_of_date,
        "accounts": rows,
        "total_debit": total_debit,
        "total_credit": total_credit,
        "difference": total_debit - total_credit,
        "is_balanced": abs(total_debit - total_credit) < BALANCE_TOLERANCE,
    }


def get_account_balance(account: Account, as_of: Optional[date] = None) -> dict:
    postings = LedgerEntry.objects.filter(tenant_id=account.tenant_id, account=account)
    if as_of:
        postings = postings.filter(entry_date__lte=as_of)
    debits, credits = ledger.sum_postings(postings)

    return {
        "account_id": account.id,
        "account_code": account.code,
        "account_name": account.name,
        "normal_balance": account.normal_balance,
        "as_of": as_of,
        "opening_balance": account.opening_balance,
        "total_debits": debits,
        "total_credits": credits,
        "balance": account.opening_balance + account.signed_amount(debits, credits),
        "current_balance": account.current_balance,
    }


def get_activity_summary(tenant, from_date: Optional[date] = None, to_date: Optional[date] = None) -> list:
    """Posting activity grouped by account category."""
    qs = LedgerEntry.objects.filter(tenant=tenant)
    if from_date:
        qs = qs.filter(entry_date__gte=from_date)
    if to_date:
        qs = qs.filter(entry_date__lte=to_date)

    grouped = {
        row["account__account_type__category"]: row
        for row in qs.order_by().values("account__account_type__category").annotate(
            account_count=Count("account", distinct=True),
            debits=Sum("debit_amount"),
            credits=Sum("credit_amount"),
            transaction_count=Count("journal_entry", distinct=True),
        )
    }

    summary = []
    for category, label in AccountType.Category.choices:
        row = grouped.get(category, {})
        summary.append({
            "category": category,
            "label": label,
            "account_count": row.get("account_count", 0),
            "total_debits": row.get("debits") or ZERO,
            "total_credits": row.get("credits") or ZERO,
            "transaction_count": row.get("transaction_count", 0),
        })
    return summary


# =============================================================================
# Financial Statements
# =============================================================================

def _category_amount(category: str, debits, credits) -> Decimal:
    """Debit-side categories grow with debits, the rest with credits."""
    debits = debits or ZERO
    credits = credits or ZERO
    if category in (AccountType.Category.ASSET, AccountType.Category.EXPENSE):
        return debits - credits
    return credits - debits


def _statement_row(account, amount: Decimal) -> dict:
    return {
        "account_id": account.id,
        "account_code": account.code,
        "account_name": account.name,
        "account_type": account.account_type.name,
        "balance": amount,
    }


def _accounts_with_totals(tenant, categories, condition: Optional[Q]):
    return (
        Account.objects.filter(
            tenant=tenant,
            is_active=True,
            is_header=False,
            account_type__category__in=categories,
        )
        .select_related("account_type")
        .annotate(
            period_debits=_money_sum("ledger_entries__debit_amount", condition),
            period_credits=_money_sum("ledger_entries__credit_amount", condition),
        )
        .order_by("code")
    )


def get_profit_and_loss(tenant, from_date: date, to_date: date) -> dict:
    """
    Revenue and expense per account for [from_date, to_date].

    Closing entries are left out so a closed year still shows the result
    it closed into retained earnings. Only accounts with non-zero
    activity are listed.
    """
    condition = Q(
        ledger_entries__entry_date__gte=from_date,
        ledger_entries__entry_date__lte=to_date,
    ) & ~Q(ledger_entries__journal_entry__entry_type=JournalEntry.EntryType.CLOSING)

    revenue, expenses = [], []
    for account in _accounts_with_totals(
        tenant, (AccountType.Category.REVENUE, AccountType.Category.EXPENSE), condition,
    ):
        category = account.account_type.category
        amount = _category_amount(category, account.period_debits, account.period_credits)
        if amount == 0:
            continue
        target = revenue if category == AccountType.Category.REVENUE else expenses
        target.append(_statement_row(account, amount))

    total_revenue = sum((row["balance"] for row in revenue), ZERO)
    total_expenses = sum((row["balance"] for row in expenses), ZERO)
    return {
        "from_date": from_date,
        "to_date": to_date,
        "revenue": revenue,
        "expenses": expenses,
        "total_revenue": total_revenue,
        "total_expenses": total_expenses,
        "net_income": total_revenue - total_expenses,
    }


def get_balance_sheet(tenant, as_of: date) -> dict:
    """
    Assets, liabilities and equity as of a date (inclusive).

    Asset and liability rows with a zero balance are dropped; every
    active equity account is listed. ``retained_earnings`` is revenue less
    expense up to as_of that has not yet been closed into equity, so the
    sheet balances before and after a year-end close.
    """
    condition = Q(ledger_entries__entry_date__lte=as_of)
    sections = {
        AccountType.Category.ASSET: [],
        AccountType.Category.LIABILITY: [],
        AccountType.Category.EQUITY: [],
    }
    for account in _accounts_with_totals(tenant, tuple(sections), condition):
        category = account.account_type.category
        amount = account.opening_balance + _category_amount(
            category, account.period_debits, account.period_credits
        )
        if amount == 0 and category != AccountType.Category.EQUITY:
            continue
        sections[category].append(_statement_row(account, amount))

    income = (
        LedgerEntry.objects.filter(
            tenant=tenant,
            entry_date__lte=as_of,
            account__account_type__category__in=(
                AccountType.Category.REVENUE,
                AccountType.Category.EXPENSE,
            ),
        )
        .order_by()
        .values("account__account_type__category")
        .annotate(debits=Sum("debit_amount"), credits=Sum("credit_amount"))
    )
    retained_earnings = ZERO
    for row in income:
        amount = _category_amount(row["account__account_type__category"], row["debits"], row["credits"])
        if row["account__account_type__category"] == AccountType.Category.REVENUE:
            retained_earnings += amount
        else:
            retained_earnings -= amount

    total_assets = sum((row["balance"] for row in sections[AccountType.Category.ASSET]), ZERO)
    total_liabilities = sum((row["balance"] for row in sections[AccountType.Category.LIABILITY]), ZERO)
    total_equity = sum((row["balance"] for row in sections[AccountType.Category.EQUITY]), ZERO)
    total_equity += retained_earnings
    difference = total_assets - total_liabilities - total_equity

    return {
        "as_of": as_of,
        "assets": sections[AccountType.Category.ASSET],
        "liabilities": sections[AccountType.Category.LIABILITY],
        "equity": sections[AccountType.Category.EQUITY],
        "retained_earnings": retained_earnings,
        "total_assets": total_assets,
        "total_liabilities": total_liabilities,
        "total_equity": total_equity,
        "is_balanced": abs(difference) < BALANCE_TOLERANCE,
    }


def get_period_balances(
    tenant,
    *,
    fiscal_period_id=None,
    as_of_date: Optional[date] = None,
    category: Optional[str] = None,
) -> list:
    """
    Debit and credit totals per active postable account.

    Postings are limited to one fiscal period when ``fiscal_period_id``
    is given, else to those on or before ``as_of_date``, else all.
    """
    if fiscal_period_id not in (None, ""):
        period = get_period(tenant, fiscal_period_id)
        condition = Q(ledger_entries__fiscal_period=period)
    elif as_of_date:
        condition = Q(ledger_entries__entry_date__lte=as_of_date)
    else:
        condition = None

    accounts = Account.objects.filter(tenant=tenant, is_active=True, is_header=False)
    if category:
        if category not in AccountType.Category.values:
            raise ValidationError(f"Invalid category: {category}", field="category")
        accounts = accounts.filter(account_type__category=category)

    accounts = (
        accounts.select_related("account_type")
        .annotate(
            period_debits=_money_sum("ledger_entries__debit_amount", condition),
            period_credits=_money_sum("ledger_entries__credit_amount", condition),
        )
        .order_by("code")
    )
    return [
        {
            "account_id": account.id,
            "account_code": account.code,
            "account_name": account.name,
            "category": account.category,
            "normal_balance": account.normal_balance,
            "opening_balance": account.opening_balance,
            "period_debits": account.period_debits,
            "period_credits": account.period_credits,
            "closing_balance": account.opening_balance + account.signed_amount(
                account.period_debits, account.period_credits
            ),
        }
        for account in accounts
    ]
