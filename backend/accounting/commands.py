# accounting/commands.py
"""
Command layer for accounting operations.

Commands are the single entry point views (and other callers) use.
Each one delegates to a service module, which applies the policies,
writes inside its own transaction and emits events; the command turns
domain errors into a CommandResult so callers never have to catch them.

Pattern:
1. Parse/normalize the payload
2. Call the service (registry, journal, periods, ledger, reports)
3. Return CommandResult.ok(data) or CommandResult.fail(...)

Unexpected exceptions are not caught here; they propagate.
"""

import logging
from typing import Optional

from django.conf import settings
from django.utils import timezone

from accounting import journal, ledger, periods, registry, reports
from accounting.exceptions import AccountingError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class CommandResult:
    """
    Wrapper for command results with success/failure info.

    Usage:
        result = create_account(tenant, code="1000", name="Cash")
        if result.success:
            account = result.data
        else:
            error_message = result.error
            status = result.status_code
    """

    def __init__(
        self,
        success: bool,
        data=None,
        error: str = None,
        error_kind: str = None,
        status_code: int = 200,
        details: dict = None,
    ):
        self.success = success
        self.data = data
        self.error = error
        self.error_kind = error_kind
        self.status_code = status_code
        self.details = details or {}

    def __repr__(self):
        if self.success:
            return f"<CommandResult ok {type(self.data).__name__}>"
        return f"<CommandResult fail {self.error_kind}: {self.error}>"

    @classmethod
    def ok(cls, data=None, status_code: int = 200):
        return cls(success=True, data=data, status_code=status_code)

    @classmethod
    def fail(cls, error: str, error_kind: str = "validation_error", status_code: int = 400, details: dict = None):
        return cls(
            success=False,
            error=error,
            error_kind=error_kind,
            status_code=status_code,
            details=details,
        )

    @classmethod
    def from_error(cls, exc: AccountingError):
        return cls.fail(exc.message, exc.kind, exc.status_code, exc.details)

    def to_error_dict(self) -> dict:
        return {
            "error": {
                "kind": self.error_kind,
                "message": self.error,
                "details": self.details,
            }
        }


def _execute(operation, *args, created: bool = False, **kwargs) -> CommandResult:
    try:
        data = operation(*args, **kwargs)
    except AccountingError as exc:
        logger.info(
            "Command rejected",
            extra={"command": operation.__name__, "kind": exc.kind, "reason": exc.message},
        )
        return CommandResult.from_error(exc)
    return CommandResult.ok(data, status_code=201 if created else 200)


def _page(limit, offset) -> tuple[int, int]:
    try:
        limit = int(limit) if limit not in (None, "") else settings.ACCOUNTING_DEFAULT_PAGE_SIZE
        offset = int(offset) if offset not in (None, "") else 0
    except (TypeError, ValueError):
        raise ValidationError("limit and offset must be integers.")
    if limit <= 0 or offset < 0:
        raise ValidationError("limit must be positive and offset non-negative.")
    return limit, offset


def _optional_date(value, field_name: str):
    if value in (None, ""):
        return None
    return periods.parse_date(value, field_name)


# =============================================================================
# Account commands
# =============================================================================

def create_account_type(
    tenant,
    *,
    code: str,
    name: str,
    category: str,
    normal_balance: Optional[str] = None,
    description: str = "",
    display_order: int = 0,
) -> CommandResult:
    return _execute(
        registry.create_account_type,
        tenant,
        code=code,
        name=name,
        category=category,
        normal_balance=normal_balance,
        description=description,
        display_order=display_order,
        created=True,
    )


def create_account(
    tenant,
    *,
    code: str,
    name: str,
    account_type=None,
    parent=None,
    is_header: bool = False,
    is_active: bool = True,
    description: str = "",
    opening_balance=0,
) -> CommandResult:
    """
    Create a new account.

    ``account_type`` may be an id or a type code; when omitted the
    category is inferred from the code's leading digit.
    """
    return _execute(
        registry.create_account,
        tenant,
        code=code,
        name=name,
        account_type=account_type,
        parent=parent,
        is_header=is_header,
        is_active=is_active,
        description=description,
        opening_balance=opening_balance,
        created=True,
    )


def update_account(tenant, account_id, **changes) -> CommandResult:
    return _execute(registry.update_account, tenant, account_id, **changes)


def delete_account(tenant, account_id) -> CommandResult:
    """Accounts are never hard-deleted; this deactivates."""
    return _execute(registry.delete_account, tenant, account_id)


def import_accounts(tenant, *, rows: list) -> CommandResult:
    """All-or-nothing import; the first bad row aborts the batch."""
    return _execute(registry.import_accounts, tenant, rows, created=True)


# =============================================================================
# Journal entry commands
# =============================================================================

def create_journal_entry(
    tenant,
    *,
    entry_date,
    description: str,
    lines: list,
    reference: str = "",
    source_type: str = "",
    source_id: str = "",
) -> CommandResult:
    return _execute(
        journal.create_entry,
        tenant,
        entry_date=entry_date,
        description=description,
        lines=lines,
        reference=reference,
        source_type=source_type,
        source_id=source_id,
        created=True,
    )


def update_journal_entry(
    tenant,
    entry_id,
    *,
    entry_date=None,
    description: Optional[str] = None,
    reference: Optional[str] = None,
    lines: Optional[list] = None,
) -> CommandResult:
    return _execute(
        journal.update_entry,
        tenant,
        entry_id,
        entry_date=entry_date,
        description=description,
        reference=reference,
        lines=lines,
    )


def void_journal_entry(tenant, entry_id) -> CommandResult:
    return _execute(journal.void_entry, tenant, entry_id)


def post_journal_entry(tenant, entry_id) -> CommandResult:
    return _execute(journal.post_entry, tenant, entry_id)


def reverse_journal_entry(
    tenant,
    entry_id,
    *,
    reversal_date=None,
    description: Optional[str] = None,
) -> CommandResult:
    """
    Returns CommandResult with {"original": ..., "reversal": ...}.
    The reversal is a draft; post it to take effect.
    """
    return _execute(
        journal.reverse_entry,
        tenant,
        entry_id,
        reversal_date=reversal_date,
        description=description,
        created=True,
    )


def validate_journal_entry(tenant, entry_id) -> CommandResult:
    return _execute(journal.validate_entry, tenant, entry_id)


# =============================================================================
# Fiscal calendar commands
# =============================================================================

def create_fiscal_year(
    tenant,
    *,
    start_date,
    end_date,
    name: Optional[str] = None,
    generate_periods: bool = True,
) -> CommandResult:
    return _execute(
        periods.create_fiscal_year,
        tenant,
        start_date=start_date,
        end_date=end_date,
        name=name,
        generate_periods=generate_periods,
        created=True,
    )


def update_fiscal_year(tenant, fiscal_year_id, **changes) -> CommandResult:
    return _execute(periods.update_fiscal_year, tenant, fiscal_year_id, **changes)


def close_period(tenant, period_id, *, force: bool = False) -> CommandResult:
    return _execute(periods.close_period, tenant, period_id, force=force)


def reopen_period(tenant, period_id) -> CommandResult:
    return _execute(periods.reopen_period, tenant, period_id)


def close_fiscal_year(tenant, fiscal_year_id, *, retained_earnings_account_id) -> CommandResult:
    return _execute(
        periods.close_fiscal_year,
        tenant,
        fiscal_year_id,
        retained_earnings_account_id=retained_earnings_account_id,
    )


# =============================================================================
# Queries
# =============================================================================

def _balance(tenant, account_id, as_of=None):
    account = registry.get_account(tenant, account_id=account_id)
    return reports.get_account_balance(account, _optional_date(as_of, "as_of"))


def _statement(tenant, account_id, from_date=None, to_date=None):
    account = registry.get_account(tenant, account_id=account_id)
    return ledger.get_statement(
        account,
        _optional_date(from_date, "from_date"),
        _optional_date(to_date, "to_date"),
    )


def _ledger_entries(tenant, account_id, from_date=None, to_date=None, limit=None, offset=None):
    account = registry.get_account(tenant, account_id=account_id)
    limit, offset = _page(limit, offset)
    return ledger.get_entries(
        account,
        _optional_date(from_date, "from_date"),
        _optional_date(to_date, "to_date"),
        limit=limit,
        offset=offset,
    )


def _trial_balance(tenant, as_of_date=None, hide_zero=False):
    return reports.get_trial_balance(tenant, _optional_date(as_of_date, "as_of_date"), hide_zero)


def _journal_entries(tenant, status=None, from_date=None, to_date=None, source_type=None, limit=None, offset=None):
    limit, offset = _page(limit, offset)
    return journal.list_entries(
        tenant,
        status=status,
        from_date=from_date,
        to_date=to_date,
        source_type=source_type,
        limit=limit,
        offset=offset,
    )


def _activity_summary(tenant, from_date=None, to_date=None):
    return reports.get_activity_summary(
        tenant,
        _optional_date(from_date, "from_date"),
        _optional_date(to_date, "to_date"),
    )


def _profit_and_loss(tenant, from_date=None, to_date=None):
    from_date = _optional_date(from_date, "from_date")
    to_date = _optional_date(to_date, "to_date")
    if from_date is None or to_date is None:
        raise ValidationError("from_date and to_date are required.")
    if to_date < from_date:
        raise ValidationError("to_date must not be before from_date.", field="to_date")
    return reports.get_profit_and_loss(tenant, from_date, to_date)


def _balance_sheet(tenant, as_of=None):
    return reports.get_balance_sheet(tenant, _optional_date(as_of, "as_of") or timezone.localdate())


def _period_balances(tenant, fiscal_period_id=None, as_of_date=None, category=None):
    return reports.get_period_balances(
        tenant,
        fiscal_period_id=fiscal_period_id,
        as_of_date=_optional_date(as_of_date, "as_of_date"),
        category=category or None,
    )


def _current_period(tenant):
    period = periods.get_current_period(tenant)
    if period is None:
        raise NotFoundError("No open fiscal period covers today.")
    return period


def query_balance(tenant, *, account_id, as_of=None) -> CommandResult:
    return _execute(_balance, tenant, account_id, as_of)


def query_statement(tenant, *, account_id, from_date=None, to_date=None) -> CommandResult:
    return _execute(_statement, tenant, account_id, from_date, to_date)


def query_trial_balance(tenant, *, as_of_date=None, hide_zero: bool = False) -> CommandResult:
    return _execute(_trial_balance, tenant, as_of_date, hide_zero)


def query_ledger_entries(
    tenant,
    *,
    account_id,
    from_date=None,
    to_date=None,
    limit=None,
    offset=None,
) -> CommandResult:
    return _execute(_ledger_entries, tenant, account_id, from_date, to_date, limit, offset)


def query_journal_entries(
    tenant,
    *,
    status=None,
    from_date=None,
    to_date=None,
    source_type=None,
    limit=None,
    offset=None,
) -> CommandResult:
    return _execute(_journal_entries, tenant, status, from_date, to_date, source_type, limit, offset)


def query_activity_summary(tenant, *, from_date=None, to_date=None) -> CommandResult:
    return _execute(_activity_summary, tenant, from_date, to_date)


def query_accounts(tenant, *, category=None, active_only: bool = False, tree: bool = False) -> CommandResult:
    return _execute(
        registry.list_accounts,
        tenant,
        category=category,
        active_only=active_only,
        flat=not tree,
    )


def query_account(tenant, *, account_id) -> CommandResult:
    return _execute(registry.get_account, tenant, account_id=account_id)


def query_journal_entry(tenant, *, entry_id) -> CommandResult:
    return _execute(journal.get_entry, tenant, entry_id)


def query_fiscal_years(tenant) -> CommandResult:
    return _execute(periods.list_fiscal_years, tenant)


def query_periods(tenant, *, fiscal_year_id=None, status=None) -> CommandResult:
    return _execute(periods.list_periods, tenant, fiscal_year_id=fiscal_year_id, status=status)


def query_current_period(tenant) -> CommandResult:
    return _execute(_current_period, tenant)


def query_profit_and_loss(tenant, *, from_date=None, to_date=None) -> CommandResult:
    return _execute(_profit_and_loss, tenant, from_date, to_date)


def query_balance_sheet(tenant, *, as_of=None) -> CommandResult:
    return _execute(_balance_sheet, tenant, as_of)


def query_period_balances(tenant, *, fiscal_period_id=None, as_of_date=None, category=None) -> CommandResult:
    return _execute(_period_balances, tenant, fiscal_period_id, as_of_date, category)
