# accounting/journal.py
"""
Journal Engine: draft, post, reverse and void journal entries.

State machine:
    DRAFT -> POSTED -> REVERSED
    DRAFT -> VOIDED

Drafts may be unbalanced while they are edited. Posting is where the
invariants bite: the entry must balance, its date must not fall in a
closed period, and every line must hit a postable account. A post writes
the ledger rows, moves the cached account balances and flips the status
in one transaction.

Reversal never edits history. It creates a new draft with every line's
sides swapped; that draft must be posted like any other entry before it
has ledger effect.
"""

import logging
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from accounting import ledger, periods
from accounting.exceptions import NotFoundError, ValidationError
from accounting.models import (
    Account,
    JournalEntry,
    JournalLine,
    TenantSequence,
    to_money,
)
from accounting.policies import (
    assert_balanced,
    assert_can_edit_entry,
    assert_can_post_entry,
    assert_can_post_to_account,
    assert_can_post_to_fiscal_year,
    assert_can_post_to_period,
    assert_can_reverse_entry,
    assert_can_void_entry,
    can_post_to_account,
    can_post_to_fiscal_year,
    can_post_to_period,
    is_balanced,
)
from events.emitter import emit_event
from events.types import (
    EventTypes,
    JournalEntryCreatedData,
    JournalEntryReversedData,
    JournalEntryVoidedData,
    LedgerPostedData,
)

logger = logging.getLogger(__name__)

ENTRY_SEQUENCE = "journal_entry"
REVERSAL_SEQUENCE = "reversal"
ENTRY_PREFIX = "JE"
REVERSAL_PREFIX = "REV"

MIN_LINES = 2


# =============================================================================
# Numbering
# =============================================================================

def next_sequence_value(tenant, name: str) -> int:
    """
    Allocate the next value of a per-tenant counter.
    Uses select_for_update to avoid concurrent duplicates.
    """
    try:
        seq = TenantSequence.objects.select_for_update().get(tenant=tenant, name=name)
    except TenantSequence.DoesNotExist:
        try:
            with transaction.atomic():
                seq = TenantSequence.objects.create(tenant=tenant, name=name, next_value=1)
        except IntegrityError:
            seq = TenantSequence.objects.select_for_update().get(tenant=tenant, name=name)

    value = seq.next_value
    seq.next_value = value + 1
    seq.save(update_fields=["next_value"])
    return value


def next_entry_number(tenant, prefix: str = ENTRY_PREFIX, sequence: str = ENTRY_SEQUENCE) -> str:
    return f"{prefix}-{next_sequence_value(tenant, sequence):06d}"


# =============================================================================
# Line handling
# =============================================================================

def _resolve_line_account(tenant, ref, line_no: int) -> Account:
    if isinstance(ref, Account):
        if ref.tenant_id != tenant.id:
            raise ValidationError(f"Line {line_no}: account belongs to another tenant.", line=line_no)
        return ref
    if ref in (None, ""):
        raise ValidationError(f"Line {line_no}: account is required.", line=line_no)

    lookup = {"id": ref} if isinstance(ref, int) else {"code": str(ref)}
    try:
        return Account.objects.get(tenant=tenant, **lookup)
    except Account.DoesNotExist:
        raise ValidationError(f"Line {line_no}: account not found: {ref}", line=line_no)


def _build_lines(tenant, lines, require_postable: bool = True) -> tuple[list, Decimal, Decimal]:
    """
    Validate raw line dicts.

    Each line is ``{"account": id | code | Account, "debit_amount": ...,
    "credit_amount": ..., "description": ...}`` with exactly one non-zero
    side.

    Returns:
        (validated line dicts, total_debit, total_credit)
    """
    if not isinstance(lines, (list, tuple)) or len(lines) < MIN_LINES:
        raise ValidationError(f"A journal entry needs at least {MIN_LINES} lines.", field="lines")

    built = []
    total_debit = Decimal("0.00")
    total_credit = Decimal("0.00")

    for line_no, raw in enumerate(lines, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"Line {line_no}: expected an object.", line=line_no)

        account = _resolve_line_account(tenant, raw.get("account"), line_no)
        debit = to_money(raw.get("debit_amount"), f"lines[{line_no}].debit_amount")
        credit = to_money(raw.get("credit_amount"), f"lines[{line_no}].credit_amount")

        if debit < 0 or credit < 0:
            raise ValidationError(f"Line {line_no}: amounts cannot be negative.", line=line_no)
        if (debit > 0) == (credit > 0):
            raise ValidationError(
                f"Line {line_no}: exactly one of debit_amount or credit_amount must be non-zero.",
                line=line_no,
            )
        if require_postable:
            allowed, reason = can_post_to_account(account)
            if not allowed:
                raise ValidationError(f"Line {line_no}: {reason}", line=line_no, account_code=account.code)

        built.append({
            "account": account,
            "debit_amount": debit,
            "credit_amount": credit,
            "description": (raw.get("description") or "").strip(),
        })
        total_debit += debit
        total_credit += credit

    return built, total_debit, total_credit


def reversal_line_description(description: str) -> str:
    if not description:
        return "Reversal"
    max_length = JournalLine._meta.get_field("description").max_length
    return f"Reversal: {description}"[:max_length]


def _write_lines(entry: JournalEntry, built: list) -> None:
    JournalLine.objects.bulk_create([
        JournalLine(
            entry=entry,
            tenant_id=entry.tenant_id,
            line_number=line_no,
            account=line["account"],
            description=line["description"],
            debit_amount=line["debit_amount"],
            credit_amount=line["credit_amount"],
        )
        for line_no, line in enumerate(built, start=1)
    ])


# =============================================================================
# Lookups
# =============================================================================

def get_entry(tenant, entry_id, for_update: bool = False) -> JournalEntry:
    qs = JournalEntry.objects.all()
    if for_update:
        qs = qs.select_for_update()
    try:
        return qs.get(tenant=tenant, id=entry_id)
    except (JournalEntry.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Journal entry not found: {entry_id}")


def list_entries(
    tenant,
    *,
    status: Optional[str] = None,
    from_date=None,
    to_date=None,
    source_type: Optional[str] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> list:
    qs = JournalEntry.objects.filter(tenant=tenant)
    if status:
        if status not in JournalEntry.Status.values:
            raise ValidationError(f"Invalid status filter: {status}", field="status")
        qs = qs.filter(status=status)
    if from_date:
        qs = qs.filter(entry_date__gte=periods.parse_date(from_date, "from_date"))
    if to_date:
        qs = qs.filter(entry_date__lte=periods.parse_date(to_date, "to_date"))
    if source_type:
        qs = qs.filter(source_type=source_type)

    limit = limit or settings.ACCOUNTING_DEFAULT_PAGE_SIZE
    qs = qs.order_by("-entry_date", "-id").prefetch_related("lines__account")
    return list(qs[offset:offset + limit])


def validate_entry(tenant, entry_id) -> dict:
    """
    Dry-run the posting checks without writing anything.

    Returns:
        {"valid": bool, "errors": [...], "warnings": [...]}
    """
    entry = get_entry(tenant, entry_id)
    errors = []
    warnings = []

    if entry.status != JournalEntry.Status.DRAFT:
        errors.append(f"Entry is {entry.status}; only drafts can be posted.")

    lines = list(entry.lines.select_related("account"))
    if len(lines) < MIN_LINES:
        errors.append(f"A journal entry needs at least {MIN_LINES} lines.")

    total_debit = sum((line.debit_amount for line in lines), Decimal("0.00"))
    total_credit = sum((line.credit_amount for line in lines), Decimal("0.00"))
    allowed, reason = is_balanced(total_debit, total_credit)
    if not allowed:
        errors.append(reason)

    for line in lines:
        allowed, reason = can_post_to_account(line.account)
        if not allowed:
            errors.append(f"Line {line.line_number}: {reason}")

    period = periods.find_period(tenant, entry.entry_date)
    if period is None:
        allowed, reason = can_post_to_fiscal_year(periods.find_fiscal_year(tenant, entry.entry_date))
        message = f"No fiscal period covers {entry.entry_date}."
        if not allowed:
            errors.append(reason)
        elif settings.ACCOUNTING_REQUIRE_FISCAL_PERIOD:
            errors.append(message)
        else:
            warnings.append(message + " The entry would post without a period.")
    else:
        allowed, reason = can_post_to_period(period)
        if not allowed:
            errors.append(reason)

    if not entry.description:
        warnings.append("Entry has no description.")

    return {"valid": not errors, "errors": errors, "warnings": warnings}


# =============================================================================
# Mutations
# =============================================================================

@transaction.atomic
def create_entry(
    tenant,
    *,
    entry_date,
    description: str,
    lines: list,
    reference: str = "",
    source_type: str = "",
    source_id: str = "",
    entry_type: str = JournalEntry.EntryType.STANDARD,
    entry_number: Optional[str] = None,
    require_postable: bool = True,
) -> JournalEntry:
    """
    Store a draft entry. Totals come from the lines; balance is not checked
    until post.

    ``entry_number`` and ``require_postable`` are for system entries
    (year-end closing); callers normally leave them alone.
    """
    entry_date = periods.parse_date(entry_date, "entry_date")
    description = (description or "").strip()
    if not description:
        raise ValidationError("Description is required.", field="description")

    built, total_debit, total_credit = _build_lines(tenant, lines, require_postable)

    if entry_number is None:
        entry_number = next_entry_number(tenant)
    elif JournalEntry.objects.filter(tenant=tenant, entry_number=entry_number).exists():
        raise ValidationError(f"Entry number '{entry_number}' already exists.", field="entry_number")

    entry = JournalEntry.objects.create(
        tenant=tenant,
        entry_number=entry_number,
        entry_date=entry_date,
        description=description,
        reference=reference or "",
        entry_type=entry_type,
        status=JournalEntry.Status.DRAFT,
        total_debit=total_debit,
        total_credit=total_credit,
        source_type=source_type or "",
        source_id=str(source_id or ""),
    )
    _write_lines(entry, built)

    emit_event(
        tenant=tenant,
        event_type=EventTypes.JOURNAL_ENTRY_CREATED,
        aggregate_type="journal_entry",
        aggregate_id=entry.public_id,
        data=JournalEntryCreatedData(
            entry_public_id=str(entry.public_id),
            entry_number=entry.entry_number,
            entry_date=entry.entry_date,
            total_debit=total_debit,
            total_credit=total_credit,
            line_count=len(built),
            entry_type=entry.entry_type,
            source_type=entry.source_type,
            source_id=entry.source_id,
        ),
    )
    logger.info(
        "Journal entry drafted",
        extra={"tenant": tenant.slug, "entry_number": entry.entry_number, "lines": len(built)},
    )
    return entry


@transaction.atomic
def update_entry(
    tenant,
    entry_id,
    *,
    entry_date=None,
    description: Optional[str] = None,
    reference: Optional[str] = None,
    lines: Optional[list] = None,
) -> JournalEntry:
    """Edit a draft. Passing ``lines`` replaces every line."""
    entry = get_entry(tenant, entry_id, for_update=True)
    assert_can_edit_entry(entry)

    if entry_date is not None:
        entry.entry_date = periods.parse_date(entry_date, "entry_date")
    if description is not None:
        description = description.strip()
        if not description:
            raise ValidationError("Description is required.", field="description")
        entry.description = description
    if reference is not None:
        entry.reference = reference

    if lines is not None:
        built, total_debit, total_credit = _build_lines(tenant, lines)
        entry.lines.all().delete()
        _write_lines(entry, built)
        entry.total_debit = total_debit
        entry.total_credit = total_credit

    entry.save()
    logger.info("Journal entry updated", extra={"tenant": tenant.slug, "entry_number": entry.entry_number})
    return entry


@transaction.atomic
def void_entry(tenant, entry_id) -> JournalEntry:
    """
    Void a draft. Voiding an unposted reversal puts the entry it was
    reversing back to POSTED, since that reversal never took effect.
    """
    entry = get_entry(tenant, entry_id, for_update=True)
    assert_can_void_entry(entry)

    entry.status = JournalEntry.Status.VOIDED
    entry.voided_at = timezone.now()
    entry.save(update_fields=["status", "voided_at", "updated_at"])

    restored = None
    if entry.is_reversing and entry.reversed_entry_id:
        original = get_entry(tenant, entry.reversed_entry_id, for_update=True)
        if original.status == JournalEntry.Status.REVERSED:
            original.status = JournalEntry.Status.POSTED
            original.reversal_date = None
            original.save(update_fields=["status", "reversal_date", "updated_at"])
            restored = original

    emit_event(
        tenant=tenant,
        event_type=EventTypes.JOURNAL_ENTRY_VOIDED,
        aggregate_type="journal_entry",
        aggregate_id=entry.public_id,
        data=JournalEntryVoidedData(
            entry_public_id=str(entry.public_id),
            entry_number=entry.entry_number,
            restored_entry_number=restored.entry_number if restored else None,
        ),
    )
    logger.info("Journal entry voided", extra={"tenant": tenant.slug, "entry_number": entry.entry_number})
    return entry


@transaction.atomic
def post_entry(tenant, entry_id, *, allow_closed_period: bool = False) -> JournalEntry:
    """
    Post a draft into the ledger.

    Checks, in order: status is DRAFT, debits equal credits within
    0.01, the entry date is not in a closed period, every line account
    is postable. Then one LedgerEntry per line is appended and each
    account's cached balance moves by the line's signed amount.

    ``allow_closed_period`` is used only by year-end closing, which posts
    on the last day of a year whose periods are all closed.
    """
    entry = get_entry(tenant, entry_id, for_update=True)
    assert_can_post_entry(entry)

    lines = list(entry.lines.order_by("line_number"))
    if len(lines) < MIN_LINES:
        raise ValidationError(f"A journal entry needs at least {MIN_LINES} lines.", field="lines")

    total_debit = sum((line.debit_amount for line in lines), Decimal("0.00"))
    total_credit = sum((line.credit_amount for line in lines), Decimal("0.00"))
    assert_balanced(entry, total_debit, total_credit)

    period = periods.find_period(tenant, entry.entry_date, for_update=True)
    if period is None:
        assert_can_post_to_fiscal_year(
            periods.find_fiscal_year(tenant, entry.entry_date), allow_closed_period,
        )
        if settings.ACCOUNTING_REQUIRE_FISCAL_PERIOD:
            raise ValidationError(
                f"No fiscal period covers {entry.entry_date}.",
                entry_number=entry.entry_number,
            )
    assert_can_post_to_period(period, allow_closed_period)

    # Lock every touched account in id order so concurrent posts cannot deadlock.
    account_ids = sorted({line.account_id for line in lines})
    accounts = {
        account.id: account
        for account in Account.objects.select_for_update()
        .filter(tenant=tenant, id__in=account_ids)
        .order_by("id")
    }

    closing = entry.entry_type == JournalEntry.EntryType.CLOSING
    for line in lines:
        account = accounts[line.account_id]
        if closing:
            # Income statement accounts are zeroed even if deactivated since.
            if account.is_header:
                assert_can_post_to_account(account)
        else:
            assert_can_post_to_account(account)
        ledger.apply_posting(entry=entry, line=line, account=account, period=period)

    entry.status = JournalEntry.Status.POSTED
    entry.posted_at = timezone.now()
    entry.fiscal_period = period
    entry.total_debit = total_debit
    entry.total_credit = total_credit
    entry.save(update_fields=[
        "status",
        "posted_at",
        "fiscal_period",
        "total_debit",
        "total_credit",
        "updated_at",
    ])

    emit_event(
        tenant=tenant,
        event_type=EventTypes.LEDGER_POSTED,
        aggregate_type="journal_entry",
        aggregate_id=entry.public_id,
        data=LedgerPostedData(
            entry_public_id=str(entry.public_id),
            entry_number=entry.entry_number,
            entry_date=entry.entry_date,
            total_amount=total_debit,
            line_count=len(lines),
            entry_type=entry.entry_type,
            fiscal_period_id=period.id if period else None,
            account_codes=sorted(accounts[account_id].code for account_id in account_ids),
        ),
    )
    if period is None:
        logger.warning(
            "Journal entry posted outside any fiscal period",
            extra={"tenant": tenant.slug, "entry_number": entry.entry_number, "entry_date": str(entry.entry_date)},
        )
    logger.info(
        "Journal entry posted",
        extra={
            "tenant": tenant.slug,
            "entry_number": entry.entry_number,
            "amount": str(total_debit),
            "period": period.name if period else None,
        },
    )
    return entry


@transaction.atomic
def reverse_entry(
    tenant,
    entry_id,
    *,
    reversal_date=None,
    description: Optional[str] = None,
) -> dict:
    """
    Create the offsetting draft for a posted entry.

    Returns:
        {"original": JournalEntry, "reversal": JournalEntry}
    """
    original = get_entry(tenant, entry_id, for_update=True)
    assert_can_reverse_entry(original)

    if reversal_date in (None, ""):
        reversal_date = timezone.localdate()
    else:
        reversal_date = periods.parse_date(reversal_date, "reversal_date")

    reversal = JournalEntry.objects.create(
        tenant=tenant,
        entry_number=next_entry_number(tenant, REVERSAL_PREFIX, REVERSAL_SEQUENCE),
        entry_date=reversal_date,
        description=(description or "").strip() or f"Reversal of {original.entry_number}",
        reference=original.entry_number,
        entry_type=JournalEntry.EntryType.REVERSING,
        status=JournalEntry.Status.DRAFT,
        is_reversing=True,
        reversed_entry=original,
        total_debit=original.total_credit,
        total_credit=original.total_debit,
        source_type=original.source_type,
        source_id=original.source_id,
    )
    JournalLine.objects.bulk_create([
        JournalLine(
            entry=reversal,
            tenant_id=tenant.id,
            line_number=line.line_number,
            account_id=line.account_id,
            description=reversal_line_description(line.description),
            debit_amount=line.credit_amount,
            credit_amount=line.debit_amount,
        )
        for line in original.lines.order_by("line_number")
    ])

    original.status = JournalEntry.Status.REVERSED
    original.reversal_date = reversal_date
    original.save(update_fields=["status", "reversal_date", "updated_at"])

    emit_event(
        tenant=tenant,
        event_type=EventTypes.JOURNAL_ENTRY_REVERSED,
        aggregate_type="journal_entry",
        aggregate_id=original.public_id,
        data=JournalEntryReversedData(
            original_public_id=str(original.public_id),
            original_number=original.entry_number,
            reversal_public_id=str(reversal.public_id),
            reversal_number=reversal.entry_number,
            reversal_date=reversal_date,
        ),
    )
    logger.info(
        "Journal entry reversed",
        extra={
            "tenant": tenant.slug,
            "entry_number": original.entry_number,
            "reversal_number": reversal.entry_number,
        },
    )
    return {"original": original, "reversal": reversal}
