# accounting/periods.py
"""
Period Manager: fiscal years, their monthly periods, and which dates
accept postings.

A period is open or closed. Closing refuses while draft entries still
fall inside the period unless forced; a closed fiscal year is terminal
and is the only transition that posts (the closing entry) into closed
periods.
"""

import calendar
import logging
from datetime import date, datetime, timedelta
from typing import Optional

from django.db import transaction
from django.utils import timezone

from accounting.exceptions import NotFoundError, ConflictError, ValidationError
from accounting.models import FiscalPeriod, FiscalYear, JournalEntry
from accounting.registry import get_account
from accounting.policies import (
    assert_can_activate_fiscal_year,
    assert_can_change_fiscal_year_dates,
    assert_can_close_fiscal_year,
    assert_can_close_period,
    assert_can_receive_retained_earnings,
    assert_can_reopen_period,
)
from events.emitter import emit_event
from events.types import (
    EventTypes,
    FiscalYearClosedData,
    FiscalYearCreatedData,
    FiscalYearUpdatedData,
    PeriodClosedData,
    PeriodReopenedData,
)

logger = logging.getLogger(__name__)


def parse_date(value, field_name: str = "date") -> date:
    """Accept a date, a datetime or an ISO string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            pass
    raise ValidationError(f"{field_name} must be a date (YYYY-MM-DD).", field=field_name)


def _month_end(day: date) -> date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def generate_period_ranges(start_date: date, end_date: date) -> list:
    """
    Slice [start_date, end_date] into calendar-month periods.

    The first period starts on start_date; every period ends on its
    month end, except the last which is clamped to end_date. Years that
    start mid-month therefore produce a short first and last period.

    Returns:
        List of (period_number, name, start, end) tuples
    """
    ranges = []
    current = start_date
    number = 1
    while current <= end_date:
        period_end = min(_month_end(current), end_date)
        name = f"{calendar.month_name[current.month]} {current.year}"
        ranges.append((number, name, current, period_end))
        current = period_end + timedelta(days=1)
        number += 1
    return ranges


def _default_year_name(start_date: date, end_date: date) -> str:
    if start_date.year == end_date.year:
        return f"FY {start_date.year}"
    return f"FY {start_date.year}-{end_date.year}"


# =============================================================================
# Lookups
# =============================================================================

def get_fiscal_year(tenant, fiscal_year_id, for_update: bool = False) -> FiscalYear:
    qs = FiscalYear.objects.all()
    if for_update:
        qs = qs.select_for_update()
    try:
        return qs.get(tenant=tenant, id=fiscal_year_id)
    except (FiscalYear.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Fiscal year not found: {fiscal_year_id}")


def get_period(tenant, period_id, for_update: bool = False) -> FiscalPeriod:
    qs = FiscalPeriod.objects.select_related("fiscal_year")
    if for_update:
        # Lock the period row only; year locks are taken explicitly, year first.
        qs = qs.select_for_update(of=("self",))
    try:
        return qs.get(tenant=tenant, id=period_id)
    except (FiscalPeriod.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Fiscal period not found: {period_id}")


def find_period(tenant, target_date: date, for_update: bool = False) -> Optional[FiscalPeriod]:
    """The period covering target_date, or None when no period does."""
    qs = FiscalPeriod.objects.filter(
        tenant=tenant,
        start_date__lte=target_date,
        end_date__gte=target_date,
    )
    if for_update:
        qs = qs.select_for_update()
    return qs.order_by("start_date").first()


def find_fiscal_year(tenant, target_date: date) -> Optional[FiscalYear]:
    """The fiscal year covering target_date, whether or not it has periods."""
    return (
        FiscalYear.objects.filter(tenant=tenant, start_date__lte=target_date, end_date__gte=target_date)
        .order_by("start_date")
        .first()
    )


def get_current_period(tenant, today: Optional[date] = None) -> Optional[FiscalPeriod]:
    """The open period covering today, or None."""
    period = find_period(tenant, today or timezone.localdate())
    if period is None or period.status != FiscalPeriod.Status.OPEN:
        return None
    return period


def get_current_fiscal_year(tenant, today: Optional[date] = None) -> Optional[FiscalYear]:
    return find_fiscal_year(tenant, today or timezone.localdate())


def list_fiscal_years(tenant) -> list:
    return list(
        FiscalYear.objects.filter(tenant=tenant)
        .prefetch_related("periods")
        .order_by("-start_date")
    )


def list_periods(tenant, *, fiscal_year_id=None, status: Optional[str] = None) -> list:
    """Periods across every year, newest first."""
    qs = FiscalPeriod.objects.filter(tenant=tenant).select_related("fiscal_year")
    if fiscal_year_id not in (None, ""):
        qs = qs.filter(fiscal_year=get_fiscal_year(tenant, fiscal_year_id))
    if status:
        if status not in FiscalPeriod.Status.values:
            raise ValidationError(f"Invalid status filter: {status}", field="status")
        qs = qs.filter(status=status)
    return list(qs.order_by("-start_date"))


# =============================================================================
# Mutations
# =============================================================================

@transaction.atomic
def create_fiscal_year(
    tenant,
    *,
    start_date,
    end_date,
    name: Optional[str] = None,
    generate_periods: bool = True,
) -> FiscalYear:
    start = parse_date(start_date, "start_date")
    end = parse_date(end_date, "end_date")
    if end <= start:
        raise ValidationError("End date must be after start date.", field="end_date")

    name = _clean_year_name(name) if (name or "").strip() else _default_year_name(start, end)

    if FiscalYear.objects.filter(tenant=tenant, name=name).exists():
        raise ConflictError(f"Fiscal year '{name}' already exists.", name=name)

    overlapping = FiscalYear.objects.filter(
        tenant=tenant,
        start_date__lte=end,
        end_date__gte=start,
    ).first()
    if overlapping is not None:
        raise ConflictError(
            f"Fiscal year overlaps {overlapping.name} "
            f"({overlapping.start_date} to {overlapping.end_date}).",
            overlaps=overlapping.name,
        )

    fiscal_year = FiscalYear.objects.create(
        tenant=tenant,
        name=name,
        start_date=start,
        end_date=end,
    )

    periods = []
    if generate_periods:
        periods = FiscalPeriod.objects.bulk_create([
            FiscalPeriod(
                tenant=tenant,
                fiscal_year=fiscal_year,
                period_number=number,
                name=period_name,
                start_date=period_start,
                end_date=period_end,
            )
            for number, period_name, period_start, period_end in generate_period_ranges(start, end)
        ])

    emit_event(
        tenant=tenant,
        event_type=EventTypes.FISCAL_YEAR_CREATED,
        aggregate_type="fiscal_year",
        aggregate_id=fiscal_year.id,
        data=FiscalYearCreatedData(
            fiscal_year_id=fiscal_year.id,
            name=name,
            start_date=start,
            end_date=end,
            period_count=len(periods),
        ),
    )
    logger.info(
        "Fiscal year created",
        extra={"tenant": tenant.slug, "fiscal_year": name, "periods": len(periods)},
    )
    return fiscal_year


FISCAL_YEAR_UPDATABLE_FIELDS = {"name", "start_date", "end_date", "is_active"}


def _clean_year_name(name) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Fiscal year name is required.", field="name")
    max_length = FiscalYear._meta.get_field("name").max_length
    if len(name) > max_length:
        raise ValidationError(f"Fiscal year name is longer than {max_length} characters.", field="name")
    return name


@transaction.atomic
def update_fiscal_year(tenant, fiscal_year_id, **changes) -> FiscalYear:
    """
    Partial update of a fiscal year.

    The name and active flag can always change, except that a closed year
    is never reactivated. Dates can only move while the year is open and
    has no periods; periods are generated from the dates and are not
    re-sliced.
    """
    if not changes:
        raise ValidationError("No fields to update.")
    unknown = set(changes) - FISCAL_YEAR_UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

    fiscal_year = get_fiscal_year(tenant, fiscal_year_id, for_update=True)
    recorded = {}

    def _record(field, old, new):
        if old != new:
            recorded[field] = {"old": old, "new": new}

    if "name" in changes:
        name = _clean_year_name(changes["name"])
        if FiscalYear.objects.filter(tenant=tenant, name=name).exclude(pk=fiscal_year.pk).exists():
            raise ConflictError(f"Fiscal year '{name}' already exists.", name=name)
        _record("name", fiscal_year.name, name)
        fiscal_year.name = name

    if "start_date" in changes or "end_date" in changes:
        start = parse_date(changes.get("start_date", fiscal_year.start_date), "start_date")
        end = parse_date(changes.get("end_date", fiscal_year.end_date), "end_date")
        if (start, end) != (fiscal_year.start_date, fiscal_year.end_date):
            assert_can_change_fiscal_year_dates(fiscal_year)
            if end <= start:
                raise ValidationError("End date must be after start date.", field="end_date")
            overlapping = (
                FiscalYear.objects.filter(tenant=tenant, start_date__lte=end, end_date__gte=start)
                .exclude(pk=fiscal_year.pk)
                .first()
            )
            if overlapping is not None:
                raise ConflictError(
                    f"Fiscal year overlaps {overlapping.name} "
                    f"({overlapping.start_date} to {overlapping.end_date}).",
                    overlaps=overlapping.name,
                )
            _record("start_date", fiscal_year.start_date.isoformat(), start.isoformat())
            _record("end_date", fiscal_year.end_date.isoformat(), end.isoformat())
            fiscal_year.start_date = start
            fiscal_year.end_date = end

    if "is_active" in changes:
        is_active = bool(changes["is_active"])
        if is_active and not fiscal_year.is_active:
            assert_can_activate_fiscal_year(fiscal_year)
        _record("is_active", fiscal_year.is_active, is_active)
        fiscal_year.is_active = is_active

    if not recorded:
        return fiscal_year

    fiscal_year.save()

    emit_event(
        tenant=tenant,
        event_type=EventTypes.FISCAL_YEAR_UPDATED,
        aggregate_type="fiscal_year",
        aggregate_id=fiscal_year.id,
        data=FiscalYearUpdatedData(
            fiscal_year_id=fiscal_year.id,
            name=fiscal_year.name,
            changes=recorded,
        ),
    )
    logger.info(
        "Fiscal year updated",
        extra={"tenant": tenant.slug, "fiscal_year": fiscal_year.name, "fields": sorted(recorded)},
    )
    return fiscal_year


@transaction.atomic
def close_period(tenant, period_id, *, force: bool = False) -> FiscalPeriod:
    """
    Close a period.

    Drafts dated inside the period block the close unless ``force``; a
    forced close leaves them as drafts that cannot be posted until the
    period is reopened.
    """
    period = get_period(tenant, period_id, for_update=True)

    draft_count = JournalEntry.objects.filter(
        tenant=tenant,
        status=JournalEntry.Status.DRAFT,
        entry_date__gte=period.start_date,
        entry_date__lte=period.end_date,
    ).count()
    assert_can_close_period(period, draft_count, force)

    period.status = FiscalPeriod.Status.CLOSED
    period.closed_at = timezone.now()
    period.save(update_fields=["status", "closed_at"])

    emit_event(
        tenant=tenant,
        event_type=EventTypes.PERIOD_CLOSED,
        aggregate_type="fiscal_period",
        aggregate_id=period.id,
        data=PeriodClosedData(
            period_id=period.id,
            fiscal_year_id=period.fiscal_year_id,
            name=period.name,
            start_date=period.start_date,
            end_date=period.end_date,
            forced=bool(force and draft_count),
            draft_entries=draft_count,
        ),
    )
    if draft_count:
        logger.warning(
            "Fiscal period force-closed with draft entries",
            extra={"tenant": tenant.slug, "period": period.name, "draft_entries": draft_count},
        )
    else:
        logger.info("Fiscal period closed", extra={"tenant": tenant.slug, "period": period.name})
    return period


@transaction.atomic
def reopen_period(tenant, period_id) -> FiscalPeriod:
    """
    Reopen a closed period of a year that is still open.

    The year row is locked before the period, the same order
    close_fiscal_year takes, so a reopen cannot slip in while the year
    is being closed.
    """
    fiscal_year_id = get_period(tenant, period_id).fiscal_year_id
    fiscal_year = get_fiscal_year(tenant, fiscal_year_id, for_update=True)
    period = get_period(tenant, period_id, for_update=True)
    period.fiscal_year = fiscal_year
    assert_can_reopen_period(period)

    period.status = FiscalPeriod.Status.OPEN
    period.closed_at = None
    period.save(update_fields=["status", "closed_at"])

    emit_event(
        tenant=tenant,
        event_type=EventTypes.PERIOD_REOPENED,
        aggregate_type="fiscal_period",
        aggregate_id=period.id,
        data=PeriodReopenedData(
            period_id=period.id,
            fiscal_year_id=period.fiscal_year_id,
            name=period.name,
        ),
    )
    logger.info("Fiscal period reopened", extra={"tenant": tenant.slug, "period": period.name})
    return period


@transaction.atomic
def close_fiscal_year(tenant, fiscal_year_id, *, retained_earnings_account_id) -> FiscalYear:
    """
    Close a fiscal year into retained earnings.

    Every period must already be closed. The closing entry is built and
    posted by the closing engine; this function only flips the year to
    closed and links the entry. The whole call is one transaction, so a
    failed close can simply be retried.
    """
    # Deferred: closing posts through the journal, which resolves periods here.
    from accounting.closing import close_year_books

    if retained_earnings_account_id in (None, ""):
        raise ValidationError(
            "A retained earnings account is required.",
            field="retained_earnings_account_id",
        )

    fiscal_year = get_fiscal_year(tenant, fiscal_year_id, for_update=True)
    # Hold the periods until commit so none is reopened under the close.
    list(fiscal_year.periods.select_for_update().order_by("period_number"))
    retained_earnings = get_account(tenant, account_id=retained_earnings_account_id)

    assert_can_close_fiscal_year(fiscal_year)
    assert_can_receive_retained_earnings(retained_earnings)

    net_income, closing_entry = close_year_books(tenant, fiscal_year, retained_earnings)

    fiscal_year.is_closed = True
    fiscal_year.is_active = False
    fiscal_year.closed_at = timezone.now()
    fiscal_year.net_income = net_income
    fiscal_year.closing_entry = closing_entry
    fiscal_year.retained_earnings_account = retained_earnings
    fiscal_year.save()

    emit_event(
        tenant=tenant,
        event_type=EventTypes.FISCAL_YEAR_CLOSED,
        aggregate_type="fiscal_year",
        aggregate_id=fiscal_year.id,
        data=FiscalYearClosedData(
            fiscal_year_id=fiscal_year.id,
            name=fiscal_year.name,
            net_income=net_income,
            retained_earnings_account_code=retained_earnings.code,
            closing_entry_id=closing_entry.id if closing_entry else None,
            closing_entry_number=closing_entry.entry_number if closing_entry else None,
        ),
    )
    logger.info(
        "Fiscal year closed",
        extra={
            "tenant": tenant.slug,
            "fiscal_year": fiscal_year.name,
            "net_income": str(net_income),
            "closing_entry": closing_entry.entry_number if closing_entry else None,
        },
    )
    return fiscal_year
