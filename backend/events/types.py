# events/types.py
"""
Event type definitions for the ledger.

The dataclasses here are the payload contract for every published event.
Consumers in other modules depend on these field names, so treat them as
a stable API:
- Adding optional fields with defaults is safe
- Removing, renaming or retyping fields breaks consumers

Naming Convention: {aggregate}.{past_tense_verb}
"""

from dataclasses import MISSING, asdict, dataclass, field, fields as dataclass_fields
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional


class InvalidEventPayload(Exception):
    """
    Raised when an event payload does not match its registered schema.

    This is a programming error in the emitting code, so it is raised
    before the event is queued rather than swallowed with publish errors.
    """

    def __init__(self, event_type: str, errors: List[str]):
        self.event_type = event_type
        self.errors = errors
        error_list = "\n  - ".join(errors)
        super().__init__(f"Invalid payload for event '{event_type}':\n  - {error_list}")


class EventTypes:
    """Registry of all event types."""

    # Chart of accounts
    ACCOUNT_CREATED = "account.created"
    ACCOUNT_UPDATED = "account.updated"
    ACCOUNT_DEACTIVATED = "account.deactivated"

    # Journal
    JOURNAL_ENTRY_CREATED = "journal_entry.created"
    JOURNAL_ENTRY_VOIDED = "journal_entry.voided"
    JOURNAL_ENTRY_REVERSED = "journal_entry.reversed"
    LEDGER_POSTED = "ledger.posted"

    # Fiscal calendar
    FISCAL_YEAR_CREATED = "fiscal_year.created"
    FISCAL_YEAR_UPDATED = "fiscal_year.updated"
    PERIOD_CLOSED = "period.closed"
    PERIOD_REOPENED = "period.reopened"
    FISCAL_YEAR_CLOSED = "fiscal_year.closed"


@dataclass
class BaseEventData:
    """Base class for all event data."""

    def to_dict(self) -> dict:
        """Convert to a JSON-safe dictionary."""
        result = {}
        for key, value in asdict(self).items():
            if isinstance(value, Decimal):
                result[key] = str(value)
            elif isinstance(value, (date, datetime)):
                result[key] = value.isoformat()
            else:
                result[key] = value
        return result


# =============================================================================
# Account Events
# =============================================================================

@dataclass
class AccountCreatedData(BaseEventData):
    account_public_id: str
    code: str
    name: str
    category: str
    normal_balance: str
    is_header: bool
    parent_code: Optional[str] = None


@dataclass
class AccountUpdatedData(BaseEventData):
    account_public_id: str
    code: str
    changes: Dict[str, Dict[str, Any]] = field(default_factory=dict)  # {"field": {"old": x, "new": y}}


@dataclass
class AccountDeactivatedData(BaseEventData):
    account_public_id: str
    code: str


# =============================================================================
# Journal Events
# =============================================================================

@dataclass
class JournalEntryCreatedData(BaseEventData):
    entry_public_id: str
    entry_number: str
    entry_date: date
    total_debit: Decimal
    total_credit: Decimal
    line_count: int
    entry_type: str = "standard"
    source_type: str = ""
    source_id: str = ""


@dataclass
class JournalEntryVoidedData(BaseEventData):
    entry_public_id: str
    entry_number: str
    restored_entry_number: Optional[str] = None


@dataclass
class LedgerPostedData(BaseEventData):
    """A journal entry reached the ledger; account balances changed."""

    entry_public_id: str
    entry_number: str
    entry_date: date
    total_amount: Decimal
    line_count: int
    entry_type: str = "standard"
    fiscal_period_id: Optional[int] = None
    account_codes: List[str] = field(default_factory=list)


@dataclass
class JournalEntryReversedData(BaseEventData):
    original_public_id: str
    original_number: str
    reversal_public_id: str
    reversal_number: str
    reversal_date: date


# =============================================================================
# Fiscal Calendar Events
# =============================================================================

@dataclass
class FiscalYearCreatedData(BaseEventData):
    fiscal_year_id: int
    name: str
    start_date: date
    end_date: date
    period_count: int


@dataclass
class FiscalYearUpdatedData(BaseEventData):
    fiscal_year_id: int
    name: str
    changes: Dict[str, Dict[str, Any]] = field(default_factory=dict)  # {"field": {"old": x, "new": y}}


@dataclass
class PeriodClosedData(BaseEventData):
    period_id: int
    fiscal_year_id: int
    name: str
    start_date: date
    end_date: date
    forced: bool = False
    draft_entries: int = 0


@dataclass
class PeriodReopenedData(BaseEventData):
    period_id: int
    fiscal_year_id: int
    name: str


@dataclass
class FiscalYearClosedData(BaseEventData):
    fiscal_year_id: int
    name: str
    net_income: Decimal
    retained_earnings_account_code: str
    closing_entry_id: Optional[int] = None
    closing_entry_number: Optional[str] = None


EVENT_DATA_CLASSES = {
    EventTypes.ACCOUNT_CREATED: AccountCreatedData,
    EventTypes.ACCOUNT_UPDATED: AccountUpdatedData,
    EventTypes.ACCOUNT_DEACTIVATED: AccountDeactivatedData,
    EventTypes.JOURNAL_ENTRY_CREATED: JournalEntryCreatedData,
    EventTypes.JOURNAL_ENTRY_VOIDED: JournalEntryVoidedData,
    EventTypes.JOURNAL_ENTRY_REVERSED: JournalEntryReversedData,
    EventTypes.LEDGER_POSTED: LedgerPostedData,
    EventTypes.FISCAL_YEAR_CREATED: FiscalYearCreatedData,
    EventTypes.FISCAL_YEAR_UPDATED: FiscalYearUpdatedData,
    EventTypes.PERIOD_CLOSED: PeriodClosedData,
    EventTypes.PERIOD_REOPENED: PeriodReopenedData,
    EventTypes.FISCAL_YEAR_CLOSED: FiscalYearClosedData,
}


def validate_event_payload(event_type: str, data: Dict[str, Any]) -> None:
    """
    Check a payload dict against the dataclass registered for event_type.

    Raises:
        InvalidEventPayload: unknown event type, missing required fields,
            or fields the schema does not declare.
    """
    data_class = EVENT_DATA_CLASSES.get(event_type)
    if data_class is None:
        raise InvalidEventPayload(event_type, [f"Unknown event type '{event_type}'"])

    errors = []
    declared = {f.name: f for f in dataclass_fields(data_class)}

    for name, f in declared.items():
        required = f.default is MISSING and f.default_factory is MISSING
        if required and name not in data:
            errors.append(f"Missing required field '{name}'")

    for name in data:
        if name not in declared:
            errors.append(f"Unexpected field '{name}'")

    if errors:
        raise InvalidEventPayload(event_type, errors)
