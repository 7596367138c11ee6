# accounting/exceptions.py
"""
Error taxonomy for ledger operations.

Services raise these; ``@transaction.atomic`` rolls the unit of work back
as the exception leaves it, and the command layer turns them into a
failed CommandResult carrying ``kind`` and ``status_code``.

| Error                 | kind             | status |
|-----------------------|------------------|--------|
| ValidationError       | validation_error | 400    |
| ConflictError         | conflict         | 409    |
| UnbalancedEntryError  | unbalanced_entry | 422    |
| InvalidStateError     | invalid_state    | 409    |
| PeriodClosedError     | period_closed    | 409    |
| OpenEntriesError      | open_entries     | 409    |
| NotFoundError         | not_found        | 404    |
"""


class AccountingError(Exception):
    """Base class for every rejected ledger operation."""

    kind = "accounting_error"
    status_code = 400

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(AccountingError):
    """Malformed or missing input, or a duplicate code."""

    kind = "validation_error"
    status_code = 400


class ConflictError(AccountingError):
    """The operation conflicts with existing data (postings, children, duplicates)."""

    kind = "conflict"
    status_code = 409


class UnbalancedEntryError(AccountingError):
    """Debits and credits differ by more than the tolerance on post."""

    kind = "unbalanced_entry"
    status_code = 422


class InvalidStateError(AccountingError):
    """The target is not in a state that allows the transition."""

    kind = "invalid_state"
    status_code = 409


class PeriodClosedError(AccountingError):
    """The entry date falls in a closed fiscal period."""

    kind = "period_closed"
    status_code = 409


class OpenEntriesError(AccountingError):
    """Draft entries still fall inside a period being closed."""

    kind = "open_entries"
    status_code = 409


class NotFoundError(AccountingError):
    kind = "not_found"
    status_code = 404
