# accounting/models.py
"""
Ledger models.

- AccountType / Account: chart of accounts with hierarchy and normal balance
- JournalEntry / JournalLine: double-entry documents (draft -> posted)
- LedgerEntry: append-only postings, one per posted JournalLine
- FiscalYear / FiscalPeriod: the calendar that gates posting
- TenantSequence: per-tenant counters for document numbers

Every row carries a tenant; no query crosses tenants.
"""

import uuid
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.db import models
from django.db.models import F, Q

from accounting.exceptions import InvalidStateError, ValidationError


MONEY_Q = Decimal("0.01")

# Debits and credits are considered equal within this tolerance.
BALANCE_TOLERANCE = Decimal("0.01")

MONEY_FIELD = dict(max_digits=18, decimal_places=2, default=Decimal("0.00"))


def to_money(value, field_name: str = "amount") -> Decimal:
    """Parse user input into a Decimal quantized to cents."""
    if value is None or value == "":
        return Decimal("0.00")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field_name} must be a number.", field=field_name)
    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be a finite number.", field=field_name)
    return amount.quantize(MONEY_Q, rounding=ROUND_HALF_UP)


def signed_amount(normal_balance: str, debit, credit) -> Decimal:
    """
    Interpret raw debit/credit sums as an increase or decrease.

    Debit-normal accounts grow with debits, credit-normal accounts with
    credits. Every balance in the ledger is derived through this function.
    """
    debit = Decimal(debit or 0)
    credit = Decimal(credit or 0)
    if normal_balance == AccountType.NormalBalance.DEBIT:
        return debit - credit
    return credit - debit


class TenantSequence(models.Model):
    """
    Per-tenant monotonic counter used for entry and reversal numbers.
    Rows are read under select_for_update so concurrent writers never
    receive the same value.
    """

    tenant = models.ForeignKey(
        "tenant.Tenant",
        on_delete=models.CASCADE,
        related_name="sequences",
    )
    name = models.CharField(max_length=50)
    next_value = models.PositiveBigIntegerField(default=1)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "name"],
                name="uniq_tenant_sequence",
            ),
        ]

    def __str__(self):
        return f"{self.tenant_id}:{self.name}={self.next_value}"


class AccountType(models.Model):
    """
    Category + normal balance mapping.

    The category decides where an account lands in reports and in
    year-end closing; the normal balance decides the sign of its balance.
    """

    class Category(models.TextChoices):
        ASSET = "asset", "Asset"
        LIABILITY = "liability", "Liability"
        EQUITY = "equity", "Equity"
        REVENUE = "revenue", "Revenue"
        EXPENSE = "expense", "Expense"

    class NormalBalance(models.TextChoices):
        DEBIT = "debit", "Debit"
        CREDIT = "credit", "Credit"

    NORMAL_BALANCE_MAP = {
        Category.ASSET: NormalBalance.DEBIT,
        Category.EXPENSE: NormalBalance.DEBIT,
        Category.LIABILITY: NormalBalance.CREDIT,
        Category.EQUITY: NormalBalance.CREDIT,
        Category.REVENUE: NormalBalance.CREDIT,
    }

    tenant = models.ForeignKey(
        "tenant.Tenant",
        on_delete=models.CASCADE,
        related_name="account_types",
    )
    code = models.CharField(max_length=20)
    name = models.CharField(max_length=100)
    category = models.CharField(max_length=20, choices=Category.choices)
    normal_balance = models.CharField(
        max_length=10,
        choices=NormalBalance.choices,
        blank=True,
        help_text="Derived from category when left blank.",
    )
    description = models.TextField(blank=True, default="")
    display_order = models.PositiveIntegerField(default=0)
    is_system = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["display_order", "code"]
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "code"],
                name="uniq_account_type_code_per_tenant",
            ),
        ]

    def __str__(self):
        return f"{self.code} ({self.category})"

    def save(self, *args, **kwargs):
        if not self.normal_balance:
            self.normal_balance = self.NORMAL_BALANCE_MAP[self.category]
        super().save(*args, **kwargs)


class Account(models.Model):
    """
    Chart of Accounts entry.

    Header accounts group children and never receive postings.
    ``current_balance`` is a cache of opening_balance plus every posting,
    signed by ``normal_balance``; it is only written inside the posting
    transaction that appends the matching ledger rows.
    """

    NormalBalance = AccountType.NormalBalance
    Category = AccountType.Category

    tenant = models.ForeignKey(
        "tenant.Tenant",
        on_delete=models.CASCADE,
        related_name="accounts",
    )
    public_id = models.UUIDField(default=uuid.uuid4, editable=False, unique=True)
    code = models.CharField(max_length=20)
    name = models.CharField(max_length=200)
    account_type = models.ForeignKey(
        AccountType,
        on_delete=models.PROTECT,
        related_name="accounts",
    )
    normal_balance = models.CharField(max_length=10, choices=NormalBalance.choices)
    parent = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="children",
    )
    is_header = models.BooleanField(
        default=False,
        help_text="Header accounts aggregate children and cannot be posted to.",
    )
    is_active = models.BooleanField(default=True)
    description = models.TextField(blank=True, default="")
    opening_balance = models.DecimalField(**MONEY_FIELD)
    current_balance = models.DecimalField(**MONEY_FIELD)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["code"]
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "code"],
                name="uniq_account_code_per_tenant",
            ),
        ]
        indexes = [
            models.Index(fields=["tenant", "is_active"], name="account_tenant_active_idx"),
            models.Index(fields=["tenant", "parent"], name="account_tenant_parent_idx"),
        ]

    def __str__(self):
        return f"{self.code} - {self.name}"

    @property
    def category(self) -> str:
        return self.account_type.category

    @property
    def is_postable(self) -> bool:
        return self.is_active and not self.is_header

    def signed_amount(self, debit, credit) -> Decimal:
        return signed_amount(self.normal_balance, debit, credit)

    def get_ancestors(self):
        """Parents from the immediate one up to the root."""
        ancestors = []
        current = self.parent
        while current:
            ancestors.append(current)
            current = current.parent
        return ancestors

    def get_descendants(self):
        descendants = []
        for child in self.children.all():
            descendants.append(child)
            descendants.extend(child.get_descendants())
        return descendants


class FiscalYear(models.Model):
    tenant = models.ForeignKey(
        "tenant.Tenant",
        on_delete=models.CASCADE,
        related_name="fiscal_years",
    )
    name = models.CharField(max_length=50)
    start_date = models.DateField()
    end_date = models.DateField()
    is_active = models.BooleanField(default=True)
    is_closed = models.BooleanField(default=False)
    closed_at = models.DateTimeField(null=True, blank=True)
    net_income = models.DecimalField(max_digits=18, decimal_places=2, null=True, blank=True)
    closing_entry = models.OneToOneField(
        "accounting.JournalEntry",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="closed_fiscal_year",
    )
    retained_earnings_account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-start_date"]
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "name"],
                name="uniq_fiscal_year_name_per_tenant",
            ),
            models.CheckConstraint(
                condition=Q(end_date__gt=F("start_date")),
                name="fiscal_year_end_after_start",
            ),
        ]

    def __str__(self):
        return self.name


class FiscalPeriod(models.Model):
    class Status(models.TextChoices):
        OPEN = "open", "Open"
        CLOSED = "closed", "Closed"

    tenant = models.ForeignKey(
        "tenant.Tenant",
        on_delete=models.CASCADE,
        related_name="fiscal_periods",
    )
    fiscal_year = models.ForeignKey(
        FiscalYear,
        on_delete=models.CASCADE,
        related_name="periods",
    )
    period_number = models.PositiveSmallIntegerField()
    name = models.CharField(max_length=50)
    start_date = models.DateField()
    end_date = models.DateField()
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.OPEN)
    closed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["start_date"]
        constraints = [
            models.UniqueConstraint(
                fields=["fiscal_year", "period_number"],
                name="uniq_period_number_per_year",
            ),
            models.CheckConstraint(
                condition=Q(end_date__gte=F("start_date")),
                name="fiscal_period_end_not_before_start",
            ),
        ]
        indexes = [
            models.Index(fields=["tenant", "start_date", "end_date"], name="period_tenant_range_idx"),
        ]

    def __str__(self):
        return f"{self.fiscal_year.name} P{self.period_number} ({self.status})"

    @property
    def is_open(self) -> bool:
        return self.status == self.Status.OPEN


class JournalEntry(models.Model):
    """
    Double-entry document.

    Lifecycle: DRAFT -> POSTED -> REVERSED, or DRAFT -> VOIDED.
    Totals are recomputed from the lines whenever the lines change.
    """

    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        POSTED = "posted", "Posted"
        REVERSED = "reversed", "Reversed"
        VOIDED = "voided", "Voided"

    class EntryType(models.TextChoices):
        STANDARD = "standard", "Standard"
        REVERSING = "reversing", "Reversing"
        CLOSING = "closing", "Closing"

    tenant = models.ForeignKey(
        "tenant.Tenant",
        on_delete=models.CASCADE,
        related_name="journal_entries",
    )
    public_id = models.UUIDField(default=uuid.uuid4, editable=False, unique=True)
    entry_number = models.CharField(max_length=50)
    entry_date = models.DateField()
    description = models.CharField(max_length=500)
    reference = models.CharField(max_length=100, blank=True, default="")
    entry_type = models.CharField(
        max_length=20,
        choices=EntryType.choices,
        default=EntryType.STANDARD,
    )
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT)
    total_debit = models.DecimalField(**MONEY_FIELD)
    total_credit = models.DecimalField(**MONEY_FIELD)
    is_reversing = models.BooleanField(default=False)
    reversed_entry = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="reversals",
        help_text="The posted entry this entry offsets.",
    )
    fiscal_period = models.ForeignKey(
        FiscalPeriod,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="journal_entries",
    )
    source_type = models.CharField(max_length=50, blank=True, default="")
    source_id = models.CharField(max_length=100, blank=True, default="")
    posted_at = models.DateTimeField(null=True, blank=True)
    reversal_date = models.DateField(null=True, blank=True)
    voided_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-entry_date", "-id"]
        verbose_name_plural = "journal entries"
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "entry_number"],
                name="uniq_entry_number_per_tenant",
            ),
            models.CheckConstraint(
                condition=Q(total_debit__gte=0) & Q(total_credit__gte=0),
                name="entry_totals_non_negative",
            ),
        ]
        indexes = [
            models.Index(fields=["tenant", "status", "entry_date"], name="entry_tenant_status_date_idx"),
            models.Index(fields=["tenant", "source_type", "source_id"], name="entry_tenant_source_idx"),
        ]

    def __str__(self):
        return f"{self.entry_number} ({self.status})"

    @property
    def difference(self) -> Decimal:
        return abs(self.total_debit - self.total_credit)

    @property
    def is_balanced(self) -> bool:
        return self.difference <= BALANCE_TOLERANCE


class JournalLine(models.Model):
    """One side of a journal entry; exactly one of debit/credit is non-zero."""

    entry = models.ForeignKey(
        JournalEntry,
        on_delete=models.CASCADE,
        related_name="lines",
    )
    tenant = models.ForeignKey(
        "tenant.Tenant",
        on_delete=models.CASCADE,
        related_name="journal_lines",
    )
    line_number = models.PositiveIntegerField()
    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="journal_lines",
    )
    description = models.CharField(max_length=500, blank=True, default="")
    debit_amount = models.DecimalField(**MONEY_FIELD)
    credit_amount = models.DecimalField(**MONEY_FIELD)

    class Meta:
        ordering = ["line_number"]
        constraints = [
            models.UniqueConstraint(
                fields=["entry", "line_number"],
                name="uniq_line_number_per_entry",
            ),
            models.CheckConstraint(
                condition=Q(debit_amount__gte=0) & Q(credit_amount__gte=0),
                name="line_amounts_non_negative",
            ),
            models.CheckConstraint(
                condition=(
                    Q(debit_amount__gt=0, credit_amount=0)
                    | Q(debit_amount=0, credit_amount__gt=0)
                ),
                name="line_exactly_one_side",
            ),
        ]

    def __str__(self):
        side = "Dr" if self.debit_amount else "Cr"
        return f"{self.entry.entry_number}#{self.line_number} {side} {self.amount}"

    @property
    def amount(self) -> Decimal:
        return self.debit_amount or self.credit_amount


class LedgerEntry(models.Model):
    """
    Immutable posting.

    Created only by the posting transition, one per JournalLine. History
    is never edited: reversals append opposite rows instead.
    """

    tenant = models.ForeignKey(
        "tenant.Tenant",
        on_delete=models.CASCADE,
        related_name="ledger_entries",
    )
    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="ledger_entries",
    )
    journal_entry = models.ForeignKey(
        JournalEntry,
        on_delete=models.PROTECT,
        related_name="ledger_entries",
    )
    journal_line = models.OneToOneField(
        JournalLine,
        on_delete=models.PROTECT,
        related_name="ledger_entry",
    )
    fiscal_period = models.ForeignKey(
        FiscalPeriod,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="ledger_entries",
    )
    entry_date = models.DateField()
    debit_amount = models.DecimalField(**MONEY_FIELD)
    credit_amount = models.DecimalField(**MONEY_FIELD)
    description = models.CharField(max_length=500, blank=True, default="")
    reference = models.CharField(max_length=50, help_text="Entry number of the source journal entry.")
    source_type = models.CharField(max_length=50, blank=True, default="")
    source_id = models.CharField(max_length=100, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["entry_date", "created_at", "id"]
        verbose_name_plural = "ledger entries"
        indexes = [
            models.Index(fields=["account", "entry_date"], name="ledger_account_date_idx"),
            models.Index(fields=["tenant", "entry_date"], name="ledger_tenant_date_idx"),
        ]

    def __str__(self):
        return f"{self.reference} {self.account_id} Dr {self.debit_amount} Cr {self.credit_amount}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise InvalidStateError("Ledger entries are append-only.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise InvalidStateError("Ledger entries are append-only.")
