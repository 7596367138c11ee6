# accounting/admin.py
"""
Django admin configuration for accounting models.

The admin is for viewing only. Every mutation goes through the command
layer (accounting/commands.py), which enforces the posting rules and
emits events. Account types are the one exception: they carry no
balances and may be edited here.
"""

from django.contrib import admin
from django.utils.html import format_html

from .models import (
    Account,
    AccountType,
    FiscalPeriod,
    FiscalYear,
    JournalEntry,
    JournalLine,
    LedgerEntry,
)


class ReadOnlyModelAdmin(admin.ModelAdmin):
    """
    Base admin class for read-only models.

    Direct admin edits would bypass the ledger invariants; use the API
    or the command layer to make changes.
    """

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class ReadOnlyInline(admin.TabularInline):
    """Base inline class for read-only models."""
    extra = 0
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class JournalLineInline(ReadOnlyInline):
    model = JournalLine
    readonly_fields = ["line_number", "account", "description", "debit_amount", "credit_amount"]
    fields = readonly_fields


class FiscalPeriodInline(ReadOnlyInline):
    model = FiscalPeriod
    readonly_fields = ["period_number", "name", "start_date", "end_date", "status", "closed_at"]
    fields = readonly_fields


# =============================================================================
# Chart of Accounts
# =============================================================================

@admin.register(AccountType)
class AccountTypeAdmin(admin.ModelAdmin):
    list_display = ["code", "name", "category", "normal_balance", "display_order", "is_system", "tenant"]
    list_filter = ["tenant", "category", "is_system"]
    search_fields = ["code", "name"]
    readonly_fields = ["normal_balance", "is_system", "created_at"]


@admin.register(Account)
class AccountAdmin(ReadOnlyModelAdmin):
    """Chart of accounts (read-only)."""

    list_display = [
        "code", "name", "account_type", "normal_balance",
        "is_header", "is_active", "current_balance", "parent", "tenant",
    ]
    list_filter = ["tenant", "account_type__category", "is_active", "is_header"]
    search_fields = ["code", "name", "description"]
    list_select_related = ["tenant", "parent", "account_type"]
    ordering = ["tenant", "code"]

    fieldsets = (
        (None, {
            "fields": ("tenant", "code", "name", "public_id"),
        }),
        ("Classification", {
            "fields": ("account_type", "normal_balance", "is_header", "is_active"),
        }),
        ("Hierarchy", {
            "fields": ("parent",),
        }),
        ("Balances", {
            "fields": ("opening_balance", "current_balance"),
        }),
        ("Timestamps", {
            "fields": ("created_at", "updated_at"),
            "classes": ("collapse",),
        }),
    )
    readonly_fields = [
        "tenant", "code", "name", "public_id", "account_type", "normal_balance",
        "is_header", "is_active", "parent", "opening_balance", "current_balance",
        "created_at", "updated_at",
    ]


# =============================================================================
# Journal
# =============================================================================

@admin.register(JournalEntry)
class JournalEntryAdmin(ReadOnlyModelAdmin):
    """Journal entries (read-only)."""

    list_display = [
        "entry_number", "entry_date", "description_truncated", "entry_type",
        "status_colored", "total_debit", "total_credit", "tenant",
    ]
    list_filter = ["tenant", "status", "entry_type"]
    search_fields = ["entry_number", "description", "reference"]
    date_hierarchy = "entry_date"
    list_select_related = ["tenant"]
    ordering = ["-entry_date", "-id"]
    inlines = [JournalLineInline]
    readonly_fields = [
        "tenant", "public_id", "entry_number", "entry_date", "description", "reference",
        "entry_type", "status", "total_debit", "total_credit", "is_reversing",
        "reversed_entry", "reversal_date", "fiscal_period", "source_type", "source_id",
        "posted_at", "voided_at", "created_at", "updated_at",
    ]

    def description_truncated(self, obj):
        if len(obj.description) > 50:
            return obj.description[:50] + "..."
        return obj.description
    description_truncated.short_description = "Description"

    def status_colored(self, obj):
        """Show status with color coding."""
        colors = {
            JournalEntry.Status.DRAFT: "#007bff",
            JournalEntry.Status.POSTED: "#28a745",
            JournalEntry.Status.REVERSED: "#dc3545",
            JournalEntry.Status.VOIDED: "#999",
        }
        color = colors.get(obj.status, "#000")
        return format_html(
            '<span style="color: {}; font-weight: bold;">{}</span>',
            color,
            obj.get_status_display(),
        )
    status_colored.short_description = "Status"
    status_colored.admin_order_field = "status"


@admin.register(LedgerEntry)
class LedgerEntryAdmin(ReadOnlyModelAdmin):
    list_display = ["entry_date", "reference", "account", "debit_amount", "credit_amount", "fiscal_period", "tenant"]
    list_filter = ["tenant", "account__account_type__category"]
    search_fields = ["reference", "account__code", "description"]
    list_select_related = ["account", "fiscal_period", "tenant"]
    date_hierarchy = "entry_date"


# =============================================================================
# Fiscal Calendar
# =============================================================================

@admin.register(FiscalYear)
class FiscalYearAdmin(ReadOnlyModelAdmin):
    list_display = ["name", "start_date", "end_date", "is_closed", "net_income", "tenant"]
    list_filter = ["tenant", "is_closed"]
    inlines = [FiscalPeriodInline]
    readonly_fields = [
        "tenant", "name", "start_date", "end_date", "is_active", "is_closed",
        "closed_at", "net_income", "closing_entry", "retained_earnings_account",
    ]
