# accounting/serializers.py
"""
Serializers for accounting API.

Note: These serializers are used for:
1. Input validation (shape and types only)
2. Output formatting

The business rules live in the service modules and are reached through
commands.py; input serializers only normalize payloads into command kwargs.
"""

from rest_framework import serializers

from .models import (
    Account,
    AccountType,
    FiscalPeriod,
    FiscalYear,
    JournalEntry,
    JournalLine,
    LedgerEntry,
)


MONEY = dict(max_digits=18, decimal_places=2)


def _fold_reference(attrs: dict, id_key: str, code_key: str, target: str) -> dict:
    """Collapse an ``*_id`` / ``*_code`` pair into one command kwarg."""
    if id_key in attrs and code_key in attrs:
        raise serializers.ValidationError(f"Pass either {id_key} or {code_key}, not both.")
    if id_key in attrs:
        attrs[target] = attrs.pop(id_key)
    elif code_key in attrs:
        attrs[target] = attrs.pop(code_key)
    return attrs


# =============================================================================
# Account Serializers
# =============================================================================

class AccountTypeSerializer(serializers.ModelSerializer):
    class Meta:
        model = AccountType
        fields = [
            "id", "code", "name", "category", "normal_balance",
            "description", "display_order", "is_system",
        ]
        read_only_fields = fields


class AccountSerializer(serializers.ModelSerializer):
    """Read-side account representation."""
    account_type_code = serializers.CharField(source="account_type.code", read_only=True)
    category = serializers.CharField(read_only=True)
    parent_code = serializers.CharField(source="parent.code", read_only=True, default=None)
    is_postable = serializers.BooleanField(read_only=True)

    class Meta:
        model = Account
        fields = [
            "id", "public_id", "code", "name",
            "account_type", "account_type_code", "category", "normal_balance",
            "parent", "parent_code", "is_header", "is_postable", "is_active",
            "description", "opening_balance", "current_balance",
            "created_at", "updated_at",
        ]
        read_only_fields = fields


class AccountCreateSerializer(serializers.Serializer):
    """Serializer for creating accounts via command."""
    code = serializers.CharField(max_length=20)
    name = serializers.CharField(max_length=200)
    account_type_id = serializers.IntegerField(required=False)
    account_type_code = serializers.CharField(max_length=20, required=False)
    parent_id = serializers.IntegerField(required=False, allow_null=True)
    parent_code = serializers.CharField(max_length=20, required=False, allow_null=True)
    is_header = serializers.BooleanField(required=False, default=False)
    is_active = serializers.BooleanField(required=False, default=True)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    opening_balance = serializers.DecimalField(**MONEY, required=False, default=0)

    def validate(self, attrs):
        attrs = _fold_reference(attrs, "account_type_id", "account_type_code", "account_type")
        return _fold_reference(attrs, "parent_id", "parent_code", "parent")


class AccountUpdateSerializer(AccountCreateSerializer):
    """Partial update; only the keys sent are changed."""
    code = serializers.CharField(max_length=20, required=False)
    name = serializers.CharField(max_length=200, required=False)
    is_header = serializers.BooleanField(required=False)
    is_active = serializers.BooleanField(required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    opening_balance = serializers.DecimalField(**MONEY, required=False)


class AccountImportSerializer(serializers.Serializer):
    accounts = AccountCreateSerializer(many=True, allow_empty=False)


class AccountTreeNodeSerializer(serializers.Serializer):
    account = AccountSerializer()
    children = serializers.SerializerMethodField()

    def get_children(self, node):
        return AccountTreeNodeSerializer(node["children"], many=True).data


# =============================================================================
# Journal Entry Serializers
# =============================================================================

class JournalLineSerializer(serializers.ModelSerializer):
    """Serializer for individual journal lines."""
    account_code = serializers.CharField(source="account.code", read_only=True)
    account_name = serializers.CharField(source="account.name", read_only=True)

    class Meta:
        model = JournalLine
        fields = [
            "line_number", "account", "account_code", "account_name",
            "description", "debit_amount", "credit_amount",
        ]
        read_only_fields = fields


class JournalLineInputSerializer(serializers.Serializer):
    """
    Serializer for journal line input (creation/update).

    The account is given as ``account_id`` or ``account_code``.
    """
    account_id = serializers.IntegerField(required=False)
    account_code = serializers.CharField(max_length=20, required=False)
    description = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")
    debit_amount = serializers.DecimalField(**MONEY, required=False, default=0)
    credit_amount = serializers.DecimalField(**MONEY, required=False, default=0)

    def validate(self, attrs):
        attrs = _fold_reference(attrs, "account_id", "account_code", "account")
        if "account" not in attrs:
            raise serializers.ValidationError("account_id or account_code is required.")
        return attrs


class JournalEntrySerializer(serializers.ModelSerializer):
    """
    Full journal entry serializer with nested lines.
    Used for retrieval and display.
    """
    lines = JournalLineSerializer(many=True, read_only=True)
    is_balanced = serializers.BooleanField(read_only=True)
    reversed_entry_number = serializers.CharField(
        source="reversed_entry.entry_number", read_only=True, default=None,
    )

    class Meta:
        model = JournalEntry
        fields = [
            "id", "public_id", "entry_number", "entry_date", "description", "reference",
            "entry_type", "status", "total_debit", "total_credit", "is_balanced",
            "is_reversing", "reversed_entry", "reversed_entry_number", "reversal_date",
            "fiscal_period", "source_type", "source_id",
            "posted_at", "voided_at", "created_at", "updated_at",
            "lines",
        ]
        read_only_fields = fields


class JournalEntryCreateSerializer(serializers.Serializer):
    entry_date = serializers.DateField()
    description = serializers.CharField(max_length=500)
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    source_type = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    source_id = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    lines = JournalLineInputSerializer(many=True)


class JournalEntryUpdateSerializer(serializers.Serializer):
    entry_date = serializers.DateField(required=False)
    description = serializers.CharField(max_length=500, required=False)
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True)
    lines = JournalLineInputSerializer(many=True, required=False)


class JournalEntryReverseSerializer(serializers.Serializer):
    reversal_date = serializers.DateField(required=False, allow_null=True)
    description = serializers.CharField(max_length=500, required=False, allow_blank=True)


# =============================================================================
# Ledger Serializers
# =============================================================================

class LedgerEntrySerializer(serializers.ModelSerializer):
    entry_number = serializers.CharField(source="reference", read_only=True)

    class Meta:
        model = LedgerEntry
        fields = [
            "id", "entry_date", "entry_number", "journal_entry", "fiscal_period",
            "description", "debit_amount", "credit_amount",
            "source_type", "source_id", "created_at",
        ]
        read_only_fields = fields


# =============================================================================
# Fiscal Calendar Serializers
# =============================================================================

class FiscalPeriodSerializer(serializers.ModelSerializer):
    fiscal_year_name = serializers.CharField(source="fiscal_year.name", read_only=True)

    class Meta:
        model = FiscalPeriod
        fields = [
            "id", "fiscal_year", "fiscal_year_name", "period_number", "name",
            "start_date", "end_date", "status", "closed_at",
        ]
        read_only_fields = fields


class FiscalYearSerializer(serializers.ModelSerializer):
    periods = FiscalPeriodSerializer(many=True, read_only=True)
    closing_entry_number = serializers.CharField(
        source="closing_entry.entry_number", read_only=True, default=None,
    )

    class Meta:
        model = FiscalYear
        fields = [
            "id", "name", "start_date", "end_date", "is_active", "is_closed",
            "closed_at", "net_income", "closing_entry", "closing_entry_number",
            "retained_earnings_account", "periods",
        ]
        read_only_fields = fields


class FiscalYearCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=50, required=False, allow_blank=True)
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    generate_periods = serializers.BooleanField(required=False, default=True)


class FiscalYearUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=50, required=False)
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)
    is_active = serializers.BooleanField(required=False)


class FiscalYearCloseSerializer(serializers.Serializer):
    retained_earnings_account_id = serializers.IntegerField()


class PeriodCloseSerializer(serializers.Serializer):
    force = serializers.BooleanField(required=False, default=False)
