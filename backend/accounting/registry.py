# accounting/registry.py
"""
Account Registry: the chart of accounts.

Accounts are created with an explicit type or one inferred from the
leading digit of their code, organised in a header/child tree, and never
hard-deleted. Balances are derived from the ledger with the sign
convention in accounting.models.signed_amount.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.db import IntegrityError, transaction

from accounting import ledger
from accounting.exceptions import AccountingError, NotFoundError, ConflictError, ValidationError
from accounting.models import Account, AccountType, to_money
from accounting.policies import (
    assert_can_change_posting_structure,
    assert_can_deactivate_account,
    assert_can_delete_account,
    assert_can_set_parent,
)
from events.emitter import emit_event
from events.types import (
    AccountCreatedData,
    AccountDeactivatedData,
    AccountUpdatedData,
    EventTypes,
)

logger = logging.getLogger(__name__)


# (code, name, category, display_order)
DEFAULT_ACCOUNT_TYPES = (
    ("ASSET", "Assets", AccountType.Category.ASSET, 1),
    ("LIABILITY", "Liabilities", AccountType.Category.LIABILITY, 2),
    ("EQUITY", "Equity", AccountType.Category.EQUITY, 3),
    ("REVENUE", "Revenue", AccountType.Category.REVENUE, 4),
    ("EXPENSE", "Expenses", AccountType.Category.EXPENSE, 5),
)

UPDATABLE_FIELDS = frozenset({
    "name",
    "description",
    "code",
    "parent",
    "is_header",
    "is_active",
    "opening_balance",
    "account_type",
})

IMPORT_FIELDS = frozenset({
    "code",
    "name",
    "account_type",
    "parent",
    "is_header",
    "is_active",
    "description",
    "opening_balance",
})


# =============================================================================
# Code prefix -> category table
# =============================================================================

def validate_prefix_map(prefix_map) -> None:
    """
    Raise ValueError unless prefix_map maps single digits to known categories.
    Used at startup for the settings table and on save for tenant overrides.
    """
    if not isinstance(prefix_map, dict):
        raise ValueError("Code prefix map must be a mapping of digit -> category.")

    categories = set(AccountType.Category.values)
    for prefix, category in prefix_map.items():
        if not (isinstance(prefix, str) and len(prefix) == 1 and prefix.isdigit()):
            raise ValueError(f"Invalid code prefix {prefix!r}: expected a single digit.")
        if category not in categories:
            raise ValueError(
                f"Invalid category {category!r} for prefix {prefix!r}: "
                f"expected one of {sorted(categories)}."
            )


def get_prefix_map(tenant) -> dict:
    prefix_map = dict(settings.ACCOUNTING_CODE_PREFIX_CATEGORIES)
    overrides = tenant.code_prefix_map or {}
    try:
        validate_prefix_map(overrides)
    except ValueError as exc:
        raise ValidationError(f"Tenant code prefix map is invalid: {exc}")
    prefix_map.update(overrides)
    return prefix_map


def infer_category(tenant, code: str) -> Optional[str]:
    return get_prefix_map(tenant).get(code[:1])


# =============================================================================
# Account types
# =============================================================================

@transaction.atomic
def create_account_type(
    tenant,
    *,
    code: str,
    name: str,
    category: str,
    normal_balance: Optional[str] = None,
    description: str = "",
    display_order: int = 0,
    is_system: bool = False,
) -> AccountType:
    code = (code or "").strip().upper()
    name = (name or "").strip()
    if not code or not name:
        raise ValidationError("Account type code and name are required.")
    if category not in AccountType.Category.values:
        raise ValidationError(f"Invalid category: {category}", field="category")
    if normal_balance and normal_balance not in AccountType.NormalBalance.values:
        raise ValidationError(f"Invalid normal balance: {normal_balance}", field="normal_balance")

    if AccountType.objects.filter(tenant=tenant, code=code).exists():
        raise ConflictError(f"Account type '{code}' already exists.", code=code)

    account_type = AccountType.objects.create(
        tenant=tenant,
        code=code,
        name=name,
        category=category,
        normal_balance=normal_balance or "",
        description=description,
        display_order=display_order,
        is_system=is_system,
    )
    logger.info("Account type created", extra={"tenant": tenant.slug, "code": code})
    return account_type


@transaction.atomic
def ensure_default_account_types(tenant) -> list:
    """Create the five system account types for a tenant if missing."""
    types = []
    for code, name, category, order in DEFAULT_ACCOUNT_TYPES:
        account_type, _ = AccountType.objects.get_or_create(
            tenant=tenant,
            code=code,
            defaults={
                "name": name,
                "category": category,
                "display_order": order,
                "is_system": True,
            },
        )
        types.append(account_type)
    return types


def resolve_account_type(tenant, account_type=None, code: str = "") -> AccountType:
    """
    Find the AccountType for a new account.

    ``account_type`` may be an AccountType, its id or its code. When it is
    omitted the category is inferred from the account code prefix and the
    tenant's first type of that category is used.
    """
    if account_type not in (None, ""):
        if isinstance(account_type, AccountType):
            if account_type.tenant_id != tenant.id:
                raise ValidationError("Account type belongs to another tenant.")
            return account_type
        lookup = {"id": account_type} if isinstance(account_type, int) else {"code": str(account_type).upper()}
        try:
            return AccountType.objects.get(tenant=tenant, **lookup)
        except AccountType.DoesNotExist:
            raise ValidationError(f"Unknown account type: {account_type}", field="account_type")

    category = infer_category(tenant, code)
    if category is None:
        raise ValidationError(
            f"Cannot infer an account type from code '{code}'; pass account_type explicitly.",
            field="account_type",
        )

    inferred = (
        AccountType.objects.filter(tenant=tenant, category=category)
        .order_by("display_order", "code")
        .first()
    )
    if inferred is None:
        raise ValidationError(
            f"No account type with category '{category}' is configured.",
            field="account_type",
        )
    return inferred


# =============================================================================
# Lookups
# =============================================================================

def get_account(tenant, account_id=None, code: Optional[str] = None, for_update: bool = False) -> Account:
    qs = Account.objects.select_related("account_type")
    if for_update:
        qs = qs.select_for_update()
    else:
        qs = qs.select_related("parent")

    lookup = {"id": account_id} if account_id is not None else {"code": code}
    try:
        return qs.get(tenant=tenant, **lookup)
    except (Account.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Account not found: {account_id if account_id is not None else code}")


def _resolve_parent(tenant, parent) -> Optional[Account]:
    if parent in (None, ""):
        return None
    if isinstance(parent, Account):
        if parent.tenant_id != tenant.id:
            raise ValidationError("Parent account belongs to another tenant.", field="parent")
        return parent

    lookup = {"id": parent} if isinstance(parent, int) else {"code": str(parent)}
    try:
        return Account.objects.get(tenant=tenant, **lookup)
    except Account.DoesNotExist:
        raise ValidationError(f"Parent account not found: {parent}", field="parent")


def list_accounts(
    tenant,
    *,
    category: Optional[str] = None,
    active_only: bool = False,
    flat: bool = True,
):
    """
    Accounts ordered by code.

    With ``flat=False`` the result is a list of root nodes, each a dict
    ``{"account": Account, "children": [...]}``.
    """
    qs = Account.objects.filter(tenant=tenant).select_related("account_type", "parent")
    if category:
        qs = qs.filter(account_type__category=category)
    if active_only:
        qs = qs.filter(is_active=True)

    accounts = list(qs.order_by("code"))
    if flat:
        return accounts
    return build_account_tree(accounts)


def build_account_tree(accounts: list) -> list:
    nodes = {account.id: {"account": account, "children": []} for account in accounts}
    roots = []
    for account in accounts:
        node = nodes[account.id]
        parent_node = nodes.get(account.parent_id)
        if parent_node is None:
            roots.append(node)
        else:
            parent_node["children"].append(node)
    return roots


def compute_balance(account: Account, as_of: Optional[date] = None) -> Decimal:
    """
    Point-in-time balance: opening_balance plus postings dated on or before
    ``as_of``, signed by the account's normal balance.
    """
    postings = account.ledger_entries.all()
    if as_of:
        postings = postings.filter(entry_date__lte=as_of)
    debits, credits = ledger.sum_postings(postings)
    return account.opening_balance + account.signed_amount(debits, credits)


# =============================================================================
# Mutations
# =============================================================================

@transaction.atomic
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
) -> Account:
    code = (code or "").strip()
    name = (name or "").strip()
    if not code:
        raise ValidationError("Account code is required.", field="code")
    if not name:
        raise ValidationError("Account name is required.", field="name")

    if Account.objects.filter(tenant=tenant, code=code).exists():
        raise ValidationError(f"Account code '{code}' already exists.", field="code")

    resolved_type = resolve_account_type(tenant, account_type, code)
    parent_account = _resolve_parent(tenant, parent)
    assert_can_set_parent(None, parent_account)

    opening = to_money(opening_balance, "opening_balance")
    if is_header and opening:
        raise ValidationError("Header accounts cannot carry an opening balance.", field="opening_balance")

    try:
        with transaction.atomic():
            account = Account.objects.create(
                tenant=tenant,
                code=code,
                name=name,
                account_type=resolved_type,
                normal_balance=resolved_type.normal_balance,
                parent=parent_account,
                is_header=is_header,
                is_active=is_active,
                description=description or "",
                opening_balance=opening,
                current_balance=opening,
            )
    except IntegrityError:
        raise ValidationError(f"Account code '{code}' already exists.", field="code")

    emit_event(
        tenant=tenant,
        event_type=EventTypes.ACCOUNT_CREATED,
        aggregate_type="account",
        aggregate_id=account.public_id,
        data=AccountCreatedData(
            account_public_id=str(account.public_id),
            code=account.code,
            name=account.name,
            category=resolved_type.category,
            normal_balance=account.normal_balance,
            is_header=account.is_header,
            parent_code=parent_account.code if parent_account else None,
        ),
    )
    logger.info(
        "Account created",
        extra={"tenant": tenant.slug, "account_code": code, "category": resolved_type.category},
    )
    return account


@transaction.atomic
def update_account(tenant, account_id, **changes) -> Account:
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

    account = get_account(tenant, account_id=account_id, for_update=True)
    recorded = {}

    def _record(field, old, new):
        if old != new:
            recorded[field] = {"old": old, "new": new}

    if "name" in changes:
        name = (changes["name"] or "").strip()
        if not name:
            raise ValidationError("Account name is required.", field="name")
        _record("name", account.name, name)
        account.name = name

    if "description" in changes:
        _record("description", account.description, changes["description"] or "")
        account.description = changes["description"] or ""

    if "code" in changes:
        code = (changes["code"] or "").strip()
        if not code:
            raise ValidationError("Account code is required.", field="code")
        if code != account.code:
            assert_can_change_posting_structure(account)
            if Account.objects.filter(tenant=tenant, code=code).exclude(pk=account.pk).exists():
                raise ValidationError(f"Account code '{code}' already exists.", field="code")
            _record("code", account.code, code)
            account.code = code

    if "account_type" in changes:
        new_type = resolve_account_type(tenant, changes["account_type"], account.code)
        if new_type.pk != account.account_type_id:
            assert_can_change_posting_structure(account)
            _record("account_type", account.account_type.code, new_type.code)
            account.account_type = new_type
            account.normal_balance = new_type.normal_balance

    if "is_header" in changes:
        is_header = bool(changes["is_header"])
        if is_header and not account.is_header:
            assert_can_change_posting_structure(account)
            if account.opening_balance:
                raise ConflictError(f"Account {account.code} has an opening balance and cannot become a header.")
        if not is_header and account.is_header and account.children.exists():
            raise ConflictError(f"Account {account.code} has child accounts and must stay a header.")
        _record("is_header", account.is_header, is_header)
        account.is_header = is_header

    if "parent" in changes:
        parent = _resolve_parent(tenant, changes["parent"])
        assert_can_set_parent(account, parent)
        _record("parent", account.parent.code if account.parent else None, parent.code if parent else None)
        account.parent = parent

    if "opening_balance" in changes:
        opening = to_money(changes["opening_balance"], "opening_balance")
        if opening and account.is_header:
            raise ValidationError("Header accounts cannot carry an opening balance.", field="opening_balance")
        delta = opening - account.opening_balance
        if delta:
            _record("opening_balance", str(account.opening_balance), str(opening))
            account.opening_balance = opening
            account.current_balance = account.current_balance + delta

    if "is_active" in changes:
        is_active = bool(changes["is_active"])
        if not is_active and account.is_active:
            assert_can_deactivate_account(account)
        _record("is_active", account.is_active, is_active)
        account.is_active = is_active

    if not recorded:
        return account

    account.save()

    emit_event(
        tenant=tenant,
        event_type=EventTypes.ACCOUNT_UPDATED,
        aggregate_type="account",
        aggregate_id=account.public_id,
        data=AccountUpdatedData(
            account_public_id=str(account.public_id),
            code=account.code,
            changes=recorded,
        ),
    )
    logger.info(
        "Account updated",
        extra={"tenant": tenant.slug, "account_code": account.code, "fields": sorted(recorded)},
    )
    return account


@transaction.atomic
def delete_account(tenant, account_id) -> Account:
    """Soft-delete: deactivate an account that has no postings and no children."""
    account = get_account(tenant, account_id=account_id, for_update=True)
    assert_can_delete_account(account)

    account.is_active = False
    account.save(update_fields=["is_active", "updated_at"])

    emit_event(
        tenant=tenant,
        event_type=EventTypes.ACCOUNT_DEACTIVATED,
        aggregate_type="account",
        aggregate_id=account.public_id,
        data=AccountDeactivatedData(
            account_public_id=str(account.public_id),
            code=account.code,
        ),
    )
    logger.info("Account deactivated", extra={"tenant": tenant.slug, "account_code": account.code})
    return account


@transaction.atomic
def import_accounts(tenant, rows: list) -> list:
    """
    Create many accounts in one transaction.

    Rows are processed in order, so a row may name as parent the code of
    an account created earlier in the same batch. Any rejected row rolls
    back the whole batch.
    """
    if not isinstance(rows, (list, tuple)) or not rows:
        raise ValidationError("Import requires a non-empty list of accounts.")

    created = []
    for index, row in enumerate(rows, start=1):
        if not isinstance(row, dict):
            raise ValidationError(f"Row {index}: expected an object.", row=index)
        unknown = set(row) - IMPORT_FIELDS
        if unknown:
            raise ValidationError(
                f"Row {index}: unknown field(s) {', '.join(sorted(unknown))}.",
                row=index,
            )
        try:
            created.append(create_account(tenant, **{"code": "", "name": "", **row}))
        except AccountingError as exc:
            raise type(exc)(f"Row {index}: {exc.message}", row=index, **exc.details)

    logger.info("Accounts imported", extra={"tenant": tenant.slug, "count": len(created)})
    return created
