# tests/conftest.py
"""
Pytest fixtures for ledger tests.

Accounts, fiscal years and entries are created through the service
layer, the same way the API does, so fixtures obey every posting rule.

Chart used throughout (default prefix table: 1-2 asset, 3-4 liability,
5 equity, 6-7 revenue, 8-9 expense):

    1000 Cash                 asset      (inferred)
    1100 Bank                 asset      (inferred)
    1900 Current Assets       asset      header
    3000 Accounts Payable     liability  (inferred)
    4000 Sales Revenue        revenue    (explicit type)
    5100 Retained Earnings    equity     (inferred)
    8000 Rent Expense         expense    (inferred)
"""

from datetime import date
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from accounting import journal, periods, registry
from ledger_backend.celery import app as celery_app
from tenant.models import Tenant
from tests import event_sink


User = get_user_model()


@pytest.fixture(autouse=True, scope="session")
def _eager_celery():
    """Run event fan-out inline."""
    celery_app.conf.task_always_eager = True
    yield


# =============================================================================
# Tenant Fixtures
# =============================================================================

@pytest.fixture
def tenant(db):
    return Tenant.objects.create(name="Acme Trading", slug="acme")


@pytest.fixture
def second_tenant(db):
    """A second set of books for isolation tests."""
    return Tenant.objects.create(name="Globex", slug="globex")


@pytest.fixture
def account_types(tenant):
    return {t.code: t for t in registry.ensure_default_account_types(tenant)}


# =============================================================================
# Account Fixtures
# =============================================================================

@pytest.fixture
def cash_account(tenant, account_types):
    return registry.create_account(tenant, code="1000", name="Cash")


@pytest.fixture
def bank_account(tenant, account_types):
    return registry.create_account(tenant, code="1100", name="Bank")


@pytest.fixture
def header_account(tenant, account_types):
    return registry.create_account(tenant, code="1900", name="Current Assets", is_header=True)


@pytest.fixture
def payable_account(tenant, account_types):
    return registry.create_account(tenant, code="3000", name="Accounts Payable")


@pytest.fixture
def revenue_account(tenant, account_types):
    # Prefix 4 maps to liability by default; the type is given explicitly.
    return registry.create_account(tenant, code="4000", name="Sales Revenue", account_type="REVENUE")


@pytest.fixture
def retained_earnings(tenant, account_types):
    return registry.create_account(tenant, code="5100", name="Retained Earnings")


@pytest.fixture
def expense_account(tenant, account_types):
    return registry.create_account(tenant, code="8000", name="Rent Expense")


# =============================================================================
# Fiscal Calendar Fixtures
# =============================================================================

@pytest.fixture
def fiscal_year(tenant):
    """FY 2024, Jan 1 - Dec 31, twelve monthly periods."""
    return periods.create_fiscal_year(
        tenant,
        start_date=date(2024, 1, 1),
        end_date=date(2024, 12, 31),
    )


@pytest.fixture
def january(fiscal_year):
    return fiscal_year.periods.get(period_number=1)


# =============================================================================
# Journal Entry Fixtures
# =============================================================================

def lines_for(debit_account, credit_account, amount) -> list:
    amount = Decimal(str(amount))
    return [
        {"account": debit_account.id, "debit_amount": amount, "credit_amount": 0},
        {"account": credit_account.id, "debit_amount": 0, "credit_amount": amount},
    ]


@pytest.fixture
def make_entry(tenant):
    """
    Factory: make_entry(debit_account, credit_account, amount, post=True, entry_date=...).
    """
    def _make(debit_account, credit_account, amount, post=True, entry_date=date(2024, 1, 15), description="Test entry"):
        entry = journal.create_entry(
            tenant,
            entry_date=entry_date,
            description=description,
            lines=lines_for(debit_account, credit_account, amount),
        )
        if post:
            entry = journal.post_entry(tenant, entry.id)
        return entry

    return _make


@pytest.fixture
def draft_entry(tenant, fiscal_year, cash_account, revenue_account, make_entry):
    return make_entry(cash_account, revenue_account, "250.00", post=False)


@pytest.fixture
def posted_entry(tenant, fiscal_year, cash_account, revenue_account, make_entry):
    return make_entry(cash_account, revenue_account, "1000.00")


@pytest.fixture
def unbalanced_lines(cash_account, revenue_account):
    return [
        {"account": cash_account.id, "debit_amount": "100.00"},
        {"account": revenue_account.id, "credit_amount": "90.00"},
    ]


# =============================================================================
# Event Fixtures
# =============================================================================

@pytest.fixture
def published_events(settings):
    """
    Envelopes delivered to subscribers. Pair with
    django_capture_on_commit_callbacks(execute=True) to flush them.
    """
    settings.EVENT_SUBSCRIBERS = ["tests.event_sink.record"]
    event_sink.received.clear()
    yield event_sink.received
    event_sink.received.clear()


# =============================================================================
# API Fixtures
# =============================================================================

@pytest.fixture
def user(db):
    return User.objects.create_user(username="bookkeeper", password="pass12345")


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def authenticated_client(api_client, user, tenant):
    api_client.force_authenticate(user=user)
    api_client.credentials(HTTP_X_TENANT=tenant.slug)
    return api_client
