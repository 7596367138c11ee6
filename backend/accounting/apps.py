# accounting/apps.py
"""Accounting app configuration."""

from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured


class AccountingConfig(AppConfig):
    """Configuration for the accounting app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "accounting"
    verbose_name = "Accounting"

    def ready(self):
        """Fail fast on a malformed code prefix table."""
        from accounting.registry import validate_prefix_map

        try:
            validate_prefix_map(settings.ACCOUNTING_CODE_PREFIX_CATEGORIES)
        except ValueError as exc:
            raise ImproperlyConfigured(f"ACCOUNTING_CODE_PREFIX_CATEGORIES: {exc}")
