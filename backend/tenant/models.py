"""
Tenant model.

Every accounting row is scoped to a Tenant. The request layer resolves
which tenant a call belongs to; the ledger itself never infers it.
"""
import uuid

from django.core.exceptions import ValidationError
from django.db import models


class Tenant(models.Model):
    """
    An isolated set of books.

    ``code_prefix_map`` optionally overrides entries of
    ``settings.ACCOUNTING_CODE_PREFIX_CATEGORIES`` for this tenant, e.g.
    ``{"4": "revenue"}`` for a chart that keeps revenue under 4xxx.
    """

    id = models.BigAutoField(primary_key=True)

    public_id = models.UUIDField(
        default=uuid.uuid4,
        editable=False,
        unique=True,
        help_text="Public identifier for API exposure.",
    )

    name = models.CharField(max_length=255)

    slug = models.SlugField(max_length=100, unique=True)

    is_active = models.BooleanField(default=True)

    code_prefix_map = models.JSONField(
        default=dict,
        blank=True,
        help_text="Per-tenant overrides of the account code prefix -> category table.",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.slug

    def clean(self):
        # Deferred import: accounting depends on tenant, not the other way round.
        from accounting.registry import validate_prefix_map

        try:
            validate_prefix_map(self.code_prefix_map or {})
        except ValueError as exc:
            raise ValidationError({"code_prefix_map": str(exc)})
