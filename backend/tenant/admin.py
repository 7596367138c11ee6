"""
Django Admin registration for Tenant models.
"""
from django.contrib import admin

from tenant.models import Tenant


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    """Admin interface for Tenant."""

    list_display = ["slug", "name", "is_active", "created_at"]
    list_filter = ["is_active"]
    search_fields = ["name", "slug"]
    readonly_fields = ["public_id", "created_at", "updated_at"]
