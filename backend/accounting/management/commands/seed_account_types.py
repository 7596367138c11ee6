"""
Seed the five system account types for a tenant.

Usage:
    python manage.py seed_account_types <tenant-slug>
    python manage.py seed_account_types --all

Idempotent: existing types are left untouched.
"""
from django.core.management.base import BaseCommand, CommandError

from accounting.registry import ensure_default_account_types
from tenant.models import Tenant


class Command(BaseCommand):
    help = "Create the default account types (asset, liability, equity, revenue, expense)"

    def add_arguments(self, parser):
        parser.add_argument("slug", nargs="?", help="Tenant slug")
        parser.add_argument(
            "--all",
            action="store_true",
            help="Seed every active tenant",
        )

    def handle(self, *args, **options):
        if options["all"]:
            tenants = list(Tenant.objects.filter(is_active=True).order_by("slug"))
        elif options["slug"]:
            try:
                tenants = [Tenant.objects.get(slug=options["slug"])]
            except Tenant.DoesNotExist:
                raise CommandError(f"Unknown tenant: {options['slug']}")
        else:
            raise CommandError("Pass a tenant slug or --all.")

        for tenant in tenants:
            types = ensure_default_account_types(tenant)
            self.stdout.write(
                self.style.SUCCESS(f"  {tenant.slug}: {len(types)} account types ready")
            )
