"""
Request -> Tenant resolution.

Authentication and tenant membership are handled upstream; by the time a
request reaches the accounting views it only needs to say which books it
targets. That is carried in the ``X-Tenant`` header as the tenant slug.
"""
import logging

from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from tenant.models import Tenant

logger = logging.getLogger(__name__)

TENANT_HEADER = "HTTP_X_TENANT"


def resolve_tenant(request) -> Tenant:
    """Return the active Tenant named by the request's X-Tenant header."""
    slug = request.META.get(TENANT_HEADER, "").strip()
    if not slug:
        raise ValidationError({"detail": "X-Tenant header is required."})

    try:
        tenant = Tenant.objects.get(slug=slug)
    except Tenant.DoesNotExist:
        raise NotFound(f"Unknown tenant: {slug}")

    if not tenant.is_active:
        logger.warning("Request for inactive tenant", extra={"tenant": slug})
        raise PermissionDenied("Tenant is inactive.")

    return tenant
