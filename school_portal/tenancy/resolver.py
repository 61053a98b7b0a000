# school_portal/tenancy/resolver.py - Tenant resolution from hostname or stored user tenant
from dataclasses import dataclass
from typing import Any, Iterable, Optional
import ipaddress
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TenantResolution:
    """Resolved tenant and where it came from ("subdomain", "user" or None)"""
    tenant: Optional[str]
    source: Optional[str]

    @property
    def resolved(self) -> bool:
        return self.tenant is not None


def _strip_port(hostname: str) -> Optional[str]:
    host = hostname.strip()
    if not host or host.startswith("["):
        # IPv6 literal, never a tenant subdomain
        return None
    if host.count(":") > 1:
        return None
    return host.split(":", 1)[0].rstrip(".")


def _is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def tenant_slug_from_host(
    hostname: Optional[str],
    base_domain: Optional[str] = None,
    reserved: Iterable[str] = (),
) -> Optional[str]:
    """
    Extract the tenant slug from a hostname.

    The leftmost label is the slug when the host has more than two labels
    and that label is not "www". IP literals never carry a slug.

    Args:
        hostname: Request host, port allowed
        base_domain: When set, only a single label directly under this
            domain counts as a slug
        reserved: Labels that never name a tenant (e.g. "api")

    Examples:
        alpha.example.com -> "alpha"
        example.com -> None
        www.example.com -> None
        10.0.0.5 -> None
    """
    if not hostname:
        return None
    host = _strip_port(hostname)
    if not host or _is_ip_literal(host):
        return None

    if base_domain:
        suffix = "." + base_domain.strip(".").lower()
        if not host.lower().endswith(suffix):
            return None
        labels = host[:-len(suffix)].split(".")
        if len(labels) != 1:
            return None
    else:
        labels = host.split(".")
        if len(labels) <= 2:
            return None

    first = labels[0]
    if not first or first.lower() == "www":
        return None
    if first.lower() in {r.lower() for r in reserved}:
        return None
    return first


def resolve_tenant(
    hostname: Optional[str],
    user: Any = None,
    base_domain: Optional[str] = None,
    reserved: Iterable[str] = (),
) -> TenantResolution:
    """
    Resolve the tenant for a request. Never raises.

    Args:
        hostname: Request host, port allowed
        user: Authenticated user; its ``school_id`` is the fallback
        base_domain: Restricts slugs to labels under this domain
        reserved: Labels that never name a tenant

    Returns:
        TenantResolution; subdomain wins over the user's stored tenant
    """
    try:
        slug = tenant_slug_from_host(hostname, base_domain, reserved)
    except Exception as e:
        logger.warning(f"Could not parse hostname {hostname!r}: {e}")
        slug = None
    if slug:
        return TenantResolution(tenant=slug, source="subdomain")

    school_id = getattr(user, "school_id", None) if user is not None else None
    if school_id:
        return TenantResolution(tenant=str(school_id), source="user")

    return TenantResolution(tenant=None, source=None)


__all__ = ["TenantResolution", "tenant_slug_from_host", "resolve_tenant"]
