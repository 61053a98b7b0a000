# school_portal/tenancy/__init__.py - Tenant resolution, roles, permissions and scoped data access
from school_portal.tenancy.resolver import TenantResolution, tenant_slug_from_host, resolve_tenant
from school_portal.tenancy.permissions import PERMISSIONS, ROLES, can, has_any_role
from school_portal.tenancy.roles import RoleResolver
from school_portal.tenancy.scoped import (
    TenantScopeError, select_by_tenant, get_by_tenant, insert_with_tenant, update_by_tenant, delete_by_tenant,
)

__all__ = [
    "TenantResolution", "tenant_slug_from_host", "resolve_tenant",
    "PERMISSIONS", "ROLES", "can", "has_any_role",
    "RoleResolver",
    "TenantScopeError", "select_by_tenant", "get_by_tenant", "insert_with_tenant",
    "update_by_tenant", "delete_by_tenant",
]
