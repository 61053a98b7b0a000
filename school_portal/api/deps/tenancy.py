# school_portal/api/deps/tenancy.py - Resolve and enforce the tenant (school) of a request
from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session
from sqlalchemy import select
from typing import Optional, Dict, Any
import logging

from school_portal.core.config import settings
from school_portal.core.db import get_db, set_rls_context
from school_portal.api.deps.auth import get_current_user
from school_portal.models.school import School
from school_portal.models.profiles import Student
from school_portal.services.auth_service import AuthService
from school_portal.tenancy.permissions import can
from school_portal.tenancy.resolver import TenantResolution, resolve_tenant

logger = logging.getLogger(__name__)


def _forbidden(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def _requested_school_ids(request: Request, x_school_id: Optional[str]) -> list:
    """School ids the client supplied through header, path or query"""
    candidates = [
        x_school_id,
        request.path_params.get("school_id"),
        request.query_params.get("school_id"),
        request.query_params.get("schoolId"),
    ]
    return [c for c in candidates if c]


def request_host(request: Request) -> Optional[str]:
    """Host the client addressed; a reverse proxy reports it in X-Forwarded-Host"""
    forwarded = request.headers.get("x-forwarded-host")
    if forwarded:
        return forwarded.split(",", 1)[0].strip()
    return request.headers.get("host")


def resolve_request_tenant(request: Request, user) -> TenantResolution:
    return resolve_tenant(
        request_host(request),
        user,
        base_domain=settings.TENANT_BASE_DOMAIN,
        reserved=settings.reserved_subdomains,
    )


def require_school(
    request: Request,
    ctx: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db),
    x_school_id: Optional[str] = Header(default=None, alias="X-School-ID"),
) -> Dict[str, Any]:
    """
    Resolve the school for the request and return the context dict.

    The subdomain of the addressed host wins over the user's stored school. The
    user must belong to the resolved school, and any school id supplied by the
    client has to match it.

    Returns:
        {"user", "claims", "role", "school_id", "school", "resolved_from"}
    """
    user = ctx["user"]
    resolution = resolve_request_tenant(request, user)

    if not resolution.resolved or not user.school_id:
        raise _forbidden("Access denied: User not associated with a school")

    if resolution.source == "subdomain":
        school = db.execute(
            select(School).where(School.slug == resolution.tenant.lower())
        ).scalar_one_or_none()
        if not school:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="School not found")
        if school.id != user.school_id:
            logger.warning(f"User {user.id} denied on subdomain {school.slug}: belongs to another school")
            raise _forbidden("Access denied: Cannot access data from another school")
    else:
        school = db.get(School, user.school_id)
        if not school:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="School not found")

    if school.status != "active":
        raise _forbidden("School is not active")

    for requested in _requested_school_ids(request, x_school_id):
        if str(requested).strip().lower() != str(school.id):
            logger.warning(f"User {user.id} requested school {requested} while scoped to {school.id}")
            raise _forbidden("Access denied: Cannot access data from another school")

    set_rls_context(db, user_id=user.id, school_id=school.id)

    return {
        **ctx,
        "school_id": school.id,
        "school": school,
        "resolved_from": resolution.source,
    }



def visible_student_ids(db: Session, ctx: Dict[str, Any], self_action: str, child_action: str):
    """
    Students whose records the caller may read.

    Returns None for admins and teachers (the whole school), otherwise the
    student's own id or the parent's children.

    Raises:
        HTTPException: 403 when the role lacks the read action
    """
    role = ctx["role"]
    if role in ("admin", "teacher"):
        return None
    if role == "student" and can(role, self_action):
        profile = AuthService(db).get_profile(ctx["user"], role)
        return [profile.id] if profile else []
    if role == "parent" and can(role, child_action):
        profile = AuthService(db).get_profile(ctx["user"], role)
        if not profile:
            return []
        return list(db.execute(
            select(Student.id).where(Student.school_id == ctx["school_id"], Student.parent_id == profile.id)
        ).scalars().all())
    raise _forbidden(f"Permission denied: {self_action}")
