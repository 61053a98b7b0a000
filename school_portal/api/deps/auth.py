# school_portal/api/deps/auth.py - Bearer authentication, role resolution and permission checks
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from sqlalchemy import select
from uuid import UUID
from typing import Dict, Any, List, Optional

from school_portal.core.db import get_db
from school_portal.core.security import decode_token
from school_portal.models.user import User
from school_portal.tenancy.permissions import can, has_any_role
from school_portal.tenancy.roles import RoleResolver

# auto_error=False so a missing header is a 401 rather than FastAPI's 403
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_role_resolver() -> RoleResolver:
    return RoleResolver()


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
    resolver: RoleResolver = Depends(get_role_resolver),
) -> Dict[str, Any]:
    """
    Decode JWT, load the user and resolve the functional role.
    Returns: {"user": User, "claims": dict, "role": str | None}
    """
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Not authenticated")

    claims = decode_token(credentials.credentials)

    user_id_str = claims.get("sub")
    if not user_id_str:
        raise _unauthorized("Token missing user ID")
    try:
        user_uuid = UUID(user_id_str)
    except ValueError:
        raise _unauthorized("Invalid user ID format")

    user = db.execute(
        select(User).where(User.id == user_uuid)
    ).scalar_one_or_none()
    if not user:
        raise _unauthorized("User not found")
    if not user.is_active:
        raise _unauthorized("Account deactivated")

    return {
        "user": user,
        "claims": claims,
        "role": resolver.resolve(db, user.id),
    }


def require_roles(required_roles: List[str]):
    """
    Create a dependency that requires one of the given roles.
    Usage: @router.get("/x", dependencies=[Depends(require_roles(["admin", "teacher"]))])
    """
    def role_checker(ctx=Depends(get_current_user)):
        if not has_any_role(ctx["role"], required_roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {required_roles}"
            )
        return ctx
    return role_checker


def require_permission(action: str):
    """Create a dependency that requires ``action`` in the permission table"""
    def permission_checker(ctx=Depends(get_current_user)):
        if not can(ctx["role"], action):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: {action}"
            )
        return ctx
    return permission_checker


def require_admin(ctx=Depends(get_current_user)):
    """Require admin role"""
    if ctx["role"] != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return ctx
