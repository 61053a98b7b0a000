# school_portal/api/routers/auth.py - Login, tokens and whitelist-gated self registration
from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.orm import Session
from sqlalchemy import select
from typing import Dict, Any
from uuid import UUID
import logging

from school_portal.core.db import get_db
from school_portal.core.security import token_manager, password_manager
from school_portal.api.deps.auth import get_current_user, require_permission
from school_portal.api.deps.tenancy import require_school, resolve_request_tenant
from school_portal.models import User, School, Class
from school_portal.services.auth_service import AuthService
from school_portal.tenancy.permissions import ROLES, permissions_for
from school_portal.schemas.auth import (
    LoginIn,
    TokenOut,
    RefreshIn,
    ChangePasswordIn,
    SignupIn,
    SignupOut,
    RegisterUserIn,
    UserOut,
    MeOut,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def _check_password_strength(password: str):
    result = password_manager.validate_password_strength(password)
    if not result["valid"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="; ".join(result["feedback"])
        )


def _profile_dict(profile) -> Dict[str, Any] | None:
    if profile is None:
        return None
    return {column.key: getattr(profile, column.key) for column in profile.__table__.columns}


@router.post("/login", response_model=TokenOut)
async def login(credentials: LoginIn, db: Session = Depends(get_db)):
    """Authenticate user and return access and refresh tokens"""
    service = AuthService(db)
    user = service.authenticate_user(credentials.email, credentials.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return TokenOut(**service.issue_tokens(user), must_change_password=user.must_change_password)


@router.post("/refresh", response_model=TokenOut)
async def refresh(payload: RefreshIn, db: Session = Depends(get_db)):
    """Exchange a refresh token for a new token pair"""
    claims = token_manager.decode_token(payload.refresh_token, expected_type="refresh")

    try:
        user_id = UUID(claims.get("sub", ""))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid user ID format")

    user = db.get(User, user_id)
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return TokenOut(**AuthService(db).issue_tokens(user), must_change_password=user.must_change_password)


@router.get("/me", response_model=MeOut)
async def me(
    request: Request,
    ctx: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Current user with resolved role, tenant, permissions and profile"""
    user = ctx["user"]
    role = ctx["role"]
    resolution = resolve_request_tenant(request, user)

    school_id = user.school_id
    if resolution.source == "subdomain":
        school_id = db.execute(
            select(School.id).where(School.slug == resolution.tenant.lower())
        ).scalar_one_or_none()

    return MeOut(
        user=UserOut.model_validate(user),
        role=role,
        school_id=school_id,
        tenant_source=resolution.source,
        permissions=permissions_for(role),
        profile=_profile_dict(AuthService(db).get_profile(user, role)),
    )


@router.post("/change-password")
async def change_password(
    payload: ChangePasswordIn,
    ctx: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    _check_password_strength(payload.new_password)
    try:
        AuthService(db).change_password(ctx["user"], payload.current_password, payload.new_password)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"message": "Password updated successfully"}


# ============================================================================
# Self registration
# ============================================================================

def _signup(kind: str, payload: SignupIn, db: Session) -> SignupOut:
    _check_password_strength(payload.password)

    school = db.get(School, payload.school_id)
    if not school or school.status != "active":
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="School not found")

    service = AuthService(db)
    signup = service.teacher_signup if kind == "teacher" else service.parent_signup
    try:
        user = signup(school.id, payload.email, payload.password, payload.full_name)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error during {kind} signup for {payload.email}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Account creation failed"
        )

    return SignupOut(user_id=user.id)


@router.post("/teacher-signup", response_model=SignupOut, status_code=status.HTTP_201_CREATED)
async def teacher_signup(payload: SignupIn, db: Session = Depends(get_db)):
    """Register a teacher account for a whitelisted email"""
    return _signup("teacher", payload, db)


@router.post("/parent-signup", response_model=SignupOut, status_code=status.HTTP_201_CREATED)
async def parent_signup(payload: SignupIn, db: Session = Depends(get_db)):
    """Register a parent account for a whitelisted email and link its students"""
    return _signup("parent", payload, db)


@router.post(
    "/register",
    response_model=UserOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission("manage:users"))],
)
async def register_user(
    payload: RegisterUserIn,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    """Admin creates an account (with role profile) inside the current school"""
    school_id = ctx["school_id"]

    if payload.role not in ROLES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown role: {payload.role}")
    _check_password_strength(payload.password)

    profile: Dict[str, Any] = {}
    if payload.role == "teacher":
        profile = {"phone": payload.phone, "subject_specialization": payload.subject_specialization}
    elif payload.role == "parent":
        profile = {"phone": payload.phone, "relation": payload.relation}
    elif payload.role == "student":
        if payload.class_id:
            class_row = db.execute(
                select(Class.id).where(Class.id == payload.class_id, Class.school_id == school_id)
            ).first()
            if not class_row:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Class not found")
        profile = {"class_id": payload.class_id, "admission_no": payload.admission_no}

    try:
        user = AuthService(db).create_user(
            school_id=school_id,
            email=payload.email,
            full_name=payload.full_name,
            password=payload.password,
            role=payload.role,
            profile=profile,
        )
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    logger.info(f"User {user.email} registered by {ctx['user'].email}")
    return user
