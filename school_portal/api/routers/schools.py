# school_portal/api/routers/schools.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy import select, func
from typing import Dict, Any
import logging

from school_portal.core.db import get_db
from school_portal.api.deps.auth import require_permission
from school_portal.api.deps.tenancy import require_school
from school_portal.core.security import password_manager
from school_portal.models import School, User, Class, Teacher, Student, Parent
from school_portal.services.auth_service import AuthService
from school_portal.schemas.school import SchoolCreate, SchoolOut

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_school(payload: SchoolCreate, db: Session = Depends(get_db)):
    """Create a school together with its first admin account"""
    strength = password_manager.validate_password_strength(payload.admin_password)
    if not strength["valid"]:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="; ".join(strength["feedback"]))

    school_data = payload.model_dump(exclude={"admin_email", "admin_full_name", "admin_password"})
    try:
        created = AuthService(db).bootstrap_school(
            school_data,
            admin_email=payload.admin_email,
            admin_full_name=payload.admin_full_name,
            admin_password=payload.admin_password,
        )
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    return {
        "school": SchoolOut.model_validate(created["school"]),
        "admin_user_id": created["admin"].id,
    }


@router.get("/subdomain/{slug}", response_model=SchoolOut)
async def get_school_by_subdomain(slug: str, db: Session = Depends(get_db)):
    """Public tenant discovery for the login page"""
    school = db.execute(
        select(School).where(School.slug == slug.lower(), School.status == "active")
    ).scalar_one_or_none()
    if not school:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="School not found")
    return school


@router.get("/current", response_model=SchoolOut)
async def get_current_school(ctx: Dict[str, Any] = Depends(require_school)):
    return ctx["school"]


@router.get("/stats", dependencies=[Depends(require_permission("view:reports"))])
async def get_school_stats(
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    """Head counts for the admin dashboard"""
    school_id = ctx["school_id"]

    def count(model) -> int:
        return db.execute(
            select(func.count(model.id)).where(model.school_id == school_id)
        ).scalar_one()

    return {
        "school_id": school_id,
        "users": count(User),
        "classes": count(Class),
        "teachers": count(Teacher),
        "students": count(Student),
        "parents": count(Parent),
    }
