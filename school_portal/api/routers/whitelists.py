# school_portal/api/routers/whitelists.py - Admin management of self-registration whitelists
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import Dict, Any, List
from uuid import UUID
import logging

from school_portal.core.db import get_db
from school_portal.api.deps.auth import require_permission
from school_portal.api.deps.tenancy import require_school
from school_portal.models import WhitelistedTeacher, WhitelistedParent, Student
from school_portal.tenancy.scoped import select_by_tenant, insert_with_tenant, delete_by_tenant
from school_portal.schemas.whitelist import (
    WhitelistedTeacherCreate,
    WhitelistedTeacherOut,
    WhitelistedParentCreate,
    WhitelistedParentOut,
)

logger = logging.getLogger(__name__)
router = APIRouter(dependencies=[Depends(require_permission("manage:users"))])


def _ensure_not_listed(db: Session, model, school_id: UUID, email: str):
    existing = db.execute(
        select_by_tenant(model, school_id).where(func.lower(model.email) == email.lower())
    ).scalar_one_or_none()
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"{email} is already whitelisted")


@router.get("/teachers", response_model=List[WhitelistedTeacherOut])
async def list_whitelisted_teachers(
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    return db.execute(
        select_by_tenant(WhitelistedTeacher, ctx["school_id"]).order_by(WhitelistedTeacher.email)
    ).scalars().all()


@router.post("/teachers", response_model=WhitelistedTeacherOut, status_code=status.HTTP_201_CREATED)
async def whitelist_teacher(
    payload: WhitelistedTeacherCreate,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    school_id = ctx["school_id"]
    email = payload.email.lower()
    _ensure_not_listed(db, WhitelistedTeacher, school_id, email)

    entry = insert_with_tenant(db, WhitelistedTeacher, {**payload.model_dump(), "email": email}, school_id)
    db.commit()
    db.refresh(entry)
    logger.info(f"Teacher email whitelisted: {email} by {ctx['user'].email}")
    return entry


@router.delete("/teachers/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_whitelisted_teacher(
    entry_id: UUID,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    if delete_by_tenant(db, WhitelistedTeacher, "id", entry_id, ctx["school_id"]) == 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Whitelist entry not found")
    db.commit()


@router.get("/parents", response_model=List[WhitelistedParentOut])
async def list_whitelisted_parents(
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    return db.execute(
        select_by_tenant(WhitelistedParent, ctx["school_id"]).order_by(WhitelistedParent.email)
    ).scalars().all()


@router.post("/parents", response_model=WhitelistedParentOut, status_code=status.HTTP_201_CREATED)
async def whitelist_parent(
    payload: WhitelistedParentCreate,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    school_id = ctx["school_id"]
    email = payload.email.lower()
    _ensure_not_listed(db, WhitelistedParent, school_id, email)

    if payload.student_ids:
        known = set(db.execute(
            select_by_tenant(Student, school_id)
            .with_only_columns(Student.id)
            .where(Student.id.in_(payload.student_ids))
        ).scalars())
        unknown = [str(s) for s in payload.student_ids if s not in known]
        if unknown:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Students not found: {', '.join(unknown)}")

    data = payload.model_dump()
    data["email"] = email
    data["student_ids"] = [str(s) for s in payload.student_ids]
    entry = insert_with_tenant(db, WhitelistedParent, data, school_id)
    db.commit()
    db.refresh(entry)
    logger.info(f"Parent email whitelisted: {email} by {ctx['user'].email}")
    return entry


@router.delete("/parents/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_whitelisted_parent(
    entry_id: UUID,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    if delete_by_tenant(db, WhitelistedParent, "id", entry_id, ctx["school_id"]) == 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Whitelist entry not found")
    db.commit()
