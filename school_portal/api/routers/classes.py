# school_portal/api/routers/classes.py
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import Dict, Any, List, Optional
from uuid import UUID
import logging

from school_portal.core.db import get_db
from school_portal.api.deps.auth import require_permission
from school_portal.api.deps.tenancy import require_school
from school_portal.models import Class, Teacher
from school_portal.tenancy.scoped import (
    select_by_tenant, get_by_tenant, insert_with_tenant, update_by_tenant, delete_by_tenant,
)
from school_portal.schemas.academic import ClassCreate, ClassUpdate, ClassOut

logger = logging.getLogger(__name__)
router = APIRouter()


def _check_teacher(db: Session, teacher_id: Optional[UUID], school_id: UUID):
    if teacher_id and not get_by_tenant(db, Teacher, teacher_id, school_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Teacher not found")


@router.get("", response_model=List[ClassOut])
async def list_classes(
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
    academic_year: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
):
    """List classes of the current school"""
    query = select_by_tenant(Class, ctx["school_id"])
    if academic_year:
        query = query.where(Class.academic_year == academic_year)
    if search:
        query = query.where(func.lower(Class.name).like(f"%{search.lower()}%"))

    return db.execute(query.order_by(Class.name, Class.section)).scalars().all()


@router.post(
    "",
    response_model=ClassOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission("manage:classes"))],
)
async def create_class(
    class_data: ClassCreate,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    school_id = ctx["school_id"]
    _check_teacher(db, class_data.class_teacher_id, school_id)

    existing = db.execute(
        select_by_tenant(Class, school_id).where(
            func.lower(Class.name) == class_data.name.lower(),
            Class.section == class_data.section,
            Class.academic_year == class_data.academic_year,
        )
    ).scalar_one_or_none()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Class '{class_data.name}' already exists"
        )

    try:
        new_class = insert_with_tenant(db, Class, class_data.model_dump(), school_id)
        db.commit()
        db.refresh(new_class)
        logger.info(f"Class created: {new_class.name} by {ctx['user'].email}")
    except Exception as e:
        db.rollback()
        logger.error(f"Error creating class: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error creating class"
        )
    return new_class


@router.get("/{class_id}", response_model=ClassOut)
async def get_class(
    class_id: UUID,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    class_obj = get_by_tenant(db, Class, class_id, ctx["school_id"])
    if not class_obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Class not found")
    return class_obj


@router.put(
    "/{class_id}",
    response_model=ClassOut,
    dependencies=[Depends(require_permission("manage:classes"))],
)
async def update_class(
    class_id: UUID,
    class_data: ClassUpdate,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    school_id = ctx["school_id"]
    patch = class_data.model_dump(exclude_unset=True)
    _check_teacher(db, patch.get("class_teacher_id"), school_id)

    if patch and update_by_tenant(db, Class, "id", class_id, school_id, patch) == 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Class not found")
    db.commit()

    class_obj = get_by_tenant(db, Class, class_id, school_id)
    if not class_obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Class not found")
    return class_obj


@router.delete(
    "/{class_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_permission("manage:classes"))],
)
async def delete_class(
    class_id: UUID,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    if delete_by_tenant(db, Class, "id", class_id, ctx["school_id"]) == 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Class not found")
    db.commit()
    logger.info(f"Class {class_id} deleted by {ctx['user'].email}")
