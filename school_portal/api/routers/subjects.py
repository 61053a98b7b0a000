# school_portal/api/routers/subjects.py
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import Dict, Any, List, Optional
from uuid import UUID
import logging

from school_portal.core.db import get_db
from school_portal.api.deps.auth import require_permission
from school_portal.api.deps.tenancy import require_school
from school_portal.models import Subject, Class, Teacher
from school_portal.tenancy.scoped import (
    select_by_tenant, get_by_tenant, insert_with_tenant, update_by_tenant, delete_by_tenant,
)
from school_portal.schemas.academic import SubjectCreate, SubjectUpdate, SubjectOut

logger = logging.getLogger(__name__)
router = APIRouter()


def _check_references(db: Session, school_id: UUID, data: Dict[str, Any]):
    if data.get("class_id") and not get_by_tenant(db, Class, data["class_id"], school_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Class not found")
    if data.get("teacher_id") and not get_by_tenant(db, Teacher, data["teacher_id"], school_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Teacher not found")


@router.get("", response_model=List[SubjectOut])
async def list_subjects(
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
    class_id: Optional[UUID] = Query(None),
    teacher_id: Optional[UUID] = Query(None),
):
    query = select_by_tenant(Subject, ctx["school_id"])
    if class_id:
        query = query.where(Subject.class_id == class_id)
    if teacher_id:
        query = query.where(Subject.teacher_id == teacher_id)
    return db.execute(query.order_by(Subject.name)).scalars().all()


@router.post(
    "",
    response_model=SubjectOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission("manage:subjects"))],
)
async def create_subject(
    subject_data: SubjectCreate,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    school_id = ctx["school_id"]
    data = subject_data.model_dump()
    _check_references(db, school_id, data)

    subject = insert_with_tenant(db, Subject, data, school_id)
    db.commit()
    db.refresh(subject)
    logger.info(f"Subject created: {subject.name} by {ctx['user'].email}")
    return subject


@router.put(
    "/{subject_id}",
    response_model=SubjectOut,
    dependencies=[Depends(require_permission("manage:subjects"))],
)
async def update_subject(
    subject_id: UUID,
    subject_data: SubjectUpdate,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    school_id = ctx["school_id"]
    patch = subject_data.model_dump(exclude_unset=True)
    _check_references(db, school_id, patch)

    if patch and update_by_tenant(db, Subject, "id", subject_id, school_id, patch) == 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subject not found")
    db.commit()

    subject = get_by_tenant(db, Subject, subject_id, school_id)
    if not subject:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subject not found")
    return subject


@router.delete(
    "/{subject_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_permission("manage:subjects"))],
)
async def delete_subject(
    subject_id: UUID,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    if delete_by_tenant(db, Subject, "id", subject_id, ctx["school_id"]) == 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subject not found")
    db.commit()
