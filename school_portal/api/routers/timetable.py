# school_portal/api/routers/timetable.py - Timetable entries and conflict detection
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from sqlalchemy import select
from typing import Dict, Any, List, Optional
from uuid import UUID
import logging

from school_portal.core.db import get_db
from school_portal.api.deps.auth import require_permission
from school_portal.api.deps.tenancy import require_school
from school_portal.models import TimetableEntry, Class, Subject, Teacher
from school_portal.services.timetable_conflicts import detect_conflicts
from school_portal.tenancy.scoped import select_by_tenant, get_by_tenant, insert_with_tenant, delete_by_tenant
from school_portal.schemas.academic import (
    TimetableEntryCreate,
    TimetableEntryOut,
    TimetableConflictReport,
    DAYS_OF_WEEK,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=List[TimetableEntryOut])
async def list_entries(
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
    class_id: Optional[UUID] = Query(None),
    teacher_id: Optional[UUID] = Query(None),
    day_of_week: Optional[str] = Query(None),
):
    query = select_by_tenant(TimetableEntry, ctx["school_id"])
    if class_id:
        query = query.where(TimetableEntry.class_id == class_id)
    if teacher_id:
        query = query.where(TimetableEntry.teacher_id == teacher_id)
    if day_of_week:
        query = query.where(TimetableEntry.day_of_week == day_of_week.title())

    entries = db.execute(query).scalars().all()
    day_index = {day: i for i, day in enumerate(DAYS_OF_WEEK)}
    return sorted(entries, key=lambda e: (day_index.get(e.day_of_week, 7), e.start_time))


@router.post(
    "",
    response_model=TimetableEntryOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission("manage:classes"))],
)
async def create_entry(
    entry_data: TimetableEntryCreate,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    school_id = ctx["school_id"]
    if not get_by_tenant(db, Class, entry_data.class_id, school_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Class not found")
    if entry_data.subject_id and not get_by_tenant(db, Subject, entry_data.subject_id, school_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subject not found")
    if entry_data.teacher_id and not get_by_tenant(db, Teacher, entry_data.teacher_id, school_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Teacher not found")

    entry = insert_with_tenant(db, TimetableEntry, entry_data.model_dump(), school_id)
    db.commit()
    db.refresh(entry)
    return entry


@router.delete(
    "/{entry_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_permission("manage:classes"))],
)
async def delete_entry(
    entry_id: UUID,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    if delete_by_tenant(db, TimetableEntry, "id", entry_id, ctx["school_id"]) == 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Timetable entry not found")
    db.commit()


@router.get(
    "/conflicts",
    response_model=TimetableConflictReport,
    dependencies=[Depends(require_permission("manage:classes"))],
)
async def get_conflicts(
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    """Teacher double bookings and classes without a break in the school timetable"""
    school_id = ctx["school_id"]
    entries = db.execute(select_by_tenant(TimetableEntry, school_id)).scalars().all()

    class_names = {
        str(c.id): c.display_name
        for c in db.execute(select_by_tenant(Class, school_id)).scalars()
    }
    teacher_names = {
        str(teacher_id): name
        for teacher_id, name in db.execute(
            select(Teacher.id, Teacher.full_name).where(Teacher.school_id == school_id)
        )
    }

    conflicts = detect_conflicts(entries, class_names=class_names, teacher_names=teacher_names)
    if conflicts:
        logger.info(f"{len(conflicts)} timetable conflict(s) found for school {school_id}")
    return TimetableConflictReport(conflicts=conflicts, total=len(conflicts))
