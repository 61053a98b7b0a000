# school_portal/api/routers/attendance.py - Daily class registers
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from sqlalchemy import select, delete
from datetime import date
from typing import Dict, Any, List, Optional
from uuid import UUID
import logging

from school_portal.core.db import get_db
from school_portal.api.deps.auth import require_permission
from school_portal.api.deps.tenancy import require_school, visible_student_ids
from school_portal.models import AttendanceRecord, Class, Student
from school_portal.services.auth_service import AuthService
from school_portal.tenancy.scoped import select_by_tenant, get_by_tenant, insert_with_tenant
from school_portal.schemas.records import AttendanceMark, AttendanceOut, AttendanceListOut, AttendanceSummary

logger = logging.getLogger(__name__)
router = APIRouter()


def summarize(records: List[AttendanceRecord]) -> AttendanceSummary:
    counts = {"present": 0, "absent": 0, "late": 0}
    for record in records:
        counts[record.status] += 1
    total = len(records)
    return AttendanceSummary(
        total=total,
        **counts,
        percentage=round(counts["present"] / total * 100, 1) if total else 0.0,
    )


@router.post(
    "",
    response_model=List[AttendanceOut],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission("mark:attendance"))],
)
async def mark_attendance(
    register: AttendanceMark,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    """
    Mark a class register for one day.

    The register replaces anything marked earlier for that class and day.
    Every student must belong to the class.
    """
    school_id = ctx["school_id"]
    class_obj = get_by_tenant(db, Class, register.class_id, school_id)
    if not class_obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Class not found")
    if register.attendance_date > date.today():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot mark attendance for a future date")

    enrolled = set(db.execute(
        select(Student.id).where(Student.school_id == school_id, Student.class_id == class_obj.id)
    ).scalars().all())
    outsiders = [str(r.student_id) for r in register.records if r.student_id not in enrolled]
    if outsiders:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Students not in class {class_obj.display_name}: {', '.join(outsiders)}"
        )

    marked_by = None
    if ctx["role"] == "teacher":
        teacher = AuthService(db).get_profile(ctx["user"], "teacher")
        marked_by = teacher.id if teacher else None

    db.execute(
        delete(AttendanceRecord).where(
            AttendanceRecord.school_id == school_id,
            AttendanceRecord.class_id == class_obj.id,
            AttendanceRecord.attendance_date == register.attendance_date,
        )
    )
    records = [
        insert_with_tenant(db, AttendanceRecord, {
            "student_id": entry.student_id,
            "class_id": class_obj.id,
            "attendance_date": register.attendance_date,
            "status": entry.status,
            "marked_by": marked_by,
        }, school_id)
        for entry in register.records
    ]
    db.commit()

    logger.info(
        f"Attendance for class {class_obj.id} on {register.attendance_date}: "
        f"{len(records)} record(s) by {ctx['user'].email}"
    )
    return records


@router.get("", response_model=AttendanceListOut)
async def list_attendance(
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
    class_id: Optional[UUID] = Query(None),
    student_id: Optional[UUID] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
):
    """Attendance records with a present/absent/late summary; students and parents see their own"""
    query = select_by_tenant(AttendanceRecord, ctx["school_id"])

    visible = visible_student_ids(db, ctx, "view:attendance", "view:child:attendance")
    if visible is not None:
        query = query.where(AttendanceRecord.student_id.in_(visible))

    if class_id:
        query = query.where(AttendanceRecord.class_id == class_id)
    if student_id:
        query = query.where(AttendanceRecord.student_id == student_id)
    if date_from:
        query = query.where(AttendanceRecord.attendance_date >= date_from)
    if date_to:
        query = query.where(AttendanceRecord.attendance_date <= date_to)

    records = db.execute(
        query.order_by(AttendanceRecord.attendance_date.desc(), AttendanceRecord.student_id)
    ).scalars().all()
    return AttendanceListOut(records=records, summary=summarize(records))
