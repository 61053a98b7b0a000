# school_portal/api/routers/results.py - Exam marks entry and report lookups
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from sqlalchemy import delete
from typing import Dict, Any, List, Optional
from uuid import UUID
import logging

from school_portal.core.db import get_db
from school_portal.api.deps.auth import require_roles
from school_portal.api.deps.tenancy import require_school, visible_student_ids
from school_portal.models import ExamResult, Student, Subject
from school_portal.services.auth_service import AuthService
from school_portal.tenancy.scoped import select_by_tenant, get_by_tenant, insert_with_tenant
from school_portal.schemas.records import ExamResultsEnter, ExamResultOut

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "",
    response_model=List[ExamResultOut],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_roles(["admin", "teacher"]))],
)
async def enter_results(
    payload: ExamResultsEnter,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    """
    Enter the marks of one exam in one subject.

    Teachers enter marks only for subjects they teach. When the subject
    belongs to a class, every student must be in that class.
    """
    school_id = ctx["school_id"]
    subject = get_by_tenant(db, Subject, payload.subject_id, school_id)
    if not subject:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subject not found")

    if ctx["role"] == "teacher":
        teacher = AuthService(db).get_profile(ctx["user"], "teacher")
        if not teacher or subject.teacher_id != teacher.id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You do not teach this subject")

    student_ids = [entry.student_id for entry in payload.results]
    students = {
        s.id: s for s in db.execute(
            select_by_tenant(Student, school_id).where(Student.id.in_(student_ids))
        ).scalars().all()
    }
    missing = [str(i) for i in student_ids if i not in students]
    if missing:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Students not found: {', '.join(missing)}")
    if subject.class_id:
        outsiders = [str(s.id) for s in students.values() if s.class_id != subject.class_id]
        if outsiders:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Students not in the subject's class: {', '.join(outsiders)}"
            )

    db.execute(
        delete(ExamResult).where(
            ExamResult.school_id == school_id,
            ExamResult.subject_id == subject.id,
            ExamResult.exam_name == payload.exam_name,
            ExamResult.student_id.in_(student_ids),
        )
    )
    results = [
        insert_with_tenant(db, ExamResult, {
            "student_id": entry.student_id,
            "subject_id": subject.id,
            "exam_name": payload.exam_name,
            "marks_obtained": entry.marks_obtained,
            "max_marks": payload.max_marks,
        }, school_id)
        for entry in payload.results
    ]
    db.commit()

    logger.info(f"{len(results)} result(s) for {payload.exam_name} / {subject.name} by {ctx['user'].email}")
    return results


@router.get("", response_model=List[ExamResultOut])
async def list_results(
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
    student_id: Optional[UUID] = Query(None),
    subject_id: Optional[UUID] = Query(None),
    exam_name: Optional[str] = Query(None),
):
    """Exam results; students see their own and parents their children's"""
    query = select_by_tenant(ExamResult, ctx["school_id"])

    visible = visible_student_ids(db, ctx, "view:results", "view:child:results")
    if visible is not None:
        query = query.where(ExamResult.student_id.in_(visible))

    if student_id:
        query = query.where(ExamResult.student_id == student_id)
    if subject_id:
        query = query.where(ExamResult.subject_id == subject_id)
    if exam_name:
        query = query.where(ExamResult.exam_name == exam_name)

    return db.execute(query.order_by(ExamResult.created_at.desc())).scalars().all()
