# school_portal/api/routers/assignments.py - Assignments, submissions and grading
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from datetime import datetime
from typing import Dict, Any, List, Optional
from uuid import UUID
import logging

from school_portal.core.db import get_db
from school_portal.api.deps.auth import require_permission
from school_portal.api.deps.tenancy import require_school
from school_portal.models import Assignment, Submission, Class, Subject, Student
from school_portal.services.auth_service import AuthService
from school_portal.tenancy.scoped import select_by_tenant, get_by_tenant, insert_with_tenant
from school_portal.schemas.assignment import (
    AssignmentCreate,
    AssignmentOut,
    SubmissionCreate,
    SubmissionGrade,
    SubmissionOut,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def _profile(db: Session, ctx: Dict[str, Any]):
    return AuthService(db).get_profile(ctx["user"], ctx["role"])


def _get_assignment(db: Session, assignment_id: UUID, school_id: UUID) -> Assignment:
    assignment = get_by_tenant(db, Assignment, assignment_id, school_id)
    if not assignment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assignment not found")
    return assignment


def _check_owner(db: Session, ctx: Dict[str, Any], assignment: Assignment):
    """Teachers only handle submissions of their own assignments"""
    if ctx["role"] != "teacher":
        return
    teacher = _profile(db, ctx)
    if not teacher or assignment.teacher_id != teacher.id:
        logger.warning(f"Teacher {ctx['user'].email} denied on assignment {assignment.id}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not your assignment")


@router.get("", response_model=List[AssignmentOut])
async def list_assignments(
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
    class_id: Optional[UUID] = Query(None),
):
    """
    List assignments visible to the caller.

    Students see their class, parents their children's classes, teachers
    their own assignments and admins everything.
    """
    school_id = ctx["school_id"]
    role = ctx["role"]
    query = select_by_tenant(Assignment, school_id)

    if role == "student":
        student = _profile(db, ctx)
        if not student or not student.class_id:
            return []
        query = query.where(Assignment.class_id == student.class_id)
    elif role == "parent":
        parent = _profile(db, ctx)
        if not parent:
            return []
        child_classes = select(Student.class_id).where(
            Student.school_id == school_id, Student.parent_id == parent.id
        )
        query = query.where(Assignment.class_id.in_(child_classes))
    elif role == "teacher":
        teacher = _profile(db, ctx)
        if not teacher:
            return []
        query = query.where(Assignment.teacher_id == teacher.id)
    elif role != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Permission denied")

    if class_id:
        query = query.where(Assignment.class_id == class_id)

    return db.execute(query.order_by(Assignment.created_at.desc())).scalars().all()


@router.post(
    "",
    response_model=AssignmentOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission("create:assignments"))],
)
async def create_assignment(
    assignment_data: AssignmentCreate,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    school_id = ctx["school_id"]
    if not get_by_tenant(db, Class, assignment_data.class_id, school_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Class not found")
    if assignment_data.subject_id and not get_by_tenant(db, Subject, assignment_data.subject_id, school_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subject not found")

    payload = assignment_data.model_dump()
    if ctx["role"] == "teacher":
        teacher = _profile(db, ctx)
        if not teacher:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Teacher profile not found")
        payload["teacher_id"] = teacher.id

    assignment = insert_with_tenant(db, Assignment, payload, school_id)
    db.commit()
    db.refresh(assignment)
    logger.info(f"Assignment created: {assignment.title} by {ctx['user'].email}")
    return assignment


@router.get("/{assignment_id}", response_model=AssignmentOut)
async def get_assignment(
    assignment_id: UUID,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    return _get_assignment(db, assignment_id, ctx["school_id"])


@router.post(
    "/{assignment_id}/submissions",
    response_model=SubmissionOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission("submit:assignments"))],
)
async def submit_assignment(
    assignment_id: UUID,
    submission_data: SubmissionCreate,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    """Submit work for an assignment; one submission per student"""
    school_id = ctx["school_id"]
    assignment = _get_assignment(db, assignment_id, school_id)

    student = _profile(db, ctx)
    if not student:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Student profile not found")
    if student.class_id != assignment.class_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Assignment is not for your class")

    existing = db.execute(
        select(Submission.id).where(
            Submission.assignment_id == assignment.id, Submission.student_id == student.id
        )
    ).first()
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Assignment already submitted")

    try:
        submission = insert_with_tenant(db, Submission, {
            "assignment_id": assignment.id,
            "student_id": student.id,
            "content": submission_data.content,
            "attachment_url": submission_data.attachment_url,
            "submitted_at": datetime.utcnow(),
        }, school_id)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Assignment already submitted")

    db.refresh(submission)
    logger.info(f"Submission {submission.id} for assignment {assignment.id} by {ctx['user'].email}")
    return submission


@router.get(
    "/{assignment_id}/submissions",
    response_model=List[SubmissionOut],
    dependencies=[Depends(require_permission("grade:submissions"))],
)
async def list_submissions(
    assignment_id: UUID,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    school_id = ctx["school_id"]
    assignment = _get_assignment(db, assignment_id, school_id)
    _check_owner(db, ctx, assignment)
    return db.execute(
        select_by_tenant(Submission, school_id)
        .where(Submission.assignment_id == assignment.id)
        .order_by(Submission.submitted_at)
    ).scalars().all()


@router.patch(
    "/submissions/{submission_id}/grade",
    response_model=SubmissionOut,
    dependencies=[Depends(require_permission("grade:submissions"))],
)
async def grade_submission(
    submission_id: UUID,
    grade: SubmissionGrade,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    school_id = ctx["school_id"]
    submission = get_by_tenant(db, Submission, submission_id, school_id)
    if not submission:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Submission not found")

    assignment = _get_assignment(db, submission.assignment_id, school_id)
    _check_owner(db, ctx, assignment)
    if grade.marks_obtained > assignment.max_marks:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"marks_obtained cannot exceed {assignment.max_marks}"
        )

    submission.marks_obtained = grade.marks_obtained
    submission.feedback = grade.feedback
    submission.status = "graded"
    db.commit()
    db.refresh(submission)
    return submission
