# school_portal/ai/teacher_performance.py - Teacher performance analysis
from typing import Any, Dict, List, Tuple
from uuid import UUID
import logging
import re

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from school_portal.ai.gateway_client import AIGatewayClient
from school_portal.models import (
    Teacher, Subject, ExamResult, Assignment, Submission, AttendanceRecord, TeacherPerformanceReport,
)
from school_portal.tenancy.scoped import get_by_tenant, insert_with_tenant

logger = logging.getLogger(__name__)

# Submission rate assumes roughly this many students per class
STUDENTS_PER_CLASS = 30

SYSTEM_PROMPT = (
    "You are an AI analyzing teacher performance. Provide balanced feedback highlighting "
    "strengths and areas for improvement with specific actionable recommendations."
)

STRENGTHS_RE = re.compile(r"strengths?[:\s]+([^\n]+(?:\n- [^\n]+)*)", re.IGNORECASE)
IMPROVEMENTS_RE = re.compile(r"(?:areas for improvement|improvements?)[:\s]+([^\n]+(?:\n- [^\n]+)*)", re.IGNORECASE)


def _split_points(block: str) -> List[str]:
    return [line.strip().removeprefix("- ").strip() for line in block.split("\n") if line.strip()]


def parse_analysis(text: str) -> Tuple[List[str], List[str]]:
    """Pull strengths and improvement bullet lists out of free-form analysis"""
    strengths: List[str] = []
    improvements: List[str] = []
    match = STRENGTHS_RE.search(text or "")
    if match:
        strengths = _split_points(match.group(1))
    match = IMPROVEMENTS_RE.search(text or "")
    if match:
        improvements = _split_points(match.group(1))
    return strengths, improvements


def collect_metrics(db: Session, school_id: UUID, teacher: Teacher) -> Dict[str, Any]:
    subjects = db.execute(
        select(Subject).where(Subject.school_id == school_id, Subject.teacher_id == teacher.id)
    ).scalars().all()
    subject_ids = [s.id for s in subjects]
    class_ids = list({s.class_id for s in subjects if s.class_id})

    results = db.execute(
        select(ExamResult.marks_obtained, ExamResult.max_marks).where(
            ExamResult.school_id == school_id, ExamResult.subject_id.in_(subject_ids)
        )
    ).all() if subject_ids else []
    percentages = [m / mx * 100 for m, mx in results if mx]
    avg_marks = sum(percentages) / len(percentages) if percentages else 0.0

    assignment_count = db.execute(
        select(func.count(Assignment.id)).where(
            Assignment.school_id == school_id, Assignment.teacher_id == teacher.id
        )
    ).scalar_one()
    submission_count = db.execute(
        select(func.count(Submission.id))
        .join(Assignment, Assignment.id == Submission.assignment_id)
        .where(Submission.school_id == school_id, Assignment.teacher_id == teacher.id)
    ).scalar_one()
    expected = assignment_count * STUDENTS_PER_CLASS
    completion_rate = submission_count / expected * 100 if expected else 0.0

    statuses = db.execute(
        select(AttendanceRecord.status).where(
            AttendanceRecord.school_id == school_id,
            AttendanceRecord.class_id.in_(class_ids),
            AttendanceRecord.marked_by == teacher.id,
        )
    ).scalars().all() if class_ids else []
    attendance_rate = sum(1 for s in statuses if s == "present") / len(statuses) * 100 if statuses else 0.0

    return {
        "subject_count": len(subjects),
        "class_results_avg": round(avg_marks, 2),
        "assignment_completion_rate": round(completion_rate, 2),
        "attendance_rate": round(attendance_rate, 2),
    }


async def analyze_teacher(
    db: Session,
    client: AIGatewayClient,
    school_id: UUID,
    teacher_id: UUID,
    period: str = "monthly",
) -> Dict[str, Any]:
    teacher = get_by_tenant(db, Teacher, teacher_id, school_id)
    if not teacher:
        raise LookupError("Teacher not found")

    metrics = collect_metrics(db, school_id, teacher)
    user_prompt = (
        "Analyze teacher performance:\n"
        f"Teacher: {teacher.full_name}\n"
        f"Subjects: {metrics['subject_count']}\n"
        f"Avg Class Results: {metrics['class_results_avg']:.1f}%\n"
        f"Assignment Completion: {metrics['assignment_completion_rate']:.1f}%\n"
        f"Attendance Marked: {metrics['attendance_rate']:.1f}%\n\n"
        "Provide: 1) Strengths, 2) Areas for improvement, 3) Specific recommendations"
    )
    analysis = await client.chat([
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": user_prompt},
    ])
    strengths, improvements = parse_analysis(analysis)

    report = insert_with_tenant(db, TeacherPerformanceReport, {
        "teacher_id": teacher.id,
        "report_period": period,
        "metrics": metrics,
        "strengths": strengths,
        "improvements": improvements,
        "analysis": analysis,
    }, school_id)
    db.commit()

    logger.info(f"Performance report {report.id} created for teacher {teacher.id} ({period})")
    return {
        "report_id": report.id,
        "teacher_id": teacher.id,
        "period": period,
        **metrics,
        "strengths": strengths,
        "areas_for_improvement": improvements,
        "recommendations": analysis,
    }
