# school_portal/ai/performance.py - Student performance prediction
from typing import Any, Dict, List, Tuple
from uuid import UUID
import logging

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from school_portal.ai.context import to_prompt_json
from school_portal.ai.gateway_client import AIGatewayClient
from school_portal.models import (
    Student, AttendanceRecord, ExamResult, Subject, Assignment, Submission, PerformancePrediction,
)
from school_portal.tenancy.scoped import get_by_tenant, insert_with_tenant

logger = logging.getLogger(__name__)

DEFAULT_MARKS_SCORE = 75.0
DEFAULT_ATTENDANCE_SCORE = 100.0
WEAK_SUBJECT_THRESHOLD = 60.0

SYSTEM_PROMPT = """You are an AI Performance Predictor that analyzes student performance data.
Based on the provided metrics, generate personalized recommendations and learning paths.
Focus on:
- Specific actionable advice
- Study strategies for weak subjects
- Time management tips
- Motivation and encouragement
- Realistic improvement goals

Be supportive and constructive."""


def risk_level_for(score: float) -> str:
    if score < 50:
        return "high"
    if score < 70:
        return "medium"
    return "low"


def _attendance_score(db: Session, student: Student) -> float:
    statuses = db.execute(
        select(AttendanceRecord.status).where(
            AttendanceRecord.school_id == student.school_id,
            AttendanceRecord.student_id == student.id,
        )
    ).scalars().all()
    if not statuses:
        return DEFAULT_ATTENDANCE_SCORE
    present = sum(1 for s in statuses if s == "present")
    return present / len(statuses) * 100


def _marks_by_subject(db: Session, student: Student) -> Tuple[float, List[Dict[str, Any]]]:
    """Mean of per-subject averages plus the weak subjects"""
    rows = db.execute(
        select(ExamResult.marks_obtained, ExamResult.max_marks, Subject.name)
        .outerjoin(Subject, Subject.id == ExamResult.subject_id)
        .where(ExamResult.school_id == student.school_id, ExamResult.student_id == student.id)
    ).all()
    if not rows:
        return DEFAULT_MARKS_SCORE, []

    per_subject: Dict[str, List[float]] = {}
    for marks, max_marks, name in rows:
        if not max_marks:
            continue
        per_subject.setdefault(name or "Unknown", []).append(marks / max_marks * 100)
    if not per_subject:
        return DEFAULT_MARKS_SCORE, []

    averages = {name: sum(values) / len(values) for name, values in per_subject.items()}
    weak = [
        {"subject": name, "average": round(avg, 2)}
        for name, avg in averages.items()
        if avg < WEAK_SUBJECT_THRESHOLD
    ]
    return sum(averages.values()) / len(averages), weak


def _assignment_score(db: Session, student: Student) -> float:
    if not student.class_id:
        return 0.0
    total = db.execute(
        select(func.count(Assignment.id)).where(
            Assignment.school_id == student.school_id,
            Assignment.class_id == student.class_id,
        )
    ).scalar_one()
    submitted = db.execute(
        select(func.count(Submission.id)).where(
            Submission.school_id == student.school_id,
            Submission.student_id == student.id,
        )
    ).scalar_one()
    return min(submitted, total or 1) / (total or 1) * 100


async def predict_performance(
    db: Session,
    client: AIGatewayClient,
    school_id: UUID,
    student_id: UUID,
) -> Dict[str, Any]:
    """
    Score a student and ask the gateway for recommendations.

    Overall score is the mean of attendance %, average marks % and
    assignment completion %. The prediction is stored.
    """
    student = get_by_tenant(db, Student, student_id, school_id)
    if not student:
        raise LookupError("Student not found")

    attendance_score = _attendance_score(db, student)
    marks_score, weak_subjects = _marks_by_subject(db, student)
    assignment_score = _assignment_score(db, student)
    overall = (attendance_score + marks_score + assignment_score) / 3
    risk_level = risk_level_for(overall)

    user_prompt = (
        "Analyze this student's performance:\n"
        f"- Attendance: {attendance_score:.1f}%\n"
        f"- Average Marks: {marks_score:.1f}%\n"
        f"- Assignment Completion: {assignment_score:.1f}%\n"
        f"- Risk Level: {risk_level}\n"
        f"- Weak Subjects: {to_prompt_json(weak_subjects)}\n\n"
        "Provide personalized recommendations and a learning path to improve performance."
    )
    recommendations = await client.chat(
        [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user_prompt},
        ],
        temperature=0.8,
    )

    factors = {
        "attendance_score": round(attendance_score, 2),
        "marks_score": round(marks_score, 2),
        "assignment_score": round(assignment_score, 2),
    }
    prediction = insert_with_tenant(db, PerformancePrediction, {
        "student_id": student.id,
        "predicted_score": round(overall, 2),
        "risk_level": risk_level,
        "weak_subjects": weak_subjects,
        "factors": factors,
        "recommendations": recommendations,
    }, school_id)
    db.commit()

    logger.info(f"Performance prediction for student {student.id}: {overall:.1f} ({risk_level})")
    return {
        "prediction_id": prediction.id,
        "student_id": student.id,
        **factors,
        "overall_score": round(overall, 2),
        "overall_risk_level": risk_level,
        "weak_subjects": weak_subjects,
        "recommendations": recommendations,
    }
