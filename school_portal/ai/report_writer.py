# school_portal/ai/report_writer.py - Report card comments
from datetime import date, timedelta
from typing import Any, Dict, Optional
from uuid import UUID
import logging

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from school_portal.ai.attendance_analyzer import teaches_class
from school_portal.ai.gateway_client import AIGatewayClient, extract_json_object
from school_portal.models import (
    AttendanceRecord, Class, ExamResult, ReportComment, Student, Subject, Submission, Teacher,
)
from school_portal.tenancy.scoped import get_by_tenant, insert_with_tenant

logger = logging.getLogger(__name__)

ATTENDANCE_WINDOW_DAYS = 30

SYSTEM_PROMPT = """You are an AI Report Card Comment Writer for teachers.
Generate a personalized, professional, and encouraging comment for a student's report card.

The comment should:
1. Be 3-4 sentences long, professional and warm
2. Acknowledge specific strengths and achievements
3. Provide constructive feedback on areas for improvement
4. Include attendance and behavior remarks if relevant
5. End with encouragement and next steps

Format as JSON:
{
  "comment_text": "Main report card comment (3-4 sentences)",
  "performance_summary": "Brief performance overview",
  "strengths": ["strength1", "strength2"],
  "areas_for_improvement": ["area1", "area2"],
  "attendance_remarks": "Comment on attendance",
  "behavior_remarks": "Comment on behavior and participation"
}"""


def _attendance_percentage(db: Session, student: Student, today: date) -> float:
    statuses = db.execute(
        select(AttendanceRecord.status).where(
            AttendanceRecord.school_id == student.school_id,
            AttendanceRecord.student_id == student.id,
            AttendanceRecord.attendance_date >= today - timedelta(days=ATTENDANCE_WINDOW_DAYS),
        )
    ).scalars().all()
    present = sum(1 for s in statuses if s == "present")
    return round(present / (len(statuses) or 1) * 100, 1)


def _marks_line(db: Session, student: Student, subject: Optional[Subject], exam_name: Optional[str]) -> str:
    query = select(ExamResult.marks_obtained, ExamResult.max_marks).where(
        ExamResult.school_id == student.school_id, ExamResult.student_id == student.id
    )
    if subject:
        query = query.where(ExamResult.subject_id == subject.id)
    if exam_name:
        query = query.where(ExamResult.exam_name == exam_name)
    rows = db.execute(query).all()
    if not rows:
        return "N/A"
    obtained = sum(m for m, _ in rows)
    possible = sum(mx for _, mx in rows)
    return f"{obtained:g}/{possible:g}"


def fallback_comment(text: str, attendance: float) -> Dict[str, Any]:
    return {
        "comment_text": text,
        "performance_summary": "See comment",
        "strengths": [],
        "areas_for_improvement": [],
        "attendance_remarks": f"Attendance: {attendance}%",
        "behavior_remarks": "Satisfactory",
    }


async def write_comment(
    db: Session,
    client: AIGatewayClient,
    school_id: UUID,
    teacher: Teacher,
    student_id: UUID,
    subject_id: Optional[UUID] = None,
    exam_name: Optional[str] = None,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    student = get_by_tenant(db, Student, student_id, school_id)
    if not student:
        raise LookupError("Student not found")
    subject = get_by_tenant(db, Subject, subject_id, school_id) if subject_id else None
    if subject_id and not subject:
        raise LookupError("Subject not found")

    class_obj = get_by_tenant(db, Class, student.class_id, school_id) if student.class_id else None
    if not class_obj or not teaches_class(db, teacher, class_obj):
        raise PermissionError("You do not teach this student")

    attendance = _attendance_percentage(db, student, today or date.today())
    submissions = db.execute(
        select(func.count(Submission.id)).where(
            Submission.school_id == school_id, Submission.student_id == student.id
        )
    ).scalar_one()

    user_prompt = (
        "Generate a report card comment for:\n"
        f"Student: {student.full_name}\n"
        f"Subject: {subject.name if subject else 'Overall'}\n"
        f"Exam: {exam_name or 'All exams'}\n"
        f"Marks: {_marks_line(db, student, subject, exam_name)}\n"
        f"Attendance: {attendance}%\n"
        f"Assignment Performance: {submissions} submissions\n\n"
        "Make it personal, constructive, and encouraging."
    )
    response = await client.chat(
        [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user_prompt},
        ],
        temperature=0.8,
    )
    parsed = extract_json_object(response)
    if not parsed or not parsed.get("comment_text"):
        parsed = fallback_comment(response, attendance)

    comment = insert_with_tenant(db, ReportComment, {
        "teacher_id": teacher.id,
        "student_id": student.id,
        "subject_id": subject_id,
        "exam_name": exam_name,
        "comment_text": str(parsed["comment_text"]),
        "performance_summary": parsed.get("performance_summary"),
        "strengths": parsed.get("strengths") or [],
        "areas_for_improvement": parsed.get("areas_for_improvement") or [],
        "attendance_remarks": parsed.get("attendance_remarks"),
        "behavior_remarks": parsed.get("behavior_remarks"),
    }, school_id)
    db.commit()

    logger.info(f"Report comment {comment.id} for student {student.id} by teacher {teacher.id}")
    return {
        "comment_id": comment.id,
        "student_id": student.id,
        "subject_id": subject_id,
        "exam_name": exam_name,
        "comment_text": comment.comment_text,
        "performance_summary": comment.performance_summary,
        "strengths": comment.strengths,
        "areas_for_improvement": comment.areas_for_improvement,
        "attendance_remarks": comment.attendance_remarks,
        "behavior_remarks": comment.behavior_remarks,
    }
