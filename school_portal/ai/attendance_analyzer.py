# school_portal/ai/attendance_analyzer.py - Absence and dropout risk for a class
from datetime import date, timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from fastapi.encoders import jsonable_encoder
from sqlalchemy import select
from sqlalchemy.orm import Session

from school_portal.ai.context import to_prompt_json
from school_portal.ai.gateway_client import AIGatewayClient, extract_json_object
from school_portal.models import AttendanceAnalysis, AttendanceRecord, Class, Student, Subject, Teacher
from school_portal.tenancy.scoped import get_by_tenant, insert_with_tenant

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 30
FREQUENT_ABSENCE_BELOW = 75.0
DROPOUT_RISK_BELOW = 60.0

SYSTEM_PROMPT = """You are an AI Attendance Analyzer for teachers.
Analyze the attendance data and provide:
1. Identify students with attendance below 75% as frequently absent
2. Predict students at risk of dropping out (attendance < 60% or declining trend)
3. Provide specific, actionable recommendations for intervention
4. Generate insights about attendance patterns

Format response as JSON:
{
  "frequent_absentees": [{"student_id": "...", "name": "...", "percentage": 65, "concern_level": "high"}],
  "predicted_dropouts": [{"student_id": "...", "name": "...", "risk_level": "high", "reasons": ["..."]}],
  "recommendations": "Specific action items...",
  "insights": "Key patterns and observations..."
}"""


def teaches_class(db: Session, teacher: Teacher, class_obj: Class) -> bool:
    if class_obj.class_teacher_id == teacher.id:
        return True
    return db.execute(
        select(Subject.id).where(
            Subject.school_id == class_obj.school_id,
            Subject.class_id == class_obj.id,
            Subject.teacher_id == teacher.id,
        ).limit(1)
    ).first() is not None


def student_stats(db: Session, class_obj: Class, date_from: date, date_to: date) -> List[Dict[str, Any]]:
    """Per-student day counts and attendance percentage over the window"""
    rows = db.execute(
        select(AttendanceRecord.student_id, AttendanceRecord.status, Student.full_name)
        .join(Student, Student.id == AttendanceRecord.student_id)
        .where(
            AttendanceRecord.school_id == class_obj.school_id,
            AttendanceRecord.class_id == class_obj.id,
            AttendanceRecord.attendance_date >= date_from,
            AttendanceRecord.attendance_date <= date_to,
        )
    ).all()

    stats: Dict[UUID, Dict[str, Any]] = {}
    for student_id, status, full_name in rows:
        entry = stats.setdefault(student_id, {
            "student_id": student_id,
            "full_name": full_name,
            "total_days": 0,
            "present_days": 0,
            "absent_days": 0,
            "late_days": 0,
        })
        entry["total_days"] += 1
        entry[f"{status}_days"] += 1

    for entry in stats.values():
        entry["attendance_percentage"] = round(entry["present_days"] / entry["total_days"] * 100, 1)
    return sorted(stats.values(), key=lambda e: e["attendance_percentage"])


def to_list(value: Any) -> List[Any]:
    return jsonable_encoder(value) if isinstance(value, list) else []


def fallback_analysis(stats: List[Dict[str, Any]], text: str) -> Dict[str, Any]:
    """Threshold based lists when the reply is not JSON"""
    return {
        "frequent_absentees": [s for s in stats if s["attendance_percentage"] < FREQUENT_ABSENCE_BELOW],
        "predicted_dropouts": [s for s in stats if s["attendance_percentage"] < DROPOUT_RISK_BELOW],
        "recommendations": text,
        "insights": "See analysis above",
    }


async def analyze_attendance(
    db: Session,
    client: AIGatewayClient,
    school_id: UUID,
    teacher: Teacher,
    class_id: UUID,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Ask the gateway which students of a class are frequently absent or at
    risk of dropping out.

    Args:
        date_from: Window start; 30 days before date_to when omitted
        date_to: Window end; today when omitted

    Raises:
        LookupError: The class is not in this school
        PermissionError: The teacher neither teaches nor leads the class
        ValueError: The window ends before it starts
    """
    class_obj = get_by_tenant(db, Class, class_id, school_id)
    if not class_obj:
        raise LookupError("Class not found")
    if not teaches_class(db, teacher, class_obj):
        raise PermissionError("You do not teach this class")

    date_to = date_to or date.today()
    date_from = date_from or date_to - timedelta(days=DEFAULT_WINDOW_DAYS)
    if date_from > date_to:
        raise ValueError("date_from must not be after date_to")

    stats = student_stats(db, class_obj, date_from, date_to)
    response = await client.chat(
        [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": f"Analyze this attendance data:\n{to_prompt_json(stats)}"},
        ],
        temperature=0.7,
    )
    parsed = extract_json_object(response) or fallback_analysis(stats, response)

    analysis = insert_with_tenant(db, AttendanceAnalysis, {
        "teacher_id": teacher.id,
        "class_id": class_obj.id,
        "date_from": date_from,
        "date_to": date_to,
        "frequent_absentees": to_list(parsed.get("frequent_absentees")),
        "predicted_dropouts": to_list(parsed.get("predicted_dropouts")),
        "recommendations": str(parsed.get("recommendations") or ""),
        "insights": str(parsed.get("insights") or ""),
    }, school_id)
    db.commit()

    logger.info(f"Attendance analysis {analysis.id} for class {class_obj.id}: {len(stats)} student(s)")
    return {
        "analysis_id": analysis.id,
        "class_id": class_obj.id,
        "date_from": date_from,
        "date_to": date_to,
        "frequent_absentees": analysis.frequent_absentees,
        "predicted_dropouts": analysis.predicted_dropouts,
        "recommendations": analysis.recommendations,
        "insights": analysis.insights,
        "raw_stats": stats,
    }
