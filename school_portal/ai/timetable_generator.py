# school_portal/ai/timetable_generator.py - AI generated weekly timetables
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from school_portal.ai.context import rows_to_dicts, to_prompt_json
from school_portal.ai.gateway_client import AIGatewayClient, AIGatewayError, extract_json_array
from school_portal.models import Class, Subject, Teacher
from school_portal.services.timetable_conflicts import detect_generated_conflicts
from school_portal.tenancy.scoped import select_by_tenant

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an AI timetable generator. Create optimal school timetables avoiding teacher "
    "conflicts, ensuring breaks, and balancing subject distribution. Return a structured JSON "
    "array of timetable entries."
)

ENTRY_FIELDS = ("class_id", "subject_id", "teacher_id", "day_of_week", "start_time", "end_time", "period_name")


async def generate_timetable(
    db: Session,
    client: AIGatewayClient,
    school_id: UUID,
    class_ids: List[UUID],
    preferences: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Ask the gateway for a weekly timetable of the given classes.

    Returns:
        {"timetable": [...], "conflicts": [...], "summary": {"totalEntries", "conflictCount"}}
    """
    classes = db.execute(
        select_by_tenant(Class, school_id).where(Class.id.in_(class_ids))
    ).scalars().all()
    if not classes:
        raise LookupError("No matching classes found")

    subjects = db.execute(
        select_by_tenant(Subject, school_id).where(Subject.class_id.in_([c.id for c in classes]))
    ).scalars().all()
    teachers = db.execute(
        select(Teacher).where(Teacher.school_id == school_id, Teacher.status == "active")
    ).scalars().all()

    user_prompt = (
        "Generate a weekly timetable for these classes:\n"
        f"{to_prompt_json(rows_to_dicts(classes, ('id', 'name', 'section')))}\n\n"
        f"Subjects: {to_prompt_json(rows_to_dicts(subjects, ('id', 'name', 'class_id', 'teacher_id')))}\n"
        f"Teachers: {to_prompt_json(rows_to_dicts(teachers, ('id', 'full_name', 'subject_specialization')))}\n"
        f"Preferences: {to_prompt_json(preferences or {})}\n\n"
        f"Return JSON array with fields: {', '.join(ENTRY_FIELDS)}"
    )

    text = await client.chat([
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": user_prompt},
    ])

    try:
        parsed = extract_json_array(text)
    except ValueError as e:
        logger.error(f"Failed to parse AI timetable: {e}")
        raise AIGatewayError(502, "Failed to generate timetable structure")

    entries = [entry for entry in parsed if isinstance(entry, dict)]
    conflicts = detect_generated_conflicts(entries)

    logger.info(
        f"Generated {len(entries)} timetable entries for school {school_id} "
        f"with {len(conflicts)} conflict(s)"
    )
    return {
        "timetable": entries,
        "conflicts": conflicts,
        "summary": {
            "totalEntries": len(entries),
            "conflictCount": len(conflicts),
        },
    }
