# school_portal/ai/lesson_planner.py - Lesson plans for teachers
from typing import Any, Dict, Optional
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from school_portal.ai.gateway_client import AIGatewayClient, extract_json_object
from school_portal.models import Class, LessonPlan, Subject, Teacher
from school_portal.tenancy.scoped import get_by_tenant, insert_with_tenant

logger = logging.getLogger(__name__)

DEFAULT_DURATION_MINUTES = 60

SYSTEM_PROMPT = """You are an expert AI Lesson Plan Generator for teachers.
Create a comprehensive, well-structured lesson plan that includes:
1. Clear learning objectives and outcomes
2. Step-by-step teaching methodology
3. Engaging classroom activities with timing
4. Real-world examples and demonstrations
5. Assessment strategies
6. Required resources and materials
7. Differentiation strategies for different learners
8. Homework/follow-up activities

Format the response as structured JSON with these fields:
- learning_outcomes: array of specific outcomes
- teaching_steps: array of ordered teaching steps with timing
- activities: array of engaging activities
- examples: array of relevant examples
- assessment: assessment strategies
- resources: list of required materials
- differentiation: strategies for different learner levels
- homework: follow-up work"""

LIST_SECTIONS = ("teaching_steps", "activities", "learning_outcomes", "examples", "resources")


def _section(plan: Dict[str, Any], name: str) -> list:
    value = plan.get(name)
    return value if isinstance(value, list) else []


async def plan_lesson(
    db: Session,
    client: AIGatewayClient,
    school_id: UUID,
    teacher: Teacher,
    topic: str,
    grade_level: Optional[str] = None,
    duration_minutes: int = DEFAULT_DURATION_MINUTES,
    subject_id: Optional[UUID] = None,
    class_id: Optional[UUID] = None,
) -> Dict[str, Any]:
    subject = get_by_tenant(db, Subject, subject_id, school_id) if subject_id else None
    if subject_id and not subject:
        raise LookupError("Subject not found")
    class_obj = get_by_tenant(db, Class, class_id, school_id) if class_id else None
    if class_id and not class_obj:
        raise LookupError("Class not found")

    user_prompt = (
        "Create a detailed lesson plan for:\n"
        f"Topic: {topic}\n"
        f"Grade Level: {grade_level or (class_obj.display_name if class_obj else 'Not specified')}\n"
        f"Subject: {subject.name if subject else 'Not specified'}\n"
        f"Duration: {duration_minutes} minutes\n\n"
        "Make it practical, engaging, and aligned with educational best practices."
    )
    response = await client.chat(
        [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user_prompt},
        ],
        temperature=0.7,
    )
    content = extract_json_object(response) or {"content": response}

    plan = insert_with_tenant(db, LessonPlan, {
        "teacher_id": teacher.id,
        "subject_id": subject_id,
        "class_id": class_id,
        "topic": topic,
        "grade_level": grade_level,
        "duration_minutes": duration_minutes,
        "lesson_content": content,
        **{name: _section(content, name) for name in LIST_SECTIONS},
    }, school_id)
    db.commit()

    logger.info(f"Lesson plan {plan.id} on '{topic}' for teacher {teacher.id}")
    return {
        "lesson_plan_id": plan.id,
        "topic": topic,
        "grade_level": grade_level,
        "duration_minutes": duration_minutes,
        "lesson_content": content,
        **{name: getattr(plan, name) for name in LIST_SECTIONS},
    }
