# school_portal/ai/homework_helper.py - Homework feedback for students
from typing import Any, Dict, Optional
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from school_portal.ai.gateway_client import AIGatewayClient, extract_json_object
from school_portal.models import HomeworkHelp, Student, Subject
from school_portal.tenancy.scoped import get_by_tenant, insert_with_tenant

logger = logging.getLogger(__name__)

HELP_PROMPTS = {
    "mistake_detection": (
        "You are an AI Homework Helper that identifies mistakes in student work.\n"
        "Carefully review the provided homework content and identify errors in:\n"
        "- Calculations and mathematical mistakes\n"
        "- Logical errors in reasoning\n"
        "- Factual inaccuracies\n"
        "- Format and structure issues\n"
        "Provide specific feedback on each mistake with the correct approach.\n"
        "Do not provide complete solutions, only point out errors and guide toward correct methods."
    ),
    "hint": (
        "You are an AI Homework Helper that provides helpful hints.\n"
        "Give subtle hints that guide students toward the solution without revealing the complete answer.\n"
        "Ask leading questions, suggest approaches, or provide relevant examples.\n"
        "Help them think through the problem step by step."
    ),
    "grammar": (
        "You are an AI Homework Helper specialized in grammar and language corrections.\n"
        "Review the provided text for grammar errors, spelling mistakes, punctuation errors, "
        "sentence structure issues and word choice improvements.\n"
        "Provide specific corrections with explanations."
    ),
    "sample_answer": (
        "You are an AI Homework Helper that provides sample answers.\n"
        "Create a well-structured sample answer for the given homework question.\n"
        "Explain the reasoning and approach used. This should serve as a learning example.\n"
        "Include step-by-step breakdown of the solution process."
    ),
    "worksheet": (
        "You are an AI Homework Helper that generates practice worksheets.\n"
        "Based on the provided topic or question, create 5-10 similar practice problems.\n"
        "Include varying difficulty levels (easy, medium, hard).\n"
        'Format as JSON: { "problems": [{ "question": "", "difficulty": "", "hints": [] }] }'
    ),
}
HELP_TYPES = tuple(HELP_PROMPTS)


async def get_help(
    db: Session,
    client: AIGatewayClient,
    school_id: UUID,
    student: Student,
    help_type: str,
    homework_content: str,
    subject_id: Optional[UUID] = None,
) -> Dict[str, Any]:
    if help_type not in HELP_PROMPTS:
        raise ValueError(f"help_type must be one of: {', '.join(HELP_TYPES)}")
    if subject_id and not get_by_tenant(db, Subject, subject_id, school_id):
        raise LookupError("Subject not found")

    feedback = await client.chat(
        [
            {"role": "system", "content": HELP_PROMPTS[help_type]},
            {"role": "user", "content": homework_content},
        ],
        temperature=0.7,
    )

    help_row = insert_with_tenant(db, HomeworkHelp, {
        "student_id": student.id,
        "subject_id": subject_id,
        "help_type": help_type,
        "homework_content": homework_content,
        "ai_feedback": feedback,
    }, school_id)
    db.commit()

    logger.info(f"Homework help {help_row.id} ({help_type}) for student {student.id}")
    return {
        "help_id": help_row.id,
        "help_type": help_type,
        "feedback": feedback,
        "worksheet": extract_json_object(feedback) if help_type == "worksheet" else None,
    }
