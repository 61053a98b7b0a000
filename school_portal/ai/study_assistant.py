# school_portal/ai/study_assistant.py - Study help sessions for students
from typing import Any, Dict, Optional
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from school_portal.ai.gateway_client import AIGatewayClient, extract_json_object
from school_portal.models import StudySession, Student, Subject
from school_portal.tenancy.scoped import get_by_tenant, insert_with_tenant

logger = logging.getLogger(__name__)

SESSION_PROMPTS = {
    "summary": (
        "You are an AI Study Assistant that helps students understand their study materials better.\n"
        "Provide clear, concise summaries of the provided content. Break down complex topics into "
        "simple explanations.\nFocus on key concepts and important points."
    ),
    "quiz": (
        "You are an AI Study Assistant that creates educational quizzes.\n"
        "Based on the provided content, generate 5-10 multiple-choice questions with 4 options each.\n"
        "Include the correct answer and a brief explanation for each question.\n"
        'Format the response as JSON: { "questions": [{ "question": "", "options": [], "correct": 0, "explanation": "" }] }'
    ),
    "flashcard": (
        "You are an AI Study Assistant that creates study flashcards.\n"
        "Based on the provided content, generate 5-10 flashcards with a term/concept on one side "
        "and explanation on the other.\n"
        'Format as JSON: { "flashcards": [{ "front": "", "back": "" }] }'
    ),
    "doubt": (
        "You are an AI Study Assistant that helps students understand difficult concepts.\n"
        "Provide step-by-step explanations without giving complete solutions to exam questions.\n"
        "Guide the student through the thinking process. Break down the problem into smaller steps.\n"
        "Ask clarifying questions if needed. Focus on helping them learn, not just giving answers."
    ),
    "explanation": (
        "You are an AI Study Assistant that explains complex topics in simple terms.\n"
        "Use analogies, examples, and clear language suitable for students.\n"
        "Break down difficult concepts into easy-to-understand explanations."
    ),
}
SESSION_TYPES = tuple(SESSION_PROMPTS)

# session types whose answer is requested as JSON
STRUCTURED_TYPES = ("quiz", "flashcard")


async def run_session(
    db: Session,
    client: AIGatewayClient,
    school_id: UUID,
    student: Student,
    session_type: str,
    input_content: str,
    subject_id: Optional[UUID] = None,
) -> Dict[str, Any]:
    if session_type not in SESSION_PROMPTS:
        raise ValueError(f"session_type must be one of: {', '.join(SESSION_TYPES)}")
    if subject_id and not get_by_tenant(db, Subject, subject_id, school_id):
        raise LookupError("Subject not found")

    response = await client.chat(
        [
            {"role": "system", "content": SESSION_PROMPTS[session_type]},
            {"role": "user", "content": input_content},
        ],
        temperature=0.7,
    )

    session = insert_with_tenant(db, StudySession, {
        "student_id": student.id,
        "subject_id": subject_id,
        "session_type": session_type,
        "input_content": input_content,
        "ai_response": response,
    }, school_id)
    db.commit()

    logger.info(f"Study session {session.id} ({session_type}) for student {student.id}")
    return {
        "session_id": session.id,
        "session_type": session_type,
        "response": response,
        "structured": extract_json_object(response) if session_type in STRUCTURED_TYPES else None,
    }
