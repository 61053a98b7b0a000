# school_portal/ai/assignment_generator.py - Question sets drafted for teachers
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID
import json
import logging

from sqlalchemy.orm import Session

from school_portal.ai.gateway_client import AIGatewayClient, clean_json_response
from school_portal.models import AIGeneratedAssignment, Class, Subject, Teacher
from school_portal.tenancy.scoped import get_by_tenant, insert_with_tenant

logger = logging.getLogger(__name__)

ASSIGNMENT_PROMPTS = {
    "mcq": (
        "You are an AI Assignment Generator. Create {count} multiple choice questions on the topic.\n"
        "Each question must have 4 options (A, B, C, D) and indicate the correct answer.\n"
        'Format as JSON array: [{{ "question": "...", "options": ["A) ...", "B) ...", "C) ...", "D) ..."], '
        '"correct": "A", "explanation": "..." }}]'
    ),
    "short_answer": (
        "Create {count} short answer questions requiring 2-3 sentence responses.\n"
        "Include model answers and marking rubrics.\n"
        'Format as JSON array: [{{ "question": "...", "model_answer": "...", "marks": 2, "rubric": "..." }}]'
    ),
    "descriptive": (
        "Create {count} descriptive/essay questions requiring detailed analysis.\n"
        "Include comprehensive model answers and evaluation criteria.\n"
        'Format as JSON array: [{{ "question": "...", "model_answer": "...", "marks": 10, '
        '"evaluation_criteria": [...] }}]'
    ),
    "coding": (
        "Create {count} programming/coding questions with test cases.\n"
        "Include problem description, sample input/output, and solution code.\n"
        'Format as JSON array: [{{ "problem": "...", "input": "...", "output": "...", "test_cases": [...], '
        '"solution": "...", "marks": 5 }}]'
    ),
    "full_paper": (
        "Create a complete question paper with mixed question types:\n"
        "- 10 MCQs (1 mark each)\n"
        "- 5 Short answers (2 marks each)\n"
        "- 3 Long answers (5 marks each)\n"
        "Total: 35 marks. Include detailed answer key and marking scheme.\n"
        'Format as JSON: {{ "questions": [...], "answer_key": {{...}} }}'
    ),
}
ASSIGNMENT_TYPES = tuple(ASSIGNMENT_PROMPTS)
DIFFICULTY_LEVELS = ("easy", "medium", "hard")

DEFAULT_QUESTION_COUNTS = {"mcq": 10, "short_answer": 5, "descriptive": 3, "coding": 5}


def build_prompt(assignment_type: str, difficulty: str, question_count: Optional[int]) -> str:
    count = question_count or DEFAULT_QUESTION_COUNTS.get(assignment_type, 10)
    return (
        ASSIGNMENT_PROMPTS[assignment_type].format(count=count)
        + f"\nDifficulty level: {difficulty}\n"
        "Ensure questions test understanding, not just memorization."
    )


def parse_questions(text: str) -> Tuple[List[Any], Dict[str, Any]]:
    """
    Split the generated paper into questions and an answer key.

    A bare array is its own answer key. Text that is not JSON is kept
    as a single free-form question.
    """
    try:
        parsed = json.loads(clean_json_response(text or ""))
    except json.JSONDecodeError:
        return [{"content": text}], {"note": "See generated content for answers"}

    if isinstance(parsed, list):
        return parsed, {"answers": parsed}
    if isinstance(parsed, dict):
        questions = parsed.get("questions")
        answer_key = parsed.get("answer_key")
        return (
            questions if isinstance(questions, list) else [parsed],
            answer_key if isinstance(answer_key, dict) else {"answers": answer_key or parsed},
        )
    return [{"content": text}], {"note": "See generated content for answers"}


def total_marks(questions: List[Any]) -> float:
    return float(sum((q.get("marks") or 1) if isinstance(q, dict) else 1 for q in questions))


async def generate_assignment(
    db: Session,
    client: AIGatewayClient,
    school_id: UUID,
    teacher: Teacher,
    topic: str,
    assignment_type: str,
    difficulty: str = "medium",
    question_count: Optional[int] = None,
    subject_id: Optional[UUID] = None,
    class_id: Optional[UUID] = None,
) -> Dict[str, Any]:
    if assignment_type not in ASSIGNMENT_PROMPTS:
        raise ValueError(f"assignment_type must be one of: {', '.join(ASSIGNMENT_TYPES)}")
    if subject_id and not get_by_tenant(db, Subject, subject_id, school_id):
        raise LookupError("Subject not found")
    if class_id and not get_by_tenant(db, Class, class_id, school_id):
        raise LookupError("Class not found")

    response = await client.chat(
        [
            {"role": "system", "content": build_prompt(assignment_type, difficulty, question_count)},
            {"role": "user", "content": f"Topic: {topic}"},
        ],
        temperature=0.8,
    )
    questions, answer_key = parse_questions(response)

    assignment = insert_with_tenant(db, AIGeneratedAssignment, {
        "teacher_id": teacher.id,
        "subject_id": subject_id,
        "class_id": class_id,
        "assignment_type": assignment_type,
        "topic": topic,
        "difficulty_level": difficulty,
        "questions": questions,
        "answer_key": answer_key,
        "max_marks": total_marks(questions),
        "auto_gradable": assignment_type == "mcq",
    }, school_id)
    db.commit()

    logger.info(f"Generated {assignment_type} assignment {assignment.id} ({len(questions)} questions) for teacher {teacher.id}")
    return {
        "assignment_id": assignment.id,
        "assignment_type": assignment_type,
        "topic": topic,
        "difficulty_level": difficulty,
        "questions": questions,
        "answer_key": answer_key,
        "max_marks": assignment.max_marks,
        "auto_gradable": assignment.auto_gradable,
    }
