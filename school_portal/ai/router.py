# school_portal/ai/router.py
"""
AI Router
Feature endpoints that gather tenant data and proxy to the AI gateway
"""

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from datetime import date
from typing import Dict, Any, Optional, List
from uuid import UUID
import logging

from school_portal.core.db import get_db
from school_portal.api.deps.auth import require_permission, require_roles
from school_portal.api.deps.tenancy import require_school
from school_portal.ai.gateway_client import AIGatewayClient, get_gateway_client
from school_portal.ai import (
    assignment_generator, attendance_analyzer, chatbot, homework_helper, insights, lesson_planner,
    report_writer, study_assistant,
)
from school_portal.ai.fee_predictions import predict_fee_collection
from school_portal.ai.performance import predict_performance
from school_portal.ai.teacher_performance import analyze_teacher
from school_portal.ai.timetable_generator import generate_timetable
from school_portal.models import Student
from school_portal.services.auth_service import AuthService
from school_portal.tenancy.permissions import ROLES
from school_portal.tenancy.scoped import get_by_tenant

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/ai", tags=["AI"])


# ============================================================================
# Request Models
# ============================================================================

class TimetableGenerateRequest(BaseModel):
    class_ids: List[UUID] = Field(..., min_length=1)
    preferences: Optional[Dict[str, Any]] = None


class PerformancePredictRequest(BaseModel):
    student_id: UUID


class TeacherPerformanceRequest(BaseModel):
    teacher_id: UUID
    period: str = Field(default="monthly", max_length=32)


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)
    conversation_id: Optional[UUID] = None


class StudyRequest(BaseModel):
    session_type: str
    input_content: str = Field(..., min_length=1, max_length=20000)
    subject_id: Optional[UUID] = None


class AssignmentGenerateRequest(BaseModel):
    topic: str = Field(..., min_length=1, max_length=255)
    assignment_type: str
    difficulty_level: str = "medium"
    question_count: Optional[int] = Field(None, ge=1, le=50)
    subject_id: Optional[UUID] = None
    class_id: Optional[UUID] = None


class LessonPlanRequest(BaseModel):
    topic: str = Field(..., min_length=1, max_length=255)
    grade_level: Optional[str] = Field(None, max_length=32)
    duration_minutes: int = Field(lesson_planner.DEFAULT_DURATION_MINUTES, ge=5, le=480)
    subject_id: Optional[UUID] = None
    class_id: Optional[UUID] = None


class AttendanceAnalyzeRequest(BaseModel):
    class_id: UUID
    date_from: Optional[date] = None
    date_to: Optional[date] = None


class ReportCommentRequest(BaseModel):
    student_id: UUID
    subject_id: Optional[UUID] = None
    exam_name: Optional[str] = Field(None, max_length=128)


class HomeworkRequest(BaseModel):
    help_type: str
    homework_content: str = Field(..., min_length=1, max_length=20000)
    subject_id: Optional[UUID] = None


class InsightRequest(BaseModel):
    insight_type: str = "all"


def _teacher(db: Session, ctx: Dict[str, Any]):
    teacher = AuthService(db).get_profile(ctx["user"], "teacher")
    if not teacher or teacher.school_id != ctx["school_id"]:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Teacher profile not found")
    return teacher


def _not_found(e: LookupError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


# ============================================================================
# Endpoints
# ============================================================================

@router.post("/timetable/generate", dependencies=[Depends(require_roles(["admin"]))])
async def generate_timetable_endpoint(
    request: TimetableGenerateRequest,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
    client: AIGatewayClient = Depends(get_gateway_client),
):
    """Generate a draft weekly timetable for the given classes"""
    try:
        return await generate_timetable(db, client, ctx["school_id"], request.class_ids, request.preferences)
    except LookupError as e:
        raise _not_found(e)


@router.post("/performance/predict")
async def predict_performance_endpoint(
    request: PerformancePredictRequest,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
    client: AIGatewayClient = Depends(get_gateway_client),
):
    """Predict a student's performance; admins, teachers and the student's parent only"""
    school_id = ctx["school_id"]
    role = ctx["role"]

    if role == "parent":
        parent = AuthService(db).get_profile(ctx["user"], role)
        student = get_by_tenant(db, Student, request.student_id, school_id)
        if not parent or not student or student.parent_id != parent.id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a parent of this student")
    elif role not in ("admin", "teacher"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Permission denied")

    try:
        return {"prediction": await predict_performance(db, client, school_id, request.student_id)}
    except LookupError as e:
        raise _not_found(e)


@router.post("/fees/predict", dependencies=[Depends(require_permission("manage:fees"))])
async def predict_fees_endpoint(
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
    client: AIGatewayClient = Depends(get_gateway_client),
):
    """Fee collection forecast with overdue analysis"""
    return {"prediction": await predict_fee_collection(db, client, ctx["school_id"])}


@router.post("/teachers/performance", dependencies=[Depends(require_permission("view:reports"))])
async def teacher_performance_endpoint(
    request: TeacherPerformanceRequest,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
    client: AIGatewayClient = Depends(get_gateway_client),
):
    try:
        report = await analyze_teacher(db, client, ctx["school_id"], request.teacher_id, request.period)
    except LookupError as e:
        raise _not_found(e)
    return {"analytics": report}


@router.post("/chat")
async def chat_endpoint(
    request: ChatRequest,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
    client: AIGatewayClient = Depends(get_gateway_client),
):
    """Role-aware assistant chat; pass conversation_id to continue a conversation"""
    if ctx["role"] not in ROLES:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User has no role")

    try:
        return await chatbot.chat(
            db, client, ctx["school_id"], ctx["user"], ctx["role"],
            request.message, request.conversation_id,
        )
    except LookupError as e:
        raise _not_found(e)


@router.post("/study", dependencies=[Depends(require_roles(["student"]))])
async def study_endpoint(
    request: StudyRequest,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
    client: AIGatewayClient = Depends(get_gateway_client),
):
    """Summary, quiz, flashcard, doubt or explanation help for the calling student"""
    if request.session_type not in study_assistant.SESSION_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"session_type must be one of: {', '.join(study_assistant.SESSION_TYPES)}"
        )

    student = AuthService(db).get_profile(ctx["user"], "student")
    if not student or student.school_id != ctx["school_id"]:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Student profile not found")

    try:
        return await study_assistant.run_session(
            db, client, ctx["school_id"], student,
            request.session_type, request.input_content, request.subject_id,
        )
    except LookupError as e:
        raise _not_found(e)


@router.post("/assignments/generate", dependencies=[Depends(require_roles(["teacher"]))])
async def generate_assignment_endpoint(
    request: AssignmentGenerateRequest,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
    client: AIGatewayClient = Depends(get_gateway_client),
):
    """Draft MCQ, short answer, descriptive, coding or full paper questions with an answer key"""
    if request.difficulty_level not in assignment_generator.DIFFICULTY_LEVELS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"difficulty_level must be one of: {', '.join(assignment_generator.DIFFICULTY_LEVELS)}"
        )
    teacher = _teacher(db, ctx)

    try:
        return await assignment_generator.generate_assignment(
            db, client, ctx["school_id"], teacher, request.topic, request.assignment_type,
            request.difficulty_level, request.question_count, request.subject_id, request.class_id,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LookupError as e:
        raise _not_found(e)


@router.post("/lessons/plan", dependencies=[Depends(require_roles(["teacher"]))])
async def plan_lesson_endpoint(
    request: LessonPlanRequest,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
    client: AIGatewayClient = Depends(get_gateway_client),
):
    teacher = _teacher(db, ctx)
    try:
        return await lesson_planner.plan_lesson(
            db, client, ctx["school_id"], teacher, request.topic, request.grade_level,
            request.duration_minutes, request.subject_id, request.class_id,
        )
    except LookupError as e:
        raise _not_found(e)


@router.post("/attendance/analyze", dependencies=[Depends(require_roles(["teacher"]))])
async def analyze_attendance_endpoint(
    request: AttendanceAnalyzeRequest,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
    client: AIGatewayClient = Depends(get_gateway_client),
):
    """Frequent absentees and dropout risk for a class the caller teaches; last 30 days by default"""
    teacher = _teacher(db, ctx)
    try:
        return await attendance_analyzer.analyze_attendance(
            db, client, ctx["school_id"], teacher, request.class_id, request.date_from, request.date_to,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except LookupError as e:
        raise _not_found(e)


@router.post("/reports/comment", dependencies=[Depends(require_roles(["teacher"]))])
async def report_comment_endpoint(
    request: ReportCommentRequest,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
    client: AIGatewayClient = Depends(get_gateway_client),
):
    """Report card comment for a student the caller teaches"""
    teacher = _teacher(db, ctx)
    try:
        return await report_writer.write_comment(
            db, client, ctx["school_id"], teacher, request.student_id, request.subject_id, request.exam_name,
        )
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except LookupError as e:
        raise _not_found(e)


@router.post("/homework", dependencies=[Depends(require_roles(["student"]))])
async def homework_endpoint(
    request: HomeworkRequest,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
    client: AIGatewayClient = Depends(get_gateway_client),
):
    """Mistake detection, hints, grammar, sample answers or a practice worksheet"""
    if request.help_type not in homework_helper.HELP_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"help_type must be one of: {', '.join(homework_helper.HELP_TYPES)}"
        )

    student = AuthService(db).get_profile(ctx["user"], "student")
    if not student or student.school_id != ctx["school_id"]:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Student profile not found")

    try:
        return await homework_helper.get_help(
            db, client, ctx["school_id"], student,
            request.help_type, request.homework_content, request.subject_id,
        )
    except LookupError as e:
        raise _not_found(e)


@router.post("/insights", dependencies=[Depends(require_permission("view:reports"))])
async def insights_endpoint(
    request: InsightRequest,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
    client: AIGatewayClient = Depends(get_gateway_client),
):
    """Attendance, academics and fee collection insights; they expire after a week"""
    try:
        return {"insight": await insights.generate_insights(
            db, client, ctx["school_id"], ctx["user"], request.insight_type,
        )}
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
