# school_portal/ai/insights.py - School wide insights for administrators
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from school_portal.ai.context import to_prompt_json
from school_portal.ai.fee_predictions import summarize_fees
from school_portal.ai.gateway_client import AIGatewayClient, extract_json_object
from school_portal.models import AdminInsight, AttendanceRecord, Class, ExamResult, Fee, Subject, User
from school_portal.tenancy.scoped import select_by_tenant, insert_with_tenant

logger = logging.getLogger(__name__)

INSIGHT_TYPES = ("attendance", "academics", "fee_collection", "all")
ATTENDANCE_WINDOW_DAYS = 30
INSIGHT_TTL_DAYS = 7

SYSTEM_PROMPT = (
    "You are an AI assistant for school administration. Analyze data and provide predictions, "
    "risk alerts, and recommendations in JSON format."
)


def _rate(statuses: List[str]) -> float:
    return round(sum(1 for s in statuses if s == "present") / len(statuses) * 100, 1) if statuses else 0.0


def attendance_overview(db: Session, school_id: UUID, today: date) -> Dict[str, Any]:
    rows = db.execute(
        select(AttendanceRecord.status, Class.name, Class.section)
        .outerjoin(Class, Class.id == AttendanceRecord.class_id)
        .where(
            AttendanceRecord.school_id == school_id,
            AttendanceRecord.attendance_date >= today - timedelta(days=ATTENDANCE_WINDOW_DAYS),
        )
    ).all()
    by_class: Dict[str, List[str]] = {}
    for status, name, section in rows:
        label = f"{name} - {section}" if section else (name or "Unassigned")
        by_class.setdefault(label, []).append(status)
    return {
        "records": len(rows),
        "attendance_rate": _rate([r[0] for r in rows]),
        "by_class": {label: _rate(statuses) for label, statuses in sorted(by_class.items())},
    }


def academics_overview(db: Session, school_id: UUID) -> Dict[str, Any]:
    rows = db.execute(
        select(ExamResult.marks_obtained, ExamResult.max_marks, Subject.name)
        .outerjoin(Subject, Subject.id == ExamResult.subject_id)
        .where(ExamResult.school_id == school_id)
    ).all()
    by_subject: Dict[str, List[float]] = {}
    for marks, max_marks, name in rows:
        if max_marks:
            by_subject.setdefault(name or "Unknown", []).append(marks / max_marks * 100)
    averages = {name: round(sum(v) / len(v), 1) for name, v in sorted(by_subject.items())}
    everything = [p for values in by_subject.values() for p in values]
    return {
        "results": len(rows),
        "average_percentage": round(sum(everything) / len(everything), 1) if everything else 0.0,
        "by_subject": averages,
    }


def collect_insight_data(db: Session, school_id: UUID, insight_type: str, today: date) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    if insight_type in ("attendance", "all"):
        data["attendance"] = attendance_overview(db, school_id, today)
    if insight_type in ("academics", "all"):
        data["academics"] = academics_overview(db, school_id)
    if insight_type in ("fee_collection", "all"):
        fees = db.execute(select_by_tenant(Fee, school_id)).scalars().all()
        data["fee_collection"] = summarize_fees(fees, today)
    return data


async def generate_insights(
    db: Session,
    client: AIGatewayClient,
    school_id: UUID,
    user: User,
    insight_type: str = "all",
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Summarize attendance, academics and/or fee collection for the school and
    ask the gateway for predictions and recommendations. Insights expire
    after a week.
    """
    if insight_type not in INSIGHT_TYPES:
        raise ValueError(f"insight_type must be one of: {', '.join(INSIGHT_TYPES)}")

    data = collect_insight_data(db, school_id, insight_type, today or date.today())
    response = await client.chat([
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": (
            f"Analyze this school data for {insight_type} insights:\n{to_prompt_json(data)}\n\n"
            "Provide predictions, risk alerts, and actionable recommendations."
        )},
    ])

    parsed = extract_json_object(response) or {}
    predictions = parsed.get("predictions")
    recommendations = parsed.get("recommendations") or response

    insight = insert_with_tenant(db, AdminInsight, {
        "insight_type": insight_type,
        "insight_data": data,
        "predictions": predictions if isinstance(predictions, dict) else {},
        "recommendations": recommendations if isinstance(recommendations, str) else to_prompt_json(recommendations),
        "generated_by": user.id,
        "expires_at": datetime.utcnow() + timedelta(days=INSIGHT_TTL_DAYS),
    }, school_id)
    db.commit()

    logger.info(f"Admin insight {insight.id} ({insight_type}) generated by {user.email}")
    return {
        "insight_id": insight.id,
        "insight_type": insight_type,
        "insight_data": data,
        "predictions": insight.predictions,
        "recommendations": insight.recommendations,
        "expires_at": insight.expires_at,
    }
