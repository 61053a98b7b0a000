# school_portal/ai/fee_predictions.py - Fee collection forecast and overdue reminders
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from school_portal.ai.context import to_prompt_json
from school_portal.ai.gateway_client import AIGatewayClient
from school_portal.models import Fee, FeeStatus, FeePrediction, SmartNotification, Student
from school_portal.tenancy.scoped import select_by_tenant, insert_with_tenant

logger = logging.getLogger(__name__)

HIGH_OVERDUE_RATIO = 0.3
REMINDER_GRACE_DAYS = 7
MAX_REMINDERS = 10

SYSTEM_PROMPT = (
    "You are an AI financial analyst for schools. Analyze fee data and provide predictions, "
    "identify patterns, and recommend collection strategies."
)


def is_overdue(fee: Fee, today: date) -> bool:
    if fee.status == FeeStatus.OVERDUE:
        return True
    return fee.status == FeeStatus.PENDING and fee.due_date < today


def fee_risk_level(overdue_count: int) -> str:
    if overdue_count > 10:
        return "high"
    if overdue_count > 5:
        return "medium"
    return "low"


def summarize_fees(fees: List[Fee], today: date) -> Dict[str, Any]:
    """Totals, overdue count, risk level and unusual activity for a list of fees"""
    total_expected = sum((Decimal(f.amount) for f in fees), Decimal("0"))
    total_collected = sum((Decimal(f.amount) for f in fees if f.status == FeeStatus.PAID), Decimal("0"))
    overdue_count = sum(1 for f in fees if is_overdue(f, today))

    unusual_activity = []
    if overdue_count > len(fees) * HIGH_OVERDUE_RATIO:
        unusual_activity.append({
            "type": "high_overdue_rate",
            "count": overdue_count,
            "percentage": round(overdue_count / (len(fees) or 1) * 100, 1),
        })

    collection_rate = float(total_collected / total_expected * 100) if total_expected else 0.0
    return {
        "total_expected": float(total_expected),
        "total_collected": float(total_collected),
        "total_pending": float(total_expected - total_collected),
        "overdue_count": overdue_count,
        "collection_rate": round(collection_rate, 1),
        "risk_level": fee_risk_level(overdue_count),
        "unusual_activity": unusual_activity,
    }


def _create_reminders(db: Session, school_id: UUID, fees: List[Fee], today: date) -> int:
    cutoff = today - timedelta(days=REMINDER_GRACE_DAYS)
    late = [f for f in fees if f.status != FeeStatus.PAID and f.due_date < cutoff][:MAX_REMINDERS]
    if not late:
        return 0

    recipients = dict(db.execute(
        select(Student.id, Student.auth_user_id).where(
            Student.school_id == school_id, Student.id.in_([f.student_id for f in late])
        )
    ).all())
    for fee in late:
        insert_with_tenant(db, SmartNotification, {
            "user_id": recipients.get(fee.student_id),
            "notification_type": "fee_reminder",
            "title": "Fee Payment Reminder",
            "message": f"Your {fee.fee_type} fee of {fee.amount} is overdue. Please make payment at the earliest.",
            "priority": "high",
            "extra": {"fee_id": str(fee.id), "student_id": str(fee.student_id)},
        }, school_id)
    return len(late)


async def predict_fee_collection(
    db: Session,
    client: AIGatewayClient,
    school_id: UUID,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Summarize school fees, ask the gateway for a forecast, store the
    prediction and queue reminders for fees overdue by more than a week.
    """
    today = today or date.today()
    fees = db.execute(select_by_tenant(Fee, school_id)).scalars().all()
    summary = summarize_fees(fees, today)

    fee_records = [
        {"student_id": f.student_id, "fee_type": f.fee_type, "amount": f.amount,
         "due_date": f.due_date, "status": f.status}
        for f in fees
    ]
    user_prompt = (
        "Analyze this fee data:\n"
        f"Total Expected: {summary['total_expected']}\n"
        f"Total Collected: {summary['total_collected']}\n"
        f"Total Pending: {summary['total_pending']}\n"
        f"Overdue Count: {summary['overdue_count']}\n"
        f"Fee Records: {to_prompt_json(fee_records)}\n\n"
        "Provide: 1) Collection forecast for next 3 months, 2) Risk assessment, 3) Recommended actions"
    )
    recommendations = await client.chat([
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": user_prompt},
    ])

    prediction = insert_with_tenant(db, FeePrediction, {**summary, "recommendations": recommendations}, school_id)
    reminders = _create_reminders(db, school_id, fees, today)
    db.commit()

    logger.info(
        f"Fee prediction for school {school_id}: {summary['overdue_count']} overdue, "
        f"risk {summary['risk_level']}, {reminders} reminder(s) queued"
    )
    return {
        "prediction_id": prediction.id,
        **summary,
        "recommendations": recommendations,
        "reminders_created": reminders,
    }
