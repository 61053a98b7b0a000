# school_portal/api/routers/fees.py
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from sqlalchemy import select
from datetime import datetime
from decimal import Decimal
from typing import Dict, Any, Optional
from uuid import UUID
import logging

from school_portal.core.db import get_db
from school_portal.api.deps.auth import require_permission
from school_portal.api.deps.tenancy import require_school
from school_portal.models import Fee, FeeStatus, Student
from school_portal.services.auth_service import AuthService
from school_portal.tenancy.scoped import select_by_tenant, get_by_tenant, insert_with_tenant
from school_portal.schemas.fee import FeeCreate, FeeOut, FeeListOut

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=FeeListOut)
async def list_fees(
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
    student_id: Optional[UUID] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
):
    """
    List fees with totals.

    Admins see the whole school, students only their own fees and parents
    the fees of their children.
    """
    school_id = ctx["school_id"]
    role = ctx["role"]
    query = select_by_tenant(Fee, school_id)

    if role in ("student", "parent"):
        profile = AuthService(db).get_profile(ctx["user"], role)
        if not profile:
            return FeeListOut(fees=[], total=0, total_amount=Decimal("0"), pending_amount=Decimal("0"))
        if role == "student":
            query = query.where(Fee.student_id == profile.id)
        else:
            children = select(Student.id).where(Student.school_id == school_id, Student.parent_id == profile.id)
            query = query.where(Fee.student_id.in_(children))
    elif role != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Permission denied: view:fees")

    if student_id:
        query = query.where(Fee.student_id == student_id)
    if status_filter:
        query = query.where(Fee.status == status_filter.lower())

    fees = db.execute(query.order_by(Fee.due_date)).scalars().all()
    total_amount = sum((Decimal(f.amount) for f in fees), Decimal("0"))
    pending_amount = sum((Decimal(f.amount) for f in fees if f.status != FeeStatus.PAID), Decimal("0"))

    return FeeListOut(fees=fees, total=len(fees), total_amount=total_amount, pending_amount=pending_amount)


@router.post(
    "",
    response_model=FeeOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission("manage:fees"))],
)
async def create_fee(
    fee_data: FeeCreate,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    school_id = ctx["school_id"]
    if not get_by_tenant(db, Student, fee_data.student_id, school_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")

    payload = fee_data.model_dump()
    if payload["status"] == FeeStatus.PAID:
        payload["paid_at"] = datetime.utcnow()

    try:
        fee = insert_with_tenant(db, Fee, payload, school_id)
        db.commit()
        db.refresh(fee)
    except Exception as e:
        db.rollback()
        logger.error(f"Error creating fee: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error creating fee"
        )

    logger.info(f"Fee created: {fee.fee_type} {fee.amount} for student {fee.student_id}")
    return fee


@router.post(
    "/{fee_id}/pay",
    response_model=FeeOut,
    dependencies=[Depends(require_permission("manage:fees"))],
)
async def mark_fee_paid(
    fee_id: UUID,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    fee = get_by_tenant(db, Fee, fee_id, ctx["school_id"])
    if not fee:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Fee not found")
    if fee.status == FeeStatus.PAID:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Fee is already paid")

    fee.status = FeeStatus.PAID
    fee.paid_at = datetime.utcnow()
    db.commit()
    db.refresh(fee)
    logger.info(f"Fee {fee.id} marked paid by {ctx['user'].email}")
    return fee
