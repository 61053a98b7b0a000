# school_portal/api/routers/notifications.py - The caller's notifications
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from sqlalchemy import update
from typing import Dict, Any, List
from uuid import UUID
import logging

from school_portal.core.db import get_db
from school_portal.api.deps.auth import require_permission
from school_portal.api.deps.tenancy import require_school
from school_portal.models import SmartNotification
from school_portal.services.smart_notifications import generate_notifications
from school_portal.tenancy.scoped import select_by_tenant, get_by_tenant
from school_portal.schemas.notification import NotificationOut, NotificationGenerateOut

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=List[NotificationOut])
async def list_notifications(
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
    unread_only: bool = Query(False),
):
    """Notifications addressed to the current user, newest first"""
    query = select_by_tenant(SmartNotification, ctx["school_id"]).where(
        SmartNotification.user_id == ctx["user"].id
    )
    if unread_only:
        query = query.where(SmartNotification.is_read.is_(False))
    return db.execute(query.order_by(SmartNotification.created_at.desc())).scalars().all()


@router.patch("/{notification_id}/read", response_model=NotificationOut)
async def mark_read(
    notification_id: UUID,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    notification = get_by_tenant(db, SmartNotification, notification_id, ctx["school_id"])
    # someone else's notification is indistinguishable from a missing one
    if not notification or notification.user_id != ctx["user"].id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")

    notification.is_read = True
    db.commit()
    db.refresh(notification)
    return notification


@router.post("/read-all")
async def mark_all_read(
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    result = db.execute(
        update(SmartNotification)
        .where(
            SmartNotification.school_id == ctx["school_id"],
            SmartNotification.user_id == ctx["user"].id,
            SmartNotification.is_read.is_(False),
        )
        .values(is_read=True)
    )
    db.commit()
    return {"updated": result.rowcount}


@router.post(
    "/generate",
    response_model=NotificationGenerateOut,
    dependencies=[Depends(require_permission("broadcast:notify"))],
)
async def generate(
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    """Queue attendance, pending assignment and academic support alerts for students"""
    counts = generate_notifications(db, ctx["school_id"])
    logger.info(f"Notifications generated by {ctx['user'].email}: {counts['total']}")
    return counts
