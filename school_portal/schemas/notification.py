# school_portal/schemas/notification.py
from pydantic import BaseModel
from typing import Any, Dict
from datetime import datetime
from uuid import UUID


class NotificationOut(BaseModel):
    id: UUID
    notification_type: str
    title: str
    message: str
    priority: str
    extra: Dict[str, Any] = {}
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationGenerateOut(BaseModel):
    low_attendance: int
    pending_assignments: int
    academic_support: int
    total: int
