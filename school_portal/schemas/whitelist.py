# school_portal/schemas/whitelist.py - Pre-approved self-registration emails
from pydantic import BaseModel, EmailStr
from typing import Optional, List
from datetime import datetime
from uuid import UUID


class WhitelistedTeacherCreate(BaseModel):
    email: EmailStr
    full_name: Optional[str] = None
    department: Optional[str] = None
    subject_specialization: Optional[str] = None
    employee_id: Optional[str] = None
    phone: Optional[str] = None


class WhitelistedTeacherOut(WhitelistedTeacherCreate):
    id: UUID
    email: str
    created_at: datetime

    class Config:
        from_attributes = True


class WhitelistedParentCreate(BaseModel):
    email: EmailStr
    full_name: Optional[str] = None
    phone: Optional[str] = None
    relation: Optional[str] = None
    student_ids: List[UUID] = []


class WhitelistedParentOut(BaseModel):
    id: UUID
    email: str
    full_name: Optional[str] = None
    phone: Optional[str] = None
    relation: Optional[str] = None
    student_ids: List[UUID] = []
    created_at: datetime

    class Config:
        from_attributes = True
