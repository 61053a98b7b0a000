# school_portal/schemas/assignment.py
from pydantic import BaseModel, Field, model_validator
from typing import Optional
from datetime import date, datetime
from uuid import UUID


class AssignmentCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    class_id: UUID
    subject_id: Optional[UUID] = None
    due_date: Optional[date] = None
    max_marks: float = Field(default=100, gt=0)


class AssignmentOut(BaseModel):
    id: UUID
    title: str
    description: Optional[str] = None
    class_id: UUID
    subject_id: Optional[UUID] = None
    teacher_id: Optional[UUID] = None
    due_date: Optional[date] = None
    max_marks: float
    created_at: datetime

    class Config:
        from_attributes = True


class SubmissionCreate(BaseModel):
    content: Optional[str] = None
    attachment_url: Optional[str] = Field(default=None, max_length=512)

    @model_validator(mode="after")
    def require_content(self):
        if not (self.content and self.content.strip()) and not self.attachment_url:
            raise ValueError("Provide content or an attachment_url")
        return self


class SubmissionGrade(BaseModel):
    marks_obtained: float = Field(..., ge=0)
    feedback: Optional[str] = None


class SubmissionOut(BaseModel):
    id: UUID
    assignment_id: UUID
    student_id: UUID
    content: Optional[str] = None
    attachment_url: Optional[str] = None
    submitted_at: datetime
    marks_obtained: Optional[float] = None
    feedback: Optional[str] = None
    status: str

    class Config:
        from_attributes = True
