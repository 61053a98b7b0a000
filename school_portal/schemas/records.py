# school_portal/schemas/records.py - Attendance and exam results
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List
from datetime import date, datetime
from uuid import UUID

from school_portal.models.academic import ATTENDANCE_STATUSES


# ---------------------------------------------------------------------------
# Attendance
# ---------------------------------------------------------------------------

class AttendanceEntry(BaseModel):
    student_id: UUID
    status: str

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ATTENDANCE_STATUSES:
            raise ValueError(f"status must be one of: {', '.join(ATTENDANCE_STATUSES)}")
        return v


class AttendanceMark(BaseModel):
    """A class register for one day; replaces what was marked before for that day"""
    class_id: UUID
    attendance_date: date
    records: List[AttendanceEntry] = Field(..., min_length=1)

    @model_validator(mode="after")
    def unique_students(self):
        ids = [r.student_id for r in self.records]
        if len(ids) != len(set(ids)):
            raise ValueError("each student can be marked once per day")
        return self

    class Config:
        json_schema_extra = {
            "example": {
                "class_id": "3fa85f64-5717-4562-b3fc-2c963f66afa6",
                "attendance_date": "2024-09-02",
                "records": [{"student_id": "9b1f0c6e-2f7d-4c55-8d0a-1a2b3c4d5e6f", "status": "present"}],
            }
        }


class AttendanceOut(BaseModel):
    id: UUID
    student_id: UUID
    class_id: Optional[UUID] = None
    attendance_date: date
    status: str
    marked_by: Optional[UUID] = None

    class Config:
        from_attributes = True


class AttendanceSummary(BaseModel):
    total: int
    present: int
    absent: int
    late: int
    percentage: float


class AttendanceListOut(BaseModel):
    records: List[AttendanceOut]
    summary: AttendanceSummary


# ---------------------------------------------------------------------------
# Exam results
# ---------------------------------------------------------------------------

class ResultEntry(BaseModel):
    student_id: UUID
    marks_obtained: float = Field(..., ge=0)


class ExamResultsEnter(BaseModel):
    """Marks of one exam in one subject; re-entering a student's marks replaces them"""
    exam_name: str = Field(..., min_length=1, max_length=128)
    subject_id: UUID
    max_marks: float = Field(..., gt=0)
    results: List[ResultEntry] = Field(..., min_length=1)

    @field_validator("exam_name")
    @classmethod
    def strip_exam_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("This field cannot be empty")
        return v.strip()

    @model_validator(mode="after")
    def check_marks(self):
        ids = [r.student_id for r in self.results]
        if len(ids) != len(set(ids)):
            raise ValueError("each student can appear once")
        for entry in self.results:
            if entry.marks_obtained > self.max_marks:
                raise ValueError(f"marks_obtained cannot exceed {self.max_marks}")
        return self


class ExamResultOut(BaseModel):
    id: UUID
    student_id: UUID
    subject_id: Optional[UUID] = None
    exam_name: Optional[str] = None
    marks_obtained: float
    max_marks: float
    created_at: datetime

    class Config:
        from_attributes = True
