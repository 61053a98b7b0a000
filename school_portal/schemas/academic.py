# school_portal/schemas/academic.py - Classes, subjects and timetable entries
import re
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime
from uuid import UUID

DAYS_OF_WEEK = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def normalize_time(value: str) -> str:
    """Accept HH:MM or HH:MM:SS and store HH:MM"""
    value = value.strip()
    if len(value) == 8 and value[5] == ":":
        value = value[:5]
    if not TIME_PATTERN.match(value):
        raise ValueError("time must be HH:MM")
    return value


def _required_text(value: Optional[str]) -> str:
    if value is None or not value.strip():
        raise ValueError("This field cannot be empty")
    return value.strip()


# ---------------------------------------------------------------------------
# Classes
# ---------------------------------------------------------------------------

class ClassCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=64)
    section: Optional[str] = None
    academic_year: Optional[str] = None
    class_teacher_id: Optional[UUID] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return _required_text(v)

    @field_validator("section")
    @classmethod
    def normalize_section(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v else v


class ClassUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=64)
    section: Optional[str] = None
    academic_year: Optional[str] = None
    class_teacher_id: Optional[UUID] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> str:
        return _required_text(v)

    @field_validator("section")
    @classmethod
    def normalize_section(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v else v


class ClassOut(BaseModel):
    id: UUID
    school_id: UUID
    name: str
    section: Optional[str] = None
    academic_year: Optional[str] = None
    class_teacher_id: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ---------------------------------------------------------------------------
# Subjects
# ---------------------------------------------------------------------------

class SubjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    code: Optional[str] = None
    class_id: Optional[UUID] = None
    teacher_id: Optional[UUID] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return _required_text(v)


class SubjectUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=128)
    code: Optional[str] = None
    class_id: Optional[UUID] = None
    teacher_id: Optional[UUID] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> str:
        # explicit null would clear a NOT NULL column
        return _required_text(v)


class SubjectOut(BaseModel):
    id: UUID
    school_id: UUID
    name: str
    code: Optional[str] = None
    class_id: Optional[UUID] = None
    teacher_id: Optional[UUID] = None

    class Config:
        from_attributes = True


# ---------------------------------------------------------------------------
# Timetable
# ---------------------------------------------------------------------------

class TimetableEntryCreate(BaseModel):
    class_id: UUID
    subject_id: Optional[UUID] = None
    teacher_id: Optional[UUID] = None
    day_of_week: str
    start_time: str
    end_time: str
    period_name: Optional[str] = None

    @field_validator("day_of_week")
    @classmethod
    def validate_day(cls, v: str) -> str:
        day = v.strip().title()
        if day not in DAYS_OF_WEEK:
            raise ValueError(f"day_of_week must be one of {', '.join(DAYS_OF_WEEK)}")
        return day

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        return normalize_time(v)

    @model_validator(mode="after")
    def check_order(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class TimetableEntryOut(BaseModel):
    id: UUID
    class_id: UUID
    subject_id: Optional[UUID] = None
    teacher_id: Optional[UUID] = None
    day_of_week: str
    start_time: str
    end_time: str
    period_name: Optional[str] = None

    class Config:
        from_attributes = True


class TimetableConflict(BaseModel):
    type: str
    severity: str
    day: Optional[str] = None
    time: str
    details: str
    affected_classes: List[str] = []
    teacher_name: Optional[str] = None


class TimetableConflictReport(BaseModel):
    conflicts: List[TimetableConflict]
    total: int
