# school_portal/services/smart_notifications.py - Rule based alerts for students
from datetime import date, timedelta
from typing import Dict, List, Optional, Set, Tuple
from uuid import UUID
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from school_portal.models import (
    AttendanceRecord, Assignment, ExamResult, SmartNotification, Student, Submission,
)
from school_portal.tenancy.scoped import select_by_tenant, insert_with_tenant

logger = logging.getLogger(__name__)

ATTENDANCE_WINDOW_DAYS = 30
MIN_ATTENDANCE_RATE = 75.0
RECENT_RESULTS_LIMIT = 200
SUPPORT_THRESHOLD = 50.0


class NotificationWriter:
    """Inserts notifications, skipping ones the recipient has not read yet"""

    def __init__(self, db: Session, school_id: UUID):
        self.db = db
        self.school_id = school_id
        self.created = 0
        self._unread: Set[Tuple[UUID, str, str]] = set(db.execute(
            select(SmartNotification.user_id, SmartNotification.title, SmartNotification.message).where(
                SmartNotification.school_id == school_id,
                SmartNotification.is_read.is_(False),
            )
        ).tuples().all())

    def add(self, user_id: Optional[UUID], notification_type: str, title: str, message: str,
            priority: str = "medium", **extra) -> bool:
        # students without an account cannot read notifications
        if user_id is None or (user_id, title, message) in self._unread:
            return False
        insert_with_tenant(self.db, SmartNotification, {
            "user_id": user_id,
            "notification_type": notification_type,
            "title": title,
            "message": message,
            "priority": priority,
            "extra": {k: str(v) for k, v in extra.items()},
        }, self.school_id)
        self._unread.add((user_id, title, message))
        self.created += 1
        return True


def _low_attendance(db: Session, school_id: UUID, writer: NotificationWriter,
                    accounts: Dict[UUID, UUID], today: date) -> int:
    since = today - timedelta(days=ATTENDANCE_WINDOW_DAYS)
    stats: Dict[UUID, List[int]] = {}
    for student_id, status in db.execute(
        select(AttendanceRecord.student_id, AttendanceRecord.status).where(
            AttendanceRecord.school_id == school_id,
            AttendanceRecord.attendance_date >= since,
        )
    ).all():
        present, total = stats.get(student_id, [0, 0])
        stats[student_id] = [present + (status == "present"), total + 1]

    count = 0
    for student_id, (present, total) in stats.items():
        rate = present / total * 100
        if rate < MIN_ATTENDANCE_RATE and writer.add(
            accounts.get(student_id), "alert", "Low Attendance Alert",
            f"Your attendance is {rate:.1f}%. Please improve to maintain minimum "
            f"{MIN_ATTENDANCE_RATE:.0f}% attendance.",
            priority="high", student_id=student_id,
        ):
            count += 1
    return count


def _pending_assignments(db: Session, school_id: UUID, writer: NotificationWriter,
                         accounts: Dict[UUID, UUID], today: date) -> int:
    assignments = db.execute(
        select_by_tenant(Assignment, school_id).where(Assignment.due_date >= today)
    ).scalars().all()

    count = 0
    for assignment in assignments:
        class_students = db.execute(
            select(Student.id).where(Student.school_id == school_id, Student.class_id == assignment.class_id)
        ).scalars().all()
        submitted = set(db.execute(
            select(Submission.student_id).where(
                Submission.school_id == school_id, Submission.assignment_id == assignment.id
            )
        ).scalars().all())
        for student_id in class_students:
            if student_id in submitted:
                continue
            if writer.add(
                accounts.get(student_id), "reminder", "Pending Assignment",
                f'Assignment "{assignment.title}" is due on {assignment.due_date.isoformat()}.',
                assignment_id=assignment.id,
            ):
                count += 1
    return count


def _academic_support(db: Session, school_id: UUID, writer: NotificationWriter,
                      accounts: Dict[UUID, UUID]) -> int:
    percentages: Dict[UUID, List[float]] = {}
    for student_id, marks, max_marks in db.execute(
        select(ExamResult.student_id, ExamResult.marks_obtained, ExamResult.max_marks)
        .where(ExamResult.school_id == school_id)
        .order_by(ExamResult.created_at.desc())
        .limit(RECENT_RESULTS_LIMIT)
    ).all():
        if max_marks:
            percentages.setdefault(student_id, []).append(marks / max_marks * 100)

    count = 0
    for student_id, values in percentages.items():
        # a single result is not a trend
        if len(values) < 2:
            continue
        recent = values[:3]
        if sum(recent) / len(recent) < SUPPORT_THRESHOLD and writer.add(
            accounts.get(student_id), "insight", "Academic Support Available",
            "Your recent performance shows room for improvement. "
            "Consider using AI Study Assistant for personalized help.",
            student_id=student_id,
        ):
            count += 1
    return count


def generate_notifications(db: Session, school_id: UUID, today: Optional[date] = None) -> Dict[str, int]:
    """
    Queue alerts for the students of a school.

    - attendance below 75% over the last 30 days
    - assignments not yet due that the student has not submitted
    - a mean below 50% over the student's three most recent exam results

    Returns:
        Number of notifications created per rule and in total
    """
    today = today or date.today()
    accounts = dict(db.execute(
        select(Student.id, Student.auth_user_id).where(Student.school_id == school_id)
    ).tuples().all())
    writer = NotificationWriter(db, school_id)

    counts = {
        "low_attendance": _low_attendance(db, school_id, writer, accounts, today),
        "pending_assignments": _pending_assignments(db, school_id, writer, accounts, today),
        "academic_support": _academic_support(db, school_id, writer, accounts),
    }
    db.commit()

    counts["total"] = writer.created
    logger.info(f"Smart notifications for school {school_id}: {counts}")
    return counts
