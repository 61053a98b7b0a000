# tests/test_notifications_api.py
from datetime import date, timedelta

from sqlalchemy import select

from school_portal.models import Assignment, AttendanceRecord, ExamResult, SmartNotification
from school_portal.services.smart_notifications import generate_notifications

from tests.conftest import auth_headers


def _notify(db, user, school, title="Hello", **fields):
    row = SmartNotification(school_id=school.id, user_id=user.id, notification_type="alert",
                            title=title, message=f"{title} message", **fields)
    db.add(row)
    db.commit()
    return row


def test_list_and_mark_read(client, db, seed):
    first = _notify(db, seed.student_user, seed.alpha, "First")
    _notify(db, seed.student_user, seed.alpha, "Second")
    _notify(db, seed.parent_user, seed.alpha, "For the parent")

    listed = client.get("/api/notifications", headers=auth_headers(seed.student_user))
    assert listed.status_code == 200
    assert {n["title"] for n in listed.json()} == {"First", "Second"}

    read = client.patch(f"/api/notifications/{first.id}/read", headers=auth_headers(seed.student_user))
    assert read.status_code == 200
    assert read.json()["is_read"] is True

    unread = client.get("/api/notifications", headers=auth_headers(seed.student_user),
                        params={"unread_only": True}).json()
    assert [n["title"] for n in unread] == ["Second"]

    all_read = client.post("/api/notifications/read-all", headers=auth_headers(seed.student_user))
    assert all_read.json() == {"updated": 1}


def test_cannot_read_someone_elses_notification(client, db, seed):
    theirs = _notify(db, seed.parent_user, seed.alpha)
    response = client.patch(f"/api/notifications/{theirs.id}/read", headers=auth_headers(seed.student_user))
    assert response.status_code == 404
    db.refresh(theirs)
    assert theirs.is_read is False


def test_generate_requires_broadcast_permission(client, seed):
    assert client.post("/api/notifications/generate", headers=auth_headers(seed.teacher_user)).status_code == 403
    response = client.post("/api/notifications/generate", headers=auth_headers(seed.admin))
    assert response.status_code == 200
    assert response.json()["total"] == 0


def test_generated_alerts(db, seed):
    today = date(2024, 9, 20)
    for offset, status in enumerate(["present", "absent", "absent", "absent"]):
        db.add(AttendanceRecord(school_id=seed.alpha.id, student_id=seed.student.id, class_id=seed.class_a.id,
                                attendance_date=today - timedelta(days=offset), status=status))
    db.add(Assignment(school_id=seed.alpha.id, title="Essay", class_id=seed.class_a.id,
                      due_date=today + timedelta(days=3)))
    db.add(Assignment(school_id=seed.alpha.id, title="Old essay", class_id=seed.class_a.id,
                      due_date=today - timedelta(days=3)))
    db.add(ExamResult(school_id=seed.alpha.id, student_id=seed.student.id, subject_id=seed.subject.id,
                      exam_name="Unit 1", marks_obtained=10, max_marks=50))
    db.add(ExamResult(school_id=seed.alpha.id, student_id=seed.student.id, subject_id=seed.subject.id,
                      exam_name="Unit 2", marks_obtained=20, max_marks=50))
    db.commit()

    counts = generate_notifications(db, seed.alpha.id, today=today)
    assert counts == {"low_attendance": 1, "pending_assignments": 1, "academic_support": 1, "total": 3}

    rows = db.execute(select(SmartNotification)).scalars().all()
    assert {r.user_id for r in rows} == {seed.student_user.id}
    titles = {r.title: r for r in rows}
    assert titles["Low Attendance Alert"].priority == "high"
    assert "25.0%" in titles["Low Attendance Alert"].message
    assert '"Essay"' in titles["Pending Assignment"].message

    # unread alerts are not repeated
    again = generate_notifications(db, seed.alpha.id, today=today)
    assert again["total"] == 0
