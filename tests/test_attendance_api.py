# tests/test_attendance_api.py
from datetime import date, timedelta

from school_portal.models import Class, Student

from tests.conftest import auth_headers, make_user


def _mark(client, user, seed, day, *entries):
    return client.post("/api/attendance", headers=auth_headers(user), json={
        "class_id": str(seed.class_a.id),
        "attendance_date": day.isoformat(),
        "records": [{"student_id": str(s.id), "status": status} for s, status in entries],
    })


def test_teacher_marks_register(client, seed):
    today = date.today()
    response = _mark(client, seed.teacher_user, seed, today, (seed.student, "Present"))
    assert response.status_code == 201
    records = response.json()
    assert len(records) == 1
    assert records[0]["status"] == "present"
    assert records[0]["marked_by"] == str(seed.teacher.id)

    # re-marking the same day replaces the register
    again = _mark(client, seed.teacher_user, seed, today, (seed.student, "late"))
    assert again.status_code == 201

    listed = client.get("/api/attendance", headers=auth_headers(seed.admin)).json()
    assert [r["status"] for r in listed["records"]] == ["late"]
    assert listed["summary"] == {"total": 1, "present": 0, "absent": 0, "late": 1, "percentage": 0.0}


def test_register_validation(client, db, seed):
    today = date.today()
    assert _mark(client, seed.teacher_user, seed, today, (seed.student, "sleeping")).status_code == 422
    assert _mark(client, seed.teacher_user, seed, today + timedelta(days=1),
                 (seed.student, "present")).status_code == 400

    other_class = Class(school_id=seed.alpha.id, name="11")
    db.add(other_class)
    db.flush()
    _, outsider = make_user(db, seed.alpha, "eleven@alpha.edu", "student", Student, class_id=other_class.id)
    db.commit()
    response = _mark(client, seed.teacher_user, seed, today, (seed.student, "present"), (outsider, "absent"))
    assert response.status_code == 400
    assert str(outsider.id) in response.json()["detail"]

    # students of another school are never enrolled here
    assert _mark(client, seed.teacher_user, seed, today, (seed.student_b, "present")).status_code == 400


def test_only_staff_mark_attendance(client, seed):
    today = date.today()
    assert _mark(client, seed.student_user, seed, today, (seed.student, "present")).status_code == 403
    assert _mark(client, seed.parent_user, seed, today, (seed.student, "present")).status_code == 403
    assert _mark(client, seed.admin_b, seed, today, (seed.student, "present")).status_code == 404


def test_students_and_parents_see_their_own(client, db, seed):
    _, classmate = make_user(db, seed.alpha, "classmate@alpha.edu", "student", Student, class_id=seed.class_a.id)
    db.commit()
    today = date.today()
    _mark(client, seed.teacher_user, seed, today, (seed.student, "present"), (classmate, "absent"))
    _mark(client, seed.teacher_user, seed, today - timedelta(days=1),
          (seed.student, "absent"), (classmate, "absent"))

    own = client.get("/api/attendance", headers=auth_headers(seed.student_user)).json()
    assert {r["student_id"] for r in own["records"]} == {str(seed.student.id)}
    assert own["summary"]["percentage"] == 50.0

    child = client.get("/api/attendance", headers=auth_headers(seed.parent_user)).json()
    assert {r["student_id"] for r in child["records"]} == {str(seed.student.id)}

    everyone = client.get("/api/attendance", headers=auth_headers(seed.teacher_user),
                          params={"date_from": today.isoformat()}).json()
    assert everyone["summary"]["total"] == 2

    other_school = client.get("/api/attendance", headers=auth_headers(seed.admin_b)).json()
    assert other_school["records"] == []


def test_marked_attendance_feeds_performance_prediction(client, seed, gateway):
    today = date.today()
    _mark(client, seed.teacher_user, seed, today, (seed.student, "present"))
    _mark(client, seed.teacher_user, seed, today - timedelta(days=1), (seed.student, "absent"))

    response = client.post("/api/ai/performance/predict", headers=auth_headers(seed.admin),
                           json={"student_id": str(seed.student.id)})
    assert response.status_code == 200
    assert response.json()["prediction"]["attendance_score"] == 50.0
