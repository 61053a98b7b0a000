# tests/test_ai_tools_api.py
import json
from datetime import date, timedelta

from sqlalchemy import select

from school_portal.models import (
    AdminInsight, AIGeneratedAssignment, AttendanceAnalysis, AttendanceRecord, Class, ExamResult, Fee,
    HomeworkHelp, LessonPlan, ReportComment, Student,
)

from tests.conftest import auth_headers, make_user


# ============================================================================
# Assignment generator
# ============================================================================

def test_generate_mcq_assignment(client, db, seed, gateway):
    gateway.reply = "```json\n" + json.dumps([
        {"question": "2+2?", "options": ["A) 3", "B) 4", "C) 5", "D) 6"], "correct": "B"},
        {"question": "3x3?", "options": ["A) 6", "B) 8", "C) 9", "D) 12"], "correct": "C"},
    ]) + "\n```"

    response = client.post("/api/ai/assignments/generate", headers=auth_headers(seed.teacher_user), json={
        "topic": "Multiplication", "assignment_type": "mcq", "difficulty_level": "hard",
        "question_count": 2, "subject_id": str(seed.subject.id), "class_id": str(seed.class_a.id),
    })
    assert response.status_code == 200
    body = response.json()
    assert len(body["questions"]) == 2
    assert body["max_marks"] == 2.0
    assert body["auto_gradable"] is True

    request = gateway.requests[0]["json"]
    assert request["temperature"] == 0.8
    assert "Create 2 multiple choice questions" in request["messages"][0]["content"]
    assert "Difficulty level: hard" in request["messages"][0]["content"]
    assert request["messages"][1]["content"] == "Topic: Multiplication"

    saved = db.execute(select(AIGeneratedAssignment)).scalar_one()
    assert saved.teacher_id == seed.teacher.id
    assert saved.answer_key["answers"][1]["correct"] == "C"


def test_generate_full_paper_sums_marks(client, seed, gateway):
    gateway.reply = json.dumps({
        "questions": [{"question": "Define a prime", "marks": 5}, {"question": "Prove it", "marks": 10}],
        "answer_key": {"1": "A number with two divisors"},
    })
    response = client.post("/api/ai/assignments/generate", headers=auth_headers(seed.teacher_user),
                           json={"topic": "Primes", "assignment_type": "full_paper"})
    assert response.status_code == 200
    assert response.json()["max_marks"] == 15.0
    assert response.json()["answer_key"] == {"1": "A number with two divisors"}
    assert response.json()["auto_gradable"] is False


def test_generated_text_is_kept_when_not_json(client, seed, gateway):
    gateway.reply = "1. Explain photosynthesis."
    response = client.post("/api/ai/assignments/generate", headers=auth_headers(seed.teacher_user),
                           json={"topic": "Plants", "assignment_type": "short_answer"})
    assert response.status_code == 200
    assert response.json()["questions"] == [{"content": "1. Explain photosynthesis."}]
    assert response.json()["max_marks"] == 1.0
    assert "Create 5 short answer questions" in gateway.last_messages[0]["content"]


def test_generate_assignment_validation(client, seed, gateway):
    headers = auth_headers(seed.teacher_user)
    bad_type = client.post("/api/ai/assignments/generate", headers=headers,
                           json={"topic": "x", "assignment_type": "oral"})
    assert bad_type.status_code == 400
    bad_level = client.post("/api/ai/assignments/generate", headers=headers,
                            json={"topic": "x", "assignment_type": "mcq", "difficulty_level": "extreme"})
    assert bad_level.status_code == 400
    assert gateway.requests == []

    for user in (seed.student_user, seed.admin):
        denied = client.post("/api/ai/assignments/generate", headers=auth_headers(user),
                             json={"topic": "x", "assignment_type": "mcq"})
        assert denied.status_code == 403


def test_generate_assignment_for_class_of_another_school(client, db, seed, gateway):
    foreign = Class(school_id=seed.beta.id, name="9")
    db.add(foreign)
    db.commit()
    response = client.post("/api/ai/assignments/generate", headers=auth_headers(seed.teacher_user),
                           json={"topic": "x", "assignment_type": "mcq", "class_id": str(foreign.id)})
    assert response.status_code == 404
    assert gateway.requests == []


# ============================================================================
# Lesson planner
# ============================================================================

def test_plan_lesson(client, db, seed, gateway):
    gateway.reply = json.dumps({
        "learning_outcomes": ["Solve linear equations"],
        "teaching_steps": [{"step": "Warm up", "minutes": 5}],
        "activities": ["Pair work"],
        "examples": ["2x + 3 = 7"],
        "resources": ["Whiteboard"],
        "homework": "Exercise 4.1",
    })
    response = client.post("/api/ai/lessons/plan", headers=auth_headers(seed.teacher_user), json={
        "topic": "Linear equations", "duration_minutes": 45,
        "subject_id": str(seed.subject.id), "class_id": str(seed.class_a.id),
    })
    assert response.status_code == 200
    body = response.json()
    assert body["learning_outcomes"] == ["Solve linear equations"]
    assert body["lesson_content"]["homework"] == "Exercise 4.1"

    prompt = gateway.last_messages[1]["content"]
    assert "Grade Level: 10 - A" in prompt
    assert "Subject: Mathematics" in prompt
    assert "Duration: 45 minutes" in prompt

    plan = db.execute(select(LessonPlan)).scalar_one()
    assert plan.teaching_steps == [{"step": "Warm up", "minutes": 5}]
    assert plan.duration_minutes == 45


def test_plan_lesson_free_text(client, seed, gateway):
    gateway.reply = "Start with a story about balance scales."
    response = client.post("/api/ai/lessons/plan", headers=auth_headers(seed.teacher_user),
                           json={"topic": "Equations", "grade_level": "Grade 8"})
    assert response.status_code == 200
    body = response.json()
    assert body["lesson_content"] == {"content": "Start with a story about balance scales."}
    assert body["teaching_steps"] == []
    assert body["duration_minutes"] == 60


# ============================================================================
# Attendance analyzer
# ============================================================================

def _absences(db, seed, statuses):
    today = date.today()
    for offset, status in enumerate(statuses):
        db.add(AttendanceRecord(school_id=seed.alpha.id, student_id=seed.student.id, class_id=seed.class_a.id,
                                attendance_date=today - timedelta(days=offset), status=status))
    db.commit()


def test_analyze_attendance_falls_back_to_thresholds(client, db, seed, gateway):
    _absences(db, seed, ["present", "absent", "absent", "late"])
    gateway.reply = "Call the family of the student this week."

    response = client.post("/api/ai/attendance/analyze", headers=auth_headers(seed.teacher_user),
                           json={"class_id": str(seed.class_a.id)})
    assert response.status_code == 200
    body = response.json()
    stats = body["raw_stats"][0]
    assert stats["total_days"] == 4
    assert stats["absent_days"] == 2
    assert stats["late_days"] == 1
    assert stats["attendance_percentage"] == 25.0
    assert [s["student_id"] for s in body["frequent_absentees"]] == [str(seed.student.id)]
    assert len(body["predicted_dropouts"]) == 1
    assert body["recommendations"] == "Call the family of the student this week."
    assert body["date_from"] == (date.today() - timedelta(days=30)).isoformat()

    saved = db.execute(select(AttendanceAnalysis)).scalar_one()
    assert saved.teacher_id == seed.teacher.id
    assert saved.frequent_absentees[0]["full_name"] == seed.student.full_name


def test_analyze_attendance_uses_structured_reply(client, db, seed, gateway):
    _absences(db, seed, ["present", "present"])
    gateway.reply = json.dumps({
        "frequent_absentees": [],
        "predicted_dropouts": [],
        "recommendations": "Keep it up",
        "insights": "Full attendance",
    })
    response = client.post("/api/ai/attendance/analyze", headers=auth_headers(seed.teacher_user),
                           json={"class_id": str(seed.class_a.id)})
    assert response.status_code == 200
    assert response.json()["insights"] == "Full attendance"
    assert response.json()["frequent_absentees"] == []
    assert seed.student.full_name in gateway.last_messages[1]["content"]


def test_analyze_attendance_access(client, db, seed, gateway):
    other = Class(school_id=seed.alpha.id, name="11")
    foreign = Class(school_id=seed.beta.id, name="9")
    db.add_all([other, foreign])
    db.commit()
    headers = auth_headers(seed.teacher_user)

    not_taught = client.post("/api/ai/attendance/analyze", headers=headers, json={"class_id": str(other.id)})
    assert not_taught.status_code == 403
    missing = client.post("/api/ai/attendance/analyze", headers=headers, json={"class_id": str(foreign.id)})
    assert missing.status_code == 404
    backwards = client.post("/api/ai/attendance/analyze", headers=headers, json={
        "class_id": str(seed.class_a.id), "date_from": "2024-05-10", "date_to": "2024-05-01",
    })
    assert backwards.status_code == 400
    assert gateway.requests == []


# ============================================================================
# Report writer
# ============================================================================

def test_report_comment(client, db, seed, gateway):
    db.add(ExamResult(school_id=seed.alpha.id, student_id=seed.student.id, subject_id=seed.subject.id,
                      exam_name="Midterm", marks_obtained=40, max_marks=50))
    db.commit()
    gateway.reply = json.dumps({
        "comment_text": "A steady term with strong algebra.",
        "performance_summary": "Above average",
        "strengths": ["Algebra"],
        "areas_for_improvement": ["Geometry"],
        "attendance_remarks": "Regular",
        "behavior_remarks": "Attentive",
    })

    response = client.post("/api/ai/reports/comment", headers=auth_headers(seed.teacher_user), json={
        "student_id": str(seed.student.id), "subject_id": str(seed.subject.id), "exam_name": "Midterm",
    })
    assert response.status_code == 200
    assert response.json()["strengths"] == ["Algebra"]
    assert gateway.requests[0]["json"]["temperature"] == 0.8

    prompt = gateway.last_messages[1]["content"]
    assert f"Student: {seed.student.full_name}" in prompt
    assert "Subject: Mathematics" in prompt
    assert "Marks: 40/50" in prompt

    saved = db.execute(select(ReportComment)).scalar_one()
    assert saved.comment_text == "A steady term with strong algebra."
    assert saved.exam_name == "Midterm"


def test_report_comment_free_text(client, seed, gateway):
    gateway.reply = "Works hard and helps classmates."
    response = client.post("/api/ai/reports/comment", headers=auth_headers(seed.teacher_user),
                           json={"student_id": str(seed.student.id)})
    assert response.status_code == 200
    body = response.json()
    assert body["comment_text"] == "Works hard and helps classmates."
    assert body["attendance_remarks"] == "Attendance: 0.0%"
    assert body["behavior_remarks"] == "Satisfactory"
    assert "Marks: N/A" in gateway.last_messages[1]["content"]


def test_report_comment_access(client, db, seed, gateway):
    _, stray = make_user(db, seed.alpha, "stray@alpha.edu", "student", Student)
    db.commit()
    headers = auth_headers(seed.teacher_user)

    assert client.post("/api/ai/reports/comment", headers=headers,
                       json={"student_id": str(stray.id)}).status_code == 403
    assert client.post("/api/ai/reports/comment", headers=headers,
                       json={"student_id": str(seed.student_b.id)}).status_code == 404
    assert client.post("/api/ai/reports/comment", headers=auth_headers(seed.parent_user),
                       json={"student_id": str(seed.student.id)}).status_code == 403
    assert gateway.requests == []


# ============================================================================
# Homework helper
# ============================================================================

def test_homework_worksheet(client, db, seed, gateway):
    gateway.reply = '{"problems": [{"question": "5 x 6?", "difficulty": "easy", "hints": []}]}'
    response = client.post("/api/ai/homework", headers=auth_headers(seed.student_user), json={
        "help_type": "worksheet", "homework_content": "Times tables", "subject_id": str(seed.subject.id),
    })
    assert response.status_code == 200
    assert response.json()["worksheet"]["problems"][0]["question"] == "5 x 6?"

    saved = db.execute(select(HomeworkHelp)).scalar_one()
    assert saved.student_id == seed.student.id
    assert saved.help_type == "worksheet"


def test_homework_hint(client, seed, gateway):
    gateway.reply = "What happens if you subtract 3 from both sides?"
    response = client.post("/api/ai/homework", headers=auth_headers(seed.student_user),
                           json={"help_type": "hint", "homework_content": "2x + 3 = 7"})
    assert response.status_code == 200
    assert response.json()["worksheet"] is None
    assert "helpful hints" in gateway.last_messages[0]["content"]
    assert gateway.last_messages[1]["content"] == "2x + 3 = 7"


def test_homework_validation(client, seed, gateway):
    unknown = client.post("/api/ai/homework", headers=auth_headers(seed.student_user),
                          json={"help_type": "cheat", "homework_content": "x"})
    assert unknown.status_code == 400
    teacher = client.post("/api/ai/homework", headers=auth_headers(seed.teacher_user),
                          json={"help_type": "hint", "homework_content": "x"})
    assert teacher.status_code == 403
    assert gateway.requests == []


# ============================================================================
# Admin insights
# ============================================================================

def test_admin_insights(client, db, seed, gateway):
    _absences(db, seed, ["present", "absent"])
    db.add_all([
        ExamResult(school_id=seed.alpha.id, student_id=seed.student.id, subject_id=seed.subject.id,
                   exam_name="Midterm", marks_obtained=30, max_marks=50),
        Fee(school_id=seed.alpha.id, student_id=seed.student.id, fee_type="tuition", amount=100,
            due_date=date.today() + timedelta(days=5)),
    ])
    db.commit()
    gateway.reply = json.dumps({"predictions": {"attendance": "declining"}, "recommendations": "Call parents"})

    response = client.post("/api/ai/insights", headers=auth_headers(seed.admin), json={"insight_type": "all"})
    assert response.status_code == 200
    insight = response.json()["insight"]
    assert insight["predictions"] == {"attendance": "declining"}
    assert insight["recommendations"] == "Call parents"
    assert insight["insight_data"]["attendance"]["attendance_rate"] == 50.0
    assert insight["insight_data"]["attendance"]["by_class"] == {"10 - A": 50.0}
    assert insight["insight_data"]["academics"]["by_subject"] == {"Mathematics": 60.0}
    assert insight["insight_data"]["fee_collection"]["total_pending"] == 100.0

    saved = db.execute(select(AdminInsight)).scalar_one()
    assert saved.generated_by == seed.admin.id
    assert saved.expires_at is not None


def test_admin_insights_single_area(client, seed, gateway):
    gateway.reply = "Collections are on track."
    response = client.post("/api/ai/insights", headers=auth_headers(seed.admin),
                           json={"insight_type": "fee_collection"})
    assert response.status_code == 200
    insight = response.json()["insight"]
    assert list(insight["insight_data"]) == ["fee_collection"]
    assert insight["predictions"] == {}
    assert insight["recommendations"] == "Collections are on track."


def test_admin_insights_access(client, seed, gateway):
    assert client.post("/api/ai/insights", headers=auth_headers(seed.teacher_user), json={}).status_code == 403
    unknown = client.post("/api/ai/insights", headers=auth_headers(seed.admin), json={"insight_type": "weather"})
    assert unknown.status_code == 400
    assert gateway.requests == []
