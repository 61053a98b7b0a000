# tests/test_ai_api.py
import json
from datetime import date, timedelta

from sqlalchemy import select

from school_portal.ai.gateway_client import get_gateway_client
from school_portal.main import app
from school_portal.models import (
    AIChatConversation, Assignment, AttendanceRecord, ExamResult, Fee, FeePrediction,
    PerformancePrediction, SmartNotification, StudySession, Student, Subject, Submission,
    TeacherPerformanceReport,
)

from tests.conftest import auth_headers, make_user


# ============================================================================
# Timetable generation
# ============================================================================

def test_generate_timetable(client, seed, gateway):
    teacher_id = str(seed.teacher.id)
    gateway.reply = "```json\n" + json.dumps([
        {"class_id": str(seed.class_a.id), "teacher_id": teacher_id, "day_of_week": "Monday",
         "start_time": "09:00", "end_time": "09:45"},
        {"class_id": str(seed.class_a.id), "teacher_id": teacher_id, "day_of_week": "Monday",
         "start_time": "09:00", "end_time": "09:45"},
        {"class_id": str(seed.class_a.id), "teacher_id": teacher_id, "day_of_week": "Tuesday",
         "start_time": "09:00", "end_time": "09:45"},
    ]) + "\n```"

    response = client.post("/api/ai/timetable/generate", headers=auth_headers(seed.admin),
                           json={"class_ids": [str(seed.class_a.id)], "preferences": {"periods_per_day": 6}})
    assert response.status_code == 200
    body = response.json()
    assert body["summary"] == {"totalEntries": 3, "conflictCount": 1}
    assert body["conflicts"][0]["teacher_id"] == teacher_id

    prompt = gateway.last_messages[1]["content"]
    assert "Mathematics" in prompt
    assert "periods_per_day" in prompt


def test_generate_timetable_for_other_school_class(client, seed, gateway):
    response = client.post("/api/ai/timetable/generate", headers=auth_headers(seed.admin_b),
                           json={"class_ids": [str(seed.class_a.id)]})
    assert response.status_code == 404
    assert gateway.requests == []


def test_generate_timetable_malformed_reply(client, seed, gateway):
    gateway.reply = '[{"day_of_week": "Monday",]'
    response = client.post("/api/ai/timetable/generate", headers=auth_headers(seed.admin),
                           json={"class_ids": [str(seed.class_a.id)]})
    assert response.status_code == 502
    assert response.json() == {"error": "Failed to generate timetable structure"}


def test_generate_timetable_admin_only(client, seed, gateway):
    response = client.post("/api/ai/timetable/generate", headers=auth_headers(seed.teacher_user),
                           json={"class_ids": [str(seed.class_a.id)]})
    assert response.status_code == 403


# ============================================================================
# Performance prediction
# ============================================================================

def _seed_performance(db, seed):
    science = Subject(school_id=seed.alpha.id, name="Science", class_id=seed.class_a.id)
    db.add(science)
    db.flush()

    today = date.today()
    for offset, status in enumerate(("present", "present", "present", "absent")):
        db.add(AttendanceRecord(school_id=seed.alpha.id, student_id=seed.student.id, class_id=seed.class_a.id,
                                attendance_date=today - timedelta(days=offset), status=status,
                                marked_by=seed.teacher.id))
    db.add_all([
        ExamResult(school_id=seed.alpha.id, student_id=seed.student.id, subject_id=seed.subject.id,
                   exam_name="Unit 1", marks_obtained=45, max_marks=100),
        ExamResult(school_id=seed.alpha.id, student_id=seed.student.id, subject_id=seed.subject.id,
                   exam_name="Unit 2", marks_obtained=55, max_marks=100),
        ExamResult(school_id=seed.alpha.id, student_id=seed.student.id, subject_id=science.id,
                   exam_name="Unit 1", marks_obtained=45, max_marks=50),
    ])
    first = Assignment(school_id=seed.alpha.id, title="A1", class_id=seed.class_a.id, teacher_id=seed.teacher.id)
    second = Assignment(school_id=seed.alpha.id, title="A2", class_id=seed.class_a.id, teacher_id=seed.teacher.id)
    db.add_all([first, second])
    db.flush()
    db.add(Submission(school_id=seed.alpha.id, assignment_id=first.id, student_id=seed.student.id, content="done"))
    db.commit()


def test_predict_performance(client, db, seed, gateway):
    _seed_performance(db, seed)
    gateway.reply = "Practice algebra daily."

    response = client.post("/api/ai/performance/predict", headers=auth_headers(seed.teacher_user),
                           json={"student_id": str(seed.student.id)})
    assert response.status_code == 200
    prediction = response.json()["prediction"]
    assert prediction["attendance_score"] == 75.0
    assert prediction["marks_score"] == 70.0
    assert prediction["assignment_score"] == 50.0
    assert prediction["overall_score"] == 65.0
    assert prediction["overall_risk_level"] == "medium"
    assert prediction["weak_subjects"] == [{"subject": "Mathematics", "average": 50.0}]
    assert prediction["recommendations"] == "Practice algebra daily."
    assert gateway.requests[0]["json"]["temperature"] == 0.8

    stored = db.execute(select(PerformancePrediction)).scalar_one()
    assert stored.school_id == seed.alpha.id
    assert stored.risk_level == "medium"


def test_predict_performance_defaults_without_data(client, db, seed, gateway):
    response = client.post("/api/ai/performance/predict", headers=auth_headers(seed.admin),
                           json={"student_id": str(seed.student.id)})
    prediction = response.json()["prediction"]
    assert prediction["attendance_score"] == 100.0
    assert prediction["marks_score"] == 75.0
    # a class without assignments scores zero completion
    assert prediction["assignment_score"] == 0.0
    assert prediction["overall_risk_level"] == "medium"


def test_parent_may_predict_only_own_child(client, db, seed, gateway):
    ok = client.post("/api/ai/performance/predict", headers=auth_headers(seed.parent_user),
                     json={"student_id": str(seed.student.id)})
    assert ok.status_code == 200

    _, other_child = make_user(db, seed.alpha, "cousin@alpha.edu", "student", Student)
    db.commit()
    denied = client.post("/api/ai/performance/predict", headers=auth_headers(seed.parent_user),
                         json={"student_id": str(other_child.id)})
    assert denied.status_code == 403


def test_student_cannot_predict(client, seed, gateway):
    response = client.post("/api/ai/performance/predict", headers=auth_headers(seed.student_user),
                           json={"student_id": str(seed.student.id)})
    assert response.status_code == 403


def test_predict_performance_unknown_student(client, seed, gateway):
    response = client.post("/api/ai/performance/predict", headers=auth_headers(seed.admin),
                           json={"student_id": str(seed.student_b.id)})
    assert response.status_code == 404
    assert gateway.requests == []


# ============================================================================
# Fee prediction
# ============================================================================

def test_predict_fee_collection(client, db, seed, gateway):
    today = date.today()
    db.add_all([
        Fee(school_id=seed.alpha.id, student_id=seed.student.id, fee_type="tuition", amount=100,
            due_date=today - timedelta(days=30)),
        Fee(school_id=seed.alpha.id, student_id=seed.student.id, fee_type="library", amount=200,
            due_date=today - timedelta(days=3)),
        Fee(school_id=seed.alpha.id, student_id=seed.student.id, fee_type="transport", amount=300,
            due_date=today + timedelta(days=10)),
        Fee(school_id=seed.alpha.id, student_id=seed.student.id, fee_type="exam", amount=400,
            due_date=today - timedelta(days=60), status="paid"),
        Fee(school_id=seed.beta.id, student_id=seed.student_b.id, fee_type="tuition", amount=5000,
            due_date=today - timedelta(days=60)),
    ])
    db.commit()
    gateway.reply = "Collections look steady."

    response = client.post("/api/ai/fees/predict", headers=auth_headers(seed.admin))
    assert response.status_code == 200
    prediction = response.json()["prediction"]
    assert prediction["total_expected"] == 1000.0
    assert prediction["total_collected"] == 400.0
    assert prediction["total_pending"] == 600.0
    assert prediction["collection_rate"] == 40.0
    assert prediction["overdue_count"] == 2
    assert prediction["risk_level"] == "low"
    assert prediction["unusual_activity"] == [{"type": "high_overdue_rate", "count": 2, "percentage": 50.0}]
    assert prediction["reminders_created"] == 1

    reminder = db.execute(select(SmartNotification)).scalar_one()
    assert reminder.user_id == seed.student_user.id
    assert reminder.notification_type == "fee_reminder"
    assert reminder.school_id == seed.alpha.id
    assert db.execute(select(FeePrediction)).scalar_one().overdue_count == 2


def test_predict_fee_collection_requires_manage_fees(client, seed, gateway):
    assert client.post("/api/ai/fees/predict", headers=auth_headers(seed.teacher_user)).status_code == 403


# ============================================================================
# Teacher performance
# ============================================================================

def test_teacher_performance(client, db, seed, gateway):
    gateway.reply = (
        "Strengths:\n- Consistent grading\n- Engaging lessons\n\n"
        "Areas for improvement:\n- Assign more homework\n\n"
        "Recommendations: run weekly quizzes."
    )

    response = client.post("/api/ai/teachers/performance", headers=auth_headers(seed.admin),
                           json={"teacher_id": str(seed.teacher.id), "period": "quarterly"})
    assert response.status_code == 200
    analytics = response.json()["analytics"]
    assert analytics["period"] == "quarterly"
    assert analytics["subject_count"] == 1
    assert analytics["strengths"] == ["Consistent grading", "Engaging lessons"]
    assert analytics["areas_for_improvement"] == ["Assign more homework"]

    report = db.execute(select(TeacherPerformanceReport)).scalar_one()
    assert report.report_period == "quarterly"
    assert report.metrics["subject_count"] == 1


def test_teacher_performance_access(client, seed, gateway):
    payload = {"teacher_id": str(seed.teacher.id)}
    assert client.post("/api/ai/teachers/performance", headers=auth_headers(seed.teacher_user),
                       json=payload).status_code == 403
    assert client.post("/api/ai/teachers/performance", headers=auth_headers(seed.admin_b),
                       json=payload).status_code == 404


# ============================================================================
# Chat assistant
# ============================================================================

def test_chat_keeps_conversation(client, db, seed, gateway):
    gateway.reply = "Your next class is Mathematics."
    first = client.post("/api/ai/chat", headers=auth_headers(seed.student_user),
                        json={"message": "What is my next class?"})
    assert first.status_code == 200
    conversation_id = first.json()["conversation_id"]
    assert first.json()["message"] == "Your next class is Mathematics."
    system = gateway.last_messages[0]
    assert system["role"] == "system"
    assert "Be encouraging and supportive." in system["content"]

    gateway.reply = "At 9:00."
    second = client.post("/api/ai/chat", headers=auth_headers(seed.student_user),
                         json={"message": "When?", "conversation_id": conversation_id})
    assert second.status_code == 200
    assert second.json()["conversation_id"] == conversation_id
    assert [m["role"] for m in gateway.last_messages] == ["system", "user", "assistant", "user"]

    db.expire_all()
    stored = db.execute(select(AIChatConversation)).scalar_one()
    assert len(stored.messages) == 4
    assert stored.messages[-1]["content"] == "At 9:00."


def test_chat_history_window(client, db, seed, gateway):
    conversation = AIChatConversation(
        school_id=seed.alpha.id, user_id=seed.admin.id, role="admin",
        messages=[{"role": "user" if i % 2 == 0 else "assistant", "content": f"m{i}"} for i in range(20)],
    )
    db.add(conversation)
    db.commit()

    response = client.post("/api/ai/chat", headers=auth_headers(seed.admin),
                           json={"message": "latest", "conversation_id": str(conversation.id)})
    assert response.status_code == 200
    sent = gateway.last_messages
    assert len(sent) == 11
    assert sent[-1]["content"] == "latest"


def test_chat_conversation_of_another_user(client, seed, gateway):
    first = client.post("/api/ai/chat", headers=auth_headers(seed.student_user), json={"message": "hi"})
    conversation_id = first.json()["conversation_id"]

    response = client.post("/api/ai/chat", headers=auth_headers(seed.teacher_user),
                           json={"message": "peek", "conversation_id": conversation_id})
    assert response.status_code == 404


def test_chat_rate_limited(client, db, seed, gateway):
    gateway.status_code = 429
    response = client.post("/api/ai/chat", headers=auth_headers(seed.student_user), json={"message": "hi"})
    assert response.status_code == 429
    assert response.json() == {"error": "Rate limit exceeded"}
    # nothing is stored for a failed turn
    assert db.execute(select(AIChatConversation)).scalars().all() == []


def test_chat_credits_exhausted(client, seed, gateway):
    gateway.status_code = 402
    response = client.post("/api/ai/chat", headers=auth_headers(seed.admin), json={"message": "hi"})
    assert response.status_code == 402
    assert response.json() == {"error": "AI credits exhausted"}


def test_chat_rejects_empty_message(client, seed, gateway):
    response = client.post("/api/ai/chat", headers=auth_headers(seed.admin), json={"message": ""})
    assert response.status_code == 422


def test_chat_roleless_user(client, db, seed, gateway):
    nobody, _ = make_user(db, seed.alpha, "nobody@alpha.edu", None)
    db.commit()
    response = client.post("/api/ai/chat", headers=auth_headers(nobody), json={"message": "hi"})
    assert response.status_code == 403


def test_unconfigured_gateway(client, seed, gateway):
    app.dependency_overrides[get_gateway_client] = lambda: gateway.client(api_key=None)
    response = client.post("/api/ai/chat", headers=auth_headers(seed.admin), json={"message": "hi"})
    assert response.status_code == 503
    assert "error" in response.json()


# ============================================================================
# Study assistant
# ============================================================================

def test_study_quiz_session(client, db, seed, gateway):
    gateway.reply = '```json\n{"questions": [{"question": "2+2?", "options": ["3", "4"], "correct": 1}]}\n```'

    response = client.post("/api/ai/study", headers=auth_headers(seed.student_user), json={
        "session_type": "quiz",
        "input_content": "Basic arithmetic",
        "subject_id": str(seed.subject.id),
    })
    assert response.status_code == 200
    body = response.json()
    assert body["session_type"] == "quiz"
    assert body["structured"]["questions"][0]["correct"] == 1
    assert gateway.requests[0]["json"]["temperature"] == 0.7

    session = db.execute(select(StudySession)).scalar_one()
    assert session.student_id == seed.student.id
    assert session.subject_id == seed.subject.id


def test_study_summary_has_no_structure(client, seed, gateway):
    gateway.reply = "Photosynthesis turns light into chemical energy."
    response = client.post("/api/ai/study", headers=auth_headers(seed.student_user),
                           json={"session_type": "summary", "input_content": "Photosynthesis"})
    assert response.status_code == 200
    assert response.json()["structured"] is None


def test_study_unknown_session_type(client, seed, gateway):
    response = client.post("/api/ai/study", headers=auth_headers(seed.student_user),
                           json={"session_type": "essay", "input_content": "x"})
    assert response.status_code == 400
    assert gateway.requests == []


def test_study_students_only(client, seed, gateway):
    response = client.post("/api/ai/study", headers=auth_headers(seed.teacher_user),
                           json={"session_type": "summary", "input_content": "x"})
    assert response.status_code == 403


def test_study_subject_of_another_school(client, db, seed, gateway):
    foreign = Subject(school_id=seed.beta.id, name="Latin")
    db.add(foreign)
    db.commit()
    response = client.post("/api/ai/study", headers=auth_headers(seed.student_user), json={
        "session_type": "doubt", "input_content": "x", "subject_id": str(foreign.id),
    })
    assert response.status_code == 404
