# tests/conftest.py - Shared fixtures: in-memory database, seeded schools, API client, fake AI gateway
import json
import os

# settings are read at import time
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret-key-that-is-at-least-32-characters"
os.environ["ENV"] = "test"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["AI_GATEWAY_API_KEY"] = "test-key"
os.environ.pop("ROLE_LOOKUP_FUNCTION", None)

from types import SimpleNamespace

import httpx
import pytest
from fastapi.testclient import TestClient

from school_portal.core.db import db_manager, get_engine
from school_portal.core.security import hash_password, token_manager
from school_portal.ai.gateway_client import AIGatewayClient, get_gateway_client
from school_portal.main import app
from school_portal.models import (
    Base, School, User, Admin, Teacher, Student, Parent, Class, Subject,
)

PASSWORD = "Password123"


@pytest.fixture
def db():
    engine = get_engine()
    Base.metadata.create_all(bind=engine)
    session = db_manager.SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    return TestClient(app)


def make_school(db, slug, name=None, status="active"):
    school = School(name=name or slug.title(), slug=slug, status=status)
    db.add(school)
    db.flush()
    return school


def make_user(db, school, email, role, profile_model=None, **profile):
    """Create a user and (optionally) its role profile"""
    user = User(
        email=email,
        full_name=email.split("@")[0].title(),
        password_hash=hash_password(PASSWORD),
        role=role,
        school_id=school.id if school else None,
    )
    db.add(user)
    db.flush()
    row = None
    if profile_model is not None:
        row = profile_model(
            school_id=school.id,
            auth_user_id=user.id,
            full_name=user.full_name,
            email=user.email,
            **profile,
        )
        db.add(row)
        db.flush()
    return user, row


def auth_headers(user, **extra):
    headers = {"Authorization": f"Bearer {token_manager.create_access_token(user.id)}"}
    headers.update(extra)
    return headers


@pytest.fixture
def seed(db):
    """
    Two schools. Alpha holds an admin, a teacher, a parent and a student in
    class 10-A taught by that teacher; beta holds one admin and one student.
    """
    alpha = make_school(db, "alpha")
    beta = make_school(db, "beta")

    admin, admin_profile = make_user(db, alpha, "admin@alpha.edu", "admin", Admin)
    teacher_user, teacher = make_user(db, alpha, "teacher@alpha.edu", "teacher", Teacher,
                                      subject_specialization="Mathematics")

    class_a = Class(school_id=alpha.id, name="10", section="A", academic_year="2024-25")
    db.add(class_a)
    db.flush()
    subject = Subject(school_id=alpha.id, name="Mathematics", code="MATH", class_id=class_a.id,
                      teacher_id=teacher.id)
    db.add(subject)
    db.flush()

    parent_user, parent = make_user(db, alpha, "parent@alpha.edu", "parent", Parent, relation="mother")
    student_user, student = make_user(db, alpha, "student@alpha.edu", "student", Student,
                                      class_id=class_a.id, parent_id=parent.id, admission_no="A-001")

    admin_b, _ = make_user(db, beta, "admin@beta.edu", "admin", Admin)
    student_b_user, student_b = make_user(db, beta, "student@beta.edu", "student", Student)

    db.commit()
    return SimpleNamespace(
        alpha=alpha, beta=beta,
        admin=admin, admin_profile=admin_profile,
        teacher_user=teacher_user, teacher=teacher,
        parent_user=parent_user, parent=parent,
        student_user=student_user, student=student,
        class_a=class_a, subject=subject,
        admin_b=admin_b, student_b_user=student_b_user, student_b=student_b,
    )


class FakeGateway:
    """Records chat completion requests and answers with canned replies"""

    def __init__(self):
        self.requests = []
        self.reply = "ok"
        self.status_code = 200

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append({
            "url": str(request.url),
            "headers": dict(request.headers),
            "json": json.loads(request.content),
        })
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"error": "upstream"})
        return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": self.reply}}]})

    def client(self, api_key="test-key") -> AIGatewayClient:
        return AIGatewayClient(
            base_url="https://gateway.test/v1",
            api_key=api_key,
            model="test-model",
            transport=httpx.MockTransport(self.handler),
        )

    @property
    def last_messages(self):
        return self.requests[-1]["json"]["messages"]


@pytest.fixture
def gateway():
    fake = FakeGateway()
    app.dependency_overrides[get_gateway_client] = lambda: fake.client()
    yield fake
    app.dependency_overrides.pop(get_gateway_client, None)
