# tests/test_auth_api.py
from sqlalchemy import select

from school_portal.models import Parent, Student, Teacher, User, WhitelistedParent, WhitelistedTeacher

from tests.conftest import PASSWORD, auth_headers


def test_login_and_me(client, seed):
    response = client.post("/api/auth/login", json={"email": "Teacher@alpha.edu", "password": PASSWORD})
    assert response.status_code == 200
    tokens = response.json()
    assert tokens["token_type"] == "bearer"
    assert tokens["refresh_token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert me.status_code == 200
    body = me.json()
    assert body["role"] == "teacher"
    assert body["school_id"] == str(seed.alpha.id)
    assert body["tenant_source"] == "user"
    assert "create:assignments" in body["permissions"]
    assert body["profile"]["subject_specialization"] == "Mathematics"


def test_login_wrong_password(client, seed):
    response = client.post("/api/auth/login", json={"email": "teacher@alpha.edu", "password": "nope12345"})
    assert response.status_code == 401


def test_me_requires_token(client, seed):
    assert client.get("/api/auth/me").status_code == 401
    bad = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert bad.status_code == 401


def test_refresh_issues_new_pair(client, seed):
    tokens = client.post("/api/auth/login", json={"email": "admin@alpha.edu", "password": PASSWORD}).json()

    response = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert response.status_code == 200
    assert response.json()["access_token"]

    # an access token is not a refresh token
    assert client.post("/api/auth/refresh", json={"refresh_token": tokens["access_token"]}).status_code == 401


def test_change_password(client, seed):
    headers = auth_headers(seed.teacher_user)
    wrong = client.post("/api/auth/change-password", headers=headers,
                        json={"current_password": "wrong-pass1", "new_password": "NewPassword456"})
    assert wrong.status_code == 400

    ok = client.post("/api/auth/change-password", headers=headers,
                     json={"current_password": PASSWORD, "new_password": "NewPassword456"})
    assert ok.status_code == 200
    login = client.post("/api/auth/login", json={"email": "teacher@alpha.edu", "password": "NewPassword456"})
    assert login.status_code == 200


def test_teacher_signup_requires_whitelist(client, seed):
    payload = {"email": "new.teacher@alpha.edu", "password": "Welcome123",
               "full_name": "New Teacher", "school_id": str(seed.alpha.id)}

    response = client.post("/api/auth/teacher-signup", json=payload)
    assert response.status_code == 403
    assert response.json()["detail"] == "Your email is not registered as a teacher. Contact admin."


def test_teacher_signup_whitelisted(client, db, seed):
    db.add(WhitelistedTeacher(school_id=seed.alpha.id, email="new.teacher@alpha.edu",
                              subject_specialization="Physics"))
    db.commit()
    payload = {"email": "New.Teacher@alpha.edu", "password": "Welcome123",
               "full_name": "New Teacher", "school_id": str(seed.alpha.id)}

    response = client.post("/api/auth/teacher-signup", json=payload)
    assert response.status_code == 201
    user_id = response.json()["user_id"]

    teacher = db.execute(select(Teacher).where(Teacher.email == "new.teacher@alpha.edu")).scalar_one()
    assert str(teacher.auth_user_id) == user_id
    assert teacher.subject_specialization == "Physics"
    assert teacher.school_id == seed.alpha.id

    again = client.post("/api/auth/teacher-signup", json=payload)
    assert again.status_code == 400
    assert again.json()["detail"] == "An account with this email already exists"


def test_whitelist_is_per_school(client, db, seed):
    db.add(WhitelistedTeacher(school_id=seed.beta.id, email="roamer@beta.edu"))
    db.commit()
    payload = {"email": "roamer@beta.edu", "password": "Welcome123",
               "full_name": "Roamer", "school_id": str(seed.alpha.id)}
    assert client.post("/api/auth/teacher-signup", json=payload).status_code == 403


def test_parent_signup_links_students(client, db, seed):
    db.add(WhitelistedParent(
        school_id=seed.alpha.id,
        email="dad@alpha.edu",
        relation="father",
        student_ids=[str(seed.student.id), str(seed.student_b.id), "not-a-uuid"],
    ))
    db.commit()
    payload = {"email": "dad@alpha.edu", "password": "Welcome123",
               "full_name": "Dad", "school_id": str(seed.alpha.id)}

    response = client.post("/api/auth/parent-signup", json=payload)
    assert response.status_code == 201

    db.expire_all()
    parent = db.execute(select(Parent).where(Parent.email == "dad@alpha.edu")).scalar_one()
    assert parent.relation == "father"
    assert db.get(Student, seed.student.id).parent_id == parent.id
    # students of another school are never linked
    assert db.get(Student, seed.student_b.id).parent_id is None


def test_parent_signup_not_whitelisted(client, seed):
    payload = {"email": "stranger@alpha.edu", "password": "Welcome123",
               "full_name": "Stranger", "school_id": str(seed.alpha.id)}
    response = client.post("/api/auth/parent-signup", json=payload)
    assert response.status_code == 403
    assert response.json()["detail"] == "Your email is not registered as a parent. Please contact school admin."


def test_signup_weak_password(client, seed):
    payload = {"email": "x@alpha.edu", "password": "allletters",
               "full_name": "X", "school_id": str(seed.alpha.id)}
    assert client.post("/api/auth/teacher-signup", json=payload).status_code == 400


def test_admin_registers_user_in_own_school(client, db, seed):
    response = client.post("/api/auth/register", headers=auth_headers(seed.admin), json={
        "email": "kid2@alpha.edu",
        "full_name": "Kid Two",
        "password": "Welcome123",
        "role": "student",
        "class_id": str(seed.class_a.id),
    })
    assert response.status_code == 201

    user = db.execute(select(User).where(User.email == "kid2@alpha.edu")).scalar_one()
    assert user.school_id == seed.alpha.id
    assert user.must_change_password
    student = db.execute(select(Student).where(Student.auth_user_id == user.id)).scalar_one()
    assert student.class_id == seed.class_a.id

    duplicate = client.post("/api/auth/register", headers=auth_headers(seed.admin), json={
        "email": "kid2@alpha.edu", "full_name": "Kid Two", "password": "Welcome123", "role": "student",
    })
    assert duplicate.status_code == 409


def test_register_requires_manage_users(client, seed):
    response = client.post("/api/auth/register", headers=auth_headers(seed.teacher_user), json={
        "email": "x@alpha.edu", "full_name": "X", "password": "Welcome123", "role": "student",
    })
    assert response.status_code == 403
    assert response.json()["detail"] == "Permission denied: manage:users"
