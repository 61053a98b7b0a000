# tests/test_academic_api.py
from tests.conftest import auth_headers


def test_class_crud(client, seed):
    headers = auth_headers(seed.admin)

    created = client.post("/api/classes", headers=headers,
                          json={"name": "9", "section": "b", "academic_year": "2024-25"})
    assert created.status_code == 201
    class_id = created.json()["id"]
    assert created.json()["section"] == "B"
    assert created.json()["school_id"] == str(seed.alpha.id)

    duplicate = client.post("/api/classes", headers=headers,
                            json={"name": "9", "section": "B", "academic_year": "2024-25"})
    assert duplicate.status_code == 409

    updated = client.put(f"/api/classes/{class_id}", headers=headers, json={"name": "9th"})
    assert updated.status_code == 200
    assert updated.json()["name"] == "9th"

    assert client.delete(f"/api/classes/{class_id}", headers=headers).status_code == 204
    assert client.get(f"/api/classes/{class_id}", headers=headers).status_code == 404


def test_class_update_rejects_null_or_blank_name(client, seed):
    headers = auth_headers(seed.admin)
    url = f"/api/classes/{seed.class_a.id}"

    assert client.put(url, headers=headers, json={"name": None}).status_code == 422
    assert client.put(url, headers=headers, json={"name": "   "}).status_code == 422

    # omitted fields stay untouched
    response = client.put(url, headers=headers, json={"section": "c"})
    assert response.status_code == 200
    assert response.json()["name"] == "10"
    assert response.json()["section"] == "C"


def test_subject_update_rejects_null_name(client, seed):
    headers = auth_headers(seed.admin)
    url = f"/api/subjects/{seed.subject.id}"

    assert client.put(url, headers=headers, json={"name": None}).status_code == 422
    response = client.put(url, headers=headers, json={"name": " Algebra "})
    assert response.status_code == 200
    assert response.json()["name"] == "Algebra"


def test_classes_are_listed_per_school(client, seed):
    alpha = client.get("/api/classes", headers=auth_headers(seed.admin)).json()
    beta = client.get("/api/classes", headers=auth_headers(seed.admin_b)).json()
    assert len(alpha) == 1
    assert beta == []


def test_class_teacher_from_another_school(client, seed):
    response = client.post("/api/classes", headers=auth_headers(seed.admin_b),
                           json={"name": "1", "class_teacher_id": str(seed.teacher.id)})
    assert response.status_code == 404


def test_subjects_require_manage_subjects(client, seed):
    payload = {"name": "Biology", "class_id": str(seed.class_a.id)}
    assert client.post("/api/subjects", headers=auth_headers(seed.teacher_user), json=payload).status_code == 403

    created = client.post("/api/subjects", headers=auth_headers(seed.admin), json=payload)
    assert created.status_code == 201

    listed = client.get("/api/subjects", params={"class_id": str(seed.class_a.id)},
                        headers=auth_headers(seed.student_user))
    assert sorted(s["name"] for s in listed.json()) == ["Biology", "Mathematics"]


def test_timetable_entry_validation(client, seed):
    headers = auth_headers(seed.admin)
    base = {"class_id": str(seed.class_a.id), "teacher_id": str(seed.teacher.id)}

    bad_day = client.post("/api/timetable", headers=headers,
                          json={**base, "day_of_week": "Funday", "start_time": "09:00", "end_time": "09:45"})
    assert bad_day.status_code == 422

    backwards = client.post("/api/timetable", headers=headers,
                            json={**base, "day_of_week": "monday", "start_time": "10:00", "end_time": "09:00"})
    assert backwards.status_code == 422

    ok = client.post("/api/timetable", headers=headers,
                     json={**base, "day_of_week": "monday", "start_time": "09:00:00", "end_time": "09:45"})
    assert ok.status_code == 201
    assert ok.json()["day_of_week"] == "Monday"
    assert ok.json()["start_time"] == "09:00"


def test_timetable_conflict_report(client, db, seed):
    headers = auth_headers(seed.admin)
    other = client.post("/api/classes", headers=headers, json={"name": "10", "section": "B"}).json()

    for class_id in (str(seed.class_a.id), other["id"]):
        response = client.post("/api/timetable", headers=headers, json={
            "class_id": class_id,
            "teacher_id": str(seed.teacher.id),
            "day_of_week": "Tuesday",
            "start_time": "11:00",
            "end_time": "11:45",
        })
        assert response.status_code == 201

    report = client.get("/api/timetable/conflicts", headers=headers)
    assert report.status_code == 200
    body = report.json()
    assert body["total"] == 1
    conflict = body["conflicts"][0]
    assert conflict["type"] == "teacher_conflict"
    assert conflict["teacher_name"] == seed.teacher.full_name
    assert sorted(conflict["affected_classes"]) == ["10 - A", "10 - B"]

    # other schools see nothing
    beta = client.get("/api/timetable/conflicts", headers=auth_headers(seed.admin_b)).json()
    assert beta["total"] == 0

    assert client.get("/api/timetable/conflicts", headers=auth_headers(seed.student_user)).status_code == 403


def test_timetable_list_is_ordered_by_day(client, seed):
    headers = auth_headers(seed.admin)
    for day, start, end in (("Wednesday", "09:00", "09:45"), ("Monday", "10:00", "10:45"), ("Monday", "08:00", "08:45")):
        client.post("/api/timetable", headers=headers, json={
            "class_id": str(seed.class_a.id), "day_of_week": day, "start_time": start, "end_time": end,
        })

    entries = client.get("/api/timetable", params={"class_id": str(seed.class_a.id)},
                         headers=auth_headers(seed.student_user)).json()
    assert [(e["day_of_week"], e["start_time"]) for e in entries] == [
        ("Monday", "08:00"), ("Monday", "10:00"), ("Wednesday", "09:00"),
    ]
