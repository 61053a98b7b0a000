# tests/test_fees_api.py
from datetime import date
from decimal import Decimal

import pytest

from school_portal.models import Fee

from tests.conftest import auth_headers


@pytest.fixture
def fees(db, seed):
    rows = [
        Fee(school_id=seed.alpha.id, student_id=seed.student.id, fee_type="tuition",
            amount=Decimal("1500.00"), due_date=date(2024, 4, 10)),
        Fee(school_id=seed.alpha.id, student_id=seed.student.id, fee_type="transport",
            amount=Decimal("300.00"), due_date=date(2024, 5, 10), status="paid"),
        Fee(school_id=seed.beta.id, student_id=seed.student_b.id, fee_type="tuition",
            amount=Decimal("999.00"), due_date=date(2024, 4, 10)),
    ]
    db.add_all(rows)
    db.commit()
    return rows


def test_admin_sees_school_fees_with_totals(client, seed, fees):
    response = client.get("/api/fees", headers=auth_headers(seed.admin))
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 2
    assert Decimal(str(body["total_amount"])) == Decimal("1800.00")
    assert Decimal(str(body["pending_amount"])) == Decimal("1500.00")

    pending = client.get("/api/fees", params={"status": "PENDING"}, headers=auth_headers(seed.admin)).json()
    assert [f["fee_type"] for f in pending["fees"]] == ["tuition"]


def test_student_and_parent_see_own_fees(client, seed, fees):
    for user in (seed.student_user, seed.parent_user):
        body = client.get("/api/fees", headers=auth_headers(user)).json()
        assert body["total"] == 2
        assert {f["student_id"] for f in body["fees"]} == {str(seed.student.id)}

    beta = client.get("/api/fees", headers=auth_headers(seed.student_b_user)).json()
    assert beta["total"] == 1


def test_teacher_cannot_list_fees(client, seed, fees):
    assert client.get("/api/fees", headers=auth_headers(seed.teacher_user)).status_code == 403


def test_create_and_pay_fee(client, seed):
    headers = auth_headers(seed.admin)
    created = client.post("/api/fees", headers=headers, json={
        "student_id": str(seed.student.id),
        "fee_type": " Exam ",
        "amount": "250.50",
        "due_date": "2024-09-01",
    })
    assert created.status_code == 201
    fee = created.json()
    assert fee["fee_type"] == "exam"
    assert fee["status"] == "pending"

    paid = client.post(f"/api/fees/{fee['id']}/pay", headers=headers)
    assert paid.status_code == 200
    assert paid.json()["status"] == "paid"
    assert paid.json()["paid_at"]

    assert client.post(f"/api/fees/{fee['id']}/pay", headers=headers).status_code == 409


def test_fee_for_student_of_another_school(client, seed):
    response = client.post("/api/fees", headers=auth_headers(seed.admin), json={
        "student_id": str(seed.student_b.id),
        "fee_type": "tuition",
        "amount": "10",
        "due_date": "2024-09-01",
    })
    assert response.status_code == 404


def test_invalid_fee_status(client, seed):
    response = client.post("/api/fees", headers=auth_headers(seed.admin), json={
        "student_id": str(seed.student.id),
        "fee_type": "tuition",
        "amount": "10",
        "due_date": "2024-09-01",
        "status": "waived",
    })
    assert response.status_code == 422
