# tests/test_messages_api.py
from tests.conftest import auth_headers


def _start(client, user, *participants, **extra):
    return client.post("/api/messages/conversations", headers=auth_headers(user), json={
        "participant_ids": [str(p.id) for p in participants], **extra,
    })


def test_direct_conversation_flow(client, seed):
    created = _start(client, seed.parent_user, seed.teacher_user)
    assert created.status_code == 201
    conversation = created.json()
    assert sorted(conversation["participant_ids"]) == sorted([str(seed.parent_user.id), str(seed.teacher_user.id)])

    url = f"/api/messages/conversations/{conversation['id']}/messages"
    sent = client.post(url, headers=auth_headers(seed.parent_user), json={"content": "  Hello teacher  "})
    assert sent.status_code == 201
    assert sent.json()["content"] == "Hello teacher"

    reply = client.post(url, headers=auth_headers(seed.teacher_user), json={"content": "Hello!"})
    assert reply.status_code == 201

    listed = client.get(url, headers=auth_headers(seed.teacher_user))
    assert listed.status_code == 200
    assert len(listed.json()) == 2

    inbox = client.get("/api/messages/conversations", headers=auth_headers(seed.teacher_user)).json()
    assert [c["id"] for c in inbox] == [conversation["id"]]


def test_blank_message_is_rejected(client, seed):
    conversation = _start(client, seed.parent_user, seed.teacher_user).json()
    url = f"/api/messages/conversations/{conversation['id']}/messages"

    response = client.post(url, headers=auth_headers(seed.parent_user), json={"content": "   \n\t "})
    assert response.status_code == 422
    assert client.get(url, headers=auth_headers(seed.parent_user)).json() == []


def test_non_participant_sees_404(client, seed):
    conversation = _start(client, seed.parent_user, seed.teacher_user).json()
    url = f"/api/messages/conversations/{conversation['id']}/messages"

    assert client.get(url, headers=auth_headers(seed.student_user)).status_code == 404
    assert client.post(url, headers=auth_headers(seed.admin_b), json={"content": "hi"}).status_code == 404
    assert client.get("/api/messages/conversations", headers=auth_headers(seed.student_user)).json() == []


def test_direct_conversation_allows_two_participants(client, seed):
    response = _start(client, seed.admin, seed.teacher_user, seed.parent_user)
    assert response.status_code == 400

    group = _start(client, seed.admin, seed.teacher_user, seed.parent_user, is_group=True, title="Staff")
    assert group.status_code == 201
    assert len(group.json()["participant_ids"]) == 3


def test_cannot_message_yourself_only(client, seed):
    assert _start(client, seed.admin, seed.admin).status_code == 400


def test_participants_must_share_school(client, seed):
    response = _start(client, seed.admin, seed.admin_b)
    assert response.status_code == 404
