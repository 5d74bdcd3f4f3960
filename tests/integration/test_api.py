"""Integration smoke tests for REST API (using mocked UoW via dependency override)."""
from __future__ import annotations

import logging
import uuid
from datetime import timedelta

import jwt
import pytest
from fastapi.testclient import TestClient

from rems_messaging.api.deps import get_uow
from rems_messaging.app import create_app
from rems_messaging.config import settings
from tests.conftest import T0, FakeUoW, make_message, make_user

BUYER = make_user("Dana Buyer")
AGENT = make_user("Sam Agent")
STRANGER = make_user("Eve Stranger")


def _make_token(user_id: uuid.UUID = BUYER.id) -> str:
    return jwt.encode(
        {"sub": str(user_id)},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


def _auth(user_id: uuid.UUID = BUYER.id) -> dict[str, str]:
    return {"Authorization": f"Bearer {_make_token(user_id)}"}


@pytest.fixture
def app_with_uow():
    app = create_app()
    uow = FakeUoW()
    uow.add_users(BUYER, AGENT, STRANGER)

    async def _override():
        yield uow

    app.dependency_overrides[get_uow] = _override
    return app, uow


@pytest.fixture
def client(app_with_uow):
    app, _ = app_with_uow
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def uow(app_with_uow):
    _, uow = app_with_uow
    return uow


def test_healthz(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_request_id_is_echoed(client):
    resp = client.get("/healthz", headers={"X-Request-ID": "abc123"})
    assert resp.headers["X-Request-ID"] == "abc123"

    generated = client.get("/healthz")
    assert generated.headers["X-Request-ID"]


def test_requests_are_timed(client, caplog):
    with caplog.at_level(logging.INFO, logger="rems_messaging.api.middleware.timing"):
        client.get("/api/v1/messages/conversations", headers=_auth())
        client.get("/healthz")

    lines = [r.getMessage() for r in caplog.records if r.name == "rems_messaging.api.middleware.timing"]
    assert len(lines) == 1
    assert lines[0].startswith("GET /api/v1/messages/conversations 200 ")


def test_list_conversations_empty(client):
    resp = client.get("/api/v1/messages/conversations", headers=_auth())
    assert resp.status_code == 200
    assert resp.json() == []

    unread = client.get("/api/v1/messages/unread", headers=_auth())
    assert unread.json() == {"unread_count": 0}


def test_list_conversations_shape_and_order(client, uow):
    older = uow.add_conversation(BUYER, AGENT, updated_at=T0)
    newer = uow.add_conversation(BUYER, STRANGER, updated_at=T0 + timedelta(hours=2))
    uow.add_messages(
        make_message(conversation_id=older.id, sender_id=AGENT.id),
        make_message(conversation_id=older.id, sender_id=AGENT.id),
        make_message(conversation_id=older.id, sender_id=BUYER.id),
    )

    resp = client.get("/api/v1/messages/conversations", headers=_auth())

    assert resp.status_code == 200
    data = resp.json()
    assert [c["id"] for c in data] == [str(newer.id), str(older.id)]
    assert [c["unread_count"] for c in data] == [0, 2]
    assert [p["name"] for p in data[1]["participants"]] == ["Dana Buyer", "Sam Agent"]
    assert data[1]["is_archived"] is False
    assert client.get("/api/v1/messages/unread", headers=_auth()).json() == {"unread_count": 2}


def test_start_conversation(client, uow):
    resp = client.post(
        "/api/v1/messages/conversations",
        headers=_auth(),
        json={"recipient_id": str(AGENT.id), "initial_message": "Is it still available?"},
    )

    assert resp.status_code == 201
    data = resp.json()
    assert data["last_message"]["content"] == "Is it still available?"
    assert data["last_message"]["sender_id"] == str(BUYER.id)
    assert data["unread_count"] == 0

    agent_view = client.get("/api/v1/messages/conversations", headers=_auth(AGENT.id)).json()
    assert agent_view[0]["unread_count"] == 1


def test_start_conversation_with_self_is_422(client):
    resp = client.post(
        "/api/v1/messages/conversations",
        headers=_auth(),
        json={"recipient_id": str(BUYER.id), "initial_message": "hi"},
    )
    assert resp.status_code == 422


def test_start_conversation_unknown_recipient_is_404(client):
    resp = client.post(
        "/api/v1/messages/conversations",
        headers=_auth(),
        json={"recipient_id": str(uuid.uuid4()), "initial_message": "hi"},
    )
    assert resp.status_code == 404


def test_send_message(client, uow):
    conv = uow.add_conversation(BUYER, AGENT)
    client_msg_id = str(uuid.uuid4())

    resp = client.post(
        f"/api/v1/messages/conversations/{conv.id}/messages",
        headers=_auth(),
        json={"client_msg_id": client_msg_id, "content": "hello world"},
    )
    again = client.post(
        f"/api/v1/messages/conversations/{conv.id}/messages",
        headers=_auth(),
        json={"client_msg_id": client_msg_id, "content": "hello world"},
    )

    assert resp.status_code == 201
    data = resp.json()
    assert data["content"] == "hello world"
    assert data["sender_id"] == str(BUYER.id)
    assert data["is_read"] is False and data["read_at"] is None
    assert again.json()["id"] == data["id"]
    assert len(uow.messages._messages) == 1


def test_reused_client_msg_id_is_409(client, uow):
    conv = uow.add_conversation(BUYER, AGENT)
    url = f"/api/v1/messages/conversations/{conv.id}/messages"
    client_msg_id = str(uuid.uuid4())

    client.post(url, headers=_auth(), json={"client_msg_id": client_msg_id, "content": "first"})
    resp = client.post(url, headers=_auth(), json={"client_msg_id": client_msg_id, "content": "second"})

    assert resp.status_code == 409


def test_send_blank_message_is_422(client, uow):
    conv = uow.add_conversation(BUYER, AGENT)
    resp = client.post(
        f"/api/v1/messages/conversations/{conv.id}/messages",
        headers=_auth(),
        json={"content": "   "},
    )
    assert resp.status_code == 422


def test_list_messages_marks_read(client, uow):
    conv = uow.add_conversation(BUYER, AGENT)
    uow.add_messages(
        make_message(conversation_id=conv.id, sender_id=AGENT.id, content="first", sent_at=T0),
        make_message(conversation_id=conv.id, sender_id=AGENT.id, content="second", sent_at=T0 + timedelta(minutes=1)),
    )

    resp = client.get(f"/api/v1/messages/conversations/{conv.id}/messages", headers=_auth())

    assert resp.status_code == 200
    body = resp.json()
    assert [m["content"] for m in body["items"]] == ["first", "second"]
    assert body["next_cursor"] is None
    assert client.get("/api/v1/messages/unread", headers=_auth()).json() == {"unread_count": 0}


def test_mark_read_and_archive(client, uow):
    conv = uow.add_conversation(BUYER, AGENT)
    uow.add_messages(make_message(conversation_id=conv.id, sender_id=AGENT.id))

    read = client.post(f"/api/v1/messages/conversations/{conv.id}/read", headers=_auth())
    archive = client.post(f"/api/v1/messages/conversations/{conv.id}/archive", headers=_auth())

    assert read.json() == {"marked": 1}
    assert archive.status_code == 204
    assert client.get("/api/v1/messages/conversations", headers=_auth()).json() == []
    listed = client.get("/api/v1/messages/conversations?include_archived=true", headers=_auth()).json()
    assert listed[0]["is_archived"] is True


def test_stranger_is_forbidden(client, uow):
    conv = uow.add_conversation(BUYER, AGENT)

    resp = client.get(f"/api/v1/messages/conversations/{conv.id}", headers=_auth(STRANGER.id))

    assert resp.status_code == 403


def test_missing_conversation_is_404(client):
    resp = client.get(f"/api/v1/messages/conversations/{uuid.uuid4()}", headers=_auth())
    assert resp.status_code == 404


def test_malformed_cursor_is_422(client, uow):
    conv = uow.add_conversation(BUYER, AGENT)
    resp = client.get(
        f"/api/v1/messages/conversations/{conv.id}/messages?cursor=bm9wZQ",
        headers=_auth(),
    )
    assert resp.status_code == 422


def test_unauthorized_returns_error(client):
    resp = client.get("/api/v1/messages/conversations")
    assert resp.status_code in (401, 403)


def test_invalid_token_returns_401(client):
    resp = client.get(
        "/api/v1/messages/conversations",
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert resp.status_code == 401
