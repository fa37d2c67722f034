"""Tests for the operator console routes."""

from datetime import datetime
from uuid import uuid4

import pytest

from app.models.message import Message
from tests.fixtures.line_fixtures import (
    http_response,
    invalid_reply_token_response,
    posted_paths,
)


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_list_conversations_camel_case(client, setup_conversation, setup_customer):
    resp = client.get("/admin/conversations")
    assert resp.status_code == 200
    (item,) = resp.json()
    assert item == {
        "conversationId": str(setup_conversation.id),
        "customerId": str(setup_customer.id),
        "externalUserId": setup_customer.external_user_id,
        "displayName": setup_customer.display_name,
        "lastMessage": "",
        "lastSender": "CUSTOMER",
        "lastMessageAt": None,
    }


def test_messages_default_page(client, setup_conversation, add_messages):
    messages = add_messages(setup_conversation, 35)
    resp = client.get(f"/admin/conversations/{setup_conversation.id}/messages")
    assert resp.status_code == 200
    data = resp.json()
    assert data["hasMore"] is True
    assert [m["id"] for m in data["messages"]] == [str(m.id) for m in messages[-30:]]
    first = data["messages"][0]
    assert set(first) >= {"id", "conversationId", "senderType", "content", "payload", "clientId", "createdAt"}


def test_messages_limit_is_clamped(client, setup_conversation, add_messages):
    add_messages(setup_conversation, 3)
    resp = client.get(
        f"/admin/conversations/{setup_conversation.id}/messages", params={"limit": 1000}
    )
    assert resp.status_code == 200
    assert len(resp.json()["messages"]) == 3
    assert resp.json()["hasMore"] is False


@pytest.mark.parametrize("limit", [0, -5])
def test_messages_limit_below_one_is_clamped(client, setup_conversation, add_messages, limit):
    messages = add_messages(setup_conversation, 3)
    resp = client.get(
        f"/admin/conversations/{setup_conversation.id}/messages", params={"limit": limit}
    )
    assert resp.status_code == 200
    data = resp.json()
    assert [m["id"] for m in data["messages"]] == [str(messages[-1].id)]
    assert data["hasMore"] is True


def test_messages_unknown_conversation(client, db):
    resp = client.get(f"/admin/conversations/{uuid4()}/messages")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Conversation not found"}


def test_scroll_back_fifty_messages(client, setup_conversation, add_messages):
    """Load 30, then 20 older with before = oldest loaded: 50 ascending, no duplicates."""
    add_messages(setup_conversation, 60)
    url = f"/admin/conversations/{setup_conversation.id}/messages"
    first = client.get(url, params={"limit": 30}).json()
    older = client.get(
        url, params={"limit": 20, "before": first["messages"][0]["createdAt"]}
    ).json()

    combined = older["messages"] + first["messages"]
    ids = [m["id"] for m in combined]
    stamps = [datetime.fromisoformat(m["createdAt"]) for m in combined]
    assert len(combined) == 50
    assert len(set(ids)) == 50
    assert stamps == sorted(stamps)
    assert len(set(stamps)) == 50
    assert older["hasMore"] is True


def test_reply_success(client, db, use_line_adapter, line_session, setup_conversation, add_messages):
    add_messages(setup_conversation, 1, reply_token="rt-fresh")
    resp = client.post(
        "/admin/reply",
        json={
            "conversationId": str(setup_conversation.id),
            "text": "Thanks for reaching out",
            "clientId": "c-100",
        },
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["ok"] is True
    assert data["message"]["clientId"] == "c-100"
    assert data["message"]["senderType"] == "ADMIN"
    assert data["message"]["payload"] == {"sendMethod": "reply"}
    assert posted_paths(line_session) == ["reply"]


def test_reply_falls_back_to_push(client, db, use_line_adapter, line_session, setup_conversation, add_messages):
    add_messages(setup_conversation, 1, reply_token="rt-stale")
    line_session.post.side_effect = [invalid_reply_token_response(), http_response(200, {})]
    resp = client.post(
        "/admin/reply",
        json={"conversationId": str(setup_conversation.id), "text": "hi", "clientId": "c-2"},
    )
    assert resp.status_code == 200
    assert resp.json()["message"]["payload"] == {"sendMethod": "push"}
    stored = db.query(Message).filter_by(client_id="c-2").one()
    assert stored.payload == {"sendMethod": "push"}


def test_reply_delivery_failure(client, db, app_bus, use_line_adapter, line_session, setup_conversation, add_messages):
    add_messages(setup_conversation, 1, reply_token="rt-stale")
    line_session.post.side_effect = [
        invalid_reply_token_response(),
        http_response(400, {"message": "Failed to send messages"}),
    ]
    received = []
    app_bus.subscribe(received.append, conversation_id=setup_conversation.id)
    resp = client.post(
        "/admin/reply",
        json={"conversationId": str(setup_conversation.id), "text": "hi", "clientId": "c-3"},
    )
    assert resp.status_code == 502
    data = resp.json()
    assert data["error"] == "LINE send failed"
    assert data["detail"]["method"] == "push"
    assert data["detail"]["message"] == "Failed to send messages"
    assert data["message"]["clientId"] == "c-3"
    assert data["message"]["payload"]["error"] == data["detail"]

    transcript = client.get(f"/admin/conversations/{setup_conversation.id}/messages").json()
    assert transcript["messages"][-1]["clientId"] == "c-3"
    assert received[-1]["id"] == data["message"]["id"]


def test_reply_unknown_conversation(client, db, use_line_adapter):
    resp = client.post(
        "/admin/reply",
        json={"conversationId": str(uuid4()), "text": "hi", "clientId": "c"},
    )
    assert resp.status_code == 404
    assert resp.json() == {"error": "Conversation not found"}


def test_reply_rejects_blank_text(client, db, use_line_adapter, line_session, setup_conversation):
    resp = client.post(
        "/admin/reply",
        json={"conversationId": str(setup_conversation.id), "text": "   ", "clientId": "c"},
    )
    assert resp.status_code == 422
    line_session.post.assert_not_called()
