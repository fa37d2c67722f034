"""Tests for LineAdapter."""

import json

import pytest
import requests

from app.adapters.line import LineAdapter, compute_signature
from app.exceptions import MalformedPayloadError
from tests.fixtures.line_fixtures import (
    CHANNEL_SECRET,
    http_response,
    invalid_reply_token_response,
    signed_body,
    text_event,
)


def test_verify_webhook_accepts_signature_over_raw_body(line_adapter):
    raw_body, signature = signed_body([text_event("U1", "hello")])
    assert line_adapter.verify_webhook(raw_body, signature) is True


def test_verify_webhook_rejects_wrong_secret(line_adapter):
    raw_body, signature = signed_body([text_event("U1", "hello")], secret="other")
    assert line_adapter.verify_webhook(raw_body, signature) is False


def test_verify_webhook_rejects_missing_signature(line_adapter):
    raw_body, _ = signed_body([])
    assert line_adapter.verify_webhook(raw_body, None) is False
    assert line_adapter.verify_webhook(raw_body, "") is False


def test_verify_webhook_is_byte_exact(line_adapter):
    """Re-serializing the same JSON differently must not verify."""
    raw_body, signature = signed_body([text_event("U1", "hello")])
    reformatted = json.dumps(json.loads(raw_body), indent=2).encode("utf-8")
    assert line_adapter.verify_webhook(reformatted, signature) is False


def test_compute_signature_is_base64_hmac_sha256():
    # known vector: HMAC-SHA256("key", "The quick brown fox jumps over the lazy dog")
    signature = compute_signature("key", b"The quick brown fox jumps over the lazy dog")
    assert signature == "97yD9DBThCSxMpjmqm+xQ+9NWaFJRhdZl0edvC0aPNg="


def test_parse_webhook_returns_raw_events(line_adapter):
    events = [text_event("U1", "hi"), {"type": "follow", "source": {"userId": "U1"}}]
    raw_body, _ = signed_body(events)
    assert line_adapter.parse_webhook(raw_body) == events


def test_parse_webhook_keeps_non_object_entries(line_adapter):
    events = [text_event("U1", "hi"), "garbage", None]
    raw_body, _ = signed_body(events)
    assert line_adapter.parse_webhook(raw_body) == events


@pytest.mark.parametrize("entry", ["garbage", None, 42, ["type", "message"]])
def test_to_inbound_skips_non_object_entries(line_adapter, entry):
    assert line_adapter.to_inbound(entry) is None


@pytest.mark.parametrize(
    "raw_body",
    [b"not json", b"[1, 2]", b'{"events": "nope"}', b"\xff\xfe"],
)
def test_parse_webhook_malformed(line_adapter, raw_body):
    with pytest.raises(MalformedPayloadError):
        line_adapter.parse_webhook(raw_body)


def test_to_inbound_text_message(line_adapter):
    event = text_event("Uabc", "hello there", reply_token="rt-1")
    inbound = line_adapter.to_inbound(event)
    assert inbound is not None
    assert inbound.external_user_id == "Uabc"
    assert inbound.text == "hello there"
    assert inbound.reply_token == "rt-1"
    assert inbound.raw == event


@pytest.mark.parametrize(
    "event",
    [
        {"type": "follow", "source": {"type": "user", "userId": "U1"}},
        {
            "type": "message",
            "source": {"type": "user", "userId": "U1"},
            "message": {"id": "1", "type": "sticker", "packageId": "1", "stickerId": "2"},
        },
        {"type": "message", "source": {"type": "group"}, "message": {"type": "text", "text": "x"}},
    ],
)
def test_to_inbound_skips_non_text_and_anonymous_events(line_adapter, event):
    assert line_adapter.to_inbound(event) is None


def test_reply_posts_token_and_text(line_adapter, line_session):
    result = line_adapter.reply("rt-1", "thanks")
    assert result.ok is True
    url = line_session.post.call_args.args[0]
    kwargs = line_session.post.call_args.kwargs
    assert url == "https://api.line.me/v2/bot/message/reply"
    assert kwargs["json"] == {
        "replyToken": "rt-1",
        "messages": [{"type": "text", "text": "thanks"}],
    }
    assert kwargs["headers"]["Authorization"] == "Bearer test-access-token"
    assert kwargs["timeout"] == 10.0


def test_push_posts_recipient(line_adapter, line_session):
    line_adapter.push("Uabc", "hello")
    assert line_session.post.call_args.args[0].endswith("/v2/bot/message/push")
    assert line_session.post.call_args.kwargs["json"]["to"] == "Uabc"


def test_client_error_is_returned_not_retried(line_adapter, line_session):
    line_session.post.return_value = invalid_reply_token_response()
    result = line_adapter.reply("expired", "hi")
    assert result.ok is False
    assert result.status_code == 400
    assert result.body == {"message": "Invalid reply token"}
    assert line_session.post.call_count == 1
    assert line_adapter.is_reply_token_rejected(result) is True


def test_other_client_error_is_not_token_rejection(line_adapter, line_session):
    line_session.post.return_value = http_response(
        400, {"message": "The request body has 1 error(s)"}
    )
    result = line_adapter.reply("rt", "hi")
    assert result.ok is False
    assert line_adapter.is_reply_token_rejected(result) is False


def test_server_error_is_retried_then_returned(line_adapter, line_session):
    line_session.post.return_value = http_response(500, {"message": "boom"})
    result = line_adapter.push("U1", "hi")
    assert result.ok is False
    assert result.status_code == 500
    assert line_session.post.call_count == 2


def test_transient_error_then_success(line_adapter, line_session):
    line_session.post.side_effect = [
        requests.ConnectionError("reset"),
        http_response(200, {}),
    ]
    result = line_adapter.push("U1", "hi")
    assert result.ok is True
    assert line_session.post.call_count == 2


def test_timeout_exhausts_attempts(line_adapter, line_session):
    line_session.post.side_effect = requests.Timeout("slow")
    result = line_adapter.push("U1", "hi")
    assert result.ok is False
    assert result.status_code is None
    assert "transport error" in result.body["message"]
    assert line_session.post.call_count == 2


def test_custom_api_base_url(line_session):
    adapter = LineAdapter(
        CHANNEL_SECRET,
        "token",
        api_base_url="http://line-mock:8080/",
        session=line_session,
    )
    adapter.push("U1", "hi")
    assert line_session.post.call_args.args[0] == "http://line-mock:8080/v2/bot/message/push"
