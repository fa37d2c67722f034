"""
LINE Messaging API adapter.

Webhook authentication is base64(HMAC-SHA256(raw body, channel secret)) in
the X-Line-Signature header. Outbound calls go through a requests.Session
with a per-call timeout and a bounded retry on connection errors, timeouts,
429 and 5xx. Platform business errors (4xx) are returned, never retried.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
from typing import Any, Optional

import requests
from pydantic import ValidationError

from app.adapters.base import BasePlatformAdapter
from app.exceptions import MalformedPayloadError
from app.schemas.line import LineEvent, LineWebhookBody
from app.schemas.messaging import InboundMessage, PlatformResponse
from app.utils.retry import call_with_retry

logger = logging.getLogger(__name__)

REPLY_PATH = "/v2/bot/message/reply"
PUSH_PATH = "/v2/bot/message/push"
INVALID_REPLY_TOKEN = "invalid reply token"


class LineTransientError(Exception):
    """Retryable HTTP outcome (429 / 5xx)."""

    def __init__(self, response: requests.Response) -> None:
        super().__init__(f"HTTP {response.status_code}")
        self.response = response


def compute_signature(channel_secret: str, raw_body: bytes) -> str:
    digest = hmac.new(channel_secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def _response_body(response: requests.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {"message": response.text[:500] if response.text else ""}
    return data if isinstance(data, dict) else {"message": data}


class LineAdapter(BasePlatformAdapter):
    """LINE adapter: verify and parse webhooks, reply and push text messages."""

    def __init__(
        self,
        channel_secret: str,
        channel_access_token: Optional[str],
        *,
        api_base_url: str = "https://api.line.me",
        timeout_seconds: float = 10.0,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._channel_secret = channel_secret
        self._channel_access_token = channel_access_token
        self._api_base_url = api_base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._max_attempts = max_attempts
        self._backoff_seconds = backoff_seconds
        self._session = session or requests.Session()

    # -- inbound -----------------------------------------------------------

    def verify_webhook(self, raw_body: bytes, signature: Optional[str]) -> bool:
        if not signature:
            return False
        expected = compute_signature(self._channel_secret, raw_body)
        return hmac.compare_digest(expected, signature.strip())

    def parse_webhook(self, raw_body: bytes) -> list[Any]:
        try:
            data = json.loads(raw_body)
        except (ValueError, UnicodeDecodeError) as e:
            raise MalformedPayloadError(f"Invalid JSON body: {e}") from e
        if not isinstance(data, dict):
            raise MalformedPayloadError("Body must be a JSON object")
        try:
            body = LineWebhookBody.model_validate(data)
        except ValidationError as e:
            raise MalformedPayloadError(f"Invalid webhook body: {e}") from e
        return body.events

    def to_inbound(self, raw_event: Any) -> Optional[InboundMessage]:
        if not isinstance(raw_event, dict):
            return None
        event = LineEvent.model_validate(raw_event)
        if not event.is_text_message:
            return None
        if event.source is None or not event.source.user_id:
            return None
        return InboundMessage(
            external_user_id=event.source.user_id,
            text=event.message.text or "",
            message_id=event.message.id,
            reply_token=event.reply_token,
            raw=raw_event,
        )

    # -- outbound ----------------------------------------------------------

    def reply(self, reply_token: str, text: str) -> PlatformResponse:
        return self._post(
            REPLY_PATH,
            {"replyToken": reply_token, "messages": [{"type": "text", "text": text}]},
        )

    def push(self, recipient_id: str, text: str) -> PlatformResponse:
        return self._post(
            PUSH_PATH,
            {"to": recipient_id, "messages": [{"type": "text", "text": text}]},
        )

    def is_reply_token_rejected(self, response: PlatformResponse) -> bool:
        if response.ok:
            return False
        message = str(response.body.get("message", "")).lower()
        return INVALID_REPLY_TOKEN in message or "expired" in message

    def _post(self, path: str, payload: dict[str, Any]) -> PlatformResponse:
        url = f"{self._api_base_url}{path}"
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._channel_access_token or ''}",
        }

        def attempt() -> requests.Response:
            response = self._session.post(
                url, json=payload, headers=headers, timeout=self._timeout_seconds
            )
            if response.status_code == 429 or response.status_code >= 500:
                raise LineTransientError(response)
            return response

        try:
            response = call_with_retry(
                attempt,
                retry_on=(requests.ConnectionError, requests.Timeout, LineTransientError),
                max_attempts=self._max_attempts,
                backoff_seconds=self._backoff_seconds,
                description=f"LINE POST {path}",
            )
        except LineTransientError as e:
            return PlatformResponse(
                ok=False,
                status_code=e.response.status_code,
                body=_response_body(e.response),
            )
        except requests.RequestException as e:
            logger.error("LINE POST %s transport failure: %s", path, e)
            return PlatformResponse(
                ok=False, status_code=None, body={"message": f"transport error: {e}"}
            )

        if 200 <= response.status_code < 300:
            return PlatformResponse(ok=True, status_code=response.status_code)
        return PlatformResponse(
            ok=False, status_code=response.status_code, body=_response_body(response)
        )
