"""
HTTP client for the operator console API.

Transport problems (connection errors, timeouts, unexpected statuses,
non-JSON bodies) raise ConsoleTransportError. A 502 from /admin/reply is a
platform delivery failure, not a transport error: the message was stored
and is returned in the outcome.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

import requests

from app.infra.logging_config import get_logger

logger = get_logger("console.api_client")

TIMEOUT_SECONDS = 10
DELIVERY_FAILED_STATUS = 502


class ConsoleTransportError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class ReplyOutcome:
    """Result of POST /admin/reply: ok, or delivery failed with the stored row attached."""

    ok: bool
    message: Optional[dict[str, Any]] = None
    detail: dict[str, Any] = field(default_factory=dict)


class ConsoleApiClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._session = session or requests.Session()

    def list_conversations(self) -> list[dict[str, Any]]:
        return self._json(self._request("GET", "/admin/conversations"))

    def list_messages(
        self,
        conversation_id: Any,
        limit: int,
        before: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """One page: {"messages": [...ascending...], "hasMore": bool}."""
        params: dict[str, Any] = {"limit": limit}
        if before is not None:
            params["before"] = before.isoformat()
        return self._json(
            self._request(
                "GET", f"/admin/conversations/{conversation_id}/messages", params=params
            )
        )

    def send_reply(self, conversation_id: Any, text: str, client_id: str) -> ReplyOutcome:
        payload = {
            "conversationId": str(conversation_id),
            "text": text,
            "clientId": client_id,
        }
        response = self._request(
            "POST",
            "/admin/reply",
            json=payload,
            accept_statuses=(DELIVERY_FAILED_STATUS,),
        )
        data = self._json(response)
        if response.status_code == DELIVERY_FAILED_STATUS:
            return ReplyOutcome(
                ok=False, message=data.get("message"), detail=data.get("detail") or {}
            )
        return ReplyOutcome(ok=bool(data.get("ok", True)), message=data.get("message"))

    def _request(
        self,
        method: str,
        path: str,
        accept_statuses: tuple[int, ...] = (),
        **kwargs: Any,
    ) -> requests.Response:
        url = f"{self._base_url}{path}"
        try:
            response = self._session.request(
                method, url, timeout=self._timeout_seconds, **kwargs
            )
        except requests.RequestException as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise ConsoleTransportError(str(e)) from e

        if response.status_code == 200 or response.status_code in accept_statuses:
            return response
        raise ConsoleTransportError(
            f"HTTP {response.status_code}: {response.text[:500] if response.text else 'no body'}",
            status_code=response.status_code,
        )

    @staticmethod
    def _json(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ConsoleTransportError(
                f"Invalid JSON: {e}", status_code=response.status_code
            ) from e
