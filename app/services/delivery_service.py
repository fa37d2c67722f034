"""
DeliveryService: send text to the platform, reply token first, push as fallback.

Thin synchronous adapter over two outbound calls. A reply refused because
the token is invalid/expired falls back to exactly one push; any other
reply failure is returned as-is (fail fast). No retries of its own beyond
the adapter's transport policy.
"""

from __future__ import annotations

import logging
from typing import Optional

from app.adapters.base import BasePlatformAdapter
from app.constants.messaging import SendMethod
from app.exceptions import DeliveryTokenExpiredError
from app.schemas.messaging import DeliveryResult, PlatformResponse

logger = logging.getLogger(__name__)


class DeliveryService:
    def __init__(self, adapter: BasePlatformAdapter) -> None:
        self.adapter = adapter

    def send_with_fallback(
        self,
        recipient_id: str,
        text: str,
        reply_token: Optional[str] = None,
    ) -> DeliveryResult:
        if reply_token:
            try:
                return self._send_reply(reply_token, text)
            except DeliveryTokenExpiredError as e:
                logger.warning(
                    "Reply token rejected for %s, falling back to push: %s",
                    recipient_id,
                    e.error,
                )
        return self._send_push(recipient_id, text)

    def _send_reply(self, reply_token: str, text: str) -> DeliveryResult:
        response = self.adapter.reply(reply_token, text)
        if response.ok:
            return DeliveryResult.delivered(SendMethod.REPLY)
        if self.adapter.is_reply_token_rejected(response):
            raise DeliveryTokenExpiredError(response.body)
        logger.error("Reply failed (status=%s): %s", response.status_code, response.body)
        return DeliveryResult.failed(_error_detail(SendMethod.REPLY, response))

    def _send_push(self, recipient_id: str, text: str) -> DeliveryResult:
        response = self.adapter.push(recipient_id, text)
        if response.ok:
            return DeliveryResult.delivered(SendMethod.PUSH)
        logger.error(
            "Push to %s failed (status=%s): %s",
            recipient_id,
            response.status_code,
            response.body,
        )
        return DeliveryResult.failed(_error_detail(SendMethod.PUSH, response))


def _error_detail(method: SendMethod, response: PlatformResponse) -> dict:
    return {
        "method": method.value,
        "statusCode": response.status_code,
        **response.body,
    }
