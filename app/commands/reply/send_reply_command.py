"""
Command to deliver an operator reply and record it in the transcript.

Loads the conversation, recovers the reply token from the newest message's
payload, delivers via DeliveryService, then persists an ADMIN message either
way: payload.sendMethod on success, payload.error on failure. A failed send
is kept as a visible, explained transcript entry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.adapters.base import BasePlatformAdapter
from app.commands.base_line import BaseLineCommand
from app.constants.messaging import MessageType, SenderType
from app.exceptions import ConversationNotFoundError, PersistenceError
from app.models.message import Message
from app.realtime.bus import RealtimeBus
from app.schemas.conversation import ReplyRequest
from app.schemas.messaging import DeliveryResult
from app.services.conversation_service import ConversationService
from app.services.delivery_service import DeliveryService
from app.services.message_service import MessageService

REPLY_TOKEN_KEY = "replyToken"


@dataclass(frozen=True)
class ReplyOutcome:
    delivery: DeliveryResult
    message: Message
    duplicate: bool = False

    @property
    def ok(self) -> bool:
        return self.delivery.ok


class SendReplyCommand(BaseLineCommand):
    """
    Command to send an operator reply through the platform.
    Idempotent per (conversation, client_id): a repeated request returns
    the stored outcome without sending again.
    """

    def __init__(
        self,
        db: Session,
        bus: Optional[RealtimeBus] = None,
        adapter: Optional[BasePlatformAdapter] = None,
    ) -> None:
        self.db = db
        self._adapter = adapter or self.get_line_adapter()
        self.conversation_service = ConversationService(db)
        self.message_service = MessageService(db, bus)
        self.logger = logging.getLogger(__name__)

    def execute(self, body: ReplyRequest) -> ReplyOutcome:
        """
        Deliver the reply and persist the resulting ADMIN message.

        Args:
            body: conversation id, text, and the client-generated correlation id.

        Returns:
            ReplyOutcome: delivery result plus the persisted message.

        Raises:
            HTTPException: 503 if LINE is not configured or disabled.
            ConversationNotFoundError: unknown conversation id.
            PersistenceError: the message could not be stored.
        """
        if self._adapter is None:
            raise HTTPException(
                status_code=503,
                detail="LINE integration is not configured or disabled",
            )
        conversation = self.conversation_service.get_conversation(body.conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(body.conversation_id)

        existing = self.message_service.get_by_client_id(conversation.id, body.client_id)
        if existing is not None:
            self.logger.info(
                "Reply %s already recorded for conversation %s; not resending",
                body.client_id,
                conversation.id,
            )
            return _outcome_from_message(existing)

        reply_token = self._recover_reply_token(conversation.id)
        delivery = DeliveryService(self._adapter).send_with_fallback(
            conversation.customer.external_user_id,
            body.text,
            reply_token,
        )
        if delivery.ok:
            payload: dict[str, Any] = {"sendMethod": delivery.method.value}
        else:
            payload = {"error": delivery.error}

        try:
            message = self.message_service.append_message(
                conversation.id,
                sender_type=SenderType.ADMIN.value,
                message_type=MessageType.TEXT.value,
                content=body.text,
                payload=payload,
                client_id=body.client_id,
            )
        except IntegrityError as e:
            # a concurrent request with the same client_id stored first
            existing = self.message_service.get_by_client_id(conversation.id, body.client_id)
            if existing is None:
                raise PersistenceError(str(e)) from e
            return _outcome_from_message(existing)

        return ReplyOutcome(delivery=delivery, message=message)

    def _recover_reply_token(self, conversation_id) -> Optional[str]:
        latest = self.message_service.get_latest_message(conversation_id)
        if latest is None or not isinstance(latest.payload, dict):
            return None
        return latest.payload.get(REPLY_TOKEN_KEY)


def _outcome_from_message(message: Message) -> ReplyOutcome:
    payload = message.payload if isinstance(message.payload, dict) else {}
    if payload.get("error") is not None:
        delivery = DeliveryResult.failed(payload["error"])
    else:
        delivery = DeliveryResult(ok=True, method=payload.get("sendMethod"))
    return ReplyOutcome(delivery=delivery, message=message, duplicate=True)
