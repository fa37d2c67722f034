"""
Message store: append and cursor-paginate immutable messages.

append_message writes the row and advances the conversation's
last_message_at in one transaction, then publishes the committed row to
the realtime bus. created_at is strictly increasing per conversation so the
timestamp cursor never splits ties.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.constants.messaging import MessageType
from app.exceptions import PersistenceError
from app.models.message import Message
from app.models.mixins import utcnow
from app.realtime.bus import RealtimeBus
from app.schemas.conversation import MessageRead
from app.services.conversation_service import ConversationService

logger = logging.getLogger(__name__)

CREATED_AT_STEP = timedelta(microseconds=1)


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def message_to_row(message: Message) -> dict[str, Any]:
    """Serialize a stored message as published on the realtime feed and served by the API."""
    return MessageRead.model_validate(message).model_dump(mode="json", by_alias=True)


class MessageService:
    def __init__(self, db: Session, bus: Optional[RealtimeBus] = None) -> None:
        self.db = db
        self.bus = bus
        self._conversations = ConversationService(db)

    def append_message(
        self,
        conversation_id: UUID,
        *,
        sender_type: str,
        content: Optional[str],
        payload: Optional[dict[str, Any]] = None,
        sender_id: Optional[UUID] = None,
        message_type: str = MessageType.TEXT.value,
        client_id: Optional[str] = None,
    ) -> Message:
        """
        Insert a message and advance last_message_at atomically, then publish.

        Raises:
            IntegrityError: client_id already used in this conversation.
            PersistenceError: any other store failure (transaction rolled back).
        """
        try:
            created_at = self._next_created_at(conversation_id)
            message = Message(
                conversation_id=conversation_id,
                sender_type=sender_type,
                sender_id=sender_id,
                message_type=message_type,
                content=content,
                payload=payload,
                client_id=client_id,
                created_at=created_at,
            )
            self.db.add(message)
            self.db.flush()
            self._conversations.advance_last_message_at(conversation_id, created_at)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Message insert failed for conversation %s: %s", conversation_id, e)
            raise PersistenceError(str(e)) from e
        self.db.refresh(message)
        self._publish(message)
        return message

    def get_latest_message(self, conversation_id: UUID) -> Optional[Message]:
        return (
            self.db.query(Message)
            .filter(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.desc())
            .first()
        )

    def get_by_client_id(self, conversation_id: UUID, client_id: str) -> Optional[Message]:
        return (
            self.db.query(Message)
            .filter(
                Message.conversation_id == conversation_id,
                Message.client_id == client_id,
            )
            .first()
        )

    def list_messages_page(
        self,
        conversation_id: UUID,
        limit: int,
        before: Optional[datetime] = None,
    ) -> Tuple[List[Message], bool]:
        """
        The `limit` newest messages strictly older than `before`, ascending.

        Returns (messages, has_more) where has_more is True iff an even older
        message exists.
        """
        query = self.db.query(Message).filter(Message.conversation_id == conversation_id)
        if before is not None:
            query = query.filter(Message.created_at < _as_utc(before).astimezone(timezone.utc))
        rows = query.order_by(Message.created_at.desc()).limit(limit + 1).all()
        has_more = len(rows) > limit
        page = rows[:limit]
        page.reverse()
        return page, has_more

    def _next_created_at(self, conversation_id: UUID) -> datetime:
        now = utcnow()
        newest = (
            self.db.query(func.max(Message.created_at))
            .filter(Message.conversation_id == conversation_id)
            .scalar()
        )
        if newest is None:
            return now
        return max(now, _as_utc(newest) + CREATED_AT_STEP)

    def _publish(self, message: Message) -> None:
        if self.bus is None:
            return
        self.bus.publish(message_to_row(message))
