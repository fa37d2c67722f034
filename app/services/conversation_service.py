"""
Conversation reads, creation, and the guarded last_message_at advance.

advance_last_message_at is the only way last_message_at changes: a single
conditional UPDATE that ignores timestamps not newer than the stored one.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session, joinedload

from app.constants.messaging import ConversationStatus, SenderType
from app.models.conversation import Conversation
from app.models.customer import Customer
from app.models.message import Message
from app.schemas.conversation import ConversationListItem


class ConversationService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_conversation(self, conversation_id: UUID) -> Optional[Conversation]:
        return (
            self.db.query(Conversation)
            .options(joinedload(Conversation.customer))
            .filter(Conversation.id == conversation_id)
            .first()
        )

    def get_open_conversation(self, customer_id: UUID) -> Optional[Conversation]:
        """Most recently created OPEN conversation for the customer."""
        return (
            self.db.query(Conversation)
            .filter(
                Conversation.customer_id == customer_id,
                Conversation.status == ConversationStatus.OPEN.value,
            )
            .order_by(Conversation.created_at.desc())
            .first()
        )

    def count_open_conversations(self, customer_id: UUID) -> int:
        return (
            self.db.query(Conversation)
            .filter(
                Conversation.customer_id == customer_id,
                Conversation.status == ConversationStatus.OPEN.value,
            )
            .count()
        )

    def add_open_conversation(self, customer_id: UUID) -> Conversation:
        """Stage and flush an OPEN conversation. Raises IntegrityError if one already exists."""
        conversation = Conversation(
            customer_id=customer_id,
            status=ConversationStatus.OPEN.value,
        )
        self.db.add(conversation)
        self.db.flush()
        return conversation

    def advance_last_message_at(self, conversation_id: UUID, ts: datetime) -> bool:
        """
        Move last_message_at forward to ts. Never regresses.

        Runs inside the caller's transaction; returns True if the row changed.
        """
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        result = self.db.execute(
            update(Conversation)
            .where(
                Conversation.id == conversation_id,
                or_(
                    Conversation.last_message_at.is_(None),
                    Conversation.last_message_at < ts,
                ),
            )
            .values(last_message_at=ts)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    def list_conversation_summaries(self) -> List[ConversationListItem]:
        """Sidebar rows ordered by last_message_at descending, each with its newest message."""
        ranked = (
            self.db.query(
                Message.conversation_id.label("conversation_id"),
                Message.content.label("content"),
                Message.sender_type.label("sender_type"),
                func.row_number()
                .over(
                    partition_by=Message.conversation_id,
                    order_by=Message.created_at.desc(),
                )
                .label("rn"),
            )
            .subquery()
        )
        rows = (
            self.db.query(
                Conversation,
                Customer,
                ranked.c.content,
                ranked.c.sender_type,
            )
            .join(Customer, Customer.id == Conversation.customer_id)
            .outerjoin(
                ranked,
                (ranked.c.conversation_id == Conversation.id) & (ranked.c.rn == 1),
            )
            .order_by(
                Conversation.last_message_at.desc().nulls_last(),
                Conversation.created_at.desc(),
            )
            .all()
        )
        return [
            ConversationListItem(
                conversation_id=conversation.id,
                customer_id=customer.id,
                external_user_id=customer.external_user_id,
                display_name=customer.display_name,
                last_message=content or "",
                last_sender=sender_type or SenderType.CUSTOMER.value,
                last_message_at=conversation.last_message_at,
            )
            for conversation, customer, content, sender_type in rows
        ]
