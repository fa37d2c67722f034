"""Message model: immutable transcript entry, ordered by store-assigned created_at."""

from __future__ import annotations

import uuid

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from app.constants.messaging import MessageType
from app.db import Base
from app.models.mixins import JSONPayload, utcnow


class Message(Base):
    """
    One row per inbound or outbound message. Never updated or deleted here.

    payload holds the raw platform event for inbound rows, or delivery
    metadata (sendMethod / error) for operator replies.
    """

    __tablename__ = "messages"

    __table_args__ = (
        UniqueConstraint(
            "conversation_id", "client_id", name="uq_messages_conversation_client_id"
        ),
        Index("ix_messages_conversation_id_created_at", "conversation_id", "created_at"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    conversation_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_type = Column(String(16), nullable=False)
    sender_id = Column(Uuid(as_uuid=True), nullable=True)
    message_type = Column(String(16), nullable=False, default=MessageType.TEXT.value)
    content = Column(Text, nullable=True)
    payload = Column(JSONPayload, nullable=True)
    client_id = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    conversation = relationship("Conversation", back_populates="messages")
