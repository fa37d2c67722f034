"""Conversation model: a thread between one customer and the operators."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Uuid, text
from sqlalchemy.orm import relationship

from app.constants.messaging import ConversationStatus
from app.db import Base
from app.models.mixins import TimestampMixin

OPEN_CONVERSATION_INDEX = "uq_conversations_one_open_per_customer"


class Conversation(Base, TimestampMixin):
    """
    At most one OPEN conversation per customer, enforced by a partial unique index.

    Entity resolution is read-then-write; the index is what makes the losing
    writer fail so it can re-read the winner's row.
    """

    __tablename__ = "conversations"

    __table_args__ = (
        Index(
            OPEN_CONVERSATION_INDEX,
            "customer_id",
            unique=True,
            postgresql_where=text("status = 'OPEN'"),
            sqlite_where=text("status = 'OPEN'"),
        ),
        Index("ix_conversations_last_message_at", "last_message_at"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    customer_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
    )
    status = Column(String(16), nullable=False, default=ConversationStatus.OPEN.value)
    last_message_at = Column(DateTime(timezone=True), nullable=True)

    customer = relationship("Customer", back_populates="conversations")
    messages = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="Message.created_at",
    )
