"""Customer model: one row per messaging-platform account that wrote to us."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, String, Uuid
from sqlalchemy.orm import relationship

from app.db import Base
from app.models.mixins import TimestampMixin


class Customer(Base, TimestampMixin):
    """Created on the first inbound message from an unseen external user id. Never deleted here."""

    __tablename__ = "customers"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    external_user_id = Column(String(64), unique=True, nullable=False, index=True)
    display_name = Column(String(256), nullable=True)
    picture_url = Column(String(1024), nullable=True)

    conversations = relationship("Conversation", back_populates="customer")
