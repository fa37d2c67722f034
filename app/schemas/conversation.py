"""API schemas for the operator console: conversation list, message pages, replies."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.constants.messaging import SenderType


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CamelModel(BaseModel):
    """snake_case attributes, camelCase JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class MessageRead(CamelModel):
    """A persisted message as served to the console and published on the realtime feed."""

    id: UUID
    conversation_id: UUID
    sender_type: str
    sender_id: Optional[UUID] = None
    message_type: str
    content: Optional[str] = None
    payload: Optional[dict[str, Any]] = None
    client_id: Optional[str] = None
    created_at: datetime

    @field_validator("created_at", mode="after")
    @classmethod
    def _created_at_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class MessagePage(CamelModel):
    """Cursor page: messages ascending by created_at; has_more if an older page may exist."""

    messages: list[MessageRead]
    has_more: bool


class ConversationListItem(CamelModel):
    """Sidebar row."""

    conversation_id: UUID
    customer_id: UUID
    external_user_id: str
    display_name: Optional[str] = None
    last_message: str = ""
    last_sender: str = SenderType.CUSTOMER.value
    last_message_at: Optional[datetime] = None

    @field_validator("last_message_at", mode="after")
    @classmethod
    def _last_message_at_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class ReplyRequest(CamelModel):
    """Operator reply. client_id correlates the optimistic echo with the stored row."""

    conversation_id: UUID
    text: str = Field(min_length=1)
    client_id: str = Field(min_length=1, max_length=64)

    @field_validator("text")
    @classmethod
    def _text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("text must not be blank")
        return value


class ReplyResponse(CamelModel):
    ok: bool = True
    message: MessageRead


class ReplyFailureResponse(CamelModel):
    error: str = "LINE send failed"
    detail: dict[str, Any]
    message: MessageRead
