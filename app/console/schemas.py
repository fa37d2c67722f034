"""Client-side views of API rows. Ids are strings so optimistic entries can use their client_id."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import field_validator

from app.constants.messaging import SenderType
from app.schemas.conversation import CamelModel


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ConsoleMessage(CamelModel):
    id: str
    conversation_id: str
    sender_type: str
    sender_id: Optional[str] = None
    message_type: str = "TEXT"
    content: Optional[str] = None
    payload: Optional[dict[str, Any]] = None
    client_id: Optional[str] = None
    created_at: datetime
    pending: bool = False

    @field_validator("id", "conversation_id", "sender_id", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Any) -> Any:
        return str(value) if value is not None else None

    @field_validator("created_at", mode="after")
    @classmethod
    def _created_at_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @property
    def failed(self) -> bool:
        """Stored reply whose platform delivery failed."""
        return isinstance(self.payload, dict) and self.payload.get("error") is not None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ConsoleMessage":
        return cls.model_validate(row)


class ConversationSummary(CamelModel):
    conversation_id: str
    customer_id: str
    external_user_id: str
    display_name: Optional[str] = None
    last_message: str = ""
    last_sender: str = SenderType.CUSTOMER.value
    last_message_at: Optional[datetime] = None

    @field_validator("conversation_id", "customer_id", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Any) -> Any:
        return str(value) if value is not None else None

    @field_validator("last_message_at", mode="after")
    @classmethod
    def _last_message_at_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)
