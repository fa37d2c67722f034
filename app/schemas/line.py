"""
LINE Messaging API webhook payload schemas.

Matches the structure LINE posts to webhook endpoints. Only the fields the
ingestion path reads are typed; everything else is preserved as extra.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

MESSAGE_EVENT = "message"
TEXT_MESSAGE = "text"


class LineSource(BaseModel):
    """Event source (event.source)."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type: Optional[str] = None
    user_id: Optional[str] = Field(default=None, alias="userId")


class LineMessageContent(BaseModel):
    """Message content (event.message)."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    type: str
    text: Optional[str] = None


class LineEvent(BaseModel):
    """Single webhook event (events[i])."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type: str
    timestamp: Optional[int] = None
    webhook_event_id: Optional[str] = Field(default=None, alias="webhookEventId")
    reply_token: Optional[str] = Field(default=None, alias="replyToken")
    source: Optional[LineSource] = None
    message: Optional[LineMessageContent] = None

    @property
    def is_text_message(self) -> bool:
        return (
            self.type == MESSAGE_EVENT
            and self.message is not None
            and self.message.type == TEXT_MESSAGE
        )


class LineWebhookBody(BaseModel):
    """Webhook root object. Events stay raw so each one is validated in isolation."""

    model_config = ConfigDict(extra="allow")

    destination: Optional[str] = None
    events: list[Any] = Field(default_factory=list)
