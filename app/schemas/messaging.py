"""
Normalized message contracts between the platform adapter and the core.

Inbound events are converted into InboundMessage; outbound sends report a
DeliveryResult. Independent of the HTTP surface.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from app.constants.messaging import SendMethod


class InboundMessage(BaseModel):
    """Normalized inbound text message (adapter → core)."""

    external_user_id: str
    text: str
    message_id: Optional[str] = None
    reply_token: Optional[str] = None
    raw: dict[str, Any] = Field(default_factory=dict)


class PlatformResponse(BaseModel):
    """Outcome of one platform API call."""

    ok: bool
    status_code: Optional[int] = None
    body: dict[str, Any] = Field(default_factory=dict)


class DeliveryResult(BaseModel):
    """Discriminated delivery outcome: ok with a method, or not ok with an error."""

    ok: bool
    method: Optional[SendMethod] = None
    error: Optional[dict[str, Any]] = None

    @classmethod
    def delivered(cls, method: SendMethod) -> "DeliveryResult":
        return cls(ok=True, method=method)

    @classmethod
    def failed(cls, error: dict[str, Any]) -> "DeliveryResult":
        return cls(ok=False, error=error)


class IngestResult(BaseModel):
    """Per-request ingestion summary. The webhook still acks when failed > 0."""

    processed: int = 0
    skipped: int = 0
    failed: int = 0
