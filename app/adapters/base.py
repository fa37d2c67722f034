"""
Platform adapter interface.

Adapters encapsulate platform-specific logic (webhook authentication,
event parsing, the reply and push calls) and expose normalized shapes to
the core.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from app.schemas.messaging import InboundMessage, PlatformResponse


class BasePlatformAdapter(ABC):
    """Contract for platform adapters. New platforms implement this interface."""

    @abstractmethod
    def verify_webhook(self, raw_body: bytes, signature: Optional[str]) -> bool:
        """Return True if the signature authenticates the exact raw body."""
        ...

    @abstractmethod
    def parse_webhook(self, raw_body: bytes) -> list[Any]:
        """
        Parse a verified body into its raw event list. Raise MalformedPayloadError
        if the body is not an object carrying an events list; entries themselves
        are not checked here.
        """
        ...

    @abstractmethod
    def to_inbound(self, raw_event: Any) -> Optional[InboundMessage]:
        """Normalize one raw event. Return None for entries the core does not ingest."""
        ...

    @abstractmethod
    def reply(self, reply_token: str, text: str) -> PlatformResponse:
        """Send text using a one-shot reply token."""
        ...

    @abstractmethod
    def push(self, recipient_id: str, text: str) -> PlatformResponse:
        """Send text to a recipient's persistent id."""
        ...

    def is_reply_token_rejected(self, response: PlatformResponse) -> bool:
        """True if a failed reply was refused because the token is invalid or expired."""
        return False
