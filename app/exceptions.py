"""
Error taxonomy for the message pipeline.

Platform delivery failure is not an exception: it is the ok=False branch of
DeliveryResult, persisted as a visible transcript entry.
"""

from __future__ import annotations

from typing import Any, Optional


class MessagingError(Exception):
    """Base for all pipeline errors."""


class SignatureInvalidError(MessagingError):
    """Webhook signature missing or not matching the raw body."""


class MalformedPayloadError(MessagingError):
    """Verified webhook body could not be parsed as an event batch."""


class EntityResolutionConflictError(MessagingError):
    """Get-or-create kept losing uniqueness races past the retry budget."""

    def __init__(self, external_user_id: str, attempts: int) -> None:
        super().__init__(
            f"Could not resolve entities for {external_user_id!r} after {attempts} attempts"
        )
        self.external_user_id = external_user_id
        self.attempts = attempts


class DeliveryTokenExpiredError(MessagingError):
    """Reply token rejected as invalid/expired. Recovered by push fallback."""

    def __init__(self, error: Optional[dict[str, Any]] = None) -> None:
        super().__init__("Reply token invalid or expired")
        self.error = error or {}


class ConversationNotFoundError(MessagingError):
    def __init__(self, conversation_id: Any) -> None:
        super().__init__(f"Conversation not found: {conversation_id}")
        self.conversation_id = conversation_id


class PersistenceError(MessagingError):
    """A store write failed and was rolled back."""
