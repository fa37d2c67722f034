"""Enumerations shared by the store, the HTTP surface and the console client."""

from enum import StrEnum


class ConversationStatus(StrEnum):
    """Lifecycle of a conversation. At most one OPEN per customer."""

    OPEN = "OPEN"
    CLOSED = "CLOSED"


class SenderType(StrEnum):
    """Who authored a message."""

    CUSTOMER = "CUSTOMER"
    ADMIN = "ADMIN"
    BOT = "BOT"


class MessageType(StrEnum):
    """Message kinds. Only TEXT is ingested and delivered today."""

    TEXT = "TEXT"
    IMAGE = "IMAGE"
    STICKER = "STICKER"
    FILE = "FILE"
    RICH = "RICH"


class SendMethod(StrEnum):
    """Delivery path that succeeded for an outbound message."""

    REPLY = "reply"
    PUSH = "push"
