"""
SidebarAggregator: conversation list kept current from the unscoped feed.

Each stored message updates its conversation's summary and moves it to the
top, unless it is not strictly newer than what is already shown. Like the
sync engine, the sidebar belongs to the thread that created it; feed rows from
other threads wait until process_feed(), which open() also calls.
"""

from __future__ import annotations

from typing import Any, List, Optional

from app.console.api_client import ConsoleApiClient
from app.console.feed import FeedInbox
from app.console.schemas import ConsoleMessage, ConversationSummary
from app.realtime.bus import RealtimeBus, Subscription


class SidebarAggregator:
    def __init__(self, api: ConsoleApiClient, bus: RealtimeBus) -> None:
        self.api = api
        self.bus = bus
        self.conversations: List[ConversationSummary] = []
        self._subscription: Optional[Subscription] = None
        self._feed = FeedInbox(self.apply_message)

    def open(self) -> None:
        self.close()
        self._subscription = self.bus.subscribe(self._feed.deliver)
        self.reload()
        self.process_feed()

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
        self._feed.clear()

    def process_feed(self) -> int:
        return self._feed.drain()

    def reload(self) -> None:
        self.conversations = [
            ConversationSummary.model_validate(row) for row in self.api.list_conversations()
        ]

    def apply_message(self, row: dict[str, Any]) -> bool:
        """Returns True if the list changed."""
        message = ConsoleMessage.from_row(row)
        index = next(
            (
                i
                for i, c in enumerate(self.conversations)
                if c.conversation_id == message.conversation_id
            ),
            None,
        )
        if index is None:
            # a conversation created since the last load
            self.reload()
            return True

        current = self.conversations[index]
        if current.last_message_at is not None and message.created_at <= current.last_message_at:
            return False

        updated = current.model_copy(
            update={
                "last_message": message.content or "",
                "last_sender": message.sender_type,
                "last_message_at": message.created_at,
            }
        )
        del self.conversations[index]
        self.conversations.insert(0, updated)
        return True
