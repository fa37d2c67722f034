"""
ClientSyncEngine: the operator's view of one conversation.

Keeps the loaded messages in ascending order, backfills older history on
demand, inserts optimistic echoes for sends, and reconciles every stored
row through apply_message(). The realtime callback and the REST
confirmation both feed apply_message() and may arrive in any order or more
than once; reconciliation is commutative and idempotent, so no locking is
needed. The engine must be driven from the thread that created it; feed rows
delivered on another thread are queued and applied by process_feed(), which
open(), load_more() and send() also call before returning.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

from app.console.api_client import ConsoleApiClient, ConsoleTransportError, ReplyOutcome
from app.console.feed import FeedInbox
from app.console.schemas import ConsoleMessage
from app.constants.messaging import MessageType, SenderType
from app.infra.logging_config import get_logger
from app.realtime.bus import RealtimeBus, Subscription

logger = get_logger("console.sync_engine")

INITIAL_LIMIT = 30
LOAD_MORE_LIMIT = 20
BOTTOM_THRESHOLD_PX = 50
TOP_THRESHOLD_PX = 20
SEND_FAILED_NOTICE = "Message could not be sent. Check your connection and try again."


def _new_client_id() -> str:
    return uuid.uuid4().hex


class ClientSyncEngine:
    def __init__(
        self,
        api: ConsoleApiClient,
        bus: RealtimeBus,
        *,
        on_notice: Optional[Callable[[str], None]] = None,
        initial_limit: int = INITIAL_LIMIT,
        load_more_limit: int = LOAD_MORE_LIMIT,
        client_id_factory: Callable[[], str] = _new_client_id,
    ) -> None:
        self.api = api
        self.bus = bus
        self.on_notice = on_notice
        self.initial_limit = initial_limit
        self.load_more_limit = load_more_limit
        self._client_id_factory = client_id_factory

        self.conversation_id: Optional[str] = None
        self.messages: List[ConsoleMessage] = []
        self.has_more = False
        self.at_bottom = True
        self._pending: set[str] = set()
        self._subscription: Optional[Subscription] = None
        self._loading_more = False
        self._scroll_requested = False
        self._feed = FeedInbox(self.apply_message)

    @property
    def pending_client_ids(self) -> frozenset[str]:
        return frozenset(self._pending)

    @property
    def is_loading_more(self) -> bool:
        return self._loading_more

    # -- lifecycle -----------------------------------------------------------

    def open(self, conversation_id: Any) -> None:
        """
        Switch to a conversation: release the previous feed, subscribe, load
        the newest page. Rows the feed delivers during the load are merged by id.
        """
        self.close()
        self.conversation_id = str(conversation_id)
        self._subscription = self.bus.subscribe(
            self._feed.deliver, conversation_id=self.conversation_id
        )
        try:
            page = self.api.list_messages(self.conversation_id, limit=self.initial_limit)
        except ConsoleTransportError:
            self.close()
            raise
        rows = page.get("messages", [])
        loaded = [ConsoleMessage.from_row(r) for r in rows]
        known = {m.id for m in loaded}
        # anything the feed delivered while the page was in flight is newer
        self.messages = loaded + [m for m in self.messages if m.id not in known]
        self.has_more = len(rows) == self.initial_limit
        self.at_bottom = True
        self._scroll_requested = True
        self.process_feed()

    def close(self) -> None:
        """Release the conversation's realtime subscription and drop its state."""
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
        self.conversation_id = None
        self.messages = []
        self.has_more = False
        self._pending.clear()
        self._loading_more = False
        self._scroll_requested = False
        self._feed.clear()

    def process_feed(self) -> int:
        """Apply feed rows queued by other threads. Returns how many changed the list."""
        return self._feed.drain()

    # -- history -------------------------------------------------------------

    def load_more(self) -> int:
        """Prepend up to load_more_limit older messages. Returns how many were added."""
        if (
            self._loading_more
            or not self.has_more
            or not self.messages
            or self.conversation_id is None
        ):
            return 0
        stored = [m.created_at for m in self.messages if not m.pending]
        if not stored:
            return 0
        oldest = min(stored)

        self._loading_more = True
        try:
            page = self.api.list_messages(
                self.conversation_id, limit=self.load_more_limit, before=oldest
            )
        finally:
            self._loading_more = False

        rows = page.get("messages", [])
        known = {m.id for m in self.messages}
        older = []
        for row in rows:
            message = ConsoleMessage.from_row(row)
            if message.id not in known:
                known.add(message.id)
                older.append(message)
        self.messages = older + self.messages
        self.has_more = len(rows) == self.load_more_limit
        self.process_feed()
        return len(older)

    # -- sending -------------------------------------------------------------

    def send(self, text: str) -> Optional[ReplyOutcome]:
        """
        Optimistically append the reply and submit it.

        Returns the API outcome, or None if nothing was sent (blank input,
        no open conversation) or the request failed in transport.
        """
        if self.conversation_id is None or not text or not text.strip():
            return None
        conversation_id = self.conversation_id
        client_id = self._client_id_factory()
        self._insert_optimistic(
            ConsoleMessage(
                id=client_id,
                conversation_id=conversation_id,
                sender_type=SenderType.ADMIN.value,
                message_type=MessageType.TEXT.value,
                content=text,
                client_id=client_id,
                created_at=datetime.now(timezone.utc),
                pending=True,
            )
        )

        try:
            outcome = self.api.send_reply(conversation_id, text, client_id)
        except ConsoleTransportError as e:
            logger.warning("Reply %s not delivered to the server: %s", client_id, e)
            if self._drop_optimistic(client_id):
                self._notify(SEND_FAILED_NOTICE)
            self.process_feed()
            return None

        if outcome.message is not None:
            self.apply_message(outcome.message)
        self.process_feed()
        return outcome

    # -- reconciliation ------------------------------------------------------

    def apply_message(self, row: dict[str, Any]) -> bool:
        """
        Reconcile one stored row into the list. Returns True if the list changed.

        Pending echo with the same client_id: replaced in place. Known id:
        ignored. Otherwise appended.
        """
        message = ConsoleMessage.from_row(row)
        if message.conversation_id != self.conversation_id:
            return False

        if message.client_id and message.client_id in self._pending:
            index = self._index_of_pending(message.client_id)
            self._pending.discard(message.client_id)
            if index is not None:
                self.messages[index] = message
                return True

        if any(m.id == message.id for m in self.messages):
            return False

        self.messages.append(message)
        if self.at_bottom:
            self._scroll_requested = True
        return True

    def _insert_optimistic(self, message: ConsoleMessage) -> None:
        if any(m.client_id == message.client_id for m in self.messages):
            # stored row already arrived
            return
        self._pending.add(message.client_id)
        self.messages.append(message)
        if self.at_bottom:
            self._scroll_requested = True

    def _drop_optimistic(self, client_id: str) -> bool:
        """Remove a still-unconfirmed echo. False if the stored row already replaced it."""
        if client_id not in self._pending:
            return False
        self._pending.discard(client_id)
        self.messages = [
            m for m in self.messages if not (m.pending and m.client_id == client_id)
        ]
        return True

    def _index_of_pending(self, client_id: str) -> Optional[int]:
        for index, message in enumerate(self.messages):
            if message.pending and message.client_id == client_id:
                return index
        return None

    def _notify(self, notice: str) -> None:
        if self.on_notice is not None:
            self.on_notice(notice)

    # -- scrolling -----------------------------------------------------------

    def update_scroll(self, scroll_height: float, scroll_top: float, client_height: float) -> None:
        """Track the viewport; near the top this triggers a backfill."""
        self.at_bottom = scroll_height - scroll_top - client_height <= BOTTOM_THRESHOLD_PX
        if scroll_top <= TOP_THRESHOLD_PX:
            self.load_more()

    def consume_scroll_request(self) -> bool:
        """True once after new content arrived while following the bottom."""
        requested = self._scroll_requested
        self._scroll_requested = False
        return requested
