"""
Realtime change feed: "message inserted" notifications carrying the full row.

Consumers must tolerate at-least-once delivery and no cross-notification
ordering. Subscriptions are scoped to one conversation, or unscoped
(conversation_id=None) to receive every insert. Each subscription is an
explicit resource: close() it, or use it as a context manager.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional, Protocol

from app.config import Settings, get_settings

logger = logging.getLogger(__name__)

MessageRow = dict[str, Any]
MessageCallback = Callable[[MessageRow], None]


class Subscription:
    """Handle for one subscriber. close() is idempotent."""

    def __init__(
        self,
        conversation_id: Optional[str],
        callback: MessageCallback,
        on_close: Callable[["Subscription"], None],
    ) -> None:
        self.conversation_id = conversation_id
        self.callback = callback
        self._on_close = on_close
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._on_close(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class RealtimeBus(Protocol):
    def publish(self, row: MessageRow) -> None: ...

    def subscribe(
        self, callback: MessageCallback, conversation_id: Optional[str] = None
    ) -> Subscription: ...

    def close(self) -> None: ...


def _deliver(subscription: Subscription, row: MessageRow) -> None:
    try:
        subscription.callback(row)
    except Exception:
        logger.exception(
            "Realtime subscriber failed (conversation=%s, message=%s)",
            subscription.conversation_id or "*",
            row.get("id"),
        )


class InMemoryRealtimeBus:
    """Synchronous in-process fan-out. One failing subscriber never blocks the others."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: list[Subscription] = []

    def publish(self, row: MessageRow) -> None:
        conversation_id = str(row.get("conversationId"))
        with self._lock:
            targets = [
                s
                for s in self._subscriptions
                if s.conversation_id is None or s.conversation_id == conversation_id
            ]
        for subscription in targets:
            _deliver(subscription, row)

    def subscribe(
        self, callback: MessageCallback, conversation_id: Optional[str] = None
    ) -> Subscription:
        subscription = Subscription(
            str(conversation_id) if conversation_id is not None else None,
            callback,
            self._remove,
        )
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def subscriber_count(self, conversation_id: Optional[str] = None) -> int:
        with self._lock:
            return sum(
                1 for s in self._subscriptions if s.conversation_id == conversation_id
            )

    def close(self) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            subscription.close()

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)


def build_realtime_bus(settings: Optional[Settings] = None) -> RealtimeBus:
    """Build the configured bus. REALTIME_BACKEND=redis fans out across processes."""
    settings = settings or get_settings()
    backend = (settings.realtime_backend or "memory").lower()
    if backend == "redis":
        import redis

        from app.realtime.redis_bus import RedisRealtimeBus

        client = redis.Redis(host=settings.redis_host, port=settings.redis_port)
        return RedisRealtimeBus(client, namespace=settings.redis_namespace)
    if backend != "memory":
        raise ValueError(f"Unknown realtime backend: {settings.realtime_backend}")
    return InMemoryRealtimeBus()
