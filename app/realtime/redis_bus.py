"""
Redis pub/sub implementation of the realtime bus.

Every insert is published twice: on the global channel and on the
conversation channel. Each subscription owns a PubSub and a listener
thread that stop together on close().
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import redis

from app.realtime.bus import MessageCallback, MessageRow, Subscription, _deliver

logger = logging.getLogger(__name__)


class RedisRealtimeBus:
    def __init__(self, client: redis.Redis, namespace: str = "linedesk") -> None:
        self._client = client
        self._namespace = namespace
        self._listeners: dict[int, tuple[Any, Any]] = {}

    def global_channel(self) -> str:
        return f"{self._namespace}:messages"

    def conversation_channel(self, conversation_id: str) -> str:
        return f"{self._namespace}:messages:{conversation_id}"

    def publish(self, row: MessageRow) -> None:
        data = json.dumps(row, default=str)
        try:
            self._client.publish(self.global_channel(), data)
            self._client.publish(
                self.conversation_channel(str(row.get("conversationId"))), data
            )
        except redis.RedisError as e:
            # the row is already committed; subscribers can backfill from the API
            logger.error("Realtime publish failed for message %s: %s", row.get("id"), e)

    def subscribe(
        self, callback: MessageCallback, conversation_id: Optional[str] = None
    ) -> Subscription:
        channel = (
            self.conversation_channel(str(conversation_id))
            if conversation_id is not None
            else self.global_channel()
        )
        subscription = Subscription(
            str(conversation_id) if conversation_id is not None else None,
            callback,
            self._stop,
        )

        def handler(message: dict[str, Any]) -> None:
            try:
                row = json.loads(message["data"])
            except (TypeError, ValueError):
                logger.warning("Dropping undecodable realtime payload on %s", channel)
                return
            _deliver(subscription, row)

        pubsub = self._client.pubsub(ignore_subscribe_messages=True)
        pubsub.subscribe(**{channel: handler})
        thread = pubsub.run_in_thread(sleep_time=0.05, daemon=True)
        self._listeners[id(subscription)] = (pubsub, thread)
        return subscription

    def close(self) -> None:
        for pubsub, thread in list(self._listeners.values()):
            thread.stop()
            pubsub.close()
        self._listeners.clear()

    def _stop(self, subscription: Subscription) -> None:
        listener = self._listeners.pop(id(subscription), None)
        if listener is None:
            return
        pubsub, thread = listener
        thread.stop()
        pubsub.close()
