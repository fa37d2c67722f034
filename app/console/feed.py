"""
Hand-off for realtime rows delivered on a bus listener thread.

Console views mutate their lists only on the thread that created them.
Rows published on that thread are applied at once; rows arriving on any
other thread (the Redis listener, for one) wait in an inbox until the
owner calls drain().
"""

from __future__ import annotations

import queue
import threading
from typing import Any, Callable

from app.realtime.bus import MessageRow


class FeedInbox:
    def __init__(self, apply: Callable[[MessageRow], Any]) -> None:
        self._apply = apply
        self._owner = threading.get_ident()
        self._rows: queue.SimpleQueue = queue.SimpleQueue()

    def deliver(self, row: MessageRow) -> None:
        """Bus callback."""
        if threading.get_ident() == self._owner:
            self._apply(row)
        else:
            self._rows.put(row)

    @property
    def waiting(self) -> int:
        return self._rows.qsize()

    def drain(self) -> int:
        """Apply queued rows on the owner thread. Returns how many changed the view."""
        applied = 0
        while True:
            try:
                row = self._rows.get_nowait()
            except queue.Empty:
                return applied
            if self._apply(row):
                applied += 1

    def clear(self) -> None:
        while True:
            try:
                self._rows.get_nowait()
            except queue.Empty:
                return
