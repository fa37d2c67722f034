"""Change feed for inserted Message rows."""

from app.realtime.bus import (
    InMemoryRealtimeBus,
    MessageCallback,
    RealtimeBus,
    Subscription,
    build_realtime_bus,
)

__all__ = [
    "InMemoryRealtimeBus",
    "MessageCallback",
    "RealtimeBus",
    "Subscription",
    "build_realtime_bus",
]
