from app.console.api_client import ConsoleApiClient, ConsoleTransportError, ReplyOutcome
from app.console.sidebar import SidebarAggregator
from app.console.sync_engine import ClientSyncEngine

__all__ = [
    "ClientSyncEngine",
    "ConsoleApiClient",
    "ConsoleTransportError",
    "ReplyOutcome",
    "SidebarAggregator",
]
