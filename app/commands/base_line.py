"""
Base command for LINE-related operations.

Provides a shared way to obtain a configured LineAdapter for use across
webhook and reply commands.
"""

from __future__ import annotations

from app.adapters.line import LineAdapter
from app.config import get_settings


class BaseLineCommand:
    """
    Base for LINE-related commands.
    Provides a shared way to obtain a configured LineAdapter.
    """

    @staticmethod
    def get_line_adapter() -> LineAdapter | None:
        """Return configured LineAdapter or None if LINE is disabled or has no channel secret."""
        settings = get_settings()
        if not settings.line_enabled or not settings.line_channel_secret:
            return None
        return LineAdapter(
            channel_secret=settings.line_channel_secret,
            channel_access_token=settings.line_channel_access_token,
            api_base_url=settings.line_api_base_url,
            timeout_seconds=settings.delivery_timeout_seconds,
            max_attempts=settings.delivery_max_attempts,
            backoff_seconds=settings.delivery_retry_backoff_seconds,
        )
