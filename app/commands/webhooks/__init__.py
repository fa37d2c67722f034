"""Webhook command handlers (one per platform)."""

from app.commands.webhooks.line_command import LineWebhookCommand

__all__ = ["LineWebhookCommand"]
