"""Operator reply commands."""

from app.commands.reply.send_reply_command import ReplyOutcome, SendReplyCommand

__all__ = ["ReplyOutcome", "SendReplyCommand"]
