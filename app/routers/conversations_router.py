"""Operator console API: conversation list, message history pages, replies."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.commands.reply.send_reply_command import SendReplyCommand
from app.config import get_settings
from app.db import get_db
from app.models.conversation import Conversation
from app.realtime.bus import RealtimeBus
from app.routers.utils.dependencies import get_conversation_by_id, get_realtime_bus
from app.schemas.conversation import (
    ConversationListItem,
    MessagePage,
    MessageRead,
    ReplyFailureResponse,
    ReplyRequest,
    ReplyResponse,
)
from app.services.conversation_service import ConversationService
from app.services.message_service import MessageService

conversations_router = APIRouter(prefix="/admin", tags=["Conversation"])

DELIVERY_FAILED_STATUS = 502


@conversations_router.get("/conversations", response_model=List[ConversationListItem])
def list_conversations(
    db: Session = Depends(get_db),
) -> List[ConversationListItem]:
    """List conversations, most recent activity first, with each one's last message."""
    return ConversationService(db).list_conversation_summaries()


@conversations_router.get(
    "/conversations/{conversation_id}/messages", response_model=MessagePage
)
def list_conversation_messages(
    limit: Optional[int] = Query(None),
    before: Optional[datetime] = Query(None),
    conversation: Conversation = Depends(get_conversation_by_id),
    db: Session = Depends(get_db),
) -> MessagePage:
    """Page of messages older than `before` (exclusive), ascending by created_at."""
    settings = get_settings()
    if limit is None:
        limit = settings.message_page_default_limit
    page_size = max(1, min(limit, settings.message_page_max_limit))
    messages, has_more = MessageService(db).list_messages_page(
        conversation.id, limit=page_size, before=before
    )
    return MessagePage(
        messages=[MessageRead.model_validate(m) for m in messages],
        has_more=has_more,
    )


@conversations_router.post(
    "/reply",
    response_model=ReplyResponse,
    responses={DELIVERY_FAILED_STATUS: {"model": ReplyFailureResponse}},
)
def send_reply(
    body: ReplyRequest,
    db: Session = Depends(get_db),
    bus: RealtimeBus = Depends(get_realtime_bus),
) -> Union[ReplyResponse, JSONResponse]:
    """
    Deliver an operator reply. The message is persisted whether or not the
    platform accepted it; a platform failure answers 502 with the detail.
    """
    outcome = SendReplyCommand(db, bus).execute(body)
    message = MessageRead.model_validate(outcome.message)
    if not outcome.ok:
        failure = ReplyFailureResponse(detail=outcome.delivery.error or {}, message=message)
        return JSONResponse(
            status_code=DELIVERY_FAILED_STATUS,
            content=failure.model_dump(mode="json", by_alias=True),
        )
    return ReplyResponse(message=message)
