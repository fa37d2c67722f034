from uuid import UUID

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.db import get_db
from app.exceptions import ConversationNotFoundError
from app.models.conversation import Conversation
from app.realtime.bus import RealtimeBus
from app.services.conversation_service import ConversationService


def get_realtime_bus(request: Request) -> RealtimeBus:
    """FastAPI dependency returning the app's realtime bus."""
    return request.app.state.realtime_bus


def get_conversation_by_id(
    conversation_id: UUID,
    db: Session = Depends(get_db),
) -> Conversation:
    """FastAPI dependency to get a conversation by ID."""
    conversation = ConversationService(db).get_conversation(conversation_id)
    if conversation is None:
        raise ConversationNotFoundError(conversation_id)
    return conversation
