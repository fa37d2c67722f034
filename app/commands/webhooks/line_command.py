"""
Command to handle LINE webhook deliveries.

Verifies the signature over the exact raw body, parses the event batch,
and ingests each text message event: resolve customer + OPEN conversation,
append a CUSTOMER message carrying the raw event, advance last_message_at.
Events are isolated from each other: one failing event is logged and
counted, and the rest of the batch is still processed.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.adapters.base import BasePlatformAdapter
from app.commands.base_line import BaseLineCommand
from app.constants.messaging import MessageType, SenderType
from app.exceptions import SignatureInvalidError
from app.models.message import Message
from app.realtime.bus import RealtimeBus
from app.schemas.messaging import InboundMessage, IngestResult
from app.services.entity_resolver import EntityResolver
from app.services.message_service import MessageService


class LineWebhookCommand(BaseLineCommand):
    """
    Command to ingest a LINE webhook request.
    Rejects bad signatures before touching the body; acks the batch even
    when individual events fail.
    """

    def __init__(
        self,
        db: Session,
        bus: Optional[RealtimeBus] = None,
        adapter: Optional[BasePlatformAdapter] = None,
    ) -> None:
        self.db = db
        self._adapter = adapter or self.get_line_adapter()
        self.entity_resolver = EntityResolver(db)
        self.message_service = MessageService(db, bus)
        self.logger = logging.getLogger(__name__)

    def execute(self, raw_body: bytes, signature: Optional[str]) -> IngestResult:
        """
        Execute the webhook: verify, parse, ingest each event.

        Args:
            raw_body: The exact request bytes the signature was computed over.
            signature: Value of the signature header, if any.

        Returns:
            IngestResult: processed / skipped / failed event counts.

        Raises:
            HTTPException: 503 if LINE is not configured or disabled.
            SignatureInvalidError: signature missing or mismatched; nothing was read.
            MalformedPayloadError: body is not a parseable event batch.
        """
        if self._adapter is None:
            raise HTTPException(
                status_code=503,
                detail="LINE integration is not configured or disabled",
            )
        if not self._adapter.verify_webhook(raw_body, signature):
            self.logger.warning("LINE webhook rejected: invalid signature")
            raise SignatureInvalidError("Invalid signature")

        events = self._adapter.parse_webhook(raw_body)
        result = IngestResult()
        for index, raw_event in enumerate(events):
            try:
                inbound = self._adapter.to_inbound(raw_event)
                if inbound is None:
                    result.skipped += 1
                    continue
                self.ingest(inbound)
                result.processed += 1
            except Exception:
                self.db.rollback()
                result.failed += 1
                self.logger.exception(
                    "LINE webhook event %d failed (user=%s)",
                    index,
                    _source_user_id(raw_event),
                )

        self.logger.info(
            "LINE webhook batch: %d processed, %d skipped, %d failed",
            result.processed,
            result.skipped,
            result.failed,
        )
        return result

    def ingest(self, inbound: InboundMessage) -> Message:
        """Resolve entities for one inbound message and append it to the transcript."""
        resolved = self.entity_resolver.resolve(inbound.external_user_id)
        return self.message_service.append_message(
            resolved.conversation.id,
            sender_type=SenderType.CUSTOMER.value,
            sender_id=resolved.customer.id,
            message_type=MessageType.TEXT.value,
            content=inbound.text,
            payload=inbound.raw,
        )


def _source_user_id(raw_event: Any) -> Optional[str]:
    if isinstance(raw_event, dict):
        source = raw_event.get("source")
        if isinstance(source, dict):
            return source.get("userId")
    return None
