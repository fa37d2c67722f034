"""
Webhook routes for inbound chat platform deliveries.

The platform POSTs signed event batches here; we verify against the raw
bytes, ingest, and return 200 {"ok": true} even if some events were
skipped or failed.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.commands.webhooks.line_command import LineWebhookCommand
from app.db import get_db
from app.realtime.bus import RealtimeBus
from app.routers.utils.dependencies import get_realtime_bus

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

SIGNATURE_HEADERS = ("X-Line-Signature", "X-Signature")


@router.post("/line")
async def line_webhook(
    request: Request,
    db: Session = Depends(get_db),
    bus: RealtimeBus = Depends(get_realtime_bus),
) -> dict[str, bool]:
    """Receive LINE webhook events. 401 on bad signature, 400 on unparseable body."""
    raw_body = await request.body()
    signature = next(
        (request.headers[h] for h in SIGNATURE_HEADERS if h in request.headers),
        None,
    )
    LineWebhookCommand(db, bus).execute(raw_body, signature)
    return {"ok": True}
