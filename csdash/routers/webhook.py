"""Webhook receiver for externally pushed sessions."""
from __future__ import annotations

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Header
from fastapi.responses import JSONResponse

from csdash import config
from csdash.models import Session, WebhookAck

logger = logging.getLogger("csdash.webhook")

webhook_router = APIRouter(prefix="/api/webhook", tags=["webhook"])


def _secret_matches(provided: Optional[str]) -> bool:
    if not config.WEBHOOK_SECRET:
        return True
    return hmac.compare_digest((provided or "").encode(), config.WEBHOOK_SECRET.encode())


@webhook_router.post("/session")
async def receive_session(
    session: Session,
    x_webhook_secret: Optional[str] = Header(default=None),
):
    """Validate and acknowledge one pushed session."""
    if not _secret_matches(x_webhook_secret):
        logger.warning("Rejected webhook delivery with a bad secret")
        return JSONResponse(status_code=401, content={"error": "Invalid webhook secret"})
    logger.info(
        "Received session %s (%d turns, %d tools)",
        session.sessionId,
        len(session.turns),
        len(session.tools),
    )
    return WebhookAck(sessionId=session.sessionId)
