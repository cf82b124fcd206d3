"""
GitHub webhook receiver.

No user authentication: deliveries are verified by the X-Hub-Signature-256
HMAC inside the ingestor.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from commit_relay.api.deps import get_webhook_ingestor
from commit_relay.core.exceptions import WebhookError
from commit_relay.services.webhook_ingestor import WebhookIngestor

router = APIRouter(prefix="/webhook", tags=["webhook"])
logger = logging.getLogger(__name__)


@router.post("")
async def receive_github_webhook(
    request: Request,
    ingestor: WebhookIngestor = Depends(get_webhook_ingestor),
) -> JSONResponse:
    """Verify and ingest one GitHub webhook delivery."""
    payload = await request.body()

    try:
        ack = await ingestor.ingest(payload, request.headers)
    except WebhookError as e:
        return JSONResponse({"error": e.message}, status_code=e.status_code)
    except Exception as e:
        logger.exception(f"Webhook processing error: {e}")
        return JSONResponse(
            {"error": "Internal server error"},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    body: dict[str, Any] = {
        "message": "Webhook processed successfully",
        "event": ack.event,
        "received": ack.received,
        "stored": ack.stored,
        "failed": ack.failed,
    }
    return JSONResponse(body)
