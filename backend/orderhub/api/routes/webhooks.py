"""Inbound webhooks from delivery platforms.

Mounted at the application root so platforms can be pointed at
``/webhook/<platform>`` without the API prefix.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from orderhub.core.errors import OrderHubError
from orderhub.core.rate_limit import limiter
from orderhub.db.session import DbSession
from orderhub.schemas.aggregator_order import WebhookResponse
from orderhub.services.delivery.registry import supported_platforms
from orderhub.services.webhook_service import WebhookProcessor

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/webhook/health")
def webhook_health():
    """Liveness check for platform dashboards."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "endpoints": [f"/webhook/{platform}" for platform in supported_platforms()],
    }


@router.post("/webhook/{platform}", response_model=WebhookResponse)
@limiter.limit("120/minute")
async def receive_webhook(request: Request, db: DbSession, platform: str):
    """Receive an order webhook and record it as a pending aggregator order.

    Redeliveries of an order already recorded answer 200 with
    ``is_duplicate: true`` so the platform stops retrying.
    """
    body = await request.body()
    try:
        # Database work stays off the event loop
        result = await run_in_threadpool(WebhookProcessor(db).process, platform, body, request.headers)
    except OrderHubError as e:
        logger.info(f"Webhook {platform} refused ({e.status_code}): {e.message}")
        return JSONResponse(status_code=e.status_code, content={"error": e.message})

    return WebhookResponse(order_id=result.order_id, is_duplicate=result.is_duplicate)
