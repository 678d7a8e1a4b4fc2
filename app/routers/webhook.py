import json
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse

from app.config import settings
from app.logging_config import get_logger
from app.services.webhook_service import get_orchestrator

logger = get_logger("webhook")

router = APIRouter(tags=["webhook"])


async def parse_webhook_body(request: Request) -> Optional[dict]:
    """Decode the delivery tolerantly; returns None if it is not a JSON object."""
    raw = await request.body()
    for enc in ("utf-8", "latin-1"):
        try:
            data = json.loads(raw.decode(enc, errors="replace"))
        except ValueError:
            continue
        return data if isinstance(data, dict) else None
    return None


def process_webhook_delivery(payload: dict) -> None:
    """Detached post-acknowledgement processing; failures end up in the logs only."""
    try:
        get_orchestrator().process_delivery(payload)
    except Exception as e:
        logger.error(f"Webhook background processing failed: {e}", exc_info=True)


@router.get("/webhook")
def verify_webhook(
    mode: Optional[str] = Query(None, alias="hub.mode"),
    token: Optional[str] = Query(None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(None, alias="hub.challenge"),
):
    """Meta subscription handshake: echo the challenge as plain text."""
    expected = settings.whatsapp_verify_token
    if mode == "subscribe" and expected and token == expected:
        logger.info("Webhook verified")
        return PlainTextResponse(challenge or "")

    logger.warning(f"Webhook verification failed: mode={mode}")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Verification failed")


@router.post("/webhook")
async def receive_webhook(request: Request, background_tasks: BackgroundTasks):
    """Acknowledge immediately; message handling runs after the response is sent."""
    payload = await parse_webhook_body(request)
    if payload is None:
        logger.warning("Webhook delivery is not a JSON object, acknowledged without processing")
        return {"success": True}

    background_tasks.add_task(process_webhook_delivery, payload)
    return {"success": True}
