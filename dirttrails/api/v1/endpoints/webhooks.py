import logging

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from dirttrails.core.database import get_db
from dirttrails.schemas.payment import WebhookAck
from dirttrails.services.notifications import NotificationDispatcher, get_notification_dispatcher
from dirttrails.services.webhook import process_webhook

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/marzpay", response_model=WebhookAck, response_model_exclude_none=True)
async def marzpay_webhook(
    request: Request,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    # Always 200: a non-2xx makes MarzPay redeliver events we already handled or rejected.
    body = await request.body()
    signature = request.headers.get("x-marzpay-signature")
    try:
        result = await run_in_threadpool(process_webhook, db, body, signature)
    except Exception as exc:
        logger.exception("Webhook processing crashed: %s", exc)
        return {"success": False, "error": "Internal error"}

    if result.outcomes:
        await dispatcher.dispatch_all(result.outcomes)
    return result.as_response()
