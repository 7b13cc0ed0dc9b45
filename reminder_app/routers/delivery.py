"""Delivery callback router, invoked by the delay queue at fire time."""
import json
import logging
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from reminder_app.config import Settings, get_settings
from reminder_app.delay_queue.signature import verify_signature
from reminder_app.dependencies import get_delivery_dispatcher
from reminder_app.services.delivery_dispatcher import DeliveryDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Delivery"])


def _retried_count(raw) -> int:
    try:
        return max(int(raw), 0)
    except (TypeError, ValueError):
        return 0


@router.post("/reminders/deliver")
async def deliver_reminder(
    request: Request,
    settings: Settings = Depends(get_settings),
    dispatcher: DeliveryDispatcher = Depends(get_delivery_dispatcher),
):
    """
    Deliver a due reminder.

    503 asks the delay queue to retry (transient transport failure);
    every other outcome is 200 so the queue stops retrying.
    """
    body = await request.body()

    if not verify_signature(body, request.headers.get("upstash-signature"), settings):
        logger.warning("Rejected delivery callback with invalid signature")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    try:
        payload = json.loads(body or b"{}")
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON body")

    reminder_id = payload.get("reminderId") if isinstance(payload, dict) else None
    if not reminder_id or not isinstance(reminder_id, str):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing reminderId")

    outcome = await dispatcher.dispatch(
        reminder_id,
        job_id=request.headers.get("upstash-message-id"),
        retried=_retried_count(request.headers.get("upstash-retried")),
    )
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE if outcome.retryable else status.HTTP_200_OK
    return JSONResponse(status_code=status_code, content=outcome.to_dict())
