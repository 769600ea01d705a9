import logging
from fastapi import APIRouter, Depends, Request, Header
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from billing_api.db.session import get_db
from billing_api.schemas.events import parse_event
from billing_api.services import stripe_service
from billing_api.services.webhook_handlers import dispatch_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["Billing Webhook"])


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None),
    db: Session = Depends(get_db)
):
    payload = await request.body()

    try:
        event = stripe_service.verify_webhook(payload, stripe_signature)
    except ValueError as e:
        return PlainTextResponse(f"Webhook Error: {str(e)}", status_code=400)

    # ✅ Verified from here on; always acknowledge
    try:
        typed_event = parse_event(event)
    except ValidationError as e:
        logger.error(f"Malformed webhook payload: type={event['type']}, id={event['id']}, errors={e.errors()}")
        return {"received": True}

    # Handlers do blocking database work; keep it off the event loop
    await run_in_threadpool(dispatch_event, typed_event, db)
    return {"received": True}
