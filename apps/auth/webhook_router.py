import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlmodel import Session

from config import settings
from database import get_session
from apps.auth.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook", tags=["webhook"])

def get_subscription_service(session: Session = Depends(get_session)) -> SubscriptionService:
    return SubscriptionService(session)

@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None),
    service: SubscriptionService = Depends(get_subscription_service)
):
    # Plan changes only come from Stripe while subscriptions are switched on
    if not settings.ENABLE_SUBSCRIPTION:
        return {"status": "ignored"}
    if not stripe_signature:
        raise HTTPException(status_code=400, detail="Missing Stripe-Signature header")

    payload = await request.body()
    try:
        event_type = service.handle_webhook(payload, stripe_signature)
    except ValueError as e:
        logger.warning("Rejected Stripe webhook: %s", e)
        raise HTTPException(status_code=400, detail=str(e))

    logger.info("Processed Stripe webhook %s", event_type)
    return {"status": "success", "event": event_type}
