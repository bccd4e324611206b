"""
Webhook endpoints.

Currently supports Stripe subscription webhooks.
"""
from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
import stripe
import logging

from app.core.config import settings
from app.core.exceptions import BadRequest, StripeNotConfigured
from app.core.rate_limit import limiter
from app.db.base import get_db
from app.services.subscription import stripe_to_dict, subscription_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/stripe")
@limiter.limit("200/minute")
async def stripe_webhook(request: Request, db: Session = Depends(get_db)):
    """
    Handle Stripe webhooks for the subscription lifecycle.

    Processes events:
    - checkout.session.completed: user paid, insert an active subscription
    - customer.subscription.updated: price changed, record the new plan

    Everything else is acknowledged and ignored.
    """
    webhook_secret = settings.active_stripe_webhook_secret
    if not webhook_secret:
        raise StripeNotConfigured(message="Stripe webhook secret not configured")

    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    if not sig_header:
        raise BadRequest("missing_signature")

    try:
        event = stripe.Webhook.construct_event(payload, sig_header, webhook_secret)
    except ValueError as e:
        logger.error(f"Invalid Stripe webhook payload: {e}")
        raise BadRequest("invalid_payload") from e
    except stripe.SignatureVerificationError as e:
        logger.error(f"Invalid Stripe webhook signature: {e}")
        raise BadRequest("invalid_signature") from e

    event_type = event["type"]
    event_data = stripe_to_dict(event["data"]["object"])

    logger.info(f"Received Stripe webhook: {event_type}")

    await run_in_threadpool(_process_event, event_type, event_data, db)

    return {"ok": True}


def _process_event(event_type: str, event_data: dict, db: Session) -> None:
    try:
        if event_type == "checkout.session.completed":
            subscription_service.handle_checkout_completed(event_data, db)

        elif event_type == "customer.subscription.updated":
            subscription_service.handle_subscription_updated(event_data, db)

        else:
            logger.debug(f"Unhandled Stripe event type: {event_type}")

    except Exception as e:
        # Answer 200 so Stripe does not redeliver; the failure stays in the logs
        db.rollback()
        logger.error(f"Error processing Stripe webhook {event_type}: {str(e)}", exc_info=True)
