"""
API endpoints for Stripe checkout.

Endpoints:
- POST /billing/checkout - Create Stripe checkout session
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.rate_limit import limiter
from app.db.base import get_db
from app.schemas import CheckoutSessionRequest, CheckoutSessionResponse
from app.services.subscription import subscription_service
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/checkout", response_model=CheckoutSessionResponse)
@limiter.limit("5/minute")
def create_checkout_session(
    request: Request,
    payload: CheckoutSessionRequest,
    db: Session = Depends(get_db),
):
    """
    Create a Stripe checkout session for a paid plan.

    The subscription row is written when Stripe reports
    ``checkout.session.completed`` to the webhook.
    """
    result = subscription_service.create_checkout_session(
        user_id=payload.user_id,
        plan=payload.plan,
        success_url=payload.success_url,
        cancel_url=payload.cancel_url,
        db=db,
    )

    return CheckoutSessionResponse(
        checkout_url=result["checkout_url"],
        session_id=result["session_id"],
    )
