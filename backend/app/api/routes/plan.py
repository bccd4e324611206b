"""
API endpoints for plans and entitlements.

Endpoints:
- GET /me/plan - Effective plan, limits, and this month's usage
- POST /plan/change - Upgrade now or schedule a downgrade on Stripe
"""
import uuid
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.core.exceptions import BadRequest
from app.core.rate_limit import limiter
from app.db.base import get_db
from app.schemas import EffectiveEntitlement, PlanChangeRequest, PlanChangeResponse
from app.services.entitlements import entitlement_resolver
from app.services.subscription import subscription_service
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/me/plan", response_model=EffectiveEntitlement)
@limiter.limit("60/minute")
def get_my_plan(
    request: Request,
    user_id: Optional[uuid.UUID] = Query(None),
    db: Session = Depends(get_db),
):
    """
    Get the effective entitlement for a user.

    Returns:
    - Plan and subscription status (``none`` without an active subscription)
    - Monthly analysis limit, usage, and remaining count (null when unlimited)
    - Per-hand follow-up limit and whether follow-ups are available
    - Whether ads are shown
    """
    if user_id is None:
        raise BadRequest("missing_user_id")

    entitlement = entitlement_resolver.resolve(user_id, db)

    logger.debug(f"Resolved plan for user {user_id}: {entitlement.plan}")

    return entitlement.to_schema()


@router.post("/plan/change", response_model=PlanChangeResponse, response_model_exclude_none=True)
@limiter.limit("5/minute")
def change_plan(
    request: Request,
    payload: PlanChangeRequest,
    db: Session = Depends(get_db),
):
    """
    Change the user's paid plan.

    Upgrades apply immediately with proration; downgrades take effect at the
    end of the current billing period.
    """
    result = subscription_service.change_plan(payload.user_id, payload.new_plan, db)

    if result.action == "noop":
        return PlanChangeResponse(action="noop", plan=result.from_plan)

    return PlanChangeResponse(
        action=result.action,
        from_plan=result.from_plan,
        to_plan=result.to_plan,
        current_period_end=result.current_period_end,
        effective_at=result.effective_at,
    )
