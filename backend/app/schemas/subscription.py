"""
Pydantic schemas for plans, entitlements, and billing operations.
"""
import uuid
from datetime import datetime
from typing import Optional, Literal
from pydantic import BaseModel, ConfigDict, Field


PlanName = Literal["free", "basic", "pro", "premium"]
PaidPlanName = Literal["basic", "pro", "premium"]
PlanChangeAction = Literal["noop", "upgraded", "downgrade_scheduled"]


# Entitlement schemas
class EffectiveEntitlement(BaseModel):
    """
    Resolved plan and usage for a user at a point in time.

    ``limit_per_month``, ``remaining_this_month`` and ``followups_per_hand``
    are null when the plan is unlimited.
    """
    ok: bool = True
    user_id: uuid.UUID
    plan: str
    status: str
    store: Optional[str] = None
    started_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    limit_per_month: Optional[int]
    used_this_month: int
    remaining_this_month: Optional[int]
    followups_per_hand: Optional[int]
    can_followup: bool
    ads_enabled: bool


# Plan change schemas
class PlanChangeRequest(BaseModel):
    """Request to move a Stripe subscription to another plan."""
    user_id: uuid.UUID
    new_plan: str = Field(..., min_length=1, description="Target plan (basic, pro, premium)")


class PlanChangeResponse(BaseModel):
    """Outcome of a plan change."""
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    action: PlanChangeAction
    plan: Optional[str] = None
    from_plan: Optional[str] = Field(None, alias="from")
    to_plan: Optional[str] = Field(None, alias="to")
    current_period_end: Optional[int] = Field(None, description="Unix timestamp, upgrades only")
    effective_at: Optional[int] = Field(None, description="Unix timestamp, scheduled downgrades only")


# Stripe checkout schemas
class CheckoutSessionRequest(BaseModel):
    """Request to create a Stripe checkout session."""
    user_id: uuid.UUID
    plan: PaidPlanName = Field(..., description="Plan to purchase")
    success_url: str = Field(..., description="URL to redirect after successful payment")
    cancel_url: str = Field(..., description="URL to redirect if payment is canceled")


class CheckoutSessionResponse(BaseModel):
    """Response containing Stripe checkout session details."""
    ok: bool = True
    checkout_url: str = Field(..., description="URL to redirect user to Stripe checkout")
    session_id: str = Field(..., description="Stripe checkout session ID")
