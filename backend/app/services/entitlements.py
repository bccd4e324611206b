"""
Entitlement resolution.

Combines the plan catalog, the user's authoritative subscription, and the
usage ledger into the effective plan and limits for a user. Computed fresh
on every call; nothing is cached.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import StoreUnavailable
from app.core.pricing import DEFAULT_PLAN, PLAN_CATALOG, Limit, PlanConfig, get_plan_config
from app.schemas import EffectiveEntitlement
from app.services.subscription import get_active_subscription
from app.services.usage_tracker import UsageTracker
import logging

logger = logging.getLogger(__name__)

NO_SUBSCRIPTION_STATUS = "none"


@dataclass(frozen=True)
class Entitlement:
    """Effective plan, limits, and monthly usage for one user."""

    user_id: uuid.UUID
    plan: str
    status: str
    limit_per_month: Limit
    used_this_month: int
    followups_per_hand: Limit
    ads_enabled: bool
    store: Optional[str] = None
    started_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @property
    def remaining_this_month(self) -> Optional[int]:
        return self.limit_per_month.remaining(self.used_this_month)

    @property
    def can_analyze(self) -> bool:
        return self.limit_per_month.allows(self.used_this_month)

    @property
    def can_followup(self) -> bool:
        """Static capability: the plan allows at least one follow-up per hand."""
        return self.followups_per_hand.is_unlimited or self.followups_per_hand.value > 0

    def to_schema(self) -> EffectiveEntitlement:
        return EffectiveEntitlement(
            user_id=self.user_id,
            plan=self.plan,
            status=self.status,
            store=self.store,
            started_at=self.started_at,
            expires_at=self.expires_at,
            limit_per_month=self.limit_per_month.to_json(),
            used_this_month=self.used_this_month,
            remaining_this_month=self.remaining_this_month,
            followups_per_hand=self.followups_per_hand.to_json(),
            can_followup=self.can_followup,
            ads_enabled=self.ads_enabled,
        )


class EntitlementResolver:
    """Resolve a user's effective entitlement against an injected plan catalog."""

    def __init__(self, catalog: Mapping[str, PlanConfig] = PLAN_CATALOG):
        self.catalog = catalog

    def resolve(self, user_id: uuid.UUID, db: Session, now: Optional[datetime] = None) -> Entitlement:
        """
        Resolve the effective entitlement for a user.

        Args:
            user_id: User ID
            db: Database session
            now: Reference instant for the monthly window (defaults to now)

        Returns:
            Entitlement

        Raises:
            StoreUnavailable: If a query fails
        """
        try:
            subscription = get_active_subscription(db, user_id)
            used_this_month = UsageTracker(db).count_analyses_this_month(user_id, now=now)
        except SQLAlchemyError as e:
            logger.error(f"Failed to resolve entitlement for user {user_id}: {str(e)}")
            raise StoreUnavailable(message="Failed to load plan information") from e

        plan = DEFAULT_PLAN
        status = NO_SUBSCRIPTION_STATUS
        override = None
        store = started_at = expires_at = None

        if subscription:
            plan = subscription.plan or DEFAULT_PLAN
            status = subscription.status or "active"
            override = subscription.limit_per_month
            store = subscription.store
            started_at = subscription.started_at
            expires_at = subscription.expires_at

        config = get_plan_config(plan, self.catalog)
        limit_per_month = Limit.finite(max(0, override)) if override is not None else config.limit_per_month

        return Entitlement(
            user_id=user_id,
            plan=plan,
            status=status,
            limit_per_month=limit_per_month,
            used_this_month=used_this_month,
            followups_per_hand=config.followups_per_hand,
            ads_enabled=config.ads_enabled,
            store=store,
            started_at=started_at,
            expires_at=expires_at,
        )


# Global resolver instance
entitlement_resolver = EntitlementResolver()
