"""
Plan catalog for the hand review service.

Defines the subscription plans, their ordering, and the entitlements each one
grants. The catalog is built once at import time and exposed read-only; the
entitlement resolver receives it by reference.

| Plan    | Analyses / month | Follow-ups / hand | Ads |
|---------|------------------|-------------------|-----|
| free    | 3                | 1                 | yes |
| basic   | 30               | 3                 | no  |
| pro     | 100              | 3                 | no  |
| premium | unlimited        | unlimited         | no  |
"""
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

from app.core.config import settings


@dataclass(frozen=True)
class Limit:
    """A quota limit: either a finite count or unlimited."""

    value: Optional[int] = None

    @classmethod
    def finite(cls, value: int) -> "Limit":
        if value < 0:
            raise ValueError(f"Limit must be non-negative, got {value}")
        return cls(value)

    @classmethod
    def unlimited(cls) -> "Limit":
        return cls(None)

    @property
    def is_unlimited(self) -> bool:
        return self.value is None

    def allows(self, used: int) -> bool:
        """True when one more action fits under the limit."""
        return self.is_unlimited or used < self.value

    def remaining(self, used: int) -> Optional[int]:
        """Remaining actions, or None when unlimited."""
        if self.is_unlimited:
            return None
        return max(0, self.value - used)

    def to_json(self) -> Optional[int]:
        return self.value


UNLIMITED = Limit.unlimited()


@dataclass(frozen=True)
class PlanConfig:
    """Entitlements granted by a single plan."""

    name: str
    rank: int
    limit_per_month: Limit
    followups_per_hand: Limit
    ads_enabled: bool
    stripe_price_setting: Optional[str] = None

    @property
    def stripe_price_id(self) -> str:
        """Stripe price for this plan in the active Stripe mode ("" when unpriced)."""
        if not self.stripe_price_setting:
            return ""
        return settings.stripe_setting(self.stripe_price_setting)


DEFAULT_PLAN = "free"

PLAN_CATALOG: Mapping[str, PlanConfig] = MappingProxyType({
    "free": PlanConfig(
        name="free",
        rank=0,
        limit_per_month=Limit.finite(3),
        followups_per_hand=Limit.finite(1),
        ads_enabled=True,
    ),
    "basic": PlanConfig(
        name="basic",
        rank=1,
        limit_per_month=Limit.finite(30),
        followups_per_hand=Limit.finite(3),
        ads_enabled=False,
        stripe_price_setting="stripe_price_basic",
    ),
    "pro": PlanConfig(
        name="pro",
        rank=2,
        limit_per_month=Limit.finite(100),
        followups_per_hand=Limit.finite(3),
        ads_enabled=False,
        stripe_price_setting="stripe_price_pro",
    ),
    "premium": PlanConfig(
        name="premium",
        rank=3,
        limit_per_month=UNLIMITED,
        followups_per_hand=UNLIMITED,
        ads_enabled=False,
        stripe_price_setting="stripe_price_premium",
    ),
})


def get_plan_config(plan: Optional[str], catalog: Mapping[str, PlanConfig] = PLAN_CATALOG) -> PlanConfig:
    """
    Get the configuration for a plan.

    Unknown or missing plan names fall back to the free plan so that a bad
    row never fails a request.
    """
    if plan and plan in catalog:
        return catalog[plan]
    return catalog[DEFAULT_PLAN]


def get_plan_rank(plan: Optional[str], catalog: Mapping[str, PlanConfig] = PLAN_CATALOG) -> int:
    return get_plan_config(plan, catalog).rank


def is_known_plan(plan: Optional[str], catalog: Mapping[str, PlanConfig] = PLAN_CATALOG) -> bool:
    return bool(plan) and plan in catalog


def plan_for_price(price_id: Optional[str], catalog: Mapping[str, PlanConfig] = PLAN_CATALOG) -> Optional[str]:
    """Reverse lookup of a Stripe price id to a plan name."""
    if not price_id:
        return None
    for name, config in catalog.items():
        if config.stripe_price_id and config.stripe_price_id == price_id:
            return name
    return None
