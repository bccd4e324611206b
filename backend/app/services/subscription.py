"""
Subscription service for managing plans and Stripe billing.

Handles:
- Authoritative subscription lookup
- Stripe checkout session creation
- Plan changes (prorated upgrades, scheduled downgrades)
- Webhook event processing
"""
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Dict, Any, Mapping
import stripe
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    BadRequest,
    NotFound,
    NoActiveSubscription,
    StripeNotConfigured,
    UpstreamError,
)
from app.core.pricing import (
    PLAN_CATALOG,
    PlanConfig,
    get_plan_rank,
    is_known_plan,
    plan_for_price,
)
from app.models import User, Subscription
import logging

logger = logging.getLogger(__name__)

ACTIVE = "active"
STRIPE_STORE = "stripe"

# Initialize Stripe from settings. Billing mutations are never retried.
stripe.api_key = settings.active_stripe_secret_key or None
stripe.max_network_retries = 0
stripe.default_http_client = stripe.RequestsClient(timeout=settings.stripe_timeout_seconds)


def get_active_subscription(
    db: Session,
    user_id: uuid.UUID,
    store: Optional[str] = None,
) -> Optional[Subscription]:
    """
    Get the authoritative subscription for a user.

    The authoritative row is the most recently started row with status
    ``active``. Returns None when the user has no active row.
    """
    query = db.query(Subscription).filter(
        Subscription.user_id == user_id,
        Subscription.status == ACTIVE,
    )
    if store:
        query = query.filter(Subscription.store == store)
    return query.order_by(Subscription.started_at.desc()).first()


def stripe_to_dict(value: Any) -> Any:
    """Turn a Stripe SDK object (and anything nested in it) into plain dicts and lists."""
    if isinstance(value, stripe.StripeObject):
        value = value.to_dict()
    if isinstance(value, dict):
        return {key: stripe_to_dict(item) for key, item in value.items()}
    if isinstance(value, list):
        return [stripe_to_dict(item) for item in value]
    return value


def _price_id(price: Any) -> Optional[str]:
    # Schedule phase items carry the price id, expanded objects carry it under "id"
    if isinstance(price, str):
        return price
    if isinstance(price, Mapping):
        return price.get("id")
    return None


def _first_item(stripe_subscription: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
    items = (stripe_subscription.get("items") or {}).get("data") or []
    return items[0] if items else None


@dataclass
class PlanChangeResult:
    """Outcome of a plan change request."""

    action: str  # noop, upgraded, downgrade_scheduled
    from_plan: str
    to_plan: str
    current_period_end: Optional[int] = None
    effective_at: Optional[int] = None


class SubscriptionService:
    """Service for managing subscriptions and plan changes."""

    def __init__(self, catalog: Mapping[str, PlanConfig] = PLAN_CATALOG):
        self.catalog = catalog

    def _require_stripe(self) -> None:
        if not stripe.api_key:
            raise StripeNotConfigured(message="Stripe API key not configured")

    def _price_for_plan(self, plan: str) -> str:
        price_id = self.catalog[plan].stripe_price_id
        if not price_id:
            raise StripeNotConfigured(message=f"Stripe price ID not configured for {plan}")
        return price_id

    def change_plan(self, user_id: uuid.UUID, new_plan: str, db: Session) -> PlanChangeResult:
        """
        Move the user's Stripe subscription to another plan.

        Upgrades apply immediately with prorated charges and keep the billing
        anchor. Downgrades are scheduled for the end of the current billing
        phase through a two-phase subscription schedule, so the current plan
        stays active (and is not refunded) until then.

        Args:
            user_id: User ID
            new_plan: Target plan name
            db: Database session

        Returns:
            PlanChangeResult

        Raises:
            BadRequest: Unknown target plan or no Stripe subscription reference
            NoActiveSubscription: User has no active Stripe subscription
            StripeNotConfigured: Stripe key or target price missing
            UpstreamError: Stripe failed or returned an unusable payload
        """
        if not is_known_plan(new_plan, self.catalog) or not self.catalog[new_plan].stripe_price_setting:
            raise BadRequest("unknown_plan", f"Unknown plan: {new_plan}")

        current = get_active_subscription(db, user_id, store=STRIPE_STORE)
        if not current:
            raise NoActiveSubscription(message="No active subscription found. Please subscribe first.")

        current_plan = current.plan
        stripe_subscription_id = current.purchase_token

        if not stripe_subscription_id or not stripe_subscription_id.startswith("sub_"):
            raise BadRequest("missing_stripe_subscription_id")

        if current_plan == new_plan:
            logger.info(f"Plan change for user {user_id} is a no-op ({current_plan})")
            return PlanChangeResult(action="noop", from_plan=current_plan, to_plan=new_plan)

        self._require_stripe()
        new_price_id = self._price_for_plan(new_plan)

        current_rank = get_plan_rank(current_plan, self.catalog)
        new_rank = get_plan_rank(new_plan, self.catalog)

        try:
            stripe_subscription = stripe_to_dict(stripe.Subscription.retrieve(stripe_subscription_id))
            item = _first_item(stripe_subscription)
            if not item or not item.get("id"):
                raise UpstreamError("missing_subscription_item")

            if new_rank > current_rank:
                return self._upgrade(stripe_subscription_id, item, current_plan, new_plan, new_price_id)

            return self._schedule_downgrade(stripe_subscription_id, current_plan, new_plan, new_price_id)

        except stripe.StripeError as e:
            logger.error(f"Stripe error changing plan for user {user_id}: {str(e)}")
            raise UpstreamError("stripe_error", "Billing provider request failed") from e

    def _upgrade(
        self,
        stripe_subscription_id: str,
        item: Mapping[str, Any],
        current_plan: str,
        new_plan: str,
        new_price_id: str,
    ) -> PlanChangeResult:
        updated = stripe_to_dict(
            stripe.Subscription.modify(
                stripe_subscription_id,
                items=[{"id": item["id"], "price": new_price_id}],
                proration_behavior="create_prorations",
            )
        )

        # Newer API versions report the period end on the item
        updated_item = _first_item(updated) or {}
        period_end = updated.get("current_period_end") or updated_item.get("current_period_end")

        logger.info(f"Upgraded subscription {stripe_subscription_id}: {current_plan} -> {new_plan}")

        return PlanChangeResult(
            action="upgraded",
            from_plan=current_plan,
            to_plan=new_plan,
            current_period_end=period_end,
        )

    def _schedule_downgrade(
        self,
        stripe_subscription_id: str,
        current_plan: str,
        new_plan: str,
        new_price_id: str,
    ) -> PlanChangeResult:
        schedule = stripe_to_dict(stripe.SubscriptionSchedule.create(from_subscription=stripe_subscription_id))

        phases = schedule.get("phases") or []
        current_phase = phases[0] if phases else None
        end_date = current_phase.get("end_date") if current_phase else None
        if not end_date:
            raise UpstreamError("missing_phase_end_date")

        updated_schedule = stripe.SubscriptionSchedule.modify(
            schedule["id"],
            phases=[
                {
                    "items": [{"price": _price_id(it.get("price"))} for it in current_phase.get("items") or []],
                    "start_date": current_phase.get("start_date"),
                    "end_date": end_date,
                },
                {
                    "items": [{"price": new_price_id}],
                    "start_date": end_date,
                },
            ],
        )

        updated_phases = stripe_to_dict(updated_schedule).get("phases") or []
        effective_at = end_date
        if len(updated_phases) > 1 and updated_phases[1].get("start_date"):
            effective_at = updated_phases[1]["start_date"]

        logger.info(
            f"Scheduled downgrade for subscription {stripe_subscription_id}: "
            f"{current_plan} -> {new_plan} at {effective_at}"
        )

        return PlanChangeResult(
            action="downgrade_scheduled",
            from_plan=current_plan,
            to_plan=new_plan,
            effective_at=effective_at,
        )

    def create_checkout_session(
        self,
        user_id: uuid.UUID,
        plan: str,
        success_url: str,
        cancel_url: str,
        db: Session,
    ) -> Dict[str, str]:
        """
        Create a Stripe checkout session for a subscription purchase.

        The user and plan travel in the session metadata and come back on the
        ``checkout.session.completed`` webhook.

        Returns:
            Dictionary with checkout_url and session_id
        """
        self._require_stripe()

        if not is_known_plan(plan, self.catalog) or not self.catalog[plan].stripe_price_setting:
            raise BadRequest("unknown_plan", f"Unknown plan: {plan}")
        price_id = self._price_for_plan(plan)

        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFound("user_not_found", f"User not found: {user_id}")

        metadata = {"user_id": str(user.id), "plan": plan}

        try:
            session = stripe.checkout.Session.create(
                mode="subscription",
                line_items=[
                    {
                        "price": price_id,
                        "quantity": 1,
                    }
                ],
                customer_email=user.email,
                client_reference_id=str(user.id),
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata,
                subscription_data={"metadata": metadata},
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe error creating checkout for user {user_id}: {str(e)}")
            raise UpstreamError("stripe_error", "Billing provider request failed") from e

        logger.info(f"Created Stripe checkout session for user {user.id}: {session.id}")

        return {
            "checkout_url": session.url,
            "session_id": session.id,
        }

    def handle_checkout_completed(
        self,
        session: Mapping[str, Any],
        db: Session,
    ) -> Optional[Subscription]:
        """
        Handle successful checkout session completion.

        Inserts an active subscription row for the user and plan carried in
        the session metadata.

        Args:
            session: Stripe checkout session object
            db: Database session
        """
        session = stripe_to_dict(session)
        metadata = session.get("metadata") or {}
        plan = metadata.get("plan")

        try:
            user_id = uuid.UUID(str(metadata.get("user_id")))
        except ValueError:
            logger.error(f"Checkout session {session.get('id')} has no usable user_id in metadata")
            return None

        if not is_known_plan(plan, self.catalog):
            logger.error(f"Checkout session {session.get('id')} has unknown plan: {plan}")
            return None

        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            logger.error(f"User not found for checkout session: {user_id}")
            return None

        subscription = Subscription(
            user_id=user_id,
            plan=plan,
            status=ACTIVE,
            store=STRIPE_STORE,
            started_at=datetime.utcnow(),
            purchase_token=session.get("subscription"),
        )
        db.add(subscription)
        db.commit()

        logger.info(f"Checkout completed for user {user_id}: now on {plan}")

        return subscription

    def handle_subscription_updated(
        self,
        subscription_data: Mapping[str, Any],
        db: Session,
    ) -> Optional[Subscription]:
        """
        Handle subscription update event from Stripe.

        When the subscription's price now maps to a different plan than the
        user's authoritative row (an upgrade went through, or a scheduled
        downgrade phase started), a new active row is appended for that plan.

        Args:
            subscription_data: Stripe subscription object
            db: Database session
        """
        subscription_data = stripe_to_dict(subscription_data)
        stripe_subscription_id = subscription_data.get("id")

        if subscription_data.get("status") != ACTIVE:
            logger.info(
                f"Ignoring update for subscription {stripe_subscription_id}: "
                f"status {subscription_data.get('status')}"
            )
            return None

        item = _first_item(subscription_data) or {}
        new_plan = plan_for_price(_price_id(item.get("price")), self.catalog)
        if not new_plan:
            logger.warning(f"Subscription {stripe_subscription_id} has a price not mapped to any plan")
            return None

        known = db.query(Subscription).filter(
            Subscription.purchase_token == stripe_subscription_id
        ).order_by(Subscription.started_at.desc()).first()

        if not known:
            logger.warning(f"Subscription not found: {stripe_subscription_id}")
            return None

        current = get_active_subscription(db, known.user_id)
        if current and current.plan == new_plan:
            return None

        subscription = Subscription(
            user_id=known.user_id,
            plan=new_plan,
            status=ACTIVE,
            store=STRIPE_STORE,
            started_at=datetime.utcnow(),
            purchase_token=stripe_subscription_id,
        )
        db.add(subscription)
        db.commit()

        logger.info(f"Subscription {stripe_subscription_id} for user {known.user_id} now on {new_plan}")

        return subscription


# Global service instance
subscription_service = SubscriptionService()
