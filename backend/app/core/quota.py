"""
Quota enforcement for billable actions.

Gates run before the costly LLM call; usage is recorded only after that call
succeeded. Check and record are separate statements, so two concurrent
requests from one user can both pass the check (best-effort enforcement).
"""
import uuid
from typing import Optional, Tuple
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import FollowupLimitExceeded, QuotaExceeded, StoreUnavailable
from app.services.entitlements import Entitlement, entitlement_resolver
from app.services.usage_tracker import UsageTracker
import logging

logger = logging.getLogger(__name__)


def check_analyze_quota(user_id: uuid.UUID, db: Session) -> Entitlement:
    """
    Check if user can run another hand analysis this month.

    Args:
        user_id: User ID
        db: Database session

    Returns:
        The entitlement the decision was based on

    Raises:
        QuotaExceeded: If the monthly limit is used up
    """
    entitlement = entitlement_resolver.resolve(user_id, db)

    if not entitlement.can_analyze:
        logger.warning(
            f"Analysis quota exceeded for user {user_id}: "
            f"{entitlement.used_this_month}/{entitlement.limit_per_month.value} ({entitlement.plan})"
        )
        raise QuotaExceeded(
            plan=entitlement.plan,
            limit_per_month=entitlement.limit_per_month.to_json(),
            used_this_month=entitlement.used_this_month,
        )

    return entitlement


def check_followup_quota(user_id: uuid.UUID, hand_id: str, db: Session) -> Tuple[Entitlement, int]:
    """
    Check if user can ask another follow-up about a hand.

    Args:
        user_id: User ID
        hand_id: Hand the question is about
        db: Database session

    Returns:
        (entitlement, follow-ups already used for this hand)

    Raises:
        FollowupLimitExceeded: If the per-hand limit is used up
    """
    entitlement = entitlement_resolver.resolve(user_id, db)

    try:
        used_for_hand = UsageTracker(db).count_followups_for_hand(user_id, hand_id)
    except SQLAlchemyError as e:
        logger.error(f"Failed to count follow-ups for user {user_id}, hand {hand_id}: {str(e)}")
        raise StoreUnavailable(message="Failed to load usage information") from e

    if not entitlement.followups_per_hand.allows(used_for_hand):
        logger.warning(
            f"Follow-up limit exceeded for user {user_id} on hand {hand_id}: "
            f"{used_for_hand}/{entitlement.followups_per_hand.value} ({entitlement.plan})"
        )
        raise FollowupLimitExceeded(
            plan=entitlement.plan,
            followups_per_hand=entitlement.followups_per_hand.to_json(),
            used_for_this_hand=used_for_hand,
        )

    return entitlement, used_for_hand


def record_usage(db: Session, user_id: uuid.UUID, action_type: str, hand_id: Optional[str] = None) -> bool:
    """
    Append a usage row after a gated action succeeded.

    Failures are logged and swallowed: the user already got their result and
    should not be penalized for a bookkeeping error.

    Returns:
        True if the row was written
    """
    try:
        UsageTracker(db).log_action(user_id, action_type, hand_id)
        return True
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            f"Failed to record {action_type} usage for user {user_id} (hand {hand_id}): {str(e)}",
            exc_info=True,
        )
        return False
