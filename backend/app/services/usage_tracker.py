"""
Usage ledger for quota accounting.

Tracks:
- Hand analyses (counted per calendar month)
- Follow-up questions (counted per user and hand)

Rows are appended after a billable action succeeds and are only ever read
back as counts.
"""
from datetime import datetime, timezone, tzinfo
from typing import Optional, Tuple
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models import UsageLog

ANALYZE = "analyze"
FOLLOWUP = "followup"
ACTION_TYPES = (ANALYZE, FOLLOWUP)


def usage_timezone() -> tzinfo:
    """Timezone that defines calendar-month boundaries for quotas."""
    name = settings.usage_timezone or "UTC"
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def current_month_window(now: Optional[datetime] = None, tz: Optional[tzinfo] = None) -> Tuple[datetime, datetime]:
    """
    Get the current calendar month as a half-open UTC window.

    Args:
        now: Reference instant (timezone-aware); defaults to the current time
        tz: Zone whose calendar defines the month; defaults to settings.usage_timezone

    Returns:
        (start, end) as naive UTC datetimes, matching how timestamps are stored
    """
    tz = tz or usage_timezone()
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    local_now = now.astimezone(tz)
    start = local_now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)

    return (
        start.astimezone(timezone.utc).replace(tzinfo=None),
        end.astimezone(timezone.utc).replace(tzinfo=None),
    )


class UsageTracker:
    """
    Service for counting and recording billable actions.
    """

    def __init__(self, db: Session):
        """
        Initialize usage tracker.

        Args:
            db: Database session
        """
        self.db = db

    def count_actions_between(self, user_id: UUID, action_type: str, start: datetime, end: datetime) -> int:
        """Count a user's actions of one kind in ``[start, end)``."""
        return self.db.query(func.count(UsageLog.id)).filter(
            UsageLog.user_id == user_id,
            UsageLog.action_type == action_type,
            UsageLog.created_at >= start,
            UsageLog.created_at < end,
        ).scalar() or 0

    def count_analyses_this_month(self, user_id: UUID, now: Optional[datetime] = None) -> int:
        start, end = current_month_window(now)
        return self.count_actions_between(user_id, ANALYZE, start, end)

    def count_followups_for_hand(self, user_id: UUID, hand_id: str) -> int:
        return self.db.query(func.count(UsageLog.id)).filter(
            UsageLog.user_id == user_id,
            UsageLog.action_type == FOLLOWUP,
            UsageLog.hand_id == hand_id,
        ).scalar() or 0

    def log_action(self, user_id: UUID, action_type: str, hand_id: Optional[str] = None) -> UsageLog:
        """
        Append one usage row and commit.

        Raises:
            ValueError: If action_type is not a known action
            SQLAlchemyError: If the insert fails
        """
        if action_type not in ACTION_TYPES:
            raise ValueError(f"Unknown action type: {action_type}")

        entry = UsageLog(
            user_id=user_id,
            action_type=action_type,
            hand_id=hand_id,
            created_at=datetime.utcnow(),
        )
        self.db.add(entry)
        self.db.commit()
        return entry
