"""
Database models package.

All SQLAlchemy models are exported from this module for easy imports.
"""
from app.models.user import User
from app.models.subscription import Subscription
from app.models.usage import UsageLog
from app.models.hand_history import HandHistory

__all__ = [
    "User",
    "Subscription",
    "UsageLog",
    "HandHistory",
]
