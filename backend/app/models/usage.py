"""
Usage ledger model for quota accounting.
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, Index, Uuid
from sqlalchemy.orm import relationship

from app.db.base import Base


class UsageLog(Base):
    """
    One billable action.

    Append-only. Rows are only ever counted: ``analyze`` rows per calendar
    month for the monthly quota, ``followup`` rows per (user, hand) for the
    follow-up quota.
    """

    __tablename__ = "usage_logs"
    __table_args__ = (
        Index("ix_usage_logs_user_action_created", "user_id", "action_type", "created_at"),
        Index("ix_usage_logs_user_action_hand", "user_id", "action_type", "hand_id"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    action_type = Column(String(50), nullable=False)  # analyze, followup
    hand_id = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="usage_logs")

    def __repr__(self):
        return f"<UsageLog(id={self.id}, action={self.action_type}, user_id={self.user_id})>"
