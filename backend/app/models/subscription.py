"""
Subscription model for tracking user subscription history and billing data.
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, Index, Uuid
from sqlalchemy.orm import relationship

from app.db.base import Base


class Subscription(Base):
    """
    Subscription history row.

    A user may have many rows; the authoritative one is the most recently
    started row with status ``active``. Plan transitions are appended as new
    rows rather than edited in place.
    """

    __tablename__ = "subscriptions"
    __table_args__ = (
        Index("ix_subscriptions_user_status_started", "user_id", "status", "started_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Subscription details
    plan = Column(String(50), nullable=False)  # free, basic, pro, premium
    status = Column(String(50), nullable=False)  # active, canceled, past_due, ...
    store = Column(String(50), nullable=True)  # stripe, admin, ...
    limit_per_month = Column(Integer, nullable=True)  # Per-row override of the plan limit

    # Billing period
    started_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=True)

    # External billing reference (Stripe subscription id for store=stripe)
    purchase_token = Column(String(255), nullable=True, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="subscriptions")

    def __repr__(self):
        return f"<Subscription(id={self.id}, user_id={self.user_id}, plan={self.plan}, status={self.status})>"
