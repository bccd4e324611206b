"""
Saved hand analyses.
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, Text, JSON, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from app.db.base import Base

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONPayload = JSON().with_variant(JSONB(), "postgresql")


class HandHistory(Base):
    """A hand the user analyzed, with the model output and follow-up thread."""

    __tablename__ = "hand_histories"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    hand_id = Column(String(255), nullable=True, index=True)
    title = Column(String(255), nullable=True)

    # Opaque payloads produced by the client and the model
    snapshot = Column(JSONPayload, nullable=True)
    evaluation = Column(JSONPayload, nullable=True)
    conversation = Column(JSONPayload, nullable=True)
    markdown = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="hand_histories")

    def __repr__(self):
        return f"<HandHistory(id={self.id}, user_id={self.user_id}, hand_id={self.hand_id})>"
