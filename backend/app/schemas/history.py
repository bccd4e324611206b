"""
Pydantic schemas for saved hand histories.
"""
from typing import Any, List, Optional
from datetime import datetime
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field


# Request schemas
class HistorySaveRequest(BaseModel):
    """Save an analyzed hand."""
    user_id: UUID
    hand_id: Optional[str] = Field(None, max_length=255)
    title: Optional[str] = Field(None, max_length=255)
    snapshot: Any = None
    evaluation: Any = None
    conversation: Any = None
    markdown: Optional[str] = None


class HistoryTitleUpdateRequest(BaseModel):
    id: UUID
    user_id: UUID
    title: str = Field(..., min_length=1, max_length=255)


class HistoryConversationUpdateRequest(BaseModel):
    id: UUID
    user_id: UUID
    conversation: Any


# Response schemas
class HistorySummary(BaseModel):
    """List entry; omits the snapshot and conversation payloads."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    hand_id: Optional[str] = None
    title: Optional[str] = None
    created_at: datetime
    evaluation: Any = None
    markdown: Optional[str] = None


class HistoryDetail(HistorySummary):
    user_id: UUID
    snapshot: Any = None
    conversation: Any = None
    updated_at: Optional[datetime] = None


class HistoryList(BaseModel):
    ok: bool = True
    histories: List[HistorySummary]


class HistoryDetailResponse(BaseModel):
    ok: bool = True
    history: HistoryDetail


class HistorySaveResponse(BaseModel):
    ok: bool = True
    id: UUID
    created_at: datetime


class HistoryDeleteResponse(BaseModel):
    ok: bool = True
    deleted: int
