"""
Pydantic schemas for hand analysis and follow-up questions.
"""
import uuid
from typing import Any, Optional
from pydantic import BaseModel, Field


class AnalyzeRequest(BaseModel):
    """Request to analyze one hand."""
    user_id: uuid.UUID
    hand_id: Optional[str] = Field(None, max_length=255)
    hand: Any = Field(..., description="Free-form hand description (text or structured snapshot)")


class AnalyzeUsage(BaseModel):
    plan: str
    limit_per_month: Optional[int]
    used_this_month: int


class AnalyzeResponse(BaseModel):
    ok: bool = True
    result: Any = Field(..., description="Parsed evaluation when the model returned JSON, raw text otherwise")
    raw_text: Optional[str] = None
    usage: AnalyzeUsage


class FollowupRequest(BaseModel):
    """Follow-up question about an already analyzed hand."""
    user_id: uuid.UUID
    hand_id: str = Field(..., min_length=1, max_length=255)
    question: str = Field(..., min_length=1, max_length=4000)
    snapshot: Any = None
    evaluation: Any = None
    conversation: Any = None


class FollowupUsage(BaseModel):
    plan: str
    followups_per_hand: Optional[int]
    used_for_this_hand: int


class FollowupResponse(BaseModel):
    ok: bool = True
    result: Any
    usage: FollowupUsage
