"""
Pydantic schemas for API request/response validation.
"""
from app.schemas.auth import (
    GoogleAuthRequest,
    GoogleAuthResponse,
    AuthUser,
)
from app.schemas.subscription import (
    PlanName,
    PaidPlanName,
    EffectiveEntitlement,
    PlanChangeRequest,
    PlanChangeResponse,
    CheckoutSessionRequest,
    CheckoutSessionResponse,
)
from app.schemas.analysis import (
    AnalyzeRequest,
    AnalyzeResponse,
    AnalyzeUsage,
    FollowupRequest,
    FollowupResponse,
    FollowupUsage,
)
from app.schemas.history import (
    HistorySaveRequest,
    HistoryTitleUpdateRequest,
    HistoryConversationUpdateRequest,
    HistorySummary,
    HistoryDetail,
    HistoryList,
    HistoryDetailResponse,
    HistorySaveResponse,
    HistoryDeleteResponse,
)

__all__ = [
    "GoogleAuthRequest",
    "GoogleAuthResponse",
    "AuthUser",
    "PlanName",
    "PaidPlanName",
    "EffectiveEntitlement",
    "PlanChangeRequest",
    "PlanChangeResponse",
    "CheckoutSessionRequest",
    "CheckoutSessionResponse",
    "AnalyzeRequest",
    "AnalyzeResponse",
    "AnalyzeUsage",
    "FollowupRequest",
    "FollowupResponse",
    "FollowupUsage",
    "HistorySaveRequest",
    "HistoryTitleUpdateRequest",
    "HistoryConversationUpdateRequest",
    "HistorySummary",
    "HistoryDetail",
    "HistoryList",
    "HistoryDetailResponse",
    "HistorySaveResponse",
    "HistoryDeleteResponse",
]
