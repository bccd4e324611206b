"""
Quota-gated hand analysis endpoints.

Endpoints:
- POST /analyze - Analyze a hand (counts toward the monthly limit)
- POST /followup - Ask about an analyzed hand (counts toward the per-hand limit)
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.quota import check_analyze_quota, check_followup_quota, record_usage
from app.core.rate_limit import limiter
from app.db.base import get_db
from app.schemas import (
    AnalyzeRequest,
    AnalyzeResponse,
    AnalyzeUsage,
    FollowupRequest,
    FollowupResponse,
    FollowupUsage,
)
from app.services.hand_analysis import hand_analysis_service
from app.services.usage_tracker import ANALYZE, FOLLOWUP
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/analyze", response_model=AnalyzeResponse)
@limiter.limit("20/minute")
def analyze_hand(
    request: Request,
    payload: AnalyzeRequest,
    db: Session = Depends(get_db),
):
    """
    Analyze one hand with the LLM.

    Implements the monthly gate:
    1. Check the monthly analysis quota (403 quota_exceeded when used up)
    2. Call the LLM
    3. Record one analysis only after the call succeeded
    """
    entitlement = check_analyze_quota(payload.user_id, db)

    analysis = hand_analysis_service.analyze(payload.hand)

    recorded = record_usage(db, payload.user_id, ANALYZE, payload.hand_id)
    used_this_month = entitlement.used_this_month + (1 if recorded else 0)

    logger.info(
        f"Analyzed hand {payload.hand_id} for user {payload.user_id} "
        f"({used_this_month}/{entitlement.limit_per_month.to_json()} this month)"
    )

    return AnalyzeResponse(
        result=analysis.result,
        raw_text=None if analysis.parsed else analysis.raw_text,
        usage=AnalyzeUsage(
            plan=entitlement.plan,
            limit_per_month=entitlement.limit_per_month.to_json(),
            used_this_month=used_this_month,
        ),
    )


@router.post("/followup", response_model=FollowupResponse)
@limiter.limit("30/minute")
def ask_followup(
    request: Request,
    payload: FollowupRequest,
    db: Session = Depends(get_db),
):
    """
    Answer a follow-up question about an analyzed hand.

    Gated per (user, hand); usage is recorded only after the LLM answered.
    """
    entitlement, used_for_hand = check_followup_quota(payload.user_id, payload.hand_id, db)

    answer = hand_analysis_service.followup(
        question=payload.question,
        snapshot=payload.snapshot,
        evaluation=payload.evaluation,
        conversation=payload.conversation,
    )

    recorded = record_usage(db, payload.user_id, FOLLOWUP, payload.hand_id)

    return FollowupResponse(
        result=answer,
        usage=FollowupUsage(
            plan=entitlement.plan,
            followups_per_hand=entitlement.followups_per_hand.to_json(),
            used_for_this_hand=used_for_hand + (1 if recorded else 0),
        ),
    )
