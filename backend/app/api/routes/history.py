"""
API endpoints for saved hand histories.

Endpoints:
- POST /history/save - Save an analyzed hand
- GET /history/list - List a user's hands, newest first
- GET /history/detail - One hand with all payloads
- POST /history/title - Rename a hand
- POST /history/conversation - Replace a hand's follow-up thread
- DELETE /history - Delete all of a user's hands
"""
import uuid
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.core.exceptions import BadRequest, NotFound
from app.core.rate_limit import limiter
from app.db.base import get_db
from app.models import HandHistory
from app.schemas import (
    HistoryConversationUpdateRequest,
    HistoryDeleteResponse,
    HistoryDetail,
    HistoryDetailResponse,
    HistoryList,
    HistorySaveRequest,
    HistorySaveResponse,
    HistorySummary,
    HistoryTitleUpdateRequest,
)
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_owned_history(db: Session, history_id: uuid.UUID, user_id: uuid.UUID) -> HandHistory:
    history = db.query(HandHistory).filter(
        HandHistory.id == history_id,
        HandHistory.user_id == user_id,
    ).first()
    if not history:
        raise NotFound(message="History not found")
    return history


@router.post("/save", response_model=HistorySaveResponse)
@limiter.limit("60/minute")
def save_history(
    request: Request,
    payload: HistorySaveRequest,
    db: Session = Depends(get_db),
):
    """Save an analyzed hand."""
    history = HandHistory(
        user_id=payload.user_id,
        hand_id=payload.hand_id,
        title=payload.title,
        snapshot=payload.snapshot,
        evaluation=payload.evaluation,
        conversation=payload.conversation,
        markdown=payload.markdown,
    )
    db.add(history)
    db.commit()
    db.refresh(history)

    logger.info(f"Saved history {history.id} for user {payload.user_id}")

    return HistorySaveResponse(id=history.id, created_at=history.created_at)


@router.get("/list", response_model=HistoryList)
def list_histories(
    user_id: Optional[uuid.UUID] = Query(None),
    db: Session = Depends(get_db),
):
    """List a user's saved hands, newest first."""
    if user_id is None:
        raise BadRequest("missing_user_id")

    histories = db.query(HandHistory).filter(
        HandHistory.user_id == user_id
    ).order_by(HandHistory.created_at.desc()).all()

    return HistoryList(histories=[HistorySummary.model_validate(h) for h in histories])


@router.get("/detail", response_model=HistoryDetailResponse)
def get_history_detail(
    id: Optional[uuid.UUID] = Query(None),
    db: Session = Depends(get_db),
):
    """Get one saved hand with its snapshot, evaluation, and conversation."""
    if id is None:
        raise BadRequest("missing_id")

    history = db.query(HandHistory).filter(HandHistory.id == id).first()
    if not history:
        raise NotFound(message="History not found")

    return HistoryDetailResponse(history=HistoryDetail.model_validate(history))


@router.post("/title", response_model=HistoryDetailResponse)
def update_history_title(
    payload: HistoryTitleUpdateRequest,
    db: Session = Depends(get_db),
):
    """Rename a saved hand."""
    history = _get_owned_history(db, payload.id, payload.user_id)
    history.title = payload.title
    history.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(history)

    return HistoryDetailResponse(history=HistoryDetail.model_validate(history))


@router.post("/conversation", response_model=HistoryDetailResponse)
def update_history_conversation(
    payload: HistoryConversationUpdateRequest,
    db: Session = Depends(get_db),
):
    """Replace the follow-up conversation stored with a hand."""
    history = _get_owned_history(db, payload.id, payload.user_id)
    history.conversation = payload.conversation
    history.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(history)

    return HistoryDetailResponse(history=HistoryDetail.model_validate(history))


@router.delete("", response_model=HistoryDeleteResponse)
def delete_all_histories(
    user_id: Optional[uuid.UUID] = Query(None),
    db: Session = Depends(get_db),
):
    """Delete every saved hand of a user. Usage records are kept."""
    if user_id is None:
        raise BadRequest("missing_user_id")

    deleted = db.query(HandHistory).filter(
        HandHistory.user_id == user_id
    ).delete(synchronize_session=False)
    db.commit()

    logger.info(f"Deleted {deleted} histories for user {user_id}")

    return HistoryDeleteResponse(deleted=deleted)
