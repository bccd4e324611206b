"""
Sign-in endpoint.

The client sends the Google ID token from its sign-in SDK and keeps the
returned user id for later calls (``/me/plan?user_id=...``).
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.auth import resolve_google_profile, upsert_google_user
from app.core.rate_limit import limiter
from app.db.base import get_db
from app.schemas import AuthUser, GoogleAuthRequest, GoogleAuthResponse
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/google", response_model=GoogleAuthResponse)
@limiter.limit("30/minute")
def google_sign_in(
    request: Request,
    payload: GoogleAuthRequest,
    db: Session = Depends(get_db),
):
    """
    Verify a Google ID token and upsert the matching user.

    Returns the local user id, email, and display name.
    """
    profile = resolve_google_profile(payload.id_token)
    user, is_new = upsert_google_user(db, profile)

    logger.info(f"Google sign-in for user {user.id} (new={is_new})")

    return GoogleAuthResponse(
        user=AuthUser.model_validate(user),
        is_new=is_new,
    )
