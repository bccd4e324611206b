"""
Google sign-in for the mobile and web clients.

Provides:
- GoogleIDTokenVerifier: verifies Google-issued ID tokens against Google's JWKS.
- upsert_google_user: creates or refreshes the local User for a Google account.

Setting DEV_SKIP_GOOGLE_VERIFY=true skips verification and signs everyone in
as a fixed development profile.
"""
from dataclasses import dataclass
from datetime import datetime
import threading
import time
from typing import Any, Dict, Optional, Tuple

import httpx
from jose import JWTError, jwt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import Unauthorized, UpstreamError
from app.models import User
import logging

logger = logging.getLogger(__name__)

GOOGLE_ISSUERS = ("accounts.google.com", "https://accounts.google.com")
DEFAULT_DISPLAY_NAME = "Player"
JWKS_CACHE_SECONDS = 3600


@dataclass(frozen=True)
class GoogleProfile:
    sub: str
    email: str
    name: str


DEV_PROFILE = GoogleProfile(sub="test-google-sub-123", email="test@example.com", name="Test User")


class GoogleIDTokenVerifier:
    """Verify Google ID tokens using Google's published signing keys."""

    def __init__(self, certs_url: Optional[str] = None, client_id: Optional[str] = None) -> None:
        self.certs_url = certs_url or settings.google_certs_url
        self.client_id = client_id if client_id is not None else settings.google_client_id
        self._jwks: Optional[Dict[str, Any]] = None
        self._jwks_fetched_at = 0.0
        self._lock = threading.Lock()

    def _fetch_jwks(self) -> Dict[str, Any]:
        try:
            with httpx.Client(timeout=5.0) as client:
                response = client.get(self.certs_url)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(f"Unable to fetch Google signing keys: {exc}")
            raise UpstreamError("google_keys_unavailable", "Unable to fetch Google signing keys") from exc

        if "keys" not in data:
            raise UpstreamError("google_keys_unavailable", "Invalid JWKS payload from Google")
        return data

    def _get_jwks(self, force_refresh: bool = False) -> Dict[str, Any]:
        """Return cached JWKS, refetching hourly or on demand."""
        with self._lock:
            expired = time.monotonic() - self._jwks_fetched_at > JWKS_CACHE_SECONDS
            if self._jwks is None or expired or force_refresh:
                self._jwks = self._fetch_jwks()
                self._jwks_fetched_at = time.monotonic()
            return self._jwks

    def _get_signing_key(self, kid: str) -> Dict[str, Any]:
        # Google rotates keys; refetch once before giving up on an unknown kid
        for force_refresh in (False, True):
            for key in self._get_jwks(force_refresh).get("keys", []):
                if key.get("kid") == kid:
                    return key

        raise Unauthorized(message="Signing key not found for token")

    def verify(self, token: str) -> GoogleProfile:
        """
        Verify a Google ID token and return the profile it carries.

        Validates the RS256 signature, issuer, audience (GOOGLE_CLIENT_ID),
        expiry, and that the email is verified.

        Raises:
            Unauthorized: If the token is missing, malformed, or fails a check
            UpstreamError: If Google's keys cannot be fetched
        """
        if not token:
            raise Unauthorized("missing_id_token")

        if not self.client_id:
            raise UpstreamError("google_not_configured", "GOOGLE_CLIENT_ID is not set")

        try:
            header = jwt.get_unverified_header(token)
        except JWTError as exc:
            raise Unauthorized(message="Invalid ID token") from exc

        kid = header.get("kid")
        if not kid:
            raise Unauthorized(message="Invalid token: missing key id")

        signing_key = self._get_signing_key(kid)

        try:
            claims = jwt.decode(
                token,
                signing_key,
                algorithms=["RS256"],
                audience=self.client_id,
                issuer=GOOGLE_ISSUERS,
                # Google adds at_hash for tokens minted alongside an access token we never see
                options={"verify_at_hash": False},
            )
        except JWTError as exc:
            raise Unauthorized(message="Invalid or expired ID token") from exc

        if not claims.get("sub"):
            raise Unauthorized(message="Invalid token: missing subject")

        if not claims.get("email") or not claims.get("email_verified"):
            raise Unauthorized("unverified_email")

        return GoogleProfile(
            sub=claims["sub"],
            email=claims["email"],
            name=claims.get("name") or DEFAULT_DISPLAY_NAME,
        )


google_verifier = GoogleIDTokenVerifier()


def resolve_google_profile(id_token: Optional[str]) -> GoogleProfile:
    """Verify the token, or return the development profile when verification is disabled."""
    if settings.dev_skip_google_verify:
        logger.warning(f"DEV_SKIP_GOOGLE_VERIFY is on; using development profile {DEV_PROFILE.sub}")
        return DEV_PROFILE
    return google_verifier.verify(id_token or "")


def upsert_google_user(db: Session, profile: GoogleProfile) -> Tuple[User, bool]:
    """
    Create the user on first sign-in, otherwise refresh name, email, and activity.

    Returns:
        (user, is_new)
    """
    now = datetime.utcnow()
    display_name = profile.name or DEFAULT_DISPLAY_NAME

    user = db.query(User).filter(User.google_sub == profile.sub).first()
    if user is None:
        user = User(
            display_name=display_name,
            email=profile.email,
            auth_provider="google",
            google_sub=profile.sub,
            created_at=now,
            last_active_at=now,
        )
        db.add(user)
        try:
            db.commit()
            db.refresh(user)
            logger.info(f"Created user {user.id} for Google account {profile.sub}")
            return user, True
        except IntegrityError:
            # Concurrent first sign-in created the row; fall through to update it
            db.rollback()
            user = db.query(User).filter(User.google_sub == profile.sub).one()

    user.display_name = display_name
    user.email = profile.email
    user.last_active_at = now
    db.commit()
    db.refresh(user)

    return user, False
