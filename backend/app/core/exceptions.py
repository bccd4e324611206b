"""
Application error taxonomy.

Every error carries an HTTP status code and a machine-readable ``code`` that
the client receives as ``{"ok": false, "error": code, ...}``. Extra keyword
arguments are merged into the response body.
"""
from typing import Any, Dict, Optional


class AppError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = 500
    default_code: str = "server_error"

    def __init__(self, code: Optional[str] = None, message: Optional[str] = None, **extra: Any):
        self.code = code or self.default_code
        self.message = message or self.code
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"ok": False, "error": self.code}
        if self.message != self.code:
            body["message"] = self.message
        body.update(self.extra)
        return body


class BadRequest(AppError):
    """Missing or malformed required field."""

    status_code = 400
    default_code = "bad_request"


class Unauthorized(AppError):
    status_code = 401
    default_code = "auth_failed"


class NotFound(AppError):
    status_code = 404
    default_code = "not_found"


class NoActiveSubscription(AppError):
    status_code = 400
    default_code = "no_active_subscription"


class QuotaExceeded(AppError):
    """Monthly analysis quota is used up."""

    status_code = 403
    default_code = "quota_exceeded"

    def __init__(self, plan: str, limit_per_month: Optional[int], used_this_month: int):
        super().__init__(
            message="Monthly analysis limit reached. Upgrade your plan to continue.",
            plan=plan,
            limit_per_month=limit_per_month,
            used_this_month=used_this_month,
        )
        self.plan = plan
        self.limit_per_month = limit_per_month
        self.used_this_month = used_this_month


class FollowupLimitExceeded(AppError):
    """Per-hand follow-up quota is used up."""

    status_code = 403
    default_code = "followup_limit_exceeded"

    def __init__(self, plan: str, followups_per_hand: Optional[int], used_for_this_hand: int):
        super().__init__(
            message="Follow-up limit reached for this hand.",
            plan=plan,
            followups_per_hand=followups_per_hand,
            used_for_this_hand=used_for_this_hand,
        )
        self.plan = plan
        self.followups_per_hand = followups_per_hand
        self.used_for_this_hand = used_for_this_hand


class UpstreamError(AppError):
    """Stripe or the LLM vendor failed or returned an unusable payload."""

    status_code = 502
    default_code = "upstream_error"

    def __init__(self, code: Optional[str] = None, message: Optional[str] = None, **extra: Any):
        extra.setdefault("source", "external")
        super().__init__(code, message, **extra)


class StripeNotConfigured(AppError):
    status_code = 500
    default_code = "stripe_not_configured"


class StoreUnavailable(AppError):
    """Persistence layer failure."""

    status_code = 500
    default_code = "server_error"
