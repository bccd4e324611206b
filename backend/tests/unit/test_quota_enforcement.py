"""
Unit tests for quota enforcement.

Tests the gate functions that run before billable LLM calls and the usage
recording that follows them.
"""
import pytest
from unittest.mock import patch
from sqlalchemy.exc import OperationalError

from app.core.exceptions import FollowupLimitExceeded, QuotaExceeded, StoreUnavailable
from app.core.quota import check_analyze_quota, check_followup_quota, record_usage
from app.services.usage_tracker import ANALYZE, FOLLOWUP, UsageTracker


class TestAnalyzeQuotaCheck:
    """Test monthly analysis quota enforcement."""

    def test_free_user_within_limit_passes(self, db, free_user, add_usage):
        """Free user with 2 of 3 analyses passes check."""
        add_usage(free_user, ANALYZE, 2)

        entitlement = check_analyze_quota(free_user.id, db)

        assert entitlement.plan == "free"
        assert entitlement.used_this_month == 2

    def test_free_user_at_limit_blocked(self, db, free_user, add_usage):
        """A free user with 3 analyses this month is denied."""
        add_usage(free_user, ANALYZE, 3)

        with pytest.raises(QuotaExceeded) as exc:
            check_analyze_quota(free_user.id, db)

        assert exc.value.status_code == 403
        body = exc.value.to_dict()
        assert body["ok"] is False
        assert body["error"] == "quota_exceeded"
        assert body["plan"] == "free"
        assert body["limit_per_month"] == 3
        assert body["used_this_month"] == 3

    def test_premium_user_unlimited(self, db, premium_user, add_usage):
        """A premium user with 500 analyses is still admitted."""
        add_usage(premium_user, ANALYZE, 500)

        entitlement = check_analyze_quota(premium_user.id, db)

        assert entitlement.limit_per_month.is_unlimited

    def test_denied_check_records_nothing(self, db, free_user, add_usage):
        add_usage(free_user, ANALYZE, 3)

        with pytest.raises(QuotaExceeded):
            check_analyze_quota(free_user.id, db)

        assert UsageTracker(db).count_analyses_this_month(free_user.id) == 3

    def test_followups_do_not_count_against_monthly_quota(self, db, free_user, add_usage):
        add_usage(free_user, FOLLOWUP, 10, hand_id="h1")

        check_analyze_quota(free_user.id, db)


class TestFollowupQuotaCheck:
    """Test per-hand follow-up quota enforcement."""

    def test_basic_user_at_hand_limit_blocked(self, db, basic_user, add_usage):
        """A basic user with 3 follow-ups on hand H is denied."""
        add_usage(basic_user, FOLLOWUP, 3, hand_id="H")

        with pytest.raises(FollowupLimitExceeded) as exc:
            check_followup_quota(basic_user.id, "H", db)

        body = exc.value.to_dict()
        assert exc.value.status_code == 403
        assert body["error"] == "followup_limit_exceeded"
        assert body["plan"] == "basic"
        assert body["followups_per_hand"] == 3
        assert body["used_for_this_hand"] == 3

    def test_limit_is_per_hand(self, db, basic_user, add_usage):
        add_usage(basic_user, FOLLOWUP, 3, hand_id="H")

        entitlement, used = check_followup_quota(basic_user.id, "other-hand", db)

        assert used == 0
        assert entitlement.plan == "basic"

    def test_free_user_gets_one_followup(self, db, free_user, add_usage):
        _, used = check_followup_quota(free_user.id, "H", db)
        assert used == 0

        add_usage(free_user, FOLLOWUP, 1, hand_id="H")

        with pytest.raises(FollowupLimitExceeded):
            check_followup_quota(free_user.id, "H", db)

    def test_premium_user_unlimited_followups(self, db, premium_user, add_usage):
        add_usage(premium_user, FOLLOWUP, 50, hand_id="H")

        _, used = check_followup_quota(premium_user.id, "H", db)

        assert used == 50

    def test_count_failure_raises_store_unavailable(self, db, free_user):
        with patch.object(
            UsageTracker,
            "count_followups_for_hand",
            side_effect=OperationalError("SELECT", {}, Exception("gone")),
        ):
            with pytest.raises(StoreUnavailable):
                check_followup_quota(free_user.id, "H", db)


class TestRecordUsage:
    """Test usage recording after a successful action."""

    def test_records_exactly_one_row(self, db, free_user):
        tracker = UsageTracker(db)
        before = tracker.count_analyses_this_month(free_user.id)

        assert record_usage(db, free_user.id, ANALYZE, "h1") is True

        assert tracker.count_analyses_this_month(free_user.id) == before + 1

    def test_followup_recorded_for_hand(self, db, free_user):
        record_usage(db, free_user.id, FOLLOWUP, "h1")
        record_usage(db, free_user.id, FOLLOWUP, "h1")

        tracker = UsageTracker(db)
        assert tracker.count_followups_for_hand(free_user.id, "h1") == 2
        assert tracker.count_followups_for_hand(free_user.id, "h2") == 0

    def test_append_failure_is_swallowed(self, db, free_user):
        with patch.object(db, "commit", side_effect=OperationalError("INSERT", {}, Exception("disk full"))):
            assert record_usage(db, free_user.id, ANALYZE, "h1") is False

        # Session is still usable after the rollback
        assert UsageTracker(db).count_analyses_this_month(free_user.id) == 0

    def test_unknown_action_rejected(self, db, free_user):
        with pytest.raises(ValueError):
            UsageTracker(db).log_action(free_user.id, "upload")
