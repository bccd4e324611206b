"""
Integration tests for the quota-gated analysis endpoints.

Tests the full request/response cycle for:
- POST /analyze
- POST /followup
"""
from unittest.mock import patch
import asyncio
import time

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.core.exceptions import UpstreamError
from app.main import app
from app.db.base import get_db
from app.services.hand_analysis import AnalysisResult
from app.services.usage_tracker import ANALYZE, FOLLOWUP, UsageTracker

pytestmark = pytest.mark.integration

EVALUATION = {"summary": "Solid until the river", "score": 72}


@pytest.fixture
def client(db: Session):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def mock_analyze():
    with patch("app.api.routes.analysis.hand_analysis_service.analyze") as mock:
        mock.return_value = AnalysisResult(result=EVALUATION, raw_text='{"summary": "..."}', parsed=True)
        yield mock


@pytest.fixture
def mock_followup():
    with patch("app.api.routes.analysis.hand_analysis_service.followup") as mock:
        mock.return_value = {"answer": "Villain's range is capped."}
        yield mock


class TestAnalyze:
    """Test POST /api/v1/analyze endpoint."""

    def test_admitted_and_recorded(self, client, db, free_user, mock_analyze):
        response = client.post(
            "/api/v1/analyze",
            json={"user_id": str(free_user.id), "hand_id": "h1", "hand": "Hero opens AKs UTG"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["result"] == EVALUATION
        assert data["usage"] == {"plan": "free", "limit_per_month": 3, "used_this_month": 1}
        assert UsageTracker(db).count_analyses_this_month(free_user.id) == 1

    def test_raw_text_when_model_ignores_json(self, client, free_user, mock_analyze):
        mock_analyze.return_value = AnalysisResult(result="Fold.", raw_text="Fold.", parsed=False)

        data = client.post(
            "/api/v1/analyze",
            json={"user_id": str(free_user.id), "hand": "..."},
        ).json()

        assert data["result"] == "Fold."
        assert data["raw_text"] == "Fold."

    def test_free_user_over_quota(self, client, db, free_user, add_usage, mock_analyze):
        """A free user with 3 analyses this month gets 403 and no LLM call."""
        add_usage(free_user, ANALYZE, 3)

        response = client.post(
            "/api/v1/analyze",
            json={"user_id": str(free_user.id), "hand": "..."},
        )

        assert response.status_code == 403
        data = response.json()
        assert data["ok"] is False
        assert data["error"] == "quota_exceeded"
        assert data["plan"] == "free"
        assert data["limit_per_month"] == 3
        assert data["used_this_month"] == 3
        mock_analyze.assert_not_called()
        assert UsageTracker(db).count_analyses_this_month(free_user.id) == 3

    def test_premium_user_unlimited(self, client, premium_user, add_usage, mock_analyze):
        add_usage(premium_user, ANALYZE, 500)

        response = client.post(
            "/api/v1/analyze",
            json={"user_id": str(premium_user.id), "hand": "..."},
        )

        assert response.status_code == 200
        usage = response.json()["usage"]
        assert usage["limit_per_month"] is None
        assert usage["used_this_month"] == 501

    def test_llm_failure_records_nothing(self, client, db, free_user, mock_analyze):
        mock_analyze.side_effect = UpstreamError("llm_error")

        response = client.post(
            "/api/v1/analyze",
            json={"user_id": str(free_user.id), "hand": "..."},
        )

        assert response.status_code == 502
        assert response.json()["error"] == "llm_error"
        assert response.json()["source"] == "external"
        assert UsageTracker(db).count_analyses_this_month(free_user.id) == 0

    def test_usage_write_failure_still_returns_result(self, client, free_user, mock_analyze):
        with patch.object(
            UsageTracker,
            "log_action",
            side_effect=OperationalError("INSERT", {}, Exception("read-only")),
        ):
            response = client.post(
                "/api/v1/analyze",
                json={"user_id": str(free_user.id), "hand": "..."},
            )

        assert response.status_code == 200
        assert response.json()["result"] == EVALUATION
        assert response.json()["usage"]["used_this_month"] == 0

    def test_missing_hand(self, client, free_user):
        response = client.post("/api/v1/analyze", json={"user_id": str(free_user.id)})

        assert response.status_code == 400
        assert response.json()["error"] == "bad_request"


class TestFollowup:
    """Test POST /api/v1/followup endpoint."""

    def _body(self, user, hand_id="H"):
        return {
            "user_id": str(user.id),
            "hand_id": hand_id,
            "question": "Should I have bet the river?",
            "evaluation": EVALUATION,
        }

    def test_admitted_and_recorded(self, client, db, basic_user, mock_followup):
        response = client.post("/api/v1/followup", json=self._body(basic_user))

        assert response.status_code == 200
        data = response.json()
        assert data["result"] == {"answer": "Villain's range is capped."}
        assert data["usage"] == {"plan": "basic", "followups_per_hand": 3, "used_for_this_hand": 1}
        assert UsageTracker(db).count_followups_for_hand(basic_user.id, "H") == 1

    def test_basic_user_over_hand_limit(self, client, basic_user, add_usage, mock_followup):
        """A basic user with 3 follow-ups on hand H is denied."""
        add_usage(basic_user, FOLLOWUP, 3, hand_id="H")

        response = client.post("/api/v1/followup", json=self._body(basic_user))

        assert response.status_code == 403
        data = response.json()
        assert data["error"] == "followup_limit_exceeded"
        assert data["followups_per_hand"] == 3
        assert data["used_for_this_hand"] == 3
        mock_followup.assert_not_called()

    def test_other_hand_still_allowed(self, client, basic_user, add_usage, mock_followup):
        add_usage(basic_user, FOLLOWUP, 3, hand_id="H")

        response = client.post("/api/v1/followup", json=self._body(basic_user, hand_id="H2"))

        assert response.status_code == 200

    def test_missing_question(self, client, basic_user):
        body = self._body(basic_user)
        del body["question"]

        response = client.post("/api/v1/followup", json=body)

        assert response.status_code == 400


class TestServerStaysResponsive:
    """A slow model call must not stall unrelated requests."""

    @pytest.mark.asyncio
    async def test_health_answers_during_slow_analysis(self, db, free_user):
        def override_get_db():
            yield db

        def slow_analyze(*args, **kwargs):
            time.sleep(1)
            return AnalysisResult(result=EVALUATION, raw_text="{}", parsed=True)

        app.dependency_overrides[get_db] = override_get_db
        try:
            with patch("app.api.routes.analysis.hand_analysis_service.analyze", side_effect=slow_analyze):
                transport = httpx.ASGITransport(app=app)
                async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
                    analysis = asyncio.create_task(
                        client.post("/api/v1/analyze", json={"user_id": str(free_user.id), "hand": "..."})
                    )
                    await asyncio.sleep(0.1)

                    started = time.perf_counter()
                    health = await client.get("/health")
                    latency = time.perf_counter() - started

                    response = await analysis
        finally:
            app.dependency_overrides.clear()

        assert health.status_code == 200
        assert latency < 0.5
        assert response.status_code == 200
        assert response.json()["result"] == EVALUATION
