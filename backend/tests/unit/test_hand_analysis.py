"""
Unit tests for hand analysis prompting, model output parsing, and LLM retries.
"""
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from app.core.exceptions import UpstreamError
from app.services.hand_analysis import HandAnalysisService, parse_model_json
from app.services.llm_providers import (
    ANTHROPIC_JSON_INSTRUCTION,
    AnthropicProvider,
    LLMProviderError,
    LLMResponse,
    LLMService,
    Message,
)


def _response(content):
    return LLMResponse(content=content, model="test-model", provider="test", usage={"total_tokens": 42})


class TestParseModelJson:
    def test_bare_object(self):
        assert parse_model_json('{"score": 70}') == {"score": 70}

    def test_fenced_object(self):
        assert parse_model_json('```json\n{"score": 70}\n```') == {"score": 70}

    def test_list(self):
        assert parse_model_json("[1, 2]") == [1, 2]

    def test_plain_text(self):
        assert parse_model_json("You should have folded the turn.") is None

    def test_scalar_json_is_not_an_evaluation(self):
        assert parse_model_json("42") is None

    def test_empty(self):
        assert parse_model_json("") is None
        assert parse_model_json(None) is None


class TestHandAnalysisService:
    def test_analyze_parses_json(self):
        llm = MagicMock()
        llm.complete.return_value = _response('{"summary": "Fine", "score": 80}')

        result = HandAnalysisService(llm).analyze({"hero": "AhKh"})

        assert result.parsed is True
        assert result.result == {"summary": "Fine", "score": 80}
        assert llm.complete.call_args.kwargs["json_mode"] is True
        user_message = llm.complete.call_args.args[0][1]
        assert "AhKh" in user_message.content

    def test_analyze_falls_back_to_raw_text(self):
        llm = MagicMock()
        llm.complete.return_value = _response("Fold preflop.")

        result = HandAnalysisService(llm).analyze("UTG opens, hero 3bets")

        assert result.parsed is False
        assert result.result == "Fold preflop."
        assert result.raw_text == "Fold preflop."

    def test_followup_wraps_text_answer(self):
        llm = MagicMock()
        llm.complete.return_value = _response("Because villain is tight.")

        answer = HandAnalysisService(llm).followup("Why fold?", snapshot={"hero": "AhKh"})

        assert answer == {"answer": "Because villain is tight."}

    def test_followup_returns_parsed_object(self):
        llm = MagicMock()
        llm.complete.return_value = _response('{"answer": "Range disadvantage", "points": []}')

        answer = HandAnalysisService(llm).followup("Why fold?")

        assert answer["answer"] == "Range disadvantage"

    def test_provider_failure_is_upstream_error(self):
        llm = MagicMock()
        llm.complete.side_effect = LLMProviderError("timeout")

        with pytest.raises(UpstreamError) as exc:
            HandAnalysisService(llm).analyze("hand")

        assert exc.value.code == "llm_error"
        assert exc.value.status_code == 502

    def test_missing_credentials_is_upstream_error(self):
        llm = MagicMock()
        llm.complete.side_effect = ValueError("OpenAI API key not configured")

        with pytest.raises(UpstreamError) as exc:
            HandAnalysisService(llm).analyze("hand")

        assert exc.value.code == "llm_not_configured"


class TestLLMServiceRetry:
    @patch("app.services.llm_providers.time.sleep")
    def test_retries_then_succeeds(self, mock_sleep):
        provider = MagicMock()
        provider.complete.side_effect = [LLMProviderError("busy"), _response("ok")]

        service = LLMService(provider=provider)
        service.max_retries = 1

        assert service.complete([], json_mode=True).content == "ok"
        assert provider.complete.call_count == 2
        mock_sleep.assert_called_once_with(1)

    @patch("app.services.llm_providers.time.sleep")
    def test_max_retries_counts_retries_not_attempts(self, mock_sleep):
        provider = MagicMock()
        provider.complete.side_effect = LLMProviderError("down")

        service = LLMService(provider=provider)
        service.max_retries = 3

        with pytest.raises(LLMProviderError):
            service.complete([])
        assert provider.complete.call_count == 4
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1, 2, 4]

    @patch("app.services.llm_providers.time.sleep")
    def test_zero_retries_makes_one_attempt(self, mock_sleep):
        provider = MagicMock()
        provider.complete.side_effect = LLMProviderError("down")

        service = LLMService(provider=provider)
        service.max_retries = 0

        with pytest.raises(LLMProviderError):
            service.complete([])
        assert provider.complete.call_count == 1
        mock_sleep.assert_not_called()

    def test_no_retry_when_disabled(self):
        provider = MagicMock()
        provider.complete.side_effect = LLMProviderError("down")

        with pytest.raises(LLMProviderError):
            LLMService(provider=provider).complete([], retry=False)
        assert provider.complete.call_count == 1


class TestAnthropicJsonMode:
    def _provider(self, text):
        provider = AnthropicProvider.__new__(AnthropicProvider)
        provider.model = "claude-test"
        provider.client = MagicMock()
        provider.client.messages.create.return_value = SimpleNamespace(
            content=[SimpleNamespace(text=text)],
            model="claude-test",
            usage=SimpleNamespace(input_tokens=10, output_tokens=5),
            stop_reason="end_turn",
        )
        return provider

    def test_json_mode_prefills_opening_brace(self):
        provider = self._provider('"score": 72}')
        messages = [Message("system", "You are a poker coach."), Message("user", "Rate this hand")]

        response = provider.complete(messages, json_mode=True)

        params = provider.client.messages.create.call_args.kwargs
        assert params["messages"][-1] == {"role": "assistant", "content": "{"}
        assert params["system"].startswith("You are a poker coach.")
        assert ANTHROPIC_JSON_INSTRUCTION in params["system"]
        assert response.content == '{"score": 72}'
        assert parse_model_json(response.content) == {"score": 72}

    def test_plain_mode_untouched(self):
        provider = self._provider("Fold preflop.")

        response = provider.complete([Message("user", "Rate this hand")])

        params = provider.client.messages.create.call_args.kwargs
        assert params["messages"] == [{"role": "user", "content": "Rate this hand"}]
        assert "system" not in params
        assert response.content == "Fold preflop."
