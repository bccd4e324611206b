"""
Hand analysis and follow-up Q&A through the configured LLM.

The model is asked for JSON. When it complies the parsed object is returned
as the evaluation; otherwise callers get the raw text.
"""
import json
import re
import textwrap
from dataclasses import dataclass
from typing import Any, Optional

from app.core.exceptions import UpstreamError
from app.services.llm_providers import LLMProviderError, LLMService, Message, llm_service
import logging

logger = logging.getLogger(__name__)

ANALYSIS_SYSTEM_PROMPT = textwrap.dedent(
    """
    You are a poker coach reviewing a single hand played by the user.
    Evaluate each street's decision, name the biggest mistake if there is one,
    and suggest a better line.

    Respond with one JSON object with these keys:
    - "summary": one or two sentences
    - "streets": list of {"street", "action", "grade", "comment"}
    - "key_mistake": string or null
    - "better_line": string
    - "score": integer 0-100
    """
).strip()

FOLLOWUP_SYSTEM_PROMPT = textwrap.dedent(
    """
    You are a poker coach answering a follow-up question about a hand you
    already reviewed. Stay consistent with your earlier evaluation unless the
    question shows it was wrong.

    Respond with one JSON object: {"answer": string, "points": list of strings}
    """
).strip()

_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def parse_model_json(text: Optional[str]) -> Optional[Any]:
    """
    Parse a JSON object or list out of model output.

    Accepts bare JSON or JSON wrapped in a markdown code fence.
    Returns None when the text is not JSON.
    """
    if not text:
        return None

    candidate = text.strip()
    match = _FENCE.match(candidate)
    if match:
        candidate = match.group(1)

    try:
        parsed = json.loads(candidate)
    except ValueError:
        return None

    if isinstance(parsed, (dict, list)):
        return parsed
    return None


def _dump(value: Any) -> str:
    if value is None:
        return "(none)"
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, default=str)


@dataclass
class AnalysisResult:
    result: Any  # parsed evaluation, or raw text when the model ignored the JSON format
    raw_text: str
    parsed: bool


class HandAnalysisService:
    """Builds prompts for the LLM and shapes its answers."""

    def __init__(self, llm: LLMService = llm_service):
        self.llm = llm

    def _complete(self, messages) -> str:
        try:
            response = self.llm.complete(messages, json_mode=True)
        except ValueError as e:
            # Provider could not be created (missing credentials)
            logger.error(f"LLM provider not configured: {str(e)}")
            raise UpstreamError("llm_not_configured", "Text generation is not configured") from e
        except LLMProviderError as e:
            logger.error(f"LLM call failed: {str(e)}")
            raise UpstreamError("llm_error", "Text generation failed") from e

        logger.info(
            f"LLM completion: provider={response.provider}, model={response.model}, "
            f"tokens={(response.usage or {}).get('total_tokens')}, "
            f"time={response.response_time_seconds}"
        )
        return response.content

    def analyze(self, hand: Any) -> AnalysisResult:
        """
        Analyze one hand.

        Args:
            hand: Free-form hand description (text or structured snapshot)

        Returns:
            AnalysisResult

        Raises:
            UpstreamError: If the LLM call failed
        """
        messages = [
            Message(role="system", content=ANALYSIS_SYSTEM_PROMPT),
            Message(role="user", content=f"Hand:\n{_dump(hand)}"),
        ]
        text = self._complete(messages)

        parsed = parse_model_json(text)
        if parsed is None:
            logger.warning("Analysis response was not JSON; returning raw text")
            return AnalysisResult(result=text, raw_text=text, parsed=False)
        return AnalysisResult(result=parsed, raw_text=text, parsed=True)

    def followup(
        self,
        question: str,
        snapshot: Any = None,
        evaluation: Any = None,
        conversation: Any = None,
    ) -> Any:
        """
        Answer a follow-up question about an analyzed hand.

        Returns:
            Parsed follow-up object, or {"answer": text} when the model
            ignored the JSON format

        Raises:
            UpstreamError: If the LLM call failed
        """
        context = (
            f"Hand:\n{_dump(snapshot)}\n\n"
            f"Your earlier evaluation:\n{_dump(evaluation)}\n\n"
            f"Conversation so far:\n{_dump(conversation)}\n\n"
            f"Question: {question}"
        )
        messages = [
            Message(role="system", content=FOLLOWUP_SYSTEM_PROMPT),
            Message(role="user", content=context),
        ]
        text = self._complete(messages)

        parsed = parse_model_json(text)
        if isinstance(parsed, dict):
            return parsed
        return {"answer": text}


# Global service instance
hand_analysis_service = HandAnalysisService()
