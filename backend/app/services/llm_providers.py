"""
LLM provider abstraction for multiple backends.

Supports:
- OpenAI (GPT models)
- Anthropic (Claude models)
- Ollama (local LLMs via HTTP API)

Every provider call is bounded by settings.llm_timeout_seconds. Completions
have no side effects, so LLMService retries them with exponential backoff.
"""
from abc import ABC, abstractmethod
from typing import List, Dict, Optional
from dataclasses import dataclass
import logging
import time
import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)


ANTHROPIC_JSON_INSTRUCTION = "Reply with a single JSON object and nothing else."


class LLMProviderError(Exception):
    """Raised when a provider call fails or returns no content."""


@dataclass
class Message:
    """Chat message."""

    role: str  # 'system', 'user', or 'assistant'
    content: str


@dataclass
class LLMResponse:
    """Response from LLM."""

    content: str
    model: str
    provider: str
    usage: Optional[Dict[str, int]] = None  # {input_tokens, output_tokens, total_tokens}
    finish_reason: Optional[str] = None
    response_time_seconds: Optional[float] = None


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    def complete(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """
        Generate a completion for the given messages.

        Args:
            messages: List of messages (conversation history)
            temperature: Sampling temperature (0.0 to 2.0)
            max_tokens: Maximum tokens to generate
            json_mode: Ask the model for a single JSON object

        Returns:
            LLMResponse object
        """


class OllamaProvider(LLMProvider):
    """
    Ollama LLM provider for local models.

    Connects to Ollama HTTP API (typically running on localhost:11434).
    """

    def __init__(self, base_url: str = None, model: str = None, timeout: float = None):
        self.base_url = base_url or settings.ollama_base_url
        self.model = model or settings.ollama_model
        self.timeout = timeout or settings.llm_timeout_seconds
        self.client = httpx.Client(base_url=self.base_url, timeout=self.timeout)

    def complete(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Generate completion using Ollama."""
        start_time = time.time()

        payload = {
            "model": self.model,
            "messages": [{"role": msg.role, "content": msg.content} for msg in messages],
            "stream": False,
            "options": {},
        }

        if temperature is not None:
            payload["options"]["temperature"] = temperature

        if max_tokens is not None:
            payload["options"]["num_predict"] = max_tokens

        if json_mode:
            payload["format"] = "json"

        try:
            response = self.client.post("/api/chat", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise LLMProviderError(f"Ollama API error: {str(e)}") from e

        return LLMResponse(
            content=data["message"]["content"],
            model=self.model,
            provider="ollama",
            usage={
                "input_tokens": data.get("prompt_eval_count", 0),
                "output_tokens": data.get("eval_count", 0),
                "total_tokens": data.get("prompt_eval_count", 0) + data.get("eval_count", 0),
            },
            finish_reason=data.get("done_reason"),
            response_time_seconds=time.time() - start_time,
        )


class OpenAIProvider(LLMProvider):
    """OpenAI LLM provider (GPT models)."""

    def __init__(self, api_key: str = None, model: str = None):
        """
        Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key
            model: Model name (e.g., "gpt-4o-mini")
        """
        import openai

        self.api_key = api_key or settings.openai_api_key
        if not self.api_key:
            raise ValueError("OpenAI API key is required")

        self.model = model or settings.openai_model
        self.client = openai.OpenAI(
            api_key=self.api_key,
            timeout=settings.llm_timeout_seconds,
            max_retries=0,
        )

    def complete(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Generate completion using OpenAI."""
        start_time = time.time()

        params = {
            "model": self.model,
            "messages": [{"role": msg.role, "content": msg.content} for msg in messages],
        }

        if temperature is not None:
            params["temperature"] = temperature

        if max_tokens is not None:
            params["max_tokens"] = max_tokens

        if json_mode:
            params["response_format"] = {"type": "json_object"}

        try:
            response = self.client.chat.completions.create(**params)
        except Exception as e:
            raise LLMProviderError(f"OpenAI API error: {str(e)}") from e

        content = response.choices[0].message.content
        if not content:
            raise LLMProviderError("OpenAI returned an empty completion")

        return LLMResponse(
            content=content,
            model=response.model,
            provider="openai",
            usage={
                "input_tokens": response.usage.prompt_tokens,
                "output_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            } if response.usage else None,
            finish_reason=response.choices[0].finish_reason,
            response_time_seconds=time.time() - start_time,
        )


class AnthropicProvider(LLMProvider):
    """Anthropic LLM provider (Claude models)."""

    def __init__(self, api_key: str = None, model: str = None):
        import anthropic

        self.api_key = api_key or settings.anthropic_api_key
        if not self.api_key:
            raise ValueError("Anthropic API key is required")

        self.model = model or settings.anthropic_model
        self.client = anthropic.Anthropic(
            api_key=self.api_key,
            timeout=settings.llm_timeout_seconds,
            max_retries=0,
        )

    def complete(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Generate completion using Anthropic."""
        start_time = time.time()

        # Anthropic takes the system prompt separately
        system_message = None
        conversation_messages = []

        for msg in messages:
            if msg.role == "system":
                system_message = msg.content
            else:
                conversation_messages.append({"role": msg.role, "content": msg.content})

        params = {
            "model": self.model,
            "messages": conversation_messages,
            "max_tokens": max_tokens or settings.llm_max_tokens,
        }

        if system_message:
            params["system"] = system_message

        if temperature is not None:
            params["temperature"] = temperature

        if json_mode:
            # No response_format here: instruct, then prefill the opening brace
            params["system"] = (
                f"{system_message}\n\n{ANTHROPIC_JSON_INSTRUCTION}" if system_message else ANTHROPIC_JSON_INSTRUCTION
            )
            params["messages"] = conversation_messages + [{"role": "assistant", "content": "{"}]

        try:
            response = self.client.messages.create(**params)
        except Exception as e:
            raise LLMProviderError(f"Anthropic API error: {str(e)}") from e

        if not response.content:
            raise LLMProviderError("Anthropic returned an empty completion")

        content = response.content[0].text
        if json_mode:
            content = "{" + content

        return LLMResponse(
            content=content,
            model=response.model,
            provider="anthropic",
            usage={
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
                "total_tokens": response.usage.input_tokens + response.usage.output_tokens,
            },
            finish_reason=response.stop_reason,
            response_time_seconds=time.time() - start_time,
        )


class LLMService:
    """
    High-level LLM service with retry logic and error handling.

    The provider is created on first use so the app can start without
    vendor credentials.
    """

    def __init__(self, provider: Optional[LLMProvider] = None):
        self._provider = provider
        self.max_retries = max(0, settings.llm_max_retries)

    @property
    def provider(self) -> LLMProvider:
        if self._provider is None:
            self._provider = self._create_provider()
        return self._provider

    def _create_provider(self) -> LLMProvider:
        """Create LLM provider based on configuration."""
        provider_type = settings.llm_provider

        if provider_type == "ollama":
            return OllamaProvider()
        elif provider_type == "openai":
            return OpenAIProvider()
        elif provider_type == "anthropic":
            return AnthropicProvider()
        else:
            raise ValueError(f"Unknown LLM provider: {provider_type}")

    def complete(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
        retry: bool = True,
    ) -> LLMResponse:
        """
        Generate completion with automatic retry on failure.

        Args:
            messages: List of messages
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            json_mode: Ask the model for a single JSON object
            retry: Whether to retry on failure

        Returns:
            LLMResponse object

        Raises:
            LLMProviderError: If every attempt failed
        """
        temperature = temperature if temperature is not None else settings.llm_temperature
        max_tokens = max_tokens if max_tokens is not None else settings.llm_max_tokens

        # One initial attempt plus up to max_retries retries
        attempts = self.max_retries + 1 if retry else 1
        for attempt in range(attempts):
            try:
                return self.provider.complete(messages, temperature, max_tokens, json_mode=json_mode)
            except LLMProviderError as e:
                if attempt < attempts - 1:
                    wait_time = 2**attempt
                    logger.warning(f"LLM call failed (attempt {attempt + 1}/{attempts}), retrying in {wait_time}s: {e}")
                    time.sleep(wait_time)
                    continue
                raise


# Global LLM service instance
llm_service = LLMService()
